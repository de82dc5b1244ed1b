import logging
from dataclasses import dataclass, field
from datetime import timedelta

from commerce_bot.chatbot.validators import split_list_terms
from commerce_bot.core.constants import (
    EXACT_SEARCH_LIMIT,
    EXACT_SEARCH_MIN_STOCK,
    LIST_SEARCH_LIMIT,
    LIST_SEARCH_MIN_STOCK,
    MIN_SEARCH_TOKEN_LENGTH,
    RECENT_SEARCH_DAYS,
    SUGGESTION_LIMIT,
    WORD_SEARCH_LIMIT,
    WORD_SEARCH_MIN_STOCK,
)
from commerce_bot.models.search_history import SearchHistory
from commerce_bot.services.collaborators import (
    SEARCH_ALL_TOKENS,
    SEARCH_ANY_TERMS,
    SEARCH_SUBSTRING,
    SearchPredicate,
)
from commerce_bot.utils.clock import utcnow
from commerce_bot.utils.text import escape_like, normalize_message

logger = logging.getLogger(__name__)

STRATEGY_EXACT = "exact"
STRATEGY_WORDS = "words"


@dataclass
class SearchOutcome:
    term: str
    normalized_term: str
    products: list = field(default_factory=list)
    strategy: str | None = None
    suggestions: list = field(default_factory=list)


@dataclass
class ListSearchOutcome:
    terms: list
    products: list
    stats: dict


class ProductSearchEngine:
    """
    Catalog search with an ordered strategy chain.

    ``exact`` looks for the whole normalized term inside product names; if that
    finds nothing ``words`` requires every token longer than two characters.
    Every call to ``search`` leaves a ``SearchHistory`` row behind.
    """

    def __init__(self, db, catalog):
        self.db = db
        self.catalog = catalog

    def strategies(self, normalized):
        yield STRATEGY_EXACT, SearchPredicate(
            mode=SEARCH_SUBSTRING,
            terms=(normalized,),
            min_stock=EXACT_SEARCH_MIN_STOCK,
            limit=EXACT_SEARCH_LIMIT,
        )
        tokens = tuple(t for t in normalized.split(" ") if len(t) >= MIN_SEARCH_TOKEN_LENGTH)
        if tokens:
            yield STRATEGY_WORDS, SearchPredicate(
                mode=SEARCH_ALL_TOKENS,
                terms=tokens,
                min_stock=WORD_SEARCH_MIN_STOCK,
                limit=WORD_SEARCH_LIMIT,
            )

    def search(self, term, session) -> SearchOutcome:
        normalized = normalize_message(term)
        outcome = SearchOutcome(term=term, normalized_term=normalized)

        if normalized:
            for name, predicate in self.strategies(normalized):
                products = self.catalog.search(predicate)
                if products:
                    outcome.products, outcome.strategy = products, name
                    break

        if not outcome.products:
            outcome.suggestions = self.suggestions(session.phone, normalized)
        self.record(session, term, normalized, len(outcome.products))

        logger.info(
            "Search %r for %s: %d results (%s)",
            normalized, session.phone, len(outcome.products), outcome.strategy or "none",
        )
        return outcome

    def search_list(self, text, session) -> ListSearchOutcome:
        terms = split_list_terms(text)
        products = []
        if terms:
            products = self.catalog.search(SearchPredicate(
                mode=SEARCH_ANY_TERMS,
                terms=tuple(terms),
                min_stock=LIST_SEARCH_MIN_STOCK,
                limit=LIST_SEARCH_LIMIT,
            ))

        stats = {
            "terms_searched": len(terms),
            "products_found": len(products),
            "average_per_term": round(len(products) / len(terms), 2) if terms else 0,
        }
        logger.info("List search for %s: %d terms, %d products", session.phone, len(terms), len(products))
        return ListSearchOutcome(terms=terms, products=products, stats=stats)

    def record(self, session, term, normalized, results_count):
        self.db.add(SearchHistory(
            phone=session.phone,
            session_id=session.id,
            search_term=normalized,
            original_term=term,
            results_count=results_count,
            has_results=results_count > 0,
            context=session.context.value if session.context else None,
            created_at=utcnow(),
        ))
        self.db.flush()

    def suggestions(self, phone, normalized, limit=SUGGESTION_LIMIT):
        first_token = normalized.split(" ")[0] if normalized else ""
        if not first_token:
            return []

        rows = (
            self.db.query(SearchHistory.search_term, SearchHistory.original_term)
            .filter(
                SearchHistory.phone == phone,
                SearchHistory.has_results.is_(True),
                SearchHistory.search_term.like(f"%{escape_like(first_token)}%", escape="/"),
            )
            .order_by(SearchHistory.created_at.desc(), SearchHistory.id.desc())
            .limit(limit * 5)
            .all()
        )

        # matched on the folded term, shown as the customer typed it
        seen, suggestions = {normalized}, []
        for term, original in rows:
            if term in seen:
                continue
            seen.add(term)
            suggestions.append(original or term)
            if len(suggestions) == limit:
                break
        return suggestions

    def recent_searches(self, phone, limit=1, days=RECENT_SEARCH_DAYS):
        since = utcnow() - timedelta(days=days)
        rows = (
            self.db.query(SearchHistory.original_term)
            .filter(
                SearchHistory.phone == phone,
                SearchHistory.has_results.is_(True),
                SearchHistory.created_at >= since,
            )
            .order_by(SearchHistory.created_at.desc(), SearchHistory.id.desc())
            .limit(limit)
            .all()
        )
        return [term for (term,) in rows]
