import logging

from sqlalchemy.exc import SQLAlchemyError

from commerce_bot.chatbot import replies
from commerce_bot.chatbot.cart import CartEngine
from commerce_bot.chatbot.checkout import CheckoutStateMachine
from commerce_bot.chatbot.intents import Intent, RuleBasedIntentClassifier
from commerce_bot.chatbot.search import ProductSearchEngine
from commerce_bot.chatbot.sessions import SessionStore, sender_locks
from commerce_bot.chatbot.states import CHECKOUT_CONTEXTS, DialogueContext
from commerce_bot.chatbot.validators import (
    identification_digits,
    is_cancel,
    looks_like_list,
    valid_full_name,
)
from commerce_bot.core.constants import LIST_DISPLAY_LIMIT
from commerce_bot.core.errors import CollaboratorError, ValidationError, new_error_id
from commerce_bot.utils.clock import store_hour
from commerce_bot.utils.text import normalize_message, normalize_sender

logger = logging.getLogger(__name__)

C = DialogueContext

# Contexts where a delimited message is read as a shopping list
LIST_CONTEXTS = (C.PRODUCT_SEARCH, C.ORDER_START)


class DialogueRouter:
    """
    Runs one inbound message through the session's dialogue state.

    Context-locked turns (registration, checkout, shopping lists) are consumed
    by their sub-flow before any intent classification happens.
    """

    def __init__(self, db, catalog, identity, orders, banks, classifier=None):
        self.db = db
        self.catalog = catalog
        self.identity = identity
        self.sessions = SessionStore(db)
        self.search = ProductSearchEngine(db, catalog)
        self.cart = CartEngine(db)
        self.checkout = CheckoutStateMachine(db, self.cart, orders, banks, identity)
        self.classifier = classifier or RuleBasedIntentClassifier()

    def handle(self, sender, text, channel_id=None) -> str:
        phone = normalize_sender(sender)
        text = (text or "").strip()

        with sender_locks.hold(phone):
            try:
                session = self.sessions.resolve(phone, channel_id)
            except SQLAlchemyError:
                return self._fail(phone, "session store unavailable")

            try:
                reply = self.dispatch(session, text)
            except CollaboratorError as exc:
                logger.error("Turn for %s failed on a collaborator [%s]: %s", phone, exc.error_id, exc)
                try:
                    self.db.rollback()
                    session = self.sessions.resolve(phone, channel_id)
                except SQLAlchemyError:
                    return self._fail(phone, "session reload failed")
                reply = replies.technical_error(exc.error_id)
            except SQLAlchemyError:
                return self._fail(phone, "store error during turn")
            except Exception:
                return self._fail(phone, "unexpected error during turn")

            try:
                session.record_turn(text, reply)
                self.sessions.append_transcript(session, text, reply)
                self.sessions.persist(session)
            except SQLAlchemyError:
                return self._fail(phone, "could not persist turn")

        return reply

    def _fail(self, phone, what):
        error_id = new_error_id()
        logger.exception("%s for %s [%s]", what, phone, error_id)
        self.db.rollback()
        return replies.apology(error_id)

    # ---------- dispatch ----------

    def dispatch(self, session, text):
        message = normalize_message(text)
        context = session.context

        if context == C.INITIAL:
            return self.first_contact(session, message)
        if context in CHECKOUT_CONTEXTS:
            return self.checkout.handle(session, text)
        if context == C.NEW_CLIENT_REGISTRATION:
            return self.register_client(session, text)
        if context in LIST_CONTEXTS and looks_like_list(text):
            return self.search_list(session, text)

        intent = self.classifier.classify(message)
        logger.debug("Intent for %s: %s (%.2f)", session.phone, intent.type.value, intent.confidence)

        if intent.type == Intent.PRODUCT_SEARCH:
            term = intent.entities.get("search_term")
            if not term:
                session.context = C.PRODUCT_SEARCH
                return replies.search_prompt()
            return self.run_search(session, term)

        if intent.type == Intent.MENU_OPTION:
            return self.menu_option(session, intent.entities.get("option"))

        if intent.type == Intent.CART_ACTION:
            return self.cart_action(session, intent.entities["action"], intent.entities.get("product_index"))

        if intent.type == Intent.IDENTIFICATION:
            return self.identify(session, intent.entities["identification"])

        if intent.type == Intent.GREETING:
            return replies.greeting(session.client_name if session.is_authenticated else None)

        if intent.type == Intent.HELP:
            return replies.help_message(session.is_authenticated)

        if len(message) > 3:
            return self.run_search(session, text)
        return replies.not_understood()

    # ---------- identification ----------

    def first_contact(self, session, message):
        identity = self.identity.find_by_phone(session.phone)
        if identity is not None:
            self.authenticate(session, identity)
            session.client_info = identity.credit_terms()
            session.context = C.MENU
            recent = self.search.recent_searches(session.phone, limit=1)
            return replies.welcome_back(
                identity.name,
                store_hour(),
                cart_lines=len(self.cart.items(session.phone)),
                recent_search=recent[0] if recent else None,
            )

        session.is_new_client = True
        session.is_authenticated = False
        session.context = C.NEW_CLIENT
        logger.info("New client detected: %s", session.phone)

        intent = self.classifier.classify(message)
        if intent.type == Intent.IDENTIFICATION:
            return self.identify(session, intent.entities["identification"])
        return replies.new_client_welcome(store_hour())

    def authenticate(self, session, identity):
        session.client_id = identity.code
        session.client_name = identity.name
        session.identification_number = identity.rif or identity.code
        session.is_authenticated = True
        logger.info("Authenticated %s as client %s", session.phone, identity.code)

    def identify(self, session, identification):
        identity = self.identity.find_by_identification(identification)
        if identity is not None:
            self.authenticate(session, identity)
            session.is_new_client = False
            session.context = C.MENU
            return replies.identified(identity.name)

        digits = identification_digits(identification)
        session.identification_number = digits
        session.is_new_client = True
        session.context = C.NEW_CLIENT_REGISTRATION
        return replies.ask_full_name(digits)

    def register_client(self, session, text):
        if is_cancel(text):
            session.identification_number = None
            session.context = C.NEW_CLIENT
            return replies.registration_cancelled()

        try:
            full_name = valid_full_name(text)
        except ValidationError:
            return replies.invalid_full_name()

        if not session.identification_number:
            session.context = C.NEW_CLIENT
            return replies.identification_required()

        identity = self.identity.register(session.identification_number, full_name, session.phone)
        self.authenticate(session, identity)
        session.context = C.MENU
        return replies.registration_complete(identity.name)

    # ---------- menu ----------

    def menu_option(self, session, option):
        if not session.is_authenticated:
            return replies.identification_required()

        if option == "1":
            session.context = C.PRODUCT_SEARCH
            return replies.search_prompt()
        if option == "2":
            identity = self.identity.find_by_code(session.client_id)
            if identity is None:
                return replies.account_not_found()
            return replies.account_statement(identity)
        if option == "3":
            return replies.invoice_history()
        if option == "4":
            session.context = C.ORDER_START
            return replies.order_start()
        return replies.invalid_menu_option()

    # ---------- search ----------

    def run_search(self, session, term):
        session.search_count = (session.search_count or 0) + 1

        # history keeps the context the search was made from
        outcome = self.search.search(term, session)
        session.context = C.PRODUCT_SEARCH
        session.last_results = [p.code for p in outcome.products]
        if not outcome.products:
            return replies.no_results(term, outcome.suggestions)
        return replies.search_results(term, outcome.products)

    def search_list(self, session, text):
        session.context = C.PRODUCT_SEARCH
        session.search_count = (session.search_count or 0) + 1

        outcome = self.search.search_list(text, session)
        session.last_results = [p.code for p in outcome.products[:LIST_DISPLAY_LIMIT]]
        if not outcome.products:
            return replies.list_no_results(outcome.terms)
        return replies.list_results(outcome)

    # ---------- cart ----------

    def cart_action(self, session, action, index):
        if any(word in action for word in ("agregar", "anadir", "quiero")):
            return self.add_to_cart(session, index)

        if any(word in action for word in ("vaciar", "limpiar")):
            session.context = C.CART
            return replies.cart_cleared(self.cart.clear(session.phone))

        if any(word in action for word in ("quitar", "eliminar", "remover")):
            return self.remove_from_cart(session, index)

        if any(word in action for word in ("proceder", "comprar", "finalizar")):
            return self.checkout.start(session)

        return self.show_cart(session)

    def add_to_cart(self, session, index):
        if index is None:
            return replies.ask_product_number()

        codes = session.last_results
        if not codes:
            return replies.search_first()
        if not 1 <= index <= len(codes):
            return replies.invalid_product_number(len(codes))

        product = self.catalog.get_product(codes[index - 1])
        if product is None:
            return replies.product_unavailable()

        item = self.cart.add(session, product, 1)
        session.context = C.CART
        return replies.added_to_cart(item, self.cart.total(session.phone))

    def remove_from_cart(self, session, index):
        items = self.cart.items(session.phone)
        session.context = C.CART
        if not items:
            return replies.empty_cart()
        if index is None:
            return replies.cart_view(items, self.cart.total(session.phone))
        if not 1 <= index <= len(items):
            return replies.invalid_product_number(len(items))

        item = items[index - 1]
        name = item.product_name
        self.cart.remove(session.phone, item.product_code)
        return replies.removed_from_cart(name)

    def show_cart(self, session):
        session.context = C.CART
        items = self.cart.items(session.phone)
        if not items:
            return replies.empty_cart()
        return replies.cart_view(items, self.cart.total(session.phone))


def handle_message(sender, text, db, gateway, channel_id=None):
    router = DialogueRouter(db, catalog=gateway, identity=gateway, orders=gateway, banks=gateway)
    return router.handle(sender, text, channel_id)
