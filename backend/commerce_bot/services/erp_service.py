import logging
import threading
from functools import lru_cache
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from datetime import date
from decimal import Decimal

from sqlalchemy import and_, or_, case, func, select
from sqlalchemy.exc import SQLAlchemyError

from commerce_bot.core.config import settings
from commerce_bot.core.constants import (
    ACTIVE_PRODUCT_STATUSES,
    CURRENCY_BOLIVARES,
    CURRENCY_NAMES,
    CURRENCY_USD,
    ORDER_LINE_DELIVERY,
    ORDER_LINE_STATUS_TEXT,
    ORDER_SELLER_CODE,
    ORDER_SELLER_NAME,
    ORDER_STATUS,
    ORDER_USER_CODE,
    ORDER_WAREHOUSE_CODE,
)
from commerce_bot.core.errors import CollaboratorError
from commerce_bot.database.functions import fold
from commerce_bot.models.erp import Bank, Client, Currency, OrderHeader, OrderLine, Payment, Product
from commerce_bot.services.collaborators import (
    SEARCH_ALL_TOKENS,
    SEARCH_ANY_TERMS,
    SEARCH_SUBSTRING,
    Bank as BankRecord,
    CatalogProduct,
    CustomerIdentity,
    OrderDraft,
    OrderReceipt,
    SearchPredicate,
)
from commerce_bot.utils.clock import utcnow
from commerce_bot.utils.formatting import round_money, to_decimal
from commerce_bot.utils.text import escape_like, only_digits

logger = logging.getLogger(__name__)

RATE_PRECISION = Decimal("0.0001")
ID_PREFIXES = ("V", "E", "J", "P")

_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="erp")


def _contains(column, term):
    return column.like(f"%{escape_like(term)}%", escape="/")


class WriteGuard:
    """
    Decides, once, whether a write commits or is abandoned.

    The worker calls ``claim_commit`` right before leaving its transaction and
    rolls back when it loses; the caller calls ``abandon`` when it stops
    waiting and keeps waiting when it loses.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.committing = False
        self.abandoned = False

    def claim_commit(self) -> bool:
        with self._lock:
            if not self.abandoned:
                self.committing = True
            return self.committing

    def abandon(self) -> bool:
        with self._lock:
            if not self.committing:
                self.abandoned = True
            return self.abandoned


class ValeryErpGateway:
    """
    Catalog, customer, bank and order access against the Valery ERP database.

    Every call runs on a worker thread and is abandoned after ``timeout``
    seconds; timeouts and database errors surface as ``CollaboratorError``.
    Writes carry a ``WriteGuard`` so an abandoned write rolls back instead of
    committing behind the caller's back.
    """

    def __init__(self, session_factory=None, timeout=None, executor=None):
        if session_factory is None:
            from commerce_bot.database.session import ErpSessionLocal
            session_factory = ErpSessionLocal
        self.session_factory = session_factory
        self.timeout = settings.collaborator_timeout_seconds if timeout is None else timeout
        self.executor = executor or _executor

    def _call(self, label, fn, *args, guard=None):
        if guard is not None:
            args = (*args, guard)
        future = self.executor.submit(fn, *args)
        try:
            return self._result(label, future, self.timeout)
        except FuturesTimeout:
            if guard is not None and not guard.abandon():
                logger.warning("ERP %s is committing past %.1fs, waiting for it", label, self.timeout)
                return self._result(label, future, None)
            future.cancel()
            error = CollaboratorError(f"{label} timed out")
            logger.error("ERP %s timed out after %.1fs [%s]", label, self.timeout, error.error_id)
            raise error

    @staticmethod
    def _result(label, future, timeout):
        try:
            return future.result(timeout=timeout)
        except SQLAlchemyError as exc:
            error = CollaboratorError(f"{label} failed")
            logger.exception("ERP %s failed [%s]", label, error.error_id)
            raise error from exc

    # ---------- catalog ----------

    def search(self, predicate: SearchPredicate) -> list[CatalogProduct]:
        return self._call("catalog search", self._search, predicate)

    def get_product(self, code: str) -> CatalogProduct | None:
        return self._call("product lookup", self._get_product, code)

    def _rate_subquery(self):
        return (
            select(Currency.exchange_rate)
            .where(Currency.code == CURRENCY_USD)
            .limit(1)
            .scalar_subquery()
        )

    def _search(self, predicate: SearchPredicate):
        name = fold(Product.name)
        with self.session_factory() as db:
            query = db.query(Product, self._rate_subquery().label("rate")).filter(
                Product.status.in_(ACTIVE_PRODUCT_STATUSES),
                Product.stock >= predicate.min_stock,
            )

            if predicate.mode == SEARCH_SUBSTRING:
                term = predicate.terms[0]
                query = query.filter(_contains(name, term)).order_by(
                    case((name.like(f"{escape_like(term)}%", escape="/"), 0), else_=1),
                    Product.stock.desc(),
                    func.length(Product.name),
                    Product.name,
                )
            elif predicate.mode == SEARCH_ALL_TOKENS:
                query = query.filter(and_(*[_contains(name, t) for t in predicate.terms])).order_by(
                    Product.stock.desc(),
                    Product.name,
                )
            elif predicate.mode == SEARCH_ANY_TERMS:
                query = query.filter(or_(*[_contains(name, t) for t in predicate.terms])).order_by(
                    Product.stock.desc(),
                    func.length(Product.name),
                    Product.name,
                )
            else:
                raise ValueError(f"unknown search mode {predicate.mode!r}")

            rows = query.limit(predicate.limit).all()
            return [self._to_product(product, rate) for product, rate in rows]

    def _get_product(self, code: str):
        with self.session_factory() as db:
            row = (
                db.query(Product, self._rate_subquery().label("rate"))
                .filter(Product.code == code)
                .first()
            )
            if row is None:
                return None
            return self._to_product(*row)

    @staticmethod
    def _to_product(product: Product, rate) -> CatalogProduct:
        return CatalogProduct(
            code=product.code,
            name=product.name,
            unit_price_usd=to_decimal(product.unit_price_usd),
            iva_percent=to_decimal(product.iva_percent),
            stock=to_decimal(product.stock),
            exchange_rate=to_decimal(rate) or Decimal("1"),
        )

    # ---------- customers ----------

    def find_by_phone(self, phone: str) -> CustomerIdentity | None:
        return self._call("customer lookup by phone", self._find_by_phone, phone)

    def find_by_identification(self, identification: str) -> CustomerIdentity | None:
        return self._call("customer lookup by id", self._find_by_identification, identification)

    def find_by_code(self, code: str) -> CustomerIdentity | None:
        return self._call("customer lookup by code", self._find_by_code, code)

    def register(self, identification: str, full_name: str, phone: str) -> CustomerIdentity:
        return self._call(
            "customer registration", self._register, identification, full_name, phone, guard=WriteGuard(),
        )

    def _find_by_phone(self, phone: str):
        with self.session_factory() as db:
            client = (
                db.query(Client)
                .filter(or_(Client.phone1 == phone, Client.phone2 == phone))
                .order_by(Client.last_sale_at.desc().nulls_last())
                .first()
            )
            return self._to_identity(client) if client else None

    def _find_by_identification(self, identification: str):
        digits = only_digits(identification)
        candidates = {digits} | {prefix + digits for prefix in ID_PREFIXES}
        with self.session_factory() as db:
            client = db.query(Client).filter(Client.rif.in_(candidates)).first()
            return self._to_identity(client) if client else None

    def _find_by_code(self, code: str):
        with self.session_factory() as db:
            client = db.query(Client).filter(Client.code == code).first()
            return self._to_identity(client) if client else None

    def _register(self, identification: str, full_name: str, phone: str, guard=None):
        digits = only_digits(identification)
        prefix = identification[:1].upper()
        rif = f"{prefix}{digits}" if prefix in ID_PREFIXES else f"V{digits}"

        with self.session_factory.begin() as db:
            next_id = db.query(func.coalesce(func.max(Client.id), 0)).scalar() + 1
            client = Client(
                id=next_id,
                code=digits,
                name=full_name.upper(),
                rif=rif,
                phone1=phone,
                has_credit=0,
                credit_days=0,
                balance=Decimal("0"),
                created_at=utcnow(),
                status="1",
            )
            db.add(client)
            db.flush()
            identity = self._to_identity(client)
            self._claim_commit(guard, f"registration of {digits}")

        logger.info("Registered ERP client %s (%s)", identity.code, identity.name)
        return identity

    @staticmethod
    def _to_identity(client: Client) -> CustomerIdentity:
        return CustomerIdentity(
            code=client.code,
            name=client.name,
            rif=client.rif,
            phone=client.phone1 or client.phone2,
            has_credit=bool(client.has_credit),
            credit_days=client.credit_days or 0,
            balance=to_decimal(client.balance),
            last_purchase=client.last_sale_at,
            registered_at=client.created_at,
        )

    # ---------- banks ----------

    def list_banks(self) -> list[BankRecord]:
        return self._call("bank list", self._list_banks)

    def _list_banks(self):
        with self.session_factory() as db:
            banks = db.query(Bank).filter(Bank.status == "SI").order_by(Bank.name).all()
            return [BankRecord(code=b.code, name=b.name) for b in banks]

    # ---------- orders ----------

    def submit(self, draft: OrderDraft) -> OrderReceipt:
        return self._call("order submission", self._submit, draft, guard=WriteGuard())

    @staticmethod
    def _claim_commit(guard, what):
        # raising inside session.begin() rolls the transaction back
        if guard is not None and not guard.claim_commit():
            logger.warning("ERP %s rolled back: caller stopped waiting", what)
            raise CollaboratorError(f"{what} abandoned")

    def _submit(self, draft: OrderDraft, guard=None):
        in_bolivares = draft.currency_code == CURRENCY_BOLIVARES

        subtotal_usd = iva_usd = Decimal("0")
        subtotal_bs = iva_bs = Decimal("0")
        for line in draft.lines:
            line_subtotal = to_decimal(line.unit_price_usd) * line.quantity
            line_iva = line_subtotal * to_decimal(line.iva_percent) / 100
            rate = to_decimal(line.exchange_rate)
            subtotal_usd += line_subtotal
            iva_usd += line_iva
            subtotal_bs += line_subtotal * rate
            iva_bs += line_iva * rate

        now = utcnow()
        with self.session_factory.begin() as db:
            usd = db.query(Currency).filter(Currency.code == CURRENCY_USD).first()
            usd_rate = to_decimal(usd.exchange_rate) if usd else Decimal("1")

            if in_bolivares:
                subtotal, iva = round_money(subtotal_bs), round_money(iva_bs)
                total_usd = subtotal_usd + iva_usd
                rate = ((subtotal_bs + iva_bs) / total_usd).quantize(RATE_PRECISION) if total_usd else usd_rate
            else:
                subtotal, iva = round_money(subtotal_usd), round_money(iva_usd)
                rate = usd_rate
            total = subtotal + iva

            header = OrderHeader(
                client_code=draft.client_code,
                client_name=draft.client_name,
                rif=draft.rif,
                phones=draft.phone,
                seller_code=ORDER_SELLER_CODE,
                seller_name=ORDER_SELLER_NAME,
                currency_code=draft.currency_code,
                currency_name=CURRENCY_NAMES[draft.currency_code],
                warehouse_code=ORDER_WAREHOUSE_CODE,
                user_code=ORDER_USER_CODE,
                exchange_rate=rate,
                subtotal=subtotal,
                iva=iva,
                total=total,
                is_exempt=False,
                issued_on=now.date(),
                issued_at=now.time().replace(microsecond=0),
                status=ORDER_STATUS,
                notes=draft.notes,
            )
            db.add(header)
            db.flush()

            for line in draft.lines:
                db.add(OrderLine(
                    header_id=header.id,
                    product_code=line.product_code,
                    name=line.product_name,
                    description=line.product_name,
                    quantity=line.quantity,
                    price=to_decimal(line.unit_price_usd),
                    iva=to_decimal(line.iva_percent),
                    total_price=round_money(to_decimal(line.unit_price_usd) * line.quantity),
                    status=ORDER_STATUS,
                    status_text=ORDER_LINE_STATUS_TEXT,
                    delivery_time=ORDER_LINE_DELIVERY,
                ))

            payment = draft.payment
            db.add(Payment(
                header_id=header.id,
                method=payment.method,
                amount=total,
                bank_code=payment.bank_code,
                bank_name=payment.bank_name,
                payer_phone=payment.payer_phone,
                payer_identification=payment.payer_identification,
                reference=payment.reference,
                paid_on=date.today(),
            ))
            db.flush()

            receipt = OrderReceipt(
                order_id=header.id,
                currency_code=draft.currency_code,
                subtotal=subtotal,
                iva=iva,
                total=total,
                line_count=len(draft.lines),
            )
            self._claim_commit(guard, f"order for client {draft.client_code}")

        logger.info(
            "ERP order %s created for client %s: %s %s (%d lines)",
            receipt.order_id, draft.client_code, receipt.total, draft.currency_code, receipt.line_count,
        )
        return receipt


@lru_cache
def get_erp_gateway() -> ValeryErpGateway:
    return ValeryErpGateway()
