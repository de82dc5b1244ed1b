"""
Narrow interfaces between the dialogue core and the systems around it.

The router only ever talks to these protocols. ``ValeryErpGateway`` implements
the store-facing ones and ``WhatsAppCloudNotifier`` implements ``Notifier``.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Protocol

SEARCH_SUBSTRING = "substring"
SEARCH_ALL_TOKENS = "all_tokens"
SEARCH_ANY_TERMS = "any_terms"


@dataclass(frozen=True)
class CatalogProduct:
    code: str
    name: str
    unit_price_usd: Decimal
    iva_percent: Decimal
    stock: Decimal
    exchange_rate: Decimal


@dataclass(frozen=True)
class SearchPredicate:
    """
    ``substring``: name contains ``terms[0]``.
    ``all_tokens``: name contains every term.
    ``any_terms``: name contains at least one term.
    Terms are already accent-folded and lower-cased.
    """

    mode: str
    terms: tuple
    min_stock: int
    limit: int


@dataclass
class CustomerIdentity:
    code: str
    name: str
    rif: str | None = None
    phone: str | None = None
    has_credit: bool = False
    credit_days: int = 0
    balance: Decimal = Decimal("0")
    last_purchase: datetime | None = None
    registered_at: datetime | None = None

    def credit_terms(self) -> dict:
        return {
            "has_credit": self.has_credit,
            "credit_days": self.credit_days,
            "balance": str(self.balance),
            "last_purchase": self.last_purchase.isoformat() if self.last_purchase else None,
            "registered_at": self.registered_at.isoformat() if self.registered_at else None,
        }


@dataclass(frozen=True)
class Bank:
    code: str
    name: str


@dataclass
class OrderLineDraft:
    product_code: str
    product_name: str
    quantity: int
    unit_price_usd: Decimal
    iva_percent: Decimal
    exchange_rate: Decimal


@dataclass
class PaymentInfo:
    method: int
    bank_code: str | None = None
    bank_name: str | None = None
    payer_phone: str | None = None
    payer_identification: str | None = None
    reference: str | None = None


@dataclass
class OrderDraft:
    client_code: str
    client_name: str
    rif: str
    phone: str
    currency_code: str
    payment: PaymentInfo
    lines: list[OrderLineDraft] = field(default_factory=list)
    notes: str = "Pedido vía WhatsApp"


@dataclass(frozen=True)
class OrderReceipt:
    order_id: int
    currency_code: str
    subtotal: Decimal
    iva: Decimal
    total: Decimal
    line_count: int


class CatalogLookup(Protocol):
    def search(self, predicate: SearchPredicate) -> list[CatalogProduct]: ...

    def get_product(self, code: str) -> CatalogProduct | None: ...


class IdentityLookup(Protocol):
    def find_by_phone(self, phone: str) -> CustomerIdentity | None: ...

    def find_by_identification(self, identification: str) -> CustomerIdentity | None: ...

    def find_by_code(self, code: str) -> CustomerIdentity | None: ...

    def register(self, identification: str, full_name: str, phone: str) -> CustomerIdentity: ...


class OrderSubmitter(Protocol):
    def submit(self, draft: OrderDraft) -> OrderReceipt: ...


class BankDirectory(Protocol):
    def list_banks(self) -> list[Bank]: ...


class Notifier(Protocol):
    def send_text(self, recipient: str, text: str) -> None: ...
