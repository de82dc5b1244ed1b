from dataclasses import dataclass, asdict, fields
from enum import Enum

from commerce_bot.core.errors import InvalidTransition


class DialogueContext(str, Enum):
    INITIAL = "initial"
    MENU = "menu"
    NEW_CLIENT = "new_client"
    NEW_CLIENT_REGISTRATION = "new_client_registration"
    PRODUCT_SEARCH = "product_search"
    ORDER_START = "order_start"
    CART = "cart"
    CHECKOUT_PAYMENT_SELECTION = "checkout_payment_selection"
    PAYMENT_BANK_SELECTION = "payment_bank_selection"
    PAYMENT_PHONE_INPUT = "payment_phone_input"
    PAYMENT_CEDULA_INPUT = "payment_cedula_input"
    PAYMENT_REFERENCE_INPUT = "payment_reference_input"


C = DialogueContext

PAYMENT_CONTEXTS = frozenset({
    C.PAYMENT_BANK_SELECTION,
    C.PAYMENT_PHONE_INPUT,
    C.PAYMENT_CEDULA_INPUT,
    C.PAYMENT_REFERENCE_INPUT,
})

CHECKOUT_CONTEXTS = PAYMENT_CONTEXTS | {C.CHECKOUT_PAYMENT_SELECTION}

# The raw message belongs to the active sub-flow, whatever its intent
LOCKED_CONTEXTS = CHECKOUT_CONTEXTS | {C.NEW_CLIENT_REGISTRATION}

# Contexts a user can move between freely from the main conversation
FREE_CONTEXTS = frozenset({C.MENU, C.NEW_CLIENT, C.PRODUCT_SEARCH, C.ORDER_START, C.CART})

TRANSITIONS = {
    C.INITIAL: frozenset({C.MENU, C.NEW_CLIENT}),
    C.NEW_CLIENT_REGISTRATION: frozenset({C.MENU, C.NEW_CLIENT}),
    C.CHECKOUT_PAYMENT_SELECTION: frozenset({C.MENU, C.PAYMENT_BANK_SELECTION}),
    C.PAYMENT_BANK_SELECTION: frozenset({C.MENU, C.PAYMENT_PHONE_INPUT}),
    C.PAYMENT_PHONE_INPUT: frozenset({C.MENU, C.PAYMENT_CEDULA_INPUT}),
    C.PAYMENT_CEDULA_INPUT: frozenset({C.MENU, C.PAYMENT_REFERENCE_INPUT}),
    C.PAYMENT_REFERENCE_INPUT: frozenset({C.MENU}),
}
for _context in FREE_CONTEXTS:
    TRANSITIONS[_context] = FREE_CONTEXTS | {C.NEW_CLIENT_REGISTRATION, C.CHECKOUT_PAYMENT_SELECTION}


def can_transition(source, target) -> bool:
    if source is None or source == target:
        return True
    return DialogueContext(target) in TRANSITIONS.get(DialogueContext(source), frozenset())


def check_transition(source, target):
    if not can_transition(source, target):
        raise InvalidTransition(source, target)
    return DialogueContext(target)


@dataclass
class PaymentMobileDraft:
    """Pago Móvil details collected one step at a time."""

    bank_code: str | None = None
    bank_name: str | None = None
    phone: str | None = None
    identification: str | None = None
    payer_verified: bool = False
    reference: str | None = None

    def missing(self) -> list[str]:
        return [name for name in ("bank_code", "phone", "identification") if not getattr(self, name)]

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict | None) -> "PaymentMobileDraft":
        raw = raw or {}
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in raw.items() if k in known})
