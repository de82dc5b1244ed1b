"""
Payment collection and order submission.

    checkout_payment_selection --1--> payment_bank_selection -> payment_phone_input
        -> payment_cedula_input -> payment_reference_input --> submit --> menu
    checkout_payment_selection --2..6--> submit --> menu

"cancelar" in any of these contexts drops the draft and returns to ``menu``
with the cart untouched. Invalid input re-prompts without touching the draft.
"""
import logging

from commerce_bot.chatbot import replies
from commerce_bot.chatbot.states import DialogueContext, PaymentMobileDraft
from commerce_bot.chatbot.validators import (
    is_cancel,
    valid_bank_code,
    valid_identification,
    valid_mobile_phone,
    valid_payment_method,
    valid_reference,
)
from commerce_bot.core.constants import (
    BOLIVAR_PAYMENT_METHODS,
    CURRENCY_BOLIVARES,
    CURRENCY_USD,
    PAYMENT_MOBILE,
)
from commerce_bot.core.errors import CollaboratorError, StateError, ValidationError
from commerce_bot.services.collaborators import OrderDraft, OrderLineDraft, PaymentInfo

logger = logging.getLogger(__name__)


def currency_for(method):
    return CURRENCY_BOLIVARES if method in BOLIVAR_PAYMENT_METHODS else CURRENCY_USD


class CheckoutStateMachine:
    def __init__(self, db, cart, orders, banks, identity):
        self.db = db
        self.cart = cart
        self.orders = orders
        self.banks = banks
        self.identity = identity
        self.steps = {
            DialogueContext.CHECKOUT_PAYMENT_SELECTION: self.select_method,
            DialogueContext.PAYMENT_BANK_SELECTION: self.select_bank,
            DialogueContext.PAYMENT_PHONE_INPUT: self.enter_phone,
            DialogueContext.PAYMENT_CEDULA_INPUT: self.enter_identification,
            DialogueContext.PAYMENT_REFERENCE_INPUT: self.enter_reference,
        }

    def start(self, session):
        if not session.is_authenticated:
            return replies.identification_required()

        totals = self.cart.total(session.phone)
        if totals.item_count == 0:
            return replies.empty_cart()

        session.clear_payment_draft()
        session.context = DialogueContext.CHECKOUT_PAYMENT_SELECTION
        return replies.payment_methods(totals)

    def handle(self, session, text):
        if is_cancel(text):
            return self.cancel(session)

        step = self.steps[session.context]
        try:
            return step(session, text.strip())
        except ValidationError as exc:
            logger.info("Checkout input rejected for %s at %s: %s", session.phone, session.context.value, exc.field)
            return replies.invalid_checkout_input(exc.field)
        except StateError as exc:
            logger.warning("Checkout for %s abandoned [%s]: %s", session.phone, exc.error_id, exc)
            session.clear_payment_draft()
            session.context = DialogueContext.MENU
            return replies.checkout_interrupted(exc.error_id)

    def cancel(self, session):
        session.clear_payment_draft()
        session.context = DialogueContext.MENU
        logger.info("Checkout cancelled by %s", session.phone)
        return replies.checkout_cancelled()

    def _draft(self, session):
        draft = session.payment_draft
        if draft is None:
            raise StateError("no payment draft in session")
        return draft

    # ---------- steps ----------

    def select_method(self, session, text):
        method = valid_payment_method(text)

        if method != PAYMENT_MOBILE:
            return self.submit(session, PaymentInfo(method=method))

        banks = self.banks.list_banks()
        if not banks:
            return replies.banks_unavailable()

        session.store_payment_draft(PaymentMobileDraft())
        session.context = DialogueContext.PAYMENT_BANK_SELECTION
        return replies.choose_bank(banks)

    def select_bank(self, session, text):
        code = valid_bank_code(text)
        draft = self._draft(session)

        bank = next((b for b in self.banks.list_banks() if b.code == code), None)
        if bank is None:
            raise ValidationError("bank", f"unknown bank {code}")

        draft.bank_code, draft.bank_name = bank.code, bank.name
        session.store_payment_draft(draft)
        session.context = DialogueContext.PAYMENT_PHONE_INPUT
        return replies.ask_payer_phone(bank.name)

    def enter_phone(self, session, text):
        phone = valid_mobile_phone(text)
        draft = self._draft(session)

        draft.phone = phone
        session.store_payment_draft(draft)
        session.context = DialogueContext.PAYMENT_CEDULA_INPUT
        return replies.ask_payer_identification(phone)

    def enter_identification(self, session, text):
        identification = valid_identification(text)
        draft = self._draft(session)

        customer = self.identity.find_by_identification(identification)
        draft.identification = identification
        draft.payer_verified = customer is not None
        session.store_payment_draft(draft)
        session.context = DialogueContext.PAYMENT_REFERENCE_INPUT
        return replies.ask_reference(identification, draft.payer_verified)

    def enter_reference(self, session, text):
        reference = valid_reference(text)
        draft = self._draft(session)

        missing = draft.missing()
        if missing:
            raise StateError(f"payment draft incomplete: {', '.join(missing)}")

        draft.reference = reference
        session.store_payment_draft(draft)
        return self.submit(session, PaymentInfo(
            method=PAYMENT_MOBILE,
            bank_code=draft.bank_code,
            bank_name=draft.bank_name,
            payer_phone=draft.phone,
            payer_identification=draft.identification,
            reference=reference,
        ))

    # ---------- submission ----------

    def build_order(self, session, payment, items):
        return OrderDraft(
            client_code=session.client_id,
            client_name=session.client_name,
            rif=session.identification_number or session.client_id,
            phone=session.phone,
            currency_code=currency_for(payment.method),
            payment=payment,
            lines=[
                OrderLineDraft(
                    product_code=item.product_code,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price_usd=item.unit_price_usd,
                    iva_percent=item.iva_tax,
                    exchange_rate=item.exchange_rate,
                )
                for item in items
            ],
        )

    def submit(self, session, payment):
        items = self.cart.items(session.phone)
        if not items:
            session.clear_payment_draft()
            session.context = DialogueContext.MENU
            return replies.empty_cart()

        order = self.build_order(session, payment, items)
        try:
            receipt = self.orders.submit(order)
        except CollaboratorError as exc:
            logger.error("Order for %s failed [%s]: %s", session.phone, exc.error_id, exc)
            session.clear_payment_draft()
            session.context = DialogueContext.MENU
            return replies.order_failed(exc.error_id)

        self.cart.clear(session.phone)
        session.clear_payment_draft()
        session.context = DialogueContext.MENU
        logger.info("Order %s placed by %s (method %d)", receipt.order_id, session.phone, payment.method)
        return replies.order_created(receipt, payment.method)
