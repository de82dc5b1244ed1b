import logging
from dataclasses import dataclass
from decimal import Decimal

from commerce_bot.core.constants import CART_STATUS_ACTIVE, CART_STATUS_CLEARED
from commerce_bot.core.errors import NotFoundError, ValidationError
from commerce_bot.models.cart_item import CartItem
from commerce_bot.utils.clock import utcnow
from commerce_bot.utils.formatting import round_money, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartTotals:
    total_usd: Decimal
    total_bs: Decimal
    item_count: int


class CartEngine:
    def __init__(self, db):
        self.db = db

    def _active(self, phone):
        return self.db.query(CartItem).filter(
            CartItem.phone == phone,
            CartItem.status == CART_STATUS_ACTIVE,
        )

    def _line(self, phone, product_code):
        return self._active(phone).filter(CartItem.product_code == product_code).first()

    def items(self, phone):
        return self._active(phone).order_by(CartItem.created_at, CartItem.id).all()

    def add(self, session, product, quantity=1) -> CartItem:
        if quantity < 1:
            raise ValidationError("quantity")

        item = self._line(session.phone, product.code)
        if item is not None:
            item.quantity += quantity
        else:
            item = CartItem(
                phone=session.phone,
                session_id=session.id,
                product_code=product.code,
                product_name=product.name,
                unit_price_usd=to_decimal(product.unit_price_usd),
                iva_tax=to_decimal(product.iva_percent),
                quantity=quantity,
                exchange_rate=to_decimal(product.exchange_rate),
                status=CART_STATUS_ACTIVE,
                data={},
                created_at=utcnow(),
            )
            self.db.add(item)

        self.db.flush()
        logger.info("Cart %s: %s x%d", session.phone, product.code, item.quantity)
        return item

    def set_quantity(self, phone, product_code, quantity):
        item = self._line(phone, product_code)
        if item is None:
            raise NotFoundError(f"{product_code} is not in the cart")

        if quantity <= 0:
            self.db.delete(item)
            self.db.flush()
            return None

        item.quantity = quantity
        self.db.flush()
        return item

    def remove(self, phone, product_code) -> bool:
        item = self._line(phone, product_code)
        if item is None:
            return False
        self.db.delete(item)
        self.db.flush()
        return True

    def clear(self, phone) -> int:
        count = self._active(phone).update(
            {CartItem.status: CART_STATUS_CLEARED, CartItem.updated_at: utcnow()},
            synchronize_session="fetch",
        )
        logger.info("Cart %s cleared (%d lines)", phone, count)
        return count

    def total(self, phone) -> CartTotals:
        total_usd = Decimal("0")
        total_bs = Decimal("0")
        item_count = 0

        for item in self._active(phone).all():
            subtotal = to_decimal(item.unit_price_usd) * item.quantity
            with_iva = subtotal * (1 + to_decimal(item.iva_tax) / 100)
            total_usd += with_iva
            total_bs += with_iva * to_decimal(item.exchange_rate)
            item_count += item.quantity

        return CartTotals(
            total_usd=round_money(total_usd),
            total_bs=round_money(total_bs),
            item_count=item_count,
        )
