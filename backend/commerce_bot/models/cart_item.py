from sqlalchemy import Column, Integer, String, Numeric, DateTime, JSON, ForeignKey
from sqlalchemy.ext.mutable import MutableDict

from commerce_bot.core.constants import CART_STATUS_ACTIVE
from commerce_bot.database.base import Base
from commerce_bot.utils.clock import utcnow


class CartItem(Base):
    __tablename__ = "shopping_carts"

    id = Column(Integer, primary_key=True)
    phone = Column(String(20), index=True, nullable=False)
    session_id = Column(Integer, ForeignKey("chat_sessions.id"), nullable=True)

    product_code = Column(String(50), nullable=False)
    product_name = Column(String(255), nullable=False)
    unit_price_usd = Column(Numeric(14, 4), nullable=False)
    iva_tax = Column(Numeric(6, 2), default=0, nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    # USD -> Bs factor captured when the line was created
    exchange_rate = Column(Numeric(14, 4), default=1, nullable=False)
    status = Column(String(20), default=CART_STATUS_ACTIVE, index=True, nullable=False)
    data = Column(MutableDict.as_mutable(JSON), default=dict)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
