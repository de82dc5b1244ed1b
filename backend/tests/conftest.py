"""
Test configuration for the commerce bot.

Both stores run on in-memory SQLite. The ERP store is seeded with a small
catalog, one known customer and a bank list.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ERP_DATABASE_URL"] = "sqlite://"
os.environ["CREATE_TABLES_ON_STARTUP"] = "false"
os.environ["WHATSAPP_WEBHOOK_VERIFY_TOKEN"] = "test-verify-token"
os.environ["WHATSAPP_ACCESS_TOKEN"] = "test-access-token"
os.environ["WHATSAPP_PHONE_NUMBER_ID"] = "100200300"

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from commerce_bot.database import functions  # noqa: F401
from commerce_bot.database.base import Base, ErpBase
from commerce_bot.models import cart_item, chat_message, chat_session, search_history  # noqa: F401
from commerce_bot.models.erp import Bank, Client, Currency, Product
from commerce_bot.services.erp_service import ValeryErpGateway
from tests.helpers import KNOWN_PHONE, make_router

PRODUCTS = [
    # code, name, price, iva, stock, status
    ("P001", "Arroz Mary 1kg", "1.20", "0", 50, "A"),
    ("P002", "Harina PAN 1kg", "1.50", "0", 40, "A"),
    ("P003", "Aceite Diana 1 litro", "3.80", "16", 12, "1"),
    ("P004", "Azúcar Montalbán 1kg", "1.10", "0", 30, "A"),
    ("P005", "Pasta Primor Larga 500g", "0.95", "16", 1, "A"),
    ("P006", "Café Fama de América 250g", "2.50", "16", 0, "A"),
    ("P007", "Arroz Primor Integral", "1.60", "0", 5, "I"),
    ("P008", "Leche Completa en Polvo Nido", "10.00", "16", 8, "A"),
    ("P009", "Galletas de Harina Maria", "0.80", "16", 60, "A"),
]


def memory_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


def seed_erp(db):
    db.add_all([
        Currency(code="01", name="BOLIVARES", exchange_rate=Decimal("1")),
        Currency(code="02", name="DOLARES", exchange_rate=Decimal("36.5")),
    ])
    for code, name, price, iva, stock, status in PRODUCTS:
        db.add(Product(
            code=code,
            name=name,
            unit_price_usd=Decimal(price),
            iva_percent=Decimal(iva),
            stock=Decimal(stock),
            status=status,
        ))
    db.add(Client(
        id=1,
        code="11111111",
        name="MARIA GONZALEZ",
        rif="V11111111",
        phone1=KNOWN_PHONE,
        phone2="",
        has_credit=1,
        credit_days=15,
        balance=Decimal("25.50"),
        last_sale_at=datetime(2024, 5, 1, 10, 0),
        created_at=datetime(2023, 1, 15, 9, 0),
        status="1",
    ))
    db.add_all([
        Bank(code="0102", name="BANCO DE VENEZUELA", status="SI"),
        Bank(code="0134", name="BANESCO", status="SI"),
        Bank(code="0105", name="MERCANTIL", status="NO"),
    ])


@pytest.fixture
def db():
    engine = memory_engine()
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def erp_factory():
    engine = memory_engine()
    ErpBase.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    with factory.begin() as session:
        seed_erp(session)
    yield factory
    engine.dispose()


@pytest.fixture
def gateway(erp_factory):
    return ValeryErpGateway(erp_factory, timeout=5)


@pytest.fixture
def router(db, gateway):
    return make_router(db, gateway)


@pytest.fixture
def shopper(router):
    """Known customer, authenticated, with one Arroz Mary in the cart."""
    router.handle(KNOWN_PHONE, "hola")
    router.handle(KNOWN_PHONE, "busco arroz")
    router.handle(KNOWN_PHONE, "agregar producto 1")
    return router
