"""
ORM mapping of the ERP tables the assistant reads and writes.

Column names follow the ERP schema (Spanish, lower-case); attribute names are
ours. The chatbot never migrates these tables.
"""
from sqlalchemy import Column, Integer, String, Numeric, Boolean, Date, DateTime, Time, Text, ForeignKey
from sqlalchemy.orm import relationship

from commerce_bot.database.base import ErpBase


class Product(ErpBase):
    __tablename__ = "inventario"

    code = Column("codigo", String(50), primary_key=True)
    name = Column("nombre", String(255), nullable=False)
    unit_price_usd = Column("preciounidad", Numeric(14, 4), default=0)
    iva_percent = Column("alicuotaiva", Numeric(6, 2), default=0)
    stock = Column("existenciaunidad", Numeric(14, 3), default=0)
    status = Column("status", String(2), default="A")


class Currency(ErpBase):
    __tablename__ = "monedas"

    code = Column("codmoneda", String(2), primary_key=True)
    name = Column("moneda", String(50))
    exchange_rate = Column("factorcambio", Numeric(14, 4))


class Client(ErpBase):
    __tablename__ = "clientes"

    id = Column("idcliente", Integer, primary_key=True)
    code = Column("codigocliente", String(20), unique=True, index=True)
    name = Column("nombre", String(150))
    rif = Column("rif", String(20))
    address = Column("direccion1", String(255), default="")
    phone1 = Column("telefono1", String(20), default="")
    phone2 = Column("telefono2", String(20), default="")
    has_credit = Column("tienecredito", Integer, default=0)
    credit_days = Column("diascredito", Integer, default=0)
    balance = Column("saldo", Numeric(14, 2), default=0)
    last_sale_at = Column("fechaultimaventa", DateTime, nullable=True)
    created_at = Column("fechacreacion", DateTime)
    status = Column("status", String(2), default="1")


class Bank(ErpBase):
    __tablename__ = "bancos"

    code = Column("codigo", String(4), primary_key=True)
    name = Column("banco", String(100))
    status = Column("status", String(2), default="SI")


class OrderHeader(ErpBase):
    __tablename__ = "encabedoc"

    id = Column("idencabedoc", Integer, primary_key=True, autoincrement=True)
    client_code = Column("codcliente", String(20))
    client_name = Column("nombrecliente", String(150))
    rif = Column("rif", String(20))
    phones = Column("telefonos", String(50))
    seller_code = Column("vendedorcodigo", String(10))
    seller_name = Column("nombrevendedor", String(50))
    currency_code = Column("monedacodigo", String(2))
    currency_name = Column("moneda", String(50))
    warehouse_code = Column("depositocodigo", String(10))
    user_code = Column("usuariocodigo", String(20))
    exchange_rate = Column("tasa", Numeric(14, 4))
    subtotal = Column("subtotal", Numeric(14, 2))
    iva = Column("iva", Numeric(14, 2))
    total = Column("total", Numeric(14, 2))
    is_exempt = Column("esexento", Boolean, default=False)
    issued_on = Column("fechaemision", Date)
    issued_at = Column("hora", Time)
    status = Column("status", String(2))
    notes = Column("observaciones", Text)

    lines = relationship("OrderLine", back_populates="header")
    payments = relationship("Payment", back_populates="header")


class OrderLine(ErpBase):
    __tablename__ = "movimientosdoc"

    id = Column("idmovimientosdoc", Integer, primary_key=True, autoincrement=True)
    header_id = Column("idencabedoc", Integer, ForeignKey("encabedoc.idencabedoc"), nullable=False)
    product_code = Column("codigo", String(50))
    name = Column("nombre", String(255))
    description = Column("descripcionreal", String(255))
    is_import = Column("esimportacion", Boolean, default=False)
    is_exempt = Column("esexento", Boolean, default=False)
    quantity = Column("cantidad", Numeric(14, 3))
    price = Column("precio", Numeric(14, 4))
    iva = Column("iva", Numeric(6, 2))
    total_price = Column("preciototal", Numeric(14, 2))
    status = Column("status", String(2))
    status_text = Column("desstatus", String(50))
    delivery_time = Column("tiempoentrega", String(50))

    header = relationship("OrderHeader", back_populates="lines")


class Payment(ErpBase):
    __tablename__ = "pagos"

    # Surrogate key; the ERP table itself is keyed by document
    id = Column("idpago", Integer, primary_key=True, autoincrement=True)
    header_id = Column("idencabedoc", Integer, ForeignKey("encabedoc.idencabedoc"), nullable=False)
    method = Column("idtipo", Integer)
    amount = Column("monto", Numeric(14, 2))
    bank_code = Column("codigobanco", String(4), nullable=True)
    bank_name = Column("banco", String(100), nullable=True)
    payer_phone = Column("telefono", String(20), nullable=True)
    payer_identification = Column("clienteid", String(20), nullable=True)
    reference = Column("referencia", String(20), nullable=True)
    paid_on = Column("fechatrans", Date, nullable=True)

    header = relationship("OrderHeader", back_populates="payments")
