from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
TENTH = Decimal("0.1")


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def local_price(price_usd, iva_percent, exchange_rate) -> Decimal:
    """Shelf price in bolívares, IVA included, rounded to the nearest 0.10."""
    rate = to_decimal(exchange_rate) or Decimal("1")
    with_iva = to_decimal(price_usd) * (1 + to_decimal(iva_percent) / 100)
    return (with_iva * rate).quantize(TENTH, rounding=ROUND_HALF_UP)


def format_usd(value) -> str:
    return f"${round_money(value):.2f}"


def format_bs(value) -> str:
    return f"Bs {to_decimal(value):.2f}"
