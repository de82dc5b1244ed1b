SESSION_STATUS_ACTIVE = "active"
SESSION_STATUS_INACTIVE = "inactive"
SESSION_STATUS_ENDED = "ended"

CART_STATUS_ACTIVE = "active"
CART_STATUS_CLEARED = "cleared"

# ERP currency codes
CURRENCY_BOLIVARES = "01"
CURRENCY_USD = "02"

CURRENCY_NAMES = {
    CURRENCY_BOLIVARES: "BOLIVARES",
    CURRENCY_USD: "DOLARES",
}

# Product status values the ERP uses for "active"
ACTIVE_PRODUCT_STATUSES = ("A", "1")

PAYMENT_MOBILE = 1

PAYMENT_METHODS = {
    1: "📱 PAGO MÓVIL",
    2: "💳 ZELLE",
    3: "🏦 TRANSFERENCIA USD",
    4: "💵 EFECTIVO BOLÍVARES",
    5: "🏧 PUNTO DE VENTA",
    6: "💰 EFECTIVO USD",
}

# Methods billed in bolívares; everything else is billed in USD
BOLIVAR_PAYMENT_METHODS = (1, 4)

MOBILE_PREFIXES = ("414", "424", "412", "416", "426")

SEARCH_STOP_WORDS = (
    "busco", "necesito", "quiero", "dame", "tienes", "hay", "me", "puedes", "dar",
)

MENU_KEYWORDS = {
    "saldo": "2",
    "factura": "3",
    "historial": "3",
    "pedido": "4",
}

# Search limits
EXACT_SEARCH_LIMIT = 20
EXACT_SEARCH_MIN_STOCK = 2
WORD_SEARCH_LIMIT = 15
WORD_SEARCH_MIN_STOCK = 1
LIST_SEARCH_LIMIT = 50
LIST_SEARCH_MIN_STOCK = 1
LIST_DISPLAY_LIMIT = 15
SUGGESTION_LIMIT = 3
MIN_SEARCH_TOKEN_LENGTH = 3

RECENT_SEARCH_DAYS = 7

# Order header defaults expected by the ERP
ORDER_SELLER_CODE = "V001"
ORDER_SELLER_NAME = "CHATBOT AI"
ORDER_WAREHOUSE_CODE = "01"
ORDER_USER_CODE = "remoto"
ORDER_STATUS = "G"
ORDER_LINE_STATUS_TEXT = "PRODUCTO EN STOCK"
ORDER_LINE_DELIVERY = "INMEDIATO"
