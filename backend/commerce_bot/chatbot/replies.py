from commerce_bot.core.config import settings
from commerce_bot.core.constants import CURRENCY_BOLIVARES, LIST_DISPLAY_LIMIT, PAYMENT_METHODS
from commerce_bot.utils.formatting import format_bs, format_usd, local_price

RULE = "═══════════════════════════"

MAIN_MENU = (
    "1️⃣ 🔍 *Consultar productos*\n"
    "2️⃣ 💰 *Ver mi saldo*\n"
    "3️⃣ 📄 *Historial de facturas*\n"
    "4️⃣ 🛒 *Hacer un pedido*\n\n"
    "💬 O escriba directamente lo que necesita"
)


def time_greeting(hour):
    if 6 <= hour <= 11:
        return "🌅 ¡Buenos días"
    if 12 <= hour <= 18:
        return "☀️ ¡Buenas tardes"
    if 19 <= hour <= 23:
        return "🌙 ¡Buenas noches"
    return "🌜 ¡Buena madrugada"


# ---------- welcome & identification ----------

def welcome_back(name, hour, cart_lines=0, recent_search=None):
    msg = f"{time_greeting(hour)}, *{name}*! 🌟\n{RULE}\n"
    msg += f"✨ Qué alegría tenerle de vuelta en *{settings.store_name}*\n\n"
    if cart_lines:
        msg += f"🛒 Tiene {cart_lines} producto(s) guardados en su carrito\n\n"
    if recent_search:
        msg += f"🔍 ¿Busca algo similar a \"{recent_search}\"?\n\n"
    msg += f"🎯 *¿En qué le puedo ayudar hoy?*\n{RULE}\n"
    return msg + MAIN_MENU


def new_client_welcome(hour):
    return (
        f"{time_greeting(hour)}! 🎊\n{RULE}\n"
        f"🌟 *Bienvenido a {settings.store_name}*\n"
        f"🤖 Soy *{settings.bot_name}*, su asistente personal\n\n"
        "📝 Para comenzar indíqueme su *cédula o RIF*\n"
        "📌 Ejemplo: V12345678 o J408079305"
    )


def identified(name):
    return (
        f"🎉 *¡Identificación exitosa!*\n{RULE}\n"
        f"✅ Bienvenido(a) *{name}*\n\n"
        f"🎯 *¿En qué le puedo ayudar hoy?*\n{RULE}\n"
        + MAIN_MENU
    )


def ask_full_name(identification):
    return (
        f"📝 *Registro de cliente nuevo*\n{RULE}\n"
        f"🆔 No encontramos la cédula {identification}\n"
        "✍️ Escriba su *nombre y apellido* para registrarle\n"
        "💡 Ejemplo: Juan Pérez\n\n"
        "🔄 Escriba \"cancelar\" para volver"
    )


def invalid_full_name():
    return (
        "❌ *Nombre no válido*\n"
        "✍️ Escriba al menos nombre y apellido, solo con letras\n"
        "💡 Ejemplo: María González"
    )


def registration_complete(name):
    return (
        f"🎊 *¡Registro completado!*\n{RULE}\n"
        f"👤 Bienvenido(a) *{name}* a {settings.store_name}\n\n"
        f"🎯 *¿En qué le puedo ayudar hoy?*\n{RULE}\n"
        + MAIN_MENU
    )


def registration_cancelled():
    return (
        "🔄 Registro cancelado\n"
        "📝 Cuando quiera, indíqueme su *cédula o RIF* para continuar"
    )


def identification_required():
    return (
        f"🔐 *Identificación requerida*\n{RULE}\n"
        "📝 Ingrese su cédula o RIF para continuar\n"
        "📌 Ejemplo: V12345678"
    )


# ---------- menu ----------

def search_prompt():
    return (
        f"🔍 *Búsqueda de productos*\n{RULE}\n"
        "🎯 ¿Qué producto busca?\n"
        "💡 Puede escribir el nombre, la marca o una lista separada por comas\n\n"
        "📝 Ejemplos: \"leche completa\", \"arroz, harina, aceite\""
    )


def account_statement(identity):
    msg = f"💰 *Estado de cuenta*\n{RULE}\n👤 *Cliente:* {identity.name}\n\n"
    if not identity.has_credit:
        msg += "💳 Modalidad: *CONTADO*\n🚫 Sin línea de crédito activa"
        return msg
    msg += (
        "🏦 Modalidad: *CRÉDITO*\n"
        f"⏰ Plazo: {identity.credit_days} días\n"
        f"💰 Saldo actual: {format_usd(identity.balance)}"
    )
    if identity.balance > 0:
        msg += "\n⚠️ Tiene un saldo pendiente"
    return msg


def account_not_found():
    return "❌ No se encontró información de su cuenta\n📞 Contacte a servicio al cliente"


def invoice_history():
    return (
        f"📄 *Historial de facturas*\n{RULE}\n"
        "🚧 Funcionalidad en desarrollo\n"
        "⚙️ Próximamente disponible"
    )


def order_start():
    return (
        f"🛒 *Nuevo pedido*\n{RULE}\n"
        "1️⃣ Busque un producto por su nombre\n"
        "2️⃣ O envíe su lista separada por comas\n\n"
        "💬 ¿Qué productos necesita?"
    )


def invalid_menu_option():
    return "❌ Opción no válida\n🔢 Seleccione una opción del 1 al 4"


# ---------- search ----------

def _product_lines(products, start=1):
    msg = ""
    for i, p in enumerate(products, start=start):
        price_bs = local_price(p.unit_price_usd, p.iva_percent, p.exchange_rate)
        msg += (
            f"🏷️ *PRODUCTO {i}*\n"
            f"📌 {p.name}\n"
            f"💵 USD: {format_usd(p.unit_price_usd)}\n"
            f"🇻🇪 Bs: {format_bs(price_bs)}\n"
            f"📦 Stock: {int(p.stock)} unidades\n\n"
        )
    return msg


ADD_TO_CART_HINT = (
    "🛒 *¿Cómo agregar al carrito?*\n"
    "✅ \"Agregar producto [número] al carrito\"\n"
    "✅ \"Quiero el producto [número]\""
)


def search_results(term, products):
    msg = (
        f"🛍️ *¡Productos encontrados!*\n{RULE}\n"
        f"🔍 Búsqueda: \"{term}\"\n"
        f"📦 {len(products)} productos disponibles\n\n"
    )
    return msg + _product_lines(products) + ADD_TO_CART_HINT


def no_results(term, suggestions):
    msg = (
        f"😔 *No encontramos productos*\n{RULE}\n"
        f"🔍 Búsqueda: \"{term}\"\n\n"
    )
    if suggestions:
        msg += "💡 *¿Quizás buscaba esto?*\n"
        for i, suggestion in enumerate(suggestions, start=1):
            msg += f"{i}. {suggestion}\n"
        msg += "\n"
    msg += (
        "🔄 Intente con otra marca\n"
        "📝 Use términos más generales\n"
        "💬 Escriba \"ayuda\" para ver ejemplos"
    )
    return msg


def list_results(outcome):
    stats = outcome.stats
    shown = outcome.products[:LIST_DISPLAY_LIMIT]
    msg = (
        f"🛍️ *¡Productos de su lista!*\n{RULE}\n"
        f"📋 Términos buscados: {stats['terms_searched']}\n"
        f"📦 Productos encontrados: {stats['products_found']}\n"
        f"📊 Promedio por término: {stats['average_per_term']}\n\n"
    )
    msg += _product_lines(shown)
    hidden = len(outcome.products) - len(shown)
    if hidden > 0:
        msg += f"... y {hidden} productos más.\n\n"
    return msg + ADD_TO_CART_HINT


def list_no_results(terms):
    msg = f"😔 *No encontramos productos de su lista*\n{RULE}\n"
    if terms:
        msg += f"📝 Lista analizada: {', '.join(terms)}\n\n"
    return msg + "🔄 Revise la ortografía o busque los productos uno por uno"


# ---------- cart ----------

def ask_product_number():
    return (
        "❌ *Número de producto requerido*\n"
        "💡 Ejemplo: \"Agregar producto 1 al carrito\""
    )


def search_first():
    return "🔍 Primero busque un producto\n💡 Escriba el nombre de lo que necesita"


def invalid_product_number(available):
    return f"❌ Número no válido\n🔢 Elija un producto entre 1 y {available}"


def product_unavailable():
    return "😔 Ese producto ya no está disponible\n🔍 Intente con otra búsqueda"


def added_to_cart(item, totals):
    return (
        f"✅ *Agregado al carrito*\n{RULE}\n"
        f"📌 {item.product_name}\n"
        f"🔢 Cantidad: {item.quantity}\n\n"
        f"🛒 Carrito: {totals.item_count} unidades\n"
        f"💰 Total: {format_usd(totals.total_usd)} | {format_bs(totals.total_bs)}\n\n"
        "💳 Escriba \"proceder\" para comprar o siga buscando"
    )


def empty_cart():
    return "🛒 Su carrito está vacío\n🔍 Busque productos para comenzar"


def cart_view(items, totals):
    msg = f"🛒 *Su carrito*\n{RULE}\n"
    for i, item in enumerate(items, start=1):
        msg += f"{i}. {item.product_name}\n    {item.quantity} x {format_usd(item.unit_price_usd)}\n"
    msg += (
        f"\n📦 Unidades: {totals.item_count}\n"
        f"💰 Total: {format_usd(totals.total_usd)}\n"
        f"🇻🇪 Total: {format_bs(totals.total_bs)}\n\n"
        "➖ \"Quitar producto [número]\"\n"
        "🗑️ \"Vaciar carrito\"\n"
        "💳 \"Proceder a comprar\""
    )
    return msg


def removed_from_cart(name):
    return f"➖ Se quitó *{name}* de su carrito"


def cart_cleared(count):
    if not count:
        return empty_cart()
    return f"🗑️ Carrito vaciado ({count} productos)\n🔍 ¿Desea buscar algo más?"


# ---------- checkout ----------

def payment_methods(totals):
    msg = (
        f"💳 *Finalizar compra*\n{RULE}\n"
        f"🛒 {totals.item_count} productos en carrito\n"
        f"💰 Total: {format_usd(totals.total_usd)} USD\n"
        f"🇻🇪 Total: {format_bs(totals.total_bs)}\n\n"
        "*Métodos de pago disponibles:*\n"
    )
    for number, name in PAYMENT_METHODS.items():
        msg += f"{number}. {name}\n"
    msg += "\n🔢 Escriba el número del método (1-6)\n🔄 O escriba \"cancelar\" para volver"
    return msg


def invalid_payment_method():
    return "❌ *Método inválido*\n🔢 Seleccione un número del 1 al 6\n🔄 O escriba \"cancelar\""


def choose_bank(banks):
    msg = (
        f"🏦 *Seleccione su banco*\n{RULE}\n"
        "📱 Método: *PAGO MÓVIL* (bolívares)\n\n"
    )
    for bank in banks:
        msg += f"🔹 *{bank.code}* - {bank.name}\n"
    msg += "\n🔢 Escriba el código de 4 dígitos\n🔄 O escriba \"cancelar\" para volver"
    return msg


def banks_unavailable():
    return "❌ No se pudo obtener la lista de bancos\n⏰ Intente más tarde o elija otro método"


def invalid_bank_code():
    return "❌ *Código de banco inválido*\n🔢 Debe tener exactamente 4 dígitos\n💡 Ejemplo: 0102"


def unknown_bank():
    return "❌ *Banco no encontrado*\n📋 Revise la lista de bancos disponibles"


def ask_payer_phone(bank_name):
    return (
        f"✅ Banco: *{bank_name}*\n\n"
        "📱 Escriba el *teléfono* desde el que realizó el pago\n"
        "💡 Ejemplo: 04141234567"
    )


def invalid_payer_phone():
    return "❌ *Teléfono inválido*\n📱 Use un número móvil venezolano (0414, 0424, 0412, 0416, 0426)"


def ask_payer_identification(phone):
    return (
        f"✅ Teléfono: *{phone}*\n\n"
        "🆔 Escriba la *cédula* del titular del pago\n"
        "💡 Ejemplo: V12345678"
    )


def invalid_payer_identification():
    return "❌ *Cédula inválida*\n🔢 Debe tener entre 6 y 9 dígitos"


def ask_reference(identification, verified):
    status = "✅ Cliente verificado" if verified else "ℹ️ Cédula registrada"
    return (
        f"🆔 Cédula: *{identification}*\n{status}\n\n"
        "🧾 Escriba los *últimos 4 dígitos* de la referencia del pago"
    )


def invalid_reference():
    return "❌ *Referencia inválida*\n🔢 Debe tener exactamente 4 dígitos"


INVALID_INPUT_REPLIES = {
    "payment_method": invalid_payment_method,
    "bank_code": invalid_bank_code,
    "bank": unknown_bank,
    "payer_phone": invalid_payer_phone,
    "payer_identification": invalid_payer_identification,
    "reference": invalid_reference,
}


def invalid_checkout_input(field):
    return INVALID_INPUT_REPLIES[field]()


def checkout_cancelled():
    return (
        f"🔄 *Compra cancelada*\n{RULE}\n"
        "↩️ Regresando al menú principal\n"
        "🛒 Su carrito se mantiene intacto\n\n"
        + MAIN_MENU
    )


def checkout_interrupted(error_id):
    return (
        "⚠️ Perdimos los datos del pago en curso\n"
        "↩️ Regresamos al menú principal, su carrito sigue intacto\n"
        "💳 Escriba \"proceder\" para intentarlo de nuevo\n"
        f"🆘 ID: {error_id}"
    )


def order_created(receipt, method):
    currency = format_bs(receipt.total) if receipt.currency_code == CURRENCY_BOLIVARES else format_usd(receipt.total)
    return (
        f"🎉 *¡Pedido creado exitosamente!*\n{RULE}\n"
        f"✅ ID Pedido: *{receipt.order_id}*\n"
        f"💳 Método: {PAYMENT_METHODS[method]}\n"
        f"💰 Total: {currency}\n"
        f"📦 Productos: {receipt.line_count}\n\n"
        "📞 Le contactaremos para coordinar la entrega\n"
        "🚀 ¡Gracias por su compra!"
    )


def order_failed(error_id):
    return (
        "❌ *Error al crear el pedido*\n"
        "🛒 Su carrito se mantiene intacto\n"
        "⏰ Intente nuevamente en unos minutos\n"
        f"🆘 ID: {error_id}"
    )


# ---------- general ----------

def greeting(name=None):
    if name:
        return f"🎉 ¡Hola de nuevo, *{name}*!\n😊 ¿En qué le ayudo hoy?\n\n" + MAIN_MENU
    return (
        f"👋 ¡Hola! Soy *{settings.bot_name}* de {settings.store_name}\n"
        "📝 Indíqueme su cédula o RIF para atenderle"
    )


def help_message(authenticated):
    msg = (
        f"🆘 *Centro de ayuda*\n{RULE}\n"
        "🔍 Buscar: \"busco arroz\"\n"
        "📝 Lista: \"arroz, harina, aceite\"\n"
        "🛒 Carrito: \"agregar producto 1\", \"ver carrito\"\n"
        "💳 Comprar: \"proceder\"\n"
    )
    if not authenticated:
        msg += "\n🆔 Para comenzar indíqueme su cédula o RIF"
    else:
        msg += "\n" + MAIN_MENU
    return msg


def not_understood():
    return "🤔 No entendí su mensaje\n💬 Escriba \"ayuda\" para ver lo que puedo hacer"


def technical_error(error_id):
    return (
        "❌ *Error técnico*\n"
        "🔧 No pudimos completar su solicitud\n"
        "⏰ Intente nuevamente en unos minutos\n"
        f"🆘 ID: {error_id}"
    )


def apology(error_id):
    return (
        "😔 Disculpe, tuvimos un inconveniente procesando su mensaje\n"
        "⏰ Por favor intente de nuevo\n"
        f"🆘 ID: {error_id}"
    )
