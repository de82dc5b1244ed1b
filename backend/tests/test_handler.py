from decimal import Decimal

from commerce_bot.chatbot.states import DialogueContext as C
from commerce_bot.models.chat_message import ChatMessage, SENDER_ASSISTANT, SENDER_USER
from commerce_bot.models.chat_session import ChatSession
from commerce_bot.models.erp import Client
from commerce_bot.models.search_history import SearchHistory

from tests.helpers import KNOWN_PHONE, UNKNOWN_PHONE, FlakyGateway, make_router


def current(db, phone):
    db.expire_all()
    return db.query(ChatSession).filter(ChatSession.phone == phone).one()


# ---------- identification ----------

def test_known_phone_is_authenticated_on_first_message(db, router):
    reply = router.handle("584141234567@s.whatsapp.net", "hola", channel_id="bot-1")

    session = current(db, KNOWN_PHONE)
    assert session.is_authenticated
    assert session.client_id == "11111111"
    assert session.context == C.MENU
    assert session.chatbot_id == "bot-1"
    assert session.client_info["credit_days"] == 15
    assert "MARIA GONZALEZ" in reply
    assert "1️⃣" in reply


def test_unknown_phone_is_asked_for_identification(db, router):
    reply = router.handle(UNKNOWN_PHONE, "hola")

    session = current(db, UNKNOWN_PHONE)
    assert not session.is_authenticated
    assert session.is_new_client
    assert session.context == C.NEW_CLIENT
    assert "cédula o RIF" in reply


def test_identification_then_registration(db, erp_factory, router):
    reply = router.handle(UNKNOWN_PHONE, "V12345678")
    assert current(db, UNKNOWN_PHONE).context == C.NEW_CLIENT_REGISTRATION
    assert "12345678" in reply

    reply = router.handle(UNKNOWN_PHONE, "Juan Perez")

    session = current(db, UNKNOWN_PHONE)
    assert session.context == C.MENU
    assert session.is_authenticated
    assert session.client_name == "JUAN PEREZ"
    assert "Registro completado" in reply
    assert "1️⃣" in reply

    with erp_factory() as erp:
        client = erp.query(Client).filter(Client.code == "12345678").one()
        assert client.id == 2
        assert client.rif == "V12345678"
        assert client.name == "JUAN PEREZ"
        assert client.phone1 == UNKNOWN_PHONE


def test_registration_rejects_single_word_name(db, router):
    router.handle(UNKNOWN_PHONE, "12345678")

    reply = router.handle(UNKNOWN_PHONE, "Juan")

    assert "Nombre no válido" in reply
    assert current(db, UNKNOWN_PHONE).context == C.NEW_CLIENT_REGISTRATION


def test_registration_can_be_cancelled(db, router):
    router.handle(UNKNOWN_PHONE, "12345678")

    router.handle(UNKNOWN_PHONE, "cancelar")

    session = current(db, UNKNOWN_PHONE)
    assert session.context == C.NEW_CLIENT
    assert session.identification_number is None


def test_existing_identification_authenticates(db, router):
    router.handle(UNKNOWN_PHONE, "hola")

    reply = router.handle(UNKNOWN_PHONE, "v-11111111")

    session = current(db, UNKNOWN_PHONE)
    assert session.is_authenticated
    assert session.client_id == "11111111"
    assert "Identificación exitosa" in reply


def test_menu_requires_identification(db, router):
    router.handle(UNKNOWN_PHONE, "hola")

    reply = router.handle(UNKNOWN_PHONE, "1")

    assert "Identificación requerida" in reply
    assert current(db, UNKNOWN_PHONE).context == C.NEW_CLIENT


# ---------- menu & search ----------

def test_menu_account_statement(router):
    router.handle(KNOWN_PHONE, "hola")

    reply = router.handle(KNOWN_PHONE, "2")

    assert "CRÉDITO" in reply
    assert "15 días" in reply
    assert "$25.50" in reply


def test_menu_search_and_order_options(db, router):
    router.handle(KNOWN_PHONE, "hola")

    router.handle(KNOWN_PHONE, "1")
    assert current(db, KNOWN_PHONE).context == C.PRODUCT_SEARCH

    router.handle(KNOWN_PHONE, "4")
    assert current(db, KNOWN_PHONE).context == C.ORDER_START


def test_search_with_greeting_still_searches(db, router):
    router.handle(KNOWN_PHONE, "hola")

    router.handle(KNOWN_PHONE, "hola busco arroz")

    session = current(db, KNOWN_PHONE)
    assert session.context == C.PRODUCT_SEARCH
    assert session.search_count == 1
    assert db.query(SearchHistory).one().search_term == "hola arroz"


def test_search_history_keeps_the_context_it_came_from(db, router):
    router.handle(KNOWN_PHONE, "hola")
    router.handle(KNOWN_PHONE, "busco arroz")
    router.handle(KNOWN_PHONE, "busco harina")

    rows = db.query(SearchHistory).order_by(SearchHistory.id).all()
    assert [row.context for row in rows] == ["menu", "product_search"]
    assert current(db, KNOWN_PHONE).context == C.PRODUCT_SEARCH


def test_unknown_message_falls_back_to_search(db, router):
    router.handle(KNOWN_PHONE, "hola")

    reply = router.handle(KNOWN_PHONE, "arroz mary")

    assert "Arroz Mary 1kg" in reply
    assert current(db, KNOWN_PHONE).last_results == ["P001"]


def test_short_unknown_message_is_not_understood(db, router):
    router.handle(KNOWN_PHONE, "hola")

    reply = router.handle(KNOWN_PHONE, "xy")

    assert "No entendí" in reply
    assert current(db, KNOWN_PHONE).context == C.MENU


def test_list_message_in_order_context(db, router):
    router.handle(KNOWN_PHONE, "hola")
    router.handle(KNOWN_PHONE, "4")

    reply = router.handle(KNOWN_PHONE, "arroz, harina, aceite")

    session = current(db, KNOWN_PHONE)
    assert "Términos buscados: 3" in reply
    assert session.context == C.PRODUCT_SEARCH
    assert session.last_results == ["P009", "P001", "P002", "P003"]


# ---------- cart ----------

def test_add_without_search(router):
    router.handle(KNOWN_PHONE, "hola")

    assert "Primero busque" in router.handle(KNOWN_PHONE, "agregar producto 1")


def test_add_out_of_range(router):
    router.handle(KNOWN_PHONE, "hola")
    router.handle(KNOWN_PHONE, "busco harina")

    assert "entre 1 y 2" in router.handle(KNOWN_PHONE, "agregar producto 5")


def test_add_twice_merges_quantity(db, shopper):
    reply = shopper.handle(KNOWN_PHONE, "quiero el producto 1")

    items = shopper.cart.items(KNOWN_PHONE)
    assert len(items) == 1
    assert items[0].quantity == 2
    assert "Cantidad: 2" in reply
    assert current(db, KNOWN_PHONE).context == C.CART


def test_view_remove_and_clear_cart(db, shopper):
    shopper.handle(KNOWN_PHONE, "busco harina")
    shopper.handle(KNOWN_PHONE, "agregar producto 1")

    reply = shopper.handle(KNOWN_PHONE, "ver carrito")
    assert "1. Arroz Mary 1kg" in reply
    assert "2. Harina PAN 1kg" in reply

    reply = shopper.handle(KNOWN_PHONE, "quitar producto 1")
    assert "Arroz Mary 1kg" in reply
    assert [i.product_code for i in shopper.cart.items(KNOWN_PHONE)] == ["P002"]

    reply = shopper.handle(KNOWN_PHONE, "vaciar carrito")
    assert "Carrito vaciado (1 productos)" in reply
    assert shopper.cart.items(KNOWN_PHONE) == []


def test_returning_customer_sees_saved_cart(db, shopper):
    db.query(ChatSession).update({"context": C.INITIAL}, synchronize_session=False)
    db.commit()

    reply = shopper.handle(KNOWN_PHONE, "hola")

    assert "1 producto(s) guardados" in reply
    assert "arroz" in reply


# ---------- transcript & failures ----------

def test_every_turn_is_recorded(db, router):
    router.handle(KNOWN_PHONE, "hola")
    router.handle(KNOWN_PHONE, "busco arroz")

    session = current(db, KNOWN_PHONE)
    messages = db.query(ChatMessage).order_by(ChatMessage.id).all()
    assert session.message_count == 2
    assert session.last_user_message == "busco arroz"
    assert [m.sender for m in messages] == [SENDER_USER, SENDER_ASSISTANT] * 2
    assert messages[2].content == "busco arroz"
    assert messages[3].content == session.last_bot_response


def test_identity_timeout_on_first_contact(db, gateway):
    router = make_router(db, gateway, identity=FlakyGateway(gateway, {"find_by_phone"}))

    reply = router.handle(KNOWN_PHONE, "hola")

    session = current(db, KNOWN_PHONE)
    assert "deadbeef" in reply
    assert session.context == C.INITIAL
    assert not session.is_authenticated
    assert session.message_count == 1
    assert db.query(ChatMessage).count() == 2


def test_catalog_timeout_leaves_session_and_cart_untouched(db, gateway, shopper):
    shopper.handle(KNOWN_PHONE, "ver carrito")
    flaky = make_router(db, gateway, catalog=FlakyGateway(gateway, {"search"}))

    reply = flaky.handle(KNOWN_PHONE, "busco harina")

    session = current(db, KNOWN_PHONE)
    assert "Error técnico" in reply
    assert session.context == C.CART
    assert session.search_count == 1
    assert session.last_results == ["P001"]
    assert [i.product_code for i in flaky.cart.items(KNOWN_PHONE)] == ["P001"]
    assert flaky.cart.total(KNOWN_PHONE).total_usd == Decimal("1.20")


def test_unexpected_error_gets_apology(db, router, monkeypatch):
    router.handle(KNOWN_PHONE, "hola")

    def boom(session, text):
        raise RuntimeError("boom")

    monkeypatch.setattr(router, "dispatch", boom)

    reply = router.handle(KNOWN_PHONE, "busco arroz")

    assert "Disculpe" in reply
    assert "ID:" in reply
