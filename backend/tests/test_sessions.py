from datetime import timedelta

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from commerce_bot.chatbot.sessions import SenderLocks, SessionStore, SessionSweeper
from commerce_bot.chatbot.states import DialogueContext as C, PaymentMobileDraft
from commerce_bot.core.constants import SESSION_STATUS_ACTIVE, SESSION_STATUS_INACTIVE
from commerce_bot.models.chat_session import ChatSession
from commerce_bot.utils.clock import utcnow


def age(db, phone, **values):
    """Rewrite stored columns directly, skipping the transition check."""
    db.query(ChatSession).filter(ChatSession.phone == phone).update(values, synchronize_session=False)
    db.commit()
    db.expire_all()


def test_resolve_creates_one_session_per_sender(db):
    store = SessionStore(db)

    first = store.resolve("04140000001", "bot-1")
    second = store.resolve("04140000001")

    assert first.id == second.id
    assert first.context == C.INITIAL
    assert first.chatbot_id == "bot-1"
    assert first.message_count == 0
    assert db.query(ChatSession).count() == 1


def test_expired_session_is_reactivated_out_of_checkout(db):
    store = SessionStore(db)
    session = store.resolve("04140000001")
    session.store_payment_draft(PaymentMobileDraft(bank_code="0102"))
    store.persist(session)
    age(
        db, "04140000001",
        context=C.PAYMENT_PHONE_INPUT,
        last_activity=utcnow() - timedelta(hours=3),
    )

    session = store.resolve("04140000001")

    assert session.status == SESSION_STATUS_ACTIVE
    assert session.context == C.MENU
    assert session.payment_draft is None
    assert session.last_activity > utcnow() - timedelta(minutes=1)


def test_inactive_session_keeps_free_context(db):
    store = SessionStore(db)
    store.resolve("04140000001")
    age(db, "04140000001", context=C.CART, status=SESSION_STATUS_INACTIVE)

    session = store.resolve("04140000001")

    assert session.status == SESSION_STATUS_ACTIVE
    assert session.context == C.CART


def test_sweep_marks_only_stale_sessions(db):
    store = SessionStore(db)
    store.resolve("04140000001")
    store.resolve("04140000002")
    age(db, "04140000001", last_activity=utcnow() - timedelta(hours=5))

    assert store.sweep_expired() == 1

    statuses = dict(db.query(ChatSession.phone, ChatSession.status).all())
    assert statuses == {"04140000001": SESSION_STATUS_INACTIVE, "04140000002": SESSION_STATUS_ACTIVE}


def test_sweep_failure_is_logged_not_raised(db, monkeypatch, caplog):
    def broken(*args, **kwargs):
        raise OperationalError("UPDATE chat_sessions", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "query", broken)

    assert SessionStore(db).sweep_expired() == 0
    assert "Session sweep failed" in caplog.text


def test_sweeper_start_is_idempotent(db):
    factory = sessionmaker(bind=db.get_bind())
    sweeper = SessionSweeper(factory, interval_seconds=3600)

    assert sweeper.start() is True
    assert sweeper.start() is False
    assert sweeper.running

    sweeper.stop()
    assert not sweeper.running


def test_sweeper_run_once(db):
    store = SessionStore(db)
    store.resolve("04140000001")
    age(db, "04140000001", last_activity=utcnow() - timedelta(days=1))

    sweeper = SessionSweeper(sessionmaker(bind=db.get_bind()), interval_seconds=3600)

    assert sweeper.run_once() == 1
    assert sweeper.run_once() == 0


def test_sender_locks_are_released():
    locks = SenderLocks()

    with locks.hold("04140000001"):
        with locks.hold("04140000002"):
            assert len(locks) == 2

    assert len(locks) == 0


def test_transcript_and_turn_counters(db):
    store = SessionStore(db)
    session = store.resolve("04140000001")

    session.record_turn("hola", "¡Hola!")
    store.append_transcript(session, "hola", "¡Hola!")
    store.persist(session)

    assert session.message_count == 1
    assert session.last_user_message == "hola"
    assert session.last_bot_response == "¡Hola!"
