import logging
import threading
from contextlib import contextmanager
from datetime import timedelta

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from commerce_bot.chatbot.states import CHECKOUT_CONTEXTS, DialogueContext
from commerce_bot.core.config import settings
from commerce_bot.core.constants import SESSION_STATUS_ACTIVE, SESSION_STATUS_INACTIVE
from commerce_bot.models.chat_message import ChatMessage, SENDER_ASSISTANT, SENDER_USER
from commerce_bot.models.chat_session import ChatSession
from commerce_bot.utils.clock import utcnow

logger = logging.getLogger(__name__)


def session_timeout():
    return timedelta(minutes=settings.session_timeout_minutes)


class SessionStore:
    """One chat session per sender, kept in the chatbot database."""

    def __init__(self, db):
        self.db = db

    def _query(self, sender):
        return self.db.query(ChatSession).filter(ChatSession.phone == sender).with_for_update()

    def resolve(self, sender, chatbot_id=None) -> ChatSession:
        session = self._query(sender).first()
        now = utcnow()

        if session is None:
            session = ChatSession(
                phone=sender,
                chatbot_id=chatbot_id,
                context=DialogueContext.INITIAL,
                status=SESSION_STATUS_ACTIVE,
                is_authenticated=False,
                is_new_client=False,
                message_count=0,
                search_count=0,
                data={},
                last_activity=now,
            )
            self.db.add(session)
            try:
                self.db.commit()
            except IntegrityError:
                # Created by a concurrent request in another process
                self.db.rollback()
                return self._query(sender).one()
            logger.info("Created chat session for %s", sender)
            return self._query(sender).one()

        expired = session.last_activity is None or session.last_activity < now - session_timeout()
        if session.status != SESSION_STATUS_ACTIVE or expired:
            self.reactivate(session, now)

        if chatbot_id and not session.chatbot_id:
            session.chatbot_id = chatbot_id
        return session

    def reactivate(self, session, now=None):
        session.status = SESSION_STATUS_ACTIVE
        session.last_activity = now or utcnow()
        session.clear_payment_draft()
        if session.context in CHECKOUT_CONTEXTS:
            session.context = DialogueContext.MENU
        logger.info("Reactivated chat session for %s (context %s)", session.phone, session.context.value)

    def persist(self, session):
        self.db.add(session)
        self.db.commit()

    def append_transcript(self, session, inbound, outbound):
        self.db.add_all([
            ChatMessage(session_id=session.id, sender=SENDER_USER, content=inbound),
            ChatMessage(session_id=session.id, sender=SENDER_ASSISTANT, content=outbound),
        ])

    def sweep_expired(self, cutoff=None) -> int:
        cutoff = cutoff or utcnow() - session_timeout()
        try:
            count = (
                self.db.query(ChatSession)
                .filter(
                    ChatSession.status == SESSION_STATUS_ACTIVE,
                    ChatSession.last_activity < cutoff,
                )
                .update({ChatSession.status: SESSION_STATUS_INACTIVE}, synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Session sweep failed")
            return 0

        if count:
            logger.info("Marked %d chat sessions inactive", count)
        return count


class SenderLocks:
    """In-process lock per sender; entries disappear once nobody holds them."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    @contextmanager
    def hold(self, sender):
        with self._guard:
            entry = self._locks.setdefault(sender, [threading.Lock(), 0])
            entry[1] += 1
        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[sender]

    def __len__(self):
        with self._guard:
            return len(self._locks)


sender_locks = SenderLocks()


class SessionSweeper:
    """Marks stale sessions inactive every ``interval_seconds`` on a daemon thread."""

    def __init__(self, session_factory, interval_seconds=None):
        self.session_factory = session_factory
        self.interval_seconds = (
            settings.session_sweep_interval_minutes * 60 if interval_seconds is None else interval_seconds
        )
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        with self._lock:
            if self.running:
                return False
            self._stop.clear()
            self._thread = threading.Thread(target=self._run, name="session-sweeper", daemon=True)
            self._thread.start()
        logger.info("Session sweeper started (every %ss)", self.interval_seconds)
        return True

    def stop(self, timeout=5):
        with self._lock:
            self._stop.set()
            thread, self._thread = self._thread, None
        if thread is not None:
            thread.join(timeout)
            logger.info("Session sweeper stopped")

    def run_once(self) -> int:
        db = self.session_factory()
        try:
            return SessionStore(db).sweep_expired()
        finally:
            db.close()

    def _run(self):
        while not self._stop.wait(self.interval_seconds):
            self.run_once()
