from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, Enum
from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.orm import validates

from commerce_bot.chatbot.states import DialogueContext, PaymentMobileDraft, check_transition
from commerce_bot.core.constants import SESSION_STATUS_ACTIVE
from commerce_bot.database.base import Base
from commerce_bot.utils.clock import utcnow


class ChatSession(Base):
    __tablename__ = "chat_sessions"

    id = Column(Integer, primary_key=True)
    phone = Column(String(20), unique=True, index=True, nullable=False)
    chatbot_id = Column(String(50), nullable=True)

    client_id = Column(String(20), nullable=True)
    client_name = Column(String(150), nullable=True)
    identification_number = Column(String(20), nullable=True)
    is_authenticated = Column(Boolean, default=False, nullable=False)
    is_new_client = Column(Boolean, default=False, nullable=False)

    context = Column(
        Enum(
            DialogueContext,
            native_enum=False,
            length=50,
            values_callable=lambda members: [m.value for m in members],
        ),
        default=DialogueContext.INITIAL,
        nullable=False,
    )
    status = Column(String(20), default=SESSION_STATUS_ACTIVE, index=True, nullable=False)

    message_count = Column(Integer, default=0, nullable=False)
    search_count = Column(Integer, default=0, nullable=False)
    last_user_message = Column(Text, nullable=True)
    last_bot_response = Column(Text, nullable=True)

    data = Column(MutableDict.as_mutable(JSON), default=dict)

    last_activity = Column(DateTime, default=utcnow, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @validates("context")
    def _validate_context(self, key, value):
        return check_transition(self.context, value)

    def _bag(self):
        if self.data is None:
            self.data = {}
        return self.data

    @property
    def payment_draft(self) -> PaymentMobileDraft | None:
        raw = (self.data or {}).get("payment_mobile")
        if raw is None:
            return None
        return PaymentMobileDraft.from_dict(raw)

    def store_payment_draft(self, draft: PaymentMobileDraft):
        self._bag()["payment_mobile"] = draft.to_dict()

    def clear_payment_draft(self):
        self._bag().pop("payment_mobile", None)

    @property
    def last_results(self) -> list[str]:
        return list((self.data or {}).get("last_results") or [])

    @last_results.setter
    def last_results(self, codes):
        self._bag()["last_results"] = list(codes)

    @property
    def client_info(self) -> dict:
        return dict((self.data or {}).get("client_info") or {})

    @client_info.setter
    def client_info(self, info: dict):
        self._bag()["client_info"] = dict(info)

    def record_turn(self, inbound: str, outbound: str):
        self.status = SESSION_STATUS_ACTIVE
        self.message_count = (self.message_count or 0) + 1
        self.last_user_message = inbound
        self.last_bot_response = outbound
        self.last_activity = utcnow()
