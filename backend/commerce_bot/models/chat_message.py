from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey

from commerce_bot.database.base import Base
from commerce_bot.utils.clock import utcnow

SENDER_USER = "user"
SENDER_ASSISTANT = "assistant"


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey("chat_sessions.id"), index=True, nullable=False)
    sender = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow)

