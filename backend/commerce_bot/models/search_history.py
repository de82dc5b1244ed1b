from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey

from commerce_bot.database.base import Base
from commerce_bot.utils.clock import utcnow


class SearchHistory(Base):
    __tablename__ = "search_history"

    id = Column(Integer, primary_key=True)
    phone = Column(String(20), index=True, nullable=False)
    session_id = Column(Integer, ForeignKey("chat_sessions.id"), nullable=True)

    search_term = Column(String(255), nullable=False)
    original_term = Column(String(255), nullable=False)
    results_count = Column(Integer, default=0, nullable=False)
    has_results = Column(Boolean, default=False, nullable=False)
    context = Column(String(50), nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
