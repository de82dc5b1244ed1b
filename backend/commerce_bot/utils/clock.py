from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from commerce_bot.core.config import settings


def utcnow() -> datetime:
    # Stored timestamps are naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def store_hour(now: datetime | None = None) -> int:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(settings.store_timezone)).hour
