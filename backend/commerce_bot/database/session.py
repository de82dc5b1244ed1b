from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from commerce_bot.core.config import settings
from commerce_bot.database import functions  # noqa: F401  registers fold()

engine = create_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

erp_engine = create_engine(settings.erp_database_url, pool_pre_ping=True)
ErpSessionLocal = sessionmaker(bind=erp_engine, autocommit=False, autoflush=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
