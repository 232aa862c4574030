"""Database engine and session factory."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from provider_sync.config import get_settings

_settings = get_settings()

engine = create_engine(
    _settings.database_url,
    future=True,
    pool_pre_ping=True,
    pool_timeout=_settings.db_pool_timeout_seconds,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
