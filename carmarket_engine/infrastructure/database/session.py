"""Engine and session factory for the marketplace database"""

from typing import Any, Dict, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from carmarket_engine.config import settings
from carmarket_engine.infrastructure.database.models import Base


def _engine_options(database_url: str) -> Dict[str, Any]:
    """Pool sizing for server databases; SQLite only needs cross-thread access"""
    if make_url(database_url).get_backend_name() == "sqlite":
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_recycle": settings.db_pool_recycle_seconds,
    }


engine = create_engine(settings.database_url, **_engine_options(settings.database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create missing tables (local runs; managed environments migrate separately)"""
    Base.metadata.create_all(bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; handlers commit, the session is always closed"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
