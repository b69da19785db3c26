from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from nutriscope.db.base import Base
from nutriscope.reminders.config import settings


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    # PostgreSQL configuration with connection pooling
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 300,   # Recycle connections every 5 minutes
        "pool_pre_ping": True,  # Validate connections before use
        "pool_timeout": 30,
    }


engine = create_engine(settings.DATABASE_URL, echo=False, **_engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)


def init_db(bind=None) -> None:
    """Create reminder tables when migrations are not in use (dev, tests)."""
    from nutriscope.reminders import models  # noqa: F401  registers tables on Base

    Base.metadata.create_all(bind=bind or engine)
