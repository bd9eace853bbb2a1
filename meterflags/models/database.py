"""
SQLAlchemy engine and session factory.
The engine is synchronous: every operation completes in one pass.
"""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from meterflags.config import settings


class Base(DeclarativeBase):
    pass


def build_engine(url: Optional[str] = None) -> Engine:
    return create_engine(url or settings.DATABASE_URL, echo=settings.DB_ECHO)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create tables that do not exist yet."""
    # Import registers the mapped classes on Base.metadata
    from meterflags.models import tables  # noqa: F401

    Base.metadata.create_all(engine)
