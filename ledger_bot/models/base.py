"""
Database engine, session management, and base model.

This module is the foundation for all database operations.
Every model inherits from Base. Every HTTP request gets a session
from get_db(); the bot's store adapter opens one session per
operation through SessionLocal.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session

from ledger_bot.config import get_settings

settings = get_settings()


def make_engine(url: str) -> Engine:
    """
    Build an engine for the given database URL.

    SQLite connections are shared with worker threads (the bot runs
    each store operation off the event loop), so the same-thread
    check is switched off for SQLite URLs.
    """
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


def make_session_factory(bind: Engine) -> sessionmaker[Session]:
    """
    Session factory with explicit transaction control.

    autocommit=False: the caller decides when changes are saved.
    expire_on_commit=False: objects stay readable after commit, which
    lets the store adapter hand detached ledgers back to async code.
    """
    return sessionmaker(
        bind=bind,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


# --- Engine ---
engine = make_engine(settings.DATABASE_URL)

# --- Session Factory ---
SessionLocal = make_session_factory(engine)


# --- Base Model Class ---
# Every database model (User, Ledger) inherits from this class.
class Base(DeclarativeBase):
    pass


def init_db(bind: Engine = engine) -> None:
    """Create any missing tables. Alembic remains the tool for schema changes."""
    Base.metadata.create_all(bind=bind)


# --- Dependency for FastAPI ---
def get_db():
    """
    Provide a database session for a single request.

    The try/finally pattern ensures the session is always
    closed, preventing connection leaks.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
