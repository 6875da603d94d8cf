"""
Shared test fixtures.

Every test gets its own SQLite file under tmp_path, so tests never
touch the real database and never see each other's data. A file
(rather than :memory:) is used because the async store adapter
opens its sessions on worker threads.
"""

import pytest
from fastapi.testclient import TestClient

import ledger_bot.models  # noqa: F401  registers the tables on Base.metadata
from ledger_bot.main import app
from ledger_bot.models.base import Base, get_db, make_engine, make_session_factory
from ledger_bot.schemas.ledger import UserCreate, UserRef
from ledger_bot.services.ledger_store import LedgerStore
from ledger_bot.services.user_service import UserService


@pytest.fixture
def engine(tmp_path):
    """Create all tables before each test, drop them after."""
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    """Provide a database session for direct service testing."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(db_session):
    """
    Provide a test client with the test database.

    get_db is overridden so the FastAPI app uses the test session
    instead of the real database.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def store(session_factory):
    return LedgerStore(session_factory)


def register(session_factory, username: str) -> UserRef:
    """Register a user in its own committed transaction."""
    with session_factory() as session:
        user = UserService(session).create_user(UserCreate(username=username))
        session.commit()
        return UserRef.model_validate(user)


@pytest.fixture
def alice(session_factory) -> UserRef:
    return register(session_factory, "alice")


@pytest.fixture
def bob(session_factory) -> UserRef:
    return register(session_factory, "bob")
