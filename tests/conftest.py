"""Pytest configuration and fixtures for LabFlow tests."""

from collections.abc import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import labflow.models  # noqa: F401
from labflow.core.database import Base, get_db
from labflow.main import app
from labflow.services import ResourceService


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine with all resource tables.

    StaticPool keeps a single connection so that every session (and the
    threads FastAPI runs sync endpoints in) sees the same database.
    """
    test_engine = create_engine(
        "sqlite://",
        echo=False,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory bound to the test engine."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Database session for service-level tests."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def service(db_session: Session) -> ResourceService:
    """ResourceService on the test session."""
    return ResourceService(db_session)


@pytest.fixture
async def client(session_factory: sessionmaker[Session]) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with get_db bound to the test database."""

    def override_get_db() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    # Clean up overrides
    app.dependency_overrides.clear()
