"""Shared pytest fixtures for UniMatch tests.

Service tests run against an in-memory SQLite database through aiosqlite.
API and WebSocket tests use a file-backed SQLite database so the
``TestClient`` event loop can open its own connections.
"""
import itertools
import os

# Settings are read at import time by unimatch.database / unimatch.main.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool, StaticPool

import unimatch.models  # noqa: F401
from unimatch.database import Base
from unimatch.models.user import User
from unimatch.realtime.manager import ConnectionManager


# ── Async database for service tests ──────────────────────────────────────────

@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db_session):
    """Create and commit a user; keyword arguments override the defaults."""
    counter = itertools.count()

    async def _make(**overrides) -> User:
        n = next(counter)
        fields = {
            "email": f"student{n}@campus.edu",
            "first_name": f"Student{n}",
            "last_name": "Tester",
            "gender": "male",
            "age": 20,
            "college": "IIT Delhi",
            "branch": "CSE",
            "graduation_year": "2027",
            "is_approved": True,
        }
        fields.update(overrides)
        user = User(**fields)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


# ── Fake WebSocket for connection-manager / relay tests ───────────────────────

class FakeWebSocket:
    """Records what the server sends; mimics Starlette's state attribute."""

    def __init__(self, fail_on_send: bool = False):
        from starlette.websockets import WebSocketState

        self._states = WebSocketState
        self.application_state = WebSocketState.CONNECTING
        self.accepted = False
        self.closed_with: tuple[int, str] | None = None
        self.sent: list[dict] = []
        self.fail_on_send = fail_on_send

    async def accept(self):
        self.accepted = True
        self.application_state = self._states.CONNECTED

    async def send_json(self, payload):
        if self.fail_on_send:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        self.sent.append(payload)

    async def close(self, code=1000, reason=None):
        self.closed_with = (code, reason)
        self.application_state = self._states.DISCONNECTED

    def frames(self, frame_type: str) -> list[dict]:
        return [f for f in self.sent if f.get("type") == frame_type]


@pytest.fixture
def fake_ws():
    return FakeWebSocket


@pytest.fixture
def connection_manager():
    return ConnectionManager()


# ── HTTP / WebSocket app fixtures ─────────────────────────────────────────────

@pytest.fixture
def api_db(tmp_path):
    """File-backed database: a sync engine to seed, an async factory for the app."""
    url = f"sqlite:///{tmp_path / 'api.db'}"
    sync_engine = create_engine(url)
    Base.metadata.create_all(sync_engine)

    async_engine = create_async_engine(
        url.replace("sqlite://", "sqlite+aiosqlite://", 1),
        poolclass=NullPool,
    )
    factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)

    yield sync_engine, factory

    async_engine.sync_engine.dispose()
    sync_engine.dispose()


@pytest.fixture
def seed_user(api_db):
    """Insert a user through the sync engine and return its id."""
    sync_engine, _ = api_db
    counter = itertools.count()

    def _seed(**overrides) -> str:
        n = next(counter)
        fields = {
            "email": f"api{n}@campus.edu",
            "first_name": f"Api{n}",
            "last_name": "User",
            "gender": "male" if n % 2 == 0 else "female",
            "is_approved": True,
        }
        fields.update(overrides)
        with Session(sync_engine) as session:
            user = User(**fields)
            session.add(user)
            session.commit()
            return user.id

    return _seed


@pytest.fixture
def client(api_db):
    """TestClient over the real app with database and socket registry overridden."""
    from fastapi.testclient import TestClient

    from unimatch.database import get_db, get_session_factory
    from unimatch.main import app
    from unimatch.realtime.manager import get_connection_manager

    _, factory = api_db
    test_manager = ConnectionManager()

    async def _get_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: factory
    app.dependency_overrides[get_connection_manager] = lambda: test_manager

    with TestClient(app) as test_client:
        test_client.manager = test_manager
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    from unimatch.utils.security import create_access_token

    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers
