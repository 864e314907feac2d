"""
Pytest fixtures for IT Cook backend tests.
"""
import asyncio
import json
import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from starlette.websockets import WebSocketState

# Set test environment variables before importing modules
_TEST_DB_DIR = tempfile.mkdtemp(prefix="itcook-tests-")
os.environ['DATABASE_URL'] = f"sqlite+aiosqlite:///{_TEST_DB_DIR}/api.db"
os.environ['JWT_SECRET_KEY'] = "test-secret"
os.environ['LOG_LEVEL'] = "DEBUG"

# Import all models to ensure they are registered with Base.metadata
from database.base import Base
from database.models import User
from services.realtime import BroadcastHub, ConnectionRegistry, RealtimeService

# In-memory SQLite database for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeClock:
    """Controllable clock for registry timing."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeWebSocket:
    """Starlette-like WebSocket driven from the test."""

    def __init__(self):
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.frames: asyncio.Queue = asyncio.Queue()
        self.sent: list[str] = []
        self.accepted = False
        self.close_calls = 0
        self.fail_send = False
        self.application_state = WebSocketState.CONNECTING
        self.client_state = WebSocketState.CONNECTING

    async def accept(self):
        self.accepted = True
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED

    async def receive(self):
        message = await self.inbound.get()
        if message["type"] == "websocket.disconnect":
            self.client_state = WebSocketState.DISCONNECTED
        return message

    async def send_text(self, data: str):
        if self.fail_send:
            raise RuntimeError("peer is gone")
        self.sent.append(data)
        self.frames.put_nowait(data)

    async def close(self, code: int = 1000):
        self.close_calls += 1
        self.application_state = WebSocketState.DISCONNECTED

    # Test helpers
    def push(self, payload):
        text = payload if isinstance(payload, str) else json.dumps(payload)
        self.inbound.put_nowait({"type": "websocket.receive", "text": text})

    def push_bytes(self, data: bytes):
        self.inbound.put_nowait({"type": "websocket.receive", "bytes": data})

    def disconnect(self, code: int = 1000):
        self.inbound.put_nowait({"type": "websocket.disconnect", "code": code})

    async def next_frame(self, timeout: float = 1.0) -> dict:
        return json.loads(await asyncio.wait_for(self.frames.get(), timeout))

    async def frame_of_type(self, event_type: str, timeout: float = 1.0) -> dict:
        """Skip frames until one of the given type arrives."""
        while True:
            frame = await self.next_frame(timeout)
            if frame["type"] == event_type:
                return frame


async def wait_until(predicate, timeout: float = 1.0):
    """Poll the predicate until it holds or fail the test."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            pytest.fail("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture(scope="function")
async def db_session():
    """Create an in-memory SQLite database session for testing."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def hub():
    return BroadcastHub(global_capacity=1000, channel_capacity=100)


@pytest.fixture
def registry(hub, clock):
    return ConnectionRegistry(hub, clock=clock)


@pytest.fixture
def realtime(hub, registry):
    return RealtimeService(hub, registry)


@pytest.fixture
def fake_ws():
    return FakeWebSocket()


@pytest.fixture
def make_ws():
    return FakeWebSocket


@pytest.fixture
def sample_user_data():
    """Sample user data for testing."""
    return {
        "email": "alice@itcook.app",
        "password_hash": "not-a-real-hash",
        "first_name": "Alice",
        "last_name": "Cook",
    }


@pytest.fixture
async def sample_user(db_session, sample_user_data):
    """Create a sample user in the database."""
    user = User(**sample_user_data)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def second_user(db_session):
    user = User(
        email="bob@itcook.app",
        password_hash="not-a-real-hash",
        first_name="Bob",
        last_name="Baker",
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def wait_for():
    return wait_until
