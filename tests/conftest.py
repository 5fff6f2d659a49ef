"""
Test infrastructure for the Quillgraph API.

Strategy
--------
- SQLite in-memory via aiosqlite, with StaticPool so that every session
  (resolvers open one each) shares the single in-memory connection.
- The engine is built per test and disposed at teardown.  aiosqlite ties
  its connection lock to the event loop that first used it, and each test
  runs on its own loop, so the connection must not outlive the test.
  Disposing also throws the in-memory database away.
- Foreign keys are switched on for SQLite so cascades behave as on Postgres.
- ``get_session_factory`` is overridden per app so resolvers use the test
  engine.
- Redis is disabled with ``cache._redis = None``; the CacheManager treats
  that as a permanent miss.
- Every test gets a fresh app, and so a fresh ChangeNotifier and a
  FileStorage rooted in ``tmp_path``.
"""
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from quillgraph.cache import cache
from quillgraph.database import Base, enable_sqlite_foreign_keys, get_session_factory
from quillgraph.main import create_app
from quillgraph.middleware import install_query_counter
from quillgraph.notifier import ChangeNotifier
from quillgraph.storage import FileStorage

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ---------------------------------------------------------------------------
# Database fixtures: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def engine_test() -> AsyncEngine:
    """A fresh engine and schema for each test, bound to the test's loop."""
    cache._redis = None
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    install_query_counter(engine)
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine_test) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine_test, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Application fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def notifier() -> ChangeNotifier:
    bus = ChangeNotifier(queue_size=16)
    yield bus
    bus.close()


@pytest_asyncio.fixture
async def storage(tmp_path) -> FileStorage:
    store = FileStorage(tmp_path / "uploads", "/uploads")
    store.ensure_root()
    return store


@pytest_asyncio.fixture
async def app(notifier, storage, session_factory):
    application = create_app(storage=storage, notifier=notifier)
    application.dependency_overrides[get_session_factory] = lambda: session_factory
    return application


@pytest_asyncio.fixture
async def async_client(app) -> AsyncClient:
    """httpx.AsyncClient wired to a fresh app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
