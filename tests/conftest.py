from collections.abc import AsyncGenerator, Generator

import pytest
import structlog
from fastapi.testclient import TestClient

from syncq.config.settings import Settings
from syncq.infra.database import Database
from syncq.main import create_app
from syncq.v1.core.registries import JobRegistry
from syncq.v1.jobs.service import JobQueue
from syncq.v1.jobs.store import JobStore

START_MS = 1_700_000_000_000


class FakeClock:
    """Millisecond clock that only moves when a test advances it."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture(autouse=True)
def plain_logging(monkeypatch):
    """
    Render logs as plain key=value lines instead of rich tracebacks.

    Loggers are not cached, so none of them keeps a closed stream.
    """
    monkeypatch.setattr("syncq.main.setup_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr("cli.main.setup_logging", lambda *args, **kwargs: None)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(),
        ],
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}",
        job_poll_interval_ms=10,
        debug=False,
    )


@pytest.fixture
async def database(settings) -> AsyncGenerator[Database, None]:
    """Create a fresh database with the job table for each test."""
    db = Database(settings)
    await db.create_schema()
    yield db
    await db.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(database) -> JobStore:
    return JobStore(database)


@pytest.fixture
def queue(store, clock) -> JobQueue:
    return JobQueue(store, clock=clock)


@pytest.fixture
def registry() -> JobRegistry:
    """An empty job registry, isolated from the global one."""
    return JobRegistry()


@pytest.fixture
def client(settings) -> Generator[TestClient, None, None]:
    """Test client whose app lifespan creates the schema in a fresh database."""
    with TestClient(create_app(database=Database(settings))) as test_client:
        yield test_client
