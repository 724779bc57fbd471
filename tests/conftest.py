"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ember.config import Settings
from ember.db.models import Base, MemoryRecord
from ember.wake.estimator import TokenEstimator

DOG_TEXT = "user says their dog Max turned 5 today, they cried a little"

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def session_factory(tmp_path) -> async_sessionmaker[AsyncSession]:
    """File-backed SQLite database, one per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ember.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def config(tmp_path) -> Settings:
    """Offline settings: static extraction, extractive compression, no backoff."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'ember.db'}",
        extraction_backend="static",
        compression_backend="extractive",
        job_backoff_seconds=0.0,
        job_timeout_seconds=5.0,
        worker_concurrency=2,
    )


@pytest.fixture
def dog_text() -> str:
    return DOG_TEXT


@pytest.fixture
def estimator() -> TokenEstimator:
    return TokenEstimator()


@pytest.fixture
async def owner(session_factory) -> tuple[str, str]:
    """An account with its default profile: (account_id, profile_id)."""
    from ember.services.accounts import AccountService

    account_id, profile = await AccountService(session_factory).create_account("user_test")
    return account_id, profile.id


@pytest.fixture
def make_record():
    """Build MemoryRecord instances with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides) -> MemoryRecord:
        counter["n"] += 1
        n = counter["n"]
        values = {
            "id": f"mem-{n:03d}",
            "profile_id": "profile-1",
            "capture_id": "capture-1",
            "category": "relationships",
            "factual_content": f"Fact number {n}",
            "emotional_significance": None,
            "importance": 3,
            "verbatim_text": f"verbatim excerpt {n}",
            "summary_text": None,
            "prefer_verbatim": False,
            "verbatim_tokens": 10,
            "summary_tokens": None,
            "created_at": BASE_TIME + timedelta(minutes=n),
        }
        values.update(overrides)
        return MemoryRecord(**values)

    return _make


@pytest.fixture
def mock_anthropic_response() -> Mock:
    """Mock Anthropic messages.create response."""
    response = Mock()
    response.content = [Mock(type="text", text='{"memories": []}')]
    response.model = "claude-sonnet-4-5-20250929"
    response.usage = Mock(input_tokens=10, output_tokens=5)
    response.stop_reason = "end_turn"
    return response
