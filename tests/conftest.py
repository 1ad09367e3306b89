"""Shared pytest fixtures for the ReadAloud test suite.

Provides fake capture sources and transcription channels implementing the
service interfaces, an in-memory object store, PCM audio samples and
in-memory SQLite database helpers.
"""

import struct

import pytest

from readaloud.core.exceptions import MicrophonePermissionError
from tests.fakes import FakeChannel, FakeMicrophone, MemoryStorage

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


@pytest.fixture
def microphone():
    return FakeMicrophone()


@pytest.fixture
def denied_microphone():
    return FakeMicrophone(setup_error=MicrophonePermissionError())


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def memory_storage():
    return MemoryStorage()


# ---------------------------------------------------------------------------
# Audio Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_pcm_bytes():
    """Generate 1 second of 440Hz sine-wave PCM audio (16kHz, 16-bit, mono).

    Returns:
        bytes: Raw PCM audio data.
    """
    import math

    sample_rate = 16000
    duration = 1.0
    frequency = 440.0
    amplitude = 16000  # ~50% of max int16

    samples = []
    for i in range(int(sample_rate * duration)):
        value = int(amplitude * math.sin(2 * math.pi * frequency * i / sample_rate))
        samples.append(struct.pack("<h", value))
    return b"".join(samples)


@pytest.fixture
def silent_pcm_bytes():
    """Generate 1 second of silence as PCM audio (16kHz, 16-bit, mono)."""
    sample_rate = 16000
    return b"\x00\x00" * sample_rate


# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine with tables, dispose after test."""
    from sqlalchemy.ext.asyncio import create_async_engine

    from readaloud.services.storage import models_db  # noqa: F401
    from readaloud.services.storage.database import Base

    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Yield an AsyncSession bound to the test engine; rolls back after test."""
    from sqlalchemy.ext.asyncio import async_sessionmaker

    factory = async_sessionmaker(db_engine, expire_on_commit=False)
    async with factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def repository(db_session):
    """Return a RecordingRepository bound to the test session."""
    from readaloud.services.storage.repository import RecordingRepository

    return RecordingRepository(db_session)


@pytest.fixture
def use_test_db(db_engine):
    """Route ``get_session()`` to the in-memory engine for the test."""
    from readaloud.services.storage import database

    database._engine = db_engine
    database._session_factory = None
    yield db_engine
    database.reset_engine()
