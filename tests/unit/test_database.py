"""Tests for database lifecycle helpers (init, sessions, engine reset)."""

import pytest
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine

from readaloud.services.storage import database


async def test_init_db_creates_recordings_table():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    await database.init_db(engine)
    async with engine.connect() as conn:
        tables = await conn.run_sync(lambda c: inspect(c).get_table_names())
    assert "recordings" in tables
    # Running again on an existing schema is a no-op
    await database.init_db(engine)
    await engine.dispose()


async def test_get_session_commits(use_test_db):
    from readaloud.services.storage.repository import RecordingRepository

    async with database.get_session() as session:
        rec = await RecordingRepository(session).create_recording(script_id="7")
    async with database.get_session() as session:
        fetched = await RecordingRepository(session).get_recording(rec.id)
    assert fetched.script_id == "7"


def test_sqlite_parent_dir_created(tmp_path):
    target = tmp_path / "nested" / "app.db"
    database._ensure_sqlite_dir(f"sqlite+aiosqlite:///{target}")
    assert target.parent.is_dir()


async def test_close_db_resets_globals(tmp_path):
    database.reset_engine()
    database.get_engine(f"sqlite+aiosqlite:///{tmp_path / 'x.db'}")
    assert database._engine is not None
    await database.close_db()
    assert database._engine is None
    assert database._session_factory is None


async def test_get_session_rolls_back_on_error(use_test_db):
    from readaloud.services.storage.repository import RecordingRepository

    with pytest.raises(RuntimeError):
        async with database.get_session() as session:
            await RecordingRepository(session).create_recording(script_id="lost")
            raise RuntimeError("abort")
    async with database.get_session() as session:
        assert await RecordingRepository(session).list_recordings() == []
