"""Tests for the RecordingRepository CRUD layer.

All tests use an in-memory SQLite database provided by the ``repository``
fixture.
"""

from datetime import UTC, datetime, timedelta

import pytest

from readaloud.core.exceptions import RecordingNotFoundError
from readaloud.services.storage.repository import RecordingRepository


class TestCreateRecording:
    """Verify recording creation with default and explicit arguments."""

    async def test_defaults(self, repository: RecordingRepository) -> None:
        rec = await repository.create_recording()
        assert rec.id is not None
        assert rec.submission_date is not None
        assert rec.s3_filepath is None
        assert rec.accuracy_score is None

    async def test_with_fields(self, repository: RecordingRepository) -> None:
        rec = await repository.create_recording(
            script_id="1", script_text="Hello everyone", transcription="hello everyone"
        )
        assert rec.script_id == "1"
        assert rec.script_text == "Hello everyone"
        assert rec.transcription == "hello everyone"

    async def test_ids_are_distinct(self, repository: RecordingRepository) -> None:
        first = await repository.create_recording(script_id="1")
        second = await repository.create_recording(script_id="1")
        assert first.id != second.id


class TestGetRecording:
    async def test_existing(self, repository: RecordingRepository) -> None:
        created = await repository.create_recording()
        fetched = await repository.get_recording(created.id)
        assert fetched.id == created.id

    async def test_not_found_raises(self, repository: RecordingRepository) -> None:
        with pytest.raises(RecordingNotFoundError):
            await repository.get_recording(9999)


class TestListRecordings:
    async def test_newest_first(self, repository: RecordingRepository) -> None:
        older = await repository.create_recording(script_id="a")
        newer = await repository.create_recording(script_id="b")
        older.submission_date = datetime.now(UTC) - timedelta(days=1)

        recordings = await repository.list_recordings()
        assert [r.id for r in recordings] == [newer.id, older.id]

    async def test_same_timestamp_orders_by_id(self, repository: RecordingRepository) -> None:
        stamp = datetime.now(UTC)
        first = await repository.create_recording()
        second = await repository.create_recording()
        first.submission_date = stamp
        second.submission_date = stamp

        recordings = await repository.list_recordings()
        assert [r.id for r in recordings] == [second.id, first.id]

    async def test_filter_by_script(self, repository: RecordingRepository) -> None:
        await repository.create_recording(script_id="1")
        await repository.create_recording(script_id="2")
        recordings = await repository.list_recordings(script_id="2")
        assert [r.script_id for r in recordings] == ["2"]

    async def test_limit_offset(self, repository: RecordingRepository) -> None:
        for _ in range(5):
            await repository.create_recording()
        assert len(await repository.list_recordings(limit=2)) == 2
        assert len(await repository.list_recordings(limit=10, offset=3)) == 2

    async def test_empty(self, repository: RecordingRepository) -> None:
        assert await repository.list_recordings() == []


class TestUpdateStoragePath:
    async def test_sets_path(self, repository: RecordingRepository) -> None:
        rec = await repository.create_recording(script_id="1")
        updated = await repository.update_storage_path(rec.id, f"scripts/1/{rec.id}.mpeg")
        assert updated.s3_filepath == f"scripts/1/{rec.id}.mpeg"

    async def test_unknown_id_raises(self, repository: RecordingRepository) -> None:
        with pytest.raises(RecordingNotFoundError):
            await repository.update_storage_path(424242, "scripts/x/1.mpeg")
