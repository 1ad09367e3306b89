"""
CRUD repository for the ``recordings`` table.

``RecordingRepository`` receives an ``AsyncSession`` and provides all
data-access methods.  It calls ``flush()`` rather than ``commit()`` so
that transaction boundaries are controlled by the caller (typically
:func:`get_session`).
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from readaloud.core.exceptions import RecordingNotFoundError
from readaloud.services.storage.models_db import Recording

logger = logging.getLogger(__name__)


class RecordingRepository:
    """Data-access layer for submitted recordings.

    All methods use ``flush()`` instead of ``commit()`` so transaction
    boundaries are controlled by the caller (typically ``get_session()``
    context manager which commits on clean exit).

    Args:
        session: An active SQLAlchemy ``AsyncSession``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_recording(
        self,
        script_id: str | None = None,
        script_text: str | None = None,
        transcription: str | None = None,
    ) -> Recording:
        """Insert a recording without a storage path and return it with its id."""
        recording = Recording(
            script_id=script_id,
            script_text=script_text,
            transcription=transcription,
        )
        self._session.add(recording)
        await self._session.flush()
        logger.debug("Recording created: id=%s script_id=%s", recording.id, script_id)
        return recording

    async def get_recording(self, recording_id: int) -> Recording:
        """Return a recording by ID or raise :class:`RecordingNotFoundError`."""
        recording = await self._session.get(Recording, recording_id)
        if recording is None:
            raise RecordingNotFoundError(recording_id)
        return recording

    async def list_recordings(
        self,
        script_id: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Recording]:
        """Return recordings newest first, optionally filtered by *script_id*."""
        stmt = select(Recording).order_by(
            Recording.submission_date.desc(), Recording.id.desc()
        )
        if script_id is not None:
            stmt = stmt.where(Recording.script_id == script_id)
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update_storage_path(self, recording_id: int, s3_filepath: str) -> Recording:
        """Record where the audio object for *recording_id* was written."""
        recording = await self.get_recording(recording_id)
        recording.s3_filepath = s3_filepath
        await self._session.flush()
        return recording
