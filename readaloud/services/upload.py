"""
Server half of the upload gateway.

A submission is a non-atomic two-phase write:

1. validate the request (no side effects on failure),
2. insert the ``Recording`` row in its own committed transaction so its id
   can name the stored object,
3. write the audio object,
4. record the object key on the row in a second transaction.

Step 4 is best effort. When it fails the object already exists, so the call
still succeeds and the inconsistency is logged as a partial upload.
"""

import logging
from pathlib import PurePosixPath

from sqlalchemy.exc import SQLAlchemyError

from readaloud.core.config import get_settings
from readaloud.core.exceptions import (
    PersistenceError,
    RecordingNotFoundError,
    UploadValidationError,
)
from readaloud.core.models import RecordingResponse
from readaloud.services.storage.database import get_session
from readaloud.services.storage.models_db import Recording
from readaloud.services.storage.object_store import ObjectStorage
from readaloud.services.storage.repository import RecordingRepository

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".mpeg"
DEFAULT_CONTENT_TYPE = "audio/mpeg"


def build_storage_key(script_id: str, recording_id: int, extension: str = DEFAULT_EXTENSION) -> str:
    """Return the object key for a recording, namespaced by its script."""
    return f"scripts/{script_id}/{recording_id}{extension}"


def _extension_for(filename: str | None) -> str:
    suffix = PurePosixPath(filename).suffix.lower() if filename else ""
    return suffix or DEFAULT_EXTENSION


class UploadService:
    """Stores submitted recordings and hands out playback URLs.

    Args:
        storage: Object storage backend receiving the audio.
        url_expiry_s: Lifetime of generated signed URLs. Defaults to
            ``settings.signed_url_expiry_s``.
    """

    def __init__(self, storage: ObjectStorage, url_expiry_s: int | None = None) -> None:
        self._storage = storage
        self._url_expiry_s = url_expiry_s or get_settings().signed_url_expiry_s

    async def submit(
        self,
        audio: bytes | None,
        script_id: str | None,
        script_text: str | None = None,
        transcription: str | None = None,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> str:
        """Persist one recording and return the storage key of its audio.

        Raises:
            UploadValidationError: ``audio`` or ``script_id`` is missing.
            PersistenceError: The record could not be created; nothing was
                written to storage.
            StorageError: The audio object could not be written. The record
                remains with a null ``s3_filepath``.
        """
        if not audio or not script_id:
            raise UploadValidationError()

        try:
            async with get_session() as session:
                repo = RecordingRepository(session)
                recording = await repo.create_recording(
                    script_id=script_id,
                    script_text=script_text,
                    transcription=transcription,
                )
                recording_id = recording.id
        except SQLAlchemyError as exc:
            logger.exception("Failed to create recording for script %s", script_id)
            raise PersistenceError() from exc

        key = build_storage_key(script_id, recording_id, _extension_for(filename))
        await self._storage.upload(key, audio, content_type or DEFAULT_CONTENT_TYPE)

        try:
            async with get_session() as session:
                repo = RecordingRepository(session)
                await repo.update_storage_path(recording_id, key)
        except (SQLAlchemyError, RecordingNotFoundError):
            logger.warning(
                "Partial upload: object %s was stored but recording %s was not updated",
                key,
                recording_id,
                exc_info=True,
            )
        else:
            logger.info("Recording %s stored at %s", recording_id, key)

        return key

    async def signed_url(self, key: str) -> str:
        """Return a fresh time-limited URL for *key*."""
        return await self._storage.signed_url(key, self._url_expiry_s)

    async def list_recordings(
        self,
        script_id: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[RecordingResponse]:
        """Return recordings newest first, each with a fresh ``audio_url``."""
        async with get_session() as session:
            repo = RecordingRepository(session)
            recordings = await repo.list_recordings(script_id=script_id, limit=limit, offset=offset)
        return [await self._to_response(r) for r in recordings]

    async def get_recording(self, recording_id: int) -> RecordingResponse:
        async with get_session() as session:
            repo = RecordingRepository(session)
            recording = await repo.get_recording(recording_id)
        return await self._to_response(recording)

    async def _to_response(self, recording: Recording) -> RecordingResponse:
        audio_url = None
        if recording.s3_filepath:
            audio_url = await self.signed_url(recording.s3_filepath)
        return RecordingResponse(
            id=recording.id,
            submission_date=recording.submission_date,
            script_id=recording.script_id,
            script_text=recording.script_text,
            transcription=recording.transcription,
            accuracy_score=recording.accuracy_score,
            s3_filepath=recording.s3_filepath,
            audio_url=audio_url,
        )
