"""
Recording upload and retrieval endpoints.

``POST /recordings`` accepts a finished take as multipart form data;
``GET /recordings`` either signs a single storage key or lists every
recording with a fresh playback URL. All work is delegated to
``UploadService``.
"""

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from readaloud.api.dependencies import get_upload_service
from readaloud.core.models import (
    RecordingListResponse,
    RecordingResponse,
    SignedUrlResponse,
    UploadResponse,
)
from readaloud.services.upload import UploadService

router = APIRouter(prefix="/recordings", tags=["recordings"])


@router.post("", response_model=UploadResponse)
async def upload_recording(
    file: UploadFile | None = File(None),
    script_id: str | None = Form(None, alias="scriptId"),
    script_text: str | None = Form(None, alias="scriptText"),
    transcription: str | None = Form(None),
    service: UploadService = Depends(get_upload_service),
):
    """Store the audio of one reading together with its transcript."""
    audio = await file.read() if file is not None else None
    await service.submit(
        audio,
        script_id,
        script_text=script_text,
        transcription=transcription,
        filename=file.filename if file is not None else None,
        content_type=file.content_type if file is not None else None,
    )
    return UploadResponse()


@router.get("", response_model=SignedUrlResponse | RecordingListResponse)
async def get_recordings(
    key: str | None = Query(None),
    script_id: str | None = Query(None, alias="scriptId"),
    service: UploadService = Depends(get_upload_service),
):
    """Return a signed URL for ``key``, or all recordings newest first."""
    if key:
        return SignedUrlResponse(url=await service.signed_url(key))
    return RecordingListResponse(recordings=await service.list_recordings(script_id=script_id))


@router.get("/{recording_id}", response_model=RecordingResponse)
async def get_recording(
    recording_id: int,
    service: UploadService = Depends(get_upload_service),
):
    """Get a single recording by ID."""
    return await service.get_recording(recording_id)
