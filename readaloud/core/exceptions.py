"""
ReadAloud exception hierarchy.

All application-specific exceptions inherit from ReadAloudError,
enabling centralized error handling in the API middleware layer.
"""

from datetime import UTC, datetime


class ReadAloudError(Exception):
    """Base exception for all ReadAloud errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "READALOUD_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Live session
# ---------------------------------------------------------------------------


class CaptureError(ReadAloudError):
    """Raised when the microphone cannot be acquired or driven."""

    def __init__(
        self,
        detail: str = "Microphone capture failed",
        code: str = "CAPTURE_ERROR",
    ) -> None:
        super().__init__(detail=detail, code=code, status_code=500)


class MicrophonePermissionError(CaptureError):
    """Raised when access to the microphone is denied."""

    def __init__(self, detail: str = "Microphone access was denied") -> None:
        super().__init__(detail=detail, code="MICROPHONE_PERMISSION_DENIED")


class MicrophoneDeviceError(CaptureError):
    """Raised when no usable input device is available."""

    def __init__(self, detail: str = "No usable microphone found") -> None:
        super().__init__(detail=detail, code="MICROPHONE_UNAVAILABLE")


class InvalidStateError(ReadAloudError):
    """Raised when an operation is not allowed in the current state."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail=detail, code="INVALID_STATE", status_code=409)


class ChannelError(ReadAloudError):
    """Raised when the live transcription connection fails."""

    def __init__(self, detail: str = "Transcription channel error") -> None:
        super().__init__(detail=detail, code="CHANNEL_ERROR", status_code=502)


# ---------------------------------------------------------------------------
# Upload / retrieval
# ---------------------------------------------------------------------------


class UploadValidationError(ReadAloudError):
    """Raised when an upload is missing required fields."""

    def __init__(self, detail: str = "File and scriptId are required") -> None:
        super().__init__(detail=detail, code="VALIDATION_ERROR", status_code=400)


class PersistenceError(ReadAloudError):
    """Raised when the record store rejects a write."""

    def __init__(self, detail: str = "Failed to create database record") -> None:
        super().__init__(detail=detail, code="PERSISTENCE_ERROR", status_code=500)


class StorageError(ReadAloudError):
    """Raised when an object storage operation fails."""

    def __init__(self, detail: str = "Failed to upload file", key: str | None = None) -> None:
        self.key = key
        super().__init__(detail=detail, code="STORAGE_ERROR", status_code=500)


class RecordingNotFoundError(ReadAloudError):
    """Raised when a recording ID does not exist."""

    def __init__(self, recording_id: int | str) -> None:
        super().__init__(
            detail=f"Recording not found: {recording_id}",
            code="RECORDING_NOT_FOUND",
            status_code=404,
        )
