"""
Pydantic v2 models and shared value types.

Live session — AudioChunk, TranscriptEvent, LiveOptions, state enums
API — Recording, upload and retrieval envelopes, Health
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: datetime


# ---------------------------------------------------------------------------
# Live session state
# ---------------------------------------------------------------------------


class MicrophoneState(StrEnum):
    """Lifecycle of the capture source."""

    not_setup = "not_setup"
    setting_up = "setting_up"
    ready = "ready"
    opening = "opening"
    open = "open"
    pausing = "pausing"
    paused = "paused"
    error = "error"


class ConnectionState(StrEnum):
    """Lifecycle of the live transcription connection."""

    closed = "closed"
    connecting = "connecting"
    open = "open"
    closing = "closing"
    error = "error"


class SessionState(StrEnum):
    """States of the session coordinator."""

    idle = "idle"
    setting_up = "setting_up"
    ready = "ready"
    streaming = "streaming"
    paused = "paused"
    ended = "ended"


@dataclass(frozen=True)
class AudioChunk:
    """One slice of captured audio, emitted at a fixed cadence."""

    data: bytes
    captured_at: float = field(default_factory=time.monotonic)

    @property
    def size(self) -> int:
        return len(self.data)


class TranscriptEvent(BaseModel):
    """A single hypothesis update from the transcription provider."""

    is_final: bool = False
    speech_final: bool = False
    text: str = ""

    @classmethod
    def from_results(cls, message: dict) -> "TranscriptEvent":
        """Build an event from a provider ``Results`` message.

        Missing or malformed alternatives yield an empty transcript.
        """
        channel = message.get("channel")
        alternatives = channel.get("alternatives") if isinstance(channel, dict) else None
        first = alternatives[0] if isinstance(alternatives, list) and alternatives else None
        if not isinstance(first, dict):
            first = {}
        return cls(
            is_final=bool(message.get("is_final", False)),
            speech_final=bool(message.get("speech_final", False)),
            text=first.get("transcript") or "",
        )


class LiveOptions(BaseModel):
    """Provider session configuration for a live transcription connection."""

    model: str = "nova-3"
    interim_results: bool = True
    smart_format: bool = True
    filler_words: bool = True
    utterance_end_ms: int = 3000
    encoding: str = "linear16"
    sample_rate: int = 16000
    channels: int = 1

    def to_query_params(self) -> dict[str, str]:
        """Serialize as URL query parameters (booleans as ``true``/``false``)."""
        params: dict[str, str] = {}
        for key, value in self.model_dump().items():
            if isinstance(value, bool):
                params[key] = "true" if value else "false"
            else:
                params[key] = str(value)
        return params


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


class RecordingResponse(BaseModel):
    """Standard recording representation returned by the API."""

    id: int
    submission_date: datetime
    script_id: str | None = None
    script_text: str | None = None
    transcription: str | None = None
    accuracy_score: float | None = None
    s3_filepath: str | None = None
    audio_url: str | None = None


class RecordingListResponse(BaseModel):
    """GET /recordings response when no storage key is given."""

    recordings: list[RecordingResponse] = Field(default_factory=list)


class SignedUrlResponse(BaseModel):
    """GET /recordings?key=... response."""

    url: str


class UploadResponse(BaseModel):
    """POST /recordings response."""

    success: bool = True
