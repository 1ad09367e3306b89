"""
Synchronous HTTP client for the ReadAloud backend API.

Uses ``httpx.Client`` (sync) because Streamlit scripts run synchronously.
"""

import logging

import httpx
import streamlit as st

from readaloud.core.exceptions import UploadValidationError

logger = logging.getLogger(__name__)


class APIError(Exception):
    """User-friendly API error with categorized message.

    Categories: "connection", "timeout", "http", "network", "unknown".
    Used by the UI to display appropriate error messages.
    """

    def __init__(
        self, message: str, category: str = "unknown", status_code: int | None = None
    ) -> None:
        self.message = message
        self.category = category
        self.status_code = status_code
        super().__init__(message)


class APIClient:
    """Thin synchronous wrapper around httpx for calling the FastAPI backend.

    All methods return parsed JSON dicts or raise ``APIError`` with
    user-friendly messages for display in the UI.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            base_url: Base URL of the ReadAloud FastAPI backend.
            transport: Optional httpx transport (used in tests).
        """
        self._base_url = base_url.rstrip("/")
        self._client = httpx.Client(base_url=self._base_url, timeout=30.0, transport=transport)

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with user-friendly error handling.

        Args:
            method: HTTP method name ("get", "post").
            path: API endpoint path (e.g. "/api/v1/recordings").
            **kwargs: Passed through to httpx (data, files, params, timeout, etc.).

        Returns:
            The httpx Response object with a successful status code.

        Raises:
            APIError: On connection, timeout, HTTP status, or network errors.
        """
        try:
            resp = getattr(self._client, method)(path, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.ConnectError:
            raise APIError(
                "Backend server is not running. "
                "Start it with: `uvicorn readaloud.api.app:app --reload --port 8000`",
                category="connection",
            ) from None
        except httpx.TimeoutException:
            raise APIError(
                "Request timed out. The server may be overloaded.",
                category="timeout",
            ) from None
        except httpx.HTTPStatusError as exc:
            try:
                detail = exc.response.json().get("error", exc.response.text)
            except ValueError:
                detail = exc.response.text or str(exc)
            logger.warning("API %s %s failed: %s", method.upper(), path, exc.response.status_code)
            raise APIError(
                str(detail), category="http", status_code=exc.response.status_code
            ) from None
        except httpx.HTTPError as exc:
            raise APIError(f"Network error: {exc}", category="network") from None

    def close(self) -> None:
        self._client.close()

    # -- health --

    def health_check(self) -> dict:
        return self._request("get", "/health").json()

    def check_connection(self) -> tuple[bool, str]:
        """Check if the backend is reachable. Returns (ok, message)."""
        try:
            self.health_check()
            return True, "Connected"
        except APIError as exc:
            return False, exc.message

    # -- recordings --

    def upload_recording(
        self,
        audio: bytes | None,
        script_id: str,
        script_text: str = "",
        transcription: str = "",
        filename: str = "recording.wav",
        content_type: str = "audio/wav",
    ) -> dict:
        """Submit a finished take as multipart form data.

        Raises:
            UploadValidationError: If there is no audio to send. No request
                is made in that case.
            APIError: If the backend rejects the upload.
        """
        if not audio:
            raise UploadValidationError("No audio recorded")
        data = {
            "scriptId": script_id,
            "scriptText": script_text,
            "transcription": transcription,
        }
        files = {"file": (filename, audio, content_type)}
        return self._request(
            "post", "/api/v1/recordings", data=data, files=files, timeout=120.0
        ).json()

    def list_recordings(self, script_id: str | None = None) -> list[dict]:
        params = {"scriptId": script_id} if script_id else None
        return self._request("get", "/api/v1/recordings", params=params).json()["recordings"]

    def get_recording(self, recording_id: int) -> dict:
        return self._request("get", f"/api/v1/recordings/{recording_id}").json()

    def get_signed_url(self, key: str) -> str:
        """Request a fresh time-limited playback URL for a storage key."""
        return self._request("get", "/api/v1/recordings", params={"key": key}).json()["url"]


@st.cache_resource
def get_api_client(base_url: str = "http://localhost:8000") -> APIClient:
    """Return a cached APIClient, keyed by base_url.

    Uses Streamlit's ``cache_resource`` to persist the client across reruns.
    When the base URL changes (e.g. user updates sidebar), a new client
    is created automatically because the cache key includes the parameter.
    """
    return APIClient(base_url=base_url)
