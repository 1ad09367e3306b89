"""Deepgram live transcription over a WebSocket.

Outbound audio and control frames go through one ordered queue drained by
a sender task, so ``send()`` and ``keep_alive()`` never block the caller and
frames leave in call order. A reader task turns ``Results`` messages into
``TranscriptEvent`` objects for subscribers.
"""

import asyncio
import contextlib
import json
import logging
from urllib.parse import urlencode

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from readaloud.core.config import get_settings
from readaloud.core.exceptions import ChannelError
from readaloud.core.models import AudioChunk, ConnectionState, LiveOptions, TranscriptEvent
from readaloud.services.transcription.base import TranscriptionChannel

logger = logging.getLogger(__name__)

KEEP_ALIVE_MESSAGE = json.dumps({"type": "KeepAlive"})
CLOSE_STREAM_MESSAGE = json.dumps({"type": "CloseStream"})

_INFO_MESSAGES = {"Metadata", "UtteranceEnd", "SpeechStarted"}


class DeepgramChannel(TranscriptionChannel):
    """Live transcription channel for the Deepgram streaming API.

    Args:
        api_key: Deepgram API key (falls back to settings if not provided).
        url: Streaming endpoint URL.
        open_timeout: Seconds to wait for the WebSocket handshake.
        close_timeout: Seconds to wait for queued frames to flush on disconnect.
    """

    def __init__(
        self,
        api_key: str | None = None,
        url: str | None = None,
        open_timeout: float = 10.0,
        close_timeout: float = 5.0,
    ) -> None:
        super().__init__()
        settings = get_settings()
        self._api_key = api_key or settings.deepgram_api_key
        self._url = url or settings.deepgram_url
        self._open_timeout = open_timeout
        self._close_timeout = close_timeout
        self._ws: ClientConnection | None = None
        self._outbound: asyncio.Queue[bytes | str | None] = asyncio.Queue()
        self._reader: asyncio.Task | None = None
        self._sender: asyncio.Task | None = None

    def build_url(self, options: LiveOptions) -> str:
        """Return the streaming URL with *options* encoded as query parameters."""
        return f"{self._url}?{urlencode(options.to_query_params())}"

    async def connect(self, options: LiveOptions) -> None:
        if self._state in (ConnectionState.connecting, ConnectionState.open):
            logger.debug("connect() ignored: connection already %s", self._state)
            return
        if self._ws is not None:
            # Previous socket dropped by the provider; release it first
            await self.disconnect()

        self._set_state(ConnectionState.connecting)
        url = self.build_url(options)
        try:
            ws = await connect(
                url,
                additional_headers={"Authorization": f"Token {self._api_key}"},
                open_timeout=self._open_timeout,
            )
        except asyncio.CancelledError:
            self._set_state(ConnectionState.closed)
            raise
        except (OSError, TimeoutError, WebSocketException) as exc:
            logger.error("Failed to connect to Deepgram: %s", exc)
            self._set_state(ConnectionState.error)
            raise ChannelError(f"Failed to connect to transcription service: {exc}") from exc

        self._ws = ws
        self._outbound = asyncio.Queue()
        self._sender = asyncio.create_task(self._send_loop(ws))
        self._reader = asyncio.create_task(self._read_loop(ws))
        logger.info("Connected to Deepgram (model=%s)", options.model)
        self._set_state(ConnectionState.open)

    def send(self, chunk: AudioChunk) -> None:
        if not self.is_open:
            raise ChannelError(f"Cannot send audio while connection is {self._state}")
        self._outbound.put_nowait(chunk.data)

    def keep_alive(self) -> None:
        if not self.is_open:
            logger.debug("keep_alive() skipped: connection is %s", self._state)
            return
        self._outbound.put_nowait(KEEP_ALIVE_MESSAGE)

    async def disconnect(self) -> None:
        ws = self._ws
        if ws is None:
            return
        self._ws = None
        self._set_state(ConnectionState.closing)
        try:
            self._outbound.put_nowait(CLOSE_STREAM_MESSAGE)
            self._outbound.put_nowait(None)
            if self._sender is not None:
                try:
                    await asyncio.wait_for(self._sender, timeout=self._close_timeout)
                except TimeoutError:
                    logger.warning("Timed out flushing frames before close")
            await ws.close()
        except WebSocketException as exc:
            logger.warning("Error while closing Deepgram connection: %s", exc)
        finally:
            for task in (self._sender, self._reader):
                if task is not None and not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task
            self._sender = None
            self._reader = None
            self._set_state(ConnectionState.closed)

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    async def _send_loop(self, ws: ClientConnection) -> None:
        """Drain the outbound queue in order until the ``None`` sentinel."""
        while True:
            frame = await self._outbound.get()
            if frame is None:
                return
            try:
                await ws.send(frame)
            except ConnectionClosed:
                logger.debug("Dropping outbound frame: connection closed")
                return

    async def _read_loop(self, ws: ClientConnection) -> None:
        """Dispatch provider messages until the socket closes."""
        dropped = False
        try:
            async for raw in ws:
                self._handle_message(raw)
        except ConnectionClosedOK:
            pass
        except ConnectionClosed as exc:
            dropped = True
            logger.warning("Deepgram connection dropped: %s", exc)

        self._outbound.put_nowait(None)
        if self._state == ConnectionState.open:
            self._set_state(ConnectionState.error if dropped else ConnectionState.closed)

    def _handle_message(self, raw: str | bytes) -> None:
        if isinstance(raw, bytes):
            return
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding malformed message from Deepgram")
            return
        if not isinstance(message, dict):
            return

        kind = message.get("type")
        if kind == "Results":
            try:
                event = TranscriptEvent.from_results(message)
            except (AttributeError, TypeError, ValueError) as exc:
                logger.warning("Discarding malformed Results message: %s", exc)
                return
            self._emit_transcript(event)
        elif kind in _INFO_MESSAGES:
            logger.debug("Deepgram %s message", kind)
        elif kind == "Error":
            logger.warning("Deepgram error: %s", message.get("description", message))
        else:
            logger.debug("Unhandled Deepgram message type: %s", kind)
