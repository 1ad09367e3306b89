"""Live session coordination between the microphone and the transcription channel.

One ``SessionCoordinator`` binds a capture source to a live transcription
channel for a single recording session:

- captured chunks are forwarded to the channel in capture order (empty
  chunks are dropped; some providers close the socket on an empty frame),
- transcript events drive the caption and the finalized transcript buffers,
- a keep-alive task runs only while the channel is open and the microphone
  is not,
- every listener and timer is released on ``close()``.

Usage::

    async with SessionCoordinator(microphone, channel, options) as session:
        await session.start()
        await session.toggle_microphone()
        ...
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from readaloud.core.exceptions import CaptureError, ChannelError, InvalidStateError
from readaloud.core.models import AudioChunk, LiveOptions, SessionState, TranscriptEvent
from readaloud.services.audio.base import BaseMicrophone, MicrophoneEvent
from readaloud.services.audio.processor import AudioProcessor
from readaloud.services.transcription.base import TranscriptionChannel

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState, SessionState], None]
CaptionCallback = Callable[[str | None], None]
TranscriptCallback = Callable[[str], None]


@dataclass
class SessionBuffer:
    """Accumulated audio and text for one recording session.

    ``transcript_chunks`` and ``full_transcript`` are append-only: finalized
    fragments are joined by a space and by a newline respectively.
    """

    audio_chunks: list[AudioChunk] = field(default_factory=list)
    caption: str | None = None
    transcript_chunks: str = ""
    full_transcript: str = ""

    def add_chunk(self, chunk: AudioChunk) -> None:
        self.audio_chunks.append(chunk)

    def append_final(self, text: str) -> None:
        """Append a finalized fragment to both transcript buffers."""
        self.transcript_chunks += (" " if self.transcript_chunks else "") + text
        self.full_transcript += ("\n" if self.full_transcript else "") + text

    def audio_bytes(self) -> bytes | None:
        """Concatenate captured audio, or ``None`` when nothing was captured."""
        if not self.audio_chunks:
            return None
        return b"".join(chunk.data for chunk in self.audio_chunks)


class SessionCoordinator:
    """State machine binding a capture source to a transcription channel.

    States: idle -> setting_up -> ready -> streaming <-> paused -> ended.

    Args:
        microphone: Capture source emitting ``AudioChunk`` events.
        channel: Live transcription channel.
        options: Provider session configuration used for every connect.
        caption_timeout: Seconds after a final result before the caption clears.
        keep_alive_interval: Seconds between keep-alive signals while idle.
        initial_caption: Caption shown before any transcript arrives.
        on_state_change: Called with ``(old, new)`` on every transition.
        on_caption: Called whenever the displayed caption changes.
        on_transcript: Called with the full transcript after each finalized fragment.
    """

    def __init__(
        self,
        microphone: BaseMicrophone,
        channel: TranscriptionChannel,
        options: LiveOptions | None = None,
        caption_timeout: float = 3.0,
        keep_alive_interval: float = 10.0,
        initial_caption: str | None = "Powered by Deepgram",
        on_state_change: StateCallback | None = None,
        on_caption: CaptionCallback | None = None,
        on_transcript: TranscriptCallback | None = None,
    ) -> None:
        self._microphone = microphone
        self._channel = channel
        self._options = options or LiveOptions()
        self._caption_timeout = caption_timeout
        self._keep_alive_interval = keep_alive_interval
        self._on_state_change = on_state_change
        self._on_caption = on_caption
        self._on_transcript = on_transcript

        self.buffer = SessionBuffer(caption=initial_caption)
        self._state = SessionState.idle
        self._pending_connect: asyncio.Task | None = None
        self._caption_timer: asyncio.TimerHandle | None = None
        self._keep_alive_task: asyncio.Task | None = None
        self._source_unsubscribers: list[Callable[[], None]] = []
        self._stream_unsubscribers: list[Callable[[], None]] = []

    async def __aenter__(self) -> "SessionCoordinator":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Derived state (read-only for the presentation layer)
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def caption(self) -> str | None:
        return self.buffer.caption

    @property
    def full_transcript(self) -> str:
        return self.buffer.full_transcript

    @property
    def microphone(self) -> BaseMicrophone:
        return self._microphone

    @property
    def channel(self) -> TranscriptionChannel:
        return self._channel

    @property
    def keep_alive_active(self) -> bool:
        return self._keep_alive_task is not None

    @property
    def connect_pending(self) -> bool:
        return self._pending_connect is not None

    def transcript_text(self) -> str:
        """Flat transcript (fragments joined by spaces) for upload."""
        return self.buffer.transcript_chunks

    def audio_bytes(self) -> bytes | None:
        return self.buffer.audio_bytes()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Acquire the microphone, then open the transcription channel.

        Acquisition failures are logged and leave the coordinator idle.
        """
        if self._state == SessionState.ended:
            raise InvalidStateError("Session has ended")
        if self._state != SessionState.idle:
            return

        if not self._source_unsubscribers:
            self._source_unsubscribers = [
                self._microphone.add_listener(MicrophoneEvent.state_change, self._on_source_state),
                self._channel.on_state_change(self._on_source_state),
            ]

        self._transition(SessionState.setting_up)
        try:
            await self._microphone.setup()
        except CaptureError as exc:
            logger.error("Failed to set up microphone: %s", exc)
            self._transition(SessionState.idle)
            return
        logger.info("Microphone setup complete")
        self._transition(SessionState.ready)
        await self.connect()

    async def connect(self) -> None:
        """Open the channel unless it is open or a connect is already in flight.

        Concurrent callers share the single pending attempt.
        """
        if self._state == SessionState.ended or self._channel.is_open:
            return
        if self._pending_connect is None:
            self._pending_connect = asyncio.create_task(self._connect_once())
        attempt = self._pending_connect
        try:
            await asyncio.shield(attempt)
        except asyncio.CancelledError:
            # Only the shared attempt was cancelled (by close()); the caller was not
            if not attempt.cancelled():
                raise
            logger.info("Connect attempt cancelled")

    async def _connect_once(self) -> None:
        try:
            await self._channel.connect(self._options)
            logger.info("Connected to transcription service")
        except ChannelError as exc:
            logger.error("Failed to connect to transcription service: %s", exc)
        finally:
            self._pending_connect = None

    async def start_microphone(self) -> None:
        """Open the microphone, reconnecting the channel first if needed."""
        if self._state == SessionState.ended:
            raise InvalidStateError("Session has ended")
        if self._state == SessionState.idle:
            await self.start()
            if self._state == SessionState.idle:
                return
        if not self._channel.is_open:
            await self.connect()
            if not self._channel.is_open:
                logger.warning(
                    "Not starting microphone: transcription channel is %s", self._channel.state
                )
                return
        try:
            await self._microphone.start()
        except (CaptureError, InvalidStateError) as exc:
            logger.error("Failed to start microphone: %s", exc)

    async def stop_microphone(self) -> None:
        await self._microphone.stop()

    async def toggle_microphone(self) -> None:
        """Stop the microphone when open, otherwise (re)connect and start it."""
        if self._microphone.is_open:
            await self.stop_microphone()
        else:
            await self.start_microphone()

    async def close(self) -> None:
        """Release every listener and timer, the microphone and the channel."""
        if self._state == SessionState.ended:
            return
        try:
            for unsubscribe in self._source_unsubscribers:
                unsubscribe()
            self._source_unsubscribers = []
            self._detach_stream()
            self._cancel_caption_timer()
            self._stop_keep_alive()
            if self._pending_connect is not None:
                self._pending_connect.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._pending_connect
                self._pending_connect = None
            await self._microphone.close()
        finally:
            try:
                await self._channel.disconnect()
            finally:
                self._transition(SessionState.ended)

    def clear_buffer(self, caption: str | None = None) -> None:
        """Discard captured audio and transcripts to start a new take."""
        self._cancel_caption_timer()
        self.buffer = SessionBuffer(caption=caption)
        self._notify_caption()

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def wav_bytes(self) -> bytes | None:
        """Captured audio as an in-memory WAV file, or ``None`` if empty."""
        audio = self.audio_bytes()
        if audio is None:
            return None
        return AudioProcessor(sample_rate=self._options.sample_rate).to_wav_bytes(audio)

    def save_recording(self, path: str | Path, sample_rate: int | None = None) -> str | None:
        """Write captured audio as WAV; returns the path or ``None`` if empty."""
        audio = self.audio_bytes()
        if audio is None:
            return None
        processor = AudioProcessor(sample_rate=sample_rate or self._options.sample_rate)
        return processor.save_wav(audio, path)

    def save_transcript(self, path: str | Path) -> str | None:
        """Write the flat transcript; returns the path or ``None`` if blank."""
        if not self.buffer.transcript_chunks.strip():
            return None
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.buffer.transcript_chunks, encoding="utf-8")
        return str(target.resolve())

    # ------------------------------------------------------------------
    # Reactions to microphone / channel state
    # ------------------------------------------------------------------

    def _on_source_state(self, _state) -> None:
        if self._state == SessionState.ended:
            return
        self._sync_keep_alive()

        both_open = self._microphone.is_open and self._channel.is_open
        if self._state == SessionState.streaming and not both_open:
            self._detach_stream()
            self._cancel_caption_timer()
            if self._microphone.is_open:
                logger.warning("Transcription channel %s while recording", self._channel.state)
            self._transition(SessionState.paused)
        elif self._state in (SessionState.ready, SessionState.paused) and both_open:
            self._attach_stream()
            self._transition(SessionState.streaming)

    def _attach_stream(self) -> None:
        self._detach_stream()
        self._stream_unsubscribers = [
            self._microphone.add_listener(MicrophoneEvent.data_available, self._on_data),
            self._channel.on_transcript(self._handle_transcript),
        ]
        logger.debug("Streaming listeners attached")

    def _detach_stream(self) -> None:
        for unsubscribe in self._stream_unsubscribers:
            unsubscribe()
        self._stream_unsubscribers = []

    def _on_data(self, chunk: AudioChunk) -> None:
        if chunk.size == 0:
            logger.debug("Discarding zero-length audio chunk")
            return
        self.buffer.add_chunk(chunk)
        try:
            self._channel.send(chunk)
        except ChannelError as exc:
            logger.error("Failed to send audio chunk: %s", exc)

    def _handle_transcript(self, event: TranscriptEvent) -> None:
        text = event.text.strip()
        if text:
            self._cancel_caption_timer()
            self.buffer.caption = text
            self._notify_caption()

        if event.is_final and event.speech_final and text:
            self.buffer.append_final(text)
            loop = asyncio.get_running_loop()
            self._caption_timer = loop.call_later(self._caption_timeout, self._expire_caption)
            if self._on_transcript is not None:
                self._on_transcript(self.buffer.full_transcript)

    def _expire_caption(self) -> None:
        self._caption_timer = None
        self.buffer.caption = None
        self._notify_caption()

    def _cancel_caption_timer(self) -> None:
        if self._caption_timer is not None:
            self._caption_timer.cancel()
            self._caption_timer = None

    # ------------------------------------------------------------------
    # Keep-alive
    # ------------------------------------------------------------------

    def _sync_keep_alive(self) -> None:
        """Run the keep-alive task iff the channel is open and the mic is not."""
        should_run = self._channel.is_open and not self._microphone.is_open
        if should_run and self._keep_alive_task is None:
            self._channel.keep_alive()
            self._keep_alive_task = asyncio.get_running_loop().create_task(self._keep_alive_loop())
        elif not should_run:
            self._stop_keep_alive()

    def _stop_keep_alive(self) -> None:
        if self._keep_alive_task is not None:
            self._keep_alive_task.cancel()
            self._keep_alive_task = None

    async def _keep_alive_loop(self) -> None:
        while True:
            await asyncio.sleep(self._keep_alive_interval)
            self._channel.keep_alive()

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _transition(self, new_state: SessionState) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        logger.info("Session %s -> %s", old_state, new_state)
        if self._on_state_change is not None:
            self._on_state_change(old_state, new_state)

    def _notify_caption(self) -> None:
        if self._on_caption is not None:
            self._on_caption(self.buffer.caption)
