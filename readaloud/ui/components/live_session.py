"""
Live session component - hosts a SessionCoordinator for a Streamlit session.

Streamlit reruns the page script on every interaction, so the coordinator
lives on a private event loop running in a background thread. The page
talks to it only through ``LiveSessionRunner``: commands are scheduled on
the loop, and the page reads a ``LiveSnapshot`` copied under a lock.
"""

import asyncio
import logging
import threading
import weakref
from collections.abc import Callable
from dataclasses import dataclass

import streamlit as st

from readaloud.core.config import Settings, get_settings
from readaloud.core.exceptions import InvalidStateError
from readaloud.core.models import AudioChunk, ConnectionState, MicrophoneState, SessionState
from readaloud.services.audio import BaseMicrophone, MicrophoneEvent, create_microphone
from readaloud.services.session import SessionCoordinator
from readaloud.services.transcription import TranscriptionChannel, create_channel

logger = logging.getLogger(__name__)

_COMMAND_TIMEOUT_S = 30.0


@dataclass(frozen=True)
class LiveSnapshot:
    """Read-only view of the session for one page render."""

    session_state: SessionState = SessionState.idle
    microphone_state: MicrophoneState = MicrophoneState.not_setup
    connection_state: ConnectionState = ConnectionState.closed
    caption: str | None = None
    transcript: str = ""
    full_transcript: str = ""
    latest_chunk: bytes | None = None

    @property
    def recording(self) -> bool:
        return self.microphone_state == MicrophoneState.open


class LiveSessionRunner:
    """Owns one background event loop and the coordinator running on it.

    Args:
        settings: Application settings (defaults to ``get_settings()``).
        initial_caption: Caption shown before the first transcript.
        microphone_factory: Builds the capture source (tests pass a fake).
        channel_factory: Builds the transcription channel (tests pass a fake).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        initial_caption: str | None = "Powered by Deepgram",
        microphone_factory: Callable[[], BaseMicrophone] | None = None,
        channel_factory: Callable[[], TranscriptionChannel] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._initial_caption = initial_caption
        self._microphone_factory = microphone_factory or self._default_microphone
        self._channel_factory = channel_factory or self._default_channel

        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._session: SessionCoordinator | None = None
        self._latest_chunk: bytes | None = None

    def _default_microphone(self) -> BaseMicrophone:
        return create_microphone(
            sample_rate=self._settings.sample_rate,
            chunk_interval_ms=self._settings.chunk_interval_ms,
        )

    def _default_channel(self) -> TranscriptionChannel:
        return create_channel(self._settings.transcription_provider)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Commands (called from the Streamlit script thread)
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the loop thread and bring the session to ``ready``."""
        if self.running:
            return
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever, name="readaloud-live-session", daemon=True
        )
        self._thread.start()
        self._run(self._open_session())
        logger.info("Live session started")

    def toggle(self) -> None:
        """Start or stop the microphone."""
        if self._session is not None:
            self._run(self._session.toggle_microphone())

    def clear(self, caption: str | None = None) -> None:
        """Discard captured audio and transcripts for a new take."""
        if self._session is not None and self._loop is not None:
            self._loop.call_soon_threadsafe(
                self._session.clear_buffer, caption or self._initial_caption
            )

    def wav_bytes(self) -> bytes | None:
        return self._session.wav_bytes() if self._session is not None else None

    def snapshot(self) -> LiveSnapshot:
        session = self._session
        if session is None:
            return LiveSnapshot(caption=self._initial_caption)
        with self._lock:
            latest = self._latest_chunk
        return LiveSnapshot(
            session_state=session.state,
            microphone_state=session.microphone.state,
            connection_state=session.channel.state,
            caption=session.caption,
            transcript=session.transcript_text(),
            full_transcript=session.full_transcript,
            latest_chunk=latest,
        )

    def shutdown(self) -> None:
        """Close the session and stop the loop thread.

        Safe to call from any thread, including the loop thread itself
        (garbage collection of a Streamlit session may run there).
        """
        loop, thread = self._loop, self._thread
        if loop is None:
            return
        self._loop = None
        self._thread = None
        if threading.current_thread() is thread:
            loop.create_task(self._close_and_stop(loop))
            return
        try:
            if self._session is not None:
                future = asyncio.run_coroutine_threadsafe(self._session.close(), loop)
                future.result(timeout=_COMMAND_TIMEOUT_S)
        finally:
            loop.call_soon_threadsafe(loop.stop)
            if thread is not None:
                thread.join(timeout=5.0)
            if not loop.is_running():
                loop.close()
            logger.info("Live session shut down")

    # ------------------------------------------------------------------
    # Loop side
    # ------------------------------------------------------------------

    def _run(self, coro):
        if self._loop is None:
            coro.close()
            raise InvalidStateError("Live session is not running")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout=_COMMAND_TIMEOUT_S)

    async def _close_and_stop(self, loop: asyncio.AbstractEventLoop) -> None:
        try:
            if self._session is not None:
                await self._session.close()
        finally:
            loop.stop()
            logger.info("Live session shut down")

    async def _open_session(self) -> None:
        microphone = self._microphone_factory()
        microphone.add_listener(MicrophoneEvent.data_available, self._remember_chunk)
        self._session = SessionCoordinator(
            microphone,
            self._channel_factory(),
            options=self._settings.live_options(),
            caption_timeout=self._settings.caption_timeout_s,
            keep_alive_interval=self._settings.keep_alive_interval_s,
            initial_caption=self._initial_caption,
        )
        await self._session.start()

    def _remember_chunk(self, chunk: AudioChunk) -> None:
        if chunk.size:
            with self._lock:
                self._latest_chunk = chunk.data


PRACTICE_RUNNER_KEY = "practice_runner"
SCRIPT_RUNNER_KEY = "script_runner"
RUNNER_KEYS = (PRACTICE_RUNNER_KEY, SCRIPT_RUNNER_KEY)


class _RunnerLease:
    """Kept in ``st.session_state`` next to a runner.

    When Streamlit drops the session state of a closed browser session the
    lease is collected and its finalizer shuts the runner down.
    """


def release_live_runners(keep: str | None = None) -> None:
    """Shut down every page runner in the session except the one under *keep*."""
    for key in RUNNER_KEYS:
        if key == keep:
            continue
        runner = st.session_state.pop(key, None)
        st.session_state.pop(f"{key}_lease", None)
        if runner is not None:
            runner.shutdown()
            logger.info("Released live session %s", key)


def get_live_runner(
    key: str = PRACTICE_RUNNER_KEY,
    initial_caption: str | None = "Powered by Deepgram",
) -> LiveSessionRunner:
    """Return the page's runner from ``st.session_state``, starting it once.

    Each page owns its own runner; entering a page releases the others so
    only one microphone and connection are live per browser session.
    """
    release_live_runners(keep=key)
    runner = st.session_state.get(key)
    if runner is None:
        runner = LiveSessionRunner(initial_caption=initial_caption)
        lease = _RunnerLease()
        weakref.finalize(lease, runner.shutdown)
        st.session_state[key] = runner
        st.session_state[f"{key}_lease"] = lease
    if not runner.running:
        runner.start()
    return runner
