"""
Abstract base class for live transcription channels.

All providers expose the same small capability surface (connect, send,
keep_alive, disconnect, on_transcript, on_state_change), so the session
coordinator never touches a vendor SDK or socket directly.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import StrEnum

from readaloud.core.models import AudioChunk, ConnectionState, LiveOptions, TranscriptEvent
from readaloud.core.utils import EventEmitter

logger = logging.getLogger(__name__)


class ChannelEvent(StrEnum):
    """Events emitted by a transcription channel."""

    transcript = "transcript"
    state_change = "state_change"


class TranscriptionChannel(ABC):
    """Interface that every live transcription provider must implement."""

    def __init__(self) -> None:
        self._events = EventEmitter()
        self._state = ConnectionState.closed

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == ConnectionState.open

    def on_transcript(self, listener: Callable[[TranscriptEvent], None]) -> Callable[[], None]:
        """Subscribe to transcript events; returns an unsubscribe function."""
        return self._events.add_listener(ChannelEvent.transcript, listener)

    def on_state_change(self, listener: Callable[[ConnectionState], None]) -> Callable[[], None]:
        """Subscribe to connection state changes; returns an unsubscribe function."""
        return self._events.add_listener(ChannelEvent.state_change, listener)

    def listener_count(self, event: ChannelEvent) -> int:
        return self._events.listener_count(event)

    @abstractmethod
    async def connect(self, options: LiveOptions) -> None:
        """Open the streaming connection.

        Raises:
            ChannelError: If the connection cannot be established.
        """

    @abstractmethod
    def send(self, chunk: AudioChunk) -> None:
        """Queue one audio chunk for the provider (non-blocking, ordered).

        Raises:
            ChannelError: If the connection is not open.
        """

    @abstractmethod
    def keep_alive(self) -> None:
        """Queue a keep-alive signal so an idle connection is not dropped."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection. Calling it again is a no-op."""

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        previous = self._state
        self._state = state
        logger.info("Transcription connection %s -> %s", previous, state)
        self._events.emit(ChannelEvent.state_change, state)

    def _emit_transcript(self, event: TranscriptEvent) -> None:
        self._events.emit(ChannelEvent.transcript, event)
