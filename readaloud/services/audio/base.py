"""
Abstract base class for microphone capture sources.

Implementations only provide the device hooks; the state machine, the
listener registry and chunk delivery live here so that the session
coordinator can be driven by a fake source in tests.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from readaloud.core.exceptions import CaptureError, InvalidStateError, MicrophoneDeviceError
from readaloud.core.models import AudioChunk, MicrophoneState
from readaloud.core.utils import EventEmitter

logger = logging.getLogger(__name__)


class MicrophoneEvent(StrEnum):
    """Events emitted by a capture source."""

    data_available = "data_available"
    state_change = "state_change"


class BaseMicrophone(ABC):
    """Interface that every capture source must implement.

    States: not_setup -> setting_up -> ready -> opening -> open
    -> pausing -> paused -> opening -> open ...; ``error`` on failure.
    """

    def __init__(self) -> None:
        self._events = EventEmitter()
        self._state = MicrophoneState.not_setup

    @property
    def state(self) -> MicrophoneState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == MicrophoneState.open

    def add_listener(
        self, event: MicrophoneEvent, listener: Callable[..., Any]
    ) -> Callable[[], None]:
        return self._events.add_listener(event, listener)

    def remove_listener(self, event: MicrophoneEvent, listener: Callable[..., Any]) -> None:
        self._events.remove_listener(event, listener)

    def listener_count(self, event: MicrophoneEvent) -> int:
        return self._events.listener_count(event)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def setup(self) -> None:
        """Acquire the input device.

        Raises:
            MicrophonePermissionError: If access is denied.
            MicrophoneDeviceError: If no usable device is available.
        """
        if self._state not in (MicrophoneState.not_setup, MicrophoneState.error):
            return
        self._set_state(MicrophoneState.setting_up)
        try:
            await self._open_device()
        except CaptureError:
            self._set_state(MicrophoneState.error)
            raise
        except Exception as exc:
            self._set_state(MicrophoneState.error)
            raise MicrophoneDeviceError(f"Microphone setup failed: {exc}") from exc
        self._set_state(MicrophoneState.ready)

    async def start(self) -> None:
        """Begin emitting audio chunks.

        Raises:
            InvalidStateError: If the source is not ready/paused or already open.
            CaptureError: If the device refuses to start.
        """
        if self._state not in (MicrophoneState.ready, MicrophoneState.paused):
            raise InvalidStateError(f"Cannot start microphone in state {self._state}")
        self._set_state(MicrophoneState.opening)
        try:
            await self._start_capture()
        except Exception as exc:
            self._set_state(MicrophoneState.error)
            raise CaptureError(f"Microphone start failed: {exc}") from exc
        self._set_state(MicrophoneState.open)

    async def stop(self) -> None:
        """Halt chunk emission; no-op unless the source is open."""
        if self._state != MicrophoneState.open:
            return
        self._set_state(MicrophoneState.pausing)
        try:
            await self._stop_capture()
        finally:
            self._set_state(MicrophoneState.paused)

    async def close(self) -> None:
        """Release the device entirely."""
        if self._state == MicrophoneState.not_setup:
            return
        try:
            await self.stop()
            await self._release_device()
        finally:
            self._set_state(MicrophoneState.not_setup)

    # ------------------------------------------------------------------
    # Helpers for implementations
    # ------------------------------------------------------------------

    def _set_state(self, state: MicrophoneState) -> None:
        if state == self._state:
            return
        previous = self._state
        self._state = state
        logger.debug("Microphone state %s -> %s", previous, state)
        self._events.emit(MicrophoneEvent.state_change, state)

    def _emit_chunk(self, chunk: AudioChunk) -> None:
        """Deliver a captured chunk to listeners (event-loop thread only)."""
        if self._state != MicrophoneState.open:
            return
        self._events.emit(MicrophoneEvent.data_available, chunk)

    # ------------------------------------------------------------------
    # Device hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _open_device(self) -> None:
        """Open the input device without starting capture."""

    @abstractmethod
    async def _start_capture(self) -> None:
        """Start producing chunks."""

    @abstractmethod
    async def _stop_capture(self) -> None:
        """Stop producing chunks, keeping the device open."""

    @abstractmethod
    async def _release_device(self) -> None:
        """Close the input device."""
