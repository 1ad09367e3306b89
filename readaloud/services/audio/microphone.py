"""Microphone capture using sounddevice (PortAudio).

Audio is read as 16-bit signed mono PCM in blocks of ``chunk_interval_ms``.
The PortAudio callback runs on its own thread; every block is handed to
the event loop with ``call_soon_threadsafe`` so listeners always run on
the loop thread, in capture order.
"""

import asyncio
import logging
from typing import Any

try:
    import sounddevice as sd
except OSError as _exc:  # PortAudio shared library missing
    sd = None
    _SD_IMPORT_ERROR = str(_exc)
else:
    _SD_IMPORT_ERROR = None

from readaloud.core.exceptions import (
    InvalidStateError,
    MicrophoneDeviceError,
    MicrophonePermissionError,
)
from readaloud.core.models import AudioChunk
from readaloud.services.audio.base import BaseMicrophone

logger = logging.getLogger(__name__)

_PERMISSION_HINTS = ("permission", "denied", "not authorized")


class SoundDeviceMicrophone(BaseMicrophone):
    """Capture source backed by a ``sounddevice.RawInputStream``.

    Args:
        sample_rate: Capture rate in Hz (default: 16 kHz).
        channels: Number of input channels (1 = mono).
        chunk_interval_ms: Duration of each emitted chunk.
        device: Optional sounddevice device index or name.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_interval_ms: int = 250,
        device: int | str | None = None,
    ) -> None:
        super().__init__()
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_interval_ms = chunk_interval_ms
        self._device = device
        self._stream: Any = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def blocksize(self) -> int:
        """Frames per emitted chunk."""
        return int(self.sample_rate * self.chunk_interval_ms / 1000)

    async def _open_device(self) -> None:
        if sd is None:
            raise MicrophoneDeviceError(f"sounddevice is unavailable: {_SD_IMPORT_ERROR}")
        self._loop = asyncio.get_running_loop()
        try:
            self._stream = await asyncio.to_thread(self._create_stream)
        except PermissionError as exc:
            raise MicrophonePermissionError(str(exc)) from exc
        except (sd.PortAudioError, ValueError) as exc:
            message = str(exc)
            if any(hint in message.lower() for hint in _PERMISSION_HINTS):
                raise MicrophonePermissionError(message) from exc
            raise MicrophoneDeviceError(message) from exc
        logger.info(
            "Microphone ready (rate=%s, channels=%s, block=%s frames)",
            self.sample_rate,
            self.channels,
            self.blocksize,
        )

    def _create_stream(self) -> Any:
        # Raises if there is no default input device
        sd.query_devices(self._device, kind="input")
        return sd.RawInputStream(
            samplerate=self.sample_rate,
            channels=self.channels,
            dtype="int16",
            blocksize=self.blocksize,
            device=self._device,
            callback=self._on_audio,
        )

    async def _start_capture(self) -> None:
        if self._stream is None:
            raise InvalidStateError("Input stream has not been opened")
        self._stream.start()

    async def _stop_capture(self) -> None:
        if self._stream is not None:
            self._stream.stop()

    async def _release_device(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        self._loop = None

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        """PortAudio callback (audio thread)."""
        if status:
            logger.debug("Input stream status: %s", status)
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        chunk = AudioChunk(data=bytes(indata))
        try:
            loop.call_soon_threadsafe(self._emit_chunk, chunk)
        except RuntimeError:
            # Loop shut down between the check and the call
            pass
