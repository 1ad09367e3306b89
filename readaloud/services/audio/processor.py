"""Audio processing utilities for PCM data.

Converts raw PCM bytes to numpy arrays, computes frequency magnitudes
for the live visualizer and writes finished sessions to WAV.
"""

import io
import wave
from pathlib import Path

import numpy as np


class AudioProcessor:
    """Handles PCM audio data conversion and analysis.

    Provides utilities for converting raw PCM bytes to numpy arrays,
    saving to WAV files, and computing byte-scaled frequency data.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        sample_width: int = 2,
        channels: int = 1,
    ) -> None:
        """Initialize the audio processor.

        Args:
            sample_rate: Audio sample rate in Hz (default: 16 kHz).
            sample_width: Bytes per sample (2 = 16-bit signed PCM).
            channels: Number of audio channels (1 = mono).
        """
        self.sample_rate = sample_rate
        self.sample_width = sample_width
        self.channels = channels

    def pcm_to_ndarray(self, pcm_data: bytes) -> np.ndarray:
        """Convert raw PCM bytes (16-bit signed) to float32 numpy array.

        Args:
            pcm_data: Raw PCM bytes (16-bit, mono).

        Returns:
            Float32 numpy array normalized to [-1.0, 1.0].

        Raises:
            ValueError: If data length is not aligned to sample frame size.
        """
        frame_size = self.sample_width * self.channels
        if len(pcm_data) % frame_size != 0:
            raise ValueError(
                f"PCM data length ({len(pcm_data)}) is not aligned to frame size ({frame_size})"
            )
        # Convert 16-bit signed integers to float32 in [-1.0, 1.0] range
        return np.frombuffer(pcm_data, dtype=np.int16).astype(np.float32) / 32768.0

    def to_wav_bytes(self, pcm_data: bytes) -> bytes:
        """Wrap raw PCM bytes in an in-memory WAV container."""
        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(self.sample_width)
            wf.setframerate(self.sample_rate)
            wf.writeframes(pcm_data)
        return buffer.getvalue()

    def save_wav(self, pcm_data: bytes, file_path: str | Path) -> str:
        """Write raw PCM bytes to a WAV file.

        Args:
            pcm_data: Raw PCM bytes (16-bit, mono).
            file_path: Destination path for the WAV file.

        Returns:
            The absolute path to the saved file.

        Raises:
            ValueError: If pcm_data is empty.
        """
        if not pcm_data:
            raise ValueError("Cannot save empty PCM data to WAV")
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with wave.open(str(path), "wb") as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(self.sample_width)
            wf.setframerate(self.sample_rate)
            wf.writeframes(pcm_data)
        return str(path.resolve())

    def frequency_data(self, pcm_data: bytes, bin_count: int = 64) -> np.ndarray:
        """Return byte-scaled (0-255) frequency magnitudes for a PCM block.

        Magnitudes are converted to decibels and mapped linearly from
        [-100 dB, -30 dB] onto [0, 255], then averaged into *bin_count*
        bins. Empty input yields all zeros.
        """
        if not pcm_data:
            return np.zeros(bin_count, dtype=np.uint8)
        usable = len(pcm_data) - (len(pcm_data) % (self.sample_width * self.channels))
        audio = self.pcm_to_ndarray(pcm_data[:usable])
        if audio.size == 0:
            return np.zeros(bin_count, dtype=np.uint8)

        window = np.hanning(audio.size)
        spectrum = np.abs(np.fft.rfft(audio * window)) / audio.size
        decibels = 20 * np.log10(np.maximum(spectrum, 1e-10))
        scaled = np.clip((decibels + 100.0) / 70.0 * 255.0, 0, 255)

        bins = np.array_split(scaled, bin_count)
        return np.array([b.mean() if b.size else 0 for b in bins]).astype(np.uint8)
