"""
Audio module - Microphone capture and PCM processing utilities.
"""

from .base import BaseMicrophone, MicrophoneEvent
from .processor import AudioProcessor

__all__ = ["AudioProcessor", "BaseMicrophone", "MicrophoneEvent", "create_microphone"]


def create_microphone(**kwargs) -> BaseMicrophone:
    """
    Factory function to create the default capture source.

    sounddevice is imported lazily because it needs the PortAudio
    shared library, which headless environments may not provide.

    Args:
        **kwargs: Passed through to ``SoundDeviceMicrophone``.

    Returns:
        BaseMicrophone implementation instance
    """
    from .microphone import SoundDeviceMicrophone

    return SoundDeviceMicrophone(**kwargs)
