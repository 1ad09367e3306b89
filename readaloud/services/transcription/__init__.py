"""
Transcription module - Live speech-to-text channel abstraction.

Factory function for creating channel instances based on provider configuration.
"""

from .base import ChannelEvent, TranscriptionChannel

__all__ = ["ChannelEvent", "TranscriptionChannel", "create_channel"]


def create_channel(provider: str, **kwargs) -> TranscriptionChannel:
    """
    Factory function to create a live transcription channel.

    Args:
        provider: Provider name ("deepgram")
        **kwargs: Provider-specific configuration

    Returns:
        TranscriptionChannel implementation instance

    Raises:
        ValueError: If provider is unknown
    """
    if provider == "deepgram":
        from .deepgram import DeepgramChannel

        return DeepgramChannel(**kwargs)
    raise ValueError(f"Unknown transcription provider: {provider}")
