"""
Base classes for transcription providers.

Provides the interface every transcription backend implements. Chunked
providers only implement transcribe(); streaming providers also turn a live
frame sequence into TranscriptUpdates.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from ..meeting.models import AudioFormat, TranscriptUpdate


class TranscriptionProvider(ABC):
    """
    Abstract base class for transcription providers.

    Implementations raise ProviderError on failure.
    """

    # Class attributes to be overridden by subclasses
    PROVIDER_ID: str = "base"
    PROVIDER_NAME: str = "Base Provider"
    ON_DEVICE: bool = False

    @abstractmethod
    async def transcribe(self, audio_bytes: bytes, context_prompt: Optional[str] = None) -> str:
        """
        Transcribe one complete WAV chunk.

        Args:
            audio_bytes: WAV-encoded audio
            context_prompt: Tail of the running transcript, for continuity
                across chunk boundaries

        Returns:
            Transcribed text (may be empty)
        """

    @classmethod
    def is_available(cls) -> bool:
        """
        Check if this provider can run here (dependencies installed).

        Override in subclasses to check for specific dependencies.
        """
        return True

    @classmethod
    def get_install_hint(cls) -> str:
        """Installation instructions for this provider."""
        return "Install required dependencies."


class StreamingTranscriptionProvider(TranscriptionProvider):
    """
    Provider that processes a continuous audio stream.

    start_streaming() is restartable per session. Callers must not count on
    the update sequence ending by itself: they cancel it when done.
    """

    @abstractmethod
    def start_streaming(
        self,
        frames: AsyncIterator,
        audio_format: AudioFormat,
    ) -> AsyncIterator[TranscriptUpdate]:
        """
        Start recognizing a live frame sequence.

        Args:
            frames: Async iterator of int16 numpy frames
            audio_format: Format of the frames

        Returns:
            Async iterator of TranscriptUpdate
        """
