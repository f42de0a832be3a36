"""
MeetingMind Transcription Providers

Provides a unified interface for different transcription backends:
- Whisper API (OpenAI) - cloud, chunk-based
- Local streaming (faster-whisper + WebRTC VAD) - on-device, continuous
"""

from .base import (
    TranscriptionProvider,
    StreamingTranscriptionProvider,
)
from .factory import (
    create_engine,
    get_available_engines,
    is_engine_available,
    get_engine_class,
    register_engine,
)
from .whisper_api import WhisperAPIProvider
from .local_streaming import LocalStreamingProvider, detect_locale

__all__ = [
    # Base classes
    "TranscriptionProvider",
    "StreamingTranscriptionProvider",
    # Providers
    "WhisperAPIProvider",
    "LocalStreamingProvider",
    "detect_locale",
    # Factory functions
    "create_engine",
    "get_available_engines",
    "is_engine_available",
    "get_engine_class",
    "register_engine",
]
