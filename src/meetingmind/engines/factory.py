"""
Registry for transcription providers.

Providers register themselves on import; a provider whose dependencies are
missing stays registered but reports is_available() == False.
"""

from typing import Dict, List, Optional, Type

from ..errors import ProviderError, ProviderErrorKind
from .base import TranscriptionProvider


# Registry of providers (populated by register_engine)
_engine_registry: Dict[str, Type[TranscriptionProvider]] = {}


def register_engine(engine_class: Type[TranscriptionProvider]) -> Type[TranscriptionProvider]:
    """
    Register a provider class in the registry.

    Use as a decorator:
        @register_engine
        class MyProvider(TranscriptionProvider):
            PROVIDER_ID = "my_provider"
    """
    _engine_registry[engine_class.PROVIDER_ID] = engine_class
    return engine_class


def get_available_engines() -> List[str]:
    """Provider IDs whose dependencies are installed."""
    return [engine_id for engine_id, engine_class in _engine_registry.items()
            if engine_class.is_available()]


def is_engine_available(engine_id: str) -> bool:
    """
    Check if a specific provider is available.

    Args:
        engine_id: The provider ID to check

    Returns:
        True if the provider is registered and its dependencies are installed
    """
    if engine_id not in _engine_registry:
        return False
    return _engine_registry[engine_id].is_available()


def create_engine(engine_id: str, **options) -> TranscriptionProvider:
    """
    Create an instance of the specified provider.

    Args:
        engine_id: The provider ID to instantiate
        **options: Constructor arguments for the provider

    Raises:
        ProviderError: UNAVAILABLE if the provider's dependencies are missing
        ValueError: If the provider ID is unknown
    """
    if engine_id not in _engine_registry:
        available = list(_engine_registry.keys())
        raise ValueError(f"Unknown transcription provider '{engine_id}'. Available: {available}")

    engine_class = _engine_registry[engine_id]

    if not engine_class.is_available():
        raise ProviderError(
            ProviderErrorKind.UNAVAILABLE,
            f"Transcription provider '{engine_id}' not available. {engine_class.get_install_hint()}",
            provider_id=engine_id,
        )

    return engine_class(**options)


def get_engine_class(engine_id: str) -> Optional[Type[TranscriptionProvider]]:
    """Get the class for a provider (without instantiating)."""
    return _engine_registry.get(engine_id)


def _register_engines():
    """Import provider modules to register them."""
    from . import whisper_api  # noqa: F401
    from . import local_streaming  # noqa: F401


# Register providers on module load
_register_engines()
