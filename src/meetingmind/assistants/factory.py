"""
Registry for AI providers.
"""

from typing import Dict, List, Type

from .base import AIProvider


# Registry of AI providers (populated by register_assistant)
_assistant_registry: Dict[str, Type[AIProvider]] = {}


def register_assistant(assistant_class: Type[AIProvider]) -> Type[AIProvider]:
    """Register an AI provider class (use as a decorator)."""
    _assistant_registry[assistant_class.PROVIDER_ID] = assistant_class
    return assistant_class


def get_available_assistants() -> List[str]:
    """AI provider IDs whose dependencies are installed."""
    return [assistant_id for assistant_id, assistant_class in _assistant_registry.items()
            if assistant_class.is_available()]


def create_assistant(assistant_id: str, **options) -> AIProvider:
    """
    Create an instance of the specified AI provider.

    Raises:
        ValueError: If the provider ID is unknown
    """
    if assistant_id not in _assistant_registry:
        available = list(_assistant_registry.keys())
        raise ValueError(f"Unknown AI provider '{assistant_id}'. Available: {available}")
    return _assistant_registry[assistant_id](**options)


def _register_assistants():
    """Import provider modules to register them."""
    from . import claude  # noqa: F401
    from . import local_llm  # noqa: F401


_register_assistants()
