"""
Provider selection.

The factory turns user preferences, what this machine can run, and the
available API keys into provider instances. It is re-invoked with
on_device=False when an on-device provider turns out to be unusable.
"""

from dataclasses import dataclass
from typing import Optional

from .assistants import AIProvider, ClaudeProvider, LocalLLMProvider
from .credentials import CredentialStore
from .engines import TranscriptionProvider, WhisperAPIProvider, create_engine, is_engine_available
from .logger import log_info


@dataclass
class ProviderPreferences:
    """Which providers the user asked for."""
    transcription: str = "local_streaming"
    ai: str = "claude"
    local_model: str = "base"
    local_device: str = "auto"
    local_compute_type: str = "int8"
    default_locale: str = "es-MX"
    llm_base_url: str = "http://localhost:1234"
    llm_model: Optional[str] = None

    @classmethod
    def from_config(cls, section: dict) -> "ProviderPreferences":
        """Build from the `providers` config section."""
        defaults = cls()
        return cls(**{name: section.get(name) if section.get(name) is not None else getattr(defaults, name)
                      for name in cls.__dataclass_fields__})


@dataclass
class DeviceCapabilities:
    """What can run on this machine."""
    on_device_transcription: bool = False
    on_device_ai: bool = False

    @classmethod
    def detect(cls) -> "DeviceCapabilities":
        return cls(
            on_device_transcription=is_engine_available("local_streaming"),
            on_device_ai=LocalLLMProvider.is_available(),
        )


class ProviderFactory:
    """Creates transcription and AI providers from preferences."""

    def __init__(self, preferences: ProviderPreferences, credentials: CredentialStore,
                 capabilities: Optional[DeviceCapabilities] = None):
        self.preferences = preferences
        self.credentials = credentials
        self.capabilities = capabilities or DeviceCapabilities.detect()

    def transcription(self, on_device: bool = True) -> TranscriptionProvider:
        """
        Args:
            on_device: Allow the on-device provider. Pass False to force the
                cloud provider (fallback after an on-device failure).
        """
        prefs = self.preferences
        if on_device and prefs.transcription == "local_streaming" and self.capabilities.on_device_transcription:
            log_info(f"[Providers] Transcription: local_streaming ({prefs.local_model})")
            return create_engine(
                "local_streaming",
                model_name=prefs.local_model,
                device=prefs.local_device,
                compute_type=prefs.local_compute_type,
                default_locale=prefs.default_locale,
            )

        log_info("[Providers] Transcription: whisper_api")
        return WhisperAPIProvider(api_key=self.credentials.read("openai_api_key"))

    def ai(self, on_device: bool = True) -> AIProvider:
        prefs = self.preferences
        if on_device and prefs.ai == "local_llm" and self.capabilities.on_device_ai:
            log_info(f"[Providers] AI: local_llm at {prefs.llm_base_url}")
            return LocalLLMProvider(base_url=prefs.llm_base_url, model=prefs.llm_model)

        log_info("[Providers] AI: claude")
        return ClaudeProvider(api_key=self.credentials.read("anthropic_api_key"))
