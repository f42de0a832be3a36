"""
Error types shared by the audio source, providers and the session pipeline.
"""

from enum import Enum
from typing import Optional


class ProviderErrorKind(Enum):
    """Failure categories reported by transcription and AI providers."""
    MISSING_CREDENTIAL = "missing_credential"
    NETWORK_FAILURE = "network_failure"
    UPSTREAM_STATUS = "upstream_status"
    UNAVAILABLE = "unavailable"              # on-device transcription
    MODEL_UNAVAILABLE = "model_unavailable"  # on-device AI model


class ProviderError(Exception):
    """Raised when a transcription or AI provider call fails."""

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        provider_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.kind = kind
        self.provider_id = provider_id
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_on_device_unavailable(self) -> bool:
        """True when the caller should fall back to the cloud variant."""
        return self.kind in (ProviderErrorKind.UNAVAILABLE, ProviderErrorKind.MODEL_UNAVAILABLE)

    @classmethod
    def missing_credential(cls, service: str, provider_id: Optional[str] = None) -> "ProviderError":
        return cls(
            ProviderErrorKind.MISSING_CREDENTIAL,
            f"{service} API key is not set. Add it to your .env file.",
            provider_id=provider_id,
        )

    @classmethod
    def network_failure(cls, service: str, detail, provider_id: Optional[str] = None) -> "ProviderError":
        return cls(
            ProviderErrorKind.NETWORK_FAILURE,
            f"Network error talking to {service}: {detail}",
            provider_id=provider_id,
        )

    @classmethod
    def upstream_status(cls, service: str, status_code: int, body: str,
                        provider_id: Optional[str] = None) -> "ProviderError":
        return cls(
            ProviderErrorKind.UPSTREAM_STATUS,
            f"{service} API error ({status_code}): {body}",
            provider_id=provider_id,
            status_code=status_code,
        )


class PermissionDenied(Exception):
    """Raised when microphone access is refused or no input device exists."""

    def __init__(self, message: str = "Microphone permission denied. Check your input device settings."):
        super().__init__(message)


class DeadlineExceeded(Exception):
    """Raised when a bounded call loses its race against the deadline."""

    def __init__(self, label: str, timeout: float):
        self.label = label
        self.timeout = timeout
        super().__init__(f"{label} timed out after {timeout:g}s")
