"""
Base class for AI providers (question generation, summaries, chat).

Response handling shared by all variants lives here: the NO_QUESTION
sentinel filter and tolerant summary parsing.
"""

import json
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from ..logger import log_warning
from ..meeting.models import SummaryResult

# Reply meaning "nothing worth asking right now"
NO_QUESTION = "NO_QUESTION"

# (role, content) pairs, role is "user" or "assistant"
ChatHistory = Sequence[Tuple[str, str]]


def clean_question(response: Optional[str]) -> Optional[str]:
    """Return the question text, or None for empty or NO_QUESTION replies."""
    trimmed = (response or "").strip()
    if not trimmed or NO_QUESTION in trimmed.upper():
        return None
    return trimmed


def extract_json(text: str) -> str:
    """Strip markdown code fences around a JSON payload."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json"):]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_summary(response: str) -> SummaryResult:
    """
    Parse the model's summary JSON.

    Falls back to a summary carrying the raw text when the payload is not
    valid JSON; this never raises.
    """
    try:
        return SummaryResult.from_payload(json.loads(extract_json(response)))
    except (ValueError, TypeError) as e:
        log_warning(f"[AI] Summary was not valid JSON ({e}), keeping raw text")
        return SummaryResult.degraded(response.strip())


def numbered(items: List[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


class AIProvider(ABC):
    """
    Abstract base class for AI providers.

    Implementations raise ProviderError on failure.
    """

    PROVIDER_ID: str = "base"
    PROVIDER_NAME: str = "Base AI Provider"
    ON_DEVICE: bool = False

    # Most recent chat turns sent with each chat request
    CHAT_HISTORY_LIMIT: int = 10

    @abstractmethod
    async def generate_question(self, context: str, previous_questions: List[str]) -> Optional[str]:
        """
        Suggest one question about the conversation so far.

        Args:
            context: Transcript so far
            previous_questions: Questions already shown (not to be repeated)

        Returns:
            The question, or None if there is nothing worth asking
        """

    @abstractmethod
    async def generate_summary(self, transcript: str) -> SummaryResult:
        """Generate a structured summary from the full transcript."""

    @abstractmethod
    async def chat(self, message: str, transcript: str, history: ChatHistory) -> str:
        """Answer a message about the session, using the transcript as context."""

    def recent_history(self, history: ChatHistory) -> List[Tuple[str, str]]:
        """Cap history to the most recent turns."""
        return list(history)[-self.CHAT_HISTORY_LIMIT:] if self.CHAT_HISTORY_LIMIT else []

    @classmethod
    def is_available(cls) -> bool:
        return True

    @classmethod
    def get_install_hint(cls) -> str:
        return "Install required dependencies."
