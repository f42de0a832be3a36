"""
AI provider using Anthropic's Claude API.
"""

import importlib.util
from typing import List, Optional

from ..errors import ProviderError
from ..logger import log_debug
from ..meeting.models import SummaryResult
from .base import AIProvider, ChatHistory, clean_question, numbered, parse_summary
from .factory import register_assistant

SERVICE = "Claude"

QUESTION_SYSTEM = """You are a sharp, experienced advisor listening to a live conversation. \
Surface the single most important question the speaker or audience should be thinking about \
RIGHT NOW, based on what has been said so far.

Look for: contradictions, decisions made without data, unrealistic assumptions, hidden risks, \
missing perspectives, logical gaps, and claims that deserve to be challenged. \
You do not need to wait for the speaker to finish a thought.

Reply with ONE focused question, at most 2 sentences. \
If there is truly nothing worth questioning, reply with exactly: NO_QUESTION

Write the question in the same language as the transcript (the dominant one if mixed)."""

SUMMARY_SYSTEM = """Generate a structured summary of this conversation transcript. \
Reply ONLY with valid JSON (no markdown, no code fences) in exactly this format:
{
  "summary": "Brief 2-3 sentence summary",
  "keyPoints": ["point 1", "point 2"],
  "actionItems": ["action 1", "action 2"],
  "participants": ["name (role) of each speaker"]
}

Use an empty array when there are no clear action items. Always provide a summary and key points.

PARTICIPANTS: list ONLY people who are SPEAKING in the recording (they say "I", "we did", \
or introduce themselves). People the speakers merely talk ABOUT are not participants. \
Include name and role when stated. If nobody can be identified by name, use an empty array.

Write all values in the same language as the transcript. Only the JSON keys stay in English."""

CHAT_SYSTEM = """You are a helpful meeting assistant. The user has just finished a meeting or \
conversation and wants to discuss it. Use the transcript below as context.

Meeting transcript:
{transcript}

Be concise and helpful. Reference specific parts of the conversation when relevant. \
Reply in the language the user writes in."""


@register_assistant
class ClaudeProvider(AIProvider):
    """Cloud AI provider backed by Claude."""

    PROVIDER_ID = "claude"
    PROVIDER_NAME = "Claude (Anthropic)"

    MODEL = "claude-sonnet-4-5-20250929"
    MAX_TOKENS = 2048
    CHAT_HISTORY_LIMIT = 10

    def __init__(self, api_key: Optional[str] = None, model: str = MODEL, timeout: float = 60.0):
        """
        Initialize the Claude provider.

        Args:
            api_key: Anthropic API key. A missing key is reported when a
                request is made, not here.
            model: Claude model ID
            timeout: Request timeout in seconds
        """
        self.api_key = api_key or ""
        self.model = model

        # Lazy import anthropic to avoid import cost when running on-device only
        try:
            import anthropic
            self.anthropic = anthropic
            self.client = None
            if self.api_key:
                self.client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=timeout, max_retries=0)
        except ImportError:
            raise ImportError(
                "anthropic package not installed. "
                "Install with: pip install anthropic>=0.40.0"
            )

    @classmethod
    def is_available(cls) -> bool:
        return importlib.util.find_spec("anthropic") is not None

    @classmethod
    def get_install_hint(cls) -> str:
        return "pip install anthropic>=0.40.0"

    async def generate_question(self, context: str, previous_questions: List[str]) -> Optional[str]:
        user_message = f"Conversation transcript so far:\n\n{context}"
        if previous_questions:
            user_message += (
                f"\n\nQuestions already asked:\n{numbered(previous_questions)}"
                "\n\nDo NOT repeat these. Find a NEW angle."
            )

        response = await self._send(QUESTION_SYSTEM, [{"role": "user", "content": user_message}])
        log_debug(f"[Claude] Question response: {response[:80]!r}")
        return clean_question(response)

    async def generate_summary(self, transcript: str) -> SummaryResult:
        response = await self._send(
            SUMMARY_SYSTEM,
            [{"role": "user", "content": f"Generate a summary for this transcript:\n\n{transcript}"}],
        )
        return parse_summary(response)

    async def chat(self, message: str, transcript: str, history: ChatHistory) -> str:
        # The transcript is in the system prompt; history only carries turns
        messages = [{"role": role, "content": content} for role, content in self.recent_history(history)]
        messages.append({"role": "user", "content": message})
        return await self._send(CHAT_SYSTEM.format(transcript=transcript), messages)

    async def _send(self, system: str, messages: list) -> str:
        """Send one Messages API request and return the first text block."""
        if not self.api_key:
            raise ProviderError.missing_credential("Anthropic", provider_id=self.PROVIDER_ID)

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.MAX_TOKENS,
                system=system,
                messages=messages,
            )
        except self.anthropic.APIConnectionError as e:
            raise ProviderError.network_failure(SERVICE, e, provider_id=self.PROVIDER_ID) from e
        except self.anthropic.APIStatusError as e:
            raise ProviderError.upstream_status(SERVICE, e.status_code, e.message,
                                                provider_id=self.PROVIDER_ID) from e

        for block in response.content:
            if block.type == "text":
                return block.text
        return ""
