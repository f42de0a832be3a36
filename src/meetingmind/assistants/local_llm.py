"""
On-device AI provider using a local OpenAI-compatible server
(LM Studio, Ollama, llama.cpp server).

A server that is not running, or a model that is not loaded, is reported as
MODEL_UNAVAILABLE so callers can fall back to the cloud provider.
"""

from typing import List, Optional

import httpx

from ..errors import ProviderError, ProviderErrorKind
from ..logger import log_debug
from ..meeting.models import SummaryResult
from .base import AIProvider, ChatHistory, clean_question, numbered, parse_summary
from .factory import register_assistant

SERVICE = "Local LLM"
DEFAULT_BASE_URL = "http://localhost:1234"

# Smaller context window than the cloud model
MAX_TRANSCRIPT_CHARS = 4000

QUESTION_INSTRUCTIONS = (
    "You are listening to a live conversation. Identify ONE important question that should be "
    "asked right now. Reply with ONLY the question, or exactly NO_QUESTION if nothing is worth "
    "asking. Match the language of the transcript."
)

SUMMARY_INSTRUCTIONS = (
    "Summarize conversation transcripts. Reply ONLY with valid JSON, no markdown. "
    'Format: {"summary":"...","keyPoints":["..."],"actionItems":["..."],"participants":["..."]} '
    "Rules: participants = ONLY people speaking, NOT people mentioned. Empty array if no action "
    "items. Write in the SAME language as the transcript. JSON keys stay in English."
)

CHAT_INSTRUCTIONS = (
    "You are a helpful meeting assistant. Use the transcript below to answer questions. "
    "Be concise. Reply in the language the user writes in.\n\n"
    "Meeting transcript:\n{transcript}"
)


@register_assistant
class LocalLLMProvider(AIProvider):
    """AI provider running against a model served on this machine."""

    PROVIDER_ID = "local_llm"
    PROVIDER_NAME = "Local LLM (on-device)"
    ON_DEVICE = True
    CHAT_HISTORY_LIMIT = 6

    def __init__(self, base_url: str = DEFAULT_BASE_URL, model: Optional[str] = None,
                 timeout: float = 120.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport

    async def generate_question(self, context: str, previous_questions: List[str]) -> Optional[str]:
        prompt = f"Transcript:\n{context}"
        if previous_questions:
            prompt += f"\n\nAlready asked:\n{numbered(previous_questions)}\n\nAsk something NEW and different."

        response = await self._complete(QUESTION_INSTRUCTIONS, prompt)
        return clean_question(response)

    async def generate_summary(self, transcript: str) -> SummaryResult:
        response = await self._complete(SUMMARY_INSTRUCTIONS, f"Summarize:\n\n{transcript}")
        return parse_summary(response)

    async def chat(self, message: str, transcript: str, history: ChatHistory) -> str:
        if len(transcript) > MAX_TRANSCRIPT_CHARS:
            transcript = transcript[-MAX_TRANSCRIPT_CHARS:]

        # Fold recent turns into a single prompt
        lines = []
        for role, content in self.recent_history(history):
            speaker = "User" if role == "user" else "Assistant"
            lines.append(f"{speaker}: {content}")
        prompt = "\n".join(lines) + "\n\n" + message if lines else message

        response = await self._complete(CHAT_INSTRUCTIONS.format(transcript=transcript), prompt)
        return response.strip()

    async def _complete(self, instructions: str, prompt: str) -> str:
        """Run one chat completion and return the reply text."""
        payload = {
            "messages": [
                {"role": "system", "content": instructions},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.3,
            "stream": False,
        }
        if self.model:
            payload["model"] = self.model

        log_debug(f"[LocalLLM] Request to {self.base_url}, prompt={len(prompt)} chars")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.base_url}/v1/chat/completions", json=payload)
        except httpx.ConnectError as e:
            raise ProviderError(
                ProviderErrorKind.MODEL_UNAVAILABLE,
                f"Cannot connect to the local model server at {self.base_url}. "
                "Make sure it's running with a model loaded.",
                provider_id=self.PROVIDER_ID,
            ) from e
        except httpx.TimeoutException as e:
            raise ProviderError.network_failure(SERVICE, "request timed out", provider_id=self.PROVIDER_ID) from e
        except httpx.HTTPError as e:
            raise ProviderError.network_failure(SERVICE, e, provider_id=self.PROVIDER_ID) from e

        if response.status_code == 404:
            raise ProviderError(
                ProviderErrorKind.MODEL_UNAVAILABLE,
                f"Local model '{self.model or 'default'}' is not loaded.",
                provider_id=self.PROVIDER_ID,
            )
        if response.status_code != 200:
            raise ProviderError.upstream_status(SERVICE, response.status_code, response.text,
                                                provider_id=self.PROVIDER_ID)

        try:
            data = response.json()
            return data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError.upstream_status(SERVICE, response.status_code,
                                                f"unexpected response shape: {e}",
                                                provider_id=self.PROVIDER_ID) from e
