"""
MeetingMind AI Providers

- Claude (Anthropic API) - cloud
- Local LLM (OpenAI-compatible server on this machine) - on-device
"""

from .base import AIProvider, NO_QUESTION, clean_question, extract_json, parse_summary
from .factory import create_assistant, get_available_assistants, register_assistant
from .claude import ClaudeProvider
from .local_llm import LocalLLMProvider

__all__ = [
    "AIProvider",
    "NO_QUESTION",
    "clean_question",
    "extract_json",
    "parse_summary",
    "ClaudeProvider",
    "LocalLLMProvider",
    "create_assistant",
    "get_available_assistants",
    "register_assistant",
]
