"""
Cloud chunk transcription via the OpenAI Whisper API.

Each call is independent. Requests are made with `requests` on a worker
thread so the event loop keeps running while a chunk uploads.
"""

import asyncio
from typing import Optional

import requests

from ..errors import ProviderError
from ..logger import log_debug
from .base import TranscriptionProvider
from .factory import register_engine

API_URL = "https://api.openai.com/v1/audio/transcriptions"
SERVICE = "OpenAI Whisper"


@register_engine
class WhisperAPIProvider(TranscriptionProvider):
    """Stateless chunk transcription against the hosted Whisper model."""

    PROVIDER_ID = "whisper_api"
    PROVIDER_NAME = "Whisper (OpenAI API)"

    MODEL = "whisper-1"

    def __init__(self, api_key: Optional[str] = None, api_url: str = API_URL,
                 timeout: float = 60.0):
        self.api_key = api_key or ""
        self.api_url = api_url
        self.timeout = timeout  # Read timeout
        self.connect_timeout = 5.0  # Fail fast if unreachable

    async def transcribe(self, audio_bytes: bytes, context_prompt: Optional[str] = None) -> str:
        if not self.api_key:
            raise ProviderError.missing_credential("OpenAI", provider_id=self.PROVIDER_ID)
        return await asyncio.to_thread(self._post, audio_bytes, context_prompt)

    def _post(self, audio_bytes: bytes, context_prompt: Optional[str]) -> str:
        """Blocking multipart upload (runs on a worker thread)."""
        data = {"model": self.MODEL, "response_format": "json"}
        if context_prompt:
            data["prompt"] = context_prompt

        log_debug(f"[Whisper] Uploading chunk: {len(audio_bytes)} bytes, prompt={len(context_prompt or '')} chars")

        try:
            response = requests.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                files={"file": ("audio.wav", audio_bytes, "audio/wav")},
                data=data,
                timeout=(self.connect_timeout, self.timeout),
            )
        except requests.RequestException as e:
            raise ProviderError.network_failure(SERVICE, e, provider_id=self.PROVIDER_ID) from e

        if response.status_code != 200:
            raise ProviderError.upstream_status(
                SERVICE, response.status_code, response.text or "Unknown error",
                provider_id=self.PROVIDER_ID,
            )

        try:
            text = response.json().get("text", "")
        except ValueError as e:
            raise ProviderError.upstream_status(
                SERVICE, response.status_code, f"invalid JSON response: {e}",
                provider_id=self.PROVIDER_ID,
            ) from e

        log_debug(f"[Whisper] Chunk transcribed: {len(text.split())} words")
        return text
