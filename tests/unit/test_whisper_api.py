"""
Tests for the Whisper API provider with requests.post patched out.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from meetingmind.engines import WhisperAPIProvider
from meetingmind.errors import ProviderError, ProviderErrorKind


def response(status_code=200, json_data=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    if isinstance(json_data, Exception):
        resp.json.side_effect = json_data
    else:
        resp.json.return_value = json_data
    return resp


class TestWhisperAPIProvider:

    @pytest.mark.asyncio
    async def test_uploads_chunk_with_prompt(self):
        provider = WhisperAPIProvider(api_key="sk-test")
        with patch("meetingmind.engines.whisper_api.requests.post",
                   return_value=response(json_data={"text": "hola a todos"})) as post:
            text = await provider.transcribe(b"RIFF....", context_prompt="previous words")

        assert text == "hola a todos"
        kwargs = post.call_args.kwargs
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["files"]["file"][0] == "audio.wav"
        assert kwargs["files"]["file"][1] == b"RIFF...."
        assert kwargs["data"] == {"model": "whisper-1", "response_format": "json", "prompt": "previous words"}
        assert kwargs["timeout"] == (5.0, 60.0)

    @pytest.mark.asyncio
    async def test_no_prompt_when_no_context(self):
        provider = WhisperAPIProvider(api_key="sk-test")
        with patch("meetingmind.engines.whisper_api.requests.post",
                   return_value=response(json_data={"text": ""})) as post:
            assert await provider.transcribe(b"RIFF") == ""
        assert "prompt" not in post.call_args.kwargs["data"]

    @pytest.mark.asyncio
    async def test_missing_key(self):
        provider = WhisperAPIProvider(api_key=None)
        with patch("meetingmind.engines.whisper_api.requests.post") as post:
            with pytest.raises(ProviderError) as exc_info:
                await provider.transcribe(b"RIFF")
        assert exc_info.value.kind is ProviderErrorKind.MISSING_CREDENTIAL
        post.assert_not_called()

    @pytest.mark.asyncio
    async def test_network_failure(self):
        provider = WhisperAPIProvider(api_key="sk-test")
        with patch("meetingmind.engines.whisper_api.requests.post",
                   side_effect=requests.ConnectionError("unreachable")):
            with pytest.raises(ProviderError) as exc_info:
                await provider.transcribe(b"RIFF")
        assert exc_info.value.kind is ProviderErrorKind.NETWORK_FAILURE

    @pytest.mark.asyncio
    async def test_upstream_status(self):
        provider = WhisperAPIProvider(api_key="sk-test")
        with patch("meetingmind.engines.whisper_api.requests.post",
                   return_value=response(status_code=429, text="rate limited")):
            with pytest.raises(ProviderError) as exc_info:
                await provider.transcribe(b"RIFF")
        assert exc_info.value.kind is ProviderErrorKind.UPSTREAM_STATUS
        assert exc_info.value.status_code == 429
        assert "rate limited" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        provider = WhisperAPIProvider(api_key="sk-test")
        with patch("meetingmind.engines.whisper_api.requests.post",
                   return_value=response(json_data=ValueError("bad json"))):
            with pytest.raises(ProviderError) as exc_info:
                await provider.transcribe(b"RIFF")
        assert exc_info.value.kind is ProviderErrorKind.UPSTREAM_STATUS
