"""
Tests for the on-device streaming provider.

The Whisper model is replaced with a stub and the VAD with an energy check,
so segmentation and locale handling can be tested without model files.
"""

import sys
from types import ModuleType, SimpleNamespace

import numpy as np
import pytest

from meetingmind.audio_utils import encode_wav
from meetingmind.engines import LocalStreamingProvider, detect_locale
from meetingmind.meeting.models import AudioFormat

SPANISH = "hola a todos, gracias por venir a la reunión de hoy sobre el presupuesto del próximo año"
ENGLISH = "thanks everyone for joining the meeting today about the budget for next year"

FRAME = 480  # 30ms at 16kHz


class StubModel:
    """Stands in for faster_whisper.WhisperModel."""

    def __init__(self, texts):
        self.texts = list(texts)
        self.languages = []

    def transcribe(self, audio, language=None, initial_prompt=None, **kwargs):
        self.languages.append(language)
        text = self.texts.pop(0) if self.texts else ""
        return iter([SimpleNamespace(text=f" {text}")]), SimpleNamespace(language=language)


class EnergyVad:
    def __init__(self, aggressiveness):
        pass

    def is_speech(self, frame: bytes, sample_rate: int) -> bool:
        return np.abs(np.frombuffer(frame, dtype=np.int16)).max() > 1000


@pytest.fixture
def energy_vad(monkeypatch):
    module = ModuleType("webrtcvad")
    module.Vad = EnergyVad
    monkeypatch.setitem(sys.modules, "webrtcvad", module)


def speech(frames: int):
    return [np.full(FRAME, 8000, dtype=np.int16) for _ in range(frames)]


def silence(frames: int):
    return [np.zeros(FRAME, dtype=np.int16) for _ in range(frames)]


async def frames_of(chunks):
    for chunk in chunks:
        yield chunk


def provider_with(texts, default_locale="es-MX") -> LocalStreamingProvider:
    provider = LocalStreamingProvider(default_locale=default_locale)
    provider._model = StubModel(texts)
    return provider


async def collect(provider, frames):
    return [u async for u in provider.start_streaming(frames_of(frames), AudioFormat())]


class TestDetectLocale:

    def test_maps_to_candidate_locale(self):
        assert detect_locale(SPANISH) == "es-MX"
        assert detect_locale(ENGLISH) == "en-US"

    def test_unlisted_language_returns_raw_code(self):
        italian = "questa è una frase scritta in italiano per verificare il rilevamento della lingua parlata"
        assert detect_locale(italian) == "it"

    def test_nothing_detected(self):
        assert detect_locale("") is None
        assert detect_locale("1234 5678") is None


class TestStreaming:

    @pytest.mark.asyncio
    async def test_silence_finalizes_segment(self, energy_vad):
        provider = provider_with([SPANISH])
        updates = await collect(provider, silence(10) + speech(34) + silence(25))

        finals = [u for u in updates if u.is_final]
        assert len(finals) == 1
        assert finals[0].confirmed_text == SPANISH
        assert finals[0].segment_text == SPANISH
        assert finals[0].partial_text == ""

    @pytest.mark.asyncio
    async def test_trailing_speech_is_flushed_when_input_ends(self, energy_vad):
        provider = provider_with([ENGLISH], default_locale="en-US")
        updates = await collect(provider, speech(20))

        assert [u.confirmed_text for u in updates if u.is_final] == [ENGLISH]

    @pytest.mark.asyncio
    async def test_confirmed_text_grows_across_segments(self, energy_vad):
        provider = provider_with([SPANISH, "y también del calendario"])
        frames = speech(20) + silence(25) + speech(20) + silence(25)
        finals = [u for u in await collect(provider, frames) if u.is_final]

        assert [u.segment_text for u in finals] == [SPANISH, "y también del calendario"]
        assert finals[1].confirmed_text == f"{SPANISH} y también del calendario"
        assert finals[1].confirmed_text.startswith(finals[0].confirmed_text)

    @pytest.mark.asyncio
    async def test_locale_is_detected_once_and_locked(self, energy_vad):
        provider = provider_with([ENGLISH, "more words"], default_locale="es-MX")
        assert provider.locale == "es-MX"

        await collect(provider, speech(20) + silence(25) + speech(20) + silence(25))

        assert provider.detected_locale == "en-US"
        # First segment used the default, later ones the detected locale
        assert provider._model.languages == ["es", "en"]

    @pytest.mark.asyncio
    async def test_only_silence_yields_nothing(self, energy_vad):
        provider = provider_with(["should not be used"])
        assert await collect(provider, silence(50)) == []
        assert provider._model.languages == []


class TestChunkTranscription:

    @pytest.mark.asyncio
    async def test_transcribe_wav_chunk(self):
        provider = provider_with(["una prueba"])
        pcm = np.full(48000, 2000, dtype=np.int16).tobytes()
        wav = encode_wav(pcm, 48000, channels=1)

        assert await provider.transcribe(wav, context_prompt="contexto") == "una prueba"

    @pytest.mark.asyncio
    async def test_empty_chunk(self):
        provider = provider_with(["unused"])
        assert await provider.transcribe(encode_wav(b"", 16000)) == ""
