"""
On-device streaming transcription using faster-whisper and WebRTC VAD.

Frames are segmented at natural speech breaks: a segment is finalized once
enough silence follows speech, or when it reaches the maximum length. While a
segment is in flight, the buffered audio is re-recognized periodically and
reported as partial text.

The spoken language is detected from the first finalized text and locked for
all later recognition on this instance.
"""

import asyncio
import importlib.util
from typing import AsyncIterator, List, Optional

import numpy as np
from langdetect import DetectorFactory, detect_langs
from langdetect.lang_detect_exception import LangDetectException

from ..audio_utils import TARGET_RATE, decode_wav, to_mono_16k
from ..errors import ProviderError, ProviderErrorKind
from ..logger import log_debug, log_info, log_warning
from ..meeting.models import AudioFormat, TranscriptUpdate
from .base import StreamingTranscriptionProvider
from .factory import register_engine

# Deterministic language detection
DetectorFactory.seed = 0

# Candidate locales for auto-detection, ordered by priority
CANDIDATE_LOCALES = [
    ("es", "es-MX"),
    ("en", "en-US"),
    ("pt", "pt-BR"),
    ("fr", "fr-FR"),
    ("de", "de-DE"),
    ("ja", "ja-JP"),
    ("zh", "zh-CN"),
]

DEFAULT_LOCALE = "es-MX"


def detect_locale(text: str) -> Optional[str]:
    """
    Map the dominant language of `text` to a supported locale.

    Returns:
        The first candidate locale whose language prefixes the detected code,
        the raw detected code if none match, or None if nothing was detected.
    """
    try:
        hypotheses = detect_langs(text)
    except LangDetectException:
        return None
    if not hypotheses:
        return None

    log_debug(f"[LocalStreaming] Language hypotheses: {[(h.lang, round(h.prob, 2)) for h in hypotheses[:3]]}")

    code = hypotheses[0].lang
    for language, locale in CANDIDATE_LOCALES:
        if code.startswith(language):
            return locale
    return code


def locale_language(locale: str) -> str:
    """'es-MX' -> 'es', 'zh-cn' -> 'zh'."""
    return locale.split("-")[0].lower()


@register_engine
class LocalStreamingProvider(StreamingTranscriptionProvider):
    """
    Streaming recognizer running Whisper on this machine.

    faster-whisper is a CTranslate2 implementation of Whisper; the model is
    loaded lazily on first use.
    """

    PROVIDER_ID = "local_streaming"
    PROVIDER_NAME = "Whisper (on-device, streaming)"
    ON_DEVICE = True

    FRAME_MS = 30                 # webrtcvad accepts 10/20/30ms frames
    SILENCE_MS = 600              # Silence that ends a segment
    MAX_SEGMENT_SECONDS = 30.0    # Force a segment even without silence
    PARTIAL_INTERVAL = 1.0        # Seconds between partial results

    def __init__(self, model_name: str = "base", device: str = "auto",
                 compute_type: str = "int8", default_locale: str = DEFAULT_LOCALE,
                 vad_aggressiveness: int = 2):
        self.model_name = model_name
        self.device = device
        self.compute_type = compute_type
        self.default_locale = default_locale
        self.vad_aggressiveness = vad_aggressiveness

        # Locked after auto-detection on the first confirmed segment
        self.detected_locale: Optional[str] = None

        self._model = None
        self._load_lock = asyncio.Lock()

    @classmethod
    def is_available(cls) -> bool:
        """Check if faster-whisper and webrtcvad are installed."""
        return all(importlib.util.find_spec(name) is not None
                   for name in ("faster_whisper", "webrtcvad"))

    @classmethod
    def get_install_hint(cls) -> str:
        return "pip install faster-whisper webrtcvad"

    @property
    def locale(self) -> str:
        return self.detected_locale or self.default_locale

    # --- Model ---

    async def _ensure_model(self):
        async with self._load_lock:
            if self._model is None:
                self._model = await asyncio.to_thread(self._load_model)

    def _load_model(self):
        """Load the Whisper model, falling back to CPU if the GPU load fails."""
        try:
            from faster_whisper import WhisperModel
        except ImportError as e:
            raise ProviderError(ProviderErrorKind.UNAVAILABLE,
                                f"On-device transcription is not available. {self.get_install_hint()}",
                                provider_id=self.PROVIDER_ID) from e

        log_info(f"[LocalStreaming] Loading model '{self.model_name}' on {self.device} ({self.compute_type})...")
        try:
            return WhisperModel(self.model_name, device=self.device, compute_type=self.compute_type)
        except Exception as e:
            log_warning(f"[LocalStreaming] Load on {self.device} failed ({e}), falling back to CPU...")

        try:
            return WhisperModel(self.model_name, device="cpu", compute_type="int8")
        except Exception as e:
            raise ProviderError(ProviderErrorKind.UNAVAILABLE,
                                f"On-device speech model could not be loaded: {e}",
                                provider_id=self.PROVIDER_ID) from e

    def _recognize(self, audio: np.ndarray, initial_prompt: Optional[str] = None) -> str:
        """Run Whisper on 16kHz mono int16 audio (blocking)."""
        audio_float = audio.astype(np.float32) / 32768.0
        segments_iter, _info = self._model.transcribe(
            audio=audio_float,
            language=locale_language(self.locale),
            initial_prompt=initial_prompt,
            vad_filter=False,
            condition_on_previous_text=False,
        )
        return "".join(segment.text for segment in segments_iter).strip()

    async def _recognize_async(self, audio: np.ndarray, initial_prompt: Optional[str] = None) -> str:
        return await asyncio.to_thread(self._recognize, audio, initial_prompt)

    # --- Chunk mode ---

    async def transcribe(self, audio_bytes: bytes, context_prompt: Optional[str] = None) -> str:
        await self._ensure_model()
        samples, sample_rate, channels = decode_wav(audio_bytes)
        if samples.size == 0:
            return ""
        mono = to_mono_16k(samples, channels, sample_rate)
        return await self._recognize_async(mono, initial_prompt=context_prompt)

    # --- Streaming mode ---

    async def start_streaming(
        self,
        frames: AsyncIterator,
        audio_format: AudioFormat,
    ) -> AsyncIterator[TranscriptUpdate]:
        await self._ensure_model()

        try:
            import webrtcvad
        except ImportError as e:
            raise ProviderError(ProviderErrorKind.UNAVAILABLE,
                                f"Voice activity detection is not available. {self.get_install_hint()}",
                                provider_id=self.PROVIDER_ID) from e

        log_info(f"[LocalStreaming] start_streaming() locale: {self.locale}, detected: {self.detected_locale is not None}")

        vad = webrtcvad.Vad(self.vad_aggressiveness)
        frame_size = TARGET_RATE * self.FRAME_MS // 1000  # 480 samples
        silence_frames_needed = self.SILENCE_MS // self.FRAME_MS
        max_samples = int(TARGET_RATE * self.MAX_SEGMENT_SECONDS)
        loop = asyncio.get_running_loop()

        pending = np.array([], dtype=np.int16)  # Not yet VAD-classified
        segment: List[np.ndarray] = []
        speech_seen = False
        silence_frames = 0
        confirmed = ""
        last_partial = loop.time()
        results = 0

        async for frame in frames:
            mono = to_mono_16k(np.asarray(frame, dtype=np.int16).reshape(-1),
                               audio_format.channels, audio_format.sample_rate)
            pending = np.concatenate([pending, mono])

            while len(pending) >= frame_size:
                vad_frame = pending[:frame_size]
                pending = pending[frame_size:]

                try:
                    is_speech = vad.is_speech(vad_frame.tobytes(), TARGET_RATE)
                except Exception:
                    is_speech = True  # Assume speech on error

                if is_speech:
                    speech_seen = True
                    silence_frames = 0
                else:
                    silence_frames += 1

                # Leading silence is dropped
                if speech_seen:
                    segment.append(vad_frame)

            if not speech_seen:
                continue

            segment_samples = sum(len(f) for f in segment)
            if silence_frames >= silence_frames_needed or segment_samples >= max_samples:
                update = await self._finalize_segment(segment, confirmed)
                segment, speech_seen, silence_frames = [], False, 0
                last_partial = loop.time()
                if update:
                    confirmed = update.confirmed_text
                    results += 1
                    log_debug(f"[LocalStreaming] Result #{results} FINAL: confirmed={len(confirmed.split())} words")
                    yield update
            elif loop.time() - last_partial >= self.PARTIAL_INTERVAL:
                last_partial = loop.time()
                partial = await self._recognize_async(np.concatenate(segment))
                if partial:
                    yield TranscriptUpdate(
                        confirmed_text=confirmed,
                        partial_text=partial,
                        segment_text="",
                        is_final=False,
                    )

        # Input ended: finalize whatever speech is still buffered
        if speech_seen and segment:
            update = await self._finalize_segment(segment, confirmed)
            if update:
                yield update

        log_info("[LocalStreaming] Frame sequence ended")

    async def _finalize_segment(self, segment: List[np.ndarray], confirmed: str) -> Optional[TranscriptUpdate]:
        text = await self._recognize_async(np.concatenate(segment))
        if not text:
            return None

        confirmed = f"{confirmed} {text}" if confirmed else text

        if self.detected_locale is None:
            detected = detect_locale(confirmed)
            if detected:
                log_info(f"[LocalStreaming] Auto-detected language -> {detected}")
            self.detected_locale = detected or self.default_locale

        return TranscriptUpdate(
            confirmed_text=confirmed,
            partial_text="",
            segment_text=text,
            is_final=True,
        )
