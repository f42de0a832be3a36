"""
Audio helpers: WAV encoding/decoding and conversion to the 16kHz mono int16
format the local recognizer and VAD expect.
"""

import io
import wave
from math import gcd

import numpy as np
from scipy.signal import resample_poly

# Canonical PCM WAV header size. A WAV of this size or less has no audio.
WAV_HEADER_SIZE = 44

TARGET_RATE = 16000


def encode_wav(pcm: bytes, sample_rate: int, channels: int = 1, sample_width: int = 2) -> bytes:
    """Wrap raw PCM bytes in a complete WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buffer.getvalue()


def decode_wav(data: bytes):
    """
    Decode 16-bit PCM WAV bytes.

    Returns:
        Tuple of (int16 samples, sample_rate, channels)
    """
    with wave.open(io.BytesIO(data), 'rb') as wf:
        if wf.getsampwidth() != 2:
            raise ValueError("Only 16-bit PCM is supported.")
        channels = wf.getnchannels()
        sample_rate = wf.getframerate()
        raw = wf.readframes(wf.getnframes())
    return np.frombuffer(raw, dtype=np.int16), sample_rate, channels


def to_mono_16k(audio: np.ndarray, channels: int, source_rate: int) -> np.ndarray:
    """
    Convert interleaved int16 audio to 16kHz mono int16.

    Args:
        audio: Raw interleaved audio as int16
        channels: Number of audio channels
        source_rate: Source sample rate (e.g., 48000)

    Returns:
        Mono int16 audio at 16kHz
    """
    if channels == 1 and source_rate == TARGET_RATE:
        return audio.astype(np.int16, copy=False)

    audio_float = audio.astype(np.float32)

    # Sum channels then compensate, preserving energy
    if channels > 1:
        audio_float = audio_float.reshape(-1, channels).sum(axis=1) / np.sqrt(channels)

    if source_rate != TARGET_RATE:
        g = gcd(TARGET_RATE, source_rate)
        audio_float = resample_poly(audio_float, TARGET_RATE // g, source_rate // g)

    audio_float = np.clip(audio_float, -32768, 32767)
    return audio_float.astype(np.int16)
