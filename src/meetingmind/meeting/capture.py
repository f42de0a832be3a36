"""
Audio capture for meeting sessions.

The PortAudio callback runs on its own thread; it only hands frames to the
event loop. A single writer task then owns every destination: the
full-session WAV file, the rotating chunk buffer used in chunked mode and the
live-frame queue used in streaming mode.

While a live consumer is attached, the chunk buffer only holds recent audio
the recognizer has not confirmed yet, ready for a switch to chunked mode.
"""

import asyncio
import time
import wave
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional

import numpy as np

from ..audio_utils import WAV_HEADER_SIZE, encode_wav
from ..logger import log_debug, log_info, log_warning
from .models import AudioFormat

# Callback -> writer queue (~64s of 1024-frame blocks at 16kHz)
CAPTURE_QUEUE_SIZE = 1000
# Writer -> streaming consumer queue
LIVE_QUEUE_SIZE = 1000
# Unconfirmed audio kept for chunked fallback while streaming (longest recognizer segment)
LIVE_BACKLOG_SECONDS = 30


@dataclass
class AudioSettings:
    sample_rate: int = 16000
    channels: int = 1
    blocksize: int = 1024

    @classmethod
    def from_config(cls, section: dict) -> "AudioSettings":
        """Build from the `audio` config section."""
        defaults = cls()
        return cls(
            sample_rate=int(section.get("sample_rate") or defaults.sample_rate),
            channels=int(section.get("channels") or defaults.channels),
            blocksize=int(section.get("blocksize") or defaults.blocksize),
        )


class AudioSource(ABC):
    """Where session audio comes from."""

    audio_format: AudioFormat = AudioFormat()

    @property
    def supports_live_frames(self) -> bool:
        """True if live_frames() can feed a streaming recognizer."""
        return False

    @property
    def elapsed_time(self) -> float:
        return 0.0

    @property
    def recording_path(self) -> Optional[Path]:
        return None

    @abstractmethod
    async def request_permission(self) -> bool:
        """Return True if audio can be captured."""

    @abstractmethod
    async def start(self, recording_path: Optional[Path] = None):
        """
        Start capturing. Raises on failure.

        Args:
            recording_path: Where to keep the full-session WAV, if anywhere
        """

    @abstractmethod
    async def stop_and_return_trailing_chunk(self) -> Optional[bytes]:
        """Stop capturing and return the WAV chunk not yet rotated out (or None)."""

    @abstractmethod
    def next_rotated_chunk(self) -> Optional[bytes]:
        """Return audio captured since the last rotation as a WAV, or None if there is none."""

    def live_frames(self) -> AsyncIterator[np.ndarray]:
        """Async iterator of int16 frames that ends when capture stops."""
        raise NotImplementedError(f"{type(self).__name__} does not provide live frames")

    def detach_live_frames(self):
        """End the live-frame iterator; chunk rotation continues unbounded."""

    def discard_rotated_audio(self):
        """Drop audio not yet rotated out (a streaming recognizer has confirmed it)."""


class AudioCapture(AudioSource):
    """Captures the default microphone with sounddevice."""

    def __init__(self, settings: Optional[AudioSettings] = None):
        self.settings = settings or AudioSettings()
        self.audio_format = AudioFormat(sample_rate=self.settings.sample_rate,
                                        channels=self.settings.channels, sample_width=2)
        self._recording_path: Optional[Path] = None

        self._recording = False
        self._stream = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._writer_task: Optional[asyncio.Task] = None
        self._wav: Optional[wave.Wave_write] = None
        self._chunk_buffer = bytearray()
        self._live_queue: Optional[asyncio.Queue] = None
        self._started_at: Optional[float] = None
        self._stopped_at: Optional[float] = None

        self.dropped_frames = 0

    @property
    def supports_live_frames(self) -> bool:
        return True

    @property
    def elapsed_time(self) -> float:
        if self._started_at is None:
            return 0.0
        end = self._stopped_at if self._stopped_at is not None else time.monotonic()
        return end - self._started_at

    @property
    def recording_path(self) -> Optional[Path]:
        return self._recording_path

    async def request_permission(self) -> bool:
        return await asyncio.to_thread(self._query_input_device)

    def _query_input_device(self) -> bool:
        try:
            import sounddevice as sd
            device = sd.query_devices(kind='input')
        except (ImportError, OSError, ValueError) as e:
            # OSError covers a missing PortAudio library and sd.PortAudioError
            log_warning(f"[Capture] No usable input device: {e}")
            return False
        log_info(f"[Capture] Default mic: {device['name']}")
        return True

    async def start(self, recording_path: Optional[Path] = None):
        if self._recording:
            return

        import sounddevice as sd

        self._recording_path = Path(recording_path) if recording_path else None
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=CAPTURE_QUEUE_SIZE)
        self._chunk_buffer = bytearray()
        self._live_queue = None
        self.dropped_frames = 0

        if self._recording_path:
            self._recording_path.parent.mkdir(parents=True, exist_ok=True)
            self._wav = wave.open(str(self._recording_path), 'wb')
            self._wav.setnchannels(self.settings.channels)
            self._wav.setsampwidth(2)
            self._wav.setframerate(self.settings.sample_rate)

        # Set recording flag first so the callback keeps the first frames
        self._recording = True
        try:
            self._stream = sd.InputStream(
                samplerate=self.settings.sample_rate,
                channels=self.settings.channels,
                dtype='int16',
                blocksize=self.settings.blocksize,
                callback=self._callback,
            )
            self._stream.start()
        except Exception:
            self._recording = False
            self._close_stream()
            self._close_wav()
            raise

        self._started_at = time.monotonic()
        self._stopped_at = None
        self._writer_task = asyncio.create_task(self._write_frames())
        log_info(f"[Capture] Microphone stream started ({self.settings.sample_rate}Hz, {self.settings.channels}ch)")

    def _callback(self, indata, frames, time_info, status):
        """PortAudio thread: hand the block to the event loop."""
        if not self._recording:
            return
        if status:
            log_debug(f"[Capture] Stream status: {status}")
        self._loop.call_soon_threadsafe(self._enqueue, indata.copy())

    def _enqueue(self, frame: np.ndarray):
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            self.dropped_frames += 1

    async def _write_frames(self):
        """Single consumer for captured frames. Ends on a None sentinel."""
        while True:
            frame = await self._queue.get()
            if frame is None:
                break

            pcm = frame.tobytes()
            if self._wav:
                self._wav.writeframes(pcm)
            self._chunk_buffer.extend(pcm)

            if self._live_queue is not None:
                self._offer_live(frame)
                self._trim_backlog()

    @property
    def _backlog_limit(self) -> int:
        return self.settings.sample_rate * self.settings.channels * 2 * LIVE_BACKLOG_SECONDS

    def _trim_backlog(self):
        # Both sizes are whole frames, so the cut is frame-aligned
        excess = len(self._chunk_buffer) - self._backlog_limit
        if excess > 0:
            del self._chunk_buffer[:excess]

    def _offer_live(self, frame):
        """Put onto the live queue, dropping the oldest frame when full."""
        try:
            self._live_queue.put_nowait(frame)
        except asyncio.QueueFull:
            self._live_queue.get_nowait()
            self.dropped_frames += 1
            self._live_queue.put_nowait(frame)

    def live_frames(self) -> AsyncIterator[np.ndarray]:
        # Attach now so frames are buffered before iteration begins
        if self._live_queue is None:
            self._live_queue = asyncio.Queue(maxsize=LIVE_QUEUE_SIZE)
            if not self._recording and self._started_at is not None:
                self._offer_live(None)
        return self._iter_live(self._live_queue)

    @staticmethod
    async def _iter_live(live_queue: asyncio.Queue):
        while True:
            frame = await live_queue.get()
            if frame is None:
                return
            yield frame

    def detach_live_frames(self):
        if self._live_queue is None:
            return
        self._offer_live(None)
        self._live_queue = None
        log_debug("[Capture] Live frames detached")

    def discard_rotated_audio(self):
        self._chunk_buffer.clear()

    def _take_pcm(self) -> bytes:
        pcm = bytes(self._chunk_buffer)
        self._chunk_buffer.clear()
        return pcm

    def _pcm_to_chunk(self, pcm: bytes) -> Optional[bytes]:
        if not pcm:
            return None
        wav = encode_wav(pcm, self.settings.sample_rate, self.settings.channels)
        return wav if len(wav) > WAV_HEADER_SIZE else None

    def next_rotated_chunk(self) -> Optional[bytes]:
        return self._pcm_to_chunk(self._take_pcm())

    async def stop_and_return_trailing_chunk(self) -> Optional[bytes]:
        if not self._recording:
            return await asyncio.to_thread(self._pcm_to_chunk, self._take_pcm())

        self._recording = False
        self._stopped_at = time.monotonic()
        await asyncio.to_thread(self._close_stream)

        # Frames already queued are still written
        if self._writer_task:
            await self._queue.put(None)
            await self._writer_task
            self._writer_task = None

        self._close_wav()
        if self._live_queue is not None:
            self._offer_live(None)

        if self.dropped_frames:
            log_warning(f"[Capture] Dropped {self.dropped_frames} audio blocks (consumer too slow)")
        log_info(f"[Capture] Capture stopped after {self.elapsed_time:.1f}s")
        return await asyncio.to_thread(self._pcm_to_chunk, self._take_pcm())

    def _close_stream(self):
        if self._stream is None:
            return
        try:
            self._stream.stop()
            self._stream.close()
        except Exception as e:
            log_warning(f"[Capture] Error closing stream: {e}")
        self._stream = None

    def _close_wav(self):
        if self._wav is None:
            return
        self._wav.close()
        self._wav = None
        log_debug(f"[Capture] Recording saved: {self._recording_path}")
