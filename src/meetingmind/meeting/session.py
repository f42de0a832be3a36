"""
Recording session orchestration.

A session runs these concurrent tasks, all owned here:
- transcription: a streaming recognizer fed with live frames, or a loop
  that rotates out a chunk every few seconds and transcribes it
- question requests, one per word-threshold crossing
- a 1-second timer that reports the elapsed time
- on stop, finalization: drain transcription, then summarize under a deadline

Failures never end the process. Transcription and question errors are
logged and the session carries on; an on-device provider that turns out to
be unusable is swapped for the cloud one for later calls.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Set

from ..engines import StreamingTranscriptionProvider
from ..errors import DeadlineExceeded, PermissionDenied, ProviderError, ProviderErrorKind
from ..logger import log_debug, log_error, log_exception, log_info, log_warning
from .capture import AudioSource
from .deadline import race_with_deadline
from .models import Question, Session, SessionStatus
from .transcript import TranscriptAccumulator

SUMMARY_TIMEOUT_NOTICE = "Summary timed out, transcript saved"


class SessionState(Enum):
    IDLE = "idle"
    RECORDING = "recording"
    FINALIZING = "finalizing"
    COMPLETED = "completed"


@dataclass
class SessionConfig:
    question_word_threshold: int = 50
    chunk_interval_seconds: float = 12.0
    drain_grace_seconds: float = 5.0
    summary_timeout_seconds: float = 30.0
    context_hint_chars: int = 500
    timer_interval_seconds: float = 1.0

    @classmethod
    def from_config(cls, section: dict) -> "SessionConfig":
        """Build from the `session_options` config section."""
        defaults = cls()
        values = {}
        for name in cls.__dataclass_fields__:
            value = section.get(name)
            values[name] = type(getattr(defaults, name))(value) if value is not None else getattr(defaults, name)
        return cls(**values)


class SessionOrchestrator:
    """
    Drives one recording session at a time from start to summary.

    Observers read the public attributes below and can register a listener
    that is called with (field_name, value) whenever one of them changes.
    """

    def __init__(self, factory, audio_source: AudioSource, save: Callable[[Session], object],
                 config: Optional[SessionConfig] = None,
                 audio_path_for: Optional[Callable[[str], Path]] = None):
        """
        Args:
            factory: ProviderFactory used to resolve (and re-resolve) providers
            audio_source: Where audio comes from
            save: Persists a session; must be durable when it returns
            config: Timing and threshold settings
            audio_path_for: Maps a session id to its full-session WAV path
        """
        self.factory = factory
        self.audio_source = audio_source
        self.config = config or SessionConfig()
        self._save = save
        self._audio_path_for = audio_path_for

        # Observable state
        self.state = SessionState.IDLE
        self.is_recording = False
        self.is_processing = False
        self.transcript_text = ""
        self.live_questions: List[Question] = []
        self.recording_duration = 0.0
        self.error: Optional[str] = None
        self.summary_ready = False
        self.current_session: Optional[Session] = None

        self.mode: Optional[str] = None  # "streaming" or "chunked"

        self._listeners: List[Callable[[str, object], None]] = []
        self._transcription = None
        self._ai = None
        self._accumulator: Optional[TranscriptAccumulator] = None
        self._transcription_task: Optional[asyncio.Task] = None
        self._timer_task: Optional[asyncio.Task] = None
        self._finalize_task: Optional[asyncio.Task] = None
        self._chunk_inflight: Optional[asyncio.Future] = None
        self._question_tasks: Set[asyncio.Task] = set()
        self._ready = asyncio.Event()

    # --- Observer surface ---

    def add_listener(self, callback: Callable[[str, object], None]):
        self._listeners.append(callback)

    def _set(self, field_name: str, value):
        setattr(self, field_name, value)
        for callback in list(self._listeners):
            try:
                callback(field_name, value)
            except Exception as e:
                log_exception(e, f"[Session] Listener failed on '{field_name}'")

    async def wait_until_ready(self):
        """Wait until the stopped session is finalized and saved."""
        await self._ready.wait()

    async def wait_for_pending_questions(self):
        """Wait for question requests still in flight."""
        while self._question_tasks:
            await asyncio.gather(*list(self._question_tasks), return_exceptions=True)

    @property
    def transcription_provider(self):
        return self._transcription

    @property
    def ai_provider(self):
        return self._ai

    # --- Start ---

    async def start_recording(self, title: Optional[str] = None) -> bool:
        """
        Start a new session.

        Returns:
            True if recording started. On failure the state goes back to
            IDLE, `error` says why and nothing is saved.
        """
        if self.state in (SessionState.RECORDING, SessionState.FINALIZING):
            log_warning(f"[Session] Start ignored, session is {self.state.value}")
            return False

        self._reset_observables()

        try:
            self._transcription = self._resolve_transcription()
            self._ai = self.factory.ai()
        except (ProviderError, ImportError) as e:
            self._fail_start(f"Could not set up providers: {e}")
            return False

        try:
            if not await self.audio_source.request_permission():
                raise PermissionDenied()
        except PermissionDenied as e:
            self._fail_start(str(e))
            return False

        session = Session(title=title or f"Meeting {datetime.now():%Y-%m-%d %H:%M}")
        recording_path = self._audio_path_for(session.id) if self._audio_path_for else None

        try:
            await self.audio_source.start(recording_path)
        except Exception as e:
            log_exception(e, "[Session] Audio source failed to start")
            self._fail_start(f"Could not start recording: {e}")
            return False

        if recording_path:
            session.audio_path = str(recording_path)

        self._accumulator = TranscriptAccumulator(question_word_threshold=self.config.question_word_threshold)
        self._set("current_session", session)
        self._set("state", SessionState.RECORDING)
        self._set("is_recording", True)
        self._persist()

        streaming = (isinstance(self._transcription, StreamingTranscriptionProvider)
                     and self.audio_source.supports_live_frames)
        if streaming:
            self.mode = "streaming"
            self._transcription_task = asyncio.create_task(self._run_streaming())
        else:
            self.mode = "chunked"
            self._transcription_task = asyncio.create_task(self._run_chunk_loop())
        self._timer_task = asyncio.create_task(self._run_timer())

        log_info(f"[Session] Recording started: {session.id} ({self.mode}, "
                 f"transcription={self._transcription.PROVIDER_ID}, ai={self._ai.PROVIDER_ID})")
        return True

    def _resolve_transcription(self):
        try:
            return self.factory.transcription()
        except ProviderError as e:
            if not e.is_on_device_unavailable:
                raise
            log_warning(f"[Session] On-device transcription unavailable ({e}), using cloud")
            return self.factory.transcription(on_device=False)

    def _reset_observables(self):
        self._ready = asyncio.Event()
        self._chunk_inflight = None
        self.mode = None
        self._set("error", None)
        self._set("summary_ready", False)
        self._set("transcript_text", "")
        self._set("live_questions", [])
        self._set("recording_duration", 0.0)

    def _fail_start(self, message: str):
        log_error(f"[Session] Start failed: {message}")
        self._set("state", SessionState.IDLE)
        self._set("is_recording", False)
        self._set("error", message)

    # --- Recording ---

    async def _run_timer(self):
        while True:
            await asyncio.sleep(self.config.timer_interval_seconds)
            self._set("recording_duration", self.audio_source.elapsed_time)

    async def _run_chunk_loop(self):
        """Every interval, transcribe what was captured since the last chunk."""
        while True:
            await asyncio.sleep(self.config.chunk_interval_seconds)
            chunk = self.audio_source.next_rotated_chunk()
            if chunk is None:
                continue

            # Shielded so stopping the loop doesn't lose a chunk mid-request
            inflight = asyncio.ensure_future(self._transcribe_chunk(chunk))
            self._chunk_inflight = inflight
            await asyncio.shield(inflight)
            self._chunk_inflight = None

    async def _transcribe_chunk(self, chunk: bytes):
        provider = self._transcription
        hint = self._accumulator.context_hint(self.config.context_hint_chars)
        try:
            text = await provider.transcribe(chunk, hint)
        except ProviderError as e:
            log_warning(f"[Session] Chunk transcription failed: {e}")
            if e.is_on_device_unavailable and provider is self._transcription:
                self._transcription = self.factory.transcription(on_device=False)
                log_info(f"[Session] Transcription switched to {self._transcription.PROVIDER_ID}")
            return
        except Exception as e:
            log_exception(e, "[Session] Chunk transcription failed")
            return

        if self._accumulator.add_chunk(text):
            self._request_question()
        self._publish_transcript(persist=bool(text.strip()))

    async def _run_streaming(self):
        provider = self._transcription
        updates = provider.start_streaming(self.audio_source.live_frames(), self.audio_source.audio_format)
        try:
            async for update in updates:
                if update.is_final:
                    # Confirmed audio is no longer needed for a chunked fallback
                    self.audio_source.discard_rotated_audio()
                if self._accumulator.apply_update(update):
                    self._request_question()
                self._publish_transcript(persist=update.is_final)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_exception(e, "[Session] Streaming transcription failed")
        else:
            if self.state is SessionState.RECORDING:
                log_warning("[Session] Streaming ended while recording")
        finally:
            aclose = getattr(updates, "aclose", None)
            if aclose is not None:
                await aclose()

        if self.state is SessionState.RECORDING:
            await self._fall_back_to_chunks()

    async def _fall_back_to_chunks(self):
        """Switch a failed stream to chunked cloud transcription (same task)."""
        self.audio_source.detach_live_frames()
        self._accumulator.end_stream()
        self._set("transcript_text", self._accumulator.transcript_text)
        self._transcription = self.factory.transcription(on_device=False)
        self.mode = "chunked"
        log_info(f"[Session] Falling back to chunked transcription with {self._transcription.PROVIDER_ID}")
        await self._run_chunk_loop()

    def _publish_transcript(self, persist: bool = False):
        session = self.current_session
        self._set("transcript_text", self._accumulator.transcript_text)
        session.update_transcript(self._accumulator.durable_text)
        session.segments = list(self._accumulator.segments)
        if persist:
            self._persist()

    # --- Questions ---

    def _request_question(self):
        session = self.current_session
        context = self._accumulator.transcript_text
        previous = [q.text for q in session.questions]
        log_debug(f"[Session] Question due at {len(context.split())} words")

        task = asyncio.create_task(self._generate_question(session, context, previous))
        self._question_tasks.add(task)
        task.add_done_callback(self._question_tasks.discard)

    async def _generate_question(self, session: Session, context: str, previous: List[str]):
        provider = self._ai
        try:
            text = await provider.generate_question(context, previous)
        except ProviderError as e:
            log_warning(f"[Session] Question generation failed: {e}")
            if e.kind is ProviderErrorKind.MODEL_UNAVAILABLE and provider is self._ai:
                self._switch_ai_to_cloud()
            return
        except Exception as e:
            log_exception(e, "[Session] Question generation failed")
            return

        if not text:
            return

        question = Question(text=text, session_id=session.id)
        session.questions.append(question)
        if session is self.current_session:
            self._set("live_questions", self.live_questions + [question])
        log_info(f"[Session] Question: {text}")
        self._persist(session)

    def _switch_ai_to_cloud(self) -> bool:
        """Replace the AI provider with the cloud variant. False if that fails."""
        try:
            self._ai = self.factory.ai(on_device=False)
        except Exception as e:
            log_exception(e, "[Session] Could not create the cloud AI provider")
            return False
        log_info(f"[Session] AI switched to {self._ai.PROVIDER_ID}")
        return True

    # --- Stop ---

    def stop_recording(self) -> Optional[asyncio.Task]:
        """
        Stop recording.

        The session is marked processing and saved before this returns;
        draining and summarizing continue in the returned task.
        """
        if self.state is not SessionState.RECORDING:
            log_warning(f"[Session] Stop ignored, session is {self.state.value}")
            return None

        session = self.current_session
        session.duration = self.audio_source.elapsed_time
        session.advance_status(SessionStatus.PROCESSING)
        session.update_transcript(self._accumulator.durable_text)

        self._set("state", SessionState.FINALIZING)
        self._set("is_recording", False)
        self._set("is_processing", True)
        self._set("recording_duration", session.duration)
        self._persist()

        if self._timer_task:
            self._timer_task.cancel()

        log_info(f"[Session] Recording stopped after {session.duration:.1f}s, finalizing")
        self._finalize_task = asyncio.create_task(self._finalize(session))
        return self._finalize_task

    async def _finalize(self, session: Session):
        try:
            await self._cancel_and_wait(self._timer_task)

            if self.mode == "streaming":
                await self._drain_stream()
            else:
                await self._drain_chunks()

            final_text = self._accumulator.finalize()
            session.update_transcript(final_text)
            session.segments = list(self._accumulator.segments)
            self._set("transcript_text", session.transcript_text)

            if session.transcript_text.strip():
                await self._summarize(session)
            else:
                log_info("[Session] Empty transcript, skipping summary")
        finally:
            session.advance_status(SessionStatus.COMPLETED)
            self._persist(session)
            self._set("is_processing", False)
            self._set("state", SessionState.COMPLETED)
            self._set("summary_ready", True)
            self._ready.set()
            log_info(f"[Session] Session {session.id} completed")

    async def _stop_audio(self) -> Optional[bytes]:
        try:
            return await self.audio_source.stop_and_return_trailing_chunk()
        except Exception as e:
            log_exception(e, "[Session] Error stopping audio source")
            return None

    async def _drain_stream(self):
        """End the frame sequence, give the recognizer a grace period, then cancel it."""
        await self._stop_audio()

        task = self._transcription_task
        if task is None:
            return
        done, _ = await asyncio.wait({task}, timeout=self.config.drain_grace_seconds)
        if not done:
            log_warning(f"[Session] Streaming did not finish within {self.config.drain_grace_seconds:g}s, cancelling")
        await self._cancel_and_wait(task)

    async def _drain_chunks(self):
        await self._cancel_and_wait(self._transcription_task)

        # A chunk already sent keeps going to completion
        if self._chunk_inflight is not None:
            await asyncio.gather(self._chunk_inflight, return_exceptions=True)
            self._chunk_inflight = None

        trailing = await self._stop_audio()
        if trailing:
            await self._transcribe_chunk(trailing)

    async def _summarize(self, session: Session):
        timeout = self.config.summary_timeout_seconds
        for attempt in range(2):
            provider = self._ai
            try:
                summary = await race_with_deadline(provider.generate_summary(session.transcript_text),
                                                   timeout, "Summary")
            except DeadlineExceeded:
                self._set("error", SUMMARY_TIMEOUT_NOTICE)
                return
            except ProviderError as e:
                if attempt == 0 and e.kind is ProviderErrorKind.MODEL_UNAVAILABLE:
                    log_warning(f"[Session] {e} Retrying summary with the cloud provider")
                    if self._switch_ai_to_cloud():
                        continue
                log_error(f"[Session] Summary failed: {e}")
                self._set("error", f"Failed to generate summary: {e}")
                return
            except Exception as e:
                log_exception(e, "[Session] Summary failed")
                self._set("error", f"Failed to generate summary: {e}")
                return

            session.apply_summary(summary)
            log_info(f"[Session] Summary ready: {len(summary.key_points)} key points, "
                     f"{len(summary.action_items)} action items")
            return

    # --- Teardown ---

    async def close(self):
        """Cancel everything still running (recording, finalization, questions)."""
        tasks = [self._transcription_task, self._timer_task, self._finalize_task, self._chunk_inflight]
        tasks += list(self._question_tasks)
        for task in tasks:
            await self._cancel_and_wait(task)
        if self.is_recording:
            await self._stop_audio()
            self._set("is_recording", False)

    @staticmethod
    async def _cancel_and_wait(task: Optional[asyncio.Future]):
        if task is None:
            return
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    def _persist(self, session: Optional[Session] = None):
        session = session or self.current_session
        if session is None:
            return
        try:
            self._save(session)
        except Exception as e:
            log_exception(e, f"[Session] Failed to save session {session.id}")
