"""
Session records produced by a recording.

Each record converts to and from plain dicts so the session store can keep
them as JSON.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class SessionStatus(Enum):
    """Lifecycle of a session. Only moves forward."""
    RECORDING = "recording"
    PROCESSING = "processing"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [SessionStatus.RECORDING, SessionStatus.PROCESSING, SessionStatus.COMPLETED]


@dataclass(frozen=True)
class TranscriptSegment:
    """A finalized piece of transcript. Never changes once created."""
    text: str
    order: int
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "order": self.order,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TranscriptSegment":
        return cls(
            text=data["text"],
            order=data["order"],
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass(frozen=True)
class TranscriptUpdate:
    """Update emitted by streaming transcription providers."""
    confirmed_text: str   # All finalized text so far
    partial_text: str     # In-flight guess, replaced wholesale each update
    segment_text: str     # Just-finalized segment (only when is_final)
    is_final: bool


@dataclass
class Question:
    """A nudge question generated during recording."""
    text: str
    session_id: str
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Question":
        return cls(
            text=data["text"],
            session_id=data["session_id"],
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass
class ChatMessage:
    """One turn of the post-meeting chat."""
    content: str
    is_user: bool = True
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def role(self) -> str:
        return "user" if self.is_user else "assistant"

    def to_dict(self) -> dict:
        return {
            "content": self.content,
            "is_user": self.is_user,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChatMessage":
        return cls(
            content=data["content"],
            is_user=data.get("is_user", True),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass
class SummaryResult:
    """Structured summary of a transcript."""
    summary: str
    key_points: List[str] = field(default_factory=list)
    action_items: List[str] = field(default_factory=list)
    participants: List[str] = field(default_factory=list)  # Speakers only

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "SummaryResult":
        """Build from the model's JSON payload (camelCase keys)."""
        if not isinstance(data, dict) or not isinstance(data.get("summary"), str):
            raise ValueError("summary payload must be an object with a 'summary' string")
        return cls(
            summary=data["summary"],
            key_points=[str(p) for p in data.get("keyPoints") or []],
            action_items=[str(a) for a in data.get("actionItems") or []],
            participants=[str(p) for p in data.get("participants") or []],
        )

    @classmethod
    def degraded(cls, raw_text: str) -> "SummaryResult":
        """Summary carrying the raw model text when it was not valid JSON."""
        return cls(summary=raw_text)


@dataclass(frozen=True)
class AudioFormat:
    """PCM format of live frames."""
    sample_rate: int = 16000
    channels: int = 1
    sample_width: int = 2  # bytes per sample (int16)


@dataclass
class Session:
    """A recording session and everything derived from it."""
    title: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = field(default_factory=datetime.now)
    duration: float = 0.0
    status: SessionStatus = SessionStatus.RECORDING
    transcript_text: str = ""
    audio_path: Optional[str] = None

    # Summary
    summary_text: Optional[str] = None
    key_points: List[str] = field(default_factory=list)
    action_items: List[str] = field(default_factory=list)
    participants: List[str] = field(default_factory=list)

    segments: List[TranscriptSegment] = field(default_factory=list)
    questions: List[Question] = field(default_factory=list)
    chat_messages: List[ChatMessage] = field(default_factory=list)

    def advance_status(self, status: SessionStatus):
        """Move the lifecycle forward. Moving backwards is an error."""
        if status.rank < self.status.rank:
            raise ValueError(f"Cannot move session from {self.status.value} back to {status.value}")
        self.status = status

    def update_transcript(self, text: str) -> bool:
        """Replace the transcript only with something at least as long."""
        if len(text) < len(self.transcript_text):
            return False
        self.transcript_text = text
        return True

    def apply_summary(self, summary: SummaryResult):
        self.summary_text = summary.summary
        self.key_points = list(summary.key_points)
        self.action_items = list(summary.action_items)
        self.participants = list(summary.participants)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "started_at": self.started_at.isoformat(),
            "duration": self.duration,
            "status": self.status.value,
            "transcript_text": self.transcript_text,
            "audio_path": self.audio_path,
            "summary_text": self.summary_text,
            "key_points": self.key_points,
            "action_items": self.action_items,
            "participants": self.participants,
            "segments": [s.to_dict() for s in self.segments],
            "questions": [q.to_dict() for q in self.questions],
            "chat_messages": [m.to_dict() for m in self.chat_messages],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            started_at=datetime.fromisoformat(data["started_at"]),
            duration=data.get("duration", 0.0),
            status=SessionStatus(data.get("status", "recording")),
            transcript_text=data.get("transcript_text", ""),
            audio_path=data.get("audio_path"),
            summary_text=data.get("summary_text"),
            key_points=data.get("key_points", []),
            action_items=data.get("action_items", []),
            participants=data.get("participants", []),
            segments=[TranscriptSegment.from_dict(s) for s in data.get("segments", [])],
            questions=[Question.from_dict(q) for q in data.get("questions", [])],
            chat_messages=[ChatMessage.from_dict(m) for m in data.get("chat_messages", [])],
        )
