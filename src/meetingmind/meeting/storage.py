"""
Session persistence as one JSON file per session.

Writes go to a temp file that is then renamed over the target, so a session
file is either the old version or the new one, never half-written.
"""

import json
import os
from pathlib import Path
from typing import List, Optional, Union

from ..logger import log_info, log_warning
from .models import Session

DEFAULT_SESSIONS_DIR = Path.home() / ".meetingmind" / "sessions"


class SessionStore:
    """Stores sessions as <id>.json under a root folder."""

    def __init__(self, root_dir: Optional[Union[str, Path]] = None):
        self.root_dir = Path(root_dir) if root_dir else DEFAULT_SESSIONS_DIR
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, session_id: str) -> Path:
        return self.root_dir / f"{session_id}.json"

    def audio_path_for(self, session_id: str) -> Path:
        return self.root_dir / f"{session_id}.wav"

    def save(self, session: Session) -> Path:
        """Write the session. Durable when this returns."""
        filepath = self.path_for(session.id)
        temp_path = filepath.with_suffix('.tmp')

        with open(temp_path, 'w', encoding='utf-8') as f:
            json.dump(session.to_dict(), f, ensure_ascii=False, indent=2)
            f.flush()
            os.fsync(f.fileno())
        temp_path.replace(filepath)
        return filepath

    def load(self, session_id: str) -> Session:
        """
        Raises:
            FileNotFoundError: If no session has this id
        """
        filepath = self.path_for(session_id)
        data = json.loads(filepath.read_text(encoding='utf-8'))
        return Session.from_dict(data)

    def list_sessions(self) -> List[Session]:
        """All stored sessions, newest first. Unreadable files are skipped."""
        sessions = []
        for filepath in self.root_dir.glob("*.json"):
            try:
                sessions.append(Session.from_dict(json.loads(filepath.read_text(encoding='utf-8'))))
            except (OSError, ValueError, KeyError) as e:
                log_warning(f"[Storage] Skipping unreadable session file {filepath.name}: {e}")
        sessions.sort(key=lambda s: s.started_at, reverse=True)
        return sessions

    def delete(self, session_id: str) -> bool:
        """Delete a session and its recording. Returns False if it did not exist."""
        filepath = self.path_for(session_id)
        if not filepath.exists():
            return False
        filepath.unlink()
        self.audio_path_for(session_id).unlink(missing_ok=True)
        log_info(f"[Storage] Deleted session {session_id}")
        return True

    def export_markdown(self, session: Session, filepath: Optional[Union[str, Path]] = None) -> Path:
        """Write the session as a markdown document next to the JSON file (or to `filepath`)."""
        if filepath is None:
            filepath = self.root_dir / session.started_at.strftime("meeting_%Y%m%d_%H%M%S.md")
        filepath = Path(filepath)

        temp_path = filepath.with_suffix('.tmp')
        temp_path.write_text(session_markdown(session), encoding='utf-8')
        temp_path.replace(filepath)
        log_info(f"[Storage] Exported to: {filepath}")
        return filepath


def format_duration(seconds: float) -> str:
    """Format seconds as HH:MM:SS or MM:SS."""
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def session_markdown(session: Session) -> str:
    title = f"# {session.title}" if session.title else "# Meeting Transcript"

    lines = [
        title,
        "",
        f"**Date**: {session.started_at.strftime('%Y-%m-%d %H:%M')}",
        f"**Duration**: {format_duration(session.duration)}",
    ]
    if session.participants:
        lines.append(f"**Participants**: {', '.join(session.participants)}")
    lines += ["", "---", ""]

    if session.summary_text:
        lines += ["## Summary", "", session.summary_text, ""]
        if session.key_points:
            lines += ["## Key Points", ""] + [f"- {p}" for p in session.key_points] + [""]
        if session.action_items:
            lines += ["## Action Items", ""] + [f"- [ ] {a}" for a in session.action_items] + [""]
        lines += ["---", ""]

    if session.questions:
        lines += ["## Questions", ""] + [f"- {q.text}" for q in session.questions] + [""]

    if session.transcript_text:
        lines += ["## Full Transcript", "", session.transcript_text, ""]

    return "\n".join(lines)
