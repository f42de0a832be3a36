"""
Meeting sessions

Records a session, transcribes it live, suggests questions along the way and
summarizes it when recording stops.
"""

# Lazy imports to avoid loading audio and provider dependencies when only the models are needed
def __getattr__(name):
    if name in ("AudioSource", "AudioCapture", "AudioSettings"):
        from . import capture
        return getattr(capture, name)
    elif name == "TranscriptAccumulator":
        from .transcript import TranscriptAccumulator
        return TranscriptAccumulator
    elif name in ("SessionOrchestrator", "SessionConfig", "SessionState"):
        from . import session
        return getattr(session, name)
    elif name == "SessionChat":
        from .chat import SessionChat
        return SessionChat
    elif name == "SessionStore":
        from .storage import SessionStore
        return SessionStore
    elif name == "race_with_deadline":
        from .deadline import race_with_deadline
        return race_with_deadline
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    "AudioSource",
    "AudioCapture",
    "AudioSettings",
    "TranscriptAccumulator",
    "SessionOrchestrator",
    "SessionConfig",
    "SessionState",
    "SessionChat",
    "SessionStore",
    "race_with_deadline",
]
