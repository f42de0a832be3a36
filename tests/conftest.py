"""
Pytest fixtures for MeetingMind tests.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest

# Keep test logs out of the home folder (read when the logger is first imported)
os.environ.setdefault("MEETINGMIND_LOG_DIR", tempfile.mkdtemp(prefix="meetingmind-logs-"))

# Add src directory and the shared fakes to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_summary_json():
    """Summary payload as the model is asked to return it."""
    return (
        '{"summary": "Planning for the Q3 launch.", '
        '"keyPoints": ["Launch moves to July", "Budget approved"], '
        '"actionItems": ["Ana drafts the announcement"], '
        '"participants": ["Ana (PM)", "Luis"]}'
    )


@pytest.fixture
def mock_config():
    """Config sections as ConfigManager returns them."""
    return {
        "providers": {
            "transcription": "whisper_api",
            "ai": "local_llm",
            "local_model": "small",
            "local_device": "cpu",
            "local_compute_type": "int8",
            "default_locale": "en-US",
            "llm_base_url": "http://localhost:11434",
            "llm_model": None,
        },
        "session_options": {
            "question_word_threshold": 30,
            "chunk_interval_seconds": 6,
            "drain_grace_seconds": 2,
            "summary_timeout_seconds": 10,
            "context_hint_chars": 200,
        },
        "audio": {
            "sample_rate": 48000,
            "channels": 2,
            "blocksize": 512,
        },
    }
