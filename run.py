"""
MeetingMind - live meeting transcription with questions and summaries.

Entry point for running from a source checkout.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from meetingmind.main import main  # noqa: E402


if __name__ == '__main__':
    print('Starting MeetingMind...')
    sys.exit(main())
