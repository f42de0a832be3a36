"""
MeetingMind - live meeting transcription with questions and summaries.
"""

__version__ = "0.1.0"
