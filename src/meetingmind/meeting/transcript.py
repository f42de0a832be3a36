"""
Running transcript for a recording session.

The accumulator is the only writer of transcript state. It turns streaming
updates or chunk results into display text and ordered segments, and counts
new words so the session knows when to ask for another question.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .models import TranscriptSegment, TranscriptUpdate


def count_words(text: str) -> int:
    return len(text.split())


@dataclass
class TranscriptAccumulator:
    """Accumulates transcript text and decides when a question is due."""

    question_word_threshold: int = 50

    transcript_text: str = ""         # What the user sees
    confirmed_transcript: str = ""    # Finalized streaming text only
    words_since_last_question: int = 0
    next_segment_order: int = 0
    segments: List[TranscriptSegment] = field(default_factory=list)
    streaming: bool = False

    def apply_update(self, update: TranscriptUpdate) -> bool:
        """
        Apply a streaming update.

        Returns:
            True if a question should be requested now
        """
        self.streaming = True
        confirmed = update.confirmed_text
        partial = update.partial_text

        if not partial:
            self.transcript_text = confirmed
        elif not confirmed:
            self.transcript_text = partial
        else:
            self.transcript_text = f"{confirmed} {partial}"

        if not update.is_final:
            return False

        new_words = max(0, count_words(confirmed) - count_words(self.confirmed_transcript))
        # Confirmed text only grows
        if len(confirmed) >= len(self.confirmed_transcript):
            self.confirmed_transcript = confirmed
        if update.segment_text.strip():
            self._append_segment(update.segment_text.strip())
        return self._count(new_words)

    def add_chunk(self, text: str) -> bool:
        """
        Append one chunk transcription. Blank text is ignored.

        Returns:
            True if a question should be requested now
        """
        text = text.strip()
        if not text:
            return False

        self.transcript_text = f"{self.transcript_text} {text}" if self.transcript_text else text
        self._append_segment(text)
        return self._count(count_words(text))

    def end_stream(self):
        """Leave streaming mode (the in-flight partial is discarded)."""
        if self.streaming:
            self.transcript_text = self.confirmed_transcript
            self.streaming = False

    @property
    def durable_text(self) -> str:
        """Text safe to persist: it never gets shorter."""
        return self.confirmed_transcript if self.streaming else self.transcript_text

    def finalize(self) -> str:
        """
        Final transcript. A stream still in progress is ended first, so an
        unconfirmed partial never becomes part of the saved text.
        """
        self.end_stream()
        if len(self.confirmed_transcript) > len(self.transcript_text):
            return self.confirmed_transcript
        return self.transcript_text

    def context_hint(self, limit: int = 500) -> Optional[str]:
        """Tail of the running transcript, sent along with the next chunk."""
        if not self.transcript_text:
            return None
        return self.transcript_text[-limit:]

    def _append_segment(self, text: str):
        self.segments.append(TranscriptSegment(text=text, order=self.next_segment_order))
        self.next_segment_order += 1

    def _count(self, new_words: int) -> bool:
        self.words_since_last_question += new_words
        if self.words_since_last_question >= self.question_word_threshold:
            self.words_since_last_question = 0
            return True
        return False
