"""
Tests for the transcript accumulator.
"""

from meetingmind.meeting.transcript import TranscriptAccumulator

from fakes import final_update, partial_update, words


class TestStreamingUpdates:
    """Display text and counting for streaming updates."""

    def test_display_combines_confirmed_and_partial(self):
        acc = TranscriptAccumulator()
        acc.apply_update(partial_update("", "hello"))
        assert acc.transcript_text == "hello"

        acc.apply_update(final_update("hello there", "hello there"))
        assert acc.transcript_text == "hello there"

        acc.apply_update(partial_update("hello there", "how are"))
        assert acc.transcript_text == "hello there how are"

    def test_partials_do_not_count_words_or_add_segments(self):
        acc = TranscriptAccumulator(question_word_threshold=3)
        assert not acc.apply_update(partial_update("", words(10)))
        assert acc.words_since_last_question == 0
        assert acc.segments == []

    def test_final_updates_count_new_confirmed_words(self):
        acc = TranscriptAccumulator(question_word_threshold=100)
        acc.apply_update(final_update("one two", "one two"))
        acc.apply_update(final_update("one two three four five", "three four five"))
        assert acc.words_since_last_question == 5
        assert [s.order for s in acc.segments] == [0, 1]
        assert acc.segments[1].text == "three four five"

    def test_confirmed_text_never_shrinks(self):
        acc = TranscriptAccumulator()
        acc.apply_update(final_update("a longer confirmed text", "a longer confirmed text"))
        acc.apply_update(final_update("short", "short"))
        assert acc.confirmed_transcript == "a longer confirmed text"
        # Counter never goes negative on a shorter update
        assert acc.words_since_last_question >= 0

    def test_durable_text_is_confirmed_only(self):
        acc = TranscriptAccumulator()
        acc.apply_update(final_update("done", "done"))
        acc.apply_update(partial_update("done", "still talking"))
        assert acc.durable_text == "done"
        assert acc.transcript_text == "done still talking"

    def test_finalize_drops_unconfirmed_partial(self):
        acc = TranscriptAccumulator()
        acc.apply_update(final_update("we ship friday", "we ship friday"))
        acc.apply_update(partial_update("we ship friday", "and"))

        assert acc.finalize() == "we ship friday"
        assert acc.streaming is False

    def test_finalize_with_only_a_partial_is_empty(self):
        acc = TranscriptAccumulator()
        acc.apply_update(partial_update("", "maybe words"))
        assert acc.finalize() == ""

    def test_end_stream_drops_partial(self):
        acc = TranscriptAccumulator()
        acc.apply_update(final_update("kept", "kept"))
        acc.apply_update(partial_update("kept", "dropped"))
        acc.end_stream()
        acc.add_chunk("next chunk")
        assert acc.transcript_text == "kept next chunk"
        assert acc.durable_text == "kept next chunk"


class TestChunks:
    """Chunked mode: one segment per non-blank chunk."""

    def test_orders_are_contiguous_despite_blank_chunks(self):
        acc = TranscriptAccumulator()
        for text in ["first", "", "   ", "second", "", "third"]:
            acc.add_chunk(text)
        assert [s.order for s in acc.segments] == [0, 1, 2]
        assert acc.next_segment_order == 3
        assert acc.transcript_text == "first second third"

    def test_blank_chunk_changes_nothing(self):
        acc = TranscriptAccumulator()
        assert acc.add_chunk("  ") is False
        assert acc.transcript_text == ""
        assert acc.words_since_last_question == 0

    def test_context_hint(self):
        acc = TranscriptAccumulator()
        assert acc.context_hint() is None
        acc.add_chunk("x" * 600)
        assert acc.context_hint(500) == "x" * 500


class TestQuestionTrigger:
    """The question trigger fires once per threshold crossing."""

    def test_fires_exactly_when_threshold_reached(self):
        acc = TranscriptAccumulator(question_word_threshold=50)
        assert acc.add_chunk(words(20)) is False
        assert acc.add_chunk(words(20)) is False
        assert acc.add_chunk(words(20)) is True
        assert acc.words_since_last_question == 0

    def test_one_trigger_for_a_large_chunk(self):
        acc = TranscriptAccumulator(question_word_threshold=50)
        assert acc.add_chunk(words(175)) is True
        # Counter resets fully; the next crossing needs another 50 words
        assert acc.words_since_last_question == 0
        assert acc.add_chunk(words(49)) is False
        assert acc.add_chunk(words(1)) is True

    def test_trigger_count_over_many_chunks(self):
        acc = TranscriptAccumulator(question_word_threshold=50)
        fired = sum(acc.add_chunk(words(10)) for _ in range(20))
        assert fired == 4
        assert acc.words_since_last_question == 0

    def test_finalize_prefers_longer_text(self):
        acc = TranscriptAccumulator()
        acc.add_chunk("only chunk text")
        assert acc.finalize() == "only chunk text"
