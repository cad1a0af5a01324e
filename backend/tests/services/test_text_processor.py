"""
Tests for scriptcast.services.text_processor
"""

import pytest

from scriptcast.services.text_processor import TextProcessor


@pytest.fixture
def processor():
    return TextProcessor(audio_chunk_size=50, video_segment_duration=5.5)


class TestSplitForAudio:

    def test_short_script_is_single_trimmed_chunk(self, processor):
        chunks = processor.split_for_audio("   Hello world. How are you?  ")
        assert len(chunks) == 1
        assert chunks[0].index == 0
        assert chunks[0].text == "Hello world. How are you?"

    def test_empty_script_yields_no_chunks(self, processor):
        assert processor.split_for_audio("   ") == []

    def test_packs_whole_sentences_up_to_limit(self):
        processor = TextProcessor(audio_chunk_size=17)
        chunks = processor.split_for_audio("Aaa aaa. Bbb bbb. Ccc ccc.")
        assert [c.text for c in chunks] == ["Aaa aaa. Bbb bbb.", "Ccc ccc."]
        assert [c.index for c in chunks] == [0, 1]

    def test_no_sentence_lost_or_duplicated(self, processor):
        sentences = [f"Sentence number {i} has {'some ' * (i % 5)}words." for i in range(25)]
        text = " ".join(sentences)

        chunks = processor.split_for_audio(text)

        assert len(chunks) > 1
        assert " ".join(c.text for c in chunks) == " ".join(sentences)

    def test_chunks_respect_limit(self, processor):
        text = "This is a rather long sentence without any terminator " * 6
        chunks = processor.split_for_audio(text)
        assert all(c.char_count <= 50 for c in chunks)

    def test_atomic_token_longer_than_limit_is_hard_cut(self):
        processor = TextProcessor(audio_chunk_size=10)
        chunks = processor.split_for_audio("a" * 30)
        assert [c.text for c in chunks] == ["a" * 10] * 3


class TestSmartSplit:

    def test_prefers_clause_punctuation(self, processor):
        pieces = processor.smart_split("alpha beta gamma, delta epsilon zeta eta", 25)
        assert pieces == ["alpha beta gamma,", "delta epsilon zeta eta"]

    def test_falls_back_to_last_space(self, processor):
        pieces = processor.smart_split("one two three four five six", 10)
        assert all(len(p) <= 10 for p in pieces)
        assert " ".join(pieces) == "one two three four five six"


class TestSentences:

    def test_terminator_followed_by_space_ends_sentence(self, processor):
        sentences = processor.split_into_sentences("Dr. Smith arrived.Then left! OK?")
        assert sentences == ["Dr.", "Smith arrived.Then left!", "OK?"]

    def test_cjk_terminators(self, processor):
        assert processor.split_into_sentences("你好。 再见！ 好吗？") == ["你好。", "再见！", "好吗？"]


class TestSplitForSubtitles:

    def test_one_cue_per_sentence(self):
        processor = TextProcessor(max_subtitle_length=100)
        chunks = processor.split_for_subtitles("First line. Second line! Third?")
        assert [c.text for c in chunks] == ["First line.", "Second line!", "Third?"]

    def test_long_sentence_split_by_clauses(self):
        processor = TextProcessor(max_subtitle_length=30)
        text = "When the sun rises, the birds start singing, and the city wakes up slowly."
        chunks = processor.split_for_subtitles(text)
        assert len(chunks) > 1
        assert all(c.char_count <= 30 for c in chunks)
        assert chunks[0].text == "When the sun rises,"


class TestSplitForVideo:

    def test_one_segment_per_short_sentence_when_target_is_small(self):
        processor = TextProcessor(video_segment_duration=0.5)
        segments = processor.split_for_video("One. Two. Three.")
        assert [s.text for s in segments] == ["One.", "Two.", "Three."]
        assert all(s.estimated_duration <= 0.5 for s in segments)

    def test_groups_sentences_within_target(self):
        processor = TextProcessor(video_segment_duration=5.5)
        segments = processor.split_for_video("One. Two. Three.")
        assert len(segments) == 1
        assert segments[0].text == "One. Two. Three."

    def test_explicit_target_overrides_default(self, processor):
        segments = processor.split_for_video("One. Two. Three.", target_seconds=0.5)
        assert len(segments) == 3


class TestEstimates:

    def test_estimate_duration_uses_words_per_minute_and_pause_factor(self, processor):
        text = " ".join(["word"] * 150)
        assert processor.estimate_duration(text) == pytest.approx(66.0)

    def test_estimate_duration_empty(self, processor):
        assert processor.estimate_duration("") == 0.0

    def test_get_stats(self):
        processor = TextProcessor(audio_chunk_size=4500, video_segment_duration=0.5)
        stats = processor.get_stats("One. Two. Three.")
        assert stats.total_chars == 16
        assert stats.total_words == 3
        assert stats.audio_chunks == 1
        assert stats.video_segments == 3
        assert stats.estimated_duration == pytest.approx(1.32)
        assert stats.avg_segment_duration == pytest.approx(0.44)
