"""Tests for sliding-window chunking."""

import pytest

from conftest import resume_text
from services.kb_ingestion.TextChunker import ChunkingConfig, TextChunker, chunk_text
from shared.exceptions.errors import InvalidInput


class TestChunkText:
    def test_resume_of_2000_chars_gives_five_chunks(self):
        text = resume_text(2000)

        spans = chunk_text(text, window_tokens=500, overlap_tokens=50)

        assert len(spans) == 5
        assert [s.index for s in spans] == [0, 1, 2, 3, 4]
        assert spans[0].start_offset == 0
        assert spans[-1].end_offset == len(text)

    def test_text_matches_offsets_and_windows_overlap(self):
        text = resume_text(2000)

        spans = chunk_text(text, window_tokens=500, overlap_tokens=50)

        for span in spans:
            assert span.text == text[span.start_offset:span.end_offset]
            assert len(span.text) <= 500
        for previous, current in zip(spans, spans[1:]):
            assert current.start_offset == previous.end_offset - 50
            assert current.start_offset > previous.start_offset

    def test_chunking_is_deterministic(self):
        text = resume_text(3300)

        first = chunk_text(text, window_tokens=400, overlap_tokens=80)
        second = chunk_text(text, window_tokens=400, overlap_tokens=80)

        assert first == second

    def test_short_text_is_one_chunk(self):
        spans = chunk_text("Short resume.", window_tokens=500, overlap_tokens=50)

        assert len(spans) == 1
        assert spans[0].text == "Short resume."
        assert (spans[0].start_offset, spans[0].end_offset) == (0, 13)

    @pytest.mark.parametrize("text", ["", "   ", "\n\n\t  \n"])
    def test_whitespace_only_gives_no_chunks(self, text):
        assert chunk_text(text, window_tokens=500, overlap_tokens=50) == []

    @pytest.mark.parametrize(
        "window, overlap",
        [(100, 100), (100, 150), (0, 0), (100, -1)],
    )
    def test_invalid_window_and_overlap_rejected(self, window, overlap):
        with pytest.raises(InvalidInput):
            chunk_text("some text", window_tokens=window, overlap_tokens=overlap)


class TestBoundarySnapping:
    def test_prefers_paragraph_break_in_tolerance_zone(self):
        # paragraph break ends at 95, sentence end at 98, window 100, tolerance 10
        text = "a" * 93 + "\n\n" + "b." + " " + "c" * 200

        spans = chunk_text(text, window_tokens=100, overlap_tokens=10)

        assert spans[0].end_offset == 95
        assert spans[0].text.endswith("\n\n")

    def test_prefers_sentence_over_whitespace(self):
        text = "x" * 90 + "end. more words here " + "y" * 200

        spans = chunk_text(text, window_tokens=100, overlap_tokens=10)

        # "end. " closes at 95, a whitespace cut would land at 100
        assert spans[0].end_offset == 95

    def test_falls_back_to_whitespace(self):
        text = "w" * 92 + " " + "z" * 200

        spans = chunk_text(text, window_tokens=100, overlap_tokens=10)

        assert spans[0].end_offset == 93

    def test_hard_cut_without_boundary(self):
        text = "q" * 350

        spans = chunk_text(text, window_tokens=100, overlap_tokens=10)

        assert [s.end_offset for s in spans[:-1]] == [100, 190, 280]
        assert spans[-1].end_offset == 350

    def test_boundary_outside_tolerance_is_ignored(self):
        # the only break sits 50 characters before the window end
        text = "a" * 50 + "\n\n" + "b" * 300

        spans = chunk_text(text, window_tokens=100, overlap_tokens=10)

        assert spans[0].end_offset == 100


class TestTextChunker:
    def test_uses_configured_window(self):
        chunker = TextChunker(ChunkingConfig(window_tokens=500, overlap_tokens=50))

        assert len(chunker.chunk(resume_text(2000))) == 5

    def test_invalid_config_rejected_on_construction(self):
        with pytest.raises(InvalidInput):
            TextChunker(ChunkingConfig(window_tokens=50, overlap_tokens=50))
