"""Tests for reply segmentation."""

import pytest

from services.helpdesk.segments import split_response


class TestSplitResponse:
    """split_response behaviour."""

    @pytest.mark.unit
    def test_example_sentence(self):
        """Test splitting a sentence at word boundaries."""
        assert split_response("The quick brown fox jumps over the lazy dog", 10) == [
            "The quick",
            "brown fox",
            "jumps over",
            "the lazy",
            "dog",
        ]

    @pytest.mark.unit
    def test_short_text_is_single_trimmed_segment(self):
        """Test that short text is one trimmed segment."""
        assert split_response("  Hello there.  ", 200) == ["Hello there."]

    @pytest.mark.unit
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_text_yields_nothing(self, text):
        """Test that blank text yields no segments."""
        assert split_response(text) == []

    @pytest.mark.unit
    def test_long_word_is_hard_cut(self):
        """Test hard cuts when there is no whitespace."""
        assert split_response("abcdefghijklmnop qr", 5) == ["abcde", "fghij", "klmno", "p qr"]

    @pytest.mark.unit
    def test_segments_respect_limit_and_rejoin(self):
        """Test segment length limits and content preservation."""
        text = (
            "Please unplug the router, wait thirty seconds, and plug it back in. "
            "If the lights stay orange, call your internet provider and mention "
            "the error code shown on the status page."
        )

        segments = split_response(text, 30)

        assert all(0 < len(segment) <= 30 for segment in segments)
        assert " ".join(segments) == text

    @pytest.mark.unit
    def test_default_limit_is_200(self):
        """Test the default segment length."""
        text = "word " * 100

        segments = split_response(text)

        assert all(len(segment) <= 200 for segment in segments)
        assert len(segments) == 3

    @pytest.mark.unit
    def test_rejects_non_positive_limit(self):
        """Test invalid segment lengths."""
        with pytest.raises(ValueError):
            split_response("text", 0)
