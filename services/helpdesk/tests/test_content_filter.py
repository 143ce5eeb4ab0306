"""Tests for block-list loading and matching."""

import pytest

from services.helpdesk.content_filter import is_blocked, load_blocked_words


class TestLoadBlockedWords:
    """Word list loading."""

    @pytest.mark.unit
    def test_strips_lowercases_and_skips_blank_lines(self, tmp_path):
        """Test block list normalization."""
        word_file = tmp_path / "blocked.txt"
        word_file.write_text(" Foo \nBar\n\nbaz ", encoding="utf-8")

        assert load_blocked_words(word_file) == ["foo", "bar", "baz"]

    @pytest.mark.unit
    def test_missing_file_disables_filter(self, tmp_path):
        """Test that a missing block list file yields no words."""
        assert load_blocked_words(tmp_path / "does-not-exist.txt") == []

    @pytest.mark.unit
    @pytest.mark.parametrize("path", [None, ""])
    def test_unset_path_disables_filter(self, path):
        """Test that an unset block list path yields no words."""
        assert load_blocked_words(path) == []


class TestIsBlocked:
    """Case-insensitive substring matching."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("This is FOO time", True),
            ("foobar", True),
            ("multi word Phrase here", True),
            ("nothing to see", False),
            ("", False),
        ],
    )
    def test_matches(self, text, expected):
        """Test case-insensitive substring matching."""
        assert is_blocked(text, ["foo", "word phrase"]) is expected

    @pytest.mark.unit
    def test_empty_word_list_never_blocks(self):
        """Test that an empty block list allows everything."""
        assert is_blocked("anything at all", []) is False

    @pytest.mark.unit
    def test_blank_entries_are_ignored(self):
        """Test that blank block list entries match nothing."""
        assert is_blocked("hello", ["", "bye"]) is False
