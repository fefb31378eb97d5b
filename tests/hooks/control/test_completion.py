"""Tests for <promise> completion detection."""

import pytest

from ralph_hooks.control.completion import extract_promise, format_promise, normalize, promise_matches


class TestExtractPromise:
    def test_payload_between_tags(self):
        """Test that the text between the tags is returned."""
        assert extract_promise("All set. <promise>ready</promise>") == "ready"

    def test_no_tags(self):
        """Test that text without tags yields None."""
        assert extract_promise("nothing to see") is None

    def test_unclosed_tag(self):
        """Test that an unclosed tag yields None."""
        assert extract_promise("<promise>ready") is None

    def test_first_pair_wins(self):
        """Test that only the first tag pair is read."""
        assert extract_promise("<promise>a</promise> then <promise>b</promise>") == "a"

    def test_newlines_flattened(self):
        """Test that newlines inside the payload become spaces."""
        assert extract_promise("<promise>all\ntests\npass</promise>") == "all tests pass"

    def test_custom_tag(self):
        """Test that a configured tag name is honoured."""
        assert extract_promise("<done>yes</done>", tag="done") == "yes"


class TestPromiseMatches:
    @pytest.mark.parametrize(
        "text",
        [
            "<promise>done</promise>",
            "<promise> done </promise>",
            "Finished.\n<promise>\n  done\n</promise>\n",
        ],
    )
    def test_whitespace_insensitive(self, text):
        """Test that whitespace around and inside the payload is ignored."""
        assert promise_matches(text, "done") is True

    def test_content_exact(self):
        """Test that any other character breaks the match."""
        assert promise_matches("<promise>done!</promise>", "done") is False

    def test_promise_whitespace_removed_too(self):
        """Test that whitespace is removed from the stored promise as well."""
        assert promise_matches("<promise>ALLTESTSPASS</promise>", "ALL TESTS PASS") is True

    def test_none_promise_never_matches(self):
        """Test that a loop without a promise never completes by marker."""
        assert promise_matches("<promise>done</promise>", None) is False

    def test_empty_payload_never_matches(self):
        """Test that an all-whitespace payload never matches."""
        assert promise_matches("<promise>   </promise>", "   ") is False

    def test_missing_marker(self):
        """Test that the bare promise text without tags does not match."""
        assert promise_matches("I am done", "done") is False

    def test_only_first_marker_considered(self):
        """Test that a matching second marker is ignored when the first differs."""
        assert promise_matches("<promise>nope</promise> <promise>done</promise>", "done") is False


def test_normalize_removes_all_whitespace():
    """Test that normalize removes every whitespace character."""
    assert normalize(" a\tb\nc  d ") == "abcd"


def test_format_promise():
    """Test that format_promise wraps text in the default tag."""
    assert format_promise("ready") == "<promise>ready</promise>"
