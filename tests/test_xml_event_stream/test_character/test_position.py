"""Tests for position tracking."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from xml_event_stream.character.position import START_POSITION, PositionTracker, TextPosition


class TestTextPosition:
    """Test suite for TextPosition."""

    def test_defaults(self):
        """Test the start of document position."""
        assert START_POSITION == TextPosition(1, 1, 0)
        assert str(START_POSITION) == "1:1"

    def test_validation(self):
        """Test that impossible positions are rejected."""
        with pytest.raises(ValueError, match="Line number"):
            TextPosition(line=0)
        with pytest.raises(ValueError, match="Column number"):
            TextPosition(column=0)
        with pytest.raises(ValueError, match="Offset"):
            TextPosition(offset=-1)

    def test_advance_on_one_line(self):
        """Test advancing within a line."""
        assert START_POSITION.advance("abc") == TextPosition(1, 4, 3)

    def test_advance_across_lines(self):
        """Test advancing over newlines."""
        assert START_POSITION.advance("ab\ncd\ne") == TextPosition(3, 2, 7)
        assert START_POSITION.advance("ab\n") == TextPosition(2, 1, 3)

    def test_advance_empty_text(self):
        """Test that advancing by nothing returns the same position."""
        position = TextPosition(4, 2, 30)
        assert position.advance("") is position


class TestPositionTracker:
    """Test suite for PositionTracker."""

    def test_single_characters(self):
        """Test character by character advancing."""
        tracker = PositionTracker()
        for char in "a\nbc":
            tracker.advance(char)
        assert tracker.snapshot() == TextPosition(2, 3, 4)

    @given(st.lists(st.text(alphabet="ab \n", max_size=8), max_size=10))
    def test_tracker_matches_immutable_positions(self, chunks):
        """Test that chunked tracking agrees with TextPosition.advance."""
        tracker = PositionTracker()
        for chunk in chunks:
            tracker.advance(chunk)
        assert tracker.snapshot() == START_POSITION.advance("".join(chunks))
