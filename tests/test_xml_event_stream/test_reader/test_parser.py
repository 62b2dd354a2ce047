"""Tests for the document-level parser state machine."""

import pytest

from xml_event_stream.model.events import EndDocument, EventType
from xml_event_stream.reader import DocumentState, PullParser
from xml_event_stream.shared.errors import ErrorKind, XMLParseError


class TestPullParser:
    """Test suite for PullParser state transitions."""

    def test_states_of_a_document(self):
        """Test the state after each event."""
        parser = PullParser('<?xml version="1.0"?><!DOCTYPE a><a><b/></a>')
        assert parser.state is DocumentState.BEFORE_PROLOG

        observed = []
        while not parser.is_terminated:
            event = parser.next_event()
            observed.append((event.event_type, parser.state))

        assert observed == [
            (EventType.START_DOCUMENT, DocumentState.PROLOG),
            (EventType.DOCTYPE, DocumentState.MISC),
            (EventType.START_ELEMENT, DocumentState.INSIDE_ELEMENT),
            (EventType.START_ELEMENT, DocumentState.INSIDE_ELEMENT),
            (EventType.END_ELEMENT, DocumentState.INSIDE_ELEMENT),
            (EventType.END_ELEMENT, DocumentState.AFTER_ROOT),
            (EventType.END_DOCUMENT, DocumentState.DONE),
        ]
        assert isinstance(parser.terminal, EndDocument)
        assert parser.max_depth == 2

    def test_error_state(self):
        """Test that a failure is terminal."""
        parser = PullParser("<a><b></a>")
        with pytest.raises(XMLParseError) as info:
            while True:
                parser.next_event()
        assert parser.state is DocumentState.ERROR
        assert parser.terminal is info.value
        assert info.value.kind is ErrorKind.TAG_MISMATCH

    def test_depth_tracks_open_elements(self):
        """Test the open element count."""
        parser = PullParser("<a><b><c/></b></a>")
        depths = []
        for _ in range(6):
            parser.next_event()
            depths.append(parser.depth)
        assert depths == [0, 1, 2, 2, 2, 1]

    def test_empty_root_moves_past_root(self):
        """Test that an empty root element completes the document."""
        parser = PullParser("<a/>")
        parser.next_event()
        parser.next_event()
        assert parser.state is DocumentState.AFTER_ROOT
        assert parser.depth == 0

    def test_namespace_scopes_are_balanced(self):
        """Test that every pushed scope is popped by the end of the document."""
        parser = PullParser('<a xmlns="urn:a"><b xmlns:p="urn:p"><p:c/></b><d/></a>')
        while not parser.is_terminated:
            parser.next_event()
        assert parser.namespaces.push_count == 4
        assert parser.namespaces.pop_count == 4
        assert parser.namespaces.depth == 0

    def test_position_before_start(self):
        """Test the position before any input was read."""
        parser = PullParser("<a/>")
        assert parser.position.offset == 0
