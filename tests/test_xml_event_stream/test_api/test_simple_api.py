"""Tests for the simple entry points."""

import logging

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

import xml_event_stream
from xml_event_stream import (
    EmitterConfig,
    EmitterError,
    EmitterErrorKind,
    EndDocument,
    ErrorKind,
    ParserConfig,
    StartDocument,
    XMLParseError,
    iter_events,
    parse,
    parse_string,
    roundtrip,
    serialize,
)
from xml_event_stream.writer import (
    Characters,
    EndElement,
    StartElement,
    end_element,
    start_element,
    to_write_event,
)


class TestPackage:
    """Test suite for the package surface."""

    def test_version(self):
        """Test package metadata."""
        assert xml_event_stream.__version__ == "0.1.0"

    def test_exports(self):
        """Test that every exported name exists."""
        for name in xml_event_stream.__all__:
            assert hasattr(xml_event_stream, name)


class TestReading:
    """Test suite for parse, parse_string and iter_events."""

    def test_parse(self):
        """Test reading a whole document."""
        events = parse(b"<a/>")
        assert [type(event).__name__ for event in events] == [
            "StartDocument", "StartElement", "EndElement", "EndDocument",
        ]

    def test_parse_with_config(self):
        """Test that the configuration reaches the reader."""
        events = parse("<a>&e;</a>", ParserConfig(extra_entities={"e": "x"}))
        assert events[2].text == "x"

    def test_parse_string(self):
        """Test the text-only entry point."""
        assert isinstance(parse_string("<a/>")[0], StartDocument)
        with pytest.raises(TypeError, match="expects str"):
            parse_string(b"<a/>")

    def test_parse_raises(self):
        """Test that malformed input raises."""
        with pytest.raises(XMLParseError) as info:
            parse("<a>")
        assert info.value.kind is ErrorKind.UNEXPECTED_EOF

    def test_iter_events_is_lazy(self):
        """Test that events before an error are still produced."""
        events = iter_events("<a/><b/>")
        assert isinstance(next(events), StartDocument)
        next(events)
        next(events)
        with pytest.raises(XMLParseError) as info:
            next(events)
        assert info.value.kind is ErrorKind.MULTIPLE_ROOT_ELEMENTS


class TestWriting:
    """Test suite for serialize and roundtrip."""

    def test_serialize(self):
        """Test writing a simple event list."""
        output = serialize(
            [start_element("root"), Characters("hi & bye"), EndElement()],
            EmitterConfig.compact(),
        )
        assert output == "<root>hi &amp; bye</root>"

    def test_serialize_default_config(self):
        """Test that the default configuration writes a declaration."""
        assert serialize([start_element("a"), end_element()]) == (
            '<?xml version="1.0" encoding="utf-8"?><a />'
        )

    def test_roundtrip(self):
        """Test reading and rewriting a document."""
        output = roundtrip('<a x="1">t&amp;<!--c--></a>', emitter_config=EmitterConfig.compact())
        assert output == '<?xml version="1.0" encoding="utf-8"?><a x="1">t&amp;</a>'

    def test_roundtrip_keeps_comments_in_strict_mode(self):
        """Test that parser options flow through a round trip."""
        output = roundtrip(
            "<a><!--c--><![CDATA[<x>]]></a>",
            ParserConfig.strict(),
            EmitterConfig.compact(),
        )
        assert output.endswith("<a><!--c--><![CDATA[<x>]]></a>")

    def test_roundtrip_shares_correlation_id(self, caplog):
        """Test that both sessions log under one correlation id."""
        with caplog.at_level(logging.DEBUG, logger="xml_event_stream"):
            roundtrip("<a/>", correlation_id="rt-1")
        assert caplog.records
        assert {record.correlation_id for record in caplog.records} == {"rt-1"}
        components = {record.component for record in caplog.records}
        assert components == {"event_reader", "event_writer"}


names = st.sampled_from(["a", "b", "item", "x.y", "_z"])
attribute_names = st.sampled_from(["x", "y", "z-1"])
texts = st.text(alphabet="ab &<>\"']\r\n\t\u00e9", max_size=10)


def elements(children):
    return st.tuples(names, st.dictionaries(attribute_names, texts, max_size=3), st.lists(children, max_size=4))


trees = elements(st.recursive(texts, elements, max_leaves=20))
non_xml_chars = st.sampled_from(
    [chr(code) for code in range(0x20) if chr(code) not in "\t\n\r"]
    + ["\ud800", "\udfff", "\ufffe", "\uffff"]
)


def to_write_events(node, out):
    if isinstance(node, str):
        out.append(Characters(node))
        return
    name, attributes, children = node
    out.append(StartElement(name, tuple(attributes.items())))
    for child in children:
        to_write_events(child, out)
    out.append(EndElement(name))


def merge_text(events):
    merged = []
    for event in events:
        if isinstance(event, Characters):
            if not event.text:
                continue
            if merged and isinstance(merged[-1], Characters):
                merged[-1] = Characters(merged[-1].text + event.text)
                continue
        merged.append(event)
    return merged


class TestRoundTripProperty:
    """Property tests across the writer and the reader."""

    @settings(max_examples=100, deadline=None)
    @given(trees)
    def test_written_trees_read_back_identically(self, tree):
        """Test that every written tree is read back event for event."""
        written = []
        to_write_events(tree, written)
        markup = serialize(written, EmitterConfig.compact())

        read_back = [
            to_write_event(event) for event in parse(markup)
            if not isinstance(event, (StartDocument, EndDocument))
        ]
        assert read_back == merge_text(written)

    @settings(max_examples=100, deadline=None)
    @given(trees, texts, non_xml_chars, texts, st.booleans())
    def test_non_xml_characters_are_never_written(self, tree, before, char, after, in_attribute):
        """Test that a tree carrying a non-XML character is refused, wherever it sits."""
        name, attributes, children = tree
        bad = before + char + after
        if in_attribute:
            tree = (name, dict(attributes, w=bad), children)
        else:
            tree = (name, attributes, [bad] + children)
        written = []
        to_write_events(tree, written)

        with pytest.raises(EmitterError) as info:
            serialize(written, EmitterConfig.compact())
        assert info.value.kind is EmitterErrorKind.STRUCTURAL_VIOLATION
        assert "not an XML character" in str(info.value)
