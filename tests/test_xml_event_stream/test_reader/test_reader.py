"""Tests for the event reader."""

import time

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from xml_event_stream.character.position import TextPosition
from xml_event_stream.model.events import (
    CData,
    Characters,
    Comment,
    Doctype,
    EndDocument,
    EndElement,
    ProcessingInstruction,
    StartDocument,
    StartElement,
    Whitespace,
)
from xml_event_stream.model.name import Attribute, QName
from xml_event_stream.reader import EventReader
from xml_event_stream.shared.config import ParserConfig
from xml_event_stream.shared.errors import ErrorKind, XMLParseError


def read(document, **options):
    return list(EventReader(document, ParserConfig(**options)))


def read_error(document, **options):
    with pytest.raises(XMLParseError) as info:
        read(document, **options)
    return info.value


def body(events):
    """Events between StartDocument and EndDocument."""
    assert isinstance(events[0], StartDocument)
    assert isinstance(events[-1], EndDocument)
    return events[1:-1]


A = QName("a")


class TestDocumentStructure:
    """Test suite for well-formed document structure."""

    def test_simple_document(self):
        """Test the events of a small document."""
        assert read("<a>hi</a>") == [
            StartDocument("1.0", "utf-8"),
            StartElement(A),
            Characters("hi"),
            EndElement(A),
            EndDocument(),
        ]

    def test_empty_element_produces_start_and_end(self):
        """Test an empty-element tag."""
        assert body(read("<a/>")) == [StartElement(A), EndElement(A)]

    def test_duplicate_attribute(self):
        """Test a repeated attribute name, reported at its second occurrence."""
        error = read_error('<a x="1" x="2"/>')
        assert error.kind is ErrorKind.DUPLICATE_ATTRIBUTE
        assert error.position == TextPosition(1, 10, 9)

    def test_multiple_root_elements(self):
        """Test a second top-level element."""
        reader = EventReader("<a/><b/>")
        assert [type(reader.next()) for _ in range(3)] == [StartDocument, StartElement, EndElement]
        with pytest.raises(XMLParseError) as info:
            reader.next()
        assert info.value.kind is ErrorKind.MULTIPLE_ROOT_ELEMENTS
        assert info.value.position == TextPosition(1, 5, 4)

    def test_fragments(self):
        """Test several top-level elements when allowed."""
        events = list(EventReader("<a/><b/>", ParserConfig.fragment()))
        assert body(events) == [
            StartElement(A), EndElement(A), StartElement(QName("b")), EndElement(QName("b")),
        ]

    @pytest.mark.parametrize("document,kind", [
        ("<a></b>", ErrorKind.TAG_MISMATCH),
        ("</a>", ErrorKind.TAG_MISMATCH),
        ("<a><b>", ErrorKind.UNEXPECTED_EOF),
        ("", ErrorKind.UNEXPECTED_EOF),
        ("   ", ErrorKind.UNEXPECTED_EOF),
        ("<a/>text", ErrorKind.SYNTAX_ERROR),
        ("text<a/>", ErrorKind.SYNTAX_ERROR),
        ("<a x='1'y='2'/>", ErrorKind.SYNTAX_ERROR),
        ("<a x/>", ErrorKind.SYNTAX_ERROR),
        ("<a x=1/>", ErrorKind.LEX_ERROR),
        ("<a:/>", ErrorKind.SYNTAX_ERROR),
        ("<![CDATA[x]]><a/>", ErrorKind.SYNTAX_ERROR),
        ("<a><?xml version='1.0'?></a>", ErrorKind.SYNTAX_ERROR),
    ])
    def test_malformed_documents(self, document, kind):
        """Test well-formedness violations."""
        assert read_error(document).kind is kind

    def test_attribute_limit(self):
        """Test the maximum number of attributes."""
        error = read_error('<a x="1" y="2"/>', max_attributes=1)
        assert error.kind is ErrorKind.LIMIT_EXCEEDED

    def test_document_size_limit(self):
        """Test that oversized input fails after the events that fit."""
        reader = EventReader(b"<a><b/>" + b"x" * 100 + b"</a>", ParserConfig(max_document_size=20))
        events = []
        with pytest.raises(XMLParseError) as info:
            for event in reader:
                events.append(event)
        assert info.value.kind is ErrorKind.DOCUMENT_SIZE_EXCEEDED
        assert [type(event) for event in events] == [
            StartDocument, StartElement, StartElement, EndElement,
        ]

    def test_attribute_values_are_normalized(self):
        """Test whitespace normalization and references in attribute values."""
        (start, _) = body(read('<a x="1\n2&#10;3&#9;&lt;&quot;"/>'))
        assert start.attributes == (Attribute(QName("x"), '1 2\n3\t<"'),)


class TestNamespaces:
    """Test suite for namespace processing."""

    def test_prefixed_names(self):
        """Test bindings declared on the root and inherited by a child."""
        events = body(read('<a:b xmlns:a="urn:x"><a:c/></a:b>'))
        outer = QName("b", "a", "urn:x")
        inner = QName("c", "a", "urn:x")
        assert events == [
            StartElement(outer, (), {"a": "urn:x"}),
            StartElement(inner, (), {}),
            EndElement(inner),
            EndElement(outer),
        ]
        assert events[1].in_scope_namespaces == {"a": "urn:x"}

    def test_default_namespace(self):
        """Test that unprefixed attributes stay out of the default namespace."""
        (start, end) = body(read('<a xmlns="urn:d" x="1"/>'))
        assert start.name == QName("a", None, "urn:d")
        assert start.namespaces == {"": "urn:d"}
        assert start.attributes == (Attribute(QName("x"), "1"),)
        assert end.name == start.name

    def test_default_namespace_undeclared(self):
        """Test xmlns="" on a nested element."""
        events = body(read('<a xmlns="urn:d"><b xmlns=""/></a>'))
        assert events[1].name == QName("b")
        assert events[1].in_scope_namespaces == {}

    def test_duplicate_attribute_through_prefixes(self):
        """Test two prefixes bound to one namespace."""
        error = read_error('<r xmlns:p="urn:x" xmlns:q="urn:x"><e p:a="1" q:a="2"/></r>')
        assert error.kind is ErrorKind.DUPLICATE_ATTRIBUTE
        assert "{urn:x}a" in error.message

    @pytest.mark.parametrize("document", ["<p:a/>", '<a q:x="1"/>', "<a><p:b xmlns:p='urn:p'/><p:c/></a>"])
    def test_undeclared_prefix(self, document):
        """Test names whose prefix has no binding in scope."""
        assert read_error(document).kind is ErrorKind.UNDECLARED_PREFIX

    @pytest.mark.parametrize("document", [
        '<a xmlns:p=""/>',
        '<a xmlns:xmlns="urn:x"/>',
        '<a xmlns:xml="urn:x"/>',
        '<a xmlns:p="http://www.w3.org/2000/xmlns/"/>',
    ])
    def test_invalid_namespace_declarations(self, document):
        """Test reserved prefix and namespace rules."""
        assert read_error(document).kind is ErrorKind.SYNTAX_ERROR


class TestTextHandling:
    """Test suite for text events and their options."""

    def test_comments_ignored_and_text_coalesced(self):
        """Test the default handling of comments inside text."""
        assert body(read("<a>x<!--c-->y</a>"))[1:-1] == [Characters("xy")]

    def test_comments_ignored_without_coalescing(self):
        """Test that an ignored comment still splits text when not coalescing."""
        events = body(read("<a>x<!--c-->y</a>", coalesce_characters=False))
        assert events[1:-1] == [Characters("x"), Characters("y")]

    def test_comments_reported(self):
        """Test comment events in strict mode."""
        events = list(EventReader("<a>x<!--c-->y</a>", ParserConfig.strict()))
        assert body(events)[1:-1] == [Characters("x"), Comment("c"), Characters("y")]

    def test_cdata_sections(self):
        """Test CDATA events and their conversion to characters."""
        document = "<a>x<![CDATA[<y>]]>z</a>"
        assert body(read(document))[1:-1] == [Characters("x"), CData("<y>"), Characters("z")]
        assert body(read(document, cdata_to_characters=True))[1:-1] == [Characters("x<y>z")]
        assert body(read(document, cdata_to_characters=True, coalesce_characters=False))[1:-1] == [
            Characters("x"), Characters("<y>"), Characters("z"),
        ]

    def test_whitespace_inside_root(self):
        """Test whitespace-only runs between elements."""
        document = "<a> <b/> </a>"
        events = body(read(document))
        assert events[1] == Whitespace(" ")
        assert events[-2] == Whitespace(" ")
        events = body(read(document, whitespace_to_characters=True))
        assert events[1] == Characters(" ")

    def test_mixed_text_is_characters(self):
        """Test text that only partly consists of whitespace."""
        assert body(read("<a> x </a>"))[1] == Characters(" x ")

    def test_whitespace_outside_root(self):
        """Test prolog and epilog whitespace with and without trimming."""
        document = '<?xml version="1.0"?>\n<a/>\n'
        assert body(read(document)) == [
            Whitespace("\n"), StartElement(A), EndElement(A), Whitespace("\n"),
        ]
        assert body(read(document, trim_whitespace=True)) == [StartElement(A), EndElement(A)]

    def test_character_references(self):
        """Test decimal and hexadecimal references in content."""
        assert body(read("<a>&#x41;&#66;&amp;</a>"))[1] == Characters("AB&")

    def test_invalid_character_reference(self):
        """Test a reference to a forbidden code point, strict and lenient."""
        assert read_error("<a>&#0;</a>").kind is ErrorKind.LEX_ERROR
        events = read("<a>&#0;</a>", replace_unknown_entity_references=True)
        assert body(events)[1] == Characters("\ufffd")

    def test_processing_instructions(self):
        """Test PIs with and without data, including xml-prefixed targets."""
        events = body(read('<?xml-stylesheet href="s.css"?><a><?pi?></a>'))
        assert events[0] == ProcessingInstruction("xml-stylesheet", 'href="s.css"')
        assert events[2] == ProcessingInstruction("pi", None)


class TestDeclarations:
    """Test suite for the XML declaration and DOCTYPE."""

    def test_xml_declaration(self):
        """Test version, encoding and standalone values."""
        document = b'<?xml version="1.0" encoding="ISO-8859-1" standalone="yes"?><a>\xe9</a>'
        events = read(document)
        assert events[0] == StartDocument("1.0", "ISO-8859-1", True)
        assert events[2] == Characters("\u00e9")

    def test_encoding_without_declaration(self):
        """Test the encoding reported for undeclared input."""
        reader = EventReader("\ufeff<a/>".encode("utf-16-le"))
        start = reader.next()
        assert start.encoding == "utf-16-le"
        assert reader.encoding == "utf-16-le"

    @pytest.mark.parametrize("document", [
        '<?xml version="2.0"?><a/>',
        '<?xml version="1.0" standalone="maybe"?><a/>',
        '<?xml encoding="utf-8"?><a/>',
        "<?xml?><a/>",
    ])
    def test_malformed_xml_declaration(self, document):
        """Test rejected declarations."""
        assert read_error(document).kind is ErrorKind.SYNTAX_ERROR

    def test_doctype_event(self):
        """Test the DOCTYPE event fields."""
        events = body(read('<!DOCTYPE a SYSTEM "a.dtd"><a/>'))
        assert events[0] == Doctype('<!DOCTYPE a SYSTEM "a.dtd">', "a", None, "a.dtd", None)

    @pytest.mark.parametrize("document", [
        "<!DOCTYPE a><!DOCTYPE a><a/>",
        "<a/><!DOCTYPE a>",
        "<a><!DOCTYPE a></a>",
    ])
    def test_misplaced_doctype(self, document):
        """Test a DOCTYPE that is repeated or follows the root."""
        assert read_error(document).kind is ErrorKind.SYNTAX_ERROR


class TestEntities:
    """Test suite for entity expansion in content."""

    def test_extra_entities(self):
        """Test entities supplied through configuration."""
        events = read("<a>&custom;</a>", extra_entities={"custom": "VALUE"})
        assert body(events)[1] == Characters("VALUE")

    def test_declared_entity_is_merged_with_text(self):
        """Test that replacement text joins the surrounding text."""
        document = '<!DOCTYPE a [<!ENTITY e "mid">]><a>pre&e;post</a>'
        assert body(read(document))[2] == Characters("premidpost")

    def test_entity_with_markup(self):
        """Test replacement text that contains elements."""
        document = '<!DOCTYPE a [<!ENTITY e "<b>x</b>">]><a>&e;</a>'
        events = body(read(document))
        b = QName("b")
        assert events[1:] == [StartElement(A), StartElement(b), Characters("x"), EndElement(b), EndElement(A)]
        assert events[2].position == TextPosition(1, 41, 40)

    def test_entity_cannot_close_an_outer_element(self):
        """Test replacement text holding an end tag for an element opened outside it."""
        error = read_error('<!DOCTYPE r [<!ENTITY e "</r>">]><r>&e;')
        assert error.kind is ErrorKind.TAG_MISMATCH
        assert error.position == TextPosition(1, 37, 36)

    def test_entity_cannot_leave_an_element_open(self):
        """Test replacement text whose start tag is closed outside it."""
        error = read_error('<!DOCTYPE r [<!ENTITY e "<b>">]><r>&e;</b></r>')
        assert error.kind is ErrorKind.TAG_MISMATCH

    def test_unclosed_entity_element_at_end_of_input(self):
        """Test replacement text that opens an element nobody closes."""
        error = read_error('<!DOCTYPE r [<!ENTITY e "<b>">]><r>&e;')
        assert error.kind is ErrorKind.UNEXPECTED_EOF

    @pytest.mark.parametrize("value,rest", [
        ("<!--x--", "></r>"),
        ("<b", "/></r>"),
        ("<?pi x?", "></r>"),
        ("<![CDATA[x]]", "></r>"),
    ])
    def test_markup_cannot_cross_entity_end(self, value, rest):
        """Test constructs that start in replacement text and end after it."""
        document = f'<!DOCTYPE r [<!ENTITY e "{value}">]><r>&e;{rest}'
        assert read_error(document).kind is ErrorKind.SYNTAX_ERROR

    def test_balanced_entity_used_twice(self):
        """Test that each expansion keeps its own elements."""
        document = '<!DOCTYPE r [<!ENTITY e "<b>x</b>">]><r>&e;&e;</r>'
        b = QName("b")
        assert body(read(document))[1:] == [
            StartElement(b), Characters("x"), EndElement(b),
            StartElement(b), Characters("x"), EndElement(b),
            EndElement(QName("r")),
        ]

    def test_nested_entities_with_markup(self):
        """Test elements spread over nested replacement texts."""
        document = (
            '<!DOCTYPE r [<!ENTITY inner "<i/>"><!ENTITY outer "<o>&inner;</o>">]>'
            "<r>&outer;</r>"
        )
        names = [event.name.local_name for event in body(read(document))
                 if isinstance(event, StartElement)]
        assert names == ["r", "o", "i"]

    def test_config_entities_take_precedence(self):
        """Test that a DOCTYPE cannot override a configured entity."""
        document = '<!DOCTYPE a [<!ENTITY e "doc">]><a>&e;</a>'
        assert body(read(document, extra_entities={"e": "config"}))[2] == Characters("config")

    def test_unknown_entity(self):
        """Test a reference to an undeclared entity."""
        assert read_error("<a>&nope;</a>").kind is ErrorKind.UNKNOWN_ENTITY

    def test_external_entity_is_not_loaded(self):
        """Test a reference to an external entity."""
        document = '<!DOCTYPE a [<!ENTITY e SYSTEM "e.xml">]><a>&e;</a>'
        assert read_error(document).kind is ErrorKind.UNKNOWN_ENTITY

    def test_mutual_recursion(self):
        """Test entities that reference each other."""
        document = '<!DOCTYPE x [<!ENTITY a "&b;"><!ENTITY b "&a;">]><x>&a;</x>'
        assert read_error(document).kind is ErrorKind.ENTITY_RECURSION_LIMIT_EXCEEDED

    def test_depth_limit(self):
        """Test nesting deeper than configured."""
        document = (
            '<!DOCTYPE x [<!ENTITY e1 "&e2;"><!ENTITY e2 "&e3;"><!ENTITY e3 "x">]>'
            "<x>&e1;</x>"
        )
        assert body(read(document))[2] == Characters("x")
        error = read_error(document, max_entity_expansion_depth=2)
        assert error.kind is ErrorKind.ENTITY_RECURSION_LIMIT_EXCEEDED

    def test_exponential_expansion(self):
        """Test that a billion-laughs document is stopped by the size limit."""
        declarations = ['<!ENTITY lol0 "lol">']
        for level in range(1, 6):
            references = f"&lol{level - 1};" * 10
            declarations.append(f'<!ENTITY lol{level} "{references}">')
        document = f"<!DOCTYPE lolz [{''.join(declarations)}]><lolz>&lol5;</lolz>"
        error = read_error(document, max_entity_expansion_size=10_000)
        assert error.kind is ErrorKind.ENTITY_SIZE_LIMIT_EXCEEDED


class TestReaderSession:
    """Test suite for the reader's session behavior."""

    def test_error_is_memoized(self):
        """Test that every call after a failure raises the same error."""
        reader = EventReader("<a></b>")
        errors = []
        for _ in range(3):
            with pytest.raises(XMLParseError) as info:
                while True:
                    reader.next()
            errors.append(info.value)
        assert errors[0] is errors[1] is errors[2]
        assert reader.current is errors[0]
        assert reader.is_terminated

    def test_end_document_is_memoized(self):
        """Test that EndDocument is returned again after the end."""
        reader = EventReader("<a/>")
        events = list(reader)
        assert reader.next() is events[-1]
        assert reader.next() is events[-1]
        assert list(reader) == [events[-1]]

    def test_current_and_depth(self):
        """Test the accessors that follow the last event."""
        reader = EventReader("<a><b>x</b></a>")
        assert reader.current is None
        assert reader.peek() is None
        reader.next()
        reader.next()
        event = reader.next()
        assert reader.current is event
        assert reader.depth == 2

    def test_skip(self):
        """Test skipping an element subtree."""
        reader = EventReader("<r><a><b/>text<c><d/></c></a><e/></r>")
        reader.next()
        reader.next()
        start = reader.next()
        assert start.name == A
        reader.skip()
        assert reader.current == EndElement(A)
        assert reader.next() == StartElement(QName("e"))

    def test_skip_outside_start_element(self):
        """Test that skip does nothing on other events."""
        reader = EventReader("<r>x</r>")
        reader.next()
        reader.skip()
        assert isinstance(reader.current, StartDocument)
        assert reader.next() == StartElement(QName("r"))

    def test_events_before_error_are_delivered(self):
        """Test that a late error does not hide earlier events."""
        reader = EventReader("<r><a/>\x01</r>")
        assert [type(reader.next()) for _ in range(4)] == [
            StartDocument, StartElement, StartElement, EndElement,
        ]
        with pytest.raises(XMLParseError) as info:
            reader.next()
        assert info.value.kind is ErrorKind.LEX_ERROR

    @settings(max_examples=200, deadline=None)
    @given(st.text(alphabet="<>/=&;'\" ab!?-[]#x:\n", max_size=60))
    def test_arbitrary_input_terminates(self, document):
        """Test that any input ends in EndDocument or an XMLParseError."""
        reader = EventReader(document)
        for _ in range(len(document) * 3 + 5):
            try:
                event = reader.next()
            except XMLParseError:
                assert reader.is_terminated
                return
            if isinstance(event, EndDocument):
                assert reader.next() is event
                return
        pytest.fail("reader did not terminate")


def nested(depth, root='<a xmlns:p="urn:p">'):
    return root + "<a>" * depth + "<p:b/>" + "</a>" * (depth + 1)


def parse_seconds(document):
    best = None
    for _ in range(2):
        started = time.perf_counter()
        for _ in EventReader(document):
            pass
        elapsed = time.perf_counter() - started
        best = elapsed if best is None else min(best, elapsed)
    return best


class TestDeepNesting:
    """Test suite for deeply nested documents."""

    def test_bindings_reach_the_innermost_element(self):
        """Test namespace resolution far below the declaring element."""
        events = read(nested(3000))
        leaf = events[3002]
        assert leaf.name == QName("b", "p", "urn:p")
        assert leaf.in_scope_namespaces == {"p": "urn:p"}
        assert leaf.namespaces == {}

    def test_cost_grows_linearly_with_depth(self):
        """Test that four times the depth costs about four times the time."""
        shallow = parse_seconds(nested(4000))
        deep = parse_seconds(nested(16000))
        assert deep < shallow * 8
