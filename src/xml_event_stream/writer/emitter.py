"""Serialization of write events into markup text.

The emitter validates every event against its own open-element stack and
namespace stack before producing any output, so a rejected event leaves
the buffer exactly as it was after the last successful write. Escaping is
applied per construct:

- text: ``&`` and ``<`` always, ``>`` after ``]]``, CR as a reference
- attribute values: ``& < > "`` and TAB, LF, CR as references
- comments: ``--`` split with a space, a trailing ``-`` padded
- CDATA: ``]]>`` split across two sections

Characters outside the XML ``Char`` production cannot be escaped and are
rejected wherever they appear.
"""

import re
from enum import Enum, auto
from typing import Callable, Dict, List, Optional, Set, Tuple

from xml_event_stream.character.chars import (
    INVALID_CHAR_PATTERN,
    is_name,
    is_ncname,
    is_whitespace,
)
from xml_event_stream.character.position import PositionTracker, TextPosition
from xml_event_stream.model.name import Attribute, QName
from xml_event_stream.model.namespace import (
    DEFAULT_PREFIX,
    XMLNS_NAMESPACE,
    XMLNS_PREFIX,
    NamespaceError,
    NamespaceStack,
)
from xml_event_stream.shared.config import EmitterConfig
from xml_event_stream.shared.errors import EmitterError, EmitterErrorKind
from xml_event_stream.writer.events import (
    CData,
    Characters,
    Comment,
    Doctype,
    EndDocument,
    EndElement,
    ProcessingInstruction,
    RawCharacters,
    StartDocument,
    StartElement,
    WriteEvent,
)

SUPPORTED_VERSIONS = ("1.0", "1.1")

_TEXT_ESCAPES = re.compile(r"[&<\r]|(?<=\]\])>")
_TEXT_REPLACEMENTS = {"&": "&amp;", "<": "&lt;", ">": "&gt;", "\r": "&#xD;"}
_ATTRIBUTE_TABLE = str.maketrans({
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "\t": "&#x9;",
    "\n": "&#xA;",
    "\r": "&#xD;",
})


def escape_text(text: str, preceding: str = "") -> str:
    """Escape character data.

    Args:
        text: Character data to escape
        preceding: Run of ``]`` characters written directly before ``text``,
            so that a ``>`` completing ``]]>`` across writes is escaped too

    Returns:
        Escaped text
    """
    escaped = _TEXT_ESCAPES.sub(lambda m: _TEXT_REPLACEMENTS[m.group()], preceding + text)
    return escaped[len(preceding):]


def escape_attribute(value: str) -> str:
    """Escape an attribute value for a double-quoted literal."""
    return value.translate(_ATTRIBUTE_TABLE)


def escape_comment(text: str) -> str:
    """Break up every ``--`` so the comment cannot end early."""
    while "--" in text:
        text = text.replace("--", "- -")
    return text


def escape_cdata(text: str) -> str:
    """Split ``]]>`` across two CDATA sections."""
    return text.replace("]]>", "]]]]><![CDATA[>")


class IndentFlags(Enum):
    """What was last written at the current nesting level."""

    WROTE_NOTHING = auto()
    WROTE_MARKUP = auto()
    WROTE_TEXT = auto()


class Emitter:
    """Validating serializer for write events.

    Args:
        config: Emitter configuration, captured for the whole session
    """

    def __init__(self, config: Optional[EmitterConfig] = None) -> None:
        self.config = config or EmitterConfig()
        self.namespaces = NamespaceStack()
        self.generated_prefixes = 0

        self._parts: List[str] = []
        self._tracker = PositionTracker()
        self._elements: List[QName] = []
        self._indent_level = 0
        self._indent_stack: List[IndentFlags] = [IndentFlags.WROTE_NOTHING]

        self._started = False
        self._doctype_written = False
        self._root_count = 0
        self._finished = False
        self._just_wrote_start_element = False
        self._text_tail = ""
        self._new_prefixes = 0

        self._handlers: Dict[type, Callable[..., None]] = {
            StartDocument: self._start_document,
            EndDocument: self._end_document,
            StartElement: self._start_element,
            EndElement: self._end_element,
            Characters: self._characters,
            CData: self._cdata,
            Comment: self._comment,
            ProcessingInstruction: self._processing_instruction,
            Doctype: self._doctype,
            RawCharacters: self._raw_characters,
        }

    @property
    def depth(self) -> int:
        return len(self._elements)

    @property
    def position(self) -> TextPosition:
        """Position just after the last character written."""
        return self._tracker.snapshot()

    @property
    def is_finished(self) -> bool:
        return self._finished

    def getvalue(self) -> str:
        return "".join(self._parts)

    def emit(self, event: WriteEvent) -> None:
        """Validate and serialize one event.

        Raises:
            EmitterError: The event violates the document structure
            TypeError: ``event`` is not a write event
        """
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Cannot emit {type(event).__name__}")
        if self._finished:
            raise self._error(
                EmitterErrorKind.STRUCTURAL_VIOLATION,
                "No events are accepted after EndDocument",
            )
        writes_text = isinstance(event, Characters) or (
            isinstance(event, CData) and self.config.cdata_to_characters
        )
        if not writes_text:
            self._text_tail = ""
        handler(event)
        self._started = True

    # -- output -----------------------------------------------------------

    def _error(self, kind: EmitterErrorKind, message: str) -> EmitterError:
        return EmitterError(kind, message, self._tracker.snapshot())

    def _require_xml_chars(self, text: Optional[str], construct: str) -> None:
        """Reject text that no XML document can contain, escaped or not."""
        invalid = INVALID_CHAR_PATTERN.search(text or "")
        if invalid is not None:
            raise self._error(
                EmitterErrorKind.STRUCTURAL_VIOLATION,
                f"{construct} contains U+{ord(invalid.group()):04X}, which is not an XML character",
            )

    def _write(self, text: str) -> None:
        if text:
            self._parts.append(text)
            self._tracker.advance(text)

    def _escape_attribute(self, value: str) -> str:
        if self.config.perform_escaping:
            return escape_attribute(value)
        return value

    # -- indentation ------------------------------------------------------

    def _write_newline(self, level: int) -> None:
        self._write(self.config.line_separator + self.config.indent_string * level)

    def _before_markup(self) -> None:
        flag = self._indent_stack[-1]
        if (
            self.config.perform_indent
            and flag is not IndentFlags.WROTE_TEXT
            and (self._indent_level > 0 or flag is IndentFlags.WROTE_MARKUP)
        ):
            self._write_newline(self._indent_level)
            if self._indent_level > 0 and self.config.indent_string:
                self._after_markup()

    def _after_markup(self) -> None:
        self._indent_stack[-1] = IndentFlags.WROTE_MARKUP

    def _before_start_element(self) -> None:
        self._before_markup()
        self._indent_stack.append(IndentFlags.WROTE_NOTHING)

    def _after_start_element(self) -> None:
        self._after_markup()
        self._indent_level += 1

    def _before_end_element(self) -> None:
        if (
            self.config.perform_indent
            and self._indent_level > 0
            and self._indent_stack[-1] is IndentFlags.WROTE_MARKUP
        ):
            self._write_newline(self._indent_level - 1)

    def _after_end_element(self) -> None:
        if self._indent_level > 0:
            self._indent_level -= 1
            self._indent_stack.pop()
        self._after_markup()

    def _after_text(self) -> None:
        self._indent_stack[-1] = IndentFlags.WROTE_TEXT

    # -- document level ---------------------------------------------------

    def _ensure_declaration(self) -> None:
        if not self._started and self.config.write_document_declaration:
            self._write_declaration("1.0", "utf-8", None)

    def _write_declaration(
        self, version: str, encoding: Optional[str], standalone: Optional[bool]
    ) -> None:
        self._before_markup()
        declaration = f'<?xml version="{version}"'
        if encoding:
            declaration += f' encoding="{encoding}"'
        if standalone is not None:
            declaration += f' standalone="{"yes" if standalone else "no"}"'
        self._write(declaration + "?>")
        self._after_markup()

    def _close_start_tag(self) -> None:
        if self._just_wrote_start_element:
            self._just_wrote_start_element = False
            self._write(">")

    def _start_document(self, event: StartDocument) -> None:
        if self._started:
            raise self._error(
                EmitterErrorKind.STRUCTURAL_VIOLATION,
                "StartDocument must be the first event",
            )
        if event.version not in SUPPORTED_VERSIONS:
            raise self._error(
                EmitterErrorKind.STRUCTURAL_VIOLATION,
                f"Unsupported XML version {event.version!r}",
            )
        self._write_declaration(event.version, event.encoding, event.standalone)

    def _end_document(self, event: EndDocument) -> None:
        if self._elements:
            raise self._error(
                EmitterErrorKind.STRUCTURAL_VIOLATION,
                f"Element <{self._elements[-1]}> is still open",
            )
        if not self._root_count:
            raise self._error(
                EmitterErrorKind.STRUCTURAL_VIOLATION,
                "The document has no root element",
            )
        self._finished = True

    def _doctype(self, event: Doctype) -> None:
        if self._doctype_written or self._root_count:
            raise self._error(
                EmitterErrorKind.STRUCTURAL_VIOLATION,
                "DOCTYPE is only allowed once, before the root element",
            )
        if not (event.raw.startswith("<!DOCTYPE") and event.raw.endswith(">")):
            raise self._error(
                EmitterErrorKind.STRUCTURAL_VIOLATION,
                "DOCTYPE must be a complete '<!DOCTYPE ...>' declaration",
            )
        self._require_xml_chars(event.raw, "DOCTYPE")
        self._ensure_declaration()
        self._before_markup()
        self._write(event.raw)
        self._after_markup()
        self._doctype_written = True

    # -- elements ---------------------------------------------------------

    def _start_element(self, event: StartElement) -> None:
        if (
            not self._elements
            and self._root_count
            and not self.config.allow_multiple_root_elements
        ):
            raise self._error(
                EmitterErrorKind.MULTIPLE_ROOT_ELEMENTS_ON_WRITE,
                f"Second root element <{event.name}>",
            )

        self.namespaces.push()
        self._new_prefixes = 0
        try:
            declarations = self._declare_namespaces(event.namespace)
            name = self._bind_name(event.name, declarations, set(event.namespace), element=True)
            attributes = self._bind_attributes(event.attributes, declarations, set(event.namespace))
        except EmitterError:
            self.namespaces.pop()
            raise

        self._ensure_declaration()
        self._close_start_tag()
        self._before_start_element()
        self._write(f"<{name.qualified_name}")
        for prefix, uri in declarations.items():
            attribute = f"{XMLNS_PREFIX}:{prefix}" if prefix else XMLNS_PREFIX
            self._write(f' {attribute}="{self._escape_attribute(uri)}"')
        for attribute in attributes:
            self._write(
                f' {attribute.name.qualified_name}="{self._escape_attribute(attribute.value)}"'
            )
        self._after_start_element()

        if not self._elements:
            self._root_count += 1
        self._elements.append(name)
        self.generated_prefixes += self._new_prefixes
        if self.config.normalize_empty_elements:
            self._just_wrote_start_element = True
        else:
            self._write(">")

    def _declare_namespaces(self, namespace: Dict[str, str]) -> Dict[str, str]:
        """Bind the element's declarations; return those that need writing."""
        declarations: Dict[str, str] = {}
        for prefix, uri in namespace.items():
            if prefix and not is_ncname(prefix):
                raise self._error(
                    EmitterErrorKind.STRUCTURAL_VIOLATION,
                    f"Invalid namespace prefix {prefix!r}",
                )
            self._require_xml_chars(uri, "Namespace URI")
            outer = self.namespaces.get(prefix)
            try:
                self.namespaces.declare(prefix, uri)
            except NamespaceError as e:
                raise self._error(EmitterErrorKind.STRUCTURAL_VIOLATION, str(e)) from e
            if (outer or "") != uri:
                declarations[prefix] = uri
        return declarations

    def _generate_prefix(self, uri: str, declarations: Dict[str, str]) -> str:
        while True:
            prefix = f"ns{self.generated_prefixes + self._new_prefixes}"
            self._new_prefixes += 1
            if self.namespaces.get(prefix) is None:
                break
        self._declare_generated(prefix, uri, declarations)
        return prefix

    def _declare_generated(self, prefix: str, uri: str, declarations: Dict[str, str]) -> None:
        try:
            self.namespaces.declare(prefix, uri)
        except NamespaceError as e:
            raise self._error(EmitterErrorKind.STRUCTURAL_VIOLATION, str(e)) from e
        declarations[prefix] = uri

    def _bind_name(
        self,
        name: QName,
        declarations: Dict[str, str],
        explicit: Set[str],
        element: bool,
    ) -> QName:
        """Return ``name`` with the prefix and namespace it is written with."""
        if not is_ncname(name.local_name):
            raise self._error(
                EmitterErrorKind.STRUCTURAL_VIOLATION, f"Invalid name {name.local_name!r}"
            )
        namespace = name.namespace
        autogenerate = self.config.autogenerate_namespace_prefixes

        if name.prefix is not None:
            bound = self.namespaces.get(name.prefix)
            if bound is not None and (namespace is None or namespace == bound):
                return name.with_namespace(bound)
            if bound is not None and name.prefix in explicit:
                raise self._error(
                    EmitterErrorKind.STRUCTURAL_VIOLATION,
                    f"Prefix {name.prefix!r} is declared as {bound!r} on this element, "
                    f"but {name} is in {namespace!r}",
                )
            if namespace is None or not autogenerate:
                message = f"Prefix {name.prefix!r} of {name} is not bound in scope"
                if bound is not None:
                    message = f"Prefix {name.prefix!r} is bound to {bound!r}, not {namespace!r}"
                raise self._error(EmitterErrorKind.UNDECLARED_PREFIX_ON_WRITE, message)
            self._declare_generated(name.prefix, namespace, declarations)
            return name

        if namespace is None:
            if element:
                return name.with_namespace(self.namespaces.get(DEFAULT_PREFIX))
            return name
        if element and self.namespaces.get(DEFAULT_PREFIX) == namespace:
            return name
        prefix = self.namespaces.prefix_for(namespace)
        if prefix is None:
            if not autogenerate:
                raise self._error(
                    EmitterErrorKind.UNDECLARED_PREFIX_ON_WRITE,
                    f"Namespace {namespace!r} of {name.local_name!r} is not bound in scope",
                )
            prefix = self._generate_prefix(namespace, declarations)
        return QName(name.local_name, prefix, namespace)

    def _bind_attributes(
        self,
        attributes: Tuple[Attribute, ...],
        declarations: Dict[str, str],
        explicit: Set[str],
    ) -> List[Attribute]:
        bound: List[Attribute] = []
        written_names: Set[str] = set()
        expanded_names: Set[Tuple[Optional[str], str]] = set()
        for attribute in attributes:
            name = attribute.name
            if (
                name.prefix == XMLNS_PREFIX
                or (name.prefix is None and name.local_name == XMLNS_PREFIX)
                or name.namespace == XMLNS_NAMESPACE
            ):
                raise self._error(
                    EmitterErrorKind.STRUCTURAL_VIOLATION,
                    f"Namespace declaration {name} must be given as a namespace "
                    f"binding, not as an attribute",
                )
            self._require_xml_chars(attribute.value, f"Value of attribute {name}")
            name = self._bind_name(name, declarations, explicit, element=False)
            if name.qualified_name in written_names or name.expanded in expanded_names:
                raise self._error(
                    EmitterErrorKind.STRUCTURAL_VIOLATION,
                    f"Duplicate attribute {name.clark!r}",
                )
            written_names.add(name.qualified_name)
            expanded_names.add(name.expanded)
            bound.append(Attribute(name, attribute.value))
        return bound

    @staticmethod
    def _matches(open_name: QName, name: QName) -> bool:
        if name.namespace is not None:
            return name.expanded == open_name.expanded
        return name.qualified_name == open_name.qualified_name

    def _end_element(self, event: EndElement) -> None:
        if not self._elements:
            raise self._error(
                EmitterErrorKind.UNMATCHED_END_ELEMENT,
                "End element without an open element",
            )
        open_name = self._elements[-1]
        if event.name is not None and not self._matches(open_name, event.name):
            raise self._error(
                EmitterErrorKind.UNMATCHED_END_ELEMENT,
                f"End element </{event.name}> does not match <{open_name}>",
            )
        self._elements.pop()
        self.namespaces.pop()

        if self._just_wrote_start_element:
            self._just_wrote_start_element = False
            self._write(" />" if self.config.pad_self_closing else "/>")
        else:
            self._before_end_element()
            self._write(f"</{open_name.qualified_name}>")
        self._after_end_element()

    # -- character data and other markup ----------------------------------

    def _write_text(self, text: str) -> None:
        self._require_xml_chars(text, "Character data")
        if not self._elements and text and not is_whitespace(text):
            raise self._error(
                EmitterErrorKind.STRUCTURAL_VIOLATION,
                "Character data is not allowed outside the root element",
            )
        self._ensure_declaration()
        self._close_start_tag()
        if self.config.perform_escaping:
            self._write(escape_text(text, self._text_tail))
        else:
            self._write(text)
        tail = (self._text_tail + text)[-2:]
        self._text_tail = tail[len(tail.rstrip("]")):]
        self._after_text()

    def _characters(self, event: Characters) -> None:
        self._write_text(event.text)

    def _cdata(self, event: CData) -> None:
        if self.config.cdata_to_characters:
            self._write_text(event.text)
            return
        if not self._elements:
            raise self._error(
                EmitterErrorKind.STRUCTURAL_VIOLATION,
                "CDATA is not allowed outside the root element",
            )
        self._require_xml_chars(event.text, "CDATA section")
        self._close_start_tag()
        self._write(f"<![CDATA[{escape_cdata(event.text)}]]>")
        self._after_text()

    def _comment(self, event: Comment) -> None:
        self._require_xml_chars(event.text, "Comment")
        text = escape_comment(event.text)
        lead = trail = ""
        if self.config.autopad_comments:
            if not is_whitespace(text[:1]):
                lead = " "
            if not is_whitespace(text[-1:]):
                trail = " "
        if text.endswith("-"):
            trail = " "

        self._ensure_declaration()
        self._close_start_tag()
        self._before_markup()
        self._write(f"<!--{lead}{text}{trail}-->")
        self._after_markup()

    def _processing_instruction(self, event: ProcessingInstruction) -> None:
        if not is_name(event.name):
            raise self._error(
                EmitterErrorKind.STRUCTURAL_VIOLATION,
                f"Invalid processing instruction target {event.name!r}",
            )
        if event.name.lower() == "xml":
            raise self._error(
                EmitterErrorKind.STRUCTURAL_VIOLATION,
                "Use StartDocument to write the XML declaration",
            )
        self._require_xml_chars(event.data, "Processing instruction data")
        if event.data and "?>" in event.data:
            raise self._error(
                EmitterErrorKind.STRUCTURAL_VIOLATION,
                "Processing instruction data cannot contain '?>'",
            )
        self._ensure_declaration()
        self._close_start_tag()
        self._before_markup()
        data = f" {event.data}" if event.data else ""
        self._write(f"<?{event.name}{data}?>")
        self._after_markup()

    def _raw_characters(self, event: RawCharacters) -> None:
        if not self.config.passthrough_markup:
            raise self._error(
                EmitterErrorKind.STRUCTURAL_VIOLATION,
                "RawCharacters require passthrough_markup",
            )
        self._ensure_declaration()
        self._close_start_tag()
        self._write(event.text)
        self._after_text()
