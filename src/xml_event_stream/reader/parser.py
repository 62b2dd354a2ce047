"""Document-level parsing state machine.

The parser pulls tokens from the lexer and turns them into structural
events, enforcing well-formedness on the way. Nesting is tracked with an
explicit open-element stack paired with the namespace stack, so document
depth never turns into call depth. Events are queued because one token can
yield several events (an empty-element tag produces a start and an end
event, markup ends pending character data).

Once the parser reaches DONE or ERROR it keeps returning the same terminal
event or raising the same error.
"""

import re
from collections import deque
from enum import Enum, auto
from typing import Deque, List, Optional, Tuple, Union

from xml_event_stream.character.chars import is_ncname
from xml_event_stream.character.position import TextPosition
from xml_event_stream.character.stream import CharacterStream, EntityFrame, Source
from xml_event_stream.model.doctype import DOCTYPE_KEYWORD, parse_doctype
from xml_event_stream.model.entities import (
    PREDEFINED_ENTITIES,
    EntityTable,
    decode_char_reference,
)
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
    XMLEvent,
)
from xml_event_stream.model.name import Attribute, QName
from xml_event_stream.model.namespace import (
    DEFAULT_PREFIX,
    XMLNS_PREFIX,
    NamespaceError,
    NamespaceStack,
    UnboundPrefixError,
)
from xml_event_stream.shared.config import ParserConfig
from xml_event_stream.shared.errors import ErrorKind, XMLParseError
from xml_event_stream.shared.logging import CorrelationLogger, get_logger
from xml_event_stream.tokenization.tokenizer import Token, TokenType, XMLLexer

_XML_DECLARATION = re.compile(
    r"version[ \t\n]*=[ \t\n]*(['\"])(?P<version>[^'\"]*)\1"
    r"(?:[ \t\n]+encoding[ \t\n]*=[ \t\n]*(['\"])(?P<encoding>[^'\"]*)\3)?"
    r"(?:[ \t\n]+standalone[ \t\n]*=[ \t\n]*(['\"])(?P<standalone>[^'\"]*)\5)?"
    r"[ \t\n]*"
)
_ENCODING_NAME = re.compile(r"[A-Za-z][A-Za-z0-9._-]*")
SUPPORTED_VERSIONS = ("1.0", "1.1")


class DocumentState(Enum):
    """Document-level parser states."""

    BEFORE_PROLOG = auto()   # Nothing read yet
    PROLOG = auto()          # After the XML declaration, DOCTYPE still allowed
    MISC = auto()            # After the DOCTYPE, before the root element
    INSIDE_ELEMENT = auto()  # At least one element open
    AFTER_ROOT = auto()      # Root element closed
    DONE = auto()            # EndDocument produced
    ERROR = auto()           # Terminal error raised


_RawAttribute = Tuple[str, str, TextPosition]


class PullParser:
    """Pull-based XML parser producing one structural event per call.

    Args:
        source: Complete document as bytes or text
        config: Parser configuration
        logger: Session logger
    """

    def __init__(
        self,
        source: Source,
        config: Optional[ParserConfig] = None,
        logger: Optional[CorrelationLogger] = None,
    ) -> None:
        self.config = config or ParserConfig()
        self.logger = logger or get_logger(__name__, component="pull_parser")
        self.state = DocumentState.BEFORE_PROLOG

        self._source = source
        self.stream: Optional[CharacterStream] = None
        self.lexer: Optional[XMLLexer] = None
        self.namespaces = NamespaceStack()
        self.entities = EntityTable(
            self.config.extra_entities,
            self.config.max_entity_expansion_depth,
            self.config.max_entity_expansion_size,
            self.config.replace_unknown_entity_references,
        )

        # Raw name, resolved name and the entity frame the start tag was read from
        self._elements: List[Tuple[str, QName, Optional[EntityFrame]]] = []
        self._origin: Optional[EntityFrame] = None
        self._queue: Deque[XMLEvent] = deque()
        self._terminal: Optional[Union[EndDocument, XMLParseError]] = None

        self._text: List[str] = []
        self._text_position: Optional[TextPosition] = None
        self._text_is_whitespace = True
        self.max_depth = 0

    # -- public interface -------------------------------------------------

    @property
    def depth(self) -> int:
        return len(self._elements)

    @property
    def is_terminated(self) -> bool:
        return self._terminal is not None

    @property
    def terminal(self) -> Optional[Union[EndDocument, XMLParseError]]:
        return self._terminal

    @property
    def position(self) -> TextPosition:
        if self.stream is None:
            return TextPosition()
        return self.stream.position

    def next_event(self) -> XMLEvent:
        """Advance until exactly one event is ready.

        Raises:
            XMLParseError: The document is not well-formed, or a limit was hit
        """
        if self._terminal is not None and not self._queue:
            if isinstance(self._terminal, XMLParseError):
                raise self._terminal
            return self._terminal

        try:
            while not self._queue:
                self._step()
        except XMLParseError as error:
            self.state = DocumentState.ERROR
            self._terminal = error
            if not self._queue:
                raise

        event = self._queue.popleft()
        if isinstance(event, EndDocument):
            self.state = DocumentState.DONE
            self._terminal = event
        return event

    # -- helpers ----------------------------------------------------------

    def _syntax_error(
        self, message: str, position: TextPosition, kind: ErrorKind = ErrorKind.SYNTAX_ERROR
    ) -> XMLParseError:
        return XMLParseError(kind, message, position)

    def _started_stream(self) -> CharacterStream:
        if self.stream is None:
            raise RuntimeError("The document has not been started")
        return self.stream

    def _next_token(self) -> Token:
        if self.lexer is None:
            raise RuntimeError("The document has not been started")
        return self.lexer.next_token()

    def _require_same_source(self, construct: str, start: Token) -> None:
        """Reject markup that starts and ends in different entities."""
        if self._started_stream().last_source is not self._origin:
            raise self._syntax_error(
                f"{construct} must start and end in the same entity", start.position
            )

    def _next_significant(self) -> Token:
        token = self._next_token()
        if token.type is TokenType.WHITESPACE:
            token = self._next_token()
        return token

    def _expect(self, token: Token, expected: TokenType, message: str) -> Token:
        if token.type is not expected:
            if token.type is TokenType.EOF:
                raise self._syntax_error(message, token.position, ErrorKind.UNEXPECTED_EOF)
            raise self._syntax_error(message, token.position)
        return token

    def _emit(self, event: XMLEvent) -> None:
        self._queue.append(event)

    # -- character data ---------------------------------------------------

    def _buffer_text(self, text: str, position: TextPosition, whitespace: bool) -> None:
        if not self._text:
            self._text_position = position
        self._text.append(text)
        if not whitespace:
            self._text_is_whitespace = False

    def _flush_text(self) -> None:
        if not self._text:
            return
        text = "".join(self._text)
        position = self._text_position or self.position
        whitespace = self._text_is_whitespace
        self._text = []
        self._text_position = None
        self._text_is_whitespace = True

        if not whitespace:
            self._emit(Characters(text, position))
            return
        if self.state is DocumentState.INSIDE_ELEMENT:
            if self.config.whitespace_to_characters:
                self._emit(Characters(text, position))
            else:
                self._emit(Whitespace(text, position))
        elif not self.config.trim_whitespace:
            self._emit(Whitespace(text, position))

    def _require_root(self, token: Token, what: str) -> None:
        if self.state is not DocumentState.INSIDE_ELEMENT:
            raise self._syntax_error(f"{what} is not allowed outside the root element", token.position)

    # -- state machine ----------------------------------------------------

    def _step(self) -> None:
        if self.state is DocumentState.BEFORE_PROLOG:
            self._start_document()
            return

        self._origin = self._started_stream().source
        token = self._next_token()
        kind = token.type

        if kind is TokenType.WHITESPACE:
            self._buffer_text(token.value, token.position, whitespace=True)
        elif kind is TokenType.CHARACTERS:
            self._require_root(token, "Character data")
            self._buffer_text(token.value, token.position, whitespace=False)
        elif kind is TokenType.CHAR_REFERENCE:
            self._require_root(token, "Character reference")
            self._require_same_source("Character reference", token)
            text = decode_char_reference(
                token.value, token.position, self.config.replace_unknown_entity_references
            )
            self._buffer_text(text, token.position, whitespace=False)
        elif kind is TokenType.ENTITY_REFERENCE:
            self._require_root(token, "Entity reference")
            self._require_same_source("Entity reference", token)
            self._expand_entity(token)
        elif kind is TokenType.OPENING_TAG_START:
            self._start_tag(token)
        elif kind is TokenType.CLOSING_TAG_START:
            self._end_tag(token)
        elif kind is TokenType.COMMENT_START:
            self._comment(token)
        elif kind is TokenType.PI_START:
            self._processing_instruction(token)
        elif kind is TokenType.CDATA_START:
            self._cdata(token)
        elif kind is TokenType.DOCTYPE_START:
            self._doctype(token)
        elif kind is TokenType.EOF:
            self._end_of_input(token)
        else:
            raise self._syntax_error(f"Unexpected {kind.name} token", token.position)

    def _start_document(self) -> None:
        self.stream = CharacterStream(
            self._source,
            replace_malformed=self.config.replace_unknown_entity_references,
            max_document_size=self.config.max_document_size,
        )
        self.lexer = XMLLexer(self.stream, self.config.max_name_length)
        self.state = DocumentState.PROLOG

        encoding = self.stream.encoding.declared or self.stream.encoding.encoding
        if not (self.stream.startswith("<?xml") and self.stream.peek(5) in (" ", "\t", "\n", "?")):
            self._emit(StartDocument("1.0", encoding, None, self.stream.position))
            return

        start = self._next_token()
        self._next_token()
        token = self._next_token()
        data = ""
        if token.type is TokenType.CHARACTERS:
            data = token.value
            token = self._next_token()
        self._expect(token, TokenType.PI_END, "Expected '?>' to close the XML declaration")

        match = _XML_DECLARATION.fullmatch(data)
        if match is None:
            raise self._syntax_error("Malformed XML declaration", start.position)
        version = match.group("version")
        if version not in SUPPORTED_VERSIONS:
            raise self._syntax_error(f"Unsupported XML version {version!r}", start.position)
        declared = match.group("encoding")
        if declared is not None and not _ENCODING_NAME.fullmatch(declared):
            raise self._syntax_error(f"Invalid encoding name {declared!r}", start.position)
        standalone_value = match.group("standalone")
        standalone: Optional[bool] = None
        if standalone_value is not None:
            if standalone_value not in ("yes", "no"):
                raise self._syntax_error(
                    f"standalone must be 'yes' or 'no', not {standalone_value!r}", start.position
                )
            standalone = standalone_value == "yes"
        self._emit(StartDocument(version, declared or encoding, standalone, start.position))

    def _expand_entity(self, token: Token) -> None:
        stream = self._started_stream()
        name = token.value
        if name in PREDEFINED_ENTITIES:
            self._buffer_text(PREDEFINED_ENTITIES[name], token.position, whitespace=False)
            return
        text = self.entities.replacement_text(name, token.position)
        self.entities.begin_expansion(name, text, stream.entity_chain(), token.position)
        stream.push_entity(name, text, token.position)

    def _start_tag(self, start: Token) -> None:
        if self.state is DocumentState.AFTER_ROOT and not self.config.allow_multiple_root_elements:
            raise self._syntax_error(
                "Only one root element is allowed",
                start.position,
                ErrorKind.MULTIPLE_ROOT_ELEMENTS,
            )
        self._flush_text()

        name_token = self._expect(
            self._next_token(), TokenType.NAME, "Expected element name after '<'"
        )
        raw_attributes, empty = self._read_attributes()
        self._require_same_source("Start tag", start)

        self.namespaces.push()
        attributes = self._bind_namespaces(raw_attributes)
        try:
            name = self.namespaces.resolve_element(self._parse_qname(name_token.value, name_token.position))
        except UnboundPrefixError as e:
            raise self._syntax_error(str(e), name_token.position, ErrorKind.UNDECLARED_PREFIX) from e

        resolved: List[Attribute] = []
        seen = set()
        for qname, value, position in attributes:
            try:
                qname = self.namespaces.resolve_attribute(qname)
            except UnboundPrefixError as e:
                raise self._syntax_error(str(e), position, ErrorKind.UNDECLARED_PREFIX) from e
            if qname.expanded in seen:
                raise self._syntax_error(
                    f"Duplicate attribute {qname.clark!r}",
                    position,
                    ErrorKind.DUPLICATE_ATTRIBUTE,
                )
            seen.add(qname.expanded)
            resolved.append(Attribute(qname, value))

        self._emit(StartElement(
            name,
            tuple(resolved),
            self.namespaces.current_scope(),
            self.namespaces.in_scope(),
            start.position,
        ))

        if empty:
            self.namespaces.pop()
            self._emit(EndElement(name, start.position))
            if not self._elements:
                self.state = DocumentState.AFTER_ROOT
            return

        self._elements.append((name_token.value, name, self._origin))
        self.max_depth = max(self.max_depth, len(self._elements))
        self.state = DocumentState.INSIDE_ELEMENT

    def _read_attributes(self) -> Tuple[List[_RawAttribute], bool]:
        raw_attributes: List[_RawAttribute] = []
        raw_names = set()
        while True:
            token = self._next_token()
            separated = token.type is TokenType.WHITESPACE
            if separated:
                token = self._next_token()
            if token.type is TokenType.TAG_END:
                return raw_attributes, False
            if token.type is TokenType.EMPTY_TAG_END:
                return raw_attributes, True
            if token.type is not TokenType.NAME:
                raise self._syntax_error(f"Unexpected {token.type.name} in start tag", token.position)
            if not separated:
                raise self._syntax_error("Attributes must be separated by whitespace", token.position)

            self._expect(self._next_significant(), TokenType.EQUALS, "Expected '=' after attribute name")
            literal = self._expect(
                self._next_significant(), TokenType.LITERAL, "Expected quoted attribute value"
            )
            if token.value in raw_names:
                raise self._syntax_error(
                    f"Duplicate attribute {token.value!r}",
                    token.position,
                    ErrorKind.DUPLICATE_ATTRIBUTE,
                )
            if len(raw_attributes) >= self.config.max_attributes:
                raise self._syntax_error(
                    f"More than {self.config.max_attributes} attributes",
                    token.position,
                    ErrorKind.LIMIT_EXCEEDED,
                )
            raw_names.add(token.value)
            raw_attributes.append((token.value, literal.value, token.position))

    def _bind_namespaces(
        self, raw_attributes: List[_RawAttribute]
    ) -> List[Tuple[QName, str, TextPosition]]:
        attributes: List[Tuple[QName, str, TextPosition]] = []
        for raw_name, raw_value, position in raw_attributes:
            value = self.entities.expand_attribute_value(raw_value, position)
            if raw_name == XMLNS_PREFIX:
                prefix: Optional[str] = DEFAULT_PREFIX
            elif raw_name.startswith(XMLNS_PREFIX + ":"):
                prefix = raw_name[len(XMLNS_PREFIX) + 1:]
                if not is_ncname(prefix):
                    raise self._syntax_error(f"Invalid namespace prefix {prefix!r}", position)
            else:
                prefix = None

            if prefix is None:
                attributes.append((self._parse_qname(raw_name, position), value, position))
                continue
            try:
                self.namespaces.declare(prefix, value)
            except NamespaceError as e:
                raise self._syntax_error(str(e), position) from e
        return attributes

    def _parse_qname(self, raw: str, position: TextPosition) -> QName:
        try:
            return QName.parse(raw)
        except ValueError as e:
            raise self._syntax_error(str(e), position) from e

    def _end_tag(self, start: Token) -> None:
        if not self._elements:
            raise self._syntax_error(
                "Closing tag without a matching start tag",
                start.position,
                ErrorKind.TAG_MISMATCH,
            )
        name_token = self._expect(
            self._next_token(), TokenType.NAME, "Expected element name after '</'"
        )
        self._expect(self._next_significant(), TokenType.TAG_END, "Expected '>' to close the end tag")
        self._require_same_source("End tag", start)

        raw_name, name, origin = self._elements[-1]
        if name_token.value != raw_name:
            raise self._syntax_error(
                f"Closing tag </{name_token.value}> does not match <{raw_name}>",
                name_token.position,
                ErrorKind.TAG_MISMATCH,
            )
        if origin is not self._origin:
            raise self._syntax_error(
                f"<{raw_name}> must be closed in the entity that opened it",
                start.position,
                ErrorKind.TAG_MISMATCH,
            )
        self._flush_text()
        self._elements.pop()
        self.namespaces.pop()
        self._emit(EndElement(name, start.position))
        if not self._elements:
            self.state = DocumentState.AFTER_ROOT

    def _construct_body(self, closing: TokenType, construct: str) -> Tuple[str, Token]:
        token = self._next_token()
        body = ""
        if token.type is TokenType.CHARACTERS:
            body = token.value
            token = self._next_token()
        self._expect(token, closing, f"Unterminated {construct}")
        return body, token

    def _comment(self, start: Token) -> None:
        text, _ = self._construct_body(TokenType.COMMENT_END, "comment")
        self._require_same_source("Comment", start)
        if self.config.ignore_comments:
            if not self.config.coalesce_characters:
                self._flush_text()
            return
        self._flush_text()
        self._emit(Comment(text, start.position))

    def _processing_instruction(self, start: Token) -> None:
        target = self._expect(
            self._next_token(), TokenType.NAME, "Expected processing instruction target"
        )
        if target.value.lower() == "xml":
            raise self._syntax_error(
                "The XML declaration is only allowed at the start of the document",
                start.position,
            )
        data, _ = self._construct_body(TokenType.PI_END, "processing instruction")
        self._require_same_source("Processing instruction", start)
        self._flush_text()
        self._emit(ProcessingInstruction(target.value, data or None, start.position))

    def _cdata(self, start: Token) -> None:
        self._require_root(start, "CDATA section")
        text, _ = self._construct_body(TokenType.CDATA_END, "CDATA section")
        self._require_same_source("CDATA section", start)
        if self.config.cdata_to_characters:
            if not self.config.coalesce_characters:
                self._flush_text()
            self._buffer_text(text, start.position, whitespace=False)
            if not self.config.coalesce_characters:
                self._flush_text()
            return
        self._flush_text()
        self._emit(CData(text, start.position))

    def _doctype(self, start: Token) -> None:
        if self.state is not DocumentState.PROLOG:
            raise self._syntax_error(
                "DOCTYPE declaration is only allowed once, before the root element",
                start.position,
            )
        body, _ = self._construct_body(TokenType.TAG_END, "DOCTYPE declaration")
        declaration = parse_doctype(
            body, start.position, self.config.replace_unknown_entity_references
        )
        for entity in declaration.entities:
            if self.entities.declare(entity):
                self.logger.debug(
                    "Entity declared",
                    extra={"entity": entity.name, "kind": entity.kind.name,
                           "parameter": entity.is_parameter},
                )
        self._flush_text()
        self._emit(Doctype(
            f"{DOCTYPE_KEYWORD}{body}>",
            declaration.name,
            declaration.public_id,
            declaration.system_id,
            declaration.internal_subset,
            start.position,
        ))
        self.state = DocumentState.MISC

    def _end_of_input(self, token: Token) -> None:
        if self._elements:
            raise self._syntax_error(
                f"Unexpected end of input: <{self._elements[-1][0]}> is not closed",
                token.position,
                ErrorKind.UNEXPECTED_EOF,
            )
        if self.state is not DocumentState.AFTER_ROOT:
            raise self._syntax_error(
                "Unexpected end of input: the document has no root element",
                token.position,
                ErrorKind.UNEXPECTED_EOF,
            )
        self._flush_text()
        self._emit(EndDocument(token.position))
