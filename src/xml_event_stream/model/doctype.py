"""Coarse DOCTYPE declaration parser.

Extracts the root element name, the external identifier and the internal
subset. Entity declarations in the subset are turned into
EntityDeclaration values; element, attribute-list and notation
declarations, comments, processing instructions and parameter entity
references are stepped over and stay available only as raw text.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from xml_event_stream.character.chars import NAME_PATTERN, WHITESPACE_CHARS
from xml_event_stream.character.position import TextPosition
from xml_event_stream.model.entities import (
    EntityDeclaration,
    EntityKind,
    decode_char_reference,
)
from xml_event_stream.shared.errors import ErrorKind, XMLParseError

DOCTYPE_KEYWORD = "<!DOCTYPE"

_PUBID_LITERAL = re.compile(r"[-'()+,./:=?;!*#@$_% \n\ra-zA-Z0-9]*")
_ENTITY_VALUE_SPECIAL = re.compile(r"[%&]")


@dataclass(frozen=True)
class DoctypeDeclaration:
    """Parsed content of a DOCTYPE declaration.

    Attributes:
        name: Declared root element name
        public_id: Public identifier of the external subset
        system_id: System identifier of the external subset
        internal_subset: Raw text between ``[`` and ``]``
        entities: Entity declarations of the internal subset, in order
    """

    name: str
    public_id: Optional[str] = None
    system_id: Optional[str] = None
    internal_subset: Optional[str] = None
    entities: Tuple[EntityDeclaration, ...] = ()


class _DoctypeScanner:
    def __init__(self, text: str, origin: TextPosition, replace_invalid: bool) -> None:
        self.text = text
        self.origin = origin
        self.replace_invalid = replace_invalid
        self.pos = 0

    def error(self, message: str, at: Optional[int] = None) -> XMLParseError:
        offset = self.pos if at is None else at
        return XMLParseError(
            ErrorKind.DOCTYPE_MALFORMED, message, self.origin.advance(self.text[:offset])
        )

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def startswith(self, prefix: str) -> bool:
        return self.text.startswith(prefix, self.pos)

    def skip_whitespace(self) -> bool:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] in WHITESPACE_CHARS:
            self.pos += 1
        return self.pos > start

    def require_whitespace(self, context: str) -> None:
        if not self.skip_whitespace():
            raise self.error(f"Expected whitespace {context}")

    def expect(self, literal: str, context: str) -> None:
        if not self.startswith(literal):
            raise self.error(f"Expected '{literal}' {context}")
        self.pos += len(literal)

    def read_name(self, context: str) -> str:
        match = NAME_PATTERN.match(self.text, self.pos)
        if match is None:
            raise self.error(f"Expected a name {context}")
        self.pos = match.end()
        return match.group()

    def read_quoted(self, context: str) -> str:
        quote = self.peek()
        if quote not in ("'", '"'):
            raise self.error(f"Expected a quoted literal {context}")
        end = self.text.find(quote, self.pos + 1)
        if end < 0:
            raise self.error(f"Unterminated literal {context}")
        value = self.text[self.pos + 1:end]
        self.pos = end + 1
        return value

    def read_external_id(self) -> Tuple[Optional[str], str]:
        if self.startswith("SYSTEM"):
            self.pos += 6
            self.require_whitespace("after SYSTEM")
            return None, self.read_quoted("for the system identifier")
        self.expect("PUBLIC", "in external identifier")
        self.require_whitespace("after PUBLIC")
        literal_start = self.pos
        public_id = self.read_quoted("for the public identifier")
        if not _PUBID_LITERAL.fullmatch(public_id):
            raise self.error("Invalid character in public identifier", literal_start)
        self.require_whitespace("between public and system identifiers")
        return public_id, self.read_quoted("for the system identifier")

    def skip_until(self, terminator: str, context: str) -> None:
        end = self.text.find(terminator, self.pos)
        if end < 0:
            raise self.error(f"Unterminated {context}")
        self.pos = end + len(terminator)

    def skip_declaration(self) -> None:
        quote = ""
        while self.pos < len(self.text):
            char = self.text[self.pos]
            self.pos += 1
            if quote:
                if char == quote:
                    quote = ""
            elif char in ("'", '"'):
                quote = char
            elif char == ">":
                return
        raise self.error("Unterminated markup declaration")

    def read_entity_value(self) -> str:
        value_start = self.pos + 1
        raw = self.read_quoted("for the entity value")
        parts: List[str] = []
        index = 0
        for match in _ENTITY_VALUE_SPECIAL.finditer(raw):
            if match.start() < index:
                continue
            at = value_start + match.start()
            if match.group() == "%":
                raise self.error(
                    "Parameter entity references are not allowed in "
                    "internal subset entity values",
                    at,
                )
            end = raw.find(";", match.start())
            if end < 0:
                raise self.error("Unterminated reference in entity value", at)
            body = raw[match.start() + 1:end]
            parts.append(raw[index:match.start()])
            if body.startswith("#"):
                parts.append(
                    decode_char_reference(
                        body, self.origin.advance(self.text[:at]), self.replace_invalid
                    )
                )
            elif NAME_PATTERN.fullmatch(body):
                parts.append(f"&{body};")
            else:
                raise self.error(f"Malformed reference '&{body};' in entity value", at)
            index = end + 1
        parts.append(raw[index:])
        return "".join(parts)

    def read_entity_declaration(self) -> EntityDeclaration:
        start = self.pos
        self.pos += len("<!ENTITY")
        self.require_whitespace("after '<!ENTITY'")
        is_parameter = False
        if self.peek() == "%":
            is_parameter = True
            self.pos += 1
            self.require_whitespace("after '%' in entity declaration")
        name = self.read_name("in entity declaration")
        self.require_whitespace("after the entity name")

        value = public_id = system_id = notation = None
        kind = EntityKind.INTERNAL
        if self.peek() in ("'", '"'):
            value = self.read_entity_value()
        else:
            public_id, system_id = self.read_external_id()
            kind = EntityKind.EXTERNAL
            had_whitespace = self.skip_whitespace()
            if self.startswith("NDATA"):
                if is_parameter or not had_whitespace:
                    raise self.error("Misplaced NDATA in entity declaration")
                self.pos += 5
                self.require_whitespace("after NDATA")
                notation = self.read_name("for the NDATA notation")
                kind = EntityKind.UNPARSED
        self.skip_whitespace()
        self.expect(">", "to close the entity declaration")
        try:
            return EntityDeclaration(
                name, kind, value, public_id, system_id, notation, is_parameter
            )
        except ValueError as e:
            raise self.error(str(e), start) from e

    def read_internal_subset(self) -> List[EntityDeclaration]:
        entities: List[EntityDeclaration] = []
        while True:
            self.skip_whitespace()
            if self.at_end:
                raise self.error("Unterminated internal subset")
            if self.peek() == "]":
                return entities
            if self.startswith("<!--"):
                self.pos += 4
                self.skip_until("-->", "comment in internal subset")
            elif self.startswith("<?"):
                self.skip_until("?>", "processing instruction in internal subset")
            elif self.startswith("<!ENTITY"):
                entities.append(self.read_entity_declaration())
            elif self.startswith("<!"):
                self.skip_declaration()
            elif self.peek() == "%":
                self.pos += 1
                self.read_name("in parameter entity reference")
                self.expect(";", "after parameter entity reference")
            else:
                raise self.error("Unexpected text in internal subset")


def parse_doctype(
    body: str, position: TextPosition, replace_invalid: bool = False
) -> DoctypeDeclaration:
    """Parse the text between ``<!DOCTYPE`` and the closing ``>``.

    Args:
        body: Declaration body
        position: Position of the ``<!DOCTYPE`` keyword
        replace_invalid: Replace invalid character references with U+FFFD

    Returns:
        DoctypeDeclaration with the extracted parts

    Raises:
        XMLParseError: DOCTYPE_MALFORMED for structurally broken declarations
    """
    scanner = _DoctypeScanner(body, position.advance(DOCTYPE_KEYWORD), replace_invalid)
    scanner.require_whitespace("after '<!DOCTYPE'")
    name = scanner.read_name("for the document type")

    public_id = system_id = internal_subset = None
    had_whitespace = scanner.skip_whitespace()
    if had_whitespace and (scanner.startswith("SYSTEM") or scanner.startswith("PUBLIC")):
        public_id, system_id = scanner.read_external_id()
        scanner.skip_whitespace()

    entities: List[EntityDeclaration] = []
    if scanner.peek() == "[":
        scanner.pos += 1
        subset_start = scanner.pos
        entities = scanner.read_internal_subset()
        internal_subset = body[subset_start:scanner.pos]
        scanner.pos += 1
        scanner.skip_whitespace()

    if not scanner.at_end:
        raise scanner.error("Unexpected content in DOCTYPE declaration")
    return DoctypeDeclaration(name, public_id, system_id, internal_subset, tuple(entities))
