"""Entity table with bounded expansion.

The five predefined entities are shared read-only by every session. Entities
supplied through configuration or declared in a DOCTYPE internal subset live
in a per-session table. Every expansion of a user entity is charged against
a nesting depth limit and a cumulative size limit, and a reference to an
entity that is already being expanded is rejected immediately.
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from xml_event_stream.character.chars import (
    REPLACEMENT_CHARACTER,
    is_name,
    is_valid_code_point,
)
from xml_event_stream.character.position import TextPosition
from xml_event_stream.shared.config import (
    DEFAULT_MAX_ENTITY_EXPANSION_DEPTH,
    DEFAULT_MAX_ENTITY_EXPANSION_SIZE,
)
from xml_event_stream.shared.errors import ErrorKind, XMLParseError

PREDEFINED_ENTITIES: Mapping[str, str] = MappingProxyType({
    "lt": "<",
    "gt": ">",
    "amp": "&",
    "apos": "'",
    "quot": '"',
})

_CHAR_REFERENCE = re.compile(r"#(?:[0-9]+|x[0-9A-Fa-f]+)")
_ATTRIBUTE_SPECIAL = re.compile(r"[&<\t\n\r]")


class EntityKind(Enum):
    """Kinds of general and parameter entities."""

    INTERNAL = auto()   # Replacement text given inline
    EXTERNAL = auto()   # Parsed entity stored elsewhere, never loaded
    UNPARSED = auto()   # External entity with an NDATA notation


@dataclass(frozen=True)
class EntityDeclaration:
    """One entity declaration.

    Attributes:
        name: Entity name
        kind: Internal, external or unparsed
        value: Replacement text of an internal entity
        public_id: Public identifier of an external entity
        system_id: System identifier of an external entity
        notation: Notation name of an unparsed entity
        is_parameter: Declared with ``%``
    """

    name: str
    kind: EntityKind = EntityKind.INTERNAL
    value: Optional[str] = None
    public_id: Optional[str] = None
    system_id: Optional[str] = None
    notation: Optional[str] = None
    is_parameter: bool = False

    def __post_init__(self) -> None:
        """Validate the declaration shape."""
        if not is_name(self.name):
            raise ValueError(f"Invalid entity name: {self.name!r}")
        if self.kind is EntityKind.INTERNAL and self.value is None:
            raise ValueError("Internal entities require a value")
        if self.kind is not EntityKind.INTERNAL and self.system_id is None:
            raise ValueError("External entities require a system identifier")
        if (self.kind is EntityKind.UNPARSED) != (self.notation is not None):
            raise ValueError("Only unparsed entities carry a notation")


def decode_char_reference(
    body: str, position: TextPosition, replace_invalid: bool = False
) -> str:
    """Decode the ``#NNN`` or ``#xHHHH`` body of a character reference.

    Raises:
        XMLParseError: LEX_ERROR for malformed references and, unless
            ``replace_invalid`` is set, for code points outside ``Char``
    """
    if not _CHAR_REFERENCE.fullmatch(body):
        raise XMLParseError(
            ErrorKind.LEX_ERROR, f"Malformed character reference '&{body};'", position
        )
    if body.startswith("#x"):
        code = int(body[2:], 16)
    else:
        code = int(body[1:])
    if not is_valid_code_point(code):
        if replace_invalid:
            return REPLACEMENT_CHARACTER
        raise XMLParseError(
            ErrorKind.LEX_ERROR,
            f"Character reference '&{body};' is not a valid XML character",
            position,
        )
    return chr(code)


class EntityTable:
    """Per-session general and parameter entity declarations.

    Args:
        extra_entities: Additional internal general entities
        max_depth: Deepest accepted nesting of entity expansions
        max_size: Most characters produced by entity expansion in a session
        replace_invalid: Replace invalid character references with U+FFFD
    """

    def __init__(
        self,
        extra_entities: Optional[Mapping[str, str]] = None,
        max_depth: int = DEFAULT_MAX_ENTITY_EXPANSION_DEPTH,
        max_size: int = DEFAULT_MAX_ENTITY_EXPANSION_SIZE,
        replace_invalid: bool = False,
    ) -> None:
        self.max_depth = max_depth
        self.max_size = max_size
        self.replace_invalid = replace_invalid
        self.expansions = 0
        self.expanded_size = 0
        self._general: Dict[str, EntityDeclaration] = {}
        self._parameter: Dict[str, EntityDeclaration] = {}
        for name, value in (extra_entities or {}).items():
            self.declare(EntityDeclaration(name, EntityKind.INTERNAL, value))

    def declare(self, declaration: EntityDeclaration) -> bool:
        """Record a declaration; the first one of a name wins.

        Returns:
            True if the declaration was recorded
        """
        table = self._parameter if declaration.is_parameter else self._general
        if declaration.name in table:
            return False
        if not declaration.is_parameter and declaration.name in PREDEFINED_ENTITIES:
            return False
        table[declaration.name] = declaration
        return True

    def get(self, name: str) -> Optional[EntityDeclaration]:
        return self._general.get(name)

    def get_parameter(self, name: str) -> Optional[EntityDeclaration]:
        return self._parameter.get(name)

    @property
    def general_entities(self) -> Mapping[str, EntityDeclaration]:
        return MappingProxyType(self._general)

    @property
    def parameter_entities(self) -> Mapping[str, EntityDeclaration]:
        return MappingProxyType(self._parameter)

    def __contains__(self, name: object) -> bool:
        return name in PREDEFINED_ENTITIES or name in self._general

    def replacement_text(self, name: str, position: TextPosition) -> str:
        """Return the replacement text of a general entity.

        Raises:
            XMLParseError: UNKNOWN_ENTITY for undeclared or external entities
        """
        if name in PREDEFINED_ENTITIES:
            return PREDEFINED_ENTITIES[name]
        declaration = self._general.get(name)
        if declaration is None:
            raise XMLParseError(
                ErrorKind.UNKNOWN_ENTITY, f"Unknown entity '&{name};'", position
            )
        if declaration.kind is not EntityKind.INTERNAL or declaration.value is None:
            raise XMLParseError(
                ErrorKind.UNKNOWN_ENTITY,
                f"External entity '&{name};' cannot be expanded",
                position,
            )
        return declaration.value

    def begin_expansion(
        self, name: str, text: str, chain: Sequence[str], position: TextPosition
    ) -> None:
        """Charge one expansion of ``name`` against the session limits.

        Args:
            name: Entity being expanded
            text: Its replacement text
            chain: Entities currently being expanded, outermost first

        Raises:
            XMLParseError: ENTITY_RECURSION_LIMIT_EXCEEDED or
                ENTITY_SIZE_LIMIT_EXCEEDED
        """
        if name in chain:
            raise XMLParseError(
                ErrorKind.ENTITY_RECURSION_LIMIT_EXCEEDED,
                f"Entity '&{name};' references itself",
                position,
            )
        if len(chain) + 1 > self.max_depth:
            raise XMLParseError(
                ErrorKind.ENTITY_RECURSION_LIMIT_EXCEEDED,
                f"Entity expansion deeper than {self.max_depth} levels",
                position,
            )
        self.expanded_size += len(text)
        if self.expanded_size > self.max_size:
            raise XMLParseError(
                ErrorKind.ENTITY_SIZE_LIMIT_EXCEEDED,
                f"Entity expansion exceeds {self.max_size} characters",
                position,
            )
        self.expansions += 1

    def expand_attribute_value(self, raw: str, position: TextPosition) -> str:
        """Normalize an attribute literal and expand its references.

        Literal tab, newline and carriage return characters become spaces,
        including those inside entity replacement text. Character references
        are kept as decoded. Nested entities are expanded with an explicit
        work stack.

        Raises:
            XMLParseError: LEX_ERROR, UNKNOWN_ENTITY or an expansion limit error
        """
        output: List[str] = []
        stack: List[Tuple[str, int, Optional[str]]] = [(raw, 0, None)]

        while stack:
            text, index, entity = stack.pop()
            match = _ATTRIBUTE_SPECIAL.search(text, index)
            if match is None:
                output.append(text[index:])
                continue

            output.append(text[index:match.start()])
            char = match.group()
            if char != "&":
                if char == "<":
                    raise XMLParseError(
                        ErrorKind.LEX_ERROR,
                        f"'<' in the replacement text of '&{entity};' "
                        "is not allowed in attribute values",
                        position,
                    )
                output.append(" ")
                stack.append((text, match.end(), entity))
                continue

            end = text.find(";", match.end())
            if end < 0:
                raise XMLParseError(
                    ErrorKind.LEX_ERROR, "Unterminated reference in attribute value", position
                )
            body = text[match.end():end]
            stack.append((text, end + 1, entity))

            if body.startswith("#"):
                output.append(decode_char_reference(body, position, self.replace_invalid))
                continue
            if not is_name(body):
                raise XMLParseError(
                    ErrorKind.LEX_ERROR, f"Malformed entity reference '&{body};'", position
                )
            if body in PREDEFINED_ENTITIES:
                output.append(PREDEFINED_ENTITIES[body])
                continue

            replacement = self.replacement_text(body, position)
            chain = [name for _, _, name in stack if name is not None]
            self.begin_expansion(body, replacement, chain, position)
            stack.append((replacement, 0, body))

        return "".join(output)
