"""Typed error values raised by the event reader and the event writer.

Every error carries a kind from a closed enumeration together with the
position at which it was detected. Reader errors are terminal for their
session; writer errors fail only the offending ``write()`` call.
"""

from enum import Enum, auto
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from xml_event_stream.character.position import TextPosition


class ErrorKind(Enum):
    """Reader-side error kinds."""

    LEX_ERROR = auto()                        # Malformed characters or delimiters
    SYNTAX_ERROR = auto()                     # Well-formed tokens in an invalid order
    TAG_MISMATCH = auto()                     # Closing tag does not match the open element
    UNEXPECTED_EOF = auto()                   # Input ended inside a construct
    DUPLICATE_ATTRIBUTE = auto()              # Attribute name repeated in one start tag
    UNDECLARED_PREFIX = auto()                # Prefix used without a binding in scope
    MULTIPLE_ROOT_ELEMENTS = auto()           # Second top-level element
    ENTITY_RECURSION_LIMIT_EXCEEDED = auto()  # Entity cycle or nesting too deep
    ENTITY_SIZE_LIMIT_EXCEEDED = auto()       # Cumulative expansion too large
    UNKNOWN_ENTITY = auto()                   # Reference to an undeclared entity
    DOCTYPE_MALFORMED = auto()                # Broken DOCTYPE declaration
    DOCUMENT_SIZE_EXCEEDED = auto()           # Input larger than the configured maximum
    LIMIT_EXCEEDED = auto()                   # Name length or attribute count limit


class EmitterErrorKind(Enum):
    """Writer-side error kinds."""

    UNMATCHED_END_ELEMENT = auto()            # End element without a matching start
    UNDECLARED_PREFIX_ON_WRITE = auto()       # Prefix used without a binding in scope
    MULTIPLE_ROOT_ELEMENTS_ON_WRITE = auto()  # Second top-level element
    STRUCTURAL_VIOLATION = auto()             # Any other event ordering or content violation


class XMLEventStreamError(Exception):
    """Base class for reader and writer errors.

    Attributes:
        kind: Error kind enumeration member
        message: Human readable description
        position: Position in the input (reader) or output (writer)
    """

    def __init__(
        self,
        kind: Union[ErrorKind, EmitterErrorKind],
        message: str,
        position: Optional["TextPosition"] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.position = position

    def __str__(self) -> str:
        if self.position is None:
            return f"{self.kind.name}: {self.message}"
        return f"{self.position} {self.kind.name}: {self.message}"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.kind.name}, {self.message!r}, "
            f"position={self.position!r})"
        )


class XMLParseError(XMLEventStreamError):
    """Terminal error produced while reading a document."""

    kind: ErrorKind


class EmitterError(XMLEventStreamError):
    """Error produced while writing an event."""

    kind: EmitterErrorKind
