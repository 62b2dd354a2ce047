"""Structural events produced by the event reader.

Events are immutable. Their ``position`` points at the first character of
the construct and does not take part in equality, so events read from two
differently formatted documents compare equal when their content does.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import ClassVar, Dict, Mapping, Optional, Tuple

from xml_event_stream.character.position import START_POSITION, TextPosition
from xml_event_stream.model.name import Attribute, QName


class EventType(Enum):
    """Kinds of structural events."""

    START_DOCUMENT = auto()
    END_DOCUMENT = auto()
    START_ELEMENT = auto()
    END_ELEMENT = auto()
    CHARACTERS = auto()
    CDATA = auto()
    WHITESPACE = auto()
    COMMENT = auto()
    PROCESSING_INSTRUCTION = auto()
    DOCTYPE = auto()


class XMLEvent:
    """Base class of all structural events."""

    event_type: ClassVar[EventType]
    position: TextPosition

    @property
    def is_text(self) -> bool:
        return self.event_type in (EventType.CHARACTERS, EventType.CDATA, EventType.WHITESPACE)


@dataclass(frozen=True)
class StartDocument(XMLEvent):
    """Start of the document, with the XML declaration values."""

    event_type: ClassVar[EventType] = EventType.START_DOCUMENT
    version: str = "1.0"
    encoding: str = "utf-8"
    standalone: Optional[bool] = None
    position: TextPosition = field(default=START_POSITION, compare=False)


@dataclass(frozen=True)
class EndDocument(XMLEvent):
    """End of the document; the last event of a successful session."""

    event_type: ClassVar[EventType] = EventType.END_DOCUMENT
    position: TextPosition = field(default=START_POSITION, compare=False)


@dataclass(frozen=True)
class StartElement(XMLEvent):
    """Start tag or empty-element tag.

    Attributes:
        name: Resolved element name
        attributes: Attributes in document order, namespace declarations excluded
        namespaces: Bindings declared on this element
        in_scope_namespaces: Every binding visible on this element
    """

    event_type: ClassVar[EventType] = EventType.START_ELEMENT
    name: QName
    attributes: Tuple[Attribute, ...] = ()
    namespaces: Dict[str, str] = field(default_factory=dict, hash=False)
    in_scope_namespaces: Mapping[str, str] = field(default_factory=dict, hash=False, compare=False)
    position: TextPosition = field(default=START_POSITION, compare=False)

    def get_attribute(self, local_name: str, namespace: Optional[str] = None) -> Optional[str]:
        """Look up an attribute value by expanded name."""
        for attribute in self.attributes:
            if attribute.name.local_name == local_name and attribute.name.namespace == namespace:
                return attribute.value
        return None


@dataclass(frozen=True)
class EndElement(XMLEvent):
    """End tag, or the implicit end of an empty-element tag."""

    event_type: ClassVar[EventType] = EventType.END_ELEMENT
    name: QName
    position: TextPosition = field(default=START_POSITION, compare=False)


@dataclass(frozen=True)
class Characters(XMLEvent):
    """Character data, with references expanded."""

    event_type: ClassVar[EventType] = EventType.CHARACTERS
    text: str = ""
    position: TextPosition = field(default=START_POSITION, compare=False)


@dataclass(frozen=True)
class CData(XMLEvent):
    """Content of a CDATA section."""

    event_type: ClassVar[EventType] = EventType.CDATA
    text: str = ""
    position: TextPosition = field(default=START_POSITION, compare=False)


@dataclass(frozen=True)
class Whitespace(XMLEvent):
    """Whitespace-only character data."""

    event_type: ClassVar[EventType] = EventType.WHITESPACE
    text: str = ""
    position: TextPosition = field(default=START_POSITION, compare=False)


@dataclass(frozen=True)
class Comment(XMLEvent):
    """Comment text without the delimiters."""

    event_type: ClassVar[EventType] = EventType.COMMENT
    text: str = ""
    position: TextPosition = field(default=START_POSITION, compare=False)


@dataclass(frozen=True)
class ProcessingInstruction(XMLEvent):
    """Processing instruction; ``data`` is None when only the target is present."""

    event_type: ClassVar[EventType] = EventType.PROCESSING_INSTRUCTION
    target: str = ""
    data: Optional[str] = None
    position: TextPosition = field(default=START_POSITION, compare=False)


@dataclass(frozen=True)
class Doctype(XMLEvent):
    """DOCTYPE declaration.

    Attributes:
        raw: Complete declaration as written, ``<!DOCTYPE ... >``
        name: Declared root element name
        public_id: Public identifier of the external subset
        system_id: System identifier of the external subset
        internal_subset: Raw internal subset text
    """

    event_type: ClassVar[EventType] = EventType.DOCTYPE
    raw: str = ""
    name: str = ""
    public_id: Optional[str] = None
    system_id: Optional[str] = None
    internal_subset: Optional[str] = None
    position: TextPosition = field(default=START_POSITION, compare=False)
