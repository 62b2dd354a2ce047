"""Events consumed by the event writer.

Write events mirror the reader events but carry only what is needed to
produce markup. Element names may be given as QName values or as lexical
``prefix:local`` strings. Reader events convert into write events through
``to_write_event``, so a document read with the event reader can be fed
straight back into a writer.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from xml_event_stream.model import events as reader_events
from xml_event_stream.model.name import Attribute, QName, as_qname
from xml_event_stream.model.namespace import DEFAULT_PREFIX

NameLike = Union[QName, str]


class WriteEvent:
    """Base class of all write events."""


@dataclass(frozen=True)
class StartDocument(WriteEvent):
    """XML declaration. ``encoding=None`` leaves the pseudo-attribute out."""

    version: str = "1.0"
    encoding: Optional[str] = "utf-8"
    standalone: Optional[bool] = None


@dataclass(frozen=True)
class EndDocument(WriteEvent):
    """End of the document; no further events are accepted."""


@dataclass(frozen=True)
class StartElement(WriteEvent):
    """Start tag.

    Attributes:
        name: Element name
        attributes: Attributes in output order, without namespace declarations
        namespace: Bindings to declare on this element, ``""`` for the default
    """

    name: QName
    attributes: Tuple[Attribute, ...] = ()
    namespace: Dict[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", as_qname(self.name))
        object.__setattr__(self, "attributes", tuple(
            attribute if isinstance(attribute, Attribute)
            else Attribute(as_qname(attribute[0]), attribute[1])
            for attribute in self.attributes
        ))


@dataclass(frozen=True)
class EndElement(WriteEvent):
    """End tag; without a name the innermost open element is closed."""

    name: Optional[QName] = None

    def __post_init__(self) -> None:
        if self.name is not None:
            object.__setattr__(self, "name", as_qname(self.name))


@dataclass(frozen=True)
class Characters(WriteEvent):
    text: str = ""


@dataclass(frozen=True)
class CData(WriteEvent):
    text: str = ""


@dataclass(frozen=True)
class Comment(WriteEvent):
    text: str = ""


@dataclass(frozen=True)
class ProcessingInstruction(WriteEvent):
    name: str
    data: Optional[str] = None


@dataclass(frozen=True)
class Doctype(WriteEvent):
    """Complete DOCTYPE declaration, written verbatim."""

    raw: str


@dataclass(frozen=True)
class RawCharacters(WriteEvent):
    """Markup written verbatim, accepted only in passthrough mode."""

    text: str = ""


class StartElementBuilder:
    """Fluent construction of a StartElement event.

    Example:
        >>> event = (start_element("h:table")
        ...          .ns("h", "http://www.w3.org/TR/html4/")
        ...          .attr("border", "1")
        ...          .build())
    """

    def __init__(self, name: NameLike) -> None:
        self._name = as_qname(name)
        self._attributes: List[Attribute] = []
        self._namespace: Dict[str, str] = {}

    def attr(self, name: NameLike, value: str) -> "StartElementBuilder":
        self._attributes.append(Attribute(as_qname(name), value))
        return self

    def ns(self, prefix: str, uri: str) -> "StartElementBuilder":
        self._namespace[prefix] = uri
        return self

    def default_ns(self, uri: str) -> "StartElementBuilder":
        self._namespace[DEFAULT_PREFIX] = uri
        return self

    def build(self) -> StartElement:
        return StartElement(self._name, tuple(self._attributes), dict(self._namespace))


def start_element(name: NameLike) -> StartElementBuilder:
    return StartElementBuilder(name)


def end_element(name: Optional[NameLike] = None) -> EndElement:
    return EndElement(name)


def characters(text: str) -> Characters:
    return Characters(text)


def cdata(text: str) -> CData:
    return CData(text)


def comment(text: str) -> Comment:
    return Comment(text)


def processing_instruction(name: str, data: Optional[str] = None) -> ProcessingInstruction:
    return ProcessingInstruction(name, data)


def raw_characters(text: str) -> RawCharacters:
    return RawCharacters(text)


def to_write_event(event: reader_events.XMLEvent) -> WriteEvent:
    """Convert a reader event into the equivalent write event.

    Whitespace events become Characters.

    Raises:
        TypeError: ``event`` is not a reader event
    """
    if isinstance(event, reader_events.StartElement):
        return StartElement(event.name, event.attributes, dict(event.namespaces))
    if isinstance(event, reader_events.EndElement):
        return EndElement(event.name)
    if isinstance(event, (reader_events.Characters, reader_events.Whitespace)):
        return Characters(event.text)
    if isinstance(event, reader_events.CData):
        return CData(event.text)
    if isinstance(event, reader_events.Comment):
        return Comment(event.text)
    if isinstance(event, reader_events.ProcessingInstruction):
        return ProcessingInstruction(event.target, event.data)
    if isinstance(event, reader_events.Doctype):
        return Doctype(event.raw)
    if isinstance(event, reader_events.StartDocument):
        return StartDocument(event.version, event.encoding, event.standalone)
    if isinstance(event, reader_events.EndDocument):
        return EndDocument()
    raise TypeError(f"Cannot convert {type(event).__name__} into a write event")


WriteEventLike = Union[WriteEvent, StartElementBuilder, reader_events.XMLEvent, str]


def as_write_event(event: WriteEventLike) -> WriteEvent:
    """Coerce anything the event writer accepts into a write event.

    Plain strings are character data and builders are built.
    """
    if isinstance(event, WriteEvent):
        return event
    if isinstance(event, str):
        return Characters(event)
    if isinstance(event, StartElementBuilder):
        return event.build()
    if isinstance(event, reader_events.XMLEvent):
        return to_write_event(event)
    raise TypeError(f"Cannot write {type(event).__name__}")
