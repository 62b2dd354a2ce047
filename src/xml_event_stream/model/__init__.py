"""Document model: names, namespaces, entities, DOCTYPE and events."""

from .doctype import DoctypeDeclaration, parse_doctype
from .entities import (
    PREDEFINED_ENTITIES,
    EntityDeclaration,
    EntityKind,
    EntityTable,
    decode_char_reference,
)
from .events import (
    CData,
    Characters,
    Comment,
    Doctype,
    EndDocument,
    EndElement,
    EventType,
    ProcessingInstruction,
    StartDocument,
    StartElement,
    Whitespace,
    XMLEvent,
)
from .name import Attribute, QName, as_qname
from .namespace import (
    XML_NAMESPACE,
    XMLNS_NAMESPACE,
    NamespaceError,
    NamespaceStack,
    UnboundPrefixError,
)

__all__ = [
    "DoctypeDeclaration",
    "parse_doctype",
    "PREDEFINED_ENTITIES",
    "EntityDeclaration",
    "EntityKind",
    "EntityTable",
    "decode_char_reference",
    "CData",
    "Characters",
    "Comment",
    "Doctype",
    "EndDocument",
    "EndElement",
    "EventType",
    "ProcessingInstruction",
    "StartDocument",
    "StartElement",
    "Whitespace",
    "XMLEvent",
    "Attribute",
    "QName",
    "as_qname",
    "XML_NAMESPACE",
    "XMLNS_NAMESPACE",
    "NamespaceError",
    "NamespaceStack",
    "UnboundPrefixError",
]
