"""XML Event Stream.

A pull-based XML reader and a validating event writer. The reader turns a
document into an ordered sequence of structural events and rejects
malformed input with a typed, positioned error; the writer turns write
events back into well-formed markup.

Progressive API Disclosure:
- Level 1: Simple functions - parse(), parse_string(), serialize(), roundtrip()
- Level 2: Lazy reading - iter_events()
- Level 3: Sessions - EventReader and EventWriter with their configurations
"""

__version__ = "0.1.0"
__author__ = "XML Event Stream Team"

# Progressive API disclosure - Level 1 and 2: Simple functions
from .api import iter_events, parse, parse_string, roundtrip, serialize

# Level 3: Sessions and configuration
from .reader import EventReader
from .shared.config import ConfigError, ConfigValidationError, EmitterConfig, ParserConfig
from .shared.errors import (
    EmitterError,
    EmitterErrorKind,
    ErrorKind,
    XMLEventStreamError,
    XMLParseError,
)
from .writer import EventWriter, end_element, start_element

# Core value objects
from .character.position import TextPosition
from .model.events import (
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
from .model.name import Attribute, QName

__all__ = [
    # Version and metadata
    "__author__",
    "__version__",

    # Level 1 and 2: Simple functions
    "iter_events",
    "parse",
    "parse_string",
    "roundtrip",
    "serialize",

    # Level 3: Sessions
    "EventReader",
    "EventWriter",
    "start_element",
    "end_element",

    # Configuration
    "ParserConfig",
    "EmitterConfig",
    "ConfigError",
    "ConfigValidationError",

    # Errors
    "XMLEventStreamError",
    "XMLParseError",
    "EmitterError",
    "ErrorKind",
    "EmitterErrorKind",

    # Reader events and value objects
    "TextPosition",
    "QName",
    "Attribute",
    "EventType",
    "XMLEvent",
    "StartDocument",
    "EndDocument",
    "StartElement",
    "EndElement",
    "Characters",
    "CData",
    "Whitespace",
    "Comment",
    "ProcessingInstruction",
    "Doctype",
]
