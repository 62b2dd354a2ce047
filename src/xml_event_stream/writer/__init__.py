"""Writing layer: write events, the emitter and the push-based event writer."""

from .emitter import (
    Emitter,
    IndentFlags,
    escape_attribute,
    escape_cdata,
    escape_comment,
    escape_text,
)
from .events import (
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
    StartElementBuilder,
    WriteEvent,
    as_write_event,
    cdata,
    characters,
    comment,
    end_element,
    processing_instruction,
    raw_characters,
    start_element,
    to_write_event,
)
from .writer import EventWriter

__all__ = [
    "Emitter",
    "IndentFlags",
    "escape_attribute",
    "escape_cdata",
    "escape_comment",
    "escape_text",
    "CData",
    "Characters",
    "Comment",
    "Doctype",
    "EndDocument",
    "EndElement",
    "ProcessingInstruction",
    "RawCharacters",
    "StartDocument",
    "StartElement",
    "StartElementBuilder",
    "WriteEvent",
    "as_write_event",
    "cdata",
    "characters",
    "comment",
    "end_element",
    "processing_instruction",
    "raw_characters",
    "start_element",
    "to_write_event",
    "EventWriter",
]
