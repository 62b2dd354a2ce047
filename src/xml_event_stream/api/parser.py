"""Simple entry points for reading and writing whole documents.

Progressive API:
- Level 1: ``parse``, ``parse_string``, ``serialize`` and ``roundtrip``
- Level 2: ``iter_events`` for lazy consumption
- Level 3: EventReader and EventWriter sessions for full control
"""

from typing import Iterable, Iterator, List, Optional

from xml_event_stream.character.stream import Source
from xml_event_stream.model.events import XMLEvent
from xml_event_stream.reader.reader import EventReader
from xml_event_stream.shared.config import EmitterConfig, ParserConfig
from xml_event_stream.shared.logging import new_correlation_id
from xml_event_stream.writer.events import WriteEventLike
from xml_event_stream.writer.writer import EventWriter


def iter_events(
    source: Source,
    config: Optional[ParserConfig] = None,
    correlation_id: Optional[str] = None,
) -> Iterator[XMLEvent]:
    """Lazily read structural events from a document.

    Args:
        source: Complete document as bytes or text
        config: Parser configuration
        correlation_id: Optional correlation ID for log records

    Yields:
        Events up to and including EndDocument

    Raises:
        XMLParseError: The document is malformed, raised when reached
    """
    return iter(EventReader(source, config, correlation_id))


def parse(
    source: Source,
    config: Optional[ParserConfig] = None,
    correlation_id: Optional[str] = None,
) -> List[XMLEvent]:
    """Read every structural event of a document.

    Args:
        source: Complete document as bytes or text
        config: Parser configuration
        correlation_id: Optional correlation ID for log records

    Returns:
        Events from StartDocument to EndDocument

    Raises:
        XMLParseError: The document is malformed

    Examples:
        >>> [type(event).__name__ for event in parse(b"<a/>")]
        ['StartDocument', 'StartElement', 'EndElement', 'EndDocument']
    """
    return list(iter_events(source, config, correlation_id))


def parse_string(
    xml_string: str,
    config: Optional[ParserConfig] = None,
    correlation_id: Optional[str] = None,
) -> List[XMLEvent]:
    """Read every structural event of an already decoded document."""
    if not isinstance(xml_string, str):
        raise TypeError(f"parse_string expects str, not {type(xml_string).__name__}")
    return parse(xml_string, config, correlation_id)


def serialize(
    events: Iterable[WriteEventLike],
    config: Optional[EmitterConfig] = None,
    correlation_id: Optional[str] = None,
) -> str:
    """Write a sequence of events and return the markup.

    Accepts write events, StartElement builders, reader events and plain
    strings, in any mix.

    Raises:
        EmitterError: An event violates the document structure

    Examples:
        >>> from xml_event_stream.writer import end_element, start_element
        >>> serialize([start_element("root"), "hi & bye", end_element()],
        ...           EmitterConfig.compact())
        '<root>hi &amp; bye</root>'
    """
    writer = EventWriter(config, correlation_id)
    writer.write_all(events)
    return writer.getvalue()


def roundtrip(
    source: Source,
    parser_config: Optional[ParserConfig] = None,
    emitter_config: Optional[EmitterConfig] = None,
    correlation_id: Optional[str] = None,
) -> str:
    """Read a document and write its events back out.

    Both sessions share one correlation id.
    """
    correlation_id = correlation_id or new_correlation_id()
    return serialize(
        iter_events(source, parser_config, correlation_id),
        emitter_config,
        correlation_id,
    )
