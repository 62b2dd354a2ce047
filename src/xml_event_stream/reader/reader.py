"""Event reader: the public pull interface over the parser state machine."""

import logging
import time
from typing import Iterator, Optional, Union

from xml_event_stream.character.position import TextPosition
from xml_event_stream.character.stream import Source
from xml_event_stream.model.events import EndDocument, EventType, XMLEvent
from xml_event_stream.reader.parser import PullParser
from xml_event_stream.shared.config import ParserConfig
from xml_event_stream.shared.errors import XMLParseError
from xml_event_stream.shared.logging import get_logger, new_correlation_id
from xml_event_stream.shared.result import ReaderStatistics


class EventReader:
    """Single-pass pull reader producing structural events.

    Each call to ``next()`` returns exactly one event. After the document
    ends or an error is raised, further calls return the same EndDocument
    or raise the same error.

    Args:
        source: Complete document as bytes or text
        config: Parser configuration, captured for the whole session
        correlation_id: Identifier attached to the session's log records

    Example:
        >>> reader = EventReader(b"<a>hi</a>")
        >>> [type(event).__name__ for event in reader]
        ['StartDocument', 'StartElement', 'Characters', 'EndElement', 'EndDocument']
    """

    def __init__(
        self,
        source: Source,
        config: Optional[ParserConfig] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        self.config = config or ParserConfig()
        self.correlation_id = correlation_id or new_correlation_id()
        self.logger = get_logger(__name__, self.correlation_id, "event_reader")
        self._statistics = ReaderStatistics()
        self._parser = PullParser(source, self.config, self.logger)
        self._current: Optional[Union[XMLEvent, XMLParseError]] = None
        self._finished_logged = False

        if self.logger.is_enabled_for(logging.DEBUG):
            size = len(source) if hasattr(source, "__len__") else None
            self.logger.debug(
                "Reader session started",
                extra={"input_type": type(source).__name__, "input_size": size},
            )

    @property
    def position(self) -> TextPosition:
        """Current position in the document."""
        return self._parser.position

    @property
    def depth(self) -> int:
        """Number of currently open elements."""
        return self._parser.depth

    @property
    def statistics(self) -> ReaderStatistics:
        """Session counters, current as of the last call."""
        if not self._finished_logged:
            self._update_statistics()
        return self._statistics

    @property
    def is_terminated(self) -> bool:
        return self._parser.is_terminated

    @property
    def current(self) -> Optional[Union[XMLEvent, XMLParseError]]:
        """Last produced event or error, None before the first call."""
        return self._current

    def peek(self) -> Optional[Union[XMLEvent, XMLParseError]]:
        return self._current

    def next(self) -> XMLEvent:
        """Return the next structural event.

        Raises:
            XMLParseError: The document is malformed or a limit was exceeded
        """
        try:
            event = self._parser.next_event()
        except XMLParseError as error:
            self._current = error
            self._finish(error)
            raise

        self._current = event
        if self._parser.terminal is not event:
            self._statistics.record_event(event.event_type.name)
        elif not self._finished_logged:
            self._statistics.record_event(event.event_type.name)
            self._finish(None)
        return event

    def __iter__(self) -> Iterator[XMLEvent]:
        """Yield events up to and including EndDocument."""
        while True:
            event = self.next()
            yield event
            if isinstance(event, EndDocument):
                return

    def skip(self) -> None:
        """Skip the rest of the element whose StartElement was just returned.

        Does nothing unless the current event is a StartElement. Afterwards
        the current event is the matching EndElement.
        """
        if not isinstance(self._current, XMLEvent):
            return
        if self._current.event_type is not EventType.START_ELEMENT:
            return
        depth = 1
        while depth:
            event = self.next()
            if event.event_type is EventType.START_ELEMENT:
                depth += 1
            elif event.event_type is EventType.END_ELEMENT:
                depth -= 1

    def _finish(self, error: Optional[XMLParseError]) -> None:
        if self._finished_logged:
            return
        self._finished_logged = True
        self._update_statistics()
        self._statistics.finished_at = time.perf_counter()
        if error is not None:
            self.logger.warning(
                "Reader session failed",
                extra={
                    "error_kind": error.kind.name,
                    "line": error.position.line if error.position else None,
                    "column": error.position.column if error.position else None,
                },
            )
            return
        self.logger.debug(
            "Reader session completed",
            extra={
                "events": self._statistics.total_events,
                "characters": self._statistics.characters_consumed,
                "encoding": self.encoding,
            },
        )

    def _update_statistics(self) -> None:
        parser = self._parser
        if parser.stream is not None:
            self._statistics.characters_consumed = parser.stream.characters_consumed
        self._statistics.entity_expansions = parser.entities.expansions
        self._statistics.expanded_characters = parser.entities.expanded_size
        self._statistics.max_depth = parser.max_depth

    @property
    def encoding(self) -> Optional[str]:
        """Codec used to decode the input, once known."""
        if self._parser.stream is None:
            return None
        return self._parser.stream.encoding.encoding
