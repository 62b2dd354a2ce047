"""Event writer: the public push interface over the emitter."""

import logging
from typing import Iterable, Optional

from xml_event_stream.character.position import TextPosition
from xml_event_stream.shared.config import EmitterConfig
from xml_event_stream.shared.errors import EmitterError
from xml_event_stream.shared.logging import get_logger, new_correlation_id
from xml_event_stream.shared.result import WriterStatistics
from xml_event_stream.writer.emitter import Emitter
from xml_event_stream.writer.events import EndDocument, WriteEventLike, as_write_event


class EventWriter:
    """Push writer accumulating markup in an owned text buffer.

    Accepts write events, StartElement builders, reader events and plain
    strings (written as character data). A rejected event raises
    EmitterError and leaves the buffer as it was after the last successful
    write.

    Args:
        config: Emitter configuration, captured for the whole session
        correlation_id: Identifier attached to the session's log records

    Example:
        >>> writer = EventWriter(EmitterConfig.compact())
        >>> writer.write(start_element("root"))
        >>> writer.write("hi & bye")
        >>> writer.write(end_element())
        >>> writer.getvalue()
        '<root>hi &amp; bye</root>'
    """

    def __init__(
        self,
        config: Optional[EmitterConfig] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        self.config = config or EmitterConfig()
        self.correlation_id = correlation_id or new_correlation_id()
        self.logger = get_logger(__name__, self.correlation_id, "event_writer")
        self._emitter = Emitter(self.config)
        self._statistics = WriterStatistics()

        if self.logger.is_enabled_for(logging.DEBUG):
            self.logger.debug(
                "Writer session started",
                extra={
                    "perform_indent": self.config.perform_indent,
                    "allow_multiple_root_elements": self.config.allow_multiple_root_elements,
                },
            )

    @property
    def position(self) -> TextPosition:
        """Position just after the last character written."""
        return self._emitter.position

    @property
    def depth(self) -> int:
        return self._emitter.depth

    @property
    def is_finished(self) -> bool:
        return self._emitter.is_finished

    @property
    def statistics(self) -> WriterStatistics:
        self._statistics.characters_written = self._emitter.position.offset
        self._statistics.generated_prefixes = self._emitter.generated_prefixes
        return self._statistics

    def write(self, event: WriteEventLike) -> None:
        """Serialize one event.

        Raises:
            EmitterError: The event violates the document structure
            TypeError: ``event`` is of an unsupported type
        """
        write_event = as_write_event(event)
        try:
            self._emitter.emit(write_event)
        except EmitterError as error:
            self.logger.warning(
                "Write rejected",
                extra={
                    "error_kind": error.kind.name,
                    "event": type(write_event).__name__,
                    "line": error.position.line if error.position else None,
                    "column": error.position.column if error.position else None,
                },
            )
            raise

        self._statistics.events_written += 1
        self._statistics.max_depth = max(self._statistics.max_depth, self._emitter.depth)
        if isinstance(write_event, EndDocument):
            self.logger.debug(
                "Writer session completed",
                extra={
                    "events": self._statistics.events_written,
                    "characters": self._emitter.position.offset,
                },
            )

    def write_all(self, events: Iterable[WriteEventLike]) -> None:
        """Write every event in order, stopping at the first rejected one."""
        for event in events:
            self.write(event)

    def getvalue(self) -> str:
        """Markup written so far."""
        return self._emitter.getvalue()
