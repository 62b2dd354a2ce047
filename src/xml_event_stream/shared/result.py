"""Session statistics for reader and writer sessions."""

import time
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class ReaderStatistics:
    """Counters collected while an event reader runs.

    Attributes:
        events: Number of events produced, keyed by event type name
        characters_consumed: Document characters consumed so far
        entity_expansions: User entity references expanded
        expanded_characters: Characters produced by user entity expansion
        max_depth: Deepest element nesting seen
        started_at: Session start (``time.perf_counter`` value)
        finished_at: Time the terminal event or error was produced
    """

    events: Dict[str, int] = field(default_factory=dict)
    characters_consumed: int = 0
    entity_expansions: int = 0
    expanded_characters: int = 0
    max_depth: int = 0
    started_at: float = field(default_factory=time.perf_counter)
    finished_at: Optional[float] = None

    def record_event(self, event_name: str) -> None:
        self.events[event_name] = self.events.get(event_name, 0) + 1

    @property
    def total_events(self) -> int:
        return sum(self.events.values())

    @property
    def processing_time_ms(self) -> float:
        """Elapsed time, up to now while the session is still running."""
        end = self.finished_at if self.finished_at is not None else time.perf_counter()
        return (end - self.started_at) * 1000.0

    @property
    def characters_per_second(self) -> float:
        """Calculate characters consumed per second."""
        elapsed = self.processing_time_ms
        if elapsed <= 0:
            return 0.0
        return (self.characters_consumed * 1000.0) / elapsed


@dataclass
class WriterStatistics:
    """Counters collected while an event writer runs."""

    events_written: int = 0
    characters_written: int = 0
    max_depth: int = 0
    generated_prefixes: int = 0
