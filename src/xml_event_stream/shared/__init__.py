"""Shared configuration, error, statistics and logging utilities.

This package provides the pieces used by both the reader and the writer
side: immutable session configuration, the typed error taxonomy, session
statistics and correlation-aware logging.
"""

from .config import (
    ConfigError,
    ConfigValidationError,
    EmitterConfig,
    ParserConfig,
)
from .errors import (
    EmitterError,
    EmitterErrorKind,
    ErrorKind,
    XMLEventStreamError,
    XMLParseError,
)
from .logging import (
    CorrelationLogger,
    get_logger,
    new_correlation_id,
)
from .result import (
    ReaderStatistics,
    WriterStatistics,
)

__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "EmitterConfig",
    "ParserConfig",
    "EmitterError",
    "EmitterErrorKind",
    "ErrorKind",
    "XMLEventStreamError",
    "XMLParseError",
    "CorrelationLogger",
    "get_logger",
    "new_correlation_id",
    "ReaderStatistics",
    "WriterStatistics",
]
