"""Convenience functions over the reader and writer sessions."""

from .parser import iter_events, parse, parse_string, roundtrip, serialize

__all__ = [
    "iter_events",
    "parse",
    "parse_string",
    "roundtrip",
    "serialize",
]
