"""Reading layer: parser state machine and the pull-based event reader."""

from .parser import DocumentState, PullParser
from .reader import EventReader

__all__ = [
    "DocumentState",
    "PullParser",
    "EventReader",
]
