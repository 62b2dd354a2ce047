"""Character layer: encoding detection, decoding and position tracking.

This package turns the raw input into a stream of validated, newline
normalized characters with line/column positions for the lexer.
"""

from .encoding import (
    BOMDetector,
    DetectionMethod,
    EncodingDetector,
    EncodingResult,
    XMLDeclarationParser,
)
from .position import PositionTracker, START_POSITION, TextPosition
from .stream import CharacterStream

__all__ = [
    "BOMDetector",
    "DetectionMethod",
    "EncodingDetector",
    "EncodingResult",
    "XMLDeclarationParser",
    "PositionTracker",
    "START_POSITION",
    "TextPosition",
    "CharacterStream",
]
