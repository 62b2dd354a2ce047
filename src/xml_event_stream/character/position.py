"""Line, column and offset tracking over decoded document text."""

from dataclasses import dataclass


@dataclass(frozen=True)
class TextPosition:
    """Position of a character in the decoded document.

    Attributes:
        line: Line number (1-based)
        column: Column number (1-based)
        offset: Character offset from the start of the document (0-based)
    """

    line: int = 1
    column: int = 1
    offset: int = 0

    def __post_init__(self) -> None:
        """Validate position values."""
        if self.line < 1:
            raise ValueError("Line number must be >= 1")
        if self.column < 1:
            raise ValueError("Column number must be >= 1")
        if self.offset < 0:
            raise ValueError("Offset must be >= 0")

    def advance(self, text: str) -> "TextPosition":
        """Return the position reached after reading ``text`` from here."""
        if not text:
            return self
        newlines = text.count("\n")
        if newlines:
            column = len(text) - text.rfind("\n")
            return TextPosition(self.line + newlines, column, self.offset + len(text))
        return TextPosition(self.line, self.column + len(text), self.offset + len(text))

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


START_POSITION = TextPosition()


class PositionTracker:
    """Mutable position counter used while consuming characters."""

    __slots__ = ("line", "column", "offset")

    def __init__(self) -> None:
        self.line = 1
        self.column = 1
        self.offset = 0

    def advance(self, text: str) -> None:
        """Move past ``text``, which is already newline-normalized."""
        length = len(text)
        if length == 1:
            if text == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
            self.offset += 1
            return
        newlines = text.count("\n")
        if newlines:
            self.line += newlines
            self.column = length - text.rfind("\n")
        else:
            self.column += length
        self.offset += length

    def snapshot(self) -> TextPosition:
        return TextPosition(self.line, self.column, self.offset)
