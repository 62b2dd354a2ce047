"""Character source for the lexer.

Decodes the input on the fly in fixed-size chunks, normalizes line ends,
rejects characters outside the XML ``Char`` production and enforces the
document size limit. Problems found while decoding are held back until the
reader actually reaches them, so every event before the faulty character is
still delivered.

Entity replacement text is replayed through a stack of frames stacked on top
of the document buffer. Characters read from a frame do not move the
document position. The stream reports which frame the next and the last
character belong to, so callers can keep markup inside a single entity.
"""

import codecs
import re
from typing import List, Optional, Union

from xml_event_stream.character.chars import INVALID_CHAR_PATTERN
from xml_event_stream.character.encoding import (
    DEFAULT_ENCODING,
    DetectionMethod,
    EncodingDetector,
    EncodingResult,
)
from xml_event_stream.character.position import PositionTracker, TextPosition
from xml_event_stream.shared.errors import ErrorKind, XMLParseError

DEFAULT_CHUNK_SIZE = 8192

Source = Union[bytes, bytearray, memoryview, str]


class EntityFrame:
    """Replacement text of one entity being replayed."""

    __slots__ = ("name", "text", "index", "origin")

    def __init__(self, name: str, text: str, origin: TextPosition) -> None:
        self.name = name
        self.text = text
        self.index = 0
        self.origin = origin

    @property
    def exhausted(self) -> bool:
        return self.index >= len(self.text)


class CharacterStream:
    """Pull-style character source with bounded lookahead.

    Args:
        source: Complete document as bytes or already decoded text
        replace_malformed: Decode malformed byte sequences to U+FFFD instead of failing
        max_document_size: Maximum input size (bytes, or characters for text input)
        chunk_size: Number of input units decoded per refill
    """

    def __init__(
        self,
        source: Source,
        replace_malformed: bool = False,
        max_document_size: Optional[int] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")

        self.max_document_size = max_document_size
        self.chunk_size = chunk_size

        self._raw: Union[bytes, str]
        self._raw_index = 0
        self._decoder: Optional[codecs.IncrementalDecoder] = None

        if isinstance(source, str):
            self._raw = source
            if source.startswith("\ufeff"):
                self._raw_index = 1
            self.encoding = EncodingResult(DEFAULT_ENCODING, DetectionMethod.PRE_DECODED)
        elif isinstance(source, (bytes, bytearray, memoryview)):
            self._raw = bytes(source)
            self.encoding = EncodingDetector().detect(self._raw)
            self._raw_index = self.encoding.bom_length
            errors = "replace" if replace_malformed else "strict"
            self._decoder = codecs.getincrementaldecoder(self.encoding.encoding)(errors=errors)
        else:
            raise TypeError(
                f"source must be bytes or str, not {type(source).__name__}"
            )

        self._buffer = ""
        self._index = 0
        self._finished = False
        self._pending_cr = False
        self._pending_error: Optional[XMLParseError] = None
        self._tracker = PositionTracker()
        self._tail = PositionTracker()
        self._frames: List[EntityFrame] = []
        self._last_source: Optional[EntityFrame] = None

    # -- decoding ---------------------------------------------------------

    def _decode_next_chunk(self) -> str:
        start = self._raw_index
        end = start + self.chunk_size
        overflow = False
        if self.max_document_size is not None and end > self.max_document_size:
            end = max(self.max_document_size, start)
            overflow = end < len(self._raw)

        raw = self._raw[start:end]
        self._raw_index = start + len(raw)
        final = overflow or self._raw_index >= len(self._raw)

        error: Optional[str] = None
        error_kind = ErrorKind.LEX_ERROR
        if self._decoder is None:
            text = raw
        else:
            try:
                text = self._decoder.decode(raw, final)
            except UnicodeDecodeError as exc:
                text = self._salvage(exc)
                error = f"Malformed {self.encoding.encoding} byte sequence"
                final = True

        if error is None and overflow:
            error = f"Document exceeds maximum size of {self.max_document_size}"
            error_kind = ErrorKind.DOCUMENT_SIZE_EXCEEDED

        text = self._normalize_line_ends(text, final)

        invalid = INVALID_CHAR_PATTERN.search(text)
        if invalid is not None:
            text = text[:invalid.start()]
            error = f"Invalid XML character U+{ord(invalid.group()):04X}"
            error_kind = ErrorKind.LEX_ERROR
            final = True

        self._tail.advance(text)
        if error is not None:
            self._pending_error = XMLParseError(error_kind, error, self._tail.snapshot())
        if final:
            self._finished = True
        return text

    def _salvage(self, exc: UnicodeDecodeError) -> str:
        try:
            return exc.object[:exc.start].decode(self.encoding.encoding)
        except UnicodeDecodeError:
            return ""

    def _normalize_line_ends(self, text: str, final: bool) -> str:
        if self._pending_cr:
            text = "\r" + text
            self._pending_cr = False
        if not final and text.endswith("\r"):
            text = text[:-1]
            self._pending_cr = True
        if "\r" in text:
            text = text.replace("\r\n", "\n").replace("\r", "\n")
        return text

    def _fill(self) -> bool:
        while not self._finished:
            text = self._decode_next_chunk()
            if text:
                self._buffer = self._buffer[self._index:] + text
                self._index = 0
                return True
        return False

    def _main_peek(self, offset: int) -> Optional[str]:
        while len(self._buffer) - self._index <= offset:
            if not self._fill():
                if self._pending_error is not None:
                    raise self._pending_error
                return None
        return self._buffer[self._index + offset]

    # -- entity frames ----------------------------------------------------

    def push_entity(self, name: str, text: str, origin: TextPosition) -> None:
        """Replay ``text`` before the rest of the document."""
        self._frames.append(EntityFrame(name, text, origin))

    def entity_chain(self) -> List[str]:
        """Names of the entities currently being replayed, outermost first."""
        return [frame.name for frame in self._frames]

    @property
    def in_entity(self) -> bool:
        return any(not frame.exhausted for frame in self._frames)

    def _top_frame(self) -> Optional[EntityFrame]:
        while self._frames and self._frames[-1].exhausted:
            self._frames.pop()
        return self._frames[-1] if self._frames else None

    @property
    def source(self) -> Optional[EntityFrame]:
        """Frame the next character comes from, None for the document itself."""
        return self._top_frame()

    @property
    def last_source(self) -> Optional[EntityFrame]:
        """Frame the last consumed character came from, None for the document itself."""
        return self._last_source

    # -- reading ----------------------------------------------------------

    @property
    def position(self) -> TextPosition:
        """Current position; inside replacement text, the originating reference."""
        if self.in_entity:
            return self._frames[0].origin
        return self._tracker.snapshot()

    @property
    def characters_consumed(self) -> int:
        return self._tracker.offset

    def peek(self, offset: int = 0) -> Optional[str]:
        """Return the character ``offset`` places ahead without consuming it."""
        for frame in reversed(self._frames):
            remaining = len(frame.text) - frame.index
            if offset < remaining:
                return frame.text[frame.index + offset]
            offset -= remaining
        return self._main_peek(offset)

    def startswith(self, text: str) -> bool:
        return all(self.peek(i) == char for i, char in enumerate(text))

    def next_char(self) -> Optional[str]:
        """Consume and return one character, or None at end of input."""
        frame = self._top_frame()
        if frame is not None:
            char = frame.text[frame.index]
            frame.index += 1
            self._last_source = frame
            return char
        char = self._main_peek(0)
        if char is None:
            return None
        self._index += 1
        self._tracker.advance(char)
        self._last_source = None
        return char

    def skip(self, count: int) -> None:
        for _ in range(count):
            self.next_char()

    def read_run(self, pattern: "re.Pattern[str]") -> str:
        """Consume the longest run of characters matched by ``pattern``."""
        parts: List[str] = []
        while True:
            frame = self._top_frame()
            if frame is not None:
                match = pattern.match(frame.text, frame.index)
                if match is None or match.end() == frame.index:
                    break
                parts.append(match.group())
                frame.index = match.end()
                self._last_source = frame
                if not frame.exhausted:
                    break
                continue

            if self._main_peek(0) is None:
                break
            match = pattern.match(self._buffer, self._index)
            if match is None or match.end() == self._index:
                break
            text = match.group()
            self._index = match.end()
            self._tracker.advance(text)
            parts.append(text)
            self._last_source = None
            if self._index < len(self._buffer):
                break
        return "".join(parts)

    def at_eof(self) -> bool:
        return self.peek() is None
