"""Mode-driven XML lexer.

The lexer turns the character stream into tokens one call at a time. Its
mode follows the markup it has just opened: after ``<`` it reads tag
contents, after ``<!--`` a comment body, and so on, falling back to
content mode once the construct is closed. Bodies of comments, CDATA
sections, processing instructions and DOCTYPE declarations are returned as
a single CHARACTERS token followed by the closing delimiter token.

Lexical errors are unrecoverable and raised as XMLParseError.
"""

import re
from collections import deque
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Deque, Dict, Iterator, Optional, Tuple

from xml_event_stream.character.chars import (
    NAME_CHARS_PATTERN,
    WHITESPACE_CHARS,
    is_name_start_char,
    is_whitespace,
)
from xml_event_stream.character.position import TextPosition
from xml_event_stream.character.stream import CharacterStream
from xml_event_stream.shared.config import DEFAULT_MAX_NAME_LENGTH
from xml_event_stream.shared.errors import ErrorKind, XMLParseError

_TEXT_RUN = re.compile(r"[^<&]+")
_WHITESPACE_RUN = re.compile(r"[ \t\n\r]+")
_NOT_DASH = re.compile(r"[^-]+")
_NOT_BRACKET = re.compile(r"[^\]]+")
_NOT_QUESTION = re.compile(r"[^?]+")
_DOUBLE_QUOTED = re.compile(r'[^"<]+')
_SINGLE_QUOTED = re.compile(r"[^'<]+")
_REFERENCE_BODY = re.compile(r"#[0-9A-Za-z]*")
CHAR_REFERENCE_PATTERN = re.compile(r"#(?:[0-9]+|x[0-9A-Fa-f]+)")


class TokenType(Enum):
    """Lexical token types."""

    OPENING_TAG_START = auto()   # <
    CLOSING_TAG_START = auto()   # </
    TAG_END = auto()             # >
    EMPTY_TAG_END = auto()       # />
    PI_START = auto()            # <?
    PI_END = auto()              # ?>
    COMMENT_START = auto()       # <!--
    COMMENT_END = auto()         # -->
    CDATA_START = auto()         # <![CDATA[
    CDATA_END = auto()           # ]]>
    DOCTYPE_START = auto()       # <!DOCTYPE
    EQUALS = auto()              # = inside a tag
    LITERAL = auto()             # Quoted attribute value, quotes removed
    NAME = auto()                # Element, attribute or PI target name
    CHAR_REFERENCE = auto()      # &#...; with the text between & and ;
    ENTITY_REFERENCE = auto()    # &name; with the name
    CHARACTERS = auto()          # Character data or a construct body
    WHITESPACE = auto()          # Whitespace-only run
    EOF = auto()                 # End of input


class LexerMode(Enum):
    """Lexer modes, one per kind of construct being read."""

    CONTENT = auto()     # Between markup
    TAG = auto()         # Inside a start or end tag
    PI_TARGET = auto()   # After <?
    PI_DATA = auto()     # After the PI target
    COMMENT = auto()     # After <!--
    CDATA = auto()       # After <![CDATA[
    DOCTYPE = auto()     # After <!DOCTYPE


@dataclass
class Token:
    """A single lexical token with the position of its first character."""

    type: TokenType
    value: str
    position: TextPosition

    @property
    def is_eof(self) -> bool:
        return self.type is TokenType.EOF


class XMLLexer:
    """Pull lexer over a CharacterStream.

    Args:
        stream: Character source
        max_name_length: Longest accepted name
    """

    def __init__(
        self,
        stream: CharacterStream,
        max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
    ) -> None:
        self.stream = stream
        self.max_name_length = max_name_length
        self.mode = LexerMode.CONTENT
        self._pending: Deque[Token] = deque()
        self._handlers: Dict[LexerMode, Callable[[], Token]] = {
            LexerMode.CONTENT: self._content_token,
            LexerMode.TAG: self._tag_token,
            LexerMode.PI_TARGET: self._pi_target_token,
            LexerMode.PI_DATA: self._pi_data_token,
            LexerMode.COMMENT: self._comment_token,
            LexerMode.CDATA: self._cdata_token,
            LexerMode.DOCTYPE: self._doctype_token,
        }

    def next_token(self) -> Token:
        """Produce the next token.

        Raises:
            XMLParseError: LEX_ERROR, UNEXPECTED_EOF or LIMIT_EXCEEDED
        """
        if self._pending:
            return self._pending.popleft()
        return self._handlers[self.mode]()

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.is_eof:
                return

    # -- helpers ----------------------------------------------------------

    def _error(
        self,
        message: str,
        position: Optional[TextPosition] = None,
        kind: ErrorKind = ErrorKind.LEX_ERROR,
    ) -> XMLParseError:
        return XMLParseError(kind, message, position or self.stream.position)

    def _eof(self, construct: str) -> XMLParseError:
        return self._error(
            f"Unexpected end of input inside {construct}",
            kind=ErrorKind.UNEXPECTED_EOF,
        )

    def _read_name(self, construct: str) -> str:
        first = self.stream.peek()
        if first is None:
            raise self._eof(construct)
        if not is_name_start_char(first):
            raise self._error(f"Invalid name start character {first!r} in {construct}")
        position = self.stream.position
        name = self.stream.read_run(NAME_CHARS_PATTERN)
        if len(name) > self.max_name_length:
            raise self._error(
                f"Name exceeds maximum length of {self.max_name_length}",
                position,
                ErrorKind.LIMIT_EXCEEDED,
            )
        return name

    def _read_until(
        self, delimiter: str, run: "re.Pattern[str]", construct: str
    ) -> Tuple[str, TextPosition]:
        stream = self.stream
        parts = []
        while True:
            parts.append(stream.read_run(run))
            if stream.startswith(delimiter):
                position = stream.position
                stream.skip(len(delimiter))
                return "".join(parts), position
            char = stream.next_char()
            if char is None:
                raise self._eof(construct)
            parts.append(char)

    def _body_then(
        self, body: str, body_position: TextPosition, closing: Token
    ) -> Token:
        self.mode = LexerMode.CONTENT
        self._pending.append(closing)
        return Token(TokenType.CHARACTERS, body, body_position)

    # -- modes ------------------------------------------------------------

    def _content_token(self) -> Token:
        stream = self.stream
        position = stream.position
        char = stream.peek()
        if char is None:
            return Token(TokenType.EOF, "", position)
        if char == "<":
            return self._markup_open(position)
        if char == "&":
            return self._reference(position)

        text = stream.read_run(_TEXT_RUN)
        if "]]>" in text:
            raise self._error(
                "']]>' is not allowed in character data",
                position.advance(text[:text.index("]]>")]),
            )
        if is_whitespace(text):
            return Token(TokenType.WHITESPACE, text, position)
        return Token(TokenType.CHARACTERS, text, position)

    def _markup_open(self, position: TextPosition) -> Token:
        stream = self.stream
        if stream.startswith("<!--"):
            stream.skip(4)
            self.mode = LexerMode.COMMENT
            return Token(TokenType.COMMENT_START, "<!--", position)
        if stream.startswith("<![CDATA["):
            stream.skip(9)
            self.mode = LexerMode.CDATA
            return Token(TokenType.CDATA_START, "<![CDATA[", position)
        if stream.startswith("<!DOCTYPE"):
            stream.skip(9)
            self.mode = LexerMode.DOCTYPE
            return Token(TokenType.DOCTYPE_START, "<!DOCTYPE", position)

        following = stream.peek(1)
        if following == "!":
            raise self._error("Unrecognized markup declaration", position)
        if following == "?":
            stream.skip(2)
            self.mode = LexerMode.PI_TARGET
            return Token(TokenType.PI_START, "<?", position)
        if following == "/":
            stream.skip(2)
            self.mode = LexerMode.TAG
            return Token(TokenType.CLOSING_TAG_START, "</", position)
        stream.skip(1)
        self.mode = LexerMode.TAG
        return Token(TokenType.OPENING_TAG_START, "<", position)

    def _reference(self, position: TextPosition) -> Token:
        stream = self.stream
        stream.next_char()
        if stream.peek() == "#":
            body = stream.read_run(_REFERENCE_BODY)
            if not CHAR_REFERENCE_PATTERN.fullmatch(body):
                raise self._error(f"Malformed character reference '&{body}'", position)
            self._expect_semicolon(position)
            return Token(TokenType.CHAR_REFERENCE, body, position)

        name = self._read_name("entity reference")
        self._expect_semicolon(position)
        return Token(TokenType.ENTITY_REFERENCE, name, position)

    def _expect_semicolon(self, position: TextPosition) -> None:
        char = self.stream.next_char()
        if char is None:
            raise self._eof("reference")
        if char != ";":
            raise self._error("Reference must be terminated by ';'", position)

    def _tag_token(self) -> Token:
        stream = self.stream
        position = stream.position
        char = stream.peek()
        if char is None:
            raise self._eof("tag")
        if char in WHITESPACE_CHARS:
            return Token(TokenType.WHITESPACE, stream.read_run(_WHITESPACE_RUN), position)
        if char == ">":
            stream.next_char()
            self.mode = LexerMode.CONTENT
            return Token(TokenType.TAG_END, ">", position)
        if char == "/":
            if stream.peek(1) != ">":
                raise self._error("Expected '>' after '/' in tag", position)
            stream.skip(2)
            self.mode = LexerMode.CONTENT
            return Token(TokenType.EMPTY_TAG_END, "/>", position)
        if char == "=":
            stream.next_char()
            return Token(TokenType.EQUALS, "=", position)
        if char in "\"'":
            return self._literal(position)
        return Token(TokenType.NAME, self._read_name("tag"), position)

    def _literal(self, position: TextPosition) -> Token:
        stream = self.stream
        quote = stream.next_char()
        value = stream.read_run(_DOUBLE_QUOTED if quote == '"' else _SINGLE_QUOTED)
        closing = stream.peek()
        if closing is None:
            raise self._eof("attribute value")
        if closing == "<":
            raise self._error("'<' is not allowed in attribute values")
        stream.next_char()
        return Token(TokenType.LITERAL, value, position)

    def _pi_target_token(self) -> Token:
        position = self.stream.position
        first = self.stream.peek()
        if first is None:
            raise self._eof("processing instruction")
        if not is_name_start_char(first):
            raise self._error("Processing instruction must start with a target name")
        name = self._read_name("processing instruction")
        self.mode = LexerMode.PI_DATA
        return Token(TokenType.NAME, name, position)

    def _pi_data_token(self) -> Token:
        stream = self.stream
        position = stream.position
        if stream.startswith("?>"):
            stream.skip(2)
            self.mode = LexerMode.CONTENT
            return Token(TokenType.PI_END, "?>", position)
        char = stream.peek()
        if char is None:
            raise self._eof("processing instruction")
        if char not in WHITESPACE_CHARS:
            raise self._error("Expected whitespace after processing instruction target")

        stream.read_run(_WHITESPACE_RUN)
        data_position = stream.position
        data, end = self._read_until("?>", _NOT_QUESTION, "processing instruction")
        closing = Token(TokenType.PI_END, "?>", end)
        if not data:
            self.mode = LexerMode.CONTENT
            return closing
        return self._body_then(data, data_position, closing)

    def _comment_token(self) -> Token:
        stream = self.stream
        position = stream.position
        parts = []
        while True:
            parts.append(stream.read_run(_NOT_DASH))
            if stream.peek() is None:
                raise self._eof("comment")
            if stream.peek(1) == "-":
                if stream.peek(2) != ">":
                    raise self._error("'--' is not allowed inside a comment")
                end = stream.position
                stream.skip(3)
                break
            parts.append(stream.next_char())
        closing = Token(TokenType.COMMENT_END, "-->", end)
        return self._body_then("".join(parts), position, closing)

    def _cdata_token(self) -> Token:
        position = self.stream.position
        body, end = self._read_until("]]>", _NOT_BRACKET, "CDATA section")
        return self._body_then(body, position, Token(TokenType.CDATA_END, "]]>", end))

    def _doctype_token(self) -> Token:
        stream = self.stream
        position = stream.position
        parts = []
        depth = 0
        quote: Optional[str] = None
        while True:
            end = stream.position
            char = stream.next_char()
            if char is None:
                raise self._eof("DOCTYPE declaration")
            if quote is not None:
                if char == quote:
                    quote = None
                parts.append(char)
                continue
            if depth and char == "<" and stream.startswith("!--"):
                stream.skip(3)
                body, _ = self._read_until("-->", _NOT_DASH, "comment")
                parts.append(f"<!--{body}-->")
                continue
            if depth and char == "<" and stream.peek() == "?":
                stream.next_char()
                body, _ = self._read_until("?>", _NOT_QUESTION, "processing instruction")
                parts.append(f"<?{body}?>")
                continue
            if char in "\"'":
                quote = char
            elif char == "[":
                depth += 1
            elif char == "]":
                depth -= 1
                if depth < 0:
                    raise self._error(
                        "Unbalanced ']' in DOCTYPE declaration",
                        end,
                        ErrorKind.DOCTYPE_MALFORMED,
                    )
            elif char == ">" and depth == 0:
                break
            parts.append(char)
        return self._body_then("".join(parts), position, Token(TokenType.TAG_END, ">", end))
