"""Tokenization layer: the mode-driven XML lexer."""

from .tokenizer import (
    CHAR_REFERENCE_PATTERN,
    LexerMode,
    Token,
    TokenType,
    XMLLexer,
)

__all__ = [
    "CHAR_REFERENCE_PATTERN",
    "LexerMode",
    "Token",
    "TokenType",
    "XMLLexer",
]
