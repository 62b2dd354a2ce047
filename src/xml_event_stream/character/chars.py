"""XML 1.0 character classes.

Code point ranges for the ``Char``, ``NameStartChar`` and ``NameChar``
productions (fifth edition), with compiled patterns for scanning runs of
text in one call.
"""

import re
from typing import List, Tuple

# Char production
XML_VALID_RANGES: List[Tuple[int, int]] = [
    (0x0009, 0x0009),  # Tab
    (0x000A, 0x000A),  # Line Feed
    (0x000D, 0x000D),  # Carriage Return
    (0x0020, 0xD7FF),  # Basic Multilingual Plane excluding surrogates
    (0xE000, 0xFFFD),  # Private Use and extended characters
    (0x10000, 0x10FFFF),  # Supplementary planes
]

NAME_START_RANGES: List[Tuple[int, int]] = [
    (0x003A, 0x003A),  # ':'
    (0x0041, 0x005A),  # A-Z
    (0x005F, 0x005F),  # '_'
    (0x0061, 0x007A),  # a-z
    (0x00C0, 0x00D6),
    (0x00D8, 0x00F6),
    (0x00F8, 0x02FF),
    (0x0370, 0x037D),
    (0x037F, 0x1FFF),
    (0x200C, 0x200D),
    (0x2070, 0x218F),
    (0x2C00, 0x2FEF),
    (0x3001, 0xD7FF),
    (0xF900, 0xFDCF),
    (0xFDF0, 0xFFFD),
    (0x10000, 0xEFFFF),
]

NAME_EXTRA_RANGES: List[Tuple[int, int]] = [
    (0x002D, 0x002E),  # '-' '.'
    (0x0030, 0x0039),  # 0-9
    (0x00B7, 0x00B7),
    (0x0300, 0x036F),
    (0x203F, 0x2040),
]

WHITESPACE_CHARS = frozenset(" \t\n\r")

REPLACEMENT_CHARACTER = "\ufffd"


def _char_class(ranges: List[Tuple[int, int]]) -> str:
    parts = []
    for start, end in ranges:
        if start == end:
            parts.append(re.escape(chr(start)))
        else:
            parts.append(f"{re.escape(chr(start))}-{re.escape(chr(end))}")
    return "".join(parts)


_NAME_START_CLASS = _char_class(NAME_START_RANGES)
_NAME_CLASS = _NAME_START_CLASS + _char_class(NAME_EXTRA_RANGES)

NAME_PATTERN = re.compile(f"[{_NAME_START_CLASS}][{_NAME_CLASS}]*")
NAME_CHARS_PATTERN = re.compile(f"[{_NAME_CLASS}]+")
INVALID_CHAR_PATTERN = re.compile(f"[^{_char_class(XML_VALID_RANGES)}]")
_NCNAME_START_CLASS = _char_class([r for r in NAME_START_RANGES if r != (0x003A, 0x003A)])
NCNAME_PATTERN = re.compile(
    f"[{_NCNAME_START_CLASS}][{_NCNAME_START_CLASS}{_char_class(NAME_EXTRA_RANGES)}]*"
)


def is_xml_char(char: str) -> bool:
    """Check whether a single character matches the XML ``Char`` production."""
    code = ord(char)
    if 0x20 <= code <= 0xD7FF:
        return True
    for start, end in XML_VALID_RANGES:
        if start <= code <= end:
            return True
    return False


def is_valid_code_point(code: int) -> bool:
    """Check whether a numeric character reference value is allowed."""
    if code < 0 or code > 0x10FFFF:
        return False
    return is_xml_char(chr(code))


def is_name_start_char(char: str) -> bool:
    code = ord(char)
    return any(start <= code <= end for start, end in NAME_START_RANGES)


def is_name_char(char: str) -> bool:
    code = ord(char)
    if is_name_start_char(char):
        return True
    return any(start <= code <= end for start, end in NAME_EXTRA_RANGES)


def is_name(text: str) -> bool:
    """Check whether ``text`` matches the XML ``Name`` production."""
    return NAME_PATTERN.fullmatch(text) is not None


def is_ncname(text: str) -> bool:
    """Check whether ``text`` is a name without colons."""
    return NCNAME_PATTERN.fullmatch(text) is not None


def is_whitespace(text: str) -> bool:
    """Check whether ``text`` is non-empty and made of XML whitespace only."""
    return bool(text) and all(char in WHITESPACE_CHARS for char in text)
