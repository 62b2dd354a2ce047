"""Encoding detection for byte input.

Detection runs in a fixed order: byte order mark, UTF-16/UTF-32 byte
patterns of ``<?`` without a BOM, the ``encoding`` pseudo-attribute of the
XML declaration, and finally the UTF-8 default. A declaration that
contradicts the byte-level evidence, or names a codec Python cannot decode
text with, is a lexical error.
"""

import codecs
import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import ClassVar, Dict, List, Optional, Tuple

from xml_event_stream.character.position import START_POSITION
from xml_event_stream.shared.errors import ErrorKind, XMLParseError

DEFAULT_ENCODING = "utf-8"

# Bytes inspected when looking for the XML declaration
DECLARATION_SNIFF_SIZE = 1024


class DetectionMethod(Enum):
    """Enumeration of encoding detection methods."""

    BOM = auto()              # Byte order mark
    BYTE_PATTERN = auto()     # UTF-16/32 layout of "<?" without a BOM
    XML_DECLARATION = auto()  # encoding="..." pseudo-attribute
    DEFAULT = auto()          # No evidence, UTF-8 assumed
    PRE_DECODED = auto()      # Input was already text


@dataclass(frozen=True)
class EncodingResult:
    """Outcome of encoding detection.

    Attributes:
        encoding: Python codec name used to decode the body
        method: Detection method that decided the encoding
        bom_length: Number of leading bytes to skip before decoding
        declared: Encoding named by the XML declaration, as written
    """

    encoding: str
    method: DetectionMethod
    bom_length: int = 0
    declared: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate detection result."""
        if self.bom_length < 0:
            raise ValueError("bom_length must be >= 0")

    @property
    def family(self) -> str:
        return encoding_family(self.encoding)


def encoding_family(encoding: str) -> str:
    """Group codec names whose byte layout is interchangeable for detection."""
    name = codecs.lookup(encoding).name
    if name.startswith("utf-16"):
        return "utf-16"
    if name.startswith("utf-32"):
        return "utf-32"
    if name == "utf-8-sig":
        return "utf-8"
    return name


class BOMDetector:
    """Byte Order Mark (BOM) detection."""

    # Longest patterns first so UTF-32 LE is not mistaken for UTF-16 LE
    BOM_PATTERNS: ClassVar[List[Tuple[bytes, str]]] = [
        (b"\xff\xfe\x00\x00", "utf-32-le"),
        (b"\x00\x00\xfe\xff", "utf-32-be"),
        (b"\xef\xbb\xbf", "utf-8"),
        (b"\xff\xfe", "utf-16-le"),
        (b"\xfe\xff", "utf-16-be"),
    ]

    def detect(self, data: bytes) -> Optional[EncodingResult]:
        """Detect encoding based on BOM.

        Args:
            data: Byte data to analyze

        Returns:
            EncodingResult if a BOM is present, None otherwise
        """
        for bom_bytes, encoding in self.BOM_PATTERNS:
            if data.startswith(bom_bytes):
                return EncodingResult(encoding, DetectionMethod.BOM, len(bom_bytes))
        return None


class BytePatternDetector:
    """Recognize ``<?`` encoded as UTF-16 or UTF-32 when no BOM is present."""

    PATTERNS: ClassVar[List[Tuple[bytes, str]]] = [
        (b"\x00\x00\x00<", "utf-32-be"),
        (b"<\x00\x00\x00", "utf-32-le"),
        (b"\x00<\x00?", "utf-16-be"),
        (b"<\x00?\x00", "utf-16-le"),
    ]

    def detect(self, data: bytes) -> Optional[EncodingResult]:
        for pattern, encoding in self.PATTERNS:
            if data.startswith(pattern):
                return EncodingResult(encoding, DetectionMethod.BYTE_PATTERN)
        return None


class XMLDeclarationParser:
    """Parser for the ``encoding`` pseudo-attribute of the XML declaration."""

    XML_DECLARATION_PATTERN = re.compile(
        r'^<\?xml[ \t\r\n][^>]*?encoding[ \t\r\n]*=[ \t\r\n]*(["\'])([^"\']*)\1'
    )

    def parse_declaration(self, head: str) -> Optional[str]:
        """Extract the declared encoding name from decoded document head.

        Args:
            head: First characters of the document

        Returns:
            Declared encoding name as written, or None
        """
        match = self.XML_DECLARATION_PATTERN.match(head)
        if not match:
            return None
        return match.group(2)

    def normalize_encoding(self, encoding: str) -> str:
        """Normalize encoding name to canonical form."""
        aliases: Dict[str, str] = {
            "utf8": "utf-8",
            "utf16": "utf-16",
            "utf32": "utf-32",
            "iso-8859-1": "latin-1",
            "windows-1252": "cp1252",
        }
        lowered = encoding.strip().lower()
        return aliases.get(lowered, lowered)

    def is_valid_encoding(self, encoding: str) -> bool:
        """Check if encoding names a text codec available to Python."""
        try:
            info = codecs.lookup(encoding)
        except LookupError:
            return False
        return getattr(info, "_is_text_encoding", True)


class EncodingDetector:
    """Multi-stage encoding detection for a complete byte document."""

    def __init__(self) -> None:
        self.bom_detector = BOMDetector()
        self.pattern_detector = BytePatternDetector()
        self.declaration_parser = XMLDeclarationParser()

    def detect(self, data: bytes) -> EncodingResult:
        """Decide how ``data`` must be decoded.

        Args:
            data: Complete document bytes

        Returns:
            EncodingResult describing the codec and the BOM to skip

        Raises:
            XMLParseError: LEX_ERROR for unknown or contradictory encodings
        """
        evidence = self.bom_detector.detect(data) or self.pattern_detector.detect(data)

        if evidence is not None:
            head = data[evidence.bom_length:evidence.bom_length + DECLARATION_SNIFF_SIZE]
            sniffed = head.decode(evidence.encoding, errors="replace")
        else:
            sniffed = data[:DECLARATION_SNIFF_SIZE].decode("latin-1")

        declared = self.declaration_parser.parse_declaration(sniffed)
        if declared is None:
            if evidence is not None:
                return evidence
            return EncodingResult(DEFAULT_ENCODING, DetectionMethod.DEFAULT)

        codec = self.declaration_parser.normalize_encoding(declared)
        if not self.declaration_parser.is_valid_encoding(codec):
            raise XMLParseError(
                ErrorKind.LEX_ERROR,
                f"Unsupported encoding declared: {declared!r}",
                START_POSITION,
            )

        if evidence is not None:
            if encoding_family(codec) != evidence.family:
                raise XMLParseError(
                    ErrorKind.LEX_ERROR,
                    f"Declared encoding {declared!r} contradicts detected "
                    f"{evidence.encoding}",
                    START_POSITION,
                )
            return EncodingResult(
                evidence.encoding, evidence.method, evidence.bom_length, declared
            )

        if encoding_family(codec) in ("utf-16", "utf-32"):
            raise XMLParseError(
                ErrorKind.LEX_ERROR,
                f"Declared encoding {declared!r} contradicts single-byte content",
                START_POSITION,
            )
        return EncodingResult(codec, DetectionMethod.XML_DECLARATION, 0, declared)
