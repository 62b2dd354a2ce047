"""Configuration objects for reader and writer sessions.

Both configurations are immutable values captured when a session is
constructed. Use ``override()`` to derive a modified copy and the preset
class methods for common setups.
"""

import difflib
import json
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, TypeVar

from xml_event_stream.character.chars import is_name, is_whitespace

DEFAULT_MAX_NAME_LENGTH = 65536
DEFAULT_MAX_ATTRIBUTES = 1024
DEFAULT_MAX_ENTITY_EXPANSION_DEPTH = 10
DEFAULT_MAX_ENTITY_EXPANSION_SIZE = 1_000_000


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigValidationError(ConfigError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.field_name = field_name
        self.suggestions = suggestions or []


_ConfigT = TypeVar("_ConfigT", bound="_ConfigMixin")


class _ConfigMixin:
    """Copy and (de)serialization helpers shared by the session configs."""

    def override(self: _ConfigT, **kwargs: Any) -> _ConfigT:
        """Create a new configuration with specific overrides.

        Args:
            **kwargs: Configuration fields to override

        Returns:
            New configuration instance with overrides applied

        Example:
            >>> config = ParserConfig()
            >>> strict = config.override(ignore_comments=False)
        """
        self._check_field_names(kwargs)
        return replace(self, **kwargs)  # type: ignore[type-var]

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary format."""
        result: Dict[str, Any] = {}
        for config_field in fields(self):  # type: ignore[arg-type]
            value = getattr(self, config_field.name)
            if isinstance(value, Mapping):
                value = dict(value)
            result[config_field.name] = value
        return result

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Any:
        """Create configuration from dictionary.

        Raises:
            ConfigValidationError: Unknown keys or invalid values
        """
        cls._check_field_names(data)
        return cls(**data)

    @classmethod
    def from_json(cls, json_str: str) -> Any:
        """Create configuration from JSON string."""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"Invalid configuration JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigValidationError("Configuration JSON must be an object")
        return cls.from_dict(data)

    @classmethod
    def _check_field_names(cls, data: Mapping[str, Any]) -> None:
        known = [config_field.name for config_field in fields(cls)]  # type: ignore[arg-type]
        for key in data:
            if key not in known:
                raise ConfigValidationError(
                    f"Unknown {cls.__name__} option: {key}",
                    field_name=key,
                    suggestions=difflib.get_close_matches(key, known, n=3),
                )


def _require_positive(name: str, value: Optional[int], allow_none: bool = False) -> None:
    if value is None and allow_none:
        return
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        qualifier = " or None" if allow_none else ""
        raise ConfigValidationError(f"{name} must be > 0{qualifier}", field_name=name)


@dataclass(frozen=True)
class ParserConfig(_ConfigMixin):
    """Options of an event reader session.

    Attributes:
        trim_whitespace: Suppress Whitespace events outside the root element
        whitespace_to_characters: Report whitespace inside the root as Characters
        cdata_to_characters: Merge CDATA sections into Characters events
        ignore_comments: Drop comments instead of reporting them
        coalesce_characters: Merge adjacent text runs into one event
        replace_unknown_entity_references: Replace invalid code points and
            malformed byte sequences with U+FFFD instead of failing
        extra_entities: Additional general entities, name to replacement text
        allow_multiple_root_elements: Accept document fragments
        max_name_length: Longest accepted name
        max_attributes: Most attributes accepted on one element
        max_entity_expansion_depth: Deepest accepted entity nesting
        max_entity_expansion_size: Most characters produced by entity expansion
        max_document_size: Largest accepted input (bytes, or characters for text)
    """

    trim_whitespace: bool = False
    whitespace_to_characters: bool = False
    cdata_to_characters: bool = False
    ignore_comments: bool = True
    coalesce_characters: bool = True
    replace_unknown_entity_references: bool = False
    extra_entities: Mapping[str, str] = field(default_factory=dict, hash=False)
    allow_multiple_root_elements: bool = False
    max_name_length: int = DEFAULT_MAX_NAME_LENGTH
    max_attributes: int = DEFAULT_MAX_ATTRIBUTES
    max_entity_expansion_depth: int = DEFAULT_MAX_ENTITY_EXPANSION_DEPTH
    max_entity_expansion_size: int = DEFAULT_MAX_ENTITY_EXPANSION_SIZE
    max_document_size: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate parser configuration."""
        _require_positive("max_name_length", self.max_name_length)
        _require_positive("max_attributes", self.max_attributes)
        _require_positive("max_entity_expansion_depth", self.max_entity_expansion_depth)
        _require_positive("max_entity_expansion_size", self.max_entity_expansion_size)
        _require_positive("max_document_size", self.max_document_size, allow_none=True)

        if not isinstance(self.extra_entities, Mapping):
            raise ConfigValidationError(
                "extra_entities must be a mapping of name to text",
                field_name="extra_entities",
            )
        for name, value in self.extra_entities.items():
            if not isinstance(name, str) or not is_name(name):
                raise ConfigValidationError(
                    f"extra_entities key {name!r} is not a valid XML name",
                    field_name="extra_entities",
                )
            if not isinstance(value, str):
                raise ConfigValidationError(
                    f"extra_entities value for {name!r} must be a string",
                    field_name="extra_entities",
                )
        object.__setattr__(
            self, "extra_entities", MappingProxyType(dict(self.extra_entities))
        )

    @classmethod
    def strict(cls) -> "ParserConfig":
        """Report every construct as written: comments, CDATA and whitespace."""
        return cls(
            ignore_comments=False,
            coalesce_characters=False,
        )

    @classmethod
    def fragment(cls) -> "ParserConfig":
        """Accept documents with several top-level elements."""
        return cls(allow_multiple_root_elements=True)

    @classmethod
    def hardened(cls) -> "ParserConfig":
        """Tight limits for untrusted input."""
        return cls(
            max_name_length=1024,
            max_attributes=256,
            max_entity_expansion_depth=4,
            max_entity_expansion_size=64 * 1024,
            max_document_size=16 * 1024 * 1024,
        )


@dataclass(frozen=True)
class EmitterConfig(_ConfigMixin):
    """Options of an event writer session.

    Attributes:
        perform_indent: Put markup on separate, indented lines
        indent_string: One level of indentation
        line_separator: Line break used when indenting
        pad_self_closing: Write ``<a />`` rather than ``<a/>``
        write_document_declaration: Emit an XML declaration before the first event
        normalize_empty_elements: Collapse a start tag directly followed by
            its end tag into a self-closing tag
        autogenerate_namespace_prefixes: Declare bindings for namespaced
            names whose prefix is unbound instead of failing
        passthrough_markup: Accept RawCharacters events, written verbatim
        autopad_comments: Surround comment text with single spaces
        cdata_to_characters: Write CDATA events as escaped text
        perform_escaping: Escape markup characters in text and attribute values
        allow_multiple_root_elements: Accept several top-level elements
    """

    perform_indent: bool = False
    indent_string: str = "  "
    line_separator: str = "\n"
    pad_self_closing: bool = True
    write_document_declaration: bool = True
    normalize_empty_elements: bool = True
    autogenerate_namespace_prefixes: bool = False
    passthrough_markup: bool = False
    autopad_comments: bool = True
    cdata_to_characters: bool = False
    perform_escaping: bool = True
    allow_multiple_root_elements: bool = False

    def __post_init__(self) -> None:
        """Validate emitter configuration."""
        if self.indent_string and not is_whitespace(self.indent_string):
            raise ConfigValidationError(
                "indent_string must contain only whitespace",
                field_name="indent_string",
                suggestions=['"  "', '"\\t"'],
            )
        if not self.line_separator or not is_whitespace(self.line_separator):
            raise ConfigValidationError(
                "line_separator must be non-empty whitespace",
                field_name="line_separator",
                suggestions=['"\\n"', '"\\r\\n"'],
            )

    @classmethod
    def pretty(cls) -> "EmitterConfig":
        """Indented output for human readers."""
        return cls(perform_indent=True)

    @classmethod
    def compact(cls) -> "EmitterConfig":
        """Smallest output: no declaration, no padding."""
        return cls(
            write_document_declaration=False,
            pad_self_closing=False,
            autopad_comments=False,
        )
