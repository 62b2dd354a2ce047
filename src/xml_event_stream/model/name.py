"""Qualified names and attributes."""

from dataclasses import dataclass
from typing import Optional

from xml_event_stream.character.chars import is_ncname


@dataclass(frozen=True)
class QName:
    """Qualified name with an optional prefix and resolved namespace URI.

    Attributes:
        local_name: Local part of the name
        prefix: Namespace prefix, None when unprefixed
        namespace: Namespace URI once resolved, None when in no namespace
    """

    local_name: str
    prefix: Optional[str] = None
    namespace: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate name parts."""
        if not self.local_name:
            raise ValueError("local_name cannot be empty")
        if ":" in self.local_name:
            raise ValueError(f"local_name cannot contain ':': {self.local_name!r}")
        if self.prefix is not None and (not self.prefix or ":" in self.prefix):
            raise ValueError(f"Invalid prefix: {self.prefix!r}")

    @classmethod
    def parse(cls, raw: str, namespace: Optional[str] = None) -> "QName":
        """Split a lexical ``prefix:local`` name.

        Args:
            raw: Qualified name as written in markup
            namespace: Optional namespace URI to attach

        Returns:
            QName with prefix and local part separated

        Raises:
            ValueError: The name is not a valid qualified name
        """
        prefix, colon, local_name = raw.partition(":")
        if not colon:
            prefix, local_name = "", raw
        if colon and not is_ncname(prefix):
            raise ValueError(f"Invalid qualified name: {raw!r}")
        if not is_ncname(local_name):
            raise ValueError(f"Invalid qualified name: {raw!r}")
        return cls(local_name, prefix or None, namespace)

    @property
    def qualified_name(self) -> str:
        if self.prefix:
            return f"{self.prefix}:{self.local_name}"
        return self.local_name

    @property
    def clark(self) -> str:
        """Name in ``{namespace}local`` notation."""
        if self.namespace:
            return f"{{{self.namespace}}}{self.local_name}"
        return self.local_name

    @property
    def expanded(self):
        """``(namespace, local_name)`` pair identifying the name after resolution."""
        return (self.namespace, self.local_name)

    def with_namespace(self, namespace: Optional[str]) -> "QName":
        return QName(self.local_name, self.prefix, namespace)

    def __str__(self) -> str:
        return self.qualified_name


def as_qname(name) -> QName:
    """Accept a QName or a lexical ``prefix:local`` string."""
    if isinstance(name, QName):
        return name
    if isinstance(name, str):
        return QName.parse(name)
    raise TypeError(f"Expected QName or str, not {type(name).__name__}")


@dataclass(frozen=True)
class Attribute:
    """Attribute name and normalized value."""

    name: QName
    value: str

    def __str__(self) -> str:
        return f'{self.name}="{self.value}"'
