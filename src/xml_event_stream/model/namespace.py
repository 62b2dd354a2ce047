"""Layered prefix to namespace URI bindings.

One scope is pushed per open element, on both the reader and the writer
side. A nested declaration shadows an outer one until its scope is popped.
"""

from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional

from xml_event_stream.model.name import QName

XML_PREFIX = "xml"
XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"
XMLNS_PREFIX = "xmlns"
XMLNS_NAMESPACE = "http://www.w3.org/2000/xmlns/"

# Prefix key of the default namespace
DEFAULT_PREFIX = ""


class NamespaceError(ValueError):
    """Invalid namespace declaration."""


class UnboundPrefixError(NamespaceError):
    """A prefix was used without a binding in scope."""

    def __init__(self, prefix: str) -> None:
        super().__init__(f"Namespace prefix {prefix!r} is not declared")
        self.prefix = prefix


class NamespaceStack:
    """Stack of namespace scopes with push/pop accounting.

    Next to the bindings declared by each scope, every level keeps the
    merged view of all visible bindings. A scope that declares nothing
    shares its parent's view, so pushing costs the same at any depth.
    """

    def __init__(self) -> None:
        base = {XML_PREFIX: XML_NAMESPACE, XMLNS_PREFIX: XMLNS_NAMESPACE}
        self._scopes: List[Dict[str, str]] = [base]
        self._visible: List[Dict[str, str]] = [dict(base)]
        self._exposed: List[Dict[str, str]] = [{}]
        self.push_count = 0
        self.pop_count = 0

    @property
    def depth(self) -> int:
        """Number of scopes pushed above the base scope."""
        return len(self._scopes) - 1

    def push(self) -> None:
        self._scopes.append({})
        self._visible.append(self._visible[-1])
        self._exposed.append(self._exposed[-1])
        self.push_count += 1

    def pop(self) -> Dict[str, str]:
        """Remove the innermost scope and return its bindings."""
        if len(self._scopes) == 1:
            raise IndexError("Cannot pop the base namespace scope")
        self.pop_count += 1
        self._visible.pop()
        self._exposed.pop()
        return self._scopes.pop()

    def declare(self, prefix: str, uri: str) -> None:
        """Bind ``prefix`` to ``uri`` in the innermost scope.

        An empty prefix declares the default namespace; an empty URI for it
        removes the default namespace for this scope.

        Raises:
            NamespaceError: The declaration breaks a reserved-name rule
        """
        if prefix == XMLNS_PREFIX:
            raise NamespaceError("The 'xmlns' prefix cannot be declared")
        if prefix == XML_PREFIX:
            if uri != XML_NAMESPACE:
                raise NamespaceError("The 'xml' prefix cannot be rebound")
        elif uri in (XML_NAMESPACE, XMLNS_NAMESPACE):
            raise NamespaceError(f"Namespace {uri!r} is reserved")
        if prefix and not uri:
            raise NamespaceError(f"Prefix {prefix!r} cannot be bound to an empty namespace")
        self._scopes[-1][prefix] = uri

        # Copy on the first declaration of a scope
        if len(self._visible) > 1 and self._visible[-1] is self._visible[-2]:
            self._visible[-1] = dict(self._visible[-2])
            self._exposed[-1] = dict(self._exposed[-2])
        visible = self._visible[-1]
        exposed = self._exposed[-1]
        # Re-insert so the newest binding iterates last
        visible.pop(prefix, None)
        visible[prefix] = uri
        exposed.pop(prefix, None)
        if uri and prefix != XML_PREFIX:
            exposed[prefix] = uri

    def get(self, prefix: str) -> Optional[str]:
        """Look up the URI bound to ``prefix``, None when unbound."""
        return self._visible[-1].get(prefix) or None

    def current_scope(self) -> Dict[str, str]:
        """Bindings declared in the innermost scope."""
        return dict(self._scopes[-1])

    def in_scope(self) -> Mapping[str, str]:
        """Every visible binding, reserved prefixes and undeclared defaults excluded.

        Returns a read-only view that stays valid after the scope is popped.
        """
        return MappingProxyType(self._exposed[-1])

    def prefix_for(self, uri: str) -> Optional[str]:
        """Find a visible, non-default prefix currently bound to ``uri``.

        The most recently declared matching prefix wins.
        """
        if uri == XML_NAMESPACE:
            return XML_PREFIX
        for prefix, bound in reversed(list(self._exposed[-1].items())):
            if bound == uri and prefix:
                return prefix
        return None

    def resolve_element(self, name: QName) -> QName:
        """Attach the namespace of an element name.

        Unprefixed element names take the default namespace.

        Raises:
            UnboundPrefixError: The prefix has no binding in scope
        """
        if name.prefix is None:
            return name.with_namespace(self.get(DEFAULT_PREFIX))
        return name.with_namespace(self._require(name.prefix))

    def resolve_attribute(self, name: QName) -> QName:
        """Attach the namespace of an attribute name.

        Unprefixed attribute names are never in a namespace.

        Raises:
            UnboundPrefixError: The prefix has no binding in scope
        """
        if name.prefix is None:
            return name.with_namespace(None)
        return name.with_namespace(self._require(name.prefix))

    def _require(self, prefix: str) -> str:
        uri = self.get(prefix)
        if uri is None:
            raise UnboundPrefixError(prefix)
        return uri

    def __iter__(self) -> Iterator[Dict[str, str]]:
        return iter(self._scopes)
