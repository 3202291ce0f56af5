"""
Definition & macro table

Scopes map names to definitions created by (:define) and
(:define-template). Each Document owns one scope, registered in the
per-compilation DefinitionTable under the document path; (:let) creates
short-lived child scopes and (:import) merges another file's scope into
the importing one.
"""

import re
import threading
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Pattern

from .errors import RedefinitionError
from .nodes import Node, NodeKind, SourceLocation, nodes_walk


PLACEHOLDER_PATTERN = re.compile(r"\$\{(\d+)\}")


class DefinitionKind(Enum):
    VALUE = "value"
    TEMPLATE = "template"


@dataclass
class Definition:
    """
    A named value or macro template

    Attributes:
        name: Bound name (used as a directive name at the call site)
        kind: VALUE for (:define), TEMPLATE for (:define-template)
        value: Forms expanded at each use of a VALUE
        template: Template forms containing ${N} placeholders
        patterns: Per-argument validation regexes (None = unconstrained)
        arity: Number of arguments a TEMPLATE call must supply
        origin: Location of the defining directive
    """
    name: str
    kind: DefinitionKind
    value: List[Node] = field(default_factory=list)
    template: List[Node] = field(default_factory=list)
    patterns: List[Optional[Pattern]] = field(default_factory=list)
    arity: int = 0
    origin: Optional[SourceLocation] = None

    @classmethod
    def template_make(
        cls,
        name: str,
        template: List[Node],
        patterns: List[Optional[Pattern]],
        origin: Optional[SourceLocation] = None,
    ) -> "Definition":
        """Create a TEMPLATE definition, deriving its arity from the patterns and placeholders"""
        highest = max(placeholders_find(template), default=-1)
        return cls(
            name=name,
            kind=DefinitionKind.TEMPLATE,
            template=template,
            patterns=patterns,
            arity=max(len(patterns), highest + 1),
            origin=origin,
        )

    def same_as(self, other: "Definition") -> bool:
        """True if both bindings come from the same defining directive"""
        return self is other or (
            self.origin is not None
            and self.origin == other.origin
            and self.name == other.name
        )


def placeholders_find(forms: List[Node]) -> Iterator[int]:
    """Yield every ${N} index used anywhere in a template's forms"""
    for form in forms_walk(forms):
        if form.kind in (NodeKind.TEXT, NodeKind.LITERAL):
            for match in PLACEHOLDER_PATTERN.finditer(form.text):
                yield int(match.group(1))


def forms_walk(forms: List[Node]) -> Iterator[Node]:
    """Like nodes_walk, but also descends into directive args and bodies"""
    for form in nodes_walk(forms):
        yield form
        if form.kind == NodeKind.DIRECTIVE:
            yield from forms_walk(form.args)
            yield from forms_walk(form.body or [])


class Scope:
    """
    A lexical scope of definitions

    Lookup walks the parent chain. Binding a name that is already visible
    is a RedefinitionError unless it is the very same definition.
    """

    def __init__(self, key: str, parent: Optional["Scope"] = None) -> None:
        self.key = key
        self.parent = parent
        self.bindings: Dict[str, Definition] = {}

    def lookup(self, name: str) -> Optional[Definition]:
        scope: Optional[Scope] = self
        while scope is not None:
            if name in scope.bindings:
                return scope.bindings[name]
            scope = scope.parent
        return None

    def define(self, definition: Definition) -> None:
        """
        Bind a definition, rejecting names already visible from this scope

        Raises:
            RedefinitionError: Name already bound to a different definition
        """
        existing = self.lookup(definition.name)
        if existing is not None:
            if existing.same_as(definition):
                return
            where = f" (first defined at {existing.origin})" if existing.origin else ""
            raise RedefinitionError(
                f"'{definition.name}' is already defined{where}",
                location=definition.origin,
                directive=definition.name,
            )
        self.bindings[definition.name] = definition

    def bind(self, definition: Definition) -> None:
        """Bind in this scope only, shadowing outer scopes (used by let)"""
        self.bindings[definition.name] = definition

    def merge(self, other: "Scope", location: Optional[SourceLocation] = None) -> None:
        """
        Merge every binding of another scope into this one

        Raises:
            RedefinitionError: A merged name collides with a visible one
        """
        for name, definition in other.bindings.items():
            existing = self.lookup(name)
            if existing is not None and not existing.same_as(definition):
                raise RedefinitionError(
                    f"imported '{name}' from {other.key} collides with an existing definition",
                    location=location,
                    directive=name,
                )
            if existing is None:
                self.bindings[name] = definition

    def child(self, key: str) -> "Scope":
        return Scope(key, parent=self)


class DefinitionTable:
    """
    Owner of every document scope created during one compilation

    Documents refer to their scope through its key; creation is guarded by a
    lock so parallel readers can register scopes safely.
    """

    def __init__(self) -> None:
        self.scopes: Dict[str, Scope] = {}
        self._lock = threading.Lock()

    def scope_create(self, key: str) -> Scope:
        with self._lock:
            scope = Scope(key)
            self.scopes[key] = scope
            return scope
