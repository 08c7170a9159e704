"""Type hierarchy index and MRO linearization."""

from __future__ import annotations

import builtins
import collections.abc
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from .types import canonical_key

logger = logging.getLogger(__name__)

# Safety limit to prevent runaway recursion
MAX_INHERITANCE_DEPTH = 32

# PEP 484 numeric tower: an int is acceptable where a float is expected
NUMERIC_PROMOTIONS = {
    "int": ("float",),
    "float": ("complex",),
    "bytearray": ("bytes",),
    "memoryview": ("bytes",),
}


def _abc_key(abc: type) -> str:
    return canonical_key(f"collections.abc.{abc.__name__}")


def _builtin_edges() -> dict[str, tuple[str, ...]]:
    """Direct supertypes of the interpreter's builtin classes and collection ABCs."""
    edges: dict[str, list[str]] = {}

    abcs = [
        getattr(collections.abc, name)
        for name in collections.abc.__all__
        if isinstance(getattr(collections.abc, name, None), type)
    ]
    for abc in abcs:
        supers = edges.setdefault(_abc_key(abc), [])
        for base in abc.__bases__:
            if base is object:
                supers.append("object")
            elif base.__module__ in ("collections.abc", "_collections_abc"):
                supers.append(_abc_key(base))

    for name, obj in vars(builtins).items():
        if not isinstance(obj, type) or name.startswith("_"):
            continue
        supers = edges.setdefault(canonical_key(name), [])
        for base in obj.__bases__:
            supers.append(canonical_key(base.__name__))
        # Virtual subclasses registered with the ABCs (list -> Sequence, ...)
        for abc in abcs:
            if abc is not obj and issubclass(obj, abc):
                supers.append(_abc_key(abc))

    for name, promoted in NUMERIC_PROMOTIONS.items():
        edges.setdefault(name, []).extend(promoted)

    return {key: tuple(dict.fromkeys(supers)) for key, supers in edges.items()}


@dataclass
class TypeHierarchy:
    """Precomputed name -> direct supertypes index.

    Keys are lowercase comparison keys (see ``canonical_key``). Seeded with
    the interpreter's builtin classes; project classes are added as they
    are indexed. Subtype queries are ancestor lookups over this graph.
    Unknown names are never subtypes of anything except themselves.
    """

    _supertypes: dict[str, tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def with_builtins(cls) -> TypeHierarchy:
        return cls(dict(_BUILTIN_EDGES))

    def add_type(self, name: str, supertypes: Iterable[str]) -> None:
        """Register a type and its direct supertypes (names, any casing)."""
        key = canonical_key(name)
        self._supertypes[key] = tuple(canonical_key(s) for s in supertypes)

    def ancestors(self, name: str) -> list[str]:
        """All transitive supertypes, nearest first (breadth-first)."""
        start = canonical_key(name)
        seen = {start}
        order: list[str] = []
        queue = list(self._supertypes.get(start, ()))
        while queue:
            current = queue.pop(0)
            if current in seen:
                continue
            seen.add(current)
            order.append(current)
            queue.extend(self._supertypes.get(current, ()))
        return order

    def is_subtype(self, child: str, parent: str) -> bool:
        """True if ``child`` is ``parent`` or a registered descendant of it.

        Fails closed: an unknown child or parent yields False unless the
        names are equal.
        """
        child_key = canonical_key(child)
        parent_key = canonical_key(parent)
        if child_key == parent_key:
            return True
        if child_key not in self._supertypes or parent_key not in self._supertypes:
            return False
        return parent_key in self.ancestors(child_key)


_BUILTIN_EDGES = _builtin_edges()


def linearize(
    name: str,
    bases_of: Callable[[str], tuple[str, ...]],
) -> list[str]:
    """Compute a C3 method resolution order for ``name``.

    ``bases_of`` returns the direct bases of a class, restricted to the
    classes the caller knows about. Falls back to a left-to-right
    depth-first order when the hierarchy has no consistent linearization.
    """
    try:
        return _c3(name, bases_of, set(), 0)
    except _InconsistentHierarchy:
        logger.debug("No consistent MRO for %s, using depth-first order", name)
        return _depth_first(name, bases_of)


class _InconsistentHierarchy(Exception):
    pass


def _c3(
    name: str,
    bases_of: Callable[[str], tuple[str, ...]],
    active: set[str],
    depth: int,
) -> list[str]:
    if name in active or depth >= MAX_INHERITANCE_DEPTH:
        raise _InconsistentHierarchy(name)
    active = active | {name}

    bases = list(bases_of(name))
    sequences = [_c3(base, bases_of, active, depth + 1) for base in bases]
    sequences.append(bases)

    result = [name]
    while True:
        sequences = [seq for seq in sequences if seq]
        if not sequences:
            return result
        for seq in sequences:
            head = seq[0]
            if not any(head in other[1:] for other in sequences):
                break
        else:
            raise _InconsistentHierarchy(name)
        result.append(head)
        sequences = [seq[1:] if seq[0] == head else seq for seq in sequences]


def _depth_first(name: str, bases_of: Callable[[str], tuple[str, ...]]) -> list[str]:
    order: list[str] = []

    def visit(current: str, depth: int) -> None:
        if current in order or depth >= MAX_INHERITANCE_DEPTH:
            return
        order.append(current)
        for base in bases_of(current):
            visit(base, depth + 1)

    visit(name, 0)
    return order
