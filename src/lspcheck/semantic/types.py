"""Type descriptors for declared parameter and return annotations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

# Names that only have meaning to the type system; they never take part
# in nominal (class hierarchy) subtyping.
ANY = "any"
NEVER = "never"
NONE = "none"
TRUE = "true"
FALSE = "false"
OBJECT = "object"
SELF = "self"
ITERABLE = "iterable"
CALLABLE = "callable"

PSEUDO_TYPES = frozenset({ANY, NEVER, NONE, TRUE, FALSE, SELF, CALLABLE})

_TYPING_MODULES = ("typing.", "typing_extensions.")

# typing aliases whose runtime origin is a builtin class
_TYPING_BUILTIN_ALIASES = {
    "list": "list",
    "dict": "dict",
    "set": "set",
    "frozenset": "frozenset",
    "tuple": "tuple",
    "type": "type",
    "text": "str",
    "any": ANY,
    "noreturn": NEVER,
    "never": NEVER,
    "self": SELF,
    "callable": CALLABLE,
    "iterable": ITERABLE,
    "literalstring": "str",
}

_UNQUALIFIED_ALIASES = {
    "any": ANY,
    "noreturn": NEVER,
    "never": NEVER,
    "self": SELF,
    "nonetype": NONE,
    "callable": CALLABLE,
    "collections.abc.iterable": ITERABLE,
    "collections.abc.callable": CALLABLE,
}


def canonical_key(name: str) -> str:
    """Return the lowercase comparison key for a resolved type name.

    Leading separators and the ``builtins.`` prefix are stripped; typing
    aliases fold onto the name they stand for (``typing.List`` -> ``list``,
    ``typing.Sequence`` -> ``collections.abc.sequence``).
    """
    key = name.strip().lstrip(".").lower()
    if key.startswith("builtins."):
        key = key[len("builtins."):]
    for prefix in _TYPING_MODULES:
        if key.startswith(prefix):
            tail = key[len(prefix):]
            if tail in _TYPING_BUILTIN_ALIASES:
                return _TYPING_BUILTIN_ALIASES[tail]
            key = "collections.abc." + tail
            break
    return _UNQUALIFIED_ALIASES.get(key, key)


@dataclass(frozen=True)
class NamedType:
    """A single named type, optionally accepting ``None``.

    Attributes:
        name: Resolved name with original casing ("pkg.models.User").
        nullable: True for ``Optional[X]`` / ``X | None``.
        key: Normalized lowercase comparison key. Derived from ``name``
            unless given explicitly (generic ``list[int]`` keys as ``list``).
        label: The name as written in source, used for display.
            Defaults to ``name``.
    """

    name: str
    nullable: bool = False
    key: str = field(default="", compare=False)
    label: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if not self.key:
            object.__setattr__(self, "key", canonical_key(self.name))
        if not self.label:
            object.__setattr__(self, "label", self.name)

    def with_nullable(self, nullable: bool = True) -> NamedType:
        return NamedType(self.name, nullable, self.key, self.label)


@dataclass(frozen=True)
class UnionType:
    """``A | B``; never holds fewer than two members."""

    members: tuple[TypeDescriptor, ...]


@dataclass(frozen=True)
class IntersectionType:
    """``A & B``; never holds fewer than two members."""

    members: tuple[TypeDescriptor, ...]


TypeDescriptor = Union[NamedType, UnionType, IntersectionType]


def make_union(members: list[TypeDescriptor]) -> TypeDescriptor:
    """Build a union, flattening nested unions and folding ``X | None``."""
    flat: list[TypeDescriptor] = []
    for member in members:
        parts = member.members if isinstance(member, UnionType) else (member,)
        for part in parts:
            if part not in flat:
                flat.append(part)

    none_members = [m for m in flat if isinstance(m, NamedType) and m.key == NONE]
    others = [m for m in flat if m not in none_members]

    if none_members and len(others) == 1 and isinstance(others[0], NamedType):
        single = others[0]
        if single.key in (ANY, NONE):
            return single
        return single.with_nullable()

    if len(flat) == 1:
        return flat[0]
    return UnionType(tuple(flat))


def make_intersection(members: list[TypeDescriptor]) -> TypeDescriptor:
    """Build an intersection, flattening nested intersections."""
    flat: list[TypeDescriptor] = []
    for member in members:
        parts = member.members if isinstance(member, IntersectionType) else (member,)
        for part in parts:
            if part not in flat:
                flat.append(part)
    if len(flat) == 1:
        return flat[0]
    return IntersectionType(tuple(flat))


def iter_named(descriptor: TypeDescriptor | None) -> list[NamedType]:
    """Return every NamedType reachable inside a descriptor."""
    if descriptor is None:
        return []
    if isinstance(descriptor, NamedType):
        return [descriptor]
    result: list[NamedType] = []
    for member in descriptor.members:
        result.extend(iter_named(member))
    return result
