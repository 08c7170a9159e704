"""Subtype checks between declared types."""

from __future__ import annotations

from ..semantic.inheritance import TypeHierarchy
from ..semantic.registry import TypeScope
from ..semantic.types import (
    ANY,
    FALSE,
    ITERABLE,
    NEVER,
    NONE,
    OBJECT,
    PSEUDO_TYPES,
    SELF,
    TRUE,
    IntersectionType,
    NamedType,
    TypeDescriptor,
    UnionType,
    canonical_key,
)

# Marker rendered for a missing annotation
NO_ANNOTATION = "<no-annotation>"

# Builtin containers that are always iterable
_ARRAY_TYPES = frozenset({"list", "tuple", "dict", "set", "frozenset"})


class TypeSubtypeChecker:
    """Decides subtype relations over named, union and intersection types.

    Named types are compared by their normalized keys; nominal relations
    come from the type hierarchy index. Unknown names fail closed.
    """

    def __init__(self, hierarchy: TypeHierarchy):
        self.hierarchy = hierarchy

    def is_subtype_of(
        self,
        child: TypeDescriptor,
        parent: TypeDescriptor,
        child_scope: TypeScope,
        parent_scope: TypeScope,
    ) -> bool:
        """Check if ``child`` can be used wherever ``parent`` is expected."""
        if (
            isinstance(child, NamedType)
            and child.nullable
            and isinstance(parent, UnionType)
        ):
            # X | None against a union: each half must fit some member
            child = UnionType((child.with_nullable(False), NamedType("None")))

        if isinstance(child, UnionType):
            return all(
                self.is_subtype_of(member, parent, child_scope, parent_scope)
                for member in child.members
            )

        if isinstance(parent, UnionType):
            return any(
                self.is_subtype_of(child, member, child_scope, parent_scope)
                for member in parent.members
            )

        if isinstance(child, IntersectionType):
            if isinstance(parent, IntersectionType):
                # Every parent component must be covered by some child component
                return all(
                    self.is_subtype_of(child, member, child_scope, parent_scope)
                    for member in parent.members
                )
            return any(
                self.is_subtype_of(member, parent, child_scope, parent_scope)
                for member in child.members
            )

        if isinstance(parent, IntersectionType):
            return all(
                self.is_subtype_of(child, member, child_scope, parent_scope)
                for member in parent.members
            )

        if not isinstance(child, NamedType) or not isinstance(parent, NamedType):
            return False

        return self._is_named_subtype_of(child, parent, child_scope, parent_scope)

    def type_to_string(self, descriptor: TypeDescriptor | None) -> str:
        """Render a descriptor the way it would be annotated."""
        if descriptor is None:
            return NO_ANNOTATION
        if isinstance(descriptor, NamedType):
            if descriptor.nullable and descriptor.key not in (ANY, NONE):
                return f"{descriptor.label} | None"
            return descriptor.label
        if isinstance(descriptor, UnionType):
            return " | ".join(self.type_to_string(m) for m in descriptor.members)
        return " & ".join(self.type_to_string(m) for m in descriptor.members)

    def _is_named_subtype_of(
        self,
        child: NamedType,
        parent: NamedType,
        child_scope: TypeScope,
        parent_scope: TypeScope,
    ) -> bool:
        child_name = self._normalize(child, child_scope)
        parent_name = self._normalize(parent, parent_scope)

        if (
            child.nullable
            and child_name not in (ANY, NONE)
            and not self._accepts_none(parent, parent_name)
        ):
            return False

        if child_name == parent_name:
            return True
        if child_name == NEVER:
            return True
        if parent_name == ANY:
            return True
        if child_name == NONE:
            return self._accepts_none(parent, parent_name)
        if parent_name == NONE:
            return False
        if parent_name == "bool" and child_name in (TRUE, FALSE):
            return True
        if parent_name == ITERABLE:
            return child_name in _ARRAY_TYPES or self.hierarchy.is_subtype(
                child_name, ITERABLE
            )
        if parent_name == OBJECT:
            return child_name not in PSEUDO_TYPES
        if child_name in PSEUDO_TYPES or parent_name in PSEUDO_TYPES:
            return False
        if child_name.startswith("literal[") or parent_name.startswith("literal["):
            return False

        return self.hierarchy.is_subtype(child_name, parent_name)

    def _normalize(self, named: NamedType, scope: TypeScope) -> str:
        if named.key == SELF:
            return canonical_key(scope.qualname)
        return named.key

    def _accepts_none(self, named: NamedType, normalized: str) -> bool:
        return named.nullable or normalized in (ANY, NONE, OBJECT)
