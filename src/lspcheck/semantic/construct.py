"""Frozen class and method models extracted from Python source."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from .types import TypeDescriptor


@dataclass(frozen=True)
class Parameter:
    """A declared method parameter.

    Attributes:
        name: Parameter name without ``*``/``**`` prefixes.
        annotation: Declared type, or None if unannotated.
        kind: One of "positional", "var_positional", "keyword_only",
            "var_keyword".
    """

    name: str
    annotation: TypeDescriptor | None = None
    kind: str = "positional"


@dataclass(frozen=True)
class MethodSignature:
    """A method as seen through a particular class.

    ``declaring_type`` is the class whose body contains the ``def``;
    ``owner`` is the class the method was looked up on. They differ when
    the method is inherited.

    Attributes:
        owner: FQN of the class the method was resolved through.
        name: Method name.
        parameters: Declared parameters, excluding the implicit receiver.
        return_type: Declared return type, or None if unannotated.
        declaring_type: FQN of the defining class.
        path: Source file path.
        start_line: 1-based line of the ``def`` keyword.
        end_line: 1-based last line (inclusive).
        docstring: Cleaned docstring text, or None.
        decorators: Decorator expressions as written (without ``@``).
        kind: "instance", "class" or "static".
    """

    owner: str
    name: str
    parameters: tuple[Parameter, ...]
    return_type: TypeDescriptor | None
    declaring_type: str
    path: str
    start_line: int
    end_line: int
    docstring: str | None = None
    decorators: tuple[str, ...] = ()
    kind: str = "instance"

    def bound_to(self, owner: str) -> MethodSignature:
        """Return a copy looked up through another class."""
        if owner == self.owner:
            return self
        return replace(self, owner=owner)


@dataclass(frozen=True)
class ClassConstruct:
    """A class declaration.

    Attributes:
        qualname: Fully qualified name ("pkg.mod.Outer.Inner").
        name: Short name ("Inner").
        module: Module FQN ("pkg.mod").
        path: Source file path.
        kind: "class" or "interface".
        bases: Base classes resolved to FQNs, in declaration order.
        start_line: 1-based line of the ``class`` keyword.
        end_line: 1-based last line (inclusive).
        methods: Methods declared directly in the class body, by name.
            A later ``def`` of the same name replaces an earlier one.
        has_parse_error: True if the file had parse errors.
    """

    qualname: str
    name: str
    module: str
    path: str
    kind: str
    bases: tuple[str, ...]
    start_line: int
    end_line: int
    methods: dict[str, MethodSignature] = field(default_factory=dict, compare=False)
    has_parse_error: bool = False

    @property
    def is_interface(self) -> bool:
        return self.kind == "interface"
