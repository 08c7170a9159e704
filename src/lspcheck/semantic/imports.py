"""Per-file import tables and name resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping


def module_name_for(path: Path) -> tuple[str, bool]:
    """Derive a module FQN from a file path.

    Walks up through directories containing ``__init__.py``, the same way
    the interpreter would see the module when its top package is on
    ``sys.path``.

    Returns:
        (module name, is_package) - is_package is True for ``__init__.py``.
    """
    path = path.resolve()
    is_package = path.name == "__init__.py"
    parts: list[str] = [] if is_package else [path.stem]

    directory = path.parent
    while (directory / "__init__.py").exists():
        parts.insert(0, directory.name)
        parent = directory.parent
        if parent == directory:
            break
        directory = parent

    return ".".join(parts), is_package


def resolve_relative(module: str, is_package: bool, target: str) -> str:
    """Resolve a relative import target ("..pkg.mod") against a module name."""
    dots = len(target) - len(target.lstrip("."))
    remainder = target[dots:]
    if dots == 0:
        return target

    package_parts = module.split(".") if is_package else module.split(".")[:-1]
    # One dot is the current package; each further dot goes up one level
    if dots > 1:
        package_parts = package_parts[: len(package_parts) - (dots - 1)]
    base = ".".join(package_parts)
    if base and remainder:
        return f"{base}.{remainder}"
    return base or remainder


@dataclass(frozen=True)
class ImportTable:
    """Short-name to FQN mapping for one source file.

    Built once per file and never mutated.

    Attributes:
        module: FQN of the module the file defines.
        aliases: Local name -> fully qualified name, from import statements.
        local_names: Names of classes defined at module level.
    """

    module: str
    aliases: Mapping[str, str] = field(default_factory=dict)
    local_names: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "aliases", MappingProxyType(dict(self.aliases)))

    def resolve(self, name: str) -> str:
        """Resolve a name as written in this file to a fully qualified name.

        Resolution order:
        1. Dotted name whose first segment is imported -> expanded.
        2. Other dotted name -> taken literally.
        3. Imported short name -> its FQN.
        4. Class defined in this module -> module-qualified.
        5. Anything else -> global (builtins) name.
        """
        name = name.strip().lstrip(".")
        head, sep, rest = name.partition(".")
        if sep:
            if head in self.aliases:
                return f"{self.aliases[head]}.{rest}"
            if head in self.local_names:
                return f"{self.module}.{name}"
            return name
        if name in self.aliases:
            return self.aliases[name]
        if name in self.local_names:
            return f"{self.module}.{name}"
        return name
