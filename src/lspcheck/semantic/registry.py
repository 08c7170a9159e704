"""Registry of indexed classes: the reflection view used by the analysis."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import ClassNotFoundError
from .construct import ClassConstruct, MethodSignature
from .imports import ImportTable, module_name_for
from .inheritance import MAX_INHERITANCE_DEPTH, TypeHierarchy, linearize
from .python_indexer import ParsedModule, PythonIndexer, read_source
from .types import canonical_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TypeScope:
    """Resolves ``Self`` for one side of a type comparison."""

    qualname: str


@dataclass
class ClassRegistry:
    """Indexes Python files and answers class/method lookups.

    Files are parsed once and cached for the lifetime of the registry;
    source files are assumed not to change during a run.
    """

    indexer: PythonIndexer = field(default_factory=PythonIndexer)

    # Cache: resolved path -> parsed module (None if unreadable)
    _modules: dict[str, ParsedModule | None] = field(default_factory=dict)
    # Cache: module FQN -> parsed module
    _modules_by_name: dict[str, ParsedModule] = field(default_factory=dict)
    # Cache: FQN -> class
    _classes: dict[str, ClassConstruct] = field(default_factory=dict)
    # Cache: lowercase key -> FQN
    _keys: dict[str, str] = field(default_factory=dict)
    # Cache: FQN -> MRO (FQNs)
    _mro_cache: dict[str, tuple[str, ...]] = field(default_factory=dict)
    _hierarchy: TypeHierarchy | None = None

    def add_file(self, path: str | Path) -> list[ClassConstruct]:
        """Index a file and register its classes.

        Returns:
            Classes declared in the file (empty if the file is unreadable).
        """
        parsed = self.parsed_module(path)
        return list(parsed.classes) if parsed else []

    def parsed_module(self, path: str | Path) -> ParsedModule | None:
        """Return the parsed module for a file, parsing it on first access."""
        resolved = str(Path(path).resolve())
        if resolved in self._modules:
            return self._modules[resolved]

        source = read_source(Path(resolved))
        if source is None:
            logger.debug("Cannot read %s", resolved)
            self._modules[resolved] = None
            return None

        module, is_package = module_name_for(Path(resolved))
        try:
            parsed = self.indexer.index_module(source, resolved, module, is_package)
        except RecursionError:
            logger.warning("Skipping %s: nesting too deep to index", resolved)
            self._modules[resolved] = None
            return None
        if parsed.has_errors:
            logger.debug("Parse errors in %s", resolved)
        self._modules[resolved] = parsed
        self._modules_by_name.setdefault(module, parsed)
        for construct in parsed.classes:
            self._register(construct)
        return parsed

    def _register(self, construct: ClassConstruct) -> None:
        if construct.qualname in self._classes:
            logger.debug("Duplicate class %s in %s ignored", construct.qualname, construct.path)
            return
        self._classes[construct.qualname] = construct
        self._keys[canonical_key(construct.qualname)] = construct.qualname
        self._mro_cache.clear()
        self._hierarchy = None

    def imports_for(self, path: str | Path) -> ImportTable:
        """Import table of a file; empty when the file cannot be parsed."""
        parsed = self.parsed_module(path)
        if parsed is None:
            return ImportTable(module="")
        return parsed.imports

    @property
    def hierarchy(self) -> TypeHierarchy:
        """Type hierarchy over builtins and every indexed class.

        Rebuilt lazily after new classes are registered, so base names
        that point at re-exports resolve to their defining class.
        """
        if self._hierarchy is None:
            hierarchy = TypeHierarchy.with_builtins()
            for construct in self._classes.values():
                hierarchy.add_type(
                    construct.qualname,
                    [self._canonical_base(base) for base in construct.bases],
                )
            self._hierarchy = hierarchy
        return self._hierarchy

    def _canonical_base(self, base: str) -> str:
        resolved = self.find_class(base)
        return resolved.qualname if resolved else base

    # --- class lookups ---

    def class_names(self) -> list[str]:
        return sorted(self._classes)

    def find_class(self, name: str) -> ClassConstruct | None:
        """Look up a class by FQN.

        Falls back to a case-insensitive match, then follows re-exports
        (``pkg.User`` where ``pkg/__init__.py`` imports ``User``).
        """
        name = name.lstrip(".")
        for _ in range(MAX_INHERITANCE_DEPTH):
            construct = self._classes.get(name)
            if construct is None:
                qualname = self._keys.get(canonical_key(name))
                construct = self._classes.get(qualname) if qualname else None
            if construct is not None:
                return construct
            reexported = self._follow_reexport(name)
            if reexported is None or reexported == name:
                return None
            name = reexported
        return None

    def _follow_reexport(self, name: str) -> str | None:
        parts = name.split(".")
        for i in range(len(parts) - 1, 0, -1):
            parsed = self._modules_by_name.get(".".join(parts[:i]))
            if parsed is None:
                continue
            target = parsed.imports.aliases.get(parts[i])
            if target is None:
                return None
            return ".".join([target, *parts[i + 1 :]])
        return None

    def get_class(self, name: str) -> ClassConstruct:
        """Look up a class by FQN.

        Raises:
            ClassNotFoundError: If the class was not indexed.
        """
        construct = self.find_class(name)
        if construct is None:
            raise ClassNotFoundError(name)
        return construct

    def mro(self, name: str) -> list[ClassConstruct]:
        """Method resolution order over indexed classes, starting with the class itself."""
        construct = self.get_class(name)
        if construct.qualname not in self._mro_cache:
            order = linearize(construct.qualname, self._known_bases)
            self._mro_cache[construct.qualname] = tuple(order)
        return [self._classes[q] for q in self._mro_cache[construct.qualname]]

    def _known_bases(self, qualname: str) -> tuple[str, ...]:
        construct = self._classes.get(qualname)
        if construct is None:
            return ()
        known = []
        for base in construct.bases:
            resolved = self.find_class(base)
            if resolved is not None and resolved.qualname not in known:
                known.append(resolved.qualname)
        return tuple(known)

    def interfaces(self, name: str) -> list[ClassConstruct]:
        """All interfaces the class implements, direct and inherited, in MRO order."""
        return [c for c in self.mro(name)[1:] if c.is_interface]

    def parent(self, name: str) -> ClassConstruct | None:
        """First directly-listed base that is an indexed, non-interface class."""
        for base in self._known_bases(self.get_class(name).qualname):
            construct = self._classes[base]
            if not construct.is_interface:
                return construct
        return None

    def find_method(
        self, class_name: str, method_name: str, skip: int = 0
    ) -> MethodSignature | None:
        """Find a method through the MRO.

        Args:
            class_name: Class to look the method up on.
            method_name: Method name.
            skip: Number of leading MRO entries to skip (1 for ``super()``).

        Returns:
            The signature bound to ``class_name``, or None if no class in
            the MRO defines it.
        """
        construct = self.find_class(class_name)
        if construct is None:
            return None
        for candidate in self.mro(construct.qualname)[skip:]:
            method = candidate.methods.get(method_name)
            if method is not None:
                return method.bound_to(construct.qualname)
        return None

    def scope_for(self, name: str) -> TypeScope:
        construct = self.find_class(name)
        if construct is None:
            return TypeScope(name)
        return TypeScope(construct.qualname)
