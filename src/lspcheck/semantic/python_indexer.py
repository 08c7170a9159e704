"""Python class and method extraction using Tree-sitter."""

from __future__ import annotations

import inspect
import re
from dataclasses import dataclass
from pathlib import Path

import tree_sitter
import tree_sitter_python as tspython

from .construct import ClassConstruct, MethodSignature, Parameter
from .imports import ImportTable, resolve_relative
from .types import (
    NamedType,
    TypeDescriptor,
    canonical_key,
    make_intersection,
    make_union,
)

# Bases (resolved) that turn a class into an interface contract
INTERFACE_MARKERS = frozenset(
    {
        "abc.ABC",
        "typing.Protocol",
        "typing_extensions.Protocol",
    }
)
INTERFACE_METACLASSES = frozenset({"abc.ABCMeta"})

_STRING_PREFIX = re.compile(r"^[rRuUbBfF]*")
_DEFINITIONS = frozenset({"function_definition", "class_definition", "decorated_definition"})


@dataclass(frozen=True)
class ParsedModule:
    """A parsed source file with its resolved import table.

    Attributes:
        path: File path as given to the indexer.
        module: Module FQN.
        is_package: True for ``__init__.py``.
        tree: Tree-sitter syntax tree.
        source_bytes: Encoded source the tree was built from.
        imports: Import table for the file.
        classes: Every class declared in the file, nested ones included.
        has_errors: True if the tree contains ERROR or MISSING nodes.
    """

    path: str
    module: str
    is_package: bool
    tree: tree_sitter.Tree
    source_bytes: bytes
    imports: ImportTable
    classes: tuple[ClassConstruct, ...]
    has_errors: bool = False


class PythonIndexer:
    """Extracts classes, methods and annotations from Python source code."""

    def __init__(self) -> None:
        self._language = tree_sitter.Language(tspython.language())
        self._parser = tree_sitter.Parser(self._language)

    def index_module(
        self, source: str, path: str, module: str, is_package: bool = False
    ) -> ParsedModule:
        """Parse a file and extract its import table and classes."""
        source_bytes = source.encode()
        tree = self._parser.parse(source_bytes)
        # Covers both ERROR and MISSING nodes
        has_errors = tree.root_node.has_error

        aliases = self.extract_imports(tree.root_node, source_bytes, module, is_package)
        local_names = frozenset(
            name
            for name in (
                self._get_name(node) for node in self._iter_class_nodes(tree.root_node)
            )
            if name
        )
        imports = ImportTable(module=module, aliases=aliases, local_names=local_names)

        classes: list[ClassConstruct] = []
        for node in self._iter_class_nodes(tree.root_node):
            classes.extend(
                self._extract_class(node, source_bytes, path, imports, None, has_errors)
            )

        return ParsedModule(
            path=path,
            module=module,
            is_package=is_package,
            tree=tree,
            source_bytes=source_bytes,
            imports=imports,
            classes=tuple(classes),
            has_errors=has_errors,
        )

    def parse_expression(self, text: str) -> tuple[tree_sitter.Node | None, bytes]:
        """Parse a standalone expression (e.g. a string forward reference)."""
        source_bytes = text.encode()
        tree = self._parser.parse(source_bytes)
        for stmt in tree.root_node.named_children:
            if stmt.type == "expression_statement" and stmt.named_children:
                return stmt.named_children[0], source_bytes
        return None, source_bytes

    # --- imports ---

    def extract_imports(
        self,
        root: tree_sitter.Node,
        source_bytes: bytes,
        module: str,
        is_package: bool,
    ) -> dict[str, str]:
        """Extract import mappings from module-level statements.

        Returns dict mapping the local name to the fully qualified name:
        ``{"User": "app.models.User", "m": "app.models", "os": "os"}``.
        Star imports are skipped. Imports nested in ``if``/``try`` blocks
        count; imports inside functions and classes do not.
        """
        import_map: dict[str, str] = {}
        for node in self._iter_import_nodes(root):
            if node.type == "import_statement":
                for name_node in node.children_by_field_name("name"):
                    if name_node.type == "aliased_import":
                        target = self._node_text(
                            name_node.child_by_field_name("name"), source_bytes
                        )
                        alias = self._node_text(
                            name_node.child_by_field_name("alias"), source_bytes
                        )
                        import_map[alias] = target
                    else:
                        # "import a.b" binds "a"
                        head = self._node_text(name_node, source_bytes).split(".")[0]
                        import_map[head] = head

            elif node.type == "import_from_statement":
                module_node = node.child_by_field_name("module_name")
                if module_node is None:
                    continue
                source_module = resolve_relative(
                    module,
                    is_package,
                    self._node_text(module_node, source_bytes).replace(" ", ""),
                )
                for name_node in node.children_by_field_name("name"):
                    if name_node.type == "aliased_import":
                        original = self._node_text(
                            name_node.child_by_field_name("name"), source_bytes
                        )
                        local = self._node_text(
                            name_node.child_by_field_name("alias"), source_bytes
                        )
                    else:
                        original = local = self._node_text(name_node, source_bytes)
                    if source_module:
                        import_map[local] = f"{source_module}.{original}"
                    else:
                        import_map[local] = original

        return import_map

    def _iter_import_nodes(self, root: tree_sitter.Node):
        stack = list(reversed(root.named_children))
        while stack:
            child = stack.pop()
            if child.type in ("import_statement", "import_from_statement"):
                yield child
            elif child.type not in _DEFINITIONS:
                stack.extend(reversed(child.named_children))

    # --- classes ---

    def _iter_class_nodes(self, container: tree_sitter.Node):
        """Yield class_definition nodes directly inside a module or class body."""
        for child in container.children:
            if child.type == "class_definition":
                yield child
            elif child.type == "decorated_definition":
                definition = child.child_by_field_name("definition")
                if definition is not None and definition.type == "class_definition":
                    yield definition

    def _extract_class(
        self,
        class_node: tree_sitter.Node,
        source_bytes: bytes,
        path: str,
        imports: ImportTable,
        parent_qualname: str | None,
        has_errors: bool,
    ) -> list[ClassConstruct]:
        """Extract a class and its nested classes."""
        name = self._get_name(class_node)
        body = class_node.child_by_field_name("body")
        if not name or body is None:
            return []

        local_qualname = f"{parent_qualname}.{name}" if parent_qualname else name
        qualname = f"{imports.module}.{local_qualname}"

        bases, metaclass = self._extract_bases(class_node, source_bytes, imports)
        is_interface = bool(INTERFACE_MARKERS.intersection(bases)) or (
            metaclass in INTERFACE_METACLASSES
        )

        methods: dict[str, MethodSignature] = {}
        for member in body.children:
            func = member
            decorated = None
            if member.type == "decorated_definition":
                decorated = member
                func = member.child_by_field_name("definition")
            if func is None or func.type != "function_definition":
                continue
            method = self._parse_method(func, decorated, source_bytes, path, qualname, imports)
            if method:
                methods[method.name] = method

        construct = ClassConstruct(
            qualname=qualname,
            name=name,
            module=imports.module,
            path=path,
            kind="interface" if is_interface else "class",
            bases=tuple(b for b in bases if b not in INTERFACE_MARKERS),
            start_line=class_node.start_point[0] + 1,
            end_line=class_node.end_point[0] + 1,
            methods=methods,
            has_parse_error=has_errors,
        )

        result = [construct]
        for nested in self._iter_class_nodes(body):
            result.extend(
                self._extract_class(
                    nested, source_bytes, path, imports, local_qualname, has_errors
                )
            )
        return result

    def _extract_bases(
        self,
        class_node: tree_sitter.Node,
        source_bytes: bytes,
        imports: ImportTable,
    ) -> tuple[list[str], str | None]:
        """Return (resolved base names, resolved metaclass or None)."""
        superclasses = class_node.child_by_field_name("superclasses")
        if superclasses is None:
            return [], None

        bases: list[str] = []
        metaclass = None
        for arg in superclasses.named_children:
            if arg.type == "keyword_argument":
                key = self._node_text(arg.child_by_field_name("name"), source_bytes)
                if key == "metaclass":
                    value = arg.child_by_field_name("value")
                    if value is not None:
                        metaclass = imports.resolve(self._dotted_text(value, source_bytes))
                continue

            # Generic[T], Protocol[T], Base[int] -> the unsubscripted base
            if arg.type == "subscript":
                arg = arg.child_by_field_name("value")
            if arg is None or arg.type not in ("identifier", "attribute"):
                continue
            bases.append(imports.resolve(self._dotted_text(arg, source_bytes)))
        return bases, metaclass

    # --- methods ---

    def _parse_method(
        self,
        node: tree_sitter.Node,
        decorated_node: tree_sitter.Node | None,
        source_bytes: bytes,
        path: str,
        class_qualname: str,
        imports: ImportTable,
    ) -> MethodSignature | None:
        """Parse a method definition into a signature."""
        name = self._get_name(node)
        if not name:
            return None

        decorators: list[str] = []
        if decorated_node is not None:
            for child in decorated_node.children:
                if child.type == "decorator":
                    decorators.append(self._node_text(child, source_bytes).lstrip("@").strip())

        short_decorators = {d.rsplit(".", 1)[-1] for d in decorators}
        if "staticmethod" in short_decorators:
            kind = "static"
        elif "classmethod" in short_decorators:
            kind = "class"
        else:
            kind = "instance"

        params_node = node.child_by_field_name("parameters")
        parameters = (
            self._parse_parameters(params_node, source_bytes, imports) if params_node else []
        )
        if kind != "static" and parameters and parameters[0].kind == "positional":
            parameters = parameters[1:]

        return_node = node.child_by_field_name("return_type")
        return_type = (
            self.annotation_to_type(return_node, source_bytes, imports)
            if return_node is not None
            else None
        )

        body = node.child_by_field_name("body")
        return MethodSignature(
            owner=class_qualname,
            name=name,
            parameters=tuple(parameters),
            return_type=return_type,
            declaring_type=class_qualname,
            path=path,
            start_line=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            docstring=self._docstring(body, source_bytes) if body is not None else None,
            decorators=tuple(decorators),
            kind=kind,
        )

    def _parse_parameters(
        self,
        params_node: tree_sitter.Node,
        source_bytes: bytes,
        imports: ImportTable,
    ) -> list[Parameter]:
        parameters: list[Parameter] = []
        keyword_only = False

        for child in params_node.named_children:
            kind = "keyword_only" if keyword_only else "positional"
            name_node = None
            type_node = child.child_by_field_name("type")

            if child.type == "identifier":
                name_node = child
            elif child.type == "typed_parameter":
                inner = child.named_children[0] if child.named_children else None
                if inner is not None and inner.type in (
                    "list_splat_pattern",
                    "dictionary_splat_pattern",
                ):
                    kind = self._splat_kind(inner)
                    keyword_only = keyword_only or kind == "var_positional"
                    name_node = self._first_identifier(inner)
                else:
                    name_node = inner
            elif child.type in ("default_parameter", "typed_default_parameter"):
                name_node = child.child_by_field_name("name")
            elif child.type in ("list_splat_pattern", "dictionary_splat_pattern"):
                kind = self._splat_kind(child)
                keyword_only = keyword_only or kind == "var_positional"
                name_node = self._first_identifier(child)
            elif child.type == "keyword_separator":
                keyword_only = True
                continue
            else:
                continue

            if name_node is None:
                continue
            annotation = (
                self.annotation_to_type(type_node, source_bytes, imports)
                if type_node is not None
                else None
            )
            parameters.append(
                Parameter(
                    name=self._node_text(name_node, source_bytes),
                    annotation=annotation,
                    kind=kind,
                )
            )
        return parameters

    def _splat_kind(self, node: tree_sitter.Node) -> str:
        return "var_positional" if node.type == "list_splat_pattern" else "var_keyword"

    def _first_identifier(self, node: tree_sitter.Node) -> tree_sitter.Node | None:
        for child in node.named_children:
            if child.type == "identifier":
                return child
        return None

    def _docstring(self, body: tree_sitter.Node, source_bytes: bytes) -> str | None:
        """Return the cleaned docstring of a block, if its first statement is a string."""
        for stmt in body.named_children:
            if stmt.type == "comment":
                continue
            if stmt.type != "expression_statement" or len(stmt.named_children) != 1:
                return None
            expr = stmt.named_children[0]
            if expr.type == "string":
                return inspect.cleandoc(self._string_value(self._node_text(expr, source_bytes)))
            if expr.type == "concatenated_string":
                parts = [
                    self._string_value(self._node_text(part, source_bytes))
                    for part in expr.named_children
                    if part.type == "string"
                ]
                return inspect.cleandoc("".join(parts))
            return None
        return None

    def _string_value(self, literal: str) -> str:
        """Strip prefix and quotes from a string literal."""
        text = _STRING_PREFIX.sub("", literal, count=1)
        for quote in ('"""', "'''", '"', "'"):
            if text.startswith(quote) and text.endswith(quote) and len(text) >= 2 * len(quote):
                return text[len(quote) : -len(quote)]
        return text

    # --- annotations ---

    def annotation_to_type(
        self,
        node: tree_sitter.Node | None,
        source_bytes: bytes,
        imports: ImportTable,
    ) -> TypeDescriptor | None:
        """Convert an annotation node into a type descriptor.

        Names are resolved through ``imports``. Returns None when the
        annotation is absent or empty.
        """
        if node is None:
            return None
        node_type = node.type

        if node_type in ("type", "parenthesized_expression"):
            inner = [c for c in node.named_children if c.type != "comment"]
            if len(inner) == 1:
                return self.annotation_to_type(inner[0], source_bytes, imports)
            return self._fallback(node, source_bytes)

        if node_type == "none":
            return NamedType("None")

        if node_type in ("identifier", "attribute", "member_type", "dotted_name"):
            written = self._dotted_text(node, source_bytes)
            return NamedType(imports.resolve(written), label=written)

        if node_type == "string":
            text = self._string_value(self._node_text(node, source_bytes)).strip()
            if not text:
                return None
            expr, expr_bytes = self.parse_expression(text)
            if expr is None:
                return NamedType(imports.resolve(text), label=text)
            return self.annotation_to_type(expr, expr_bytes, imports)

        if node_type == "binary_operator":
            operator = node.child_by_field_name("operator")
            left = self.annotation_to_type(node.child_by_field_name("left"), source_bytes, imports)
            right = self.annotation_to_type(node.child_by_field_name("right"), source_bytes, imports)
            members = [m for m in (left, right) if m is not None]
            if operator is not None and operator.type == "|" and members:
                return make_union(members)
            if operator is not None and operator.type == "&" and members:
                return make_intersection(members)
            return self._fallback(node, source_bytes)

        if node_type == "union_type":
            members = [
                m
                for m in (
                    self.annotation_to_type(c, source_bytes, imports)
                    for c in node.named_children
                )
                if m is not None
            ]
            return make_union(members) if members else None

        if node_type == "subscript":
            base = node.child_by_field_name("value")
            args = node.children_by_field_name("subscript")
            return self._generic(base, list(args), node, source_bytes, imports)

        if node_type == "generic_type":
            named = [c for c in node.named_children if c.type != "comment"]
            base = named[0] if named else None
            args: list[tree_sitter.Node] = []
            for c in named[1:]:
                if c.type == "type_parameter":
                    args.extend(x for x in c.named_children if x.type != "comment")
            return self._generic(base, args, node, source_bytes, imports)

        return self._fallback(node, source_bytes)

    def _generic(
        self,
        base: tree_sitter.Node | None,
        args: list[tree_sitter.Node],
        node: tree_sitter.Node,
        source_bytes: bytes,
        imports: ImportTable,
    ) -> TypeDescriptor | None:
        """Handle ``Base[args]``: Optional, Union, Literal, Annotated and generics."""
        if base is None:
            return self._fallback(node, source_bytes)
        written = self._dotted_text(base, source_bytes)
        resolved = imports.resolve(written)
        special = self._typing_name(resolved)

        # A single tuple argument: Union[A, B] may parse as one tuple subscript
        if len(args) == 1 and args[0].type in ("tuple", "expression_list"):
            args = [c for c in args[0].named_children if c.type != "comment"]

        if special == "Optional" and args:
            inner = self.annotation_to_type(args[0], source_bytes, imports)
            if inner is None:
                return None
            return make_union([inner, NamedType("None")])

        if special == "Union":
            members = [
                m for m in (self.annotation_to_type(a, source_bytes, imports) for a in args) if m
            ]
            return make_union(members) if members else None

        if special in ("Annotated", "ClassVar", "Final", "Required", "NotRequired") and args:
            return self.annotation_to_type(args[0], source_bytes, imports)

        if special == "Literal":
            return make_union([self._literal(a, source_bytes) for a in args])

        arg_text = ", ".join(self._node_text(a, source_bytes) for a in args)
        return NamedType(
            f"{resolved}[{arg_text}]",
            key=canonical_key(resolved),
            label=f"{written}[{arg_text}]",
        )

    def _literal(self, node: tree_sitter.Node, source_bytes: bytes) -> TypeDescriptor:
        while node.type == "type" and len(node.named_children) == 1:
            node = node.named_children[0]
        text = self._node_text(node, source_bytes)
        if node.type == "true":
            return NamedType("Literal[True]", key="true")
        if node.type == "false":
            return NamedType("Literal[False]", key="false")
        if node.type == "none":
            return NamedType("None")
        return NamedType(f"Literal[{text}]", key=f"literal[{text.lower()}]")

    def _typing_name(self, resolved: str) -> str | None:
        for prefix in ("typing.", "typing_extensions."):
            if resolved.startswith(prefix):
                return resolved[len(prefix):]
        return None

    def _fallback(self, node: tree_sitter.Node, source_bytes: bytes) -> NamedType:
        text = self._node_text(node, source_bytes)
        return NamedType(text)

    # --- helpers ---

    def _get_name(self, node: tree_sitter.Node) -> str | None:
        """Get name from class/function definition."""
        name_node = node.child_by_field_name("name")
        if name_node:
            return name_node.text.decode() if name_node.text else None
        return None

    def _node_text(self, node: tree_sitter.Node | None, source_bytes: bytes) -> str:
        """Get text content of a node."""
        if node is None:
            return ""
        return source_bytes[node.start_byte : node.end_byte].decode()

    def _dotted_text(self, node: tree_sitter.Node, source_bytes: bytes) -> str:
        """Text of a dotted name with whitespace and comments removed."""
        return re.sub(r"\s+", "", self._node_text(node, source_bytes))


def find_function_node(
    root: tree_sitter.Node, name: str, line: int
) -> tree_sitter.Node | None:
    """Locate the function_definition named ``name`` starting on ``line`` (1-based)."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.start_point[0] + 1 > line or node.end_point[0] + 1 < line:
            continue
        if node.type == "function_definition" and node.start_point[0] + 1 == line:
            name_node = node.child_by_field_name("name")
            if name_node is not None and name_node.text and name_node.text.decode() == name:
                return node
        stack.extend(node.named_children)
    return None


def read_source(path: Path) -> str | None:
    """Read a source file, returning None when it is missing or unreadable."""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
