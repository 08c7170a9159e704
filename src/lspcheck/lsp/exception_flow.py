"""Static exception-flow analysis over method bodies."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

import tree_sitter

from ..errors import CallDepthExceededError
from ..semantic.construct import MethodSignature
from ..semantic.imports import ImportTable
from ..semantic.python_indexer import find_function_node
from ..semantic.registry import ClassRegistry
from ..semantic.types import iter_named

logger = logging.getLogger(__name__)

DEFAULT_MAX_CALL_DEPTH = 64

# Keep diagnostics bounded on diamond-shaped call graphs
MAX_CHAINS_PER_EXCEPTION = 16

_NESTED_SCOPES = frozenset({"function_definition", "class_definition", "lambda"})
_RECEIVERS = frozenset({"self", "cls"})


@dataclass(frozen=True)
class CallStep:
    """One ``Type.method`` hop of a call chain."""

    type_name: str
    method_name: str

    def __str__(self) -> str:
        return f"{self.type_name}.{self.method_name}"


@dataclass(frozen=True)
class ThrownException:
    """An exception type that can escape a method, with the chains that reach it.

    Each chain starts at the analyzed method and ends at the method whose
    body contains the ``raise``.
    """

    type_name: str
    chains: tuple[tuple[CallStep, ...], ...] = ()


@dataclass(frozen=True)
class CallSite:
    """A call that may propagate exceptions.

    Attributes:
        kind: "self" (``self.m()``), "static" (``Type.m()``/``super().m()``),
            "new" (``Type(...).m()``) or "variable" (``v.m()``).
        method_name: Called method name.
        target: Class FQN for static and new calls, variable name for
            variable calls, None for self calls.
        skip: MRO entries to skip when resolving (1 for ``super()``).
    """

    kind: str
    method_name: str
    target: str | None = None
    skip: int = 0


@dataclass(frozen=True)
class MethodFacts:
    """What one scan of a method body found.

    Attributes:
        raises: Exception types raised directly or re-raised, resolved FQNs.
        calls: Call sites in source order.
        local_types: Variable name -> class FQNs it is assigned from
            ``v = Type(...)`` anywhere in the body.
    """

    raises: tuple[str, ...] = ()
    calls: tuple[CallSite, ...] = ()
    local_types: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "local_types", MappingProxyType(dict(self.local_types)))


class MethodBodyScanner:
    """Single-pass visitor collecting raises, re-raises and call sites.

    Nested ``def``, ``lambda`` and ``class`` bodies belong to other code
    objects and are skipped.
    """

    def __init__(
        self,
        registry: ClassRegistry,
        imports: ImportTable,
        source_bytes: bytes,
        variables: frozenset[str] = frozenset(),
        has_receiver: bool = True,
    ):
        self.registry = registry
        self.imports = imports
        self.source_bytes = source_bytes
        self.variables = set(variables)
        self.has_receiver = has_receiver
        self._raises: list[str] = []
        self._calls: list[CallSite] = []
        self._local_types: dict[str, list[str]] = {}
        # Innermost last: (alias or None, caught types)
        self._handlers: list[tuple[str | None, tuple[str, ...]]] = []

    def scan(self, function_node: tree_sitter.Node) -> MethodFacts:
        body = function_node.child_by_field_name("body")
        if body is not None:
            # Locals first so v.m() before the assignment still dispatches
            self._collect_locals(body)
            self._visit(body)
        return MethodFacts(
            raises=tuple(dict.fromkeys(self._raises)),
            calls=tuple(dict.fromkeys(self._calls)),
            local_types={k: tuple(dict.fromkeys(v)) for k, v in self._local_types.items()},
        )

    # --- traversal ---

    def _visit(self, root: tree_sitter.Node) -> None:
        # Explicit stack: deeply nested expressions must not exhaust recursion
        stack: list[tree_sitter.Node | None] = [root]
        while stack:
            node = stack.pop()
            if node is None:
                # End of an except handler's subtree
                self._handlers.pop()
                continue
            if node.type in _NESTED_SCOPES or node.type == "decorated_definition":
                continue
            if node.type in ("except_clause", "except_group_clause"):
                self._handlers.append(self._handler_entry(node))
                stack.append(None)
            elif node.type == "raise_statement":
                self._visit_raise(node)
            elif node.type == "call":
                self._visit_call(node)
            stack.extend(reversed(node.named_children))

    def _handler_entry(self, node: tree_sitter.Node) -> tuple[str | None, tuple[str, ...]]:
        value, alias = self._handler_parts(node)
        types = self._caught_types(value) if value is not None else ()
        alias_name = self._text(alias) if alias is not None and alias.type == "identifier" else None
        return alias_name, types

    def _handler_parts(
        self, node: tree_sitter.Node
    ) -> tuple[tree_sitter.Node | None, tree_sitter.Node | None]:
        """Return the (caught expression, alias) nodes of an except clause."""
        value = node.child_by_field_name("value")
        alias = node.child_by_field_name("alias")
        if value is None:
            seen_as = False
            for child in node.children:
                if child.type == "as":
                    seen_as = True
                elif not child.is_named or child.type in ("block", "comment"):
                    continue
                elif seen_as:
                    alias = child
                elif value is None:
                    value = child
        if value is not None and value.type == "as_pattern":
            # except T as e, where the grammar models "T as e" as one pattern
            return self._split_as_pattern(value)
        return value, alias

    def _split_as_pattern(
        self, node: tree_sitter.Node
    ) -> tuple[tree_sitter.Node | None, tree_sitter.Node | None]:
        inner = [c for c in node.named_children if c.type not in ("comment", "as_pattern_target")]
        target = node.child_by_field_name("alias")
        if target is not None and target.type != "identifier":
            target = next((c for c in target.named_children if c.type == "identifier"), None)
        return (inner[0] if inner else None), target

    def _caught_types(self, node: tree_sitter.Node) -> tuple[str, ...]:
        while node.type == "parenthesized_expression" and node.named_children:
            node = node.named_children[0]
        if node.type in ("tuple", "expression_list"):
            names: list[str] = []
            for child in node.named_children:
                names.extend(self._caught_types(child))
            return tuple(names)
        name = self._type_name(node)
        return (name,) if name else ()

    def _visit_raise(self, node: tree_sitter.Node) -> None:
        cause = node.child_by_field_name("cause")
        raised = next(
            (
                c
                for c in node.named_children
                if c.type != "comment" and (cause is None or c != cause)
            ),
            None,
        )

        if raised is None:
            # Bare raise re-raises the active exception
            if self._handlers:
                self._raises.extend(self._handlers[-1][1])
            return

        if raised.type == "identifier":
            alias = self._text(raised)
            for handler_alias, types in reversed(self._handlers):
                if handler_alias == alias:
                    self._raises.extend(types)
                    return
            if alias in self.variables:
                return

        target = raised.child_by_field_name("function") if raised.type == "call" else raised
        if target is None:
            return
        name = self._type_name(target)
        if name:
            self._raises.append(name)

    def _visit_call(self, node: tree_sitter.Node) -> None:
        function = node.child_by_field_name("function")
        if function is None or function.type != "attribute":
            return
        receiver = function.child_by_field_name("object")
        attribute = function.child_by_field_name("attribute")
        if receiver is None or attribute is None:
            return
        method_name = self._text(attribute)

        if receiver.type == "identifier":
            name = self._text(receiver)
            if name in _RECEIVERS and self.has_receiver:
                self._calls.append(CallSite("self", method_name))
                return
            if name in self.variables or name in self._local_types:
                self._calls.append(CallSite("variable", method_name, name))
                return

        if receiver.type == "call":
            inner = receiver.child_by_field_name("function")
            if inner is None:
                return
            if inner.type == "identifier" and self._text(inner) == "super":
                self._calls.append(CallSite("static", method_name, None, skip=1))
                return
            if inner.type in ("identifier", "attribute"):
                cls = self._known_class(inner)
                if cls:
                    self._calls.append(CallSite("new", method_name, cls))
            return

        if receiver.type in ("identifier", "attribute"):
            cls = self._known_class(receiver)
            if cls:
                self._calls.append(CallSite("static", method_name, cls))

    def _collect_locals(self, root: tree_sitter.Node) -> None:
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type in _NESTED_SCOPES or node.type == "decorated_definition":
                continue
            if node.type == "assignment":
                self._record_local(node)
            stack.extend(reversed(node.named_children))

    def _record_local(self, node: tree_sitter.Node) -> None:
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        if left is None or right is None or left.type != "identifier" or right.type != "call":
            return
        function = right.child_by_field_name("function")
        if function is not None and function.type in ("identifier", "attribute"):
            cls = self._known_class(function)
            if cls:
                self._local_types.setdefault(self._text(left), []).append(cls)

    # --- names ---

    def _type_name(self, node: tree_sitter.Node) -> str | None:
        """Resolve a raised or caught type expression to a name.

        Known project classes resolve to their FQN; other names are kept
        when the last segment is CapWords (``ValueError``, ``req.HTTPError``).
        """
        if node.type not in ("identifier", "attribute"):
            return None
        written = "".join(self._text(node).split())
        known = self._known_class(node)
        if known:
            return known
        last = written.rsplit(".", 1)[-1].lstrip("_")
        if not last or not last[0].isupper():
            return None
        return self.imports.resolve(written).lstrip(".")

    def _known_class(self, node: tree_sitter.Node) -> str | None:
        written = "".join(self._text(node).split())
        construct = self.registry.find_class(self.imports.resolve(written))
        return construct.qualname if construct else None

    def _text(self, node: tree_sitter.Node) -> str:
        return self.source_bytes[node.start_byte : node.end_byte].decode()


class ExceptionFlowAnalyzer:
    """Computes the exception types that can escape a method.

    Follows ``self.m()``, ``Type.m()``, ``super().m()``, ``Type(...).m()``
    and ``v.m()`` calls where ``v`` is typed by a parameter annotation or a
    local ``v = Type(...)`` assignment. Cycles are cut by a visit-in-progress
    guard keyed by (declaring class, method); a cut branch contributes
    nothing. Results that were not cut are memoized for the analyzer's
    lifetime.

    Missing or unparseable sources yield an empty result.
    """

    def __init__(self, registry: ClassRegistry, max_call_depth: int = DEFAULT_MAX_CALL_DEPTH):
        self.registry = registry
        self.max_call_depth = max_call_depth
        # Cache: (owner, declaring type, method) -> untruncated result
        self._results: dict[tuple[str, str, str], tuple[ThrownException, ...]] = {}
        # Cache: (path, line, method) -> body scan
        self._facts: dict[tuple[str, int, str], MethodFacts | None] = {}

    def actual_throws(self, method: MethodSignature) -> list[str]:
        """Exception type names that can escape ``method``, deduplicated."""
        return [thrown.type_name for thrown in self.actual_throws_with_chains(method)]

    def actual_throws_with_chains(self, method: MethodSignature) -> list[ThrownException]:
        """Like ``actual_throws`` but keeps the call chains leading to each raise.

        Raises:
            CallDepthExceededError: If a call chain is longer than
                ``max_call_depth``.
        """
        result, _ = self._analyze(method, frozenset(), ())
        return list(result)

    def _analyze(
        self,
        method: MethodSignature,
        active: frozenset[tuple[str, str]],
        trail: tuple[CallStep, ...],
    ) -> tuple[tuple[ThrownException, ...], bool]:
        """Return (result, truncated) for one method."""
        step = CallStep(method.owner, method.name)
        guard_key = (method.declaring_type, method.name)
        if guard_key in active:
            logger.debug("Call cycle at %s, branch cut", step)
            return (), True
        if len(trail) >= self.max_call_depth:
            raise CallDepthExceededError([str(s) for s in (*trail, step)], self.max_call_depth)

        memo_key = (method.owner, method.declaring_type, method.name)
        cached = self._results.get(memo_key)
        if cached is not None:
            return cached, False

        facts = self.scan(method)
        if facts is None:
            self._results[memo_key] = ()
            return (), False

        found: dict[str, list[tuple[CallStep, ...]]] = {}

        def add(name: str, chain: tuple[CallStep, ...]) -> None:
            chains = found.setdefault(name, [])
            if chain not in chains and len(chains) < MAX_CHAINS_PER_EXCEPTION:
                chains.append(chain)

        for name in facts.raises:
            add(name, (step,))

        truncated = False
        active = active | {guard_key}
        for callee in self._resolve_calls(method, facts):
            sub_result, sub_truncated = self._analyze(callee, active, (*trail, step))
            truncated = truncated or sub_truncated
            for thrown in sub_result:
                for chain in thrown.chains:
                    add(thrown.type_name, (step, *chain))

        result = tuple(ThrownException(name, tuple(chains)) for name, chains in found.items())
        if not truncated:
            self._results[memo_key] = result
        return result, truncated

    def scan(self, method: MethodSignature) -> MethodFacts | None:
        """Scan a method body; None when its source cannot be located."""
        key = (method.path, method.start_line, method.name)
        if key in self._facts:
            return self._facts[key]

        facts = None
        parsed = self.registry.parsed_module(method.path)
        if parsed is None:
            logger.debug("No source for %s.%s", method.declaring_type, method.name)
        else:
            node = find_function_node(parsed.tree.root_node, method.name, method.start_line)
            if node is None:
                logger.debug(
                    "Method %s.%s not found at %s:%d",
                    method.declaring_type,
                    method.name,
                    method.path,
                    method.start_line,
                )
            else:
                scanner = MethodBodyScanner(
                    self.registry,
                    parsed.imports,
                    parsed.source_bytes,
                    variables=frozenset(p.name for p in method.parameters),
                    has_receiver=method.kind != "static",
                )
                facts = scanner.scan(node)
        self._facts[key] = facts
        return facts

    def _parameter_types(self, method: MethodSignature) -> dict[str, list[str]]:
        """Project classes named in each parameter annotation, union members included."""
        types: dict[str, list[str]] = {}
        for param in method.parameters:
            for named in iter_named(param.annotation):
                construct = self.registry.find_class(named.name.split("[", 1)[0])
                if construct is not None:
                    types.setdefault(param.name, []).append(construct.qualname)
        return types

    def _resolve_calls(self, method: MethodSignature, facts: MethodFacts) -> list[MethodSignature]:
        variable_types = self._parameter_types(method)
        for name, classes in facts.local_types.items():
            variable_types.setdefault(name, []).extend(classes)

        callees: list[MethodSignature] = []
        for call in facts.calls:
            if call.kind == "self":
                found = [self.registry.find_method(method.owner, call.method_name)]
            elif call.kind == "static" and call.skip:
                parent = self.registry.find_method(
                    method.declaring_type, call.method_name, skip=call.skip
                )
                found = [parent.bound_to(method.owner) if parent else None]
            elif call.kind in ("static", "new") and call.target:
                found = [self.registry.find_method(call.target, call.method_name)]
            elif call.kind == "variable" and call.target:
                found = [
                    self.registry.find_method(cls, call.method_name)
                    for cls in dict.fromkeys(variable_types.get(call.target, ()))
                ]
            else:
                found = []
            for callee in found:
                if callee is not None and callee not in callees:
                    callees.append(callee)
        return callees
