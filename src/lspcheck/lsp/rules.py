"""Rule checkers comparing an overriding method with its contract method."""

from __future__ import annotations

from typing import Protocol

from ..models import Violation, ViolationReason
from ..semantic.construct import ClassConstruct, MethodSignature
from ..semantic.registry import ClassRegistry
from ..semantic.types import ANY, NamedType, canonical_key
from .declared import declared_throws
from .exception_flow import CallStep, ExceptionFlowAnalyzer
from .subtyping import TypeSubtypeChecker


class RuleChecker(Protocol):
    """One substitutability rule.

    Implementations are pure functions of their inputs; they share no
    state between calls apart from the registry's parse caches.
    """

    def check(
        self,
        cls: ClassConstruct,
        method: MethodSignature,
        contract: ClassConstruct,
        contract_method: MethodSignature,
    ) -> list[Violation]:
        """Return the violations of ``method`` against ``contract_method``.

        Args:
            cls: The class being checked.
            method: The method as resolved on ``cls``.
            contract: Interface or parent class ``cls`` must honor.
            contract_method: The method as declared on ``contract``.
        """
        ...


class ThrowsContractRule:
    """Overrides may only raise what the contract documents, or subclasses of it.

    Checks documented raises (docstring) and raises found in code,
    transitively through calls. An empty contract list allows nothing.
    """

    def __init__(self, registry: ClassRegistry, analyzer: ExceptionFlowAnalyzer):
        self.registry = registry
        self.analyzer = analyzer

    def check(
        self,
        cls: ClassConstruct,
        method: MethodSignature,
        contract: ClassConstruct,
        contract_method: MethodSignature,
    ) -> list[Violation]:
        allowed = [
            self.resolve_exception(name, contract)
            for name in declared_throws(contract_method)
        ]
        declaring = self.registry.find_class(method.declaring_type) or cls

        violations = []
        for name in declared_throws(method):
            if self._is_allowed(self.resolve_exception(name, declaring), allowed):
                continue
            violations.append(
                Violation(
                    class_name=cls.qualname,
                    method_name=method.name,
                    contract_name=contract.qualname,
                    reason=ViolationReason.DECLARED_NOT_ALLOWED,
                    message=f"raises {name} declared in docstring but not allowed by the contract",
                )
            )

        for thrown in self.analyzer.actual_throws_with_chains(method):
            if self._is_allowed(self._canonical(thrown.type_name), allowed):
                continue
            violations.append(
                Violation(
                    class_name=cls.qualname,
                    method_name=method.name,
                    contract_name=contract.qualname,
                    reason=ViolationReason.THROWN_NOT_ALLOWED,
                    message=(
                        f"raises {thrown.type_name} in code (detected via AST) "
                        "but not allowed by the contract"
                    ),
                    details=format_call_chains(thrown.chains),
                )
            )
        return violations

    def resolve_exception(self, name: str, construct: ClassConstruct) -> str:
        """Resolve an exception name written in ``construct``'s module.

        Order: dotted names expand through the module's imports or stay
        literal; imported short names map to their FQN; a class of that
        name in the same module is module-qualified; anything else is a
        builtin name.
        """
        name = name.lstrip(".")
        imports = self.registry.imports_for(construct.path)
        resolved = imports.resolve(name)
        if resolved == name and "." not in name and construct.module:
            local = self.registry.find_class(f"{construct.module}.{name}")
            if local is not None:
                return local.qualname
        return self._canonical(resolved)

    def _canonical(self, name: str) -> str:
        construct = self.registry.find_class(name)
        return construct.qualname if construct else name.lstrip(".")

    def _is_allowed(self, thrown: str, allowed: list[str]) -> bool:
        hierarchy = self.registry.hierarchy
        for contract_type in allowed:
            if canonical_key(thrown) == canonical_key(contract_type):
                return True
            if hierarchy.is_subtype(thrown, contract_type):
                return True
        return False


class ReturnTypeCovarianceRule:
    """An override may narrow its return type but never widen or drop it."""

    def __init__(self, registry: ClassRegistry, checker: TypeSubtypeChecker):
        self.registry = registry
        self.checker = checker

    def check(
        self,
        cls: ClassConstruct,
        method: MethodSignature,
        contract: ClassConstruct,
        contract_method: MethodSignature,
    ) -> list[Violation]:
        expected = contract_method.return_type
        actual = method.return_type
        if expected is None:
            return []
        if actual is not None and self.checker.is_subtype_of(
            actual,
            expected,
            self.registry.scope_for(cls.qualname),
            self.registry.scope_for(contract.qualname),
        ):
            return []
        return [
            Violation(
                class_name=cls.qualname,
                method_name=method.name,
                contract_name=contract.qualname,
                reason=ViolationReason.RETURN_NOT_COVARIANT,
                message=(
                    f"return type {self.checker.type_to_string(actual)} is not covariant "
                    f"with contract return type {self.checker.type_to_string(expected)}"
                ),
            )
        ]


class ParameterTypeContravarianceRule:
    """An override may widen parameter types but never narrow or add them.

    Positional parameters are paired by position, receiver excluded;
    keyword-only parameters are paired by name. Contract parameters the
    override does not declare, and ``*args``/``**kwargs``, are skipped.
    """

    def __init__(self, registry: ClassRegistry, checker: TypeSubtypeChecker):
        self.registry = registry
        self.checker = checker

    def check(
        self,
        cls: ClassConstruct,
        method: MethodSignature,
        contract: ClassConstruct,
        contract_method: MethodSignature,
    ) -> list[Violation]:
        violations = []
        for param, contract_param in self._pairs(method, contract_method):
            if self._is_contravariant(param.annotation, contract_param.annotation, cls, contract):
                continue
            violations.append(
                Violation(
                    class_name=cls.qualname,
                    method_name=method.name,
                    contract_name=contract.qualname,
                    reason=ViolationReason.PARAMETER_NOT_CONTRAVARIANT,
                    message=(
                        f"parameter {param.name} type "
                        f"{self.checker.type_to_string(param.annotation)} is not contravariant "
                        "with contract parameter type "
                        f"{self.checker.type_to_string(contract_param.annotation)}"
                    ),
                )
            )
        return violations

    def _pairs(self, method: MethodSignature, contract_method: MethodSignature):
        positional = [p for p in method.parameters if p.kind == "positional"]
        by_name = {
            p.name: p for p in method.parameters if p.kind in ("positional", "keyword_only")
        }
        index = 0
        for contract_param in contract_method.parameters:
            if contract_param.kind == "positional":
                if index < len(positional):
                    yield positional[index], contract_param
                index += 1
            elif contract_param.kind == "keyword_only" and contract_param.name in by_name:
                yield by_name[contract_param.name], contract_param

    def _is_contravariant(self, actual, expected, cls: ClassConstruct, contract: ClassConstruct) -> bool:
        if expected is None:
            # Explicit Any is the same as no annotation
            return actual is None or (isinstance(actual, NamedType) and actual.key == ANY)
        if actual is None:
            return True
        # Reversed roles: the contract type must fit the override's type
        return self.checker.is_subtype_of(
            expected,
            actual,
            self.registry.scope_for(contract.qualname),
            self.registry.scope_for(cls.qualname),
        )


def format_call_chains(chains: tuple[tuple[CallStep, ...], ...]) -> str | None:
    """Render call chains as ``Call chain: A.a → B.b`` lines, numbered when several."""
    if not chains:
        return None
    lines = []
    for i, chain in enumerate(chains, start=1):
        steps = " → ".join(str(step) for step in chain)
        prefix = f"Call chain {i}: " if len(chains) > 1 else "Call chain: "
        lines.append(prefix + steps)
    return "\n".join(lines)
