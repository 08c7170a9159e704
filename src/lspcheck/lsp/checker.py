"""Runs the substitutability rules for a class against its contracts."""

from __future__ import annotations

import logging

from ..models import Violation
from ..semantic.construct import ClassConstruct
from ..semantic.registry import ClassRegistry
from .exception_flow import DEFAULT_MAX_CALL_DEPTH, ExceptionFlowAnalyzer
from .rules import (
    ParameterTypeContravarianceRule,
    ReturnTypeCovarianceRule,
    RuleChecker,
    ThrowsContractRule,
)
from .subtyping import TypeSubtypeChecker

logger = logging.getLogger(__name__)

# Construction is not part of an object's substitutable interface
CONSTRUCTOR_METHODS = frozenset({"__init__", "__new__"})


class LiskovChecker:
    """Checks a class against every interface it implements and its parent class."""

    def __init__(self, registry: ClassRegistry, rules: list[RuleChecker]):
        self.registry = registry
        self.rules = rules

    def check(self, class_name: str) -> list[Violation]:
        """Return all violations of ``class_name``.

        Contracts are visited interfaces first (MRO order), then the parent
        class; within a contract, methods in declaration order, and for each
        method the rules in their configured order.

        Raises:
            ClassNotFoundError: If the class is not indexed.
        """
        cls = self.registry.get_class(class_name)
        contracts = list(self.registry.interfaces(cls.qualname))
        parent = self.registry.parent(cls.qualname)
        if parent is not None:
            contracts.append(parent)

        violations: list[Violation] = []
        for contract in contracts:
            violations.extend(self._check_contract(cls, contract))
        return violations

    def _check_contract(self, cls: ClassConstruct, contract: ClassConstruct) -> list[Violation]:
        violations: list[Violation] = []
        for name, contract_method in contract.methods.items():
            if name in CONSTRUCTOR_METHODS:
                continue
            method = self.registry.find_method(cls.qualname, name)
            if method is None:
                continue
            if method.declaring_type == contract.qualname:
                # Inherited unchanged, not an override
                continue
            for rule in self.rules:
                violations.extend(rule.check(cls, method, contract, contract_method))
        logger.debug(
            "%s against %s: %d violation(s)", cls.qualname, contract.qualname, len(violations)
        )
        return violations


def create_checker(
    registry: ClassRegistry, max_call_depth: int = DEFAULT_MAX_CALL_DEPTH
) -> LiskovChecker:
    """Build a checker with the default rules: throws, return, parameters.

    Index every file into ``registry`` first; the type hierarchy is
    captured here.
    """
    types = TypeSubtypeChecker(registry.hierarchy)
    analyzer = ExceptionFlowAnalyzer(registry, max_call_depth=max_call_depth)
    return LiskovChecker(
        registry,
        [
            ThrowsContractRule(registry, analyzer),
            ReturnTypeCovarianceRule(registry, types),
            ParameterTypeContravarianceRule(registry, types),
        ],
    )
