"""Substitutability analysis: subtyping, exception flow and contract rules."""

from .checker import LiskovChecker, create_checker
from .declared import declared_throws
from .exception_flow import CallStep, ExceptionFlowAnalyzer, ThrownException
from .rules import (
    ParameterTypeContravarianceRule,
    ReturnTypeCovarianceRule,
    RuleChecker,
    ThrowsContractRule,
)
from .subtyping import NO_ANNOTATION, TypeSubtypeChecker

__all__ = [
    # Orchestration
    "LiskovChecker",
    "create_checker",
    # Engines
    "TypeSubtypeChecker",
    "ExceptionFlowAnalyzer",
    "declared_throws",
    "CallStep",
    "ThrownException",
    "NO_ANNOTATION",
    # Rules
    "RuleChecker",
    "ThrowsContractRule",
    "ReturnTypeCovarianceRule",
    "ParameterTypeContravarianceRule",
]
