"""Data models for lspcheck."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ViolationReason(str, Enum):
    """Machine-readable kind of a violation."""

    DECLARED_NOT_ALLOWED = "declared-not-allowed"
    THROWN_NOT_ALLOWED = "thrown-not-allowed"
    RETURN_NOT_COVARIANT = "return-not-covariant"
    PARAMETER_NOT_CONTRAVARIANT = "parameter-not-contravariant"


@dataclass(frozen=True)
class Violation:
    """A single substitutability violation of one method against one contract."""

    class_name: str
    method_name: str
    contract_name: str
    reason: ViolationReason
    message: str
    details: str | None = None  # multi-line call-chain provenance

    def __str__(self) -> str:
        out = f"{self.class_name}.{self.method_name}() - contract {self.contract_name} - {self.message}"
        if self.details:
            out += "\n    " + self.details.replace("\n", "\n    ")
        return out

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "class_name": self.class_name,
            "method_name": self.method_name,
            "contract_name": self.contract_name,
            "reason": self.reason.value,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Violation":
        return cls(
            class_name=data["class_name"],
            method_name=data["method_name"],
            contract_name=data["contract_name"],
            reason=ViolationReason(data["reason"]),
            message=data["message"],
            details=data.get("details"),
        )


@dataclass(frozen=True)
class LoadError:
    """A class that could not be analyzed at all."""

    class_name: str
    message: str
    error_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "class_name": self.class_name,
            "message": self.message,
            "error_type": self.error_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LoadError":
        return cls(
            class_name=data["class_name"],
            message=data["message"],
            error_type=data.get("error_type", "LspcheckError"),
        )


@dataclass
class ClassResult:
    """Outcome of checking one class."""

    class_name: str
    violations: list[Violation] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.violations


@dataclass
class CheckReport:
    """Result of checking a set of classes."""

    results: list[ClassResult] = field(default_factory=list)
    errors: list[LoadError] = field(default_factory=list)
    generated_at: str = field(default_factory=_utc_now)

    @property
    def violations(self) -> list[Violation]:
        return [v for result in self.results for v in result.violations]

    @property
    def passed(self) -> list[ClassResult]:
        return [r for r in self.results if r.passed]

    @property
    def failed(self) -> list[ClassResult]:
        return [r for r in self.results if not r.passed]

    @property
    def violation_count(self) -> int:
        return sum(len(r.violations) for r in self.results)

    @property
    def classes_checked(self) -> int:
        return len(self.results) + len(self.errors)

    @property
    def is_clean(self) -> bool:
        """True when no class has violations and every class could be loaded."""
        return self.violation_count == 0 and not self.errors
