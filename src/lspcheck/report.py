"""Report rendering for lspcheck."""

from typing import Any

from .models import CheckReport

SCHEMA_VERSION = 1


def report_to_dict(report: CheckReport) -> dict[str, Any]:
    """
    Convert a CheckReport to a dictionary for JSON serialization.

    Args:
        report: The check report.

    Returns:
        Dictionary representation.
    """
    return {
        "schema_version": SCHEMA_VERSION,
        "generated_at": report.generated_at,
        "classes_checked": report.classes_checked,
        "violations": [v.to_dict() for v in report.violations],
        "errors": [e.to_dict() for e in report.errors],
    }


def format_text_report(report: CheckReport) -> str:
    """
    Render a human-readable report.

    One ``[PASS]``/``[FAIL]`` line per class, its violations indented below,
    load errors after, and a summary footer.
    """
    lines: list[str] = []
    for result in report.results:
        lines.append(f"{'[PASS]' if result.passed else '[FAIL]'} {result.class_name}")
        for violation in result.violations:
            text = str(violation).replace("\n", "\n       ")
            lines.append(f"       -> {text}")

    if report.errors:
        lines.append("")
        lines.append(f"ERRORS ({len(report.errors)}):")
        for error in report.errors:
            lines.append(f"[ERROR] {error.class_name}: {error.message}")

    total = len(report.results)
    lines.extend([
        "",
        f"Classes checked: {report.classes_checked}",
        f"Passed: {len(report.passed)} / {total}",
        f"Total violations: {report.violation_count}",
    ])
    if report.errors:
        lines.append(f"Load errors: {len(report.errors)}")
    return "\n".join(lines)
