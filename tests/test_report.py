"""Tests for report models, rendering and the runner."""

from lspcheck.config import Config
from lspcheck.errors import ClassNotFoundError
from lspcheck.lsp.checker import create_checker
from lspcheck.models import (
    CheckReport,
    ClassResult,
    LoadError,
    Violation,
    ViolationReason,
)
from lspcheck.report import format_text_report, report_to_dict
from lspcheck.runner import Runner, check_classes

from .conftest import CONTRACTS_SOURCE, write_files


def make_violation(details=None):
    return Violation(
        class_name="pkg.K",
        method_name="m",
        contract_name="pkg.I",
        reason=ViolationReason.THROWN_NOT_ALLOWED,
        message="raises KeyError in code (detected via AST) but not allowed by the contract",
        details=details,
    )


class TestViolation:
    def test_str(self):
        assert str(make_violation()) == (
            "pkg.K.m() - contract pkg.I - raises KeyError in code "
            "(detected via AST) but not allowed by the contract"
        )

    def test_str_indents_details(self):
        text = str(make_violation("Call chain 1: pkg.K.m\nCall chain 2: pkg.K.m → pkg.K.n"))
        lines = text.splitlines()
        assert lines[1] == "    Call chain 1: pkg.K.m"
        assert lines[2] == "    Call chain 2: pkg.K.m → pkg.K.n"

    def test_to_dict_omits_missing_details(self):
        data = make_violation().to_dict()
        assert "details" not in data
        assert data["reason"] == "thrown-not-allowed"

    def test_from_dict(self):
        violation = make_violation("Call chain: pkg.K.m")
        assert Violation.from_dict(violation.to_dict()) == violation


class TestCheckReport:
    def test_counts(self):
        report = CheckReport(
            results=[
                ClassResult("pkg.A"),
                ClassResult("pkg.K", [make_violation(), make_violation()]),
            ],
            errors=[LoadError("pkg.Gone", "Class not found: pkg.Gone", "ClassNotFoundError")],
        )
        assert report.classes_checked == 3
        assert report.violation_count == 2
        assert [r.class_name for r in report.passed] == ["pkg.A"]
        assert [r.class_name for r in report.failed] == ["pkg.K"]
        assert not report.is_clean

    def test_empty_report_is_clean(self):
        assert CheckReport().is_clean

    def test_load_error_alone_is_not_clean(self):
        report = CheckReport(errors=[LoadError("pkg.X", "boom", "LspcheckError")])
        assert not report.is_clean


class TestRendering:
    def _report(self):
        return CheckReport(
            results=[ClassResult("pkg.A"), ClassResult("pkg.K", [make_violation("Call chain: pkg.K.m")])],
            errors=[LoadError("pkg.Gone", "Class not found: pkg.Gone", "ClassNotFoundError")],
            generated_at="2026-01-01T00:00:00Z",
        )

    def test_report_to_dict(self):
        data = report_to_dict(self._report())
        assert set(data) == {
            "schema_version",
            "generated_at",
            "classes_checked",
            "violations",
            "errors",
        }
        assert data["classes_checked"] == 3
        assert data["violations"][0]["details"] == "Call chain: pkg.K.m"
        assert data["errors"][0]["error_type"] == "ClassNotFoundError"

    def test_text_report(self):
        text = format_text_report(self._report())
        lines = text.splitlines()

        assert lines[0] == "[PASS] pkg.A"
        assert lines[1] == "[FAIL] pkg.K"
        assert lines[2].startswith("       -> pkg.K.m() - contract pkg.I")
        assert lines[3] == "           Call chain: pkg.K.m"
        assert "ERRORS (1):" in lines
        assert "[ERROR] pkg.Gone: Class not found: pkg.Gone" in lines
        assert "Passed: 1 / 2" in lines
        assert "Total violations: 1" in lines


class TestRunner:
    def test_run_checks_every_class(self, temp_dir):
        write_files(temp_dir, {"lsp_cases.py": CONTRACTS_SOURCE})
        report = Runner(Config().add_directory(temp_dir)).run()

        names = [r.class_name for r in report.results]
        assert "lsp_cases.K1" in names
        assert [r.class_name for r in report.failed] == ["lsp_cases.K1"]
        assert report.violation_count == 2

    def test_run_selected_classes(self, temp_dir):
        write_files(temp_dir, {"lsp_cases.py": CONTRACTS_SOURCE})
        report = Runner(Config().add_directory(temp_dir)).run(["lsp_cases.K2"])

        assert [r.class_name for r in report.results] == ["lsp_cases.K2"]
        assert report.is_clean

    def test_unloadable_class_becomes_load_error(self, contracts_registry):
        report = check_classes(
            create_checker(contracts_registry), ["lsp_cases.Missing", "lsp_cases.K8"]
        )

        assert [r.class_name for r in report.results] == ["lsp_cases.K8"]
        [error] = report.errors
        assert error.class_name == "lsp_cases.Missing"
        assert error.error_type == ClassNotFoundError.__name__

    def test_runaway_recursion_becomes_load_error(self):
        class DeepChecker:
            def check(self, name):
                raise RecursionError("maximum recursion depth exceeded")

        report = check_classes(DeepChecker(), ["pkg.Deep"])

        assert report.results == []
        assert [e.error_type for e in report.errors] == ["RecursionError"]

    def test_discovery_runs_once(self, temp_dir):
        write_files(temp_dir, {"lsp_cases.py": CONTRACTS_SOURCE})
        runner = Runner(Config().add_directory(temp_dir))
        calls = []
        find = runner.finder.find_classes_from_config

        def counting_find(config):
            calls.append(config)
            return find(config)

        runner.finder.find_classes_from_config = counting_find
        names = runner.discover()
        report = runner.run()

        assert len(calls) == 1
        assert [r.class_name for r in report.results] == names
