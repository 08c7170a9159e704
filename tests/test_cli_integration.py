"""Integration tests for CLI."""

import json
import subprocess
import sys
from pathlib import Path

import pytest

from .conftest import CONTRACTS_SOURCE, write_files


def run_lspcheck(args: list[str], cwd: Path) -> subprocess.CompletedProcess:
    """Run lspcheck CLI command."""
    return subprocess.run(
        [sys.executable, "-m", "lspcheck.cli"] + args,
        cwd=cwd,
        capture_output=True,
        text=True,
    )


@pytest.fixture
def project(temp_dir):
    """A source tree with one violating and several clean classes."""
    write_files(temp_dir, {"src/lsp_cases.py": CONTRACTS_SOURCE})
    return temp_dir


@pytest.fixture
def clean_project(temp_dir):
    write_files(temp_dir, {
        "src/shapes.py": '''
            class Shape:
                def area(self) -> float:
                    return 0.0


            class Square(Shape):
                def area(self) -> float:
                    return 1.0
        ''',
    })
    return temp_dir


class TestCheckCommand:
    def test_violations_exit_one(self, project):
        result = run_lspcheck(["check", "src"], project)

        assert result.returncode == 1
        assert "[FAIL] lsp_cases.K1" in result.stdout
        assert "[PASS] lsp_cases.K2" in result.stdout
        assert "Call chain: lsp_cases.K1.m" in result.stdout
        assert "Total violations: 2" in result.stdout

    def test_clean_exit_zero(self, clean_project):
        result = run_lspcheck(["check", "src"], clean_project)

        assert result.returncode == 0
        assert "[PASS] shapes.Square" in result.stdout
        assert "Total violations: 0" in result.stdout

    def test_progress_on_stderr(self, clean_project):
        result = run_lspcheck(["check", "src"], clean_project)
        assert "Checking 2 class(es)..." in result.stderr
        assert "Done: clean." in result.stderr

    def test_quiet_suppresses_progress(self, clean_project):
        result = run_lspcheck(["check", "src", "--quiet"], clean_project)

        assert result.returncode == 0
        assert "Checking" not in result.stderr
        assert "[PASS] shapes.Square" in result.stdout

    def test_json_output(self, project):
        result = run_lspcheck(["check", "src", "--json", "--quiet"], project)

        assert result.returncode == 1
        data = json.loads(result.stdout)
        assert data["schema_version"] == 1
        assert data["errors"] == []
        reasons = sorted(v["reason"] for v in data["violations"])
        assert reasons == ["declared-not-allowed", "thrown-not-allowed"]
        assert all(v["class_name"] == "lsp_cases.K1" for v in data["violations"])

    def test_single_file_argument(self, project):
        result = run_lspcheck(["check", "src/lsp_cases.py", "--quiet"], project)
        assert result.returncode == 1
        assert "[FAIL] lsp_cases.K1" in result.stdout

    def test_no_arguments_prints_usage(self, temp_dir):
        result = run_lspcheck(["check"], temp_dir)

        assert result.returncode == 2
        assert "Usage: lspcheck check" in result.stderr
        assert "--json" in result.stderr

    def test_invalid_path(self, temp_dir):
        result = run_lspcheck(["check", "missing"], temp_dir)

        assert result.returncode == 2
        assert "not a valid directory or file" in result.stderr

    def test_no_classes_found(self, temp_dir):
        write_files(temp_dir, {"src/helpers.py": "def helper():\n    return 1\n"})
        result = run_lspcheck(["check", "src"], temp_dir)

        assert result.returncode == 0
        assert "No Python classes found." in result.stderr

    def test_config_file_in_working_directory(self, project):
        (project / ".lspcheck.json").write_text(json.dumps({"directories": ["src"]}))
        result = run_lspcheck(["check", "--quiet"], project)

        assert result.returncode == 1
        assert "[FAIL] lsp_cases.K1" in result.stdout

    def test_missing_config_file(self, project):
        result = run_lspcheck(["check", "src", "--config", "nope.json"], project)

        assert result.returncode == 2
        assert "Config not found" in result.stderr

    def test_call_depth_limit_reported_as_load_error(self, temp_dir):
        write_files(temp_dir, {
            "src/deep.py": '''
                class Base:
                    def run(self) -> None:
                        pass


                class Deep(Base):
                    def run(self) -> None:
                        self.a()

                    def a(self) -> None:
                        self.b()

                    def b(self) -> None:
                        raise ValueError("bottom")
            ''',
        })
        result = run_lspcheck(
            ["check", "src", "--json", "--quiet", "--max-call-depth", "1"], temp_dir
        )

        assert result.returncode == 1
        data = json.loads(result.stdout)
        assert [e["class_name"] for e in data["errors"]] == ["deep.Deep"]
        assert data["errors"][0]["error_type"] == "CallDepthExceededError"


class TestClassesCommand:
    def test_lists_classes(self, clean_project):
        result = run_lspcheck(["classes", "src"], clean_project)

        assert result.returncode == 0
        assert "Classes (2):" in result.stdout
        assert "shapes.Square" in result.stdout

    def test_json(self, project):
        result = run_lspcheck(["classes", "src", "--json"], project)

        assert result.returncode == 0
        data = json.loads(result.stdout)
        kinds = {entry["qualname"]: entry["kind"] for entry in data}
        assert kinds["lsp_cases.I1"] == "interface"
        assert kinds["lsp_cases.K1"] == "class"
