"""Pytest fixtures for lspcheck tests."""

import tempfile
import textwrap
from pathlib import Path

import pytest

from lspcheck.finder import ClassFinder
from lspcheck.lsp.checker import create_checker
from lspcheck.semantic.registry import ClassRegistry


CONTRACTS_SOURCE = '''
"""Contracts and implementations used across checker tests."""

from abc import ABC, abstractmethod


class UnexpectedValueError(RuntimeError):
    """A more specific runtime error."""


class I1(ABC):
    @abstractmethod
    def m(self) -> None:
        """Do the work."""


class K1(I1):
    def m(self) -> None:
        """Do the work.

        Raises:
            RuntimeError: always.
        """
        raise RuntimeError("boom")


class I2(ABC):
    @abstractmethod
    def m(self) -> None:
        """Do the work.

        :raises RuntimeError: when the work fails.
        """


class K2(I2):
    def m(self) -> None:
        raise RuntimeError("boom")


class K2b(I2):
    def m(self) -> None:
        raise UnexpectedValueError("narrower")


class I6(ABC):
    @abstractmethod
    def create(self) -> RuntimeError:
        ...


class K6(I6):
    def create(self) -> UnexpectedValueError:
        return UnexpectedValueError("made")


class I8(ABC):
    @abstractmethod
    def transform(self, text: str, count: int) -> str:
        ...


class K8(I8):
    def transform(self, text: str, count: int) -> str:
        return text * count
'''


def write_files(root: Path, files: dict[str, str]) -> None:
    """Write dedented sources below root, creating directories as needed."""
    for rel, source in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source).lstrip("\n"))


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_registry(temp_dir):
    """Write sources into the temp directory and index them."""

    def _make(files: dict[str, str]) -> ClassRegistry:
        write_files(temp_dir, files)
        registry = ClassRegistry()
        ClassFinder(registry).find_classes_in_directory(temp_dir)
        return registry

    return _make


@pytest.fixture
def contracts_registry(make_registry):
    """Registry over the shared contract scenarios (module ``lsp_cases``)."""
    return make_registry({"lsp_cases.py": CONTRACTS_SOURCE})


@pytest.fixture
def contracts_checker(contracts_registry):
    return create_checker(contracts_registry)
