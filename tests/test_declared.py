"""Tests for docstring exception declarations."""

import inspect

from lspcheck.lsp.declared import declared_throws, parse_declared_throws
from lspcheck.semantic.construct import MethodSignature


def doc(text: str) -> str:
    return inspect.cleandoc(text)


class TestSphinxFields:
    def test_single_raises(self):
        assert parse_declared_throws(":raises ValueError: if empty") == ["ValueError"]

    def test_raise_and_exception_spellings(self):
        text = doc("""
            Summary.

            :raise KeyError: missing key
            :exception OSError: on disk errors
        """)
        assert parse_declared_throws(text) == ["KeyError", "OSError"]

    def test_role_markup_removed(self):
        text = ":raises :exc:`~pkg.errors.NotFound`: when absent"
        assert parse_declared_throws(text) == ["pkg.errors.NotFound"]

    def test_pipe_and_comma_separated(self):
        assert parse_declared_throws(":raises ValueError|TypeError: bad") == [
            "ValueError",
            "TypeError",
        ]
        assert parse_declared_throws(":raises ValueError, TypeError: bad") == [
            "ValueError",
            "TypeError",
        ]

    def test_leading_dot_stripped(self):
        assert parse_declared_throws(":raises .errors.Broken: oops") == ["errors.Broken"]

    def test_tag_must_start_line(self):
        assert parse_declared_throws("See :raises ValueError: elsewhere") == []


class TestTags:
    def test_throws_tag_with_description(self):
        assert parse_declared_throws("@throws RuntimeError when it fails") == ["RuntimeError"]

    def test_raise_tag_union(self):
        assert parse_declared_throws("@raise KeyError|IndexError") == ["KeyError", "IndexError"]

    def test_comma_ends_tag_types(self):
        text = "@throws RuntimeError, if the file is missing"
        assert parse_declared_throws(text) == ["RuntimeError"]

    def test_fields_and_tags_keep_document_order(self):
        text = "@throws KeyError on a miss\n:raises ValueError: on bad input"
        assert parse_declared_throws(text) == ["KeyError", "ValueError"]


class TestGoogleStyle:
    def test_raises_section(self):
        text = doc("""
            Load a record.

            Args:
                key: Record key.

            Raises:
                KeyError: If the key is missing.
                    Continuation lines are ignored.
                PermissionError: If access is denied.

            Returns:
                The record.
        """)
        assert parse_declared_throws(text) == ["KeyError", "PermissionError"]

    def test_entry_without_description(self):
        text = doc("""
            Raises:
                ValueError
        """)
        assert parse_declared_throws(text) == ["ValueError"]


class TestNumpyStyle:
    def test_raises_section(self):
        text = doc("""
            Compute things.

            Raises
            ------
            ValueError
                If the input is empty.
            LinAlgError
                If the matrix is singular.

            Returns
            -------
            float
        """)
        assert parse_declared_throws(text) == ["ValueError", "LinAlgError"]


class TestDeclaredThrows:
    def _method(self, docstring):
        return MethodSignature(
            owner="mod.C",
            name="m",
            parameters=(),
            return_type=None,
            declaring_type="mod.C",
            path="mod.py",
            start_line=1,
            end_line=2,
            docstring=docstring,
        )

    def test_no_docstring(self):
        assert declared_throws(self._method(None)) == []

    def test_duplicates_removed_in_order(self):
        text = doc("""
            :raises ValueError: first

            Raises:
                TypeError: second
                ValueError: again
        """)
        assert declared_throws(self._method(text)) == ["ValueError", "TypeError"]
