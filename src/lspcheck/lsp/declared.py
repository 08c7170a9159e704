"""Exception types declared in method docstrings."""

from __future__ import annotations

import re

from ..semantic.construct import MethodSignature

_NAME = r"[\w.~`!]+"
_TYPE_LIST = rf"{_NAME}(?:\s*[|,]\s*{_NAME})*"
_PIPE_LIST = rf"{_NAME}(?:\s*\|\s*{_NAME})*"

# ":raises ValueError: ...", ":raise ValueError, KeyError:"
_FIELD = re.compile(
    rf"^\s*:(?:raises?|except(?:ion)?)\s+(?P<types>{_TYPE_LIST})",
    re.MULTILINE,
)
# "@throws ValueError if ...", "@raise A|B: ..."; a comma starts the description
_TAG = re.compile(
    rf"^\s*@(?:raises?|throws|exception)\s+(?P<types>{_PIPE_LIST})",
    re.MULTILINE,
)

_GOOGLE_HEADER = re.compile(r"^(?P<indent>\s*)(?:Raises|Throws|Exceptions)\s*:\s*$")
_NUMPY_HEADER = re.compile(r"^(?P<indent>\s*)(?:Raises|Throws)\s*$")
_NUMPY_UNDERLINE = re.compile(r"^\s*-{3,}\s*$")
_ENTRY = re.compile(rf"^\s*(?P<types>{_TYPE_LIST})\s*(?::|$)")

# ":exc:`ValueError`" -> "`ValueError`"; field tags keep their own colons
_ROLE = re.compile(r":(?:py:)?(?:exc|class|obj):(?=`)")
_VALID_NAME = re.compile(r"^[A-Za-z_][\w.]*$")


def declared_throws(method: MethodSignature) -> list[str]:
    """Return the exception types documented on a method.

    Understands Sphinx fields (``:raises ValueError: when...``), Google
    style ``Raises:`` sections, NumPy style ``Raises`` sections and
    ``@throws``/``@raise`` tags. ``A|B`` and ``A, B`` declare several types.
    Names are returned as written, stripped of markup and leading dots,
    in order of first appearance.
    """
    if not method.docstring:
        return []
    return parse_declared_throws(method.docstring)


def parse_declared_throws(docstring: str) -> list[str]:
    names: list[str] = []
    text = _strip_roles(docstring)

    matches = [*_FIELD.finditer(text), *_TAG.finditer(text)]
    for match in sorted(matches, key=lambda m: m.start()):
        names.extend(_split_types(match.group("types")))

    lines = text.splitlines()
    names.extend(_google_section(lines))
    names.extend(_numpy_section(lines))

    return list(dict.fromkeys(names))


def _strip_roles(text: str) -> str:
    return _ROLE.sub("", text)


def _google_section(lines: list[str]) -> list[str]:
    names: list[str] = []
    i = 0
    while i < len(lines):
        header = _GOOGLE_HEADER.match(lines[i])
        i += 1
        if not header:
            continue
        header_indent = _indent(lines[i - 1])
        entry_indent: int | None = None
        while i < len(lines):
            line = lines[i]
            if not line.strip():
                i += 1
                continue
            indent = _indent(line)
            if indent <= header_indent:
                break
            if entry_indent is None:
                entry_indent = indent
            if indent == entry_indent:
                entry = _ENTRY.match(line)
                if entry:
                    names.extend(_split_types(entry.group("types")))
            i += 1
    return names


def _numpy_section(lines: list[str]) -> list[str]:
    names: list[str] = []
    i = 0
    while i < len(lines) - 1:
        header = _NUMPY_HEADER.match(lines[i])
        if not header or not _NUMPY_UNDERLINE.match(lines[i + 1]):
            i += 1
            continue
        header_indent = _indent(lines[i])
        i += 2
        while i < len(lines):
            line = lines[i]
            if not line.strip():
                i += 1
                continue
            indent = _indent(line)
            if indent < header_indent:
                break
            # Next section: a header line followed by its underline
            if i + 1 < len(lines) and _NUMPY_UNDERLINE.match(lines[i + 1]):
                break
            if indent == header_indent:
                entry = _ENTRY.match(line)
                if entry is None:
                    break
                names.extend(_split_types(entry.group("types")))
            i += 1
    return names


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip())


def _split_types(expression: str) -> list[str]:
    result = []
    for part in re.split(r"[|,]", expression):
        name = part.strip().strip("`").lstrip("~!").strip().lstrip(".")
        if _VALID_NAME.match(name):
            result.append(name)
    return result
