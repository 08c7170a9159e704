"""Configuration loading for lspcheck."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ConfigNotFoundError, InvalidConfigError, InvalidSchemaVersionError
from .lsp.exception_flow import DEFAULT_MAX_CALL_DEPTH

SCHEMA_VERSION = 1

CONFIG_FILE = ".lspcheck.json"

# Overrides max_call_depth from the config file; CLI flags override both
MAX_CALL_DEPTH_ENV = "LSPCHECK_MAX_CALL_DEPTH"

_PATH_LISTS = ("directories", "files", "exclude_directories", "exclude_files")


@dataclass
class Config:
    """Which sources to analyze and how deep to follow calls."""

    directories: list[str] = field(default_factory=list)
    files: list[str] = field(default_factory=list)
    exclude_directories: list[str] = field(default_factory=list)
    exclude_files: list[str] = field(default_factory=list)
    max_call_depth: int = DEFAULT_MAX_CALL_DEPTH

    def add_directory(self, path: str | Path) -> "Config":
        self.directories.append(str(path))
        return self

    def add_file(self, path: str | Path) -> "Config":
        self.files.append(str(path))
        return self

    def exclude_directory(self, path: str | Path) -> "Config":
        self.exclude_directories.append(str(path))
        return self

    def exclude_file(self, path: str | Path) -> "Config":
        self.exclude_files.append(str(path))
        return self

    @property
    def is_empty(self) -> bool:
        """True when no directory or file is configured."""
        return not self.directories and not self.files

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "directories": self.directories,
            "files": self.files,
            "exclude_directories": self.exclude_directories,
            "exclude_files": self.exclude_files,
            "max_call_depth": self.max_call_depth,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        return cls(
            directories=list(data.get("directories", [])),
            files=list(data.get("files", [])),
            exclude_directories=list(data.get("exclude_directories", [])),
            exclude_files=list(data.get("exclude_files", [])),
            max_call_depth=data.get("max_call_depth", DEFAULT_MAX_CALL_DEPTH),
        )


def load_config(path: Path | None = None, search_dir: Path | None = None) -> Config:
    """
    Load configuration.

    An explicit ``path`` must exist. Without one, ``.lspcheck.json`` in
    ``search_dir`` (default: current directory) is used if present,
    otherwise an empty config. Relative paths in the file are taken
    relative to the file's directory. The environment override is
    applied last.

    Raises:
        ConfigNotFoundError: If an explicit path doesn't exist.
        InvalidConfigError: If the file is not valid JSON or has bad values.
        InvalidSchemaVersionError: If schema version is unsupported.
    """
    if path is not None:
        if not path.is_file():
            raise ConfigNotFoundError(str(path))
        config = _read_config(path)
    else:
        candidate = (search_dir or Path.cwd()) / CONFIG_FILE
        config = _read_config(candidate) if candidate.is_file() else Config()
    return apply_env(config)


def _read_config(path: Path) -> Config:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfigError(str(path), f"not valid JSON: {e.msg} (line {e.lineno})")
    except OSError as e:
        raise InvalidConfigError(str(path), str(e))

    if not isinstance(data, dict):
        raise InvalidConfigError(str(path), "top-level value must be an object")

    version = data.get("schema_version", SCHEMA_VERSION)
    if version != SCHEMA_VERSION:
        raise InvalidSchemaVersionError(version, SCHEMA_VERSION)

    for key in _PATH_LISTS:
        value = data.get(key, [])
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise InvalidConfigError(str(path), f"'{key}' must be a list of strings")

    config = Config.from_dict(data)
    config.max_call_depth = _validate_depth(config.max_call_depth, str(path))

    base = path.resolve().parent
    for key in _PATH_LISTS:
        setattr(config, key, [str(base / p) for p in getattr(config, key)])
    return config


def apply_env(config: Config) -> Config:
    """Apply environment overrides to a config (in place)."""
    raw = os.environ.get(MAX_CALL_DEPTH_ENV)
    if raw:
        try:
            depth = int(raw)
        except ValueError:
            raise InvalidConfigError(f"${MAX_CALL_DEPTH_ENV}", f"not an integer: {raw!r}")
        config.max_call_depth = _validate_depth(depth, f"${MAX_CALL_DEPTH_ENV}")
    return config


def _validate_depth(value: Any, source: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidConfigError(source, "max_call_depth must be a positive integer")
    return value
