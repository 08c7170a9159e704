"""Discovery of Python source files and the classes they declare."""

import logging
from pathlib import Path

from .config import Config
from .errors import InvalidPathError
from .semantic.registry import ClassRegistry

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = (".py",)

# Never descended into
SKIPPED_DIRECTORIES = frozenset({"__pycache__", "node_modules", "venv", "site-packages"})


class ClassFinder:
    """Collects source files and indexes them into a registry."""

    def __init__(self, registry: ClassRegistry):
        self.registry = registry

    def find_classes_in_directory(self, directory: str | Path) -> list[str]:
        """
        Index every Python file under ``directory``.

        Returns:
            Sorted FQNs of all classes found.

        Raises:
            InvalidPathError: If the directory does not exist.
        """
        root = Path(directory)
        if not root.is_dir():
            raise InvalidPathError(str(directory), "not a valid directory")
        return self._index(self._walk(root.resolve(), set()))

    def find_classes_from_config(self, config: Config) -> list[str]:
        """
        Index the directories and files listed in a config, honouring exclusions.

        Missing directories and files are skipped.

        Returns:
            Sorted FQNs of all classes found.
        """
        return self._index(self.collect_files(config))

    def collect_files(self, config: Config) -> list[Path]:
        """Resolve a config to the ordered, deduplicated list of files to index."""
        excluded_dirs = {Path(p).resolve() for p in config.exclude_directories}
        excluded_files = {Path(p).resolve() for p in config.exclude_files}
        seen: set[Path] = set()
        paths: list[Path] = []

        for directory in config.directories:
            root = Path(directory).resolve()
            if not root.is_dir():
                logger.debug("Skipping missing directory %s", directory)
                continue
            for path in self._walk(root, excluded_dirs):
                if path in seen or path in excluded_files:
                    continue
                seen.add(path)
                paths.append(path)

        for file in config.files:
            path = Path(file).resolve()
            if not path.is_file() or path.suffix not in SOURCE_SUFFIXES:
                logger.debug("Skipping %s: not a Python file", file)
                continue
            if path in seen or path in excluded_files:
                continue
            seen.add(path)
            paths.append(path)

        return paths

    def _walk(self, root: Path, excluded: set[Path]) -> list[Path]:
        files: list[Path] = []
        for entry in sorted(root.iterdir()):
            if entry.is_dir():
                if entry.name.startswith(".") or entry.name in SKIPPED_DIRECTORIES:
                    continue
                if entry.resolve() in excluded:
                    continue
                files.extend(self._walk(entry, excluded))
            elif entry.suffix in SOURCE_SUFFIXES and entry.is_file():
                files.append(entry.resolve())
        return files

    def _index(self, paths: list[Path]) -> list[str]:
        classes: set[str] = set()
        for path in paths:
            for construct in self.registry.add_file(path):
                classes.add(construct.qualname)
        logger.debug("Indexed %d files, %d classes", len(paths), len(classes))
        return sorted(classes)
