"""Checks a set of classes, isolating failures per class."""

import logging

from .config import Config
from .errors import LspcheckError
from .finder import ClassFinder
from .lsp.checker import LiskovChecker, create_checker
from .models import CheckReport, ClassResult, LoadError
from .semantic.registry import ClassRegistry

logger = logging.getLogger(__name__)


class Runner:
    """Indexes the configured sources and checks every class found."""

    def __init__(self, config: Config, registry: ClassRegistry | None = None):
        self.config = config
        self.registry = registry or ClassRegistry()
        self.finder = ClassFinder(self.registry)
        self._discovered: list[str] | None = None

    def discover(self) -> list[str]:
        """Index the configured sources and return the class FQNs found.

        Sources are indexed once per runner; later calls reuse the result.
        """
        if self._discovered is None:
            self._discovered = self.finder.find_classes_from_config(self.config)
        return list(self._discovered)

    def run(self, class_names: list[str] | None = None) -> CheckReport:
        """
        Check classes and collect the results.

        Args:
            class_names: Classes to check. Defaults to every discovered class.

        A class that cannot be analyzed becomes a LoadError in the report;
        the remaining classes are still checked.
        """
        discovered = self.discover()
        if class_names is None:
            class_names = discovered
        checker = create_checker(self.registry, self.config.max_call_depth)
        return check_classes(checker, class_names)


def check_classes(checker: LiskovChecker, class_names: list[str]) -> CheckReport:
    report = CheckReport()
    for name in class_names:
        try:
            violations = checker.check(name)
        except (LspcheckError, RecursionError) as e:
            logger.warning("Cannot check %s: %s", name, e)
            report.errors.append(
                LoadError(class_name=name, message=str(e), error_type=type(e).__name__)
            )
            continue
        report.results.append(ClassResult(class_name=name, violations=violations))
    return report
