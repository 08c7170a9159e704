"""Tests for exception-flow analysis."""

import pytest

from lspcheck.errors import CallDepthExceededError
from lspcheck.lsp.exception_flow import CallStep, ExceptionFlowAnalyzer


@pytest.fixture
def flow_registry(make_registry):
    return make_registry({
        "flow/__init__.py": "",
        "flow/errors.py": '''
            class StorageError(Exception):
                pass


            class NotFound(StorageError):
                pass
        ''',
        "flow/service.py": '''
            from . import errors
            from .errors import NotFound as Missing


            class Repo:
                def save(self) -> None:
                    raise PermissionError("read-only")

                def load(self, key: str) -> bytes:
                    raise Missing(key)


            class Validator:
                @staticmethod
                def check(value: str) -> None:
                    if not value:
                        raise ValueError("empty")


            class Base:
                def handle(self) -> None:
                    raise LookupError("base")


            class Service(Base):
                def direct(self) -> None:
                    raise KeyError("k")

                def bare_name(self) -> None:
                    raise StopIteration

                def with_cause(self) -> None:
                    try:
                        pass
                    except OSError as exc:
                        raise errors.StorageError("wrapped") from exc

                def reraise_alias(self) -> None:
                    try:
                        self.direct()
                    except TimeoutError as exc:
                        print(exc)
                        raise exc

                def reraise_bare(self) -> None:
                    try:
                        pass
                    except (UnicodeError, IndexError):
                        raise

                def reraise_bare_alias(self) -> None:
                    try:
                        pass
                    except TimeoutError as exc:
                        raise

                def swallowed(self) -> None:
                    try:
                        pass
                    except TimeoutError as exc:
                        other = exc
                        print(other)

                def via_self(self) -> None:
                    self.direct()

                def via_static(self) -> None:
                    Validator.check("")

                def via_new_instance(self) -> None:
                    Repo().save()

                def via_local(self) -> None:
                    repo = Repo()
                    repo.load("k")

                def via_parameter(self, repo: Repo | None) -> None:
                    repo.load("k")

                def via_super(self) -> None:
                    super().handle()

                def handle(self) -> None:
                    super().handle()

                def nested_scopes(self) -> None:
                    def helper():
                        raise ValueError("inner")

                    callback = lambda: self.direct()

                    class Local:
                        def go(self):
                            raise TypeError("local")

                    return helper, callback, Local

                def lowercase(self, err) -> None:
                    raise err

                def ping(self) -> None:
                    self.pong()

                def pong(self) -> None:
                    self.ping()
                    raise ArithmeticError("cycle")

                def twice(self) -> None:
                    self.direct()
                    self.via_self()
        ''',
    })


@pytest.fixture
def analyzer(flow_registry):
    return ExceptionFlowAnalyzer(flow_registry)


def throws(analyzer, registry, method_name, class_name="flow.service.Service"):
    method = registry.find_method(class_name, method_name)
    assert method is not None
    return analyzer.actual_throws(method)


class TestDirectRaises:
    def test_raise_call(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "direct") == ["KeyError"]

    def test_raise_bare_class(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "bare_name") == ["StopIteration"]

    def test_raise_from_records_raised_type_only(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "with_cause") == ["flow.errors.StorageError"]

    def test_imported_alias_resolves_to_fqn(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "load", "flow.service.Repo") == [
            "flow.errors.NotFound"
        ]

    def test_raise_of_lowercase_variable_ignored(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "lowercase") == []


class TestReraise:
    def test_reraise_of_handler_alias(self, analyzer, flow_registry):
        result = throws(analyzer, flow_registry, "reraise_alias")
        assert "TimeoutError" in result
        # The call in the try body still propagates
        assert "KeyError" in result

    def test_bare_reraise_in_handler(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "reraise_bare") == ["UnicodeError", "IndexError"]

    def test_bare_reraise_in_aliased_handler(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "reraise_bare_alias") == ["TimeoutError"]

    def test_caught_without_reraise(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "swallowed") == []


class TestCallFollowing:
    def test_self_call(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "via_self") == ["KeyError"]

    def test_static_call(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "via_static") == ["ValueError"]

    def test_new_instance_call(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "via_new_instance") == ["PermissionError"]

    def test_local_variable_call(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "via_local") == ["flow.errors.NotFound"]

    def test_parameter_annotation_call(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "via_parameter") == ["flow.errors.NotFound"]

    def test_super_call(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "via_super") == ["LookupError"]

    def test_override_calling_super(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "handle") == ["LookupError"]

    def test_nested_scopes_are_skipped(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "nested_scopes") == []


class TestChains:
    def test_direct_raise_chain(self, analyzer, flow_registry):
        method = flow_registry.find_method("flow.service.Service", "direct")
        [thrown] = analyzer.actual_throws_with_chains(method)

        assert thrown.type_name == "KeyError"
        assert thrown.chains == ((CallStep("flow.service.Service", "direct"),),)

    def test_cross_class_chain(self, analyzer, flow_registry):
        method = flow_registry.find_method("flow.service.Service", "via_local")
        [thrown] = analyzer.actual_throws_with_chains(method)

        assert [str(step) for step in thrown.chains[0]] == [
            "flow.service.Service.via_local",
            "flow.service.Repo.load",
        ]

    def test_multiple_chains_to_same_exception(self, analyzer, flow_registry):
        method = flow_registry.find_method("flow.service.Service", "twice")
        [thrown] = analyzer.actual_throws_with_chains(method)

        assert [[str(s) for s in chain] for chain in thrown.chains] == [
            ["flow.service.Service.twice", "flow.service.Service.direct"],
            [
                "flow.service.Service.twice",
                "flow.service.Service.via_self",
                "flow.service.Service.direct",
            ],
        ]


class TestCycles:
    def test_mutual_recursion_terminates(self, analyzer, flow_registry):
        assert throws(analyzer, flow_registry, "ping") == ["ArithmeticError"]
        assert throws(analyzer, flow_registry, "pong") == ["ArithmeticError"]

    def test_cycle_results_are_stable_across_calls(self, analyzer, flow_registry):
        first = throws(analyzer, flow_registry, "ping")
        second = throws(analyzer, flow_registry, "ping")
        assert first == second


class TestDepthLimit:
    def test_long_chain_raises(self, make_registry):
        registry = make_registry({
            "deep.py": '''
                class Deep:
                    def a(self) -> None:
                        self.b()

                    def b(self) -> None:
                        self.c()

                    def c(self) -> None:
                        raise ValueError("bottom")
            ''',
        })
        analyzer = ExceptionFlowAnalyzer(registry, max_call_depth=2)
        method = registry.find_method("deep.Deep", "a")

        with pytest.raises(CallDepthExceededError) as exc_info:
            analyzer.actual_throws(method)
        assert exc_info.value.limit == 2
        assert exc_info.value.chain == ["deep.Deep.a", "deep.Deep.b", "deep.Deep.c"]

    def test_chain_within_limit(self, make_registry):
        registry = make_registry({
            "deep.py": '''
                class Deep:
                    def a(self) -> None:
                        self.b()

                    def b(self) -> None:
                        raise ValueError("bottom")
            ''',
        })
        analyzer = ExceptionFlowAnalyzer(registry, max_call_depth=2)
        assert analyzer.actual_throws(registry.find_method("deep.Deep", "a")) == ["ValueError"]


class TestMissingSource:
    def test_deleted_file_yields_empty(self, make_registry, temp_dir):
        registry = make_registry({
            "gone.py": '''
                class Gone:
                    def run(self) -> None:
                        raise ValueError("x")
            ''',
        })
        method = registry.find_method("gone.Gone", "run")
        analyzer = ExceptionFlowAnalyzer(registry)
        # Parsed modules are cached, so drop the cache entry to simulate a missing file
        (temp_dir / "gone.py").unlink()
        registry._modules.clear()

        assert analyzer.actual_throws(method) == []


class TestDeepNesting:
    def test_long_expression_is_scanned(self, make_registry):
        terms = " + ".join(["1"] * 3000)
        registry = make_registry({
            "wide.py": f"class Wide:\n    def total(self) -> int:\n        return {terms}\n",
        })
        method = registry.find_method("wide.Wide", "total")

        assert method is not None
        assert ExceptionFlowAnalyzer(registry).actual_throws(method) == []
