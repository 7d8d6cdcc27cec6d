#
# tests/unit/test_engine.py
#
"""
Tests for the engine adapter, the engine factory and the pytest engine.
"""

import sys
from unittest.mock import MagicMock

import pytest

from testfork.engine import (
    DiscoveryFilter,
    DiscoveryRequest,
    DiscoverySelector,
    EngineNode,
    FilterKind,
    FilterMode,
    PlanFinished,
    PytestEngine,
    SelectorKind,
    TestEngineAdapter,
    TestFinished,
    TestSkipped,
    TestSource,
    TestStarted,
    build_discovery_request,
    get_test_engine,
)
from testfork.engine.pytest_engine import ReportingPlugin, resolve_selector
from testfork.exceptions import ConfigurationError, EngineError
from testfork.forked.report_builder import ReportBuilder
from testfork.model import IncludeExcludeList, TestParameters, TestStatus

OUTCOMES = """
import pytest

def test_pass(record_property):
    record_property("answer", 42)

def test_fail():
    assert 1 == 2

@pytest.mark.skip(reason="not today")
def test_skipped():
    pass

def test_aborted():
    pytest.skip("changed my mind")

@pytest.mark.xfail(reason="known bug")
def test_xfail():
    assert False

@pytest.mark.smoke
class TestGroup:
    def test_method(self):
        pass
"""

PACKAGE_TESTS = """
class TestA:
    def test_one(self):
        pass

    def test_two(self):
        pass

def test_free():
    pass
"""


def _execute(request: DiscoveryRequest) -> tuple[list, ReportBuilder]:
    events: list = []
    builder = ReportBuilder()

    def listener(event) -> None:
        events.append(event)
        builder.handle(event)

    PytestEngine(extra_args=["-p", "no:cacheprovider"]).execute(request, listener)
    return events, builder


def _by_name(builder: ReportBuilder) -> dict:
    return {identifier.display_name: (identifier, data) for identifier, data in builder.test_report().items()}


class TestBuildDiscoveryRequest:
    """Mapping of TestParameters onto a discovery request."""

    def test_empty_parameters(self) -> None:
        request = build_discovery_request(TestParameters())
        assert request.selectors == ()
        assert request.filters == ()
        assert request.configuration == {}

    def test_selectors_and_filters(self, full_parameters: TestParameters) -> None:
        request = build_discovery_request(full_parameters)

        kinds = [selector.kind for selector in request.selectors]
        assert kinds.count(SelectorKind.PACKAGE) == 2
        assert kinds.count(SelectorKind.METHOD) == 2
        assert DiscoverySelector(SelectorKind.CLASSPATH_ROOT, "src") in request.selectors
        assert request.filters == (
            DiscoveryFilter(FilterKind.CLASS_NAME, FilterMode.INCLUDE, (r".*Test.*",)),
            DiscoveryFilter(FilterKind.CLASS_NAME, FilterMode.EXCLUDE, (r".*Slow",)),
            DiscoveryFilter(FilterKind.PACKAGE, FilterMode.EXCLUDE, ("pkg.legacy",)),
            DiscoveryFilter(FilterKind.TAG, FilterMode.INCLUDE, ("smoke", "fast")),
        )

    def test_duplicate_roots_collapse(self) -> None:
        request = build_discovery_request(TestParameters(classpath_roots=["src", "src"]))
        assert len(request.selectors) == 1

    def test_reserved_configuration_is_dropped(self) -> None:
        parameters = TestParameters(configuration={"testfork.engine": "pytest", "xfail_strict": "true"})
        assert build_discovery_request(parameters).configuration == {"xfail_strict": "true"}


class TestEngineAdapterRun:
    def test_runs_engine_with_listener(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(sys, "path", list(sys.path))
        engine = MagicMock()
        listener = MagicMock()

        TestEngineAdapter(engine, listener).run(TestParameters(classpath_roots=[str(tmp_path)]))

        request, passed_listener = engine.execute.call_args.args
        assert passed_listener is listener
        assert request.selectors == (DiscoverySelector(SelectorKind.CLASSPATH_ROOT, str(tmp_path)),)
        assert sys.path[0] == str(tmp_path.resolve())

    def test_engine_errors_propagate(self) -> None:
        engine = MagicMock()
        engine.execute.side_effect = EngineError("boom")
        with pytest.raises(EngineError):
            TestEngineAdapter(engine, MagicMock()).run(TestParameters())


class TestEngineFactory:
    def test_pytest_engine(self) -> None:
        assert isinstance(get_test_engine("PyTest"), PytestEngine)

    def test_unknown_engine(self) -> None:
        with pytest.raises(ConfigurationError, match="Unsupported test engine"):
            get_test_engine("junit")


class TestResolveSelector:
    """Selector values turned into pytest arguments."""

    @pytest.fixture
    def package(self, pytester: pytest.Pytester):
        pytester.mkpydir("respkg")
        pytester.path.joinpath("respkg", "test_things.py").write_text(PACKAGE_TESTS)
        pytester.syspathinsert()
        return pytester.path / "respkg"

    def test_package(self, package) -> None:
        assert resolve_selector(DiscoverySelector(SelectorKind.PACKAGE, "respkg")) == str(package)

    def test_class(self, package) -> None:
        value = resolve_selector(DiscoverySelector(SelectorKind.CLASS, "respkg.test_things.TestA"))
        assert value == f"{package / 'test_things.py'}::TestA"

    def test_method_and_function(self, package) -> None:
        method = resolve_selector(DiscoverySelector(SelectorKind.METHOD, "respkg.test_things.TestA#test_one"))
        function = resolve_selector(DiscoverySelector(SelectorKind.METHOD, "respkg.test_things#test_free"))
        assert method == f"{package / 'test_things.py'}::TestA::test_one"
        assert function == f"{package / 'test_things.py'}::test_free"

    def test_unresolvable_values_pass_through(self) -> None:
        assert resolve_selector(DiscoverySelector(SelectorKind.CLASS, "nowhere.Nothing")) == "nowhere.Nothing"
        assert resolve_selector(DiscoverySelector(SelectorKind.RESOURCE, "tests/x.py")) == "tests/x.py"


class TestPytestEngine:
    """Full in-process pytest runs."""

    def test_outcomes(self, pytester: pytest.Pytester) -> None:
        pytester.makepyfile(test_engine_outcomes=OUTCOMES)

        events, builder = _execute(
            DiscoveryRequest(selectors=[DiscoverySelector(SelectorKind.RESOURCE, "test_engine_outcomes.py")])
        )
        results = _by_name(builder)

        assert builder.complete
        assert isinstance(events[-1], PlanFinished)
        assert results["test_pass"][1].status is TestStatus.SUCCESSFUL
        assert [(e.key, e.value) for e in results["test_pass"][1].reports] == [("answer", "42")]
        assert results["test_fail"][1].status is TestStatus.FAILED
        assert results["test_fail"][1].stack_trace.startswith("AssertionError")
        assert "test_fail(" in results["test_fail"][1].stack_trace
        assert results["test_skipped"][1].status is TestStatus.SKIPPED
        assert results["test_skipped"][1].skip_reason == "not today"
        assert results["test_aborted"][1].status is TestStatus.ABORTED
        assert results["test_xfail"][1].status is TestStatus.ABORTED
        assert results["test_method"][1].status is TestStatus.SUCCESSFUL
        assert results["test_method"][0].tags == frozenset({"smoke"})

        module_id, module_data = results["test_engine_outcomes.py"]
        assert module_id.is_container and not module_id.is_test
        assert module_data.status is TestStatus.SUCCESSFUL
        assert results["TestGroup"][0].parent_id == module_id.id
        assert results["test_method"][0].parent_id == results["TestGroup"][0].id

    def test_event_ordering(self, pytester: pytest.Pytester) -> None:
        pytester.makepyfile(test_engine_ordering=OUTCOMES)

        events, _ = _execute(
            DiscoveryRequest(selectors=[DiscoverySelector(SelectorKind.RESOURCE, "test_engine_ordering.py")])
        )

        started = [e.node.unique_id for e in events if isinstance(e, TestStarted)]
        finished = [e.node.unique_id for e in events if isinstance(e, TestFinished)]
        skipped = [e.node.unique_id for e in events if isinstance(e, TestSkipped)]
        assert started[0] == "test_engine_ordering.py"
        assert finished[-1] == "test_engine_ordering.py"
        assert sorted(started) == sorted(finished)
        assert not set(skipped) & set(started)
        start_at = {e.node.unique_id: i for i, e in enumerate(events) if isinstance(e, TestStarted)}
        finish_at = {e.node.unique_id: i for i, e in enumerate(events) if isinstance(e, TestFinished)}
        assert all(start_at[unique_id] < finish_at[unique_id] for unique_id in start_at)

    def test_tag_filter(self, pytester: pytest.Pytester) -> None:
        pytester.makepyfile(test_engine_tags=OUTCOMES)

        _, builder = _execute(
            DiscoveryRequest(
                selectors=[DiscoverySelector(SelectorKind.RESOURCE, "test_engine_tags.py")],
                filters=[DiscoveryFilter(FilterKind.TAG, FilterMode.INCLUDE, ("smoke",))],
            )
        )

        assert set(_by_name(builder)) == {"test_engine_tags.py", "TestGroup", "test_method"}

    def test_class_name_exclude_filter(self, pytester: pytest.Pytester) -> None:
        pytester.makepyfile(test_engine_classes=OUTCOMES)

        _, builder = _execute(
            DiscoveryRequest(
                selectors=[DiscoverySelector(SelectorKind.RESOURCE, "test_engine_classes.py")],
                filters=[DiscoveryFilter(FilterKind.CLASS_NAME, FilterMode.EXCLUDE, (r".*\.TestGroup",))],
            )
        )
        results = _by_name(builder)

        assert "test_method" not in results
        assert "test_pass" in results

    def test_collection_error_is_failed_container(self, pytester: pytest.Pytester) -> None:
        pytester.makepyfile(
            test_engine_broken="import module_that_does_not_exist\n",
            test_engine_fine="def test_ok():\n    pass\n",
        )

        _, builder = _execute(DiscoveryRequest())
        results = _by_name(builder)

        broken_id, broken = results["test_engine_broken.py"]
        assert broken_id.is_container
        assert broken.status is TestStatus.FAILED
        assert "module_that_does_not_exist" in broken.stack_trace
        assert results["test_ok"][1].status is TestStatus.SUCCESSFUL
        assert builder.complete

    def test_method_selector_through_adapter(self, pytester: pytest.Pytester) -> None:
        pytester.mkpydir("selpkg")
        pytester.path.joinpath("selpkg", "test_things.py").write_text(PACKAGE_TESTS)
        builder = ReportBuilder()
        parameters = TestParameters(
            select_methods=["selpkg.test_things.TestA#test_one"],
            classpath_roots=[str(pytester.path)],
        )

        TestEngineAdapter(PytestEngine(extra_args=["-p", "no:cacheprovider"]), builder.handle).run(parameters)

        tests = [identifier.display_name for identifier in builder.test_report() if identifier.is_test]
        assert tests == ["test_one"]

    def test_usage_error_raises(self, pytester: pytest.Pytester) -> None:
        engine = PytestEngine(extra_args=["--no-such-pytest-option"])

        with pytest.raises(EngineError, match="exit code 4"):
            engine.execute(DiscoveryRequest(), MagicMock())

    def test_package_filters(self, pytester: pytest.Pytester) -> None:
        pytester.mkpydir("pkgfilter")
        pytester.mkpydir("pkgfilter/deep")
        pytester.mkpydir("pkgfilterx")
        pytester.path.joinpath("pkgfilter", "test_top.py").write_text("def test_top():\n    pass\n")
        pytester.path.joinpath("pkgfilter", "deep", "test_deep.py").write_text("def test_deep():\n    pass\n")
        pytester.path.joinpath("pkgfilterx", "test_other.py").write_text("def test_other():\n    pass\n")

        def tests_for(mode: FilterMode) -> set[str]:
            _, builder = _execute(DiscoveryRequest(filters=[DiscoveryFilter(FilterKind.PACKAGE, mode, ("pkgfilter",))]))
            return {identifier.display_name for identifier in builder.test_report() if identifier.is_test}

        assert tests_for(FilterMode.INCLUDE) == {"test_top", "test_deep"}
        assert tests_for(FilterMode.EXCLUDE) == {"test_other"}

    def test_all_active_filters_apply(self, pytester: pytest.Pytester) -> None:
        pytester.mkpydir("combo_alpha")
        pytester.mkpydir("combo_beta")
        pytester.path.joinpath("combo_alpha", "test_mix.py").write_text(
            "import pytest\n"
            "\n"
            "@pytest.mark.smoke\n"
            "class TestKeep:\n"
            "    def test_kept(self):\n"
            "        pass\n"
            "\n"
            "@pytest.mark.smoke\n"
            "class TestDrop:\n"
            "    def test_dropped_by_class(self):\n"
            "        pass\n"
            "\n"
            "class TestUntagged:\n"
            "    def test_dropped_by_tag(self):\n"
            "        pass\n"
        )
        pytester.path.joinpath("combo_beta", "test_other.py").write_text(
            "import pytest\n"
            "\n"
            "@pytest.mark.smoke\n"
            "class TestKeep:\n"
            "    def test_dropped_by_package(self):\n"
            "        pass\n"
        )

        _, builder = _execute(
            DiscoveryRequest(
                filters=[
                    DiscoveryFilter(FilterKind.CLASS_NAME, FilterMode.EXCLUDE, (r".*\.TestDrop",)),
                    DiscoveryFilter(FilterKind.PACKAGE, FilterMode.INCLUDE, ("combo_alpha",)),
                    DiscoveryFilter(FilterKind.TAG, FilterMode.INCLUDE, ("smoke",)),
                ]
            )
        )

        tests = [identifier.display_name for identifier in builder.test_report() if identifier.is_test]
        assert tests == ["test_kept"]
        assert builder.complete


class TestReportingPluginFilters:
    """Filter decisions on nodes that carry partial source information."""

    @pytest.fixture
    def plugin(self) -> ReportingPlugin:
        return ReportingPlugin(
            MagicMock(),
            [
                DiscoveryFilter(FilterKind.PACKAGE, FilterMode.INCLUDE, ("pkg",)),
                DiscoveryFilter(FilterKind.CLASS_NAME, FilterMode.INCLUDE, (r"pkg\..*",)),
            ],
        )

    def test_sub_packages_match(self, plugin: ReportingPlugin) -> None:
        node = EngineNode("n", source=TestSource(module="pkg.sub.test_mod", qualname="test_it"))
        assert plugin.accepts(node)

    def test_prefix_of_another_name_does_not_match(self, plugin: ReportingPlugin) -> None:
        node = EngineNode("n", source=TestSource(module="pkgextra.test_mod", qualname="test_it"))
        assert not plugin.accepts(node)

    def test_nodes_without_module_pass(self, plugin: ReportingPlugin) -> None:
        assert plugin.accepts(EngineNode("dir", source=TestSource(path="/somewhere")))
        assert plugin.accepts(EngineNode("bare"))
