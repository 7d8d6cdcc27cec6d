#
# src/testfork/engine/protocols.py
#
"""
Defines the boundary between testfork and the test engine: the discovery
request handed to the engine and the events it emits while running.

Event ordering contract for a single node: TestStarted always precedes
TestFinished, and TestSkipped is never combined with either. Containers are
started before their first child and finished after their last one.
"""

from collections.abc import Callable, Mapping
from enum import Enum, auto
from typing import Protocol, TypeAlias, runtime_checkable

from attrs import define, field


class SelectorKind(Enum):
    PACKAGE = auto()
    CLASS = auto()
    METHOD = auto()
    RESOURCE = auto()
    CLASSPATH_ROOT = auto()


class FilterKind(Enum):
    CLASS_NAME = auto()
    PACKAGE = auto()
    TAG = auto()


class FilterMode(Enum):
    INCLUDE = auto()
    EXCLUDE = auto()


@define(frozen=True, slots=True)
class DiscoverySelector:
    """One criterion identifying candidate tests."""

    kind: SelectorKind
    value: str


@define(frozen=True, slots=True)
class DiscoveryFilter:
    """Keeps (INCLUDE) or drops (EXCLUDE) nodes matching any of the patterns."""

    kind: FilterKind
    mode: FilterMode
    patterns: tuple[str, ...] = field(converter=tuple)


@define(frozen=True, slots=True)
class DiscoveryRequest:
    """What the engine should discover and run. Selectors are unioned, filters all apply."""

    selectors: tuple[DiscoverySelector, ...] = field(factory=tuple, converter=tuple)
    filters: tuple[DiscoveryFilter, ...] = field(factory=tuple, converter=tuple)
    configuration: Mapping[str, str] = field(factory=dict)


@define(frozen=True, slots=True)
class TestSource:
    """Where a node was found. Rendered to a free-form string for reports."""

    __test__ = False

    module: str | None = None
    qualname: str | None = None
    path: str | None = None
    lineno: int | None = None

    @property
    def declaring_type(self) -> str | None:
        """``module.Class`` for methods, ``module`` for functions, None when unknown."""
        if self.module is None:
            return None
        if self.qualname:
            owner, sep, _ = self.qualname.rpartition(".")
            if sep:
                return f"{self.module}.{owner}"
        return self.module

    def __str__(self) -> str:
        location = self.path or "<unknown>"
        if self.lineno is not None:
            location = f"{location}:{self.lineno}"
        name = ".".join(part for part in (self.module, self.qualname) if part)
        return f"{name} ({location})" if name else location


@define(frozen=True, slots=True)
class EngineNode:
    """Engine-native description of a discovered test or container."""

    unique_id: str
    parent_id: str | None = None
    display_name: str = ""
    is_test: bool = False
    is_container: bool = False
    tags: frozenset[str] = field(factory=frozenset, converter=frozenset)
    source: TestSource | None = None


class EngineStatus(Enum):
    SUCCESSFUL = auto()
    ABORTED = auto()
    FAILED = auto()


@define(frozen=True, slots=True)
class ExecutionResult:
    """
    Terminal result of a node.

    ``error`` is the exception that ended the node, if any; ``trace`` holds
    already rendered failure text for errors that are no longer available
    as exception objects (e.g. collection errors).
    """

    status: EngineStatus
    error: BaseException | None = None
    trace: str = ""


# --- Events ---
@define(frozen=True, slots=True)
class TestSkipped:
    __test__ = False

    node: EngineNode
    reason: str | None = None


@define(frozen=True, slots=True)
class TestStarted:
    __test__ = False

    node: EngineNode


@define(frozen=True, slots=True)
class TestFinished:
    __test__ = False

    node: EngineNode
    result: ExecutionResult


@define(frozen=True, slots=True)
class ReportPublished:
    node: EngineNode
    timestamp: int  # epoch milliseconds
    entries: Mapping[str, str]


@define(frozen=True, slots=True)
class PlanFinished:
    pass


EngineEvent: TypeAlias = TestSkipped | TestStarted | TestFinished | ReportPublished | PlanFinished
EventListener: TypeAlias = Callable[[EngineEvent], None]


@runtime_checkable
class TestEngine(Protocol):
    """
    Protocol for an engine that discovers and runs tests.
    """

    def execute(self, request: DiscoveryRequest, listener: EventListener) -> None:
        """
        Discovers and runs the requested tests, blocking until the plan finishes.

        Args:
            request: Selectors, filters and configuration of the run.
            listener: Receives every lifecycle event, in order.

        Raises:
            EngineError: if discovery or execution fails as a whole.
        """
        ...


# 🔼⚙️
