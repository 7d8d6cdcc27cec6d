#
# src/testfork/engine/__init__.py
#
"""
Test engine boundary: discovery requests, lifecycle events and the pytest engine.
"""
from .adapter import TestEngineAdapter, build_discovery_request, engine_name
from .factory import get_test_engine
from .protocols import (
    DiscoveryFilter,
    DiscoveryRequest,
    DiscoverySelector,
    EngineEvent,
    EngineNode,
    EngineStatus,
    EventListener,
    ExecutionResult,
    FilterKind,
    FilterMode,
    PlanFinished,
    ReportPublished,
    SelectorKind,
    TestEngine,
    TestFinished,
    TestSkipped,
    TestSource,
    TestStarted,
)
from .pytest_engine import PytestEngine

__all__ = [
    "DiscoveryFilter",
    "DiscoveryRequest",
    "DiscoverySelector",
    "EngineEvent",
    "EngineNode",
    "EngineStatus",
    "EventListener",
    "ExecutionResult",
    "FilterKind",
    "FilterMode",
    "PlanFinished",
    "PytestEngine",
    "ReportPublished",
    "SelectorKind",
    "TestEngine",
    "TestEngineAdapter",
    "TestFinished",
    "TestSkipped",
    "TestSource",
    "TestStarted",
    "build_discovery_request",
    "engine_name",
    "get_test_engine",
]

# 🔼⚙️
