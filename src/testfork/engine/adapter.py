# src/testfork/engine/adapter.py

"""
Maps TestParameters onto a test engine discovery request and runs it.
"""

import sys
from pathlib import Path

import structlog

from testfork.engine.protocols import (
    DiscoveryFilter,
    DiscoveryRequest,
    DiscoverySelector,
    EventListener,
    FilterKind,
    FilterMode,
    SelectorKind,
    TestEngine,
)
from testfork.model import TestParameters
from testfork.telemetry import StructLogger

log: StructLogger = structlog.get_logger("engine.adapter")

# Configuration keys with this prefix steer testfork itself and never reach the engine.
RESERVED_CONFIGURATION_PREFIX = "testfork."
ENGINE_CONFIGURATION_KEY = "testfork.engine"
DEFAULT_ENGINE = "pytest"


def build_discovery_request(parameters: TestParameters) -> DiscoveryRequest:
    """Translates parameters into selectors and independent include/exclude filters."""
    selectors: list[DiscoverySelector] = []
    for kind, values in (
        (SelectorKind.PACKAGE, parameters.select_packages),
        (SelectorKind.CLASS, parameters.select_classes),
        (SelectorKind.METHOD, parameters.select_methods),
        (SelectorKind.RESOURCE, parameters.select_resources),
    ):
        selectors.extend(DiscoverySelector(kind, value) for value in values)
    # Classpath roots have set semantics.
    selectors.extend(
        DiscoverySelector(SelectorKind.CLASSPATH_ROOT, root)
        for root in dict.fromkeys(parameters.classpath_roots)
    )

    filters: list[DiscoveryFilter] = []
    for kind, include_exclude in (
        (FilterKind.CLASS_NAME, parameters.filter_class_name_patterns),
        (FilterKind.PACKAGE, parameters.filter_packages),
        (FilterKind.TAG, parameters.filter_tags),
    ):
        if include_exclude.included:
            filters.append(DiscoveryFilter(kind, FilterMode.INCLUDE, include_exclude.included))
        if include_exclude.excluded:
            filters.append(DiscoveryFilter(kind, FilterMode.EXCLUDE, include_exclude.excluded))

    configuration = {
        key: value
        for key, value in parameters.configuration.items()
        if not key.startswith(RESERVED_CONFIGURATION_PREFIX)
    }
    return DiscoveryRequest(selectors=selectors, filters=filters, configuration=configuration)


def engine_name(parameters: TestParameters) -> str:
    return parameters.configuration.get(ENGINE_CONFIGURATION_KEY, DEFAULT_ENGINE)


class TestEngineAdapter:
    """Hands a parameterized request to the engine with a single event listener."""

    __test__ = False

    def __init__(self, engine: TestEngine, listener: EventListener):
        self.engine = engine
        self.listener = listener
        self._log = log.bind(engine=type(engine).__name__)

    def run(self, parameters: TestParameters) -> None:
        """Runs the whole plan; returns once the engine is done with it."""
        for root in reversed(list(dict.fromkeys(parameters.classpath_roots))):
            resolved = str(Path(root).resolve())
            if resolved not in sys.path:
                sys.path.insert(0, resolved)

        request = build_discovery_request(parameters)
        self._log.info(
            "Executing test plan",
            selectors=len(request.selectors),
            filters=len(request.filters),
        )
        self.engine.execute(request, self.listener)
        self._log.info("Test plan execution returned")


# 🔼⚙️
