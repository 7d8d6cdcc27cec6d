#
# src/testfork/engine/factory.py
#
"""
Factory for creating TestEngine instances.
"""
import structlog

from testfork.engine.protocols import TestEngine
from testfork.engine.pytest_engine import PytestEngine
from testfork.exceptions import ConfigurationError
from testfork.telemetry import StructLogger

log: StructLogger = structlog.get_logger("engine.factory")

ENGINE_MAP = {
    "pytest": PytestEngine,
}


def get_test_engine(engine_name: str) -> TestEngine:
    """
    Factory function to get an instance of a TestEngine.
    """
    engine_key = engine_name.lower()
    engine_class = ENGINE_MAP.get(engine_key)

    if not engine_class:
        log.error("Unsupported test engine specified", engine=engine_name)
        raise ConfigurationError(
            f"Unsupported test engine: '{engine_name}'. "
            f"Available engines: {list(ENGINE_MAP.keys())}"
        )

    log.debug("Instantiating test engine", engine=engine_name)
    try:
        return engine_class()
    except Exception as e:
        log.error("Failed to instantiate test engine", engine=engine_name, error=str(e))
        raise ConfigurationError(f"Failed to initialize engine '{engine_name}'", details=e) from e

# 🔼⚙️
