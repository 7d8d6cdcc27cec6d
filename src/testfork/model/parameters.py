# src/testfork/model/parameters.py

"""
Attrs-based models of the parameters sent to the forked test process.
"""

import io
import logging
from typing import Any

from attrs import define, field, mutable

from testfork.exceptions import ProtocolVersionError, WireFormatError
from testfork.protocol import PROTOCOL_VERSION, WireReader, WireWriter


def _canonical_log_level(value: str) -> str:
    """Upper-cases a level name and resolves aliases such as WARN and FATAL."""
    name = value.upper()
    rank = logging.getLevelNamesMapping().get(name)
    return logging.getLevelName(rank) if rank is not None else name


def _validate_log_level(inst: Any, attr: Any, value: str) -> None:
    """Validator for standard logging level names."""
    if value.upper() not in logging.getLevelNamesMapping():
        raise ValueError(
            f"Invalid log_level '{value}'. Must be one of {list(logging.getLevelNamesMapping())}."
        )


@mutable(slots=True)
class IncludeExcludeList:
    """
    Names or patterns that include or exclude nodes from the test plan.

    Entries of each list are OR-combined. An empty list does not constrain.
    """

    included: list[str] = field(factory=list)
    excluded: list[str] = field(factory=list)

    def is_empty(self) -> bool:
        return not self.included and not self.excluded

    def write_to(self, writer: WireWriter) -> None:
        writer.write_str_list(self.included)
        writer.write_str_list(self.excluded)

    @classmethod
    def read_from(cls, reader: WireReader) -> "IncludeExcludeList":
        return cls(included=reader.read_str_list(), excluded=reader.read_str_list())


@mutable(slots=True)
class TestParameters:
    """
    Everything the forked process needs to know to discover and run tests.

    Built once by the parent, serialized, and treated as read-only by the child.
    """

    __test__ = False

    # Engine configuration parameters (pytest ini overrides).
    configuration: dict[str, str] = field(factory=dict)
    # Drop engine frames from failure stack traces.
    filter_stack_traces: bool = field(default=True)

    # Discovery selectors; their results are unioned.
    select_packages: list[str] = field(factory=list)
    select_classes: list[str] = field(factory=list)
    select_methods: list[str] = field(factory=list)
    select_resources: list[str] = field(factory=list)
    # Import roots, also searched for tests. Set semantics.
    classpath_roots: list[str] = field(factory=list)

    # Filters; a node must pass all that are active.
    filter_class_name_patterns: IncludeExcludeList = field(factory=IncludeExcludeList)
    filter_packages: IncludeExcludeList = field(factory=IncludeExcludeList)
    filter_tags: IncludeExcludeList = field(factory=IncludeExcludeList)

    log_level: str = field(default="INFO", converter=_canonical_log_level, validator=_validate_log_level)

    @property
    def numeric_log_level(self) -> int:
        return logging.getLevelNamesMapping()[self.log_level.upper()]

    def write_to(self, writer: WireWriter) -> None:
        writer.write_byte(PROTOCOL_VERSION)
        writer.write_str_map(self.configuration)
        writer.write_bool(self.filter_stack_traces)

        writer.write_str_list(self.select_packages)
        writer.write_str_list(self.select_classes)
        writer.write_str_list(self.select_methods)
        writer.write_str_list(self.select_resources)

        writer.write_str_list(self.classpath_roots)

        self.filter_class_name_patterns.write_to(writer)
        self.filter_packages.write_to(writer)
        self.filter_tags.write_to(writer)
        writer.write_int(self.numeric_log_level)

    @classmethod
    def read_from(cls, reader: WireReader) -> "TestParameters":
        version = reader.read_byte()
        if version != PROTOCOL_VERSION:
            raise ProtocolVersionError(PROTOCOL_VERSION, version)
        configuration = reader.read_str_map()
        filter_stack_traces = reader.read_bool()

        select_packages = reader.read_str_list()
        select_classes = reader.read_str_list()
        select_methods = reader.read_str_list()
        select_resources = reader.read_str_list()

        classpath_roots = reader.read_str_list()

        filter_class_name_patterns = IncludeExcludeList.read_from(reader)
        filter_packages = IncludeExcludeList.read_from(reader)
        filter_tags = IncludeExcludeList.read_from(reader)

        rank = reader.read_int()
        level_name = logging.getLevelName(rank)
        if level_name not in logging.getLevelNamesMapping():
            raise WireFormatError(f"Unknown logging level rank {rank}")

        return cls(
            configuration=configuration,
            filter_stack_traces=filter_stack_traces,
            select_packages=select_packages,
            select_classes=select_classes,
            select_methods=select_methods,
            select_resources=select_resources,
            classpath_roots=classpath_roots,
            filter_class_name_patterns=filter_class_name_patterns,
            filter_packages=filter_packages,
            filter_tags=filter_tags,
            log_level=level_name,
        )

    def to_bytes(self) -> bytes:
        buffer = io.BytesIO()
        self.write_to(WireWriter(buffer))
        return buffer.getvalue()

    @classmethod
    def from_bytes(cls, payload: bytes) -> "TestParameters":
        reader = WireReader(io.BytesIO(payload))
        parameters = cls.read_from(reader)
        if not reader.at_end():
            raise WireFormatError("Trailing bytes after test parameters")
        return parameters


# 🔼⚙️
