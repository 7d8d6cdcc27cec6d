# src/testfork/model/identifier.py

"""
Immutable identifier of a discovered test or container.
"""

from attrs import define, field

from testfork.protocol import WireReader, WireWriter


def _empty_if_none(value: str | None) -> str:
    return "" if value is None else value


@define(frozen=True, slots=True)
class TestIdentifier:
    """
    Unique identifier of a test node within one run.

    Identity (equality and hashing) is the pair ``(id, parent_id)``; the
    remaining fields are descriptive only.
    """

    __test__ = False

    # Not human readable, unique among the identifiers of a run.
    id: str = field()
    # Blank when the node has no parent.
    parent_id: str = field(default="", converter=_empty_if_none)
    display_name: str = field(default="", eq=False)
    is_test: bool = field(default=False, eq=False)
    is_container: bool = field(default=False, eq=False)
    tags: frozenset[str] = field(factory=frozenset, converter=frozenset, eq=False)
    # Free-form, for diagnostics only. No format is guaranteed.
    test_source: str = field(default="", converter=_empty_if_none, eq=False)

    def __str__(self) -> str:
        if self.is_test and self.is_container:
            kind = "test & container"
        elif self.is_test:
            kind = "test"
        elif self.is_container:
            kind = "container"
        else:
            kind = "nor test nor container"
        parts = [kind]
        if self.tags:
            parts.append(f"tags={sorted(self.tags)}")
        if self.test_source:
            parts.append(f"source={self.test_source}")
        return f"{self.id}:{self.display_name}{{{', '.join(parts)}}}"

    def write_to(self, writer: WireWriter) -> None:
        writer.write_utf(self.id)
        writer.write_utf(self.parent_id)
        writer.write_utf(self.display_name)
        writer.write_bool(self.is_test)
        writer.write_bool(self.is_container)
        writer.write_str_set(sorted(self.tags))
        writer.write_utf(self.test_source)

    @classmethod
    def read_from(cls, reader: WireReader) -> "TestIdentifier":
        return cls(
            id=reader.read_utf(),
            parent_id=reader.read_utf(),
            display_name=reader.read_utf(),
            is_test=reader.read_bool(),
            is_container=reader.read_bool(),
            tags=reader.read_str_set(),
            test_source=reader.read_utf(),
        )


# 🔼⚙️
