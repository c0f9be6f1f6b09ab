"""An in-memory columnar file: values, pages, column chunks, row groups and schema."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

ValueData = Union[bytes, str, int, float, bool, None]


@dataclass(frozen=True)
class Value:
    """A column value with its repetition and definition levels; None is null."""

    data: ValueData = None
    repetition_level: int = 0
    definition_level: int = 0

    def byte_array(self) -> bytes:
        """Return the value as bytes; numbers are little-endian encoded."""
        data = self.data
        if data is None:
            return b""
        if isinstance(data, bytes):
            return data
        if isinstance(data, str):
            return data.encode("utf-8")
        if isinstance(data, bool):
            return bytes([int(data)])
        if isinstance(data, int):
            return (data & ((1 << 64) - 1)).to_bytes(8, "little")
        return struct.pack("<d", data)

    def int64(self) -> int:
        """Return the value as an integer; null is zero."""
        data = self.data
        if data is None:
            return 0
        if isinstance(data, (bool, int)):
            return int(data)
        if isinstance(data, float):
            return int(data)
        raise TypeError(f"value {data!r} is not numeric")

    def __str__(self) -> str:
        data = self.data
        if data is None:
            return ""
        if isinstance(data, bytes):
            return data.decode("utf-8", errors="replace")
        if isinstance(data, bool):
            return "true" if data else "false"
        return str(data)


def _order_key(value: Value) -> Tuple[int, object]:
    if isinstance(value.data, (bool, int, float)):
        return 0, value.data
    return 1, value.byte_array()


@dataclass
class ColumnIndex:
    """Per-page minimum and maximum values of a column chunk."""

    min_values: List[Value] = field(default_factory=list)
    max_values: List[Value] = field(default_factory=list)

    def num_pages(self) -> int:
        """Number of pages described by the index."""
        return len(self.min_values)


@dataclass
class Page:
    """A page of column values with an optional dictionary."""

    values: List[Value] = field(default_factory=list)
    dictionary: Optional[List[Value]] = None

    def num_rows(self) -> int:
        """Number of top-level rows that start in this page."""
        return sum(1 for value in self.values if value.repetition_level == 0)

    def bounds(self) -> Optional[Tuple[Value, Value]]:
        """Return the minimum and maximum non-null values, or None if there are none."""
        present = [value for value in self.values if value.data is not None]
        if not present:
            return None
        return min(present, key=_order_key), max(present, key=_order_key)


@dataclass
class ColumnChunk:
    """The pages of one column within a row group, with an optional index."""

    pages: List[Page] = field(default_factory=list)
    column_index: Optional[ColumnIndex] = None


@dataclass
class RowGroup:
    """A horizontal slice of a file holding one chunk per leaf column."""

    column_chunks: List[ColumnChunk] = field(default_factory=list)

    def num_rows(self) -> int:
        """Number of top-level rows, counted from the first column."""
        if not self.column_chunks:
            return 0
        return sum(page.num_rows() for page in self.column_chunks[0].pages)


@dataclass
class ColumnNode:
    """A node of the schema tree; leaves carry their column index, groups -1."""

    name: str
    children: List["ColumnNode"] = field(default_factory=list)
    index: int = -1

    def column(self, name: str) -> Optional["ColumnNode"]:
        """Return the child with the given name, or None."""
        return next((child for child in self.children if child.name == name), None)


@dataclass
class ColumnFile:
    """A schema and the row groups holding its data."""

    root: ColumnNode
    row_groups: List[RowGroup] = field(default_factory=list)


def get_column_index_by_path(column_file: ColumnFile, path: str) -> Tuple[int, int]:
    """Return the column index and depth of a dotted path, or (-1, -1) if absent."""
    node = column_file.root
    depth = 0
    for name in path.split("."):
        child = node.column(name)
        if child is None:
            return -1, -1
        node = child
        depth += 1
    return node.index, depth


def has_column(column_file: ColumnFile, path: str) -> bool:
    """True when the dotted path names a leaf column."""
    index, _ = get_column_index_by_path(column_file, path)
    return index >= 0