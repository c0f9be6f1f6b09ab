"""Row numbers for nested columns and the results that iterators produce."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Tuple

MAX_DEPTH = 6
_MAX_INT64 = (1 << 63) - 1


class RowNumber:
    """Row numbers identifying a value in a tree of nested columns.

    There is one number per nesting level, from the top level down; -1 marks
    an undefined lower level. Up to six levels are supported. Missing trailing
    levels given to the constructor are zero.
    """

    __slots__ = ("_levels",)

    def __init__(self, *levels: int) -> None:
        if len(levels) > MAX_DEPTH:
            raise ValueError(f"at most {MAX_DEPTH} levels are supported")
        self._levels = list(levels) + [0] * (MAX_DEPTH - len(levels))

    def __getitem__(self, level: int) -> int:
        return self._levels[level]

    def __iter__(self) -> Iterator[int]:
        return iter(self._levels)

    def __len__(self) -> int:
        return MAX_DEPTH

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RowNumber):
            return NotImplemented
        return self._levels == other._levels

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"RowNumber({', '.join(map(str, self._levels))})"

    def copy(self) -> "RowNumber":
        """Return an independent copy."""
        return RowNumber(*self._levels)

    def valid(self) -> bool:
        """True when the top-level row number is defined."""
        return self._levels[0] >= 0

    def next(self, repetition_level: int, definition_level: int) -> None:
        """Advance according to a value's repetition and definition levels."""
        levels = self._levels
        levels[repetition_level] += 1
        for level in range(repetition_level + 1, definition_level + 1):
            levels[level] = 0
        for level in range(definition_level + 1, MAX_DEPTH):
            levels[level] = -1

    def skip(self, num_rows: int) -> None:
        """Skip rows at the top level, leaving lower levels undefined."""
        self._levels[0] += num_rows
        for level in range(1, MAX_DEPTH):
            self._levels[level] = -1


def empty_row_number() -> RowNumber:
    """Return a row number with every level undefined."""
    return RowNumber(*([-1] * MAX_DEPTH))


def max_row_number() -> RowNumber:
    """Return the largest representable top-level row number."""
    return RowNumber(_MAX_INT64)


def compare_row_numbers(up_to_definition_level: int, a: RowNumber, b: RowNumber) -> int:
    """Compare two row numbers level by level down to the given level; -1, 0 or 1."""
    for level in range(up_to_definition_level + 1):
        if a[level] < b[level]:
            return -1
        if a[level] > b[level]:
            return 1
    return 0


def truncate_row_number(definition_level_to_keep: int, row_number: RowNumber) -> RowNumber:
    """Return a copy keeping levels down to the given one and undefining the rest."""
    kept = [row_number[level] for level in range(definition_level_to_keep + 1)]
    return RowNumber(*(kept + [-1] * (MAX_DEPTH - len(kept))))


@dataclass
class IteratorResult:
    """A row number with the named column values collected for it."""

    row_number: RowNumber = field(default_factory=empty_row_number)
    entries: List[Tuple[str, Any]] = field(default_factory=list)

    def append(self, other: "IteratorResult") -> None:
        """Add all entries of another result."""
        self.entries.extend(other.entries)

    def append_value(self, key: str, value: Any) -> None:
        """Add one named value."""
        self.entries.append((key, value))

    def to_map(self) -> Dict[str, List[Any]]:
        """Group values by column name, keeping the order of values per column."""
        grouped: Dict[str, List[Any]] = {}
        for key, value in self.entries:
            grouped.setdefault(key, []).append(value)
        return grouped

    def columns(self, *names: str) -> List[List[Any]]:
        """Return the values of each named column, in the order the names are given."""
        positions: Dict[str, int] = {}
        for position, name in enumerate(names):
            positions.setdefault(name, position)
        result: List[List[Any]] = [[] for _ in names]
        for key, value in self.entries:
            position = positions.get(key)
            if position is not None:
                result[position].append(value)
        return result