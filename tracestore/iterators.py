"""Composable iterators over columnar data: column scans, joins and unions."""

from __future__ import annotations

from itertools import islice
from typing import (
    Generator,
    Iterable,
    Iterator,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
)

from tracestore.columnar import RowGroup, Value
from tracestore.predicates import InstrumentedPredicate, Predicate
from tracestore.rownumber import (
    IteratorResult,
    RowNumber,
    compare_row_numbers,
    empty_row_number,
    max_row_number,
    truncate_row_number,
)


class _QueryIterator(Protocol):
    def next(self) -> Optional[IteratorResult]: ...

    def seek_to(
        self, row_number: RowNumber, definition_level: int
    ) -> Optional[IteratorResult]: ...

    def close(self) -> None: ...


class _GroupPredicate(Protocol):
    def keep_group(self, group: IteratorResult) -> bool: ...


class _IteratorBase:
    """Python iteration and context management on top of next() and close()."""

    def next(self) -> Optional[IteratorResult]:  # pragma: no cover - overridden
        raise NotImplementedError

    def close(self) -> None:  # pragma: no cover - overridden
        raise NotImplementedError

    def __iter__(self) -> Iterator[IteratorResult]:
        while True:
            result = self.next()
            if result is None:
                return
            yield result

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _batches(values: Iterable[Value], size: int) -> Iterator[List[Value]]:
    source = iter(values)
    while True:
        batch = list(islice(source, size))
        if not batch:
            return
        yield batch


class ColumnIterator(_IteratorBase):
    """Iterates one column across row groups, applying a pushdown predicate.

    Every chunk, page and value is passed through an InstrumentedPredicate,
    available as ``filter``, which records what was inspected and kept.
    Results are read by calling next() until it returns None.
    """

    def __init__(
        self,
        row_groups: Sequence[RowGroup],
        column: int,
        column_name: str = "",
        read_size: int = 1000,
        filter: Optional[Predicate] = None,
        select_as: str = "",
    ) -> None:
        if read_size <= 0:
            raise ValueError("read_size must be positive")
        self.column = column
        self.column_name = column_name
        self.select_as = select_as
        self.filter = InstrumentedPredicate(pred=filter)
        self._row_groups = list(row_groups)
        self._read_size = read_size
        self._seek_target: Optional[RowNumber] = None
        self._source: Generator[Tuple[RowNumber, Value], None, None] = self._iterate()

    def _should_skip(self, current: RowNumber, num_rows: int) -> bool:
        if self._seek_target is None:
            return False
        following = current.copy()
        following.skip(num_rows)
        return compare_row_numbers(0, following, self._seek_target) == -1

    def _iterate(self) -> Generator[Tuple[RowNumber, Value], None, None]:
        row = empty_row_number()
        for group in self._row_groups:
            chunk = group.column_chunks[self.column]
            group_rows = group.num_rows()
            if self._should_skip(row, group_rows) or not self.filter.keep_column_chunk(chunk):
                row.skip(group_rows)
                continue

            for page in chunk.pages:
                page_rows = page.num_rows()
                if self._should_skip(row, page_rows) or not self.filter.keep_page(page):
                    row.skip(page_rows)
                    continue

                for batch in _batches(page.values, self._read_size):
                    kept = []
                    for value in batch:
                        # Row numbers advance for every value, kept or not.
                        row.next(value.repetition_level, value.definition_level)
                        if self.filter.keep_value(value):
                            kept.append((row.copy(), value))
                    yield from kept

    def _next_pair(self) -> Optional[Tuple[RowNumber, Value]]:
        try:
            return next(self._source)
        except StopIteration:
            return None

    def _make_result(self, row_number: RowNumber, value: Value) -> IteratorResult:
        result = IteratorResult(row_number=row_number.copy())
        if self.select_as:
            result.append_value(self.select_as, value)
        return result

    def next(self) -> Optional[IteratorResult]:
        """Return the next matching value, or None when finished."""
        pair = self._next_pair()
        if pair is None:
            return None
        return self._make_result(*pair)

    def seek_to(
        self, row_number: RowNumber, definition_level: int
    ) -> Optional[IteratorResult]:
        """Move to the next result at or after the given row number."""
        self._seek_target = row_number.copy()
        pair = self._next_pair()
        while pair is not None and compare_row_numbers(definition_level, pair[0], row_number) < 0:
            pair = self._next_pair()
        if pair is None:
            return None
        return self._make_result(*pair)

    def close(self) -> None:
        """Stop iterating; later calls to next() return None."""
        self._source.close()


class JoinIterator(_IteratorBase):
    """Joins iterators on rows that all of them produce at the given definition level."""

    def __init__(
        self,
        definition_level: int,
        iterators: Sequence[_QueryIterator],
        pred: Optional[_GroupPredicate] = None,
    ) -> None:
        self.definition_level = definition_level
        self._iters = list(iterators)
        self._peeks: List[Optional[IteratorResult]] = [None] * len(self._iters)
        self._pred = pred

    def _peek(self, position: int) -> Optional[IteratorResult]:
        if self._peeks[position] is None:
            self._peeks[position] = self._iters[position].next()
        return self._peeks[position]

    def next(self) -> Optional[IteratorResult]:
        """Return the next joined row, or None when any iterator is exhausted."""
        level = self.definition_level
        while True:
            lowest = max_row_number()
            highest = empty_row_number()
            lowest_count = 0

            for position in range(len(self._iters)):
                result = self._peek(position)
                if result is None:
                    return None
                order = compare_row_numbers(level, result.row_number, lowest)
                if order == -1:
                    lowest = result.row_number
                    lowest_count = 1
                elif order == 0:
                    lowest_count += 1
                if compare_row_numbers(level, result.row_number, highest) == 1:
                    highest = result.row_number

            if lowest_count == len(self._iters):
                joined = self._collect(lowest)
                if self._pred is None or self._pred.keep_group(joined):
                    return joined

            # No join can exist before the highest row seen.
            self._seek_all(highest, level)

    def seek_to(
        self, row_number: RowNumber, definition_level: int
    ) -> Optional[IteratorResult]:
        """Skip every iterator to the given row and return the next join."""
        self._seek_all(row_number, definition_level)
        return self.next()

    def _seek_all(self, row_number: RowNumber, definition_level: int) -> None:
        target = truncate_row_number(definition_level, row_number)
        for position, iterator in enumerate(self._iters):
            peeked = self._peeks[position]
            if peeked is None or compare_row_numbers(
                definition_level, peeked.row_number, target
            ) == -1:
                self._peeks[position] = iterator.seek_to(target, definition_level)

    def _collect(self, row_number: RowNumber) -> IteratorResult:
        result = IteratorResult(row_number=row_number.copy())
        for position, iterator in enumerate(self._iters):
            while True:
                peeked = self._peeks[position]
                if peeked is None or compare_row_numbers(
                    self.definition_level, peeked.row_number, row_number
                ) != 0:
                    break
                result.append(peeked)
                self._peeks[position] = iterator.next()
        return result

    def close(self) -> None:
        """Close every joined iterator."""
        for iterator in self._iters:
            iterator.close()


class UnionIterator(_IteratorBase):
    """Produces every result of every iterator, merging those on the same row."""

    def __init__(
        self,
        definition_level: int,
        iterators: Sequence[_QueryIterator],
        pred: Optional[_GroupPredicate] = None,
    ) -> None:
        self.definition_level = definition_level
        self._iters = list(iterators)
        self._peeks: List[Optional[IteratorResult]] = [None] * len(self._iters)
        self._pred = pred

    def _peek(self, position: int) -> Optional[IteratorResult]:
        if self._peeks[position] is None:
            self._peeks[position] = self._iters[position].next()
        return self._peeks[position]

    def next(self) -> Optional[IteratorResult]:
        """Return the next row from any iterator, or None when all are exhausted."""
        level = self.definition_level
        while True:
            lowest = max_row_number()
            lowest_positions: List[int] = []

            for position in range(len(self._iters)):
                result = self._peek(position)
                if result is None:
                    continue
                order = compare_row_numbers(level, result.row_number, lowest)
                if order == -1:
                    lowest = result.row_number
                    lowest_positions = [position]
                elif order == 0:
                    lowest_positions.append(position)

            if not lowest_positions:
                return None

            merged = self._collect(lowest_positions, lowest)
            if self._pred is not None and not self._pred.keep_group(merged):
                continue
            return merged

    def seek_to(
        self, row_number: RowNumber, definition_level: int
    ) -> Optional[IteratorResult]:
        """Skip every iterator to the given row and return the next result."""
        target = truncate_row_number(definition_level, row_number)
        for position, iterator in enumerate(self._iters):
            peeked = self._peeks[position]
            if peeked is None or compare_row_numbers(
                definition_level, peeked.row_number, target
            ) == -1:
                self._peeks[position] = iterator.seek_to(target, definition_level)
        return self.next()

    def _collect(self, positions: List[int], row_number: RowNumber) -> IteratorResult:
        result = IteratorResult(row_number=row_number.copy())
        for position in positions:
            iterator = self._iters[position]
            while True:
                peeked = self._peeks[position]
                if peeked is None or compare_row_numbers(
                    self.definition_level, peeked.row_number, row_number
                ) != 0:
                    break
                result.append(peeked)
                self._peeks[position] = iterator.next()
        return result

    def close(self) -> None:
        """Close every merged iterator."""
        for iterator in self._iters:
            iterator.close()


class KeyValueGroupPredicate:
    """Keeps groups whose "keys" and "values" columns contain every given pair."""

    def __init__(self, keys: Iterable[str], values: Iterable[str]) -> None:
        self._keys = [k.encode("utf-8") for k in keys]
        self._values = [v.encode("utf-8") for v in values]
        if len(self._values) < len(self._keys):
            raise ValueError("every key needs a value")

    def keep_group(self, group: IteratorResult) -> bool:
        """True when each requested key/value pair occurs in the group."""
        keys, values = group.columns("keys", "values")
        if len(keys) < len(self._keys) or len(keys) != len(values):
            return False
        present = [(k.byte_array(), v.byte_array()) for k, v in zip(keys, values)]
        return all(pair in present for pair in zip(self._keys, self._values))