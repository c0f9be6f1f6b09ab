"""Pushdown predicates applied to column chunks, pages and values."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from tracestore.columnar import ColumnChunk, Page, Value


class Predicate(ABC):
    """Decides what to keep at the chunk, page and value levels."""

    @abstractmethod
    def keep_column_chunk(self, chunk: ColumnChunk) -> bool:
        """Whether the column chunk may hold matching values."""

    @abstractmethod
    def keep_page(self, page: Page) -> bool:
        """Whether the page may hold matching values."""

    @abstractmethod
    def keep_value(self, value: Value) -> bool:
        """Whether the value matches."""


class StringInPredicate(Predicate):
    """Keeps values equal to any of the given strings."""

    def __init__(self, strings: Iterable[str]) -> None:
        self._strings = [s.encode("utf-8") for s in strings]
        self._lookup = frozenset(self._strings)

    def keep_column_chunk(self, chunk: ColumnChunk) -> bool:
        index = chunk.column_index
        if index is None:
            return True
        return any(
            index.min_values[page].byte_array() <= s <= index.max_values[page].byte_array()
            for s in self._strings
            for page in range(index.num_pages())
        )

    def keep_page(self, page: Page) -> bool:
        if page.dictionary:
            return any(entry.byte_array() in self._lookup for entry in page.dictionary)
        return True

    def keep_value(self, value: Value) -> bool:
        return value.byte_array() in self._lookup


class SubstringPredicate(Predicate):
    """Keeps values whose text contains a substring; results are cached per row group."""

    def __init__(self, substring: str) -> None:
        self.substring = substring
        self._matches: Dict[str, bool] = {}

    def keep_column_chunk(self, chunk: ColumnChunk) -> bool:
        # Bloom filters and min/max bounds cannot answer a substring query.
        self._matches = {}
        return True

    def keep_page(self, page: Page) -> bool:
        if page.dictionary:
            return any(self.keep_value(entry) for entry in page.dictionary)
        return True

    def keep_value(self, value: Value) -> bool:
        text = str(value)
        cached = self._matches.get(text)
        if cached is None:
            cached = self.substring in text
            self._matches[text] = cached
        return cached


class IntBetweenPredicate(Predicate):
    """Keeps integers within [min_value, max_value] inclusive."""

    def __init__(self, min_value: int, max_value: int) -> None:
        self.min_value = min_value
        self.max_value = max_value

    def _overlaps(self, low: int, high: int) -> bool:
        return self.max_value >= low and self.min_value <= high

    def keep_column_chunk(self, chunk: ColumnChunk) -> bool:
        index = chunk.column_index
        if index is None:
            return True
        return any(
            self._overlaps(index.min_values[page].int64(), index.max_values[page].int64())
            for page in range(index.num_pages())
        )

    def keep_page(self, page: Page) -> bool:
        bounds = page.bounds()
        if bounds is None:
            return True
        low, high = bounds
        return self._overlaps(low.int64(), high.int64())

    def keep_value(self, value: Value) -> bool:
        return self.min_value <= value.int64() <= self.max_value


@dataclass
class InstrumentedPredicate(Predicate):
    """Counts what is inspected and kept; without a wrapped predicate it keeps everything."""

    pred: Optional[Predicate] = None
    inspected_column_chunks: int = 0
    inspected_pages: int = 0
    inspected_values: int = 0
    kept_column_chunks: int = 0
    kept_pages: int = 0
    kept_values: int = 0

    def keep_column_chunk(self, chunk: ColumnChunk) -> bool:
        self.inspected_column_chunks += 1
        if self.pred is None or self.pred.keep_column_chunk(chunk):
            self.kept_column_chunks += 1
            return True
        return False

    def keep_page(self, page: Page) -> bool:
        self.inspected_pages += 1
        if self.pred is None or self.pred.keep_page(page):
            self.kept_pages += 1
            return True
        return False

    def keep_value(self, value: Value) -> bool:
        self.inspected_values += 1
        if self.pred is None or self.pred.keep_value(value):
            self.kept_values += 1
            return True
        return False