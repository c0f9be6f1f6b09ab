"""Ordering of spans, library groups and batches within a trace."""

from __future__ import annotations

from functools import cmp_to_key
from typing import Callable, TypeVar

from tracestore.tracepb import InstrumentationLibrarySpans, ResourceSpans, Span, Trace

_T = TypeVar("_T")


def _span_less(a: Span, b: Span) -> bool:
    if a.start_time_unix_nano == b.start_time_unix_nano:
        return bytes(a.span_id) < bytes(b.span_id)
    return a.start_time_unix_nano < b.start_time_unix_nano


def _ils_less(a: InstrumentationLibrarySpans, b: InstrumentationLibrarySpans) -> bool:
    if a.spans and b.spans:
        return _span_less(a.spans[0], b.spans[0])
    return False


def _batch_less(a: ResourceSpans, b: ResourceSpans) -> bool:
    if a.instrumentation_library_spans and b.instrumentation_library_spans:
        return _ils_less(a.instrumentation_library_spans[0], b.instrumentation_library_spans[0])
    return False


def _key_from_less(less: Callable[[_T, _T], bool]):
    def compare(a: _T, b: _T) -> int:
        if less(a, b):
            return -1
        if less(b, a):
            return 1
        return 0

    return cmp_to_key(compare)


_SPAN_KEY = _key_from_less(_span_less)
_ILS_KEY = _key_from_less(_ils_less)
_BATCH_KEY = _key_from_less(_batch_less)


def sort_trace(trace: Trace) -> None:
    """Sort a trace in place, bottom up, by span start time and then span id."""
    for batch in trace.batches:
        for ils in batch.instrumentation_library_spans:
            ils.spans.sort(key=_SPAN_KEY)
        batch.instrumentation_library_spans.sort(key=_ILS_KEY)
    trace.batches.sort(key=_BATCH_KEY)