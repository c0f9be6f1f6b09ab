"""Combining partial traces into one, deduplicating spans by id and kind."""

from __future__ import annotations

import struct
from typing import Iterator, Optional, Set, Tuple

from tracestore.sorting import sort_trace
from tracestore.tracepb import Span, Trace

_FNV64_OFFSET = 0xCBF29CE484222325
_FNV64_PRIME = 0x100000001B3
_MASK64 = (1 << 64) - 1


def token_for_id(kind: int, span_id: bytes) -> int:
    """Return a 64-bit FNV-1 token for a span id and kind.

    The kind is part of the token because client and server spans may share an id.
    """
    value = _FNV64_OFFSET
    for byte in bytes(span_id) + struct.pack("<I", kind & 0xFFFFFFFF):
        value = (value * _FNV64_PRIME) & _MASK64
        value ^= byte
    return value


def _iter_spans(trace: Trace) -> Iterator[Span]:
    for batch in trace.batches:
        for ils in batch.instrumentation_library_spans:
            yield from ils.spans


class Combiner:
    """Destructively combines partial traces, dropping duplicate spans."""

    def __init__(self) -> None:
        self._result: Optional[Trace] = None
        self._spans: Set[int] = set()
        self._combined = False

    def consume(self, trace: Optional[Trace], final: bool = False) -> int:
        """Merge a trace into the result and return the number of spans added.

        Pass final=True for the last expected input to skip recording its spans.
        """
        if trace is None:
            return 0

        if self._result is None:
            self._result = trace
            self._spans = {token_for_id(s.kind, s.span_id) for s in _iter_spans(trace)}
            return 0

        span_count = 0
        for batch in list(trace.batches):
            kept_groups = []
            for ils in batch.instrumentation_library_spans:
                new_spans = []
                for span in ils.spans:
                    token = token_for_id(span.kind, span.span_id)
                    if token in self._spans:
                        continue
                    new_spans.append(span)
                    if not final:
                        self._spans.add(token)
                if new_spans:
                    ils.spans = new_spans
                    span_count += len(new_spans)
                    kept_groups.append(ils)
            if kept_groups:
                batch.instrumentation_library_spans = kept_groups
                self._result.batches.append(batch)

        self._combined = True
        return span_count

    def result(self) -> Tuple[Optional[Trace], int]:
        """Return the combined trace and its span count, or -1 if nothing was combined."""
        span_count = -1
        if self._result is not None and self._combined:
            sort_trace(self._result)
            span_count = len(self._spans)
        return self._result, span_count