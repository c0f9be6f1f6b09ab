"""Version 2 encoding: segments and objects carry a start/end second header."""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

from tracestore.combiner import Combiner
from tracestore.errors import DecodeError
from tracestore.matches import matches_trace
from tracestore.tracepb import SearchRequest, Trace, TraceSearchMetadata
from tracestore.wire import (
    marshal_trace,
    marshal_trace_bytes,
    marshal_with_start_end,
    strip_start_end,
    unmarshal_trace,
    unmarshal_trace_bytes,
)

ENCODING = "v2"
_MAX_UINT32 = (1 << 32) - 1


class V2ObjectDecoder:
    """Reads, searches and combines v2 objects."""

    def prepare_for_read(self, obj: Optional[bytes]) -> Trace:
        """Decode an object into a single trace; empty input gives an empty trace."""
        if not obj:
            return Trace()
        body, _, _ = strip_start_end(obj)
        trace = Trace()
        for inner in unmarshal_trace_bytes(body):
            trace.batches.extend(unmarshal_trace(inner).batches)
        return trace

    def matches(
        self, trace_id: bytes, obj: bytes, request: SearchRequest
    ) -> Optional[TraceSearchMetadata]:
        """Return search metadata if the object matches, filtering on its range first."""
        start, end = self.fast_range(obj)

        if request.start > 0 or request.end > 0:
            if not (request.start <= end and request.end >= start):
                return None

        duration = (end - start) & _MAX_UINT32
        if request.max_duration_ms != 0 and duration > request.max_duration_ms // 1000 + 1:
            return None
        if request.min_duration_ms != 0 and duration < request.min_duration_ms // 1000:
            return None

        return matches_trace(trace_id, self.prepare_for_read(obj), request)

    def combine(self, *objs: bytes) -> bytes:
        """Combine objects into one, widening the time range to cover all of them."""
        min_start, max_end = _MAX_UINT32, 0
        combiner = Combiner()
        for index, obj in enumerate(objs):
            try:
                trace = self.prepare_for_read(obj)
            except DecodeError as exc:
                raise DecodeError(f"error unmarshaling trace: {exc}") from exc
            if obj:
                start, end = self.fast_range(obj)
                min_start = min(min_start, start)
                max_end = max(max_end, end)
            combiner.consume(trace, final=index == len(objs) - 1)

        combined, _ = combiner.result()
        payload = marshal_trace_bytes([marshal_trace(combined)])
        return marshal_with_start_end(payload, min_start, max_end)

    def fast_range(self, obj: bytes) -> Tuple[int, int]:
        """Return the start and end seconds from the header."""
        _, start, end = strip_start_end(obj)
        return start, end


class V2SegmentDecoder:
    """Builds v2 segments and objects."""

    def prepare_for_write(self, trace: Trace, start: int, end: int) -> bytes:
        """Encode a trace with its start and end seconds."""
        return marshal_with_start_end(marshal_trace(trace), start, end)

    def prepare_for_read(self, segments: Iterable[bytes]) -> Optional[Trace]:
        """Decode and combine segments into one trace."""
        segments = list(segments)
        combiner = Combiner()
        for index, segment in enumerate(segments):
            try:
                body, _, _ = strip_start_end(segment)
            except DecodeError as exc:
                raise DecodeError(f"error stripping start/end: {exc}") from exc
            try:
                trace = unmarshal_trace(body)
            except DecodeError as exc:
                raise DecodeError(f"error unmarshaling trace: {exc}") from exc
            combiner.consume(trace, final=index == len(segments) - 1)
        return combiner.result()[0]

    def to_object(self, segments: Iterable[bytes]) -> bytes:
        """Merge segments into an object whose range covers all of them."""
        min_start, max_end = _MAX_UINT32, 0
        bodies = []
        for segment in segments:
            body, start, end = strip_start_end(segment)
            bodies.append(body)
            min_start = min(min_start, start)
            max_end = max(max_end, end)
        return marshal_with_start_end(marshal_trace_bytes(bodies), min_start, max_end)

    def fast_range(self, segment: bytes) -> Tuple[int, int]:
        """Return the start and end seconds from the header."""
        _, start, end = strip_start_end(segment)
        return start, end