import os
import random

import pytest

from tracestore.combine import combine_for_read, combine_objects
from tracestore.decoders import CURRENT_ENCODING, new_segment_decoder
from tracestore.errors import DecodeError
from tracestore.sorting import sort_trace
from tracestore.tracepb import (
    InstrumentationLibrarySpans,
    KeyValue,
    Resource,
    ResourceSpans,
    Span,
    Trace,
)


def make_trace(requests, trace_id):
    rnd = random.Random()
    return Trace(
        [
            ResourceSpans(
                resource=Resource([KeyValue("service.name", f"svc{i}")]),
                instrumentation_library_spans=[
                    InstrumentationLibrarySpans(
                        spans=[
                            Span(
                                trace_id=trace_id,
                                span_id=os.urandom(8),
                                start_time_unix_nano=rnd.randrange(1, 10**12),
                                end_time_unix_nano=10**12,
                            )
                            for _ in range(2)
                        ]
                    )
                ],
            )
            for i in range(requests)
        ]
    )


def to_object(trace, encoding=CURRENT_ENCODING):
    seg = new_segment_decoder(encoding)
    return seg.to_object([seg.prepare_for_write(trace, 0, 0)])


@pytest.fixture
def traces():
    t1 = make_trace(10, b"\x01\x02")
    t2 = make_trace(10, b"\x01\x03")
    sort_trace(t1)
    sort_trace(t2)
    parts = [Trace(), Trace(), Trace()]
    for i, batch in enumerate(t2.batches):
        parts[i % 3].batches.append(batch)
    return t1, t2, parts


def test_no_traces():
    with pytest.raises(ValueError):
        combine_objects(CURRENT_ENCODING)


def test_same_trace(traces):
    t1, _, _ = traces
    assert combine_objects(CURRENT_ENCODING, to_object(t1), to_object(t1)) == (to_object(t1), False)


def test_one_trace(traces):
    t1, _, _ = traces
    assert combine_objects(CURRENT_ENCODING, to_object(t1)) == (to_object(t1), False)


def test_three_traces(traces):
    _, t2, parts = traces
    objs = [to_object(p) for p in parts]
    assert combine_objects(CURRENT_ENCODING, *objs) == (to_object(t2), True)


@pytest.mark.parametrize("nil_first", [False, True])
def test_nil_trace(traces, nil_first):
    t1, _, _ = traces
    objs = [None, to_object(t1)] if nil_first else [to_object(t1), None]
    assert combine_objects(CURRENT_ENCODING, *objs) == (to_object(t1), True)


@pytest.mark.parametrize("bad_first", [False, True])
def test_bad_trace(traces, bad_first):
    t1, _, _ = traces
    objs = [b"\x01\x02", to_object(t1)] if bad_first else [to_object(t1), b"\x01\x02"]
    with pytest.raises(DecodeError):
        combine_objects(CURRENT_ENCODING, *objs)


def test_unknown_encoding_when_combining(traces):
    t1, t2, _ = traces
    with pytest.raises(ValueError):
        combine_objects("nope", to_object(t1), to_object(t2))


@pytest.mark.parametrize("encoding", ["v1", "v2"])
def test_combine_for_read(traces, encoding):
    t1, t2, _ = traces
    ids_all = sorted(
        s.span_id
        for t in (t1, t2)
        for b in t.batches
        for i in b.instrumentation_library_spans
        for s in i.spans
    )
    obj = to_object(t1, encoding)
    extra = make_trace(0, b"")
    extra.batches = list(t2.batches) + [t1.batches[0]]
    result = combine_for_read(obj, encoding, extra)
    got = sorted(
        s.span_id for b in result.batches for i in b.instrumentation_library_spans for s in i.spans
    )
    assert got == ids_all


def test_combine_for_read_bad_object():
    with pytest.raises(DecodeError):
        combine_for_read(b"\x01\x02", "v2", Trace())