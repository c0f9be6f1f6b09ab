# tracestore

Building blocks for storing, combining and searching distributed traces,
scanning columnar data, and handing out queued requests fairly across tenants.
It is a library only; it has no command-line program.

## Modules

- `tracestore.tracepb`: the trace model. It defines `Trace`, `ResourceSpans`,
  `InstrumentationLibrarySpans`, `Span`, `Status` and `StatusCode`, `KeyValue`,
  `Resource`, `SearchRequest` and `TraceSearchMetadata`. It also has
  `trace_id_to_hex`, which returns the hex form of a trace id with its leading
  zeros removed.
- `tracestore.sorting`: `sort_trace` sorts a trace in place. It orders spans by
  start time and then by span id, and orders the library groups and batches by
  their first span.
- `tracestore.combiner`: `Combiner` merges partial traces and drops spans it
  has already seen. It identifies a span by `token_for_id(kind, span_id)`, a
  64-bit FNV-1 hash of the span id and kind. `Combiner.consume(trace, final)`
  changes its input traces. `Combiner.result()` returns the sorted trace and the
  span count. The count is -1 when no second trace was combined in.
- `tracestore.matches`: `matches_trace(trace_id, trace, request)` checks a trace
  against a search request and returns `TraceSearchMetadata`, or `None` when the
  trace does not match. The request can give:
  - tags, with special handling for `name`, `root.name`, `root.service.name`,
    `error` and `status.code`;
  - a minimum and maximum duration;
  - a time range in unix seconds.
- `tracestore.search_suite`: `search_test_suite()` returns a `SearchSuite`. It
  holds a sample trace, the exact expected result, requests that match the
  trace, requests that do not, and the trace's tag names and values.
- `tracestore.wire`: the binary encoding, made of length-delimited protobuf-style
  fields:
  - `marshal_trace` and `unmarshal_trace` encode and decode traces;
  - `marshal_trace_bytes` and `unmarshal_trace_bytes` wrap several encoded
    traces in one message and unwrap them;
  - `marshal_with_start_end` and `strip_start_end` add and remove a header of
    two little-endian uint32 values, start and end seconds.
- `tracestore.v1` and `tracestore.v2`: object and segment decoders for the two
  formats.
  - `v2` writes the start and end seconds in front of every segment and object.
    Its `fast_range` reads them without decoding the trace, and its `matches`
    uses them to reject traces early.
  - `v1` carries no time range. Its `fast_range` raises `UnsupportedError`.
- `tracestore.decoders`: `new_object_decoder` and `new_segment_decoder` choose a
  decoder by encoding name. `CURRENT_ENCODING` is `"v2"` and `ALL_ENCODINGS`
  lists both formats. An unknown name raises `ValueError`.
- `tracestore.combine`:
  - `combine_objects(data_encoding, *objs)` returns `(bytes, combined)`. It
    returns the first object unchanged when all objects are equal, and raises
    `ValueError` when given no objects.
  - `combine_for_read(obj, data_encoding, trace)` merges a stored object with a
    trace.
- `tracestore.errors`: two exceptions.
  - `DecodeError`, a subclass of `ValueError`, is raised for malformed bytes.
  - `UnsupportedError` is raised for operations an encoding cannot perform.
- `tracestore.search`: `search(n, predicate)` is a binary search. It returns
  the first index in `[0, n)` where the predicate is true, or `n` if there is
  none. Exceptions raised by the predicate propagate to the caller.
- `tracestore.rownumber`: `RowNumber` gives the position of a value in nested
  columns, with up to six levels. The module also has `empty_row_number`,
  `max_row_number`, `compare_row_numbers`, `truncate_row_number` and
  `IteratorResult`.
- `tracestore.columnar`: an in-memory columnar file made of `ColumnFile`,
  `ColumnNode`, `RowGroup`, `ColumnChunk`, `Page`, `ColumnIndex` and `Value`.
  `get_column_index_by_path` and `has_column` look up a leaf column by a dotted
  path.
- `tracestore.predicates`: pushdown predicates that act on column chunks, pages
  and values. They are `StringInPredicate`, `SubstringPredicate` and
  `IntBetweenPredicate`. `InstrumentedPredicate` counts the chunks, pages and
  values it inspects and the ones it keeps.
- `tracestore.iterators`: iterators over the columnar data.
  - `ColumnIterator` scans one column.
  - `JoinIterator` returns rows that every iterator produces.
  - `UnionIterator` returns rows from any iterator.
  - `KeyValueGroupPredicate` keeps groups that contain every given key/value
    pair.

  Each iterator has `next()`, `seek_to()` and `close()`, and can be used in a
  `for` loop or as a context manager.
- `tracestore.user_queues` and `tracestore.request_queue`: scheduling.
  - `RequestQueue` is a thread-safe queue with one queue per tenant. A tenant
    can be limited to a subset of the queriers, chosen by a shuffle shard seeded
    from the tenant id. Queriers take requests from the tenants in turn.
  - `enqueue_request` raises `TooManyRequestsError` when the tenant's queue is
    full.
  - `get_next_request_for_querier` blocks until a request is available. It
    raises `QueueStoppedError` after `stop()`, and `CancelledError` when its
    `cancelled` event is set.

## Installing

```
pip install .
```

To install with the test dependencies and run the tests:

```
pip install .[test]
pytest
```

## Examples

Encoding a segment and reading its time range:

```python
from tracestore.decoders import new_object_decoder, new_segment_decoder
from tracestore.tracepb import Trace

segments = new_segment_decoder("v2")
segment = segments.prepare_for_write(Trace(), 10, 20)
obj = segments.to_object([segment])

objects = new_object_decoder("v2")
print(objects.fast_range(obj))   # (10, 20)
```

Searching a trace:

```python
from tracestore.matches import matches_trace
from tracestore.search_suite import search_test_suite

suite = search_test_suite()
for request in suite.searches_that_match:
    assert matches_trace(suite.trace_id, suite.trace, request) == suite.expected
```

Scanning a column with a predicate:

```python
from tracestore.columnar import ColumnChunk, Page, RowGroup, Value
from tracestore.iterators import ColumnIterator
from tracestore.predicates import SubstringPredicate

group = RowGroup([ColumnChunk(pages=[Page(values=[Value("abc"), Value("bcd"), Value("cde")])])])
with ColumnIterator([group], 0, "s", filter=SubstringPredicate("b"), select_as="s") as it:
    for result in it:
        print(result.row_number[0], result.to_map()["s"][0].data)   # 0 abc, then 1 bcd
```

Queueing a request:

```python
from tracestore.request_queue import RequestQueue, first_user

queue = RequestQueue(max_outstanding_per_tenant=100)
queue.enqueue_request("tenant-a", "request-1", max_queriers=0)
request, last = queue.get_next_request_for_querier(first_user(), "querier-1")
```

## What it does not do

- Columnar data lives only in memory as `ColumnFile` objects. The package has
  no reader or writer for column files on disk.
- `RequestQueue` works inside one process. The package has no scheduler
  service, network transport or metrics export. Callers run
  `forget_disconnected_queriers()` themselves, at the interval given by
  `FORGET_CHECK_PERIOD`.
- It does not build search indexes from traces. Searching means calling
  `matches_trace`, or a decoder's `matches`, on each trace.