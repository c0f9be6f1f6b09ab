"""A shared set of search cases for checking search behaviour consistently."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, List

from tracestore.tracepb import (
    InstrumentationLibrarySpans,
    KeyValue,
    Resource,
    ResourceSpans,
    SearchRequest,
    Span,
    Status,
    StatusCode,
    Trace,
    TraceSearchMetadata,
    trace_id_to_hex,
)

_SECOND = 1_000_000_000


@dataclass
class SearchSuite:
    """A trace together with requests that do and do not match it.

    start and end are the unix-second bounds of the trace; expected is the exact
    result for every matching request.
    """

    trace_id: bytes
    trace: Trace
    start: int
    end: int
    expected: TraceSearchMetadata
    searches_that_match: List[SearchRequest]
    searches_that_dont_match: List[SearchRequest]
    tag_names: List[str]
    tag_values: Dict[str, List[str]]


def _valid_trace_id() -> bytes:
    while True:
        trace_id = os.urandom(16)
        if any(trace_id):
            return trace_id


def _request(key: str, value: str) -> SearchRequest:
    return SearchRequest(tags={key: value})


def search_test_suite() -> SearchSuite:
    """Build a fully-populated trace and the search cases that apply to it."""
    trace_id = _valid_trace_id()

    trace = Trace(
        batches=[
            ResourceSpans(
                resource=Resource(
                    attributes=[
                        KeyValue("service.name", "MyService"),
                        KeyValue("cluster", "MyCluster"),
                        KeyValue("namespace", "MyNamespace"),
                        KeyValue("pod", "MyPod"),
                        KeyValue("container", "MyContainer"),
                        KeyValue("k8s.cluster.name", "k8sCluster"),
                        KeyValue("k8s.namespace.name", "k8sNamespace"),
                        KeyValue("k8s.pod.name", "k8sPod"),
                        KeyValue("k8s.container.name", "k8sContainer"),
                        KeyValue("bat", "Baz"),
                    ]
                ),
                instrumentation_library_spans=[
                    InstrumentationLibrarySpans(
                        spans=[
                            Span(
                                trace_id=trace_id,
                                name="MySpan",
                                span_id=bytes([1, 2, 3]),
                                parent_span_id=bytes([4, 5, 6]),
                                start_time_unix_nano=1000 * _SECOND,
                                end_time_unix_nano=1001 * _SECOND,
                                status=Status(StatusCode.ERROR),
                                attributes=[
                                    KeyValue("http.method", "Get"),
                                    KeyValue("http.url", "url/Hello/World"),
                                    KeyValue("http.status_code", 500),
                                    KeyValue("foo", "Bar"),
                                ],
                            )
                        ]
                    )
                ],
            ),
            ResourceSpans(
                resource=Resource(attributes=[KeyValue("service.name", "RootService")]),
                instrumentation_library_spans=[
                    InstrumentationLibrarySpans(
                        spans=[
                            Span(
                                trace_id=trace_id,
                                name="RootSpan",
                                start_time_unix_nano=1000 * _SECOND,
                                end_time_unix_nano=1001 * _SECOND,
                                status=Status(),
                            )
                        ]
                    )
                ],
            ),
        ]
    )

    expected = TraceSearchMetadata(
        trace_id=trace_id_to_hex(trace_id),
        start_time_unix_nano=1000 * _SECOND,
        duration_ms=1000,
        root_service_name="RootService",
        root_trace_name="RootSpan",
    )

    searches_that_match = [
        SearchRequest(),
        SearchRequest(min_duration_ms=999, max_duration_ms=1001),
        SearchRequest(start=1000, end=2000),
        SearchRequest(start=999, end=1001),
        SearchRequest(start=1001, end=1002),
        _request("service.name", "Service"),
        _request("cluster", "Cluster"),
        _request("namespace", "Namespace"),
        _request("pod", "Pod"),
        _request("container", "Container"),
        _request("k8s.cluster.name", "k8sCluster"),
        _request("k8s.namespace.name", "k8sNamespace"),
        _request("k8s.pod.name", "k8sPod"),
        _request("k8s.container.name", "k8sContainer"),
        _request("root.service.name", "RootService"),
        _request("root.name", "RootSpan"),
        _request("name", "Span"),
        _request("http.method", "Get"),
        _request("http.url", "Hello"),
        _request("http.status_code", "500"),
        _request("status.code", "error"),
        _request("foo", "Bar"),
        _request("bat", "Baz"),
        SearchRequest(tags={"service.name": "Service", "http.method": "Get", "foo": "Bar"}),
    ]

    searches_that_dont_match = [
        SearchRequest(min_duration_ms=1001),
        SearchRequest(max_duration_ms=999),
        SearchRequest(start=100, end=200),
        _request("service.name", "service"),
        _request("cluster", "cluster"),
        _request("namespace", "namespace"),
        _request("pod", "pod"),
        _request("container", "container"),
        _request("http.method", "post"),
        _request("http.url", "asdf"),
        _request("http.status_code", "200"),
        _request("status.code", "ok"),
        _request("root.service.name", "NotRootService"),
        _request("root.name", "NotRootSpan"),
        _request("foo", "baz"),
    ]

    tag_values = {
        "bat": ["Baz"],
        "cluster": ["MyCluster"],
        "container": ["MyContainer"],
        "foo": ["Bar"],
        "http.method": ["Get"],
        "http.status_code": ["500"],
        "http.url": ["url/Hello/World"],
        "k8s.cluster.name": ["k8sCluster"],
        "k8s.container.name": ["k8sContainer"],
        "k8s.namespace.name": ["k8sNamespace"],
        "k8s.pod.name": ["k8sPod"],
        "name": ["MySpan", "RootSpan"],
        "namespace": ["MyNamespace"],
        "pod": ["MyPod"],
        "root.name": ["RootSpan"],
        "root.service.name": ["RootService"],
        "service.name": ["MyService", "RootService"],
        "status.code": ["0", "2"],
    }

    return SearchSuite(
        trace_id=trace_id,
        trace=trace,
        start=1000,
        end=1001,
        expected=expected,
        searches_that_match=searches_that_match,
        searches_that_dont_match=searches_that_dont_match,
        tag_names=sorted(tag_values),
        tag_values=tag_values,
    )