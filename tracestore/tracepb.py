"""Trace data model: resources, spans, search requests and search results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Union

AttributeValue = Union[str, bool, int, float, None]


class StatusCode(IntEnum):
    """Span status codes."""

    UNSET = 0
    OK = 1
    ERROR = 2


@dataclass
class Status:
    """Status of a span."""

    code: StatusCode = StatusCode.UNSET
    message: str = ""


@dataclass
class KeyValue:
    """A single attribute; the value is a string, bool, int, float or None."""

    key: str
    value: AttributeValue = None


@dataclass
class Resource:
    """The entity that produced a batch of spans."""

    attributes: List[KeyValue] = field(default_factory=list)


@dataclass
class Span:
    """A single operation within a trace."""

    trace_id: bytes = b""
    span_id: bytes = b""
    parent_span_id: bytes = b""
    name: str = ""
    kind: int = 0
    start_time_unix_nano: int = 0
    end_time_unix_nano: int = 0
    attributes: List[KeyValue] = field(default_factory=list)
    status: Optional[Status] = None


@dataclass
class InstrumentationLibrarySpans:
    """Spans emitted by one instrumentation library."""

    spans: List[Span] = field(default_factory=list)
    library_name: str = ""
    library_version: str = ""


@dataclass
class ResourceSpans:
    """A batch of spans sharing a resource."""

    resource: Optional[Resource] = None
    instrumentation_library_spans: List[InstrumentationLibrarySpans] = field(
        default_factory=list
    )


@dataclass
class Trace:
    """A trace made of batches of spans."""

    batches: List[ResourceSpans] = field(default_factory=list)


@dataclass
class SearchRequest:
    """Criteria a trace must satisfy to be returned by a search."""

    tags: Dict[str, str] = field(default_factory=dict)
    min_duration_ms: int = 0
    max_duration_ms: int = 0
    start: int = 0
    end: int = 0
    limit: int = 0


@dataclass
class TraceSearchMetadata:
    """Summary of a trace that matched a search."""

    trace_id: str = ""
    root_service_name: str = ""
    root_trace_name: str = ""
    start_time_unix_nano: int = 0
    duration_ms: int = 0


def trace_id_to_hex(trace_id: bytes) -> str:
    """Return the hex form of a trace id with leading zeros removed."""
    return bytes(trace_id).hex().lstrip("0")