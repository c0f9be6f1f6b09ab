"""Matching a trace against a search request."""

from __future__ import annotations

import math
import re
from typing import Dict, List, Optional

from tracestore.tracepb import (
    KeyValue,
    SearchRequest,
    Span,
    StatusCode,
    Trace,
    TraceSearchMetadata,
    trace_id_to_hex,
)

ROOT_SPAN_NOT_YET_RECEIVED_TEXT = "<root span not yet received>"
ROOT_SERVICE_NAME_TAG = "root.service.name"
SERVICE_NAME_TAG = "service.name"
ROOT_SPAN_NAME_TAG = "root.name"
SPAN_NAME_TAG = "name"
ERROR_TAG = "error"
STATUS_CODE_TAG = "status.code"
STATUS_CODE_UNSET = "unset"
STATUS_CODE_OK = "ok"
STATUS_CODE_ERROR = "error"

STATUS_CODE_MAPPING: Dict[str, int] = {
    STATUS_CODE_UNSET: int(StatusCode.UNSET),
    STATUS_CODE_OK: int(StatusCode.OK),
    STATUS_CODE_ERROR: int(StatusCode.ERROR),
}

_MASK64 = (1 << 64) - 1
_MASK32 = (1 << 32) - 1
_INT_PATTERN = re.compile(r"[+-]?[0-9]+\Z")
_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}
_INF_WORDS = {"inf", "infinity"}


def _parse_int(text: str) -> int:
    if not _INT_PATTERN.match(text):
        raise ValueError(text)
    value = int(text)
    if not -(1 << 63) <= value < (1 << 63):
        raise ValueError(text)
    return value


def _parse_float(text: str) -> float:
    if not text or text != text.strip() or "_" in text:
        raise ValueError(text)
    body = text.lstrip("+-")
    if body[:2].lower() == "0x":
        value = float.fromhex(text)
    else:
        value = float(text)
    if math.isinf(value) and body.lower() not in _INF_WORDS:
        raise ValueError(text)
    return value


def _parse_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise ValueError(text)


def _string_value(attribute: KeyValue) -> str:
    return attribute.value if isinstance(attribute.value, str) else ""


def _attribute_matches(value: object, search: str) -> bool:
    try:
        if isinstance(value, str):
            return search in value
        if isinstance(value, bool):
            return value == _parse_bool(search)
        if isinstance(value, int):
            return value == _parse_int(search)
        if isinstance(value, float):
            return value == _parse_float(search)
    except ValueError:
        return False
    return False


def _match_span(tags: Dict[str, str], span: Span) -> None:
    code = int(span.status.code) if span.status is not None else int(StatusCode.UNSET)

    name = tags.get(SPAN_NAME_TAG)
    if name is not None and name in span.name:
        del tags[SPAN_NAME_TAG]

    error = tags.get(ERROR_TAG)
    if error is not None and error == "true" and code == StatusCode.ERROR:
        del tags[ERROR_TAG]

    status = tags.get(STATUS_CODE_TAG)
    if status is not None and STATUS_CODE_MAPPING.get(status, 0) == code:
        del tags[STATUS_CODE_TAG]

    root_name = tags.get(ROOT_SPAN_NAME_TAG)
    if root_name is not None and root_name in span.name and not span.parent_span_id:
        del tags[ROOT_SPAN_NAME_TAG]


def _match_attributes(tags: Dict[str, str], attributes: List[KeyValue]) -> None:
    for attribute in attributes:
        search = tags.get(attribute.key)
        if search is None:
            continue
        if _attribute_matches(attribute.value, search):
            del tags[attribute.key]


def _match_root_service_name(tags: Dict[str, str], attributes: List[KeyValue]) -> None:
    name = tags.get(ROOT_SERVICE_NAME_TAG)
    if name is None:
        return
    for attribute in attributes:
        if attribute.key == SERVICE_NAME_TAG and name in _string_value(attribute):
            del tags[ROOT_SERVICE_NAME_TAG]
            return


def matches_trace(
    trace_id: bytes, trace: Trace, request: SearchRequest
) -> Optional[TraceSearchMetadata]:
    """Return search metadata if the trace satisfies the request, otherwise None."""
    trace_start = _MASK64
    trace_end = 0

    # Tags are removed as they are found; an empty dict means everything matched.
    tags_to_find = dict(request.tags)

    root_span: Optional[Span] = None
    root_batch = None
    for batch in trace.batches:
        if tags_to_find and batch.resource is not None:
            _match_attributes(tags_to_find, batch.resource.attributes)

        for ils in batch.instrumentation_library_spans:
            for span in ils.spans:
                trace_start = min(trace_start, span.start_time_unix_nano)
                trace_end = max(trace_end, span.end_time_unix_nano)
                if root_span is None and not span.parent_span_id:
                    root_span = span
                    root_batch = batch

                if not tags_to_find:
                    continue

                _match_span(tags_to_find, span)
                _match_attributes(tags_to_find, span.attributes)
                if not span.parent_span_id and batch.resource is not None:
                    _match_root_service_name(tags_to_find, batch.resource.attributes)

    if tags_to_find:
        return None

    start_ms = trace_start // 1_000_000
    end_ms = trace_end // 1_000_000
    duration_ms = ((end_ms - start_ms) & _MASK64) & _MASK32
    if request.max_duration_ms != 0 and request.max_duration_ms < duration_ms:
        return None
    if request.min_duration_ms != 0 and request.min_duration_ms > duration_ms:
        return None
    if request.start > 0 or request.end > 0:
        end_seconds = (end_ms // 1000) & _MASK32
        start_seconds = (start_ms // 1000) & _MASK32
        if not (request.start <= end_seconds and request.end >= start_seconds):
            return None

    root_service_name = ROOT_SPAN_NOT_YET_RECEIVED_TEXT
    root_span_name = ROOT_SPAN_NOT_YET_RECEIVED_TEXT
    if root_span is not None and root_batch is not None:
        root_span_name = root_span.name
        if root_batch.resource is not None:
            for attribute in root_batch.resource.attributes:
                if attribute.key == SERVICE_NAME_TAG:
                    root_service_name = _string_value(attribute)
                    break

    return TraceSearchMetadata(
        trace_id=trace_id_to_hex(trace_id),
        root_service_name=root_service_name,
        root_trace_name=root_span_name,
        start_time_unix_nano=trace_start,
        duration_ms=duration_ms,
    )