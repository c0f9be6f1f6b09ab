"""Binary wire format for traces, trace-byte wrappers and start/end headers."""

from __future__ import annotations

import struct
from typing import Iterable, Iterator, List, Optional, Tuple

from tracestore.errors import DecodeError
from tracestore.tracepb import (
    InstrumentationLibrarySpans,
    KeyValue,
    Resource,
    ResourceSpans,
    Span,
    Status,
    StatusCode,
    Trace,
)

_MASK64 = (1 << 64) - 1
_MASK32 = (1 << 32) - 1
_VARINT, _FIXED64, _BYTES, _FIXED32 = 0, 1, 2, 5


def _varint(value: int) -> bytes:
    value &= _MASK64
    out = bytearray()
    while True:
        low = value & 0x7F
        value >>= 7
        if value:
            out.append(low | 0x80)
        else:
            out.append(low)
            return bytes(out)


def _key(field: int, wire_type: int) -> bytes:
    return _varint((field << 3) | wire_type)


def _len_field(field: int, data: bytes) -> bytes:
    return _key(field, _BYTES) + _varint(len(data)) + data


def _signed(value: int) -> int:
    return value - (1 << 64) if value >= (1 << 63) else value


def _read_varint(data: bytes, pos: int) -> Tuple[int, int]:
    result = 0
    for shift in range(0, 70, 7):
        if pos >= len(data):
            raise DecodeError("unexpected end of data in varint")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result & _MASK64, pos
    raise DecodeError("varint overflow")


def _fields(data: bytes) -> Iterator[Tuple[int, int, object]]:
    pos, size = 0, len(data)
    while pos < size:
        key, pos = _read_varint(data, pos)
        field, wire_type = key >> 3, key & 7
        if field == 0:
            raise DecodeError("illegal field number 0")
        if wire_type == _VARINT:
            value, pos = _read_varint(data, pos)
        elif wire_type in (_FIXED64, _FIXED32):
            width = 8 if wire_type == _FIXED64 else 4
            if pos + width > size:
                raise DecodeError("unexpected end of data in fixed field")
            value = int.from_bytes(data[pos : pos + width], "little")
            pos += width
        elif wire_type == _BYTES:
            length, pos = _read_varint(data, pos)
            if pos + length > size:
                raise DecodeError("unexpected end of data in length-delimited field")
            value = bytes(data[pos : pos + length])
            pos += length
        else:
            raise DecodeError(f"unsupported wire type {wire_type}")
        yield field, wire_type, value


def _check(wire_type: int, expected: int, field: int) -> None:
    if wire_type != expected:
        raise DecodeError(f"wrong wire type {wire_type} for field {field}")


def _text(data: object) -> str:
    try:
        return bytes(data).decode("utf-8")  # type: ignore[arg-type]
    except UnicodeDecodeError as exc:
        raise DecodeError("invalid utf-8 string") from exc


def _encode_any(value: object) -> bytes:
    if isinstance(value, bool):
        return _key(2, _VARINT) + _varint(int(value))
    if isinstance(value, int):
        return _key(3, _VARINT) + _varint(value)
    if isinstance(value, float):
        return _key(4, _FIXED64) + struct.pack("<d", value)
    if isinstance(value, str):
        return _len_field(1, value.encode("utf-8"))
    raise TypeError(f"unsupported attribute value {value!r}")


def _decode_any(data: bytes) -> object:
    value: object = None
    for field, wire_type, raw in _fields(data):
        if field == 1:
            _check(wire_type, _BYTES, field)
            value = _text(raw)
        elif field == 2:
            _check(wire_type, _VARINT, field)
            value = raw != 0
        elif field == 3:
            _check(wire_type, _VARINT, field)
            value = _signed(raw)  # type: ignore[arg-type]
        elif field == 4:
            _check(wire_type, _FIXED64, field)
            value = struct.unpack("<d", raw.to_bytes(8, "little"))[0]  # type: ignore[union-attr]
    return value


def _encode_kv(kv: KeyValue) -> bytes:
    out = _len_field(1, kv.key.encode("utf-8")) if kv.key else b""
    if kv.value is not None:
        out += _len_field(2, _encode_any(kv.value))
    return out


def _decode_kv(data: bytes) -> KeyValue:
    kv = KeyValue("")
    for field, wire_type, raw in _fields(data):
        if field == 1:
            _check(wire_type, _BYTES, field)
            kv.key = _text(raw)
        elif field == 2:
            _check(wire_type, _BYTES, field)
            kv.value = _decode_any(raw)  # type: ignore[arg-type]
    return kv


def _encode_status(status: Status) -> bytes:
    out = _len_field(2, status.message.encode("utf-8")) if status.message else b""
    if int(status.code):
        out += _key(3, _VARINT) + _varint(int(status.code))
    return out


def _decode_status(data: bytes) -> Status:
    status = Status()
    for field, wire_type, raw in _fields(data):
        if field == 2:
            _check(wire_type, _BYTES, field)
            status.message = _text(raw)
        elif field == 3:
            _check(wire_type, _VARINT, field)
            code = _signed(raw)  # type: ignore[arg-type]
            try:
                status.code = StatusCode(code)
            except ValueError:
                status.code = code  # type: ignore[assignment]
    return status


def _encode_span(span: Span) -> bytes:
    out = bytearray()
    if span.trace_id:
        out += _len_field(1, bytes(span.trace_id))
    if span.span_id:
        out += _len_field(2, bytes(span.span_id))
    if span.parent_span_id:
        out += _len_field(4, bytes(span.parent_span_id))
    if span.name:
        out += _len_field(5, span.name.encode("utf-8"))
    if span.kind:
        out += _key(6, _VARINT) + _varint(span.kind)
    if span.start_time_unix_nano:
        out += _key(7, _FIXED64) + struct.pack("<Q", span.start_time_unix_nano)
    if span.end_time_unix_nano:
        out += _key(8, _FIXED64) + struct.pack("<Q", span.end_time_unix_nano)
    for attribute in span.attributes:
        out += _len_field(9, _encode_kv(attribute))
    if span.status is not None:
        out += _len_field(15, _encode_status(span.status))
    return bytes(out)


def _decode_span(data: bytes) -> Span:
    span = Span()
    for field, wire_type, raw in _fields(data):
        if field in (1, 2, 4):
            _check(wire_type, _BYTES, field)
            name = {1: "trace_id", 2: "span_id", 4: "parent_span_id"}[field]
            setattr(span, name, raw)
        elif field == 5:
            _check(wire_type, _BYTES, field)
            span.name = _text(raw)
        elif field == 6:
            _check(wire_type, _VARINT, field)
            span.kind = _signed(raw)  # type: ignore[arg-type]
        elif field in (7, 8):
            _check(wire_type, _FIXED64, field)
            if field == 7:
                span.start_time_unix_nano = raw  # type: ignore[assignment]
            else:
                span.end_time_unix_nano = raw  # type: ignore[assignment]
        elif field == 9:
            _check(wire_type, _BYTES, field)
            span.attributes.append(_decode_kv(raw))  # type: ignore[arg-type]
        elif field == 15:
            _check(wire_type, _BYTES, field)
            span.status = _decode_status(raw)  # type: ignore[arg-type]
    return span


def _encode_ils(ils: InstrumentationLibrarySpans) -> bytes:
    out = bytearray()
    if ils.library_name or ils.library_version:
        library = b""
        if ils.library_name:
            library += _len_field(1, ils.library_name.encode("utf-8"))
        if ils.library_version:
            library += _len_field(2, ils.library_version.encode("utf-8"))
        out += _len_field(1, library)
    for span in ils.spans:
        out += _len_field(2, _encode_span(span))
    return bytes(out)


def _decode_ils(data: bytes) -> InstrumentationLibrarySpans:
    ils = InstrumentationLibrarySpans()
    for field, wire_type, raw in _fields(data):
        if field == 1:
            _check(wire_type, _BYTES, field)
            for sub, sub_type, sub_raw in _fields(raw):  # type: ignore[arg-type]
                if sub in (1, 2):
                    _check(sub_type, _BYTES, sub)
                    if sub == 1:
                        ils.library_name = _text(sub_raw)
                    else:
                        ils.library_version = _text(sub_raw)
        elif field == 2:
            _check(wire_type, _BYTES, field)
            ils.spans.append(_decode_span(raw))  # type: ignore[arg-type]
    return ils


def _encode_batch(batch: ResourceSpans) -> bytes:
    out = bytearray()
    if batch.resource is not None:
        resource = b"".join(_len_field(1, _encode_kv(a)) for a in batch.resource.attributes)
        out += _len_field(1, resource)
    for ils in batch.instrumentation_library_spans:
        out += _len_field(2, _encode_ils(ils))
    return bytes(out)


def _decode_batch(data: bytes) -> ResourceSpans:
    batch = ResourceSpans()
    for field, wire_type, raw in _fields(data):
        if field == 1:
            _check(wire_type, _BYTES, field)
            resource = Resource()
            for sub, sub_type, sub_raw in _fields(raw):  # type: ignore[arg-type]
                if sub == 1:
                    _check(sub_type, _BYTES, sub)
                    resource.attributes.append(_decode_kv(sub_raw))  # type: ignore[arg-type]
            batch.resource = resource
        elif field == 2:
            _check(wire_type, _BYTES, field)
            batch.instrumentation_library_spans.append(_decode_ils(raw))  # type: ignore[arg-type]
    return batch


def marshal_trace(trace: Optional[Trace]) -> bytes:
    """Encode a trace; None encodes like an empty trace."""
    if trace is None:
        return b""
    return b"".join(_len_field(1, _encode_batch(b)) for b in trace.batches)


def unmarshal_trace(data: Optional[bytes]) -> Trace:
    """Decode a trace, raising DecodeError on malformed input."""
    trace = Trace()
    for field, wire_type, raw in _fields(bytes(data or b"")):
        if field == 1:
            _check(wire_type, _BYTES, field)
            trace.batches.append(_decode_batch(raw))  # type: ignore[arg-type]
    return trace


def marshal_trace_bytes(traces: Iterable[bytes]) -> bytes:
    """Wrap a sequence of encoded traces into one message."""
    return b"".join(_len_field(1, bytes(t or b"")) for t in traces)


def unmarshal_trace_bytes(data: Optional[bytes]) -> List[bytes]:
    """Unwrap a message made by marshal_trace_bytes."""
    traces = []
    for field, wire_type, raw in _fields(bytes(data or b"")):
        if field == 1:
            _check(wire_type, _BYTES, field)
            traces.append(raw)
    return traces  # type: ignore[return-value]


def marshal_with_start_end(payload: bytes, start: int, end: int) -> bytes:
    """Prefix a payload with little-endian uint32 start and end seconds."""
    for value in (start, end):
        if not 0 <= value <= _MASK32:
            raise ValueError(f"value {value} does not fit in uint32")
    return struct.pack("<II", start, end) + bytes(payload)


def strip_start_end(data: Optional[bytes]) -> Tuple[bytes, int, int]:
    """Split a start/end header from its payload."""
    data = bytes(data or b"")
    if len(data) < 8:
        raise DecodeError("buffer too short to have start/end")
    start, end = struct.unpack_from("<II", data)
    return data[8:], start, end