"""Combining stored objects and merging them with traces for reading."""

from __future__ import annotations

from typing import Optional, Tuple

from tracestore.combiner import Combiner
from tracestore.decoders import new_object_decoder
from tracestore.errors import DecodeError
from tracestore.tracepb import Trace


def combine_objects(data_encoding: str, *objs: Optional[bytes]) -> Tuple[bytes, bool]:
    """Combine objects, returning the result and whether any combining was needed."""
    if not objs:
        raise ValueError("no objects provided")

    first = bytes(objs[0] or b"")
    if all(bytes(obj or b"") == first for obj in objs[1:]):
        return objs[0] if objs[0] is not None else b"", False

    decoder = new_object_decoder(data_encoding)
    try:
        combined = decoder.combine(*objs)
    except DecodeError as exc:
        raise DecodeError(f"error combining: {exc}") from exc
    return combined, True


def combine_for_read(obj: bytes, data_encoding: str, trace: Optional[Trace]) -> Optional[Trace]:
    """Merge a stored object with a trace; costly, meant for the read path only."""
    decoder = new_object_decoder(data_encoding)
    try:
        obj_trace = decoder.prepare_for_read(obj)
    except DecodeError as exc:
        raise DecodeError(f"error unmarshalling obj ({data_encoding}): {exc}") from exc

    combiner = Combiner()
    combiner.consume(obj_trace)
    combiner.consume(trace, final=True)
    return combiner.result()[0]