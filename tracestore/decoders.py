"""Selecting object and segment decoders by encoding name."""

from __future__ import annotations

from typing import Union

from tracestore import v1, v2

CURRENT_ENCODING = v2.ENCODING
ALL_ENCODINGS = [v1.ENCODING, v2.ENCODING]

ObjectDecoder = Union[v1.V1ObjectDecoder, v2.V2ObjectDecoder]
SegmentDecoder = Union[v1.V1SegmentDecoder, v2.V2SegmentDecoder]


def _unknown(data_encoding: str) -> ValueError:
    return ValueError(
        f"unknown encoding {data_encoding}. Supported encodings [{' '.join(ALL_ENCODINGS)}]"
    )


def new_object_decoder(data_encoding: str) -> ObjectDecoder:
    """Return the object decoder for an encoding, or raise ValueError."""
    if data_encoding == v1.ENCODING:
        return v1.V1ObjectDecoder()
    if data_encoding == v2.ENCODING:
        return v2.V2ObjectDecoder()
    raise _unknown(data_encoding)


def new_segment_decoder(data_encoding: str) -> SegmentDecoder:
    """Return the segment decoder for an encoding, or raise ValueError."""
    if data_encoding == v1.ENCODING:
        return v1.V1SegmentDecoder()
    if data_encoding == v2.ENCODING:
        return v2.V2SegmentDecoder()
    raise _unknown(data_encoding)