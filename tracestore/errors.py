"""Errors raised while decoding stored trace data."""

from __future__ import annotations


class DecodeError(ValueError):
    """Raised when bytes cannot be decoded into trace data."""


class UnsupportedError(Exception):
    """Raised when an encoding cannot perform an operation efficiently."""

    def __init__(self, message: str = "unsupported") -> None:
        super().__init__(message)