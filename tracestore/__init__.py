"""Trace model and encodings, span combining, search matching, in-memory columnar query iterators and a per-tenant request queue."""

__version__ = "0.1.0"