"""Binary search over an index range with a predicate that may fail."""

from __future__ import annotations

from typing import Callable


def search(n: int, predicate: Callable[[int], bool]) -> int:
    """Return the smallest index in [0, n) for which predicate is true, or n.

    The predicate must be false for a prefix of the range and true for the rest.
    Any exception it raises propagates to the caller.
    """
    low, high = 0, n
    while low < high:
        middle = (low + high) // 2
        if predicate(middle):
            high = middle
        else:
            low = middle + 1
    return low