import pytest

from tracestore.search import search


@pytest.mark.parametrize("n", [0, 1, 2, 7, 100])
@pytest.mark.parametrize("threshold_fraction", [0.0, 0.3, 0.5, 1.0])
def test_search_finds_first_true_index(n, threshold_fraction):
    threshold = int(n * threshold_fraction)
    assert search(n, lambda i: i >= threshold) == threshold


def test_search_returns_n_when_never_true():
    assert search(10, lambda i: False) == 10


def test_search_returns_zero_when_always_true():
    assert search(10, lambda i: True) == 0


def test_search_empty_range_does_not_call_predicate():
    calls = []

    def predicate(i):
        calls.append(i)
        return True

    assert search(0, predicate) == 0
    assert calls == []


def test_search_never_calls_predicate_outside_range():
    calls = []

    def predicate(i):
        calls.append(i)
        return i >= 5

    assert search(16, predicate) == 5
    assert calls
    assert all(0 <= i < 16 for i in calls)


def test_search_propagates_predicate_error():
    def predicate(i):
        raise KeyError("broken")

    with pytest.raises(KeyError):
        search(8, predicate)


def test_search_on_sorted_list():
    data = [1, 3, 3, 5, 8, 13]
    assert search(len(data), lambda i: data[i] >= 5) == data.index(5)