import pytest

from tracestore.rownumber import (
    IteratorResult,
    RowNumber,
    compare_row_numbers,
    empty_row_number,
    max_row_number,
    truncate_row_number,
)


def test_empty_row_number():
    assert empty_row_number() == RowNumber(-1, -1, -1, -1, -1, -1)
    assert not empty_row_number().valid()


def test_row_number_dremel_steps():
    tr = empty_row_number()
    steps = [
        (0, 3, RowNumber(0, 0, 0, 0, -1, -1)),
        (2, 2, RowNumber(0, 0, 1, -1, -1, -1)),
        (1, 1, RowNumber(0, 1, -1, -1, -1, -1)),
        (1, 3, RowNumber(0, 2, 0, 0, -1, -1)),
        (0, 1, RowNumber(1, 0, -1, -1, -1, -1)),
    ]
    for repetition, definition, expected in steps:
        tr.next(repetition, definition)
        assert tr == expected


@pytest.mark.parametrize(
    "a, b, expected",
    [
        (RowNumber(-1), RowNumber(0), -1),
        (RowNumber(0), RowNumber(0), 0),
        (RowNumber(1), RowNumber(0), 1),
        (RowNumber(0, 1), RowNumber(0, 2), -1),
        (RowNumber(0, 2), RowNumber(0, 1), 1),
    ],
)
def test_compare_row_numbers(a, b, expected):
    assert compare_row_numbers(5, a, b) == expected


def test_compare_ignores_deeper_levels():
    assert compare_row_numbers(0, RowNumber(3, 1), RowNumber(3, 9)) == 0


def test_constructor_pads_with_zero():
    assert RowNumber(-1) == RowNumber(-1, 0, 0, 0, 0, 0)


def test_too_many_levels_rejected():
    with pytest.raises(ValueError):
        RowNumber(0, 0, 0, 0, 0, 0, 0)


def test_max_row_number_is_above_everything():
    assert compare_row_numbers(0, RowNumber(10**12), max_row_number()) == -1
    assert max_row_number().valid()


def test_truncate_row_number():
    original = RowNumber(1, 2, 3, 4, 5, 6)
    assert truncate_row_number(1, original) == RowNumber(1, 2, -1, -1, -1, -1)
    assert original == RowNumber(1, 2, 3, 4, 5, 6)


def test_skip_resets_lower_levels():
    rn = RowNumber(2, 3, 4, 5, 6, 7)
    rn.skip(10)
    assert rn == RowNumber(12, -1, -1, -1, -1, -1)


def test_copy_is_independent():
    rn = RowNumber(0, 1)
    copy = rn.copy()
    rn.skip(1)
    assert copy == RowNumber(0, 1)
    assert rn != copy


def test_iterator_result_to_map_keeps_value_order():
    result = IteratorResult()
    result.append_value("a", 1)
    result.append_value("b", 2)
    result.append_value("a", 3)
    assert result.to_map() == {"a": [1, 3], "b": [2]}


def test_iterator_result_columns_in_name_order():
    result = IteratorResult()
    result.append_value("keys", "k1")
    result.append_value("values", "v1")
    result.append_value("other", "x")
    result.append_value("keys", "k2")
    assert result.columns("values", "keys", "missing") == [["v1"], ["k1", "k2"], []]


def test_iterator_result_append():
    first = IteratorResult(row_number=RowNumber(1))
    first.append_value("a", 1)
    second = IteratorResult()
    second.append_value("b", 2)
    first.append(second)
    assert first.entries == [("a", 1), ("b", 2)]
    assert first.row_number == RowNumber(1)