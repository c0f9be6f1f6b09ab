from tracestore.columnar import ColumnChunk, ColumnIndex, Page, Value
from tracestore.predicates import (
    InstrumentedPredicate,
    IntBetweenPredicate,
    StringInPredicate,
    SubstringPredicate,
)


def _indexed_chunk(ranges):
    return ColumnChunk(
        column_index=ColumnIndex(
            min_values=[Value(low) for low, _ in ranges],
            max_values=[Value(high) for _, high in ranges],
        )
    )


def test_string_in_keep_value():
    predicate = StringInPredicate(["foo", "bar"])
    assert predicate.keep_value(Value("foo"))
    assert predicate.keep_value(Value(b"bar"))
    assert not predicate.keep_value(Value("baz"))


def test_string_in_column_chunk_uses_index():
    chunk = _indexed_chunk([("a", "c"), ("x", "z")])
    assert StringInPredicate(["b"]).keep_column_chunk(chunk)
    assert StringInPredicate(["y"]).keep_column_chunk(chunk)
    assert not StringInPredicate(["d"]).keep_column_chunk(chunk)


def test_string_in_column_chunk_without_index_is_kept():
    assert StringInPredicate(["anything"]).keep_column_chunk(ColumnChunk())


def test_string_in_page_dictionary():
    page = Page(dictionary=[Value("abc"), Value("bcd")])
    assert StringInPredicate(["bcd"]).keep_page(page)
    assert not StringInPredicate(["zzz"]).keep_page(page)
    assert StringInPredicate(["zzz"]).keep_page(Page(dictionary=[]))
    assert StringInPredicate(["zzz"]).keep_page(Page())


def test_substring_keep_value():
    predicate = SubstringPredicate("b")
    assert predicate.keep_value(Value("abc"))
    assert predicate.keep_value(Value("bcd"))
    assert not predicate.keep_value(Value("cde"))
    assert predicate.keep_value(Value("abc"))


def test_substring_column_chunk_always_kept():
    predicate = SubstringPredicate("b")
    predicate.keep_value(Value("abc"))
    assert predicate.keep_column_chunk(ColumnChunk())
    assert not predicate.keep_value(Value("xyz"))


def test_substring_page_dictionary():
    page = Page(dictionary=[Value("abc"), Value("bcd"), Value("cde")])
    assert SubstringPredicate("b").keep_page(page)
    assert not SubstringPredicate("x").keep_page(page)
    assert SubstringPredicate("x").keep_page(Page())


def test_int_between_keep_value_inclusive():
    predicate = IntBetweenPredicate(10, 20)
    assert predicate.keep_value(Value(10))
    assert predicate.keep_value(Value(20))
    assert not predicate.keep_value(Value(9))
    assert not predicate.keep_value(Value(21))


def test_int_between_page_bounds():
    predicate = IntBetweenPredicate(10, 20)
    assert not predicate.keep_page(Page(values=[Value(1), Value(5)]))
    assert predicate.keep_page(Page(values=[Value(5), Value(15)]))
    assert predicate.keep_page(Page())


def test_int_between_column_chunk():
    predicate = IntBetweenPredicate(10, 20)
    assert predicate.keep_column_chunk(_indexed_chunk([(0, 5), (18, 30)]))
    assert not predicate.keep_column_chunk(_indexed_chunk([(0, 5), (21, 30)]))
    assert predicate.keep_column_chunk(ColumnChunk())


def test_instrumented_without_predicate_keeps_everything():
    predicate = InstrumentedPredicate()
    assert predicate.keep_column_chunk(ColumnChunk())
    assert predicate.keep_page(Page())
    assert predicate.keep_value(Value("x"))
    assert predicate.inspected_column_chunks == predicate.kept_column_chunks == 1
    assert predicate.inspected_pages == predicate.kept_pages == 1
    assert predicate.inspected_values == predicate.kept_values == 1


def test_instrumented_counts_kept_and_inspected():
    predicate = InstrumentedPredicate(pred=SubstringPredicate("b"))
    values = [Value("abc"), Value("bcd"), Value("cde")]
    kept = [predicate.keep_value(v) for v in values]
    assert kept == [True, True, False]
    assert predicate.inspected_values == len(values)
    assert predicate.kept_values == 2


def test_instrumented_page_skipped_by_dictionary():
    predicate = InstrumentedPredicate(pred=SubstringPredicate("x"))
    page = Page(dictionary=[Value("abc"), Value("bcd"), Value("cde")])
    assert predicate.keep_column_chunk(ColumnChunk())
    assert not predicate.keep_page(page)
    assert predicate.kept_column_chunks == 1
    assert predicate.kept_pages == 0
    assert predicate.kept_values == 0