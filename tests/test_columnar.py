import pytest

from tracestore.columnar import (
    ColumnChunk,
    ColumnFile,
    ColumnIndex,
    ColumnNode,
    Page,
    RowGroup,
    Value,
    get_column_index_by_path,
    has_column,
)


def _file():
    root = ColumnNode(
        "root",
        children=[
            ColumnNode("TraceID", index=0),
            ColumnNode(
                "rs",
                children=[
                    ColumnNode("Resource", children=[ColumnNode("ServiceName", index=1)]),
                    ColumnNode("Name", index=2),
                ],
            ),
        ],
    )
    return ColumnFile(root=root)


def test_value_byte_array_of_text_and_bytes():
    assert Value("abc").byte_array() == b"abc"
    assert Value(b"\x01\x02").byte_array() == b"\x01\x02"
    assert Value(None).byte_array() == b""


def test_value_int64():
    assert Value(42).int64() == 42
    assert Value(None).int64() == 0
    with pytest.raises(TypeError):
        Value("nope").int64()


def test_value_str():
    assert str(Value(b"xy")) == "xy"
    assert str(Value("hello")) == "hello"
    assert str(Value(17)) == "17"


def test_column_index_num_pages():
    index = ColumnIndex(min_values=[Value(1), Value(5)], max_values=[Value(4), Value(9)])
    assert index.num_pages() == len(index.min_values)


def test_page_num_rows_counts_top_level_starts():
    page = Page(
        values=[
            Value("a", repetition_level=0),
            Value("b", repetition_level=1),
            Value("c", repetition_level=0),
        ]
    )
    assert page.num_rows() == 2


def test_page_bounds():
    page = Page(values=[Value(5), Value(None), Value(-3), Value(12)])
    low, high = page.bounds()
    assert low == Value(-3)
    assert high == Value(12)


def test_page_bounds_without_values():
    assert Page().bounds() is None
    assert Page(values=[Value(None)]).bounds() is None


def test_row_group_num_rows_from_first_column():
    pages = [Page(values=[Value(1), Value(2)]), Page(values=[Value(3)])]
    group = RowGroup(column_chunks=[ColumnChunk(pages=pages), ColumnChunk()])
    assert group.num_rows() == sum(p.num_rows() for p in pages)
    assert RowGroup().num_rows() == 0


def test_column_node_lookup():
    root = _file().root
    assert root.column("TraceID").index == 0
    assert root.column("missing") is None


def test_get_column_index_by_path():
    column_file = _file()
    assert get_column_index_by_path(column_file, "TraceID") == (0, 1)
    assert get_column_index_by_path(column_file, "rs.Resource.ServiceName") == (1, 3)
    assert get_column_index_by_path(column_file, "rs.Name") == (2, 2)


def test_get_column_index_by_missing_path():
    column_file = _file()
    assert get_column_index_by_path(column_file, "rs.Nope") == (-1, -1)
    assert get_column_index_by_path(column_file, "") == (-1, -1)


def test_has_column():
    column_file = _file()
    assert has_column(column_file, "rs.Name")
    assert not has_column(column_file, "rs.Resource")
    assert not has_column(column_file, "absent")