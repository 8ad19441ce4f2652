import csv

import pytest

from conftest import write_csv
from services.csv_reader import CsvReader
from services.errors import MalformedRowError, RowParseError, SchemaError, SourceMissingError


def test_header_and_rows_by_name():
    reader = CsvReader.from_text("name,price\nA,10\nB,20\n")
    outcomes = list(reader.rows())

    assert reader.header == ["name", "price"]
    assert [o.row.get("name") for o in outcomes] == ["A", "B"]
    assert outcomes[1].row.get("price") == "20"
    assert outcomes[0].line_number == 2


def test_bom_is_stripped_from_first_header():
    reader = CsvReader.from_text("\ufeffname,price\nA,1\n")
    assert reader.header[0] == "name"
    assert "name" in next(iter(reader)).row


def test_blank_lines_are_skipped():
    reader = CsvReader.from_text("\nname,price\n\nA,1\n,\nB,2\n")
    names = [o.row.get("name") for o in reader.rows()]
    assert names == ["A", "B"]


def test_short_row_is_reported_not_raised():
    reader = CsvReader.from_text("name,price,stock\nA,1,2\nB,2\nC,3,4\n")
    outcomes = list(reader.rows())

    assert [o.ok for o in outcomes] == [True, False, True]
    assert isinstance(outcomes[1].error, MalformedRowError)
    assert outcomes[1].error.expected == 3
    assert outcomes[1].error.actual == 2


def test_quoted_fields_keep_commas():
    reader = CsvReader.from_text('name,address\nA,"House 1, Road 2"\n')
    assert next(iter(reader)).row.get("address") == "House 1, Road 2"


def test_reader_is_single_pass():
    reader = CsvReader.from_text("name\nA\n")
    list(reader.rows())
    with pytest.raises(RuntimeError):
        list(reader.rows())


def test_duplicate_header_keeps_first_position():
    reader = CsvReader.from_text("name,name\nfirst,second\n")
    assert next(iter(reader)).row.get("name") == "first"


def test_columns_with_prefix_in_column_order():
    reader = CsvReader.from_text("metaTags[1],name,metaTags[0],metaTagsExtra\na,b,c,d\n")
    row = next(iter(reader)).row
    assert row.columns_with_prefix("metaTags") == ["metaTags[1]", "metaTags[0]", "metaTagsExtra"]


def test_validate_schema_reports_missing_columns():
    reader = CsvReader.from_text("name,stock\nA,1\n", source="products.csv")
    with pytest.raises(SchemaError) as exc:
        reader.validate_schema(["name", "price", "stock"], required={"name", "price"})
    assert exc.value.missing == ["price"]
    assert "products.csv" in str(exc.value)


def test_validate_schema_tolerates_unknown_columns():
    reader = CsvReader.from_text("name,price,__v\nA,1,0\n")
    reader.validate_schema(["name", "price"], required={"name", "price"})


def test_from_path_missing_file(tmp_path):
    with pytest.raises(SourceMissingError) as exc:
        CsvReader.from_path(str(tmp_path / "nope.csv"))
    assert isinstance(exc.value, FileNotFoundError)


def test_from_path_reads_file(tmp_path):
    path = write_csv(tmp_path / "p.csv", ["name", "price"], [["A", "1"]])
    with CsvReader.from_path(path) as reader:
        rows = [o.row.as_dict() for o in reader.rows()]
    assert rows == [{"name": "A", "price": "1"}]


def test_empty_source_has_no_header():
    reader = CsvReader.from_text("")
    assert reader.header == []
    assert list(reader.rows()) == []


def test_unreadable_row_is_reported_and_reading_continues():
    previous = csv.field_size_limit(20)
    try:
        reader = CsvReader.from_text("name,description\nA,short\nB," + "x" * 50 + "\nC,short\n")
        outcomes = list(reader.rows())
    finally:
        csv.field_size_limit(previous)

    assert [o.ok for o in outcomes] == [True, False, True]
    assert isinstance(outcomes[1].error, RowParseError)
    assert outcomes[1].error.line_number == 3
    assert outcomes[2].row.get("name") == "C"


def test_field_limit_allows_long_descriptions():
    reader = CsvReader.from_text("name,description\nA," + "x" * 200000 + "\n")
    outcome = next(iter(reader))
    assert outcome.ok
    assert len(outcome.row.get("description")) == 200000


def test_from_path_replaces_invalid_bytes(tmp_path):
    path = tmp_path / "p.csv"
    path.write_bytes(b"name,price\nA,1\nB\xff\xfe,2\nC,3\n")

    with CsvReader.from_path(str(path)) as reader:
        names = [o.row.get("name") for o in reader.rows()]

    assert names == ["A", "B\ufffd\ufffd", "C"]
