import pytest

from tradeflow.errors import ParseError
from tradeflow.ingest import detect_format, read_first_table
from tradeflow.normalize import normalize, resolve_columns
from tradeflow.rules import default_rules
from tradeflow.utils import parse_number

from conftest import TRADE_ROWS, csv_bytes, xlsx_bytes


def test_csv_rows_map_to_canonical_records(trade_csv):
    records = normalize(trade_csv, "csv")

    assert [r.product_code for r in records] == ["7301", "7601", "6109", "2523"]
    first = records[0]
    assert first.product_description == "steel pipe"
    assert first.origin_country == "China"
    assert first.quantity == 100.0
    assert first.value == 50000.0
    assert first.unit == "KG"
    assert first.currency == "USD"
    assert first.source_row == 2
    # нормализатор не классифицирует
    assert first.is_cbam_relevant is False
    assert first.cbam_category is None


def test_missing_value_column_defaults_to_zero():
    data = csv_bytes([
        ["Code", "Description", "Country", "Quantity"],
        ["7301", "steel pipe", "China", "100"],
    ])
    (rec,) = normalize(data, "csv")

    assert rec.value == 0.0
    assert any(w.field == "value" and w.code == "missing_column" for w in rec.warnings)


def test_unparsable_numbers_become_zero_with_warning():
    data = csv_bytes([
        ["Code", "Description", "Country", "Quantity", "Value"],
        ["7301", "steel pipe", "China", "n/a", "lots"],
    ])
    (rec,) = normalize(data, "csv")

    assert rec.quantity == 0.0
    assert rec.value == 0.0
    codes = {(w.field, w.code) for w in rec.warnings}
    assert ("quantity", "unparsable_number") in codes
    assert ("value", "unparsable_number") in codes


def test_turkish_aliases_and_title_row_above_header():
    data = csv_bytes([
        ["Gümrük beyannamesi 2024"],
        ["Kod", "Açıklama", "Ülke", "Miktar", "Değer", "Birim", "Para Birimi"],
        ["7601", "alüminyum levha", "Turkey", "10", "1.234,5", "TON", "EUR"],
    ], delimiter=";")
    (rec,) = normalize(data, "csv")

    assert rec.product_code == "7601"
    assert rec.product_description == "alüminyum levha"
    assert rec.origin_country == "Turkey"
    assert rec.quantity == 10.0
    assert rec.value == 1234.5
    assert rec.unit == "TON"
    assert rec.currency == "EUR"
    assert rec.source_row == 3


def test_column_names_match_case_insensitively():
    data = csv_bytes([
        ["  product code ", "PRODUCT DESCRIPTION", "origin country", "value"],
        ["2716", "electricity", "Norway", "300"],
    ])
    (rec,) = normalize(data, "csv")

    assert rec.product_code == "2716"
    assert rec.product_description == "electricity"
    assert rec.origin_country == "Norway"
    assert rec.value == 300.0


def test_first_matching_alias_wins():
    mapping = resolve_columns(["Code", "HS Code", "Description"], default_rules().columns)
    # "HS Code" стоит в списке алиасов раньше, чем "Code"
    assert mapping["productCode"] == 1
    assert mapping["productDescription"] == 2
    assert mapping["originCountry"] is None


def test_amount_column_fills_quantity_and_value():
    only_amount = normalize(csv_bytes([["Description", "Amount"], ["steel coil", "250"]]), "csv")
    assert (only_amount[0].quantity, only_amount[0].value) == (250.0, 250.0)

    # "Quantity"/"Value" стоят в алиасах раньше "Amount"
    explicit = normalize(csv_bytes([["Description", "Amount", "Value"], ["steel coil", "250", "9000"]]), "csv")
    assert (explicit[0].quantity, explicit[0].value) == (250.0, 9000.0)


def test_excel_reads_first_sheet_only_and_keeps_code_text():
    data = xlsx_bytes(
        [
            ["HS Code", "Product Description", "Origin Country", "Quantity", "Value"],
            [7301, "steel pipe", "China", 100, 50000],
            [3102.0, "urea", "Russia", 5, 700.5],
        ],
        [
            ["HS Code", "Product Description"],
            ["9999", "ignored"],
        ],
    )
    records = normalize(data, "xlsx")

    assert len(records) == 2
    assert records[0].product_code == "7301"
    assert records[1].product_code == "3102"
    assert records[1].value == 700.5


def test_blank_rows_are_skipped_and_order_is_preserved():
    data = csv_bytes([
        ["Code", "Description", "Country", "Value"],
        ["1", "b", "X", "1"],
        ["", "", "", ""],
        ["2", "a", "Y", "2"],
        ["1", "b", "X", "1"],
    ])
    records = normalize(data, "csv")

    assert [r.product_code for r in records] == ["1", "2", "1"]
    assert [r.source_row for r in records] == [2, 4, 5]


def test_garbage_excel_raises_parse_error():
    with pytest.raises(ParseError):
        normalize(b"definitely not a zip archive", "xlsx")


def test_binary_content_as_csv_raises_parse_error():
    with pytest.raises(ParseError):
        normalize(b"PK\x03\x04\x00\x00\x00binary", "csv")


def test_unsupported_format_raises_parse_error(trade_csv):
    with pytest.raises(ParseError):
        normalize(trade_csv, "pdf")


def test_empty_file_gives_no_records():
    assert normalize(b"", "csv") == []


def test_cp1254_encoded_csv_is_decoded():
    data = csv_bytes([
        ["Kod", "Açıklama", "Ülke", "Değer"],
        ["7306", "çelik boru", "Türkiye", "10"],
    ], encoding="cp1254")
    (rec,) = normalize(data, "csv")

    assert rec.product_description == "çelik boru"
    assert rec.origin_country == "Türkiye"


def test_raw_table_has_origin_row_column(trade_csv):
    df = read_first_table(trade_csv, "csv")
    assert list(df["_origin_row"]) == list(range(1, len(TRADE_ROWS) + 1))


@pytest.mark.parametrize("filename, fmt", [
    ("decl.xlsx", "xlsx"),
    ("DECL.XLSM", "xlsx"),
    ("old.xls", "xls"),
    ("export.csv", "csv"),
    ("noext", "csv"),
])
def test_detect_format(filename, fmt):
    assert detect_format(filename) == fmt


@pytest.mark.parametrize("raw, expected", [
    ("50000", 50000.0),
    ("1,234.5", 1234.5),
    ("1.234,5", 1234.5),
    ("12,5", 12.5),
    ("$1,000", 1000.0),
    ("1 234", 1234.0),
    ("", None),
    ("abc", None),
    (float("nan"), None),
    (7, 7.0),
])
def test_parse_number(raw, expected):
    assert parse_number(raw) == expected
