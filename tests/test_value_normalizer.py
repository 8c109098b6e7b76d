import pytest

from src.parsing.value_normalizer import normalize_value


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, None),
        ("NULL", None),
        ("'NULL'", "NULL"),
        ("42", "42"),
        ("'2021-01-01 00:00:00'", "2021-01-01 00:00:00"),
        ('"double"', "double"),
        ("''", ""),
        ("", ""),
        ("'", "'"),
        ("'unbalanced", "'unbalanced"),
        ("'mixed\"", "'mixed\""),
    ],
)
def test_quoting(raw, expected):
    assert normalize_value(raw) == expected


def test_only_outer_quote_pair_is_removed():
    assert normalize_value("''quoted''") == "'quoted'"


def test_unescapes_quotes_and_backslashes():
    assert normalize_value("'it\\'s'") == "it's"
    assert normalize_value('\'say \\"hi\\"\'') == 'say "hi"'
    assert normalize_value("'C:\\\\temp'") == "C:\\temp"


def test_json_payload_with_escaped_quotes():
    raw = "'{\\\"a\\\":1,\\\"b\\\":\\\"x\\\"}'"
    assert normalize_value(raw) == '{"a":1,"b":"x"}'
