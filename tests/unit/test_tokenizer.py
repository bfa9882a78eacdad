from __future__ import annotations

import pytest

from church_import.reader.tokenizer import parse_csv_line, split_lines


def test_quoted_comma_stays_in_field():
    assert parse_csv_line('a,"b,c",d') == ["a", "b,c", "d"]


def test_doubled_quote_inside_quotes_is_literal():
    assert parse_csv_line('"say ""hi""",x') == ['say "hi"', "x"]


@pytest.mark.parametrize(
    "line,expected",
    [
        ("a,b,", ["a", "b", ""]),
        (",", ["", ""]),
        ("", [""]),
        ("single", ["single"]),
        (' a , b ', [" a ", " b "]),
    ],
)
def test_edge_shapes(line, expected):
    assert parse_csv_line(line) == expected


def test_unterminated_quote_swallows_rest_of_line():
    assert parse_csv_line('a,"b,c') == ["a", "b,c"]


def test_split_lines_skips_blank_lines_without_counting_them():
    text = "h1,h2\r\n1,2\r\n\r\n   \n3,4\n"
    assert split_lines(text) == [(1, "h1,h2"), (2, "1,2"), (3, "3,4")]


def test_split_lines_empty_text():
    assert split_lines("") == []
    assert split_lines("\n\n") == []
