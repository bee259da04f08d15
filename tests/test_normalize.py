from __future__ import annotations

import pytest

from kfzlotti.normalize import is_valid_code, normalize_code, parse_codes


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("hh", "HH"),
        ("  m ", "M"),
        ("gö", "GÖ"),
        ("B-AB 123", "BAB"),
        ("KLEVE", "KLE"),
        ("123", ""),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_code(raw, expected) -> None:
    assert normalize_code(raw) == expected


def test_parse_codes_skips_invalid_tokens_and_duplicates() -> None:
    assert parse_codes("HH hh B1 TOOLONG M  GÖ") == ["HH", "M", "GÖ"]
    assert parse_codes("") == []
    assert parse_codes(None) == []


def test_is_valid_code() -> None:
    assert is_valid_code("hmü")
    assert not is_valid_code("42")
