"""Tests for phone number and snippet helpers."""

import pytest

from notekeep.utils import first_line_of, normalize_phone_number, phone_numbers_equal


class TestNormalizePhoneNumber:
    """Tests for normalize_phone_number."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("(555) 123-4567", "5551234567"),
            ("+1 555.123.4567", "+15551234567"),
            ("12+34", "1234"),
            ("*31#", "*31#"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_phone_number(raw) == expected


class TestPhoneNumbersEqual:
    """Tests for phone_numbers_equal."""

    def test_formatting_ignored(self):
        assert phone_numbers_equal("555-123-4567", "(555) 1234567")

    def test_country_prefix(self):
        assert phone_numbers_equal("+1 555 123 4567", "555-123-4567")

    def test_short_numbers_need_exact_match(self):
        assert phone_numbers_equal("112", "112")
        assert not phone_numbers_equal("123", "0123")

    def test_different_numbers(self):
        assert not phone_numbers_equal("555-123-4567", "555-765-4321")

    def test_empty(self):
        assert not phone_numbers_equal("", "")
        assert not phone_numbers_equal(None, "5551234567")


class TestFirstLineOf:
    """Tests for first_line_of."""

    def test_cuts_at_newline(self):
        assert first_line_of("hello\nworld") == "hello"

    def test_trims(self):
        assert first_line_of("  hi  ") == "hi"

    def test_trims_before_cutting(self):
        assert first_line_of("\n  title \nbody") == "title "

    def test_none_passes_through(self):
        assert first_line_of(None) is None

    def test_empty(self):
        assert first_line_of("") == ""
