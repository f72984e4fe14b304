"""
Unit Tests for canonical receipt strings
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from eduhash.receipts.canonical import (
    LEGACY_NAME,
    build_canonical,
    format_amount,
    format_display_timestamp,
    format_timestamp,
    parse_canonical,
    parse_timestamp,
)

WHEN = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


class TestFormatting:
    @pytest.mark.parametrize("value,expected", [
        (5000, "5000"),
        ("5000", "5000"),
        (Decimal("5000.00"), "5000"),
        (5000.0, "5000"),
        (Decimal("5000.50"), "5000.5"),
        ("12000.25", "12000.25"),
        (Decimal("1E+3"), "1000"),
    ])
    def test_amount(self, value, expected):
        assert format_amount(value) == expected

    @pytest.mark.parametrize("value", ["abc", "NaN", True])
    def test_amount_rejects_non_numbers(self, value):
        with pytest.raises((ValueError, TypeError)):
            format_amount(value)

    def test_timestamp_is_utc_whole_seconds(self):
        local = datetime(2024, 1, 1, 5, 30, 0, 999999, tzinfo=timezone(timedelta(hours=5, minutes=30)))
        assert format_timestamp(local) == "2024-01-01T00:00:00Z"

    def test_naive_timestamp_taken_as_utc(self):
        assert format_timestamp(datetime(2024, 3, 9, 14, 5, 7)) == "2024-03-09T14:05:07Z"

    def test_display_timestamp(self):
        assert format_display_timestamp(WHEN) == "01/01/2024, 00:00:00"

    def test_parse_timestamp(self):
        assert parse_timestamp("2024-01-01T00:00:00Z") == WHEN
        assert parse_timestamp("Mon Jan 01 2024") is None


class TestBuildCanonical:
    def test_field_order(self):
        data = build_canonical("S1", "Alice", 5000, WHEN, "T100")
        assert data == "S1|Alice|5000|2024-01-01T00:00:00Z|T100"

    def test_pipe_in_field_rejected(self):
        with pytest.raises(ValueError):
            build_canonical("S1", "Ali|ce", 5000, WHEN, "T100")

    def test_empty_field_rejected(self):
        with pytest.raises(ValueError):
            build_canonical("S1", "", 5000, WHEN, "T100")

    def test_blank_field_rejected(self):
        with pytest.raises(ValueError):
            build_canonical("S1", "   ", 5000, WHEN, "T100")


class TestParseCanonical:
    def test_v2(self):
        fields = parse_canonical("S1|Alice|5000|2024-01-01T00:00:00Z|T100")

        assert fields.version == "v2"
        assert fields.student_name == "Alice"
        assert fields.amount == "5000"
        assert fields.transaction_id == "T100"

    def test_legacy_dash_format(self):
        """Legacy receipts recover only id, amount and transaction"""
        fields = parse_canonical("S1-5000-T100")

        assert fields.version == "legacy"
        assert fields.student_id == "S1"
        assert fields.amount == "5000"
        assert fields.transaction_id == "T100"
        assert fields.student_name == LEGACY_NAME

    def test_legacy_uses_last_part_as_transaction(self):
        assert parse_canonical("S1-5000-2024-T9").transaction_id == "T9"

    @pytest.mark.parametrize("data", [
        "S1|Alice|5000",
        "S1|Alice|5000|2024-01-01T00:00:00Z|T100|extra",
        "S1||5000|2024-01-01T00:00:00Z|T100",
        "S1-5000",
        "plain",
    ])
    def test_unrecognised_layouts(self, data):
        assert parse_canonical(data) is None
