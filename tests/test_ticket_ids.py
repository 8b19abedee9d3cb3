from __future__ import annotations

from datetime import datetime, timezone

import pytest

from jobdesk.errors import SequenceExhaustedError
from jobdesk.tickets.ids import (
    disambiguate_order_number,
    fallback_sequence,
    fallback_ticket,
    format_ticket,
    lock_name,
    order_number_for,
    parse_ticket,
    year_prefix,
)


def test_format_ticket_pads_to_four_digits():
    assert format_ticket("25", 1) == "25-0001"
    assert format_ticket("25", 42) == "25-0042"
    assert format_ticket("25", 9999) == "25-9999"


def test_format_ticket_rejects_out_of_range_sequences():
    with pytest.raises(ValueError):
        format_ticket("25", 0)
    with pytest.raises(SequenceExhaustedError) as exc_info:
        format_ticket("25", 10000)
    assert exc_info.value.details == {"prefix": "25", "sequence": 10000}


def test_year_prefix_uses_two_digit_year():
    assert year_prefix(datetime(2025, 1, 1, tzinfo=timezone.utc)) == "25"
    assert year_prefix(datetime(2100, 6, 1, tzinfo=timezone.utc)) == "00"
    assert year_prefix(datetime(2009, 6, 1, tzinfo=timezone.utc)) == "09"


def test_parse_ticket_round_trips_and_rejects_garbage():
    assert parse_ticket("25-0007") == ("25", 7)
    for bad in ("2025-0001", "25-001", "25_0001", "JO25-0001", ""):
        with pytest.raises(ValueError):
            parse_ticket(bad)


def test_lock_name_is_scoped_per_year():
    assert lock_name("25") == "ticket-seq:25"
    assert lock_name("24") != lock_name("25")


def test_fallback_sequence_uses_microsecond_clock():
    assert fallback_sequence(1_700_000_000_123_456_789) == 3456
    assert fallback_ticket("25", 1_700_000_000_123_456_789) == "25-3456"


def test_fallback_sequence_never_returns_zero():
    assert fallback_sequence(1_700_000_000_000_000_000) == 9999


def test_order_number_derives_from_first_ticket():
    assert order_number_for("25-0007") == "JO25-0007"


def test_disambiguated_order_number_uses_millisecond_suffix():
    assert disambiguate_order_number("JO25-0007", 1_700_000_000_042_000_000) == "JO25-0007-042"
    assert disambiguate_order_number("JO25-0007", 1_700_000_000_999_999_999) == "JO25-0007-999"
