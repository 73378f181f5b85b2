from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.economy.promo.codes import (
    KEYWORD_ALPHABET,
    generate_keyword,
    is_promo_code_active,
    needs_generated_keyword,
    normalize_stored_quantity,
    parse_quantity,
    parse_time_input,
    resolve_active_window,
)
from app.economy.promo.errors import PromoValidationError
from tests.economy.promo_fakes import make_code

UTC = timezone.utc
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def test_generate_keyword_uses_uppercase_alphanumerics() -> None:
    keywords = {generate_keyword() for _ in range(50)}

    assert all(len(keyword) == 8 for keyword in keywords)
    assert all(set(keyword) <= set(KEYWORD_ALPHABET) for keyword in keywords)
    assert len(keywords) > 1


def test_generate_keyword_rejects_non_positive_length() -> None:
    with pytest.raises(ValueError):
        generate_keyword(0)


@pytest.mark.parametrize("keyword", ["", "none", "NONE", "None"])
def test_needs_generated_keyword_for_empty_or_none_marker(keyword: str) -> None:
    assert needs_generated_keyword(keyword) is True


def test_needs_generated_keyword_keeps_explicit_keyword() -> None:
    assert needs_generated_keyword("WELCOME") is False


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (100, 100),
        (100.0, 100),
        ("100", 100),
        (" 42 ", 42),
        ("5.0000000001", 5),
        (Decimal("7"), 7),
        (2**63 - 1, 2**63 - 1),
    ],
)
def test_parse_quantity_accepts_whole_positive_amounts(raw: object, expected: int) -> None:
    assert parse_quantity(raw) == expected


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        (None, "Quantity is required"),
        ("", "Quantity is required"),
        (True, "Invalid quantity"),
        ("abc", "Invalid quantity"),
        ([1], "Invalid quantity"),
        (0, "Quantity must be greater than zero"),
        (-5, "Quantity must be greater than zero"),
        ("-1.5", "Quantity must be greater than zero"),
        (float("nan"), "Quantity must be a finite number"),
        ("inf", "Quantity must be a finite number"),
        (10.5, "Quantity must be an integer value"),
        ("1e300", "Quantity is too large"),
        (10**19, "Quantity is too large"),
        (2**63, "Quantity is too large"),
    ],
)
def test_parse_quantity_rejects_invalid_values(raw: object, message: str) -> None:
    with pytest.raises(PromoValidationError, match=message):
        parse_quantity(raw)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2026-03-01T10:30:00Z", datetime(2026, 3, 1, 10, 30, tzinfo=UTC)),
        ("2026-03-01T12:30:00+02:00", datetime(2026, 3, 1, 10, 30, tzinfo=UTC)),
        ("2026-03-01T10:30:00", datetime(2026, 3, 1, 10, 30, tzinfo=UTC)),
        ("2026-03-01T10:30", datetime(2026, 3, 1, 10, 30, tzinfo=UTC)),
        ("2026-03-01 10:30:15", datetime(2026, 3, 1, 10, 30, 15, tzinfo=UTC)),
        ("2026-03-01 10:30", datetime(2026, 3, 1, 10, 30, tzinfo=UTC)),
        ("2026-03-01", datetime(2026, 3, 1, tzinfo=UTC)),
    ],
)
def test_parse_time_input_supports_iso_and_naive_formats(value: str, expected: datetime) -> None:
    assert parse_time_input(value) == expected


@pytest.mark.parametrize("value", ["yesterday", "01/03/2026", "2026-13-01"])
def test_parse_time_input_rejects_unknown_formats(value: str) -> None:
    with pytest.raises(PromoValidationError, match="Invalid start or end time"):
        parse_time_input(value)


def test_resolve_active_window_defaults_to_now_plus_thirty_days() -> None:
    start, end = resolve_active_window(None, None, now_utc=NOW)

    assert start == NOW
    assert end == NOW + timedelta(days=30)


def test_resolve_active_window_measures_default_end_from_given_start() -> None:
    start, end = resolve_active_window("2026-04-01", None, now_utc=NOW)

    assert start == datetime(2026, 4, 1, tzinfo=UTC)
    assert end == datetime(2026, 5, 1, tzinfo=UTC)


def test_resolve_active_window_treats_blank_strings_as_missing() -> None:
    start, end = resolve_active_window("  ", "", now_utc=NOW)

    assert (start, end) == (NOW, NOW + timedelta(days=30))


@pytest.mark.parametrize("end", ["2026-03-01T12:00:00Z", "2026-02-01"])
def test_resolve_active_window_rejects_end_not_after_start(end: str) -> None:
    with pytest.raises(PromoValidationError, match="End time must be after start time"):
        resolve_active_window("2026-03-01T12:00:00Z", end, now_utc=NOW)


def test_is_promo_code_active_includes_both_bounds() -> None:
    code = make_code(start_time=NOW - timedelta(hours=1), end_time=NOW + timedelta(hours=1))

    assert is_promo_code_active(code, NOW - timedelta(hours=1)) is True
    assert is_promo_code_active(code, NOW + timedelta(hours=1)) is True
    assert is_promo_code_active(code, NOW - timedelta(hours=1, seconds=1)) is False
    assert is_promo_code_active(code, NOW + timedelta(hours=1, seconds=1)) is False


def test_is_promo_code_active_treats_missing_bounds_as_open() -> None:
    assert is_promo_code_active(make_code(), NOW) is True
    assert is_promo_code_active(make_code(end_time=NOW - timedelta(days=1)), NOW) is False
    assert is_promo_code_active(make_code(start_time=NOW + timedelta(days=1)), NOW) is False


def test_is_promo_code_active_respects_disabled_flag() -> None:
    assert is_promo_code_active(make_code(enabled=False), NOW) is False


@pytest.mark.parametrize(
    ("value", "expected"),
    [(10, 10), (10.0, 10), (Decimal("25.000"), 25), ("30", 30), (b"40", 40)],
)
def test_normalize_stored_quantity_coerces_numeric_storage(value: object, expected: int) -> None:
    assert normalize_stored_quantity(value) == expected


def test_normalize_stored_quantity_rejects_missing_value() -> None:
    with pytest.raises(ValueError):
        normalize_stored_quantity(None)
