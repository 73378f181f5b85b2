from __future__ import annotations

import math
import secrets
import string
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from app.economy.promo.errors import PromoValidationError
from app.economy.promo.types import PromoCodeRecord

KEYWORD_ALPHABET = string.ascii_uppercase + string.digits
KEYWORD_LENGTH = 8
AUTO_KEYWORD_MARKER = "none"
QUANTITY_INTEGER_TOLERANCE = 1e-9
# Quantities land in BIGINT columns.
MAX_QUANTITY = 2**63 - 1
DEFAULT_ACTIVE_WINDOW = timedelta(days=30)
NAIVE_TIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
)


def normalize_keyword(raw_keyword: str | None) -> str:
    return (raw_keyword or "").strip()


def needs_generated_keyword(keyword: str) -> bool:
    return not keyword or keyword.lower() == AUTO_KEYWORD_MARKER


def generate_keyword(length: int = KEYWORD_LENGTH) -> str:
    if length <= 0:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(KEYWORD_ALPHABET) for _ in range(length))


def parse_quantity(raw: object) -> int:
    """Accept numbers and numeric strings that denote a positive whole amount.

    Values within ``QUANTITY_INTEGER_TOLERANCE`` of an integer are rounded to it.
    """
    if raw is None or isinstance(raw, bool):
        raise PromoValidationError("Quantity is required" if raw is None else "Invalid quantity")

    if isinstance(raw, int):
        if raw <= 0:
            raise PromoValidationError("Quantity must be greater than zero")
        if raw > MAX_QUANTITY:
            raise PromoValidationError("Quantity is too large")
        return raw

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            raise PromoValidationError("Quantity is required")
        try:
            value = float(text)
        except ValueError as exc:
            raise PromoValidationError("Invalid quantity") from exc
    elif isinstance(raw, (float, Decimal)):
        value = float(raw)
    else:
        raise PromoValidationError("Invalid quantity")

    if math.isnan(value) or math.isinf(value):
        raise PromoValidationError("Quantity must be a finite number")
    if value <= 0:
        raise PromoValidationError("Quantity must be greater than zero")

    rounded = round(value)
    if abs(value - rounded) > QUANTITY_INTEGER_TOLERANCE:
        raise PromoValidationError("Quantity must be an integer value")
    if rounded > MAX_QUANTITY:
        raise PromoValidationError("Quantity is too large")
    return int(rounded)


def parse_time_input(value: str) -> datetime:
    text = value.strip()
    for time_format in NAIVE_TIME_FORMATS:
        try:
            return datetime.strptime(text, time_format).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    parsed: datetime | None = None
    if "T" in text:
        candidate = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            parsed = None
    if parsed is None or parsed.tzinfo is None:
        raise PromoValidationError("Invalid start or end time")
    return parsed.astimezone(timezone.utc)


def _as_utc(value: datetime | str | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if not value.strip():
        return None
    return parse_time_input(value)


def resolve_active_window(
    start: datetime | str | None,
    end: datetime | str | None,
    *,
    now_utc: datetime,
    default_window: timedelta = DEFAULT_ACTIVE_WINDOW,
) -> tuple[datetime, datetime]:
    start_time = _as_utc(start) or now_utc
    end_time = _as_utc(end) or start_time + default_window
    if end_time <= start_time:
        raise PromoValidationError("End time must be after start time")
    return start_time, end_time


def is_promo_code_active(code: PromoCodeRecord, now_utc: datetime) -> bool:
    if not code.enabled:
        return False
    if code.start_time is not None and now_utc < code.start_time:
        return False
    if code.end_time is not None and now_utc > code.end_time:
        return False
    return True


def normalize_stored_quantity(value: object) -> int:
    """Coerce a quantity read from either table layout into an int."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"unsupported quantity value {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        return int(round(value))
    if isinstance(value, (bytes, str)):
        text = value.decode() if isinstance(value, bytes) else value
        return int(round(Decimal(text.strip())))
    raise ValueError(f"unsupported quantity type {type(value).__name__}")
