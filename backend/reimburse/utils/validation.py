from __future__ import annotations
"""Reusable parsing/validation helpers for request values.

All helpers raise ValidationFailed (400) with a field-specific message so
engines and routes share the same wording.
"""
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

from reimburse.errors import ValidationFailed

_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
_CENTS = Decimal('0.01')
# NUMERIC(12,2): ten integer digits
_MAX_AMOUNT = Decimal('9999999999.99')


def require_fields(data: Mapping[str, Any], fields: Iterable[str]):
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        raise ValidationFailed(f"{', '.join(missing)} required")


def require_text(value: Any, field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationFailed(f"{field_name} required")
    return str(value).strip()


def parse_amount(raw: Any, field_name: str = 'totalAmount') -> Decimal:
    """Parse a positive amount with at most two fractional digits."""
    if raw is None or raw == '':
        raise ValidationFailed(f"{field_name} required")
    if isinstance(raw, float):
        raw = repr(raw)
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise ValidationFailed(f"{field_name} must be a decimal number")
    if not amount.is_finite():
        raise ValidationFailed(f"{field_name} must be a decimal number")
    if amount <= 0:
        raise ValidationFailed(f"{field_name} must be greater than zero")
    if amount > _MAX_AMOUNT:
        raise ValidationFailed(f"{field_name} must not exceed {_MAX_AMOUNT}")
    if amount.as_tuple().exponent < -2:
        raise ValidationFailed(f"{field_name} allows at most two decimal places")
    try:
        return amount.quantize(_CENTS)
    except InvalidOperation:
        raise ValidationFailed(f"{field_name} must be a decimal number")


def parse_date(raw: Any, field_name: str, required: bool = False) -> Optional[date]:
    if raw is None or raw == '':
        if required:
            raise ValidationFailed(f"{field_name} required")
        return None
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    # Accept full timestamps too; only the calendar day is significant
    if len(text) > 10 and text[10] in 'T ':
        text = text[:10]
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise ValidationFailed(f"Invalid {field_name} format. Use format: 2025-10-30")


def parse_optional_int(raw: Any, field_name: str) -> Optional[int]:
    if raw is None or raw == '':
        return None
    if isinstance(raw, bool):
        raise ValidationFailed(f"{field_name} must be int")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{field_name} must be int")


def validate_email(raw: Any) -> str:
    email = require_text(raw, 'email')
    if not _EMAIL_RE.match(email):
        raise ValidationFailed('email invalid')
    return email


def validate_date_range(start: Optional[date], end: Optional[date]):
    if start and end and start > end:
        raise ValidationFailed('startDate must be on or before endDate')


def validate_choice(value: str, allowed: Iterable[str], field_name: str) -> str:
    if value not in allowed:
        raise ValidationFailed(f"{field_name} invalid")
    return value

__all__ = [
    'require_fields', 'require_text', 'parse_amount', 'parse_date', 'parse_optional_int',
    'validate_email', 'validate_date_range', 'validate_choice',
]
