"""
Input validation and formatting for ledger fields.

These helpers back both the ledger operations and inline form feedback:
the ``is_valid_*`` predicates never raise, while the ``parse_*`` /
``validate_*`` / ``normalize_*`` functions raise ``ValidationError`` naming
the offending field.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

from qred.core.config import settings
from qred.core.exceptions import ValidationError

CENT = Decimal("0.01")

AmountInput = Union[str, int, float, Decimal]

_AMOUNT_RE = re.compile(r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{0,2})?", re.ASCII)
_PHONE_SEPARATORS_RE = re.compile(r"[\s\-().]")
_OTP_RE = re.compile(r"[0-9]{6}")


def _phone_pattern() -> "re.Pattern[str]":
    country_digits = re.escape(settings.phone_country_code.lstrip("+"))
    return re.compile(
        rf"(?:\+{country_digits}|{country_digits}|0)?([7-9]\d{{9}})", re.ASCII
    )


def quantize_money(value: Decimal) -> Decimal:
    """Round to the currency minor unit (kobo), half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _decimal_from_number(value: AmountInput, field: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    try:
        number = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
        if not number.is_finite():
            raise ValidationError(f"{field} must be a finite number", field=field)
        rounded = number.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number", field=field)
    if number != rounded:
        raise ValidationError(
            f"{field} cannot have more than two decimal places", field=field
        )
    return number.quantize(CENT)


def parse_amount(value: AmountInput, field: str = "amount") -> Decimal:
    """
    Parse a user-facing money amount into a two-place Decimal.

    Accepts plain digits (``"1500"``, ``"1500.5"``), thousands separators
    (``"1,500.50"``), the currency symbol and a leading minus sign, which
    makes it the inverse of ``format_currency``.

    Raises:
        ValidationError: If the value is empty, non-numeric or has more than
            two decimal places.
    """
    if not isinstance(value, str):
        return _decimal_from_number(value, field)

    text = value.strip()
    if not text:
        raise ValidationError(f"{field} is required", field=field)

    negative = text.startswith("-")
    if negative:
        text = text[1:].lstrip()
    if text.startswith(settings.currency_symbol):
        text = text[len(settings.currency_symbol):].lstrip()

    if not _AMOUNT_RE.fullmatch(text):
        raise ValidationError(f"{field} must be a valid amount", field=field)

    try:
        amount = Decimal(text.replace(",", "")).quantize(CENT)
    except InvalidOperation:
        # More digits than the decimal context can hold.
        raise ValidationError(f"{field} must be a valid amount", field=field)
    return -amount if negative else amount


def format_currency(amount: Decimal) -> str:
    """Render an amount as ``₦1,234.50`` (``-₦1,234.50`` when negative)."""
    amount = quantize_money(Decimal(amount))
    sign = "-" if amount < 0 else ""
    return f"{sign}{settings.currency_symbol}{abs(amount):,.2f}"


def parse_interest_rate(
    value: Optional[AmountInput], field: str = "interest_rate"
) -> Decimal:
    """Parse an optional percentage; blank means 0. Range is checked separately."""
    if value is None:
        return Decimal("0.00")
    if isinstance(value, str):
        text = value.strip().rstrip("%").strip()
        if not text:
            return Decimal("0.00")
        value = text
    return parse_amount(value, field=field)


def validate_principal(principal: Decimal, field: str = "principal") -> Decimal:
    """Principal must be positive and within the configured ceiling."""
    if principal <= 0:
        raise ValidationError(f"{field} must be greater than zero", field=field)
    if principal > settings.max_debt_amount:
        raise ValidationError(
            f"{field} cannot exceed {format_currency(settings.max_debt_amount)}",
            field=field,
        )
    return principal


def validate_interest_rate(rate: Decimal, field: str = "interest_rate") -> Decimal:
    """Interest rate is a percentage between 0 and 100 inclusive."""
    if rate < 0 or rate > 100:
        raise ValidationError(f"{field} must be between 0 and 100", field=field)
    return rate


def validate_due_date(due_date: date, today: date, field: str = "due_date") -> date:
    """Due dates may be today or later; time of day is not considered."""
    if due_date < today:
        raise ValidationError(f"{field} cannot be in the past", field=field)
    return due_date


def is_valid_phone_number(phone_number: Optional[str]) -> bool:
    """Check a phone number in any accepted local or international form."""
    if not phone_number:
        return False
    cleaned = _PHONE_SEPARATORS_RE.sub("", phone_number)
    return _phone_pattern().fullmatch(cleaned) is not None


def normalize_phone_number(phone_number: str, field: str = "phone_number") -> str:
    """
    Normalize a phone number to its canonical international form.

    ``+2348012345678``, ``2348012345678``, ``08012345678`` and
    ``0801 234 5678`` all become ``+2348012345678``.

    Raises:
        ValidationError: If the number is not a valid number for the region.
    """
    cleaned = _PHONE_SEPARATORS_RE.sub("", phone_number or "")
    match = _phone_pattern().fullmatch(cleaned)
    if match is None:
        raise ValidationError(f"{field} is not a valid phone number", field=field)
    return f"{settings.phone_country_code}{match.group(1)}"


def is_valid_otp(otp: Optional[str]) -> bool:
    """One-time passwords are exactly six ASCII digits."""
    return bool(otp) and _OTP_RE.fullmatch(otp) is not None
