# chat_ledger/core/validator.py
"""Field validation for transactions.

Every function here is pure: it either returns the normalized value or raises
a :class:`~chat_ledger.core.errors.ValidationError` subclass describing the
violated constraint. Nothing touches the record store.
"""
import math
import re
from datetime import date
from typing import Iterable, Mapping

from chat_ledger.core.errors import (
    EmptyField,
    InvalidAmount,
    InvalidDate,
    TooLong,
    UnknownCategory,
)
from chat_ledger.core.models import DEFAULT_CATEGORIES, UNCATEGORIZED

MAX_AMOUNT = 1_000_000_000
MAX_DESCRIPTION = 255
MAX_TAG = 100
MAX_NOTE = 500
MAX_ACCOUNT = 100

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_amount(raw) -> int:
    if isinstance(raw, bool):
        raise InvalidAmount("Amount must be a valid number")
    if isinstance(raw, str):
        match = re.match(r"\s*[-+]?\d+", raw)
        if not match:
            raise InvalidAmount("Amount must be a valid number")
        value = int(match.group())
    elif isinstance(raw, (int, float)):
        if isinstance(raw, float) and math.isnan(raw):
            raise InvalidAmount("Amount must be a valid number")
        if isinstance(raw, float) and math.isinf(raw):
            raise InvalidAmount("Amount exceeds maximum allowed value" if raw > 0
                                else "Amount must be greater than 0")
        value = int(raw)
    else:
        raise InvalidAmount("Amount must be a valid number")

    if value <= 0:
        raise InvalidAmount("Amount must be greater than 0")
    if value > MAX_AMOUNT:
        raise InvalidAmount("Amount exceeds maximum allowed value")
    return value


def validate_description(raw) -> str:
    if not isinstance(raw, str):
        raise EmptyField("description", "Expense name must be a string")
    trimmed = raw.strip()
    if not trimmed:
        raise EmptyField("description", "Expense name cannot be empty")
    if len(trimmed) > MAX_DESCRIPTION:
        raise TooLong("description", f"Expense name too long (max {MAX_DESCRIPTION} characters)")
    return trimmed


def validate_category(raw, categories: Iterable[str] = DEFAULT_CATEGORIES) -> str:
    if not raw:
        return UNCATEGORIZED
    if not isinstance(raw, str):
        raise UnknownCategory("Category must be a string")
    allowed = list(categories)
    trimmed = raw.strip()
    if trimmed not in allowed:
        raise UnknownCategory(f"Invalid category. Allowed: {', '.join(allowed)}")
    return trimmed


def validate_date_format(raw) -> str:
    if not isinstance(raw, str):
        raise InvalidDate("Date must be a string in YYYY-MM-DD format")
    if not _DATE_RE.match(raw):
        raise InvalidDate("Date must be in YYYY-MM-DD format")
    try:
        date.fromisoformat(raw)
    except ValueError:
        raise InvalidDate("Invalid date value") from None
    return raw


def _optional_text(raw, field: str, label: str, limit: int) -> str:
    if not raw:
        return ""
    if not isinstance(raw, str):
        raise TooLong(field, f"{label} must be a string")
    trimmed = raw.strip()
    if len(trimmed) > limit:
        raise TooLong(field, f"{label} too long (max {limit} characters)")
    return trimmed


def validate_tag(raw) -> str:
    return _optional_text(raw, "tag", "Tag", MAX_TAG)


def validate_note(raw) -> str:
    return _optional_text(raw, "note", "Note", MAX_NOTE)


def validate_account(raw) -> str:
    return _optional_text(raw, "account", "Account name", MAX_ACCOUNT)


def validate_record(data: Mapping, categories: Iterable[str] = DEFAULT_CATEGORIES) -> dict:
    """Validate a whole record, stopping at the first failing field.

    Order: description, amount, category, tag, note, date, account. ``date``
    stays ``None`` when not supplied so the caller can default it.
    """
    description = validate_description(data.get("description"))
    amount = validate_amount(data.get("amount"))
    category = validate_category(data.get("category"), categories)
    tag = validate_tag(data.get("tag"))
    note = validate_note(data.get("note"))
    raw_date = data.get("date")
    tx_date = validate_date_format(raw_date) if raw_date else None
    account = validate_account(data.get("account"))
    return {
        "description": description,
        "amount": amount,
        "category": category,
        "tag": tag,
        "note": note,
        "date": tx_date,
        "account": account,
    }
