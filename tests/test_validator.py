import pytest

from chat_ledger.core import validator
from chat_ledger.core.errors import (
    EmptyField,
    InvalidAmount,
    InvalidDate,
    TooLong,
    UnknownCategory,
    ValidationError,
)
from chat_ledger.core.models import UNCATEGORIZED


def test_amount_coerces_strings():
    assert validator.validate_amount("25000") == 25000
    assert validator.validate_amount(" 18000 ") == 18000
    assert validator.validate_amount(1_000_000_000) == 1_000_000_000


@pytest.mark.parametrize("raw", ["abc", "", None, 0, -5, "-1", 1_000_000_001, True, float("nan"),
                                 float("inf"), float("-inf")])
def test_amount_rejects(raw):
    with pytest.raises(InvalidAmount):
        validator.validate_amount(raw)


def test_amount_error_messages():
    with pytest.raises(InvalidAmount, match="greater than 0"):
        validator.validate_amount(0)
    with pytest.raises(InvalidAmount, match="maximum"):
        validator.validate_amount(2_000_000_000)
    with pytest.raises(InvalidAmount, match="maximum"):
        validator.validate_amount(float("inf"))


def test_description_trimmed_and_bounded():
    assert validator.validate_description("  Kopi  ") == "Kopi"
    with pytest.raises(EmptyField):
        validator.validate_description("   ")
    with pytest.raises(TooLong):
        validator.validate_description("x" * 256)
    assert validator.validate_description("x" * 255) == "x" * 255


def test_category_empty_is_uncategorized():
    assert validator.validate_category("") == UNCATEGORIZED
    assert validator.validate_category(None) == UNCATEGORIZED


def test_unknown_category_lists_allowed_values():
    with pytest.raises(UnknownCategory) as excinfo:
        validator.validate_category("Groceries")
    message = str(excinfo.value)
    assert "Allowed:" in message
    assert "Food and Drink" in message
    assert "Utilities" in message


def test_category_against_custom_set():
    assert validator.validate_category("Pets", ["Pets", "Rent"]) == "Pets"
    with pytest.raises(UnknownCategory):
        validator.validate_category("Food and Drink", ["Pets"])


@pytest.mark.parametrize("raw", ["2025/01/01", "2025-1-1", "2025-02-30", "yesterday", 20250101])
def test_bad_dates(raw):
    with pytest.raises(InvalidDate):
        validator.validate_date_format(raw)


def test_good_date():
    assert validator.validate_date_format("2024-02-29") == "2024-02-29"


def test_optional_text_limits():
    assert validator.validate_tag("") == ""
    assert validator.validate_tag(" Lunch ") == "Lunch"
    with pytest.raises(TooLong):
        validator.validate_tag("t" * 101)
    assert validator.validate_note("n" * 500) == "n" * 500
    with pytest.raises(TooLong):
        validator.validate_note("n" * 501)
    with pytest.raises(TooLong):
        validator.validate_account("a" * 101)


def test_record_reports_first_failure_in_order():
    with pytest.raises(EmptyField):
        validator.validate_record({"description": "", "amount": -1, "category": "nope"})
    with pytest.raises(InvalidAmount):
        validator.validate_record({"description": "Kopi", "amount": -1, "category": "nope"})
    with pytest.raises(UnknownCategory):
        validator.validate_record({"description": "Kopi", "amount": 1, "category": "nope"})


def test_record_normalizes():
    clean = validator.validate_record({
        "description": " Kopi ",
        "amount": "25000",
        "tag": " Snack ",
        "date": "2025-01-17",
    })
    assert clean == {
        "description": "Kopi",
        "amount": 25000,
        "category": UNCATEGORIZED,
        "tag": "Snack",
        "note": "",
        "date": "2025-01-17",
        "account": "",
    }


def test_validation_errors_carry_field():
    with pytest.raises(ValidationError) as excinfo:
        validator.validate_amount("x")
    assert excinfo.value.field == "amount"
