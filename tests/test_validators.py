"""
Tests for Input Validation Utilities

Covers the email/password rules used by signup and user management and the
coercion helpers that turn request values into column types.
"""

from datetime import date
from decimal import Decimal

from oneflow.utils.validators import (
    FieldErrors, InputValidator, ValidationResult, parse_bool, parse_date, parse_decimal,
    parse_int, sanitize_input, validate_choice, validate_email, validate_password, validate_text
)


class TestEmailValidation:
    """Email syntax checks"""

    def test_valid_emails(self):
        valid_emails = [
            "test@example.com",
            "user.name@domain.co.uk",
            "user+tag@example.org",
            "user_name@example.com",
            "User@Example.COM",
        ]

        for email in valid_emails:
            result = validate_email(email)
            assert result.is_valid, f"Email '{email}' should be valid: {result.error_message}"
            assert result.sanitized_value == email.lower()

    def test_invalid_emails(self):
        invalid_emails = [
            "",
            "   ",
            "invalid-email",
            "@example.com",
            "user@",
            "user name@example.com",
            "user@localhost",
            ".user@example.com",
            "us..er@example.com",
        ]

        for email in invalid_emails:
            result = validate_email(email)
            assert not result.is_valid, f"Email '{email}' should be invalid"
            assert result.error_message is not None

    def test_email_length_limits(self):
        assert not validate_email("a" * 65 + "@example.com").is_valid
        assert validate_email("a" * 64 + "@example.com").is_valid

    def test_non_string_email(self):
        assert not validate_email(None).is_valid
        assert not validate_email(123).is_valid


class TestPasswordValidation:

    def test_minimum_length(self):
        assert not validate_password("12345").is_valid
        assert validate_password("123456").is_valid

    def test_maximum_length(self):
        assert validate_password("x" * InputValidator.PASSWORD_MAX_LENGTH).is_valid
        assert not validate_password("x" * (InputValidator.PASSWORD_MAX_LENGTH + 1)).is_valid

    def test_missing_password(self):
        result = validate_password(None)
        assert isinstance(result, ValidationResult)
        assert not result.is_valid


class TestTextHelpers:

    def test_sanitize_input_strips_and_truncates(self):
        assert sanitize_input("  hello\x00 ") == "hello"
        assert sanitize_input("abcdef", max_length=3) == "abc"
        assert sanitize_input("a\r\nb") == "a\nb"

    def test_validate_text_required(self):
        assert validate_text("", "Name").error_message == "Name is required"
        result = validate_text(None, "Notes", required=False)
        assert result.is_valid and result.sanitized_value is None

    def test_validate_choice(self):
        assert validate_choice("low", "Priority", ("low", "high")).sanitized_value == "low"
        assert validate_choice(None, "Priority", ("low", "high"), default="low").sanitized_value == "low"
        result = validate_choice("urgent", "Priority", ("low", "high"))
        assert not result.is_valid
        assert "low, high" in result.error_message


class TestCoercion:

    def test_parse_date(self):
        assert parse_date("2024-03-05", "Date").sanitized_value == date(2024, 3, 5)
        assert parse_date("2024-03-05T10:00:00Z", "Date").sanitized_value == date(2024, 3, 5)
        assert not parse_date("05/03/2024", "Date").is_valid
        assert not parse_date(None, "Date", required=True).is_valid

    def test_parse_decimal_bounds(self):
        assert parse_decimal("12.50", "Amount").sanitized_value == Decimal("12.50")
        assert not parse_decimal("abc", "Amount").is_valid
        assert not parse_decimal("NaN", "Amount").is_valid
        assert not parse_decimal(True, "Amount").is_valid
        assert not parse_decimal("-1", "Budget", minimum=0).is_valid
        assert parse_decimal("0", "Budget", minimum=0).is_valid
        assert not parse_decimal("0", "Quantity", minimum=0, exclusive_minimum=True).is_valid
        assert not parse_decimal("101", "Tax", maximum=100).is_valid

    def test_parse_decimal_rounds_before_bounds(self):
        cents = Decimal("0.01")
        assert parse_decimal("2.675", "Price", places=cents).sanitized_value == Decimal("2.68")
        result = parse_decimal("0.004", "Quantity", minimum=0, exclusive_minimum=True, places=cents)
        assert not result.is_valid
        assert result.error_message == "Quantity must be greater than 0"
        assert not parse_decimal("1e40", "Price", places=cents).is_valid

    def test_parse_int(self):
        assert parse_int("7", "Project").sanitized_value == 7
        assert not parse_int("seven", "Project").is_valid
        assert parse_int("", "Project").sanitized_value is None

    def test_parse_bool(self):
        assert parse_bool(True) is True
        assert parse_bool("true") is True
        assert parse_bool("on") is True
        assert parse_bool("false") is False
        assert parse_bool(None) is False


def test_field_errors_collects_failures():
    errors = FieldErrors()
    assert not errors
    value = errors.check('email', validate_email('broken'))
    errors.add('lines', 'At least one line item is required')
    assert value is None
    assert errors
    assert [e['field'] for e in errors.errors] == ['email', 'lines']
