"""
Input Validation Utilities

FLOW OVERVIEW
- validate_email(email)
  • RFC-like syntax checks; returns sanitized lowercased value.
- validate_password(password)
  • Length bounds only (6..128), matching what the signup and password-change forms accept.
- validate_text(value, field, required, max_length)
  • Trim, bound length, remove null bytes.
- parse_date / parse_decimal / validate_choice / parse_bool
  • Coerce request values into column types, reporting a field-specific message.
- FieldErrors
  • Collects {'field', 'message'} pairs for a 400 `{'errors': [...]}` response.

Every helper returns a ValidationResult; callers read `sanitized_value` on success.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional, Iterable, List, Dict
from dataclasses import dataclass, field


@dataclass
class ValidationResult:
    """Result of validation operation"""
    is_valid: bool
    error_message: Optional[str] = None
    sanitized_value: Optional[Any] = None


class InputValidator:
    """Validation rules for request payloads"""

    EMAIL_PATTERN = re.compile(
        r'^[a-zA-Z0-9.!#$%&\'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$'
    )

    PASSWORD_MIN_LENGTH = 6
    PASSWORD_MAX_LENGTH = 128

    @classmethod
    def validate_email(cls, email: str) -> ValidationResult:
        """
        Validate email address

        Args:
            email: Email address to validate

        Returns:
            ValidationResult with validation status and sanitized value
        """
        if not email or not isinstance(email, str):
            return ValidationResult(False, "Email must be a non-empty string")

        email = email.strip()
        if email == "":
            return ValidationResult(False, "Email cannot be empty")

        if len(email) > 254:
            return ValidationResult(False, "Email address too long (max 254 characters)")

        if not cls.EMAIL_PATTERN.match(email):
            return ValidationResult(False, "Invalid email format")

        local_part, domain = email.split('@')
        if len(local_part) > 64:
            return ValidationResult(False, "Email local part too long (max 64 characters)")

        if local_part.startswith('.') or local_part.endswith('.') or '..' in local_part:
            return ValidationResult(False, "Invalid email format")

        if '.' not in domain:
            return ValidationResult(False, "Invalid email format")

        return ValidationResult(True, sanitized_value=email.lower())

    @classmethod
    def validate_password(cls, password: str) -> ValidationResult:
        """
        Validate password length

        Args:
            password: Plain text password

        Returns:
            ValidationResult with validation status
        """
        if not password or not isinstance(password, str):
            return ValidationResult(False, "Password must be a non-empty string")

        if len(password) < cls.PASSWORD_MIN_LENGTH:
            return ValidationResult(
                False, f"Password must be at least {cls.PASSWORD_MIN_LENGTH} characters long"
            )

        if len(password) > cls.PASSWORD_MAX_LENGTH:
            return ValidationResult(False, "Password too long (max 128 characters)")

        return ValidationResult(True, sanitized_value=password)

    @classmethod
    def sanitize_input(cls, input_string: str, max_length: int = 1000) -> str:
        """
        Sanitize free text input

        Args:
            input_string: Input string to sanitize
            max_length: Maximum allowed length

        Returns:
            Sanitized string
        """
        if not input_string:
            return ""

        sanitized = str(input_string).strip()

        if len(sanitized) > max_length:
            sanitized = sanitized[:max_length]

        sanitized = sanitized.replace('\x00', '')
        sanitized = sanitized.replace('\r\n', '\n').replace('\r', '\n')

        return sanitized


def validate_email(email: str) -> ValidationResult:
    """Validate email address"""
    return InputValidator.validate_email(email)


def validate_password(password: str) -> ValidationResult:
    """Validate password length"""
    return InputValidator.validate_password(password)


def sanitize_input(input_string: str, max_length: int = 1000) -> str:
    """Sanitize user input"""
    return InputValidator.sanitize_input(input_string, max_length)


def validate_text(value: Any, label: str, required: bool = True, max_length: int = 255) -> ValidationResult:
    """Trimmed string; empty is an error only when required"""
    if value is None or (isinstance(value, str) and value.strip() == ''):
        if required:
            return ValidationResult(False, f"{label} is required")
        return ValidationResult(True, sanitized_value=None)
    if not isinstance(value, (str, int, float)):
        return ValidationResult(False, f"{label} must be text")
    return ValidationResult(True, sanitized_value=sanitize_input(str(value), max_length))


def parse_date(value: Any, label: str, required: bool = False) -> ValidationResult:
    """Accept date objects or ISO 'YYYY-MM-DD' (a trailing time part is ignored)"""
    if value in (None, ''):
        if required:
            return ValidationResult(False, f"{label} is required")
        return ValidationResult(True, sanitized_value=None)
    if isinstance(value, datetime):
        return ValidationResult(True, sanitized_value=value.date())
    if isinstance(value, date):
        return ValidationResult(True, sanitized_value=value)
    try:
        return ValidationResult(True, sanitized_value=date.fromisoformat(str(value)[:10]))
    except ValueError:
        return ValidationResult(False, f"{label} must be a valid date (YYYY-MM-DD)")


def parse_decimal(value: Any, label: str, required: bool = False,
                  minimum: Optional[Decimal] = None, maximum: Optional[Decimal] = None,
                  exclusive_minimum: bool = False, places: Optional[Decimal] = None) -> ValidationResult:
    """Coerce a number or numeric string to Decimal within optional bounds

    With `places`, the value is rounded (half up) before the bounds are checked,
    so the checked value is the one a Numeric column stores.
    """
    if value in (None, ''):
        if required:
            return ValidationResult(False, f"{label} is required")
        return ValidationResult(True, sanitized_value=None)
    if isinstance(value, bool):
        return ValidationResult(False, f"{label} must be a number")
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ValidationResult(False, f"{label} must be a number")
    if not number.is_finite():
        return ValidationResult(False, f"{label} must be a number")
    if places is not None:
        try:
            number = number.quantize(places, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            return ValidationResult(False, f"{label} is too large")
    if minimum is not None:
        if exclusive_minimum and number <= minimum:
            return ValidationResult(False, f"{label} must be greater than {minimum}")
        if not exclusive_minimum and number < minimum:
            return ValidationResult(False, f"{label} must be at least {minimum}")
    if maximum is not None and number > maximum:
        return ValidationResult(False, f"{label} must be at most {maximum}")
    return ValidationResult(True, sanitized_value=number)


def parse_int(value: Any, label: str, required: bool = False) -> ValidationResult:
    if value in (None, ''):
        if required:
            return ValidationResult(False, f"{label} is required")
        return ValidationResult(True, sanitized_value=None)
    if isinstance(value, bool):
        return ValidationResult(False, f"{label} must be an integer")
    try:
        return ValidationResult(True, sanitized_value=int(value))
    except (TypeError, ValueError):
        return ValidationResult(False, f"{label} must be an integer")


def validate_choice(value: Any, label: str, choices: Iterable[str],
                    default: Optional[str] = None) -> ValidationResult:
    if value in (None, ''):
        if default is None:
            return ValidationResult(False, f"{label} is required")
        return ValidationResult(True, sanitized_value=default)
    choices = tuple(choices)
    if value not in choices:
        return ValidationResult(False, f"{label} must be one of: {', '.join(choices)}")
    return ValidationResult(True, sanitized_value=value)


def parse_bool(value: Any) -> bool:
    """Form fields arrive as strings; JSON as real booleans"""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


@dataclass
class FieldErrors:
    """Accumulates per-field validation failures"""
    errors: List[Dict[str, str]] = field(default_factory=list)

    def check(self, field_name: str, result: ValidationResult) -> Any:
        """Record a failed result; returns the sanitized value either way"""
        if not result.is_valid:
            self.errors.append({'field': field_name, 'message': result.error_message})
        return result.sanitized_value

    def add(self, field_name: str, message: str) -> None:
        self.errors.append({'field': field_name, 'message': message})

    def __bool__(self) -> bool:
        return bool(self.errors)
