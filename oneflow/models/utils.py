"""
Model Utilities

Serialization helpers shared by the `to_dict()` methods and the OTP generator.
"""

import secrets
import string


def generate_otp(length=6):
    """Generate a numeric one-time code"""
    return ''.join(secrets.choice(string.digits) for _ in range(length))


def money(value):
    """Render a Numeric column for JSON (None stays None)"""
    if value is None:
        return None
    return float(value)


def iso(value):
    """Render a date/datetime column for JSON"""
    return value.isoformat() if value else None


def full_name(user):
    """'First Last' for a related user row, or None"""
    if user is None:
        return None
    return f'{user.first_name} {user.last_name}'
