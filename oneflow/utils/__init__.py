"""
Utilities Package

This package contains authentication, validation, arithmetic and infrastructure helpers.
"""

from . import auth_utils
from . import validators
from . import error_handlers

__all__ = [
    'auth_utils',
    'validators',
    'error_handlers'
]
