"""
auth/validators.py -- Email and password policy checks.

Both validators raise ValidationError with a caller-safe message and return
None on success. They run before any hashing or storage work so malformed
input fails fast and cheaply.
"""

from __future__ import annotations

import re

from auth.errors import ValidationError

EMAIL_MAX_LENGTH = 254
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
PASSWORD_SYMBOLS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_email(email: str) -> None:
    """Require a non-empty local@domain.tld shaped string of at most 254 chars."""
    if not email or not isinstance(email, str):
        raise ValidationError("Email must be a non-empty string.")
    if len(email) > EMAIL_MAX_LENGTH:
        raise ValidationError(f"Email must not exceed {EMAIL_MAX_LENGTH} characters.")
    if not _EMAIL_RE.fullmatch(email):
        raise ValidationError("Invalid email format.")


def validate_password(password: str) -> None:
    """Enforce length 8-128 and one each of uppercase, lowercase, digit and symbol."""
    if not password or not isinstance(password, str):
        raise ValidationError("Password must be a non-empty string.")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long.")
    if len(password) > PASSWORD_MAX_LENGTH:
        raise ValidationError(f"Password must not exceed {PASSWORD_MAX_LENGTH} characters.")

    has_upper = any(c.isascii() and c.isupper() for c in password)
    has_lower = any(c.isascii() and c.islower() for c in password)
    has_digit = any(c.isascii() and c.isdigit() for c in password)
    has_symbol = any(c in PASSWORD_SYMBOLS for c in password)
    if not (has_upper and has_lower and has_digit and has_symbol):
        raise ValidationError("Password must contain uppercase, lowercase, number, and special character.")
