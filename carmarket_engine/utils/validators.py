"""Syntactic checks for contact fields"""

import re
from typing import Optional

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-().]{7,20}$")
MIN_PHONE_DIGITS = 7


def is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def is_valid_email(value: Optional[str]) -> bool:
    return not is_blank(value) and bool(EMAIL_PATTERN.match(value.strip()))


def is_valid_phone(value: Optional[str]) -> bool:
    """Digits with optional leading '+' and common separators, at least 7 digits"""
    if is_blank(value):
        return False
    candidate = value.strip()
    digits = sum(ch.isdigit() for ch in candidate)
    return bool(PHONE_PATTERN.match(candidate)) and digits >= MIN_PHONE_DIGITS
