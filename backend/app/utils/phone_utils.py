"""
Phone number helpers
---------------------------------
Features:
- Phone number format check
- Phone number masking for logs

Usage:
- validate_phone_number() - check a phone number
- mask_phone_number() - mask a phone number
"""

import re


def validate_phone_number(phone: str) -> bool:
    """
    Check a phone number: optional leading "+", then at least 10 digits,
    spaces or dashes

    Args:
        phone: phone number string

    Returns:
        whether the format is valid
    """
    pattern = r'^\+?[\d\s-]{10,}$'
    return bool(re.match(pattern, phone))


def mask_phone_number(phone: str) -> str:
    """
    Mask a phone number: +250****4567

    Args:
        phone: raw phone number

    Returns:
        masked phone number
    """
    if len(phone) >= 8:
        return f"{phone[:4]}****{phone[-4:]}"
    return phone
