"""Shared validation utilities"""

import re
from typing import Optional


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_thai_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate a Thai mobile/landline number and normalize it to local digits.

    Accepts "081-234-5678", "+66812345678", "0812345678".

    Raises:
        ValueError: If the number is not 9-10 local digits
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)

    # +66 country code replaces the leading zero
    if digits.startswith("66") and len(digits) in (11, 12):
        digits = "0" + digits[2:]

    if not digits.startswith("0") or len(digits) not in (9, 10):
        raise ValueError("Phone number must be a valid Thai number")

    return digits


def validate_promptpay_id(value: Optional[str]) -> Optional[str]:
    """
    PromptPay targets are a mobile number (10 digits), a national/tax ID
    (13 digits) or an e-wallet ID (15 digits).
    """
    if not value:
        return value

    digits = re.sub(r"\D", "", value)
    if len(digits) not in (10, 13, 15):
        raise ValueError("PromptPay ID must be a phone number, national ID or e-wallet ID")
    return digits
