from __future__ import annotations

import re
from typing import Any, List, Mapping


_EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_AADHAAR_RE = re.compile(r"\d{12}", re.ASCII)
_PHONE_RE = re.compile(r"\d{10}", re.ASCII)

MIN_PASSWORD_LENGTH = 6


def validate_email(email: str) -> bool:
    return bool(_EMAIL_RE.fullmatch(str(email or "")))


def validate_password(password: str) -> bool:
    return len(str(password or "")) >= MIN_PASSWORD_LENGTH


def validate_aadhaar(aadhaar: str) -> bool:
    return bool(_AADHAAR_RE.fullmatch(re.sub(r"\s", "", str(aadhaar or ""))))


def validate_phone(phone: str) -> bool:
    return bool(_PHONE_RE.fullmatch(re.sub(r"\D", "", str(phone or ""))))


def validate_registration(fields: Mapping[str, Any]) -> List[str]:
    """
    Return user-facing problems with a signup form, in form order.
    Empty list means the form can be submitted.
    """
    problems: List[str] = []
    if not validate_email(fields.get("email", "")):
        problems.append("Please enter a valid email address")
    if not validate_password(fields.get("password", "")):
        problems.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not validate_aadhaar(fields.get("aadhaar", "")):
        problems.append("Please enter a valid 12-digit Aadhaar number")
    if not validate_phone(fields.get("phone", "")):
        problems.append("Please enter a valid 10-digit phone number")
    return problems
