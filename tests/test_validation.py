from __future__ import annotations

import pytest

from civiccare.core.validation import (
    validate_aadhaar,
    validate_email,
    validate_password,
    validate_phone,
    validate_registration,
)


@pytest.mark.parametrize(
    "value,ok",
    [
        ("amit@example.com", True),
        ("a.b@c.in", True),
        ("amit@example", False),
        ("amit example@x.com", False),
        ("amit@example.com\n", False),
        ("", False),
        (None, False),
    ],
)
def test_validate_email(value, ok):
    assert validate_email(value) is ok


def test_validate_password_minimum_length():
    assert validate_password("abcdef") is True
    assert validate_password("abcde") is False
    assert validate_password(None) is False


def test_validate_aadhaar_ignores_spaces():
    assert validate_aadhaar("1234 5678 9012") is True
    assert validate_aadhaar("12345678901") is False
    assert validate_aadhaar("12345678901a") is False


def test_validate_phone_ignores_separators():
    assert validate_phone("98765-43210") is True
    assert validate_phone("987654321") is False


def test_validate_registration_reports_in_form_order():
    problems = validate_registration({"email": "bad", "password": "x", "aadhaar": "1", "phone": "2"})
    assert problems == [
        "Please enter a valid email address",
        "Password must be at least 6 characters long",
        "Please enter a valid 12-digit Aadhaar number",
        "Please enter a valid 10-digit phone number",
    ]


def test_validate_registration_accepts_valid_form():
    fields = {
        "email": "amit@example.com",
        "password": "secret1",
        "aadhaar": "123456789012",
        "phone": "9876543210",
    }
    assert validate_registration(fields) == []
