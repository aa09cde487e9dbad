import pytest

from chatdesk.conversations.contact import (
    detect_channel_choice,
    extract_contact,
    normalize_phone,
    validate_contact,
)
from chatdesk.conversations.models import ContactInfo
from chatdesk.errors import ValidationFailure


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("555-123-4567", "+15551234567"),
        ("(555) 123 4567", "+15551234567"),
        ("1 555 123 4567", "+15551234567"),
        ("+44 20 7946 0958", "+442079460958"),
        ("12345", None),
        ("+123", None),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_extract_contact_finds_email_and_phone():
    contact = extract_contact("Sure! Jane@Example.com or call 555-123-4567 after 5")

    assert contact == ContactInfo(email="jane@example.com", phone="+15551234567")


def test_extract_contact_ignores_short_numbers():
    assert extract_contact("we are 4 adults and 2 kids").is_empty


@pytest.mark.parametrize(
    ("message", "choice"),
    [
        ("text please", "sms"),
        ("can you sms me", "sms"),
        ("chat is fine", "chat"),
        ("i'll stay here", "chat"),
        ("whatever works", None),
        ("context matters", None),
    ],
)
def test_detect_channel_choice(message, choice):
    assert detect_channel_choice(message) == choice


def test_validate_contact_normalises_values():
    contact = validate_contact(" Jane@Example.com ", "555 123 4567")

    assert contact.email == "jane@example.com"
    assert contact.phone == "+15551234567"


@pytest.mark.parametrize(
    ("email", "phone"),
    [
        (None, None),
        ("  ", ""),
        ("not-an-email", None),
        (None, "12"),
    ],
)
def test_validate_contact_rejects_bad_input(email, phone):
    with pytest.raises(ValidationFailure):
        validate_contact(email, phone)


def test_contact_merge_and_fingerprint():
    merged = ContactInfo(email="a@b.co").merged(ContactInfo(phone="+15551234567"))

    assert merged.email == "a@b.co"
    assert merged.text_number == "+15551234567"
    assert merged.fingerprint == "a@b.co|+15551234567|"
    assert "Phone: +15551234567" in merged.describe()
    assert ContactInfo().describe() == "No contact details provided"
