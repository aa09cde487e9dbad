"""Extraction and validation of contact details typed into the chat."""

from __future__ import annotations

import re

from ..errors import ValidationFailure
from .models import ContactInfo

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}")
_EMAIL_FULL_RE = re.compile(rf"^{EMAIL_RE.pattern}$")
# Digits with optional leading + and common separators, 10-15 digits overall.
PHONE_RE = re.compile(r"(?<![\w@])\+?\d[\d\s().-]{8,18}\d(?!\w)")

_SMS_CHOICE_RE = re.compile(r"(?<![a-z])(text|texting|sms|txt)(?![a-z])")
_CHAT_CHOICE_RE = re.compile(r"(?<![a-z])(chat|stay here|right here|here is fine)(?![a-z])")


def normalize_phone(raw: str) -> str | None:
    """Return an E.164-style number or ``None`` when ``raw`` is not a phone."""

    digits = re.sub(r"\D", "", raw)
    if raw.strip().startswith("+"):
        return f"+{digits}" if 10 <= len(digits) <= 15 else None
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if 11 <= len(digits) <= 15:
        return f"+{digits}"
    return None


def extract_contact(text: str) -> ContactInfo:
    """Pull the first email address and phone number out of free text."""

    email_match = EMAIL_RE.search(text)
    email = email_match.group(0).lower() if email_match else None
    phone = None
    scrubbed = EMAIL_RE.sub(" ", text)
    for match in PHONE_RE.finditer(scrubbed):
        phone = normalize_phone(match.group(0))
        if phone:
            break
    return ContactInfo(email=email, phone=phone)


def detect_channel_choice(lowered: str) -> str | None:
    """Return ``"sms"`` or ``"chat"`` when the customer picked a channel."""

    if _SMS_CHOICE_RE.search(lowered):
        return "sms"
    if _CHAT_CHOICE_RE.search(lowered):
        return "chat"
    return None


def validate_contact(email: str | None, phone: str | None) -> ContactInfo:
    """Validate a contact-form submission."""

    email = (email or "").strip() or None
    phone = (phone or "").strip() or None
    if not email and not phone:
        raise ValidationFailure("Provide an email address or a phone number")
    if email and not _EMAIL_FULL_RE.match(email):
        raise ValidationFailure("Email address is not valid")
    normalized_phone = None
    if phone:
        normalized_phone = normalize_phone(phone)
        if not normalized_phone:
            raise ValidationFailure("Phone number is not valid")
    return ContactInfo(email=email.lower() if email else None, phone=normalized_phone)
