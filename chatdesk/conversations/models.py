"""Domain models used by the conversation services."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class MessageRole(str, Enum):
    CUSTOMER = "customer"
    ASSISTANT = "assistant"
    OPERATOR = "operator"
    SYSTEM = "system"


class ConversationStatus(str, Enum):
    NEW = "new"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    ON_HOLD = "on_hold"


#: Roles the customer-facing client picks up when polling.
POLLED_ROLES = frozenset({MessageRole.OPERATOR, MessageRole.SYSTEM})


def make_session_key(operator_id: str, session_id: str) -> str:
    return f"{operator_id}_{session_id}"


@dataclass(frozen=True)
class ContactInfo:
    """Customer contact details; each field is filled independently."""

    email: str | None = None
    phone: str | None = None
    sms_number: str | None = None

    def merged(self, other: "ContactInfo") -> "ContactInfo":
        """Return a copy where every field set on ``other`` wins."""

        return replace(
            self,
            email=other.email or self.email,
            phone=other.phone or self.phone,
            sms_number=other.sms_number or self.sms_number,
        )

    @property
    def is_empty(self) -> bool:
        return not (self.email or self.phone or self.sms_number)

    @property
    def text_number(self) -> str | None:
        return self.sms_number or self.phone

    @property
    def fingerprint(self) -> str:
        return f"{self.email or ''}|{self.phone or ''}|{self.sms_number or ''}"

    def describe(self) -> str:
        parts = []
        if self.email:
            parts.append(f"Email: {self.email}")
        if self.phone:
            parts.append(f"Phone: {self.phone}")
        if self.sms_number and self.sms_number != self.phone:
            parts.append(f"SMS: {self.sms_number}")
        return "\n".join(parts) or "No contact details provided"
