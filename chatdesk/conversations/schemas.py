"""Pydantic schemas for the chat and dashboard APIs."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import ContactInfo, ConversationStatus, MessageRole


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Message(_CamelModel):
    id: int
    conversation_id: int
    role: MessageRole
    content: str
    created_at: datetime


class ConversationRecord(_CamelModel):
    id: int
    session_key: str
    operator_id: str
    session_id: str
    status: ConversationStatus = ConversationStatus.NEW
    agent_requested: bool = False
    contact_email: str | None = None
    contact_phone: str | None = None
    sms_number: str | None = None
    message_count: int = 0
    customer_message_count: int = 0
    handoff_state: str = "none"
    handoff_channel: str | None = None
    notified_contact: str | None = None
    sms_welcomed_number: str | None = None
    human_ack_sent: bool = False
    started_at: datetime
    last_message_at: datetime | None = None
    last_operator_message_at: datetime | None = None

    @property
    def contact(self) -> ContactInfo:
        return ContactInfo(
            email=self.contact_email,
            phone=self.contact_phone,
            sms_number=self.sms_number,
        )


class ConversationDetail(ConversationRecord):
    messages: list[Message] = Field(default_factory=list)


class ConversationList(_CamelModel):
    items: list[ConversationRecord]
    total: int


# Customer-facing payloads ------------------------------------------------------


class ChatRequest(_CamelModel):
    message: str
    session_id: str = "default"
    operator_id: str


class ChatReply(_CamelModel):
    """Reply returned to the widget; ``response`` is ``None`` when suppressed."""

    response: str | None = None
    agent_requested: bool = False
    start_polling: bool = False
    human_joined: bool = False
    handoff_state: str = "none"


class ContactRequest(_CamelModel):
    operator_id: str
    session_id: str = "default"
    email: str | None = None
    phone: str | None = None


class ContactResponse(_CamelModel):
    success: bool = True
    message: str


class PolledMessage(_CamelModel):
    role: MessageRole
    content: str
    created_at: datetime


class PollResponse(_CamelModel):
    new_messages: list[PolledMessage]
    total_count: int


# Dashboard payloads ------------------------------------------------------------


class OperatorMessageRequest(_CamelModel):
    text: str = Field(min_length=1)


class OperatorMessageResponse(_CamelModel):
    message: Message
    conversation: ConversationRecord


class StatusUpdateRequest(_CamelModel):
    status: ConversationStatus
