"""Conversation and transcript models."""

from __future__ import annotations

import datetime as dt
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base
from .operator import _utcnow


class Conversation(Base):
    """One customer conversation, keyed by ``{operator_id}_{session_id}``.

    Besides the contact details captured along the way, the row carries the
    persisted handoff snapshot (state, channel and notification bookkeeping).
    """

    __tablename__ = "chat_conversations"
    __table_args__ = (
        Index("ix_chat_conversations_session_key_unique", "session_key", unique=True),
        Index("ix_chat_conversations_operator_id", "operator_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_key: Mapped[str] = mapped_column(String(length=128), nullable=False)
    operator_id: Mapped[str] = mapped_column(String(length=32), nullable=False)
    session_id: Mapped[str] = mapped_column(String(length=96), nullable=False)
    status: Mapped[str] = mapped_column(String(length=16), nullable=False, default="new")
    agent_requested: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    contact_email: Mapped[Optional[str]] = mapped_column(String(length=320))
    contact_phone: Mapped[Optional[str]] = mapped_column(String(length=32))
    sms_number: Mapped[Optional[str]] = mapped_column(String(length=32))

    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    customer_message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    handoff_state: Mapped[str] = mapped_column(String(length=32), nullable=False, default="none")
    handoff_channel: Mapped[Optional[str]] = mapped_column(String(length=16))
    notified_contact: Mapped[Optional[str]] = mapped_column(String(length=512))
    sms_welcomed_number: Mapped[Optional[str]] = mapped_column(String(length=32))
    human_ack_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    started_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    last_message_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))
    last_operator_message_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True)
    )

    messages: Mapped[List["ConversationMessage"]] = relationship(
        back_populates="conversation",
        order_by="ConversationMessage.id",
        passive_deletes=True,
    )


class ConversationMessage(Base):
    """Append-only transcript entry."""

    __tablename__ = "chat_messages"
    __table_args__ = (
        Index("ix_chat_messages_conversation_id", "conversation_id", "id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("chat_conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(String(length=16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    conversation: Mapped[Conversation] = relationship(back_populates="messages")
