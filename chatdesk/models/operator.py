"""Operator (tenant) configuration model."""

from __future__ import annotations

import datetime as dt
from typing import Any

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


def _utcnow() -> dt.datetime:
    """Return the current UTC timestamp with timezone awareness."""

    return dt.datetime.now(dt.timezone.utc)


class Operator(Base):
    """A business that configured one chatbot instance.

    Attributes:
        id: Short opaque token handed out when the setup form is submitted.
        config: Full configuration blob; replaced wholesale on update.
    """

    __tablename__ = "chat_operators"

    id: Mapped[str] = mapped_column(String(length=32), primary_key=True)
    config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )
