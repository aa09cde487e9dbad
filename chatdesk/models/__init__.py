"""SQLAlchemy declarative base and chat persistence models.

This package exposes a single declarative ``Base`` class that the stores use
when creating tables. Individual models live in dedicated modules within this
package.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


# Re-export models so callers can import them via ``from chatdesk.models import
# Conversation`` instead of touching private modules.
from .conversation import Conversation, ConversationMessage
from .operator import Operator


__all__ = [
    "Base",
    "Conversation",
    "ConversationMessage",
    "Operator",
]
