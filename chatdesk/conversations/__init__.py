"""Conversation flow: transcript, cache, classification, handoff and replies."""

from . import schemas
from .cache import CacheSweeper, SessionCache, SessionLocks
from .classifier import Branch, IntentClassifier, IntentKeywords
from .dashboard import DashboardSync
from .effects import EffectRunner
from .handoff import HandoffState, advance
from .models import ContactInfo, ConversationStatus, MessageRole
from .repository import InMemoryTranscriptStore, SqlAlchemyTranscriptStore, TranscriptStore
from .responder import FALLBACK_REPLY, Responder
from .service import ChatService

__all__ = [
    "Branch",
    "CacheSweeper",
    "ChatService",
    "ContactInfo",
    "ConversationStatus",
    "DashboardSync",
    "EffectRunner",
    "FALLBACK_REPLY",
    "HandoffState",
    "InMemoryTranscriptStore",
    "IntentClassifier",
    "IntentKeywords",
    "MessageRole",
    "Responder",
    "SessionCache",
    "SessionLocks",
    "SqlAlchemyTranscriptStore",
    "TranscriptStore",
    "advance",
    "schemas",
]
