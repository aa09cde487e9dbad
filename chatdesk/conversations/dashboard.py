"""Operator dashboard: replies into conversations and customer polling."""

from __future__ import annotations

import logging
from typing import Optional

from ..errors import ConversationNotFoundError, ValidationFailure
from . import schemas
from .cache import SessionLocks
from .effects import EffectRunner, snapshot_from_record
from .handoff import ConversationResolved, HandoffPolicy, OperatorJoined, advance
from .models import POLLED_ROLES, ConversationStatus, MessageRole
from .repository import TranscriptStore

logger = logging.getLogger(__name__)


class DashboardSync:
    """Bridge between operator actions and the customer's polling client."""

    def __init__(
        self,
        transcripts: TranscriptStore,
        effects: EffectRunner,
        *,
        locks: SessionLocks | None = None,
        max_message_length: int = 5000,
    ) -> None:
        self._transcripts = transcripts
        self._effects = effects
        self._locks = locks or SessionLocks()
        self._max_message_length = max_message_length

    def _require(self, conversation_id: int) -> schemas.ConversationRecord:
        record = self._transcripts.get_conversation(conversation_id)
        if record is None:
            raise ConversationNotFoundError(conversation_id)
        return record

    def send_operator_message(
        self, conversation_id: int, text: str
    ) -> schemas.OperatorMessageResponse:
        """Append an operator reply, announcing the operator the first time."""

        text = (text or "").strip()
        if not text:
            raise ValidationFailure("text must not be empty")
        if len(text) > self._max_message_length:
            raise ValidationFailure("text is too long")
        session_key = self._require(conversation_id).session_key
        with self._locks.hold(session_key):
            conversation = self._require(conversation_id)
            transition = advance(
                snapshot_from_record(conversation), OperatorJoined(), HandoffPolicy()
            )
            conversation = self._effects.run(conversation, transition).conversation
            if conversation.status == ConversationStatus.NEW:
                conversation = self._transcripts.set_status(
                    conversation_id, ConversationStatus.IN_PROGRESS
                )
                logger.info("Conversation %s is now in progress", conversation_id)
            message = self._transcripts.append_message(
                conversation_id, MessageRole.OPERATOR, text
            )
            refreshed = self._require(conversation_id)
        return schemas.OperatorMessageResponse(message=message, conversation=refreshed)

    def set_status(
        self, conversation_id: int, status: ConversationStatus
    ) -> schemas.ConversationRecord:
        session_key = self._require(conversation_id).session_key
        with self._locks.hold(session_key):
            conversation = self._transcripts.set_status(conversation_id, status)
            if status == ConversationStatus.RESOLVED:
                transition = advance(
                    snapshot_from_record(conversation), ConversationResolved(), HandoffPolicy()
                )
                conversation = self._effects.run(conversation, transition).conversation
                logger.info("Conversation %s resolved; handoff reset", conversation_id)
            return conversation

    def poll_messages(self, session_key: str, last_seen_count: int) -> schemas.PollResponse:
        """Operator and system messages at transcript index >= ``last_seen_count``."""

        if last_seen_count < 0:
            raise ValidationFailure("lastCount must not be negative")
        conversation = self._transcripts.get_by_session_key(session_key)
        if conversation is None:
            return schemas.PollResponse(new_messages=[], total_count=0)
        messages = self._transcripts.list_messages(conversation.id)
        fresh = [
            schemas.PolledMessage(
                role=message.role, content=message.content, created_at=message.created_at
            )
            for message in messages[last_seen_count:]
            if message.role in POLLED_ROLES
        ]
        return schemas.PollResponse(new_messages=fresh, total_count=len(messages))

    def list_conversations(
        self,
        operator_id: str,
        *,
        status: Optional[ConversationStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> schemas.ConversationList:
        items, total = self._transcripts.list_conversations(
            operator_id, status=status, limit=limit, offset=offset
        )
        return schemas.ConversationList(items=items, total=total)

    def get_conversation_detail(self, conversation_id: int) -> schemas.ConversationDetail:
        conversation = self._require(conversation_id)
        messages = self._transcripts.list_messages(conversation_id)
        return schemas.ConversationDetail(**conversation.model_dump(), messages=messages)
