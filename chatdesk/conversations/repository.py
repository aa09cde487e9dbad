"""Transcript persistence for chat conversations."""
from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ..errors import ConversationNotFoundError
from ..models import Conversation, ConversationMessage
from ..models.session import session_scope
from . import schemas
from .handoff import HandoffSnapshot
from .models import ContactInfo, ConversationStatus, MessageRole, make_session_key


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TranscriptStore(Protocol):
    """Abstraction for the durable, append-only conversation log."""

    def get_or_create_conversation(
        self, operator_id: str, session_id: str
    ) -> schemas.ConversationRecord: ...

    def get_conversation(self, conversation_id: int) -> Optional[schemas.ConversationRecord]: ...

    def get_by_session_key(self, session_key: str) -> Optional[schemas.ConversationRecord]: ...

    def append_message(
        self, conversation_id: int, role: MessageRole, content: str
    ) -> schemas.Message: ...

    def list_messages(
        self, conversation_id: int, *, limit: Optional[int] = None
    ) -> List[schemas.Message]: ...

    def update_contact(
        self, session_key: str, contact: ContactInfo
    ) -> schemas.ConversationRecord: ...

    def set_status(
        self, conversation_id: int, status: ConversationStatus
    ) -> schemas.ConversationRecord: ...

    def mark_agent_requested(self, session_key: str) -> schemas.ConversationRecord: ...

    def save_handoff(
        self, conversation_id: int, snapshot: HandoffSnapshot
    ) -> schemas.ConversationRecord: ...

    def list_conversations(
        self,
        operator_id: str,
        *,
        status: Optional[ConversationStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[schemas.ConversationRecord], int]: ...


def _sort_key(record: schemas.ConversationRecord) -> Tuple[datetime, int]:
    return (record.last_message_at or record.started_at, record.id)


# ---------------------------------------------------------------------------
# In-memory store (useful for development and tests)


class InMemoryTranscriptStore:
    def __init__(self) -> None:
        self._conversations: Dict[int, schemas.ConversationRecord] = {}
        self._by_key: Dict[str, int] = {}
        self._messages: Dict[int, List[schemas.Message]] = {}
        self._conversation_seq = 1
        self._message_seq = 1
        self._lock = threading.Lock()

    def _require(self, conversation_id: int) -> schemas.ConversationRecord:
        record = self._conversations.get(conversation_id)
        if record is None:
            raise ConversationNotFoundError(conversation_id)
        return record

    def _require_key(self, session_key: str) -> schemas.ConversationRecord:
        conversation_id = self._by_key.get(session_key)
        if conversation_id is None:
            raise ConversationNotFoundError(session_key)
        return self._conversations[conversation_id]

    def _update(
        self, record: schemas.ConversationRecord, **changes: object
    ) -> schemas.ConversationRecord:
        updated = record.model_copy(update=changes)
        self._conversations[record.id] = updated
        return updated.model_copy()

    def get_or_create_conversation(
        self, operator_id: str, session_id: str
    ) -> schemas.ConversationRecord:
        session_key = make_session_key(operator_id, session_id)
        with self._lock:
            existing = self._by_key.get(session_key)
            if existing is not None:
                return self._conversations[existing].model_copy()
            record = schemas.ConversationRecord(
                id=self._conversation_seq,
                session_key=session_key,
                operator_id=operator_id,
                session_id=session_id,
                started_at=_utcnow(),
            )
            self._conversation_seq += 1
            self._conversations[record.id] = record
            self._by_key[session_key] = record.id
            self._messages[record.id] = []
            return record.model_copy()

    def get_conversation(self, conversation_id: int) -> Optional[schemas.ConversationRecord]:
        with self._lock:
            record = self._conversations.get(conversation_id)
            return record.model_copy() if record else None

    def get_by_session_key(self, session_key: str) -> Optional[schemas.ConversationRecord]:
        with self._lock:
            conversation_id = self._by_key.get(session_key)
            if conversation_id is None:
                return None
            return self._conversations[conversation_id].model_copy()

    def append_message(
        self, conversation_id: int, role: MessageRole, content: str
    ) -> schemas.Message:
        with self._lock:
            record = self._require(conversation_id)
            now = _utcnow()
            message = schemas.Message(
                id=self._message_seq,
                conversation_id=conversation_id,
                role=role,
                content=content,
                created_at=now,
            )
            self._message_seq += 1
            self._messages[conversation_id].append(message)
            changes: Dict[str, object] = {
                "message_count": record.message_count + 1,
                "last_message_at": now,
            }
            if role is MessageRole.CUSTOMER:
                changes["customer_message_count"] = record.customer_message_count + 1
            if role is MessageRole.OPERATOR:
                changes["last_operator_message_at"] = now
            self._update(record, **changes)
            return message.model_copy()

    def list_messages(
        self, conversation_id: int, *, limit: Optional[int] = None
    ) -> List[schemas.Message]:
        with self._lock:
            self._require(conversation_id)
            messages = self._messages[conversation_id]
            if limit is not None:
                messages = messages[-limit:] if limit > 0 else []
            return [message.model_copy() for message in messages]

    def update_contact(
        self, session_key: str, contact: ContactInfo
    ) -> schemas.ConversationRecord:
        with self._lock:
            record = self._require_key(session_key)
            merged = record.contact.merged(contact)
            return self._update(
                record,
                contact_email=merged.email,
                contact_phone=merged.phone,
                sms_number=merged.sms_number,
            )

    def set_status(
        self, conversation_id: int, status: ConversationStatus
    ) -> schemas.ConversationRecord:
        with self._lock:
            return self._update(self._require(conversation_id), status=status)

    def mark_agent_requested(self, session_key: str) -> schemas.ConversationRecord:
        with self._lock:
            return self._update(self._require_key(session_key), agent_requested=True)

    def save_handoff(
        self, conversation_id: int, snapshot: HandoffSnapshot
    ) -> schemas.ConversationRecord:
        with self._lock:
            record = self._require(conversation_id)
            merged = record.contact.merged(snapshot.contact)
            return self._update(
                record,
                handoff_state=snapshot.state.value,
                handoff_channel=snapshot.channel.value if snapshot.channel else None,
                notified_contact=snapshot.notified_contact,
                sms_welcomed_number=snapshot.sms_welcomed_number,
                human_ack_sent=snapshot.human_ack_sent,
                contact_email=merged.email,
                contact_phone=merged.phone,
                sms_number=merged.sms_number,
            )

    def list_conversations(
        self,
        operator_id: str,
        *,
        status: Optional[ConversationStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[schemas.ConversationRecord], int]:
        with self._lock:
            matches = [
                record
                for record in self._conversations.values()
                if record.operator_id == operator_id
                and (status is None or record.status == status)
            ]
        matches.sort(key=_sort_key, reverse=True)
        page = matches[offset : offset + limit]
        return [record.model_copy() for record in page], len(matches)


# ---------------------------------------------------------------------------
# SQLAlchemy store


def _record_from_row(row: Conversation) -> schemas.ConversationRecord:
    return schemas.ConversationRecord(
        id=row.id,
        session_key=row.session_key,
        operator_id=row.operator_id,
        session_id=row.session_id,
        status=row.status,
        agent_requested=row.agent_requested,
        contact_email=row.contact_email,
        contact_phone=row.contact_phone,
        sms_number=row.sms_number,
        message_count=row.message_count,
        customer_message_count=row.customer_message_count,
        handoff_state=row.handoff_state,
        handoff_channel=row.handoff_channel,
        notified_contact=row.notified_contact,
        sms_welcomed_number=row.sms_welcomed_number,
        human_ack_sent=row.human_ack_sent,
        started_at=row.started_at,
        last_message_at=row.last_message_at,
        last_operator_message_at=row.last_operator_message_at,
    )


def _message_from_row(row: ConversationMessage) -> schemas.Message:
    return schemas.Message(
        id=row.id,
        conversation_id=row.conversation_id,
        role=row.role,
        content=row.content,
        created_at=row.created_at,
    )


def _apply_contact(row: Conversation, contact: ContactInfo) -> None:
    if contact.email:
        row.contact_email = contact.email
    if contact.phone:
        row.contact_phone = contact.phone
    if contact.sms_number:
        row.sms_number = contact.sms_number


class SqlAlchemyTranscriptStore:
    """Persist conversations through SQLAlchemy (PostgreSQL or SQLite)."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def _load(self, session: Session, conversation_id: int) -> Conversation:
        row = session.get(Conversation, conversation_id)
        if row is None:
            raise ConversationNotFoundError(conversation_id)
        return row

    def _load_key(self, session: Session, session_key: str) -> Conversation:
        row = session.scalars(
            select(Conversation).where(Conversation.session_key == session_key)
        ).first()
        if row is None:
            raise ConversationNotFoundError(session_key)
        return row

    def get_or_create_conversation(
        self, operator_id: str, session_id: str
    ) -> schemas.ConversationRecord:
        session_key = make_session_key(operator_id, session_id)
        existing = self.get_by_session_key(session_key)
        if existing is not None:
            return existing
        try:
            with session_scope(self._session_factory) as session:
                row = Conversation(
                    session_key=session_key,
                    operator_id=operator_id,
                    session_id=session_id,
                    status=ConversationStatus.NEW.value,
                    started_at=_utcnow(),
                )
                session.add(row)
                session.flush()
                return _record_from_row(row)
        except IntegrityError:
            # Another worker created the row between the lookup and the insert.
            existing = self.get_by_session_key(session_key)
            if existing is None:
                raise
            return existing

    def get_conversation(self, conversation_id: int) -> Optional[schemas.ConversationRecord]:
        with session_scope(self._session_factory) as session:
            row = session.get(Conversation, conversation_id)
            return _record_from_row(row) if row else None

    def get_by_session_key(self, session_key: str) -> Optional[schemas.ConversationRecord]:
        with session_scope(self._session_factory) as session:
            row = session.scalars(
                select(Conversation).where(Conversation.session_key == session_key)
            ).first()
            return _record_from_row(row) if row else None

    def append_message(
        self, conversation_id: int, role: MessageRole, content: str
    ) -> schemas.Message:
        now = _utcnow()
        with session_scope(self._session_factory) as session:
            row = self._load(session, conversation_id)
            message = ConversationMessage(
                conversation_id=row.id,
                role=role.value,
                content=content,
                created_at=now,
            )
            session.add(message)
            row.message_count += 1
            row.last_message_at = now
            if role is MessageRole.CUSTOMER:
                row.customer_message_count += 1
            if role is MessageRole.OPERATOR:
                row.last_operator_message_at = now
            session.flush()
            return _message_from_row(message)

    def list_messages(
        self, conversation_id: int, *, limit: Optional[int] = None
    ) -> List[schemas.Message]:
        with session_scope(self._session_factory) as session:
            self._load(session, conversation_id)
            stmt = select(ConversationMessage).where(
                ConversationMessage.conversation_id == conversation_id
            )
            if limit is not None:
                if limit <= 0:
                    return []
                rows = session.scalars(
                    stmt.order_by(ConversationMessage.id.desc()).limit(limit)
                ).all()
                return [_message_from_row(row) for row in reversed(rows)]
            rows = session.scalars(stmt.order_by(ConversationMessage.id)).all()
            return [_message_from_row(row) for row in rows]

    def update_contact(
        self, session_key: str, contact: ContactInfo
    ) -> schemas.ConversationRecord:
        with session_scope(self._session_factory) as session:
            row = self._load_key(session, session_key)
            _apply_contact(row, contact)
            session.flush()
            return _record_from_row(row)

    def set_status(
        self, conversation_id: int, status: ConversationStatus
    ) -> schemas.ConversationRecord:
        with session_scope(self._session_factory) as session:
            row = self._load(session, conversation_id)
            row.status = status.value
            session.flush()
            return _record_from_row(row)

    def mark_agent_requested(self, session_key: str) -> schemas.ConversationRecord:
        with session_scope(self._session_factory) as session:
            row = self._load_key(session, session_key)
            row.agent_requested = True
            session.flush()
            return _record_from_row(row)

    def save_handoff(
        self, conversation_id: int, snapshot: HandoffSnapshot
    ) -> schemas.ConversationRecord:
        with session_scope(self._session_factory) as session:
            row = self._load(session, conversation_id)
            row.handoff_state = snapshot.state.value
            row.handoff_channel = snapshot.channel.value if snapshot.channel else None
            row.notified_contact = snapshot.notified_contact
            row.sms_welcomed_number = snapshot.sms_welcomed_number
            row.human_ack_sent = snapshot.human_ack_sent
            _apply_contact(row, snapshot.contact)
            session.flush()
            return _record_from_row(row)

    def list_conversations(
        self,
        operator_id: str,
        *,
        status: Optional[ConversationStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[schemas.ConversationRecord], int]:
        with session_scope(self._session_factory) as session:
            filters = [Conversation.operator_id == operator_id]
            if status is not None:
                filters.append(Conversation.status == status.value)
            total = session.scalar(
                select(func.count()).select_from(Conversation).where(*filters)
            )
            rows = session.scalars(
                select(Conversation)
                .where(*filters)
                .order_by(
                    func.coalesce(Conversation.last_message_at, Conversation.started_at).desc(),
                    Conversation.id.desc(),
                )
                .limit(limit)
                .offset(offset)
            ).all()
            return [_record_from_row(row) for row in rows], int(total or 0)


__all__ = [
    "InMemoryTranscriptStore",
    "SqlAlchemyTranscriptStore",
    "TranscriptStore",
]
