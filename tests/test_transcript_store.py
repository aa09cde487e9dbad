"""Contract tests shared by the in-memory and SQLAlchemy transcript stores."""

import pytest

from chatdesk.conversations.effects import snapshot_from_record
from chatdesk.conversations.handoff import HandoffChannel, HandoffSnapshot, HandoffState
from chatdesk.conversations.models import ContactInfo, ConversationStatus, MessageRole
from chatdesk.errors import ConversationNotFoundError


def test_get_or_create_is_idempotent(transcript_store):
    first = transcript_store.get_or_create_conversation("op1", "s1")
    second = transcript_store.get_or_create_conversation("op1", "s1")
    other = transcript_store.get_or_create_conversation("op1", "s2")

    assert first.id == second.id
    assert other.id != first.id
    assert first.session_key == "op1_s1"
    assert first.status is ConversationStatus.NEW
    assert first.handoff_state == "none"
    assert transcript_store.get_by_session_key("op1_s1").id == first.id
    assert transcript_store.get_by_session_key("op1_missing") is None


def test_append_updates_counters(transcript_store):
    conversation = transcript_store.get_or_create_conversation("op1", "s1")

    transcript_store.append_message(conversation.id, MessageRole.CUSTOMER, "hi")
    transcript_store.append_message(conversation.id, MessageRole.ASSISTANT, "hello!")
    message = transcript_store.append_message(conversation.id, MessageRole.OPERATOR, "Hi, Sam here")

    record = transcript_store.get_conversation(conversation.id)
    assert record.message_count == 3
    assert record.customer_message_count == 1
    assert record.last_message_at is not None
    assert record.last_operator_message_at is not None
    assert message.role is MessageRole.OPERATOR
    assert message.conversation_id == conversation.id


def test_messages_are_append_only_and_ordered(transcript_store):
    conversation = transcript_store.get_or_create_conversation("op1", "s1")
    for index in range(3):
        transcript_store.append_message(conversation.id, MessageRole.CUSTOMER, f"m{index}")
    before = transcript_store.list_messages(conversation.id)

    transcript_store.append_message(conversation.id, MessageRole.ASSISTANT, "m3")
    after = transcript_store.list_messages(conversation.id)

    assert [m.content for m in before] == ["m0", "m1", "m2"]
    assert after[: len(before)] == before
    assert [m.content for m in after] == ["m0", "m1", "m2", "m3"]


def test_list_messages_limit_returns_most_recent(transcript_store):
    conversation = transcript_store.get_or_create_conversation("op1", "s1")
    for index in range(5):
        transcript_store.append_message(conversation.id, MessageRole.CUSTOMER, f"m{index}")

    assert [m.content for m in transcript_store.list_messages(conversation.id, limit=2)] == [
        "m3",
        "m4",
    ]
    assert transcript_store.list_messages(conversation.id, limit=0) == []


def test_contact_fields_update_independently(transcript_store):
    transcript_store.get_or_create_conversation("op1", "s1")

    transcript_store.update_contact("op1_s1", ContactInfo(email="jane@example.com"))
    record = transcript_store.update_contact("op1_s1", ContactInfo(phone="+15551234567"))

    assert record.contact_email == "jane@example.com"
    assert record.contact_phone == "+15551234567"
    assert record.sms_number is None


def test_status_and_agent_flag(transcript_store):
    conversation = transcript_store.get_or_create_conversation("op1", "s1")

    transcript_store.mark_agent_requested("op1_s1")
    record = transcript_store.set_status(conversation.id, ConversationStatus.ON_HOLD)

    assert record.agent_requested is True
    assert record.status is ConversationStatus.ON_HOLD


def test_save_handoff_round_trips(transcript_store):
    conversation = transcript_store.get_or_create_conversation("op1", "s1")
    snapshot = HandoffSnapshot(
        state=HandoffState.CONTACT_CAPTURED,
        channel=HandoffChannel.SMS,
        contact=ContactInfo(phone="+15551234567", sms_number="+15551234567"),
        notified_contact="|+15551234567|+15551234567",
        sms_welcomed_number="+15551234567",
    )

    record = transcript_store.save_handoff(conversation.id, snapshot)

    assert snapshot_from_record(record) == snapshot
    reloaded = transcript_store.get_conversation(conversation.id)
    assert snapshot_from_record(reloaded) == snapshot


def test_list_conversations_filters_and_pages(transcript_store):
    ids = []
    for index in range(4):
        conversation = transcript_store.get_or_create_conversation("op1", f"s{index}")
        transcript_store.append_message(conversation.id, MessageRole.CUSTOMER, "hi")
        ids.append(conversation.id)
    transcript_store.get_or_create_conversation("op2", "s0")
    transcript_store.set_status(ids[0], ConversationStatus.RESOLVED)

    everything, total = transcript_store.list_conversations("op1")
    assert total == 4
    assert {record.id for record in everything} == set(ids)

    resolved, resolved_total = transcript_store.list_conversations(
        "op1", status=ConversationStatus.RESOLVED
    )
    assert resolved_total == 1
    assert [record.id for record in resolved] == [ids[0]]

    page, page_total = transcript_store.list_conversations("op1", limit=2, offset=1)
    assert page_total == 4
    assert len(page) == 2


def test_unknown_conversation_raises(transcript_store):
    assert transcript_store.get_conversation(999) is None
    with pytest.raises(ConversationNotFoundError):
        transcript_store.append_message(999, MessageRole.CUSTOMER, "hi")
    with pytest.raises(ConversationNotFoundError):
        transcript_store.list_messages(999)
    with pytest.raises(ConversationNotFoundError):
        transcript_store.update_contact("nope_nope", ContactInfo(email="a@b.co"))
    with pytest.raises(ConversationNotFoundError):
        transcript_store.set_status(999, ConversationStatus.RESOLVED)
