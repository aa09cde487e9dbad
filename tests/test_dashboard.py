import pytest

from chatdesk.conversations.models import ConversationStatus, MessageRole
from chatdesk.conversations.replies import JOINED_MESSAGE
from chatdesk.errors import ConversationNotFoundError, ValidationFailure


@pytest.fixture
def escalated(harness):
    operator_id = harness.register(businessName="Reef Runners", alertEmail="owner@reef.example")
    harness.chat.handle_message(operator_id, "s1", "I want a human")
    conversation = harness.conversation(operator_id, "s1")
    return harness, operator_id, conversation


def test_first_operator_message_announces_join_and_starts_work(escalated):
    harness, _, conversation = escalated

    first = harness.dashboard.send_operator_message(conversation.id, "Hi, Sam here")
    second = harness.dashboard.send_operator_message(conversation.id, "How can I help?")

    messages = harness.transcripts.list_messages(conversation.id)
    system = [m for m in messages if m.role is MessageRole.SYSTEM]
    assert [m.content for m in system] == [JOINED_MESSAGE]
    assert messages[-3].content == JOINED_MESSAGE
    assert first.message.role is MessageRole.OPERATOR
    assert first.conversation.status is ConversationStatus.IN_PROGRESS
    assert first.conversation.handoff_state == "human_joined"
    assert second.conversation.status is ConversationStatus.IN_PROGRESS
    assert first.conversation.last_operator_message_at is not None


def test_operator_message_keeps_manual_status(escalated):
    harness, _, conversation = escalated
    harness.dashboard.set_status(conversation.id, ConversationStatus.ON_HOLD)

    response = harness.dashboard.send_operator_message(conversation.id, "Back soon")

    assert response.conversation.status is ConversationStatus.ON_HOLD


def test_poll_returns_operator_and_system_messages_after_cursor(escalated):
    harness, operator_id, conversation = escalated
    session_key = f"{operator_id}_s1"
    harness.dashboard.send_operator_message(conversation.id, "Hi, Sam here")
    harness.transcripts.append_message(conversation.id, MessageRole.CUSTOMER, "hey Sam")

    everything = harness.dashboard.poll_messages(session_key, 0)
    assert everything.total_count == 5
    assert [m.role for m in everything.new_messages] == [MessageRole.SYSTEM, MessageRole.OPERATOR]

    tail = harness.dashboard.poll_messages(session_key, 2)
    assert [m.content for m in tail.new_messages] == [JOINED_MESSAGE, "Hi, Sam here"]
    assert tail.total_count == 5

    caught_up = harness.dashboard.poll_messages(session_key, 5)
    assert caught_up.new_messages == []
    assert caught_up.total_count == 5


def test_poll_unknown_session_and_negative_cursor(harness):
    empty = harness.dashboard.poll_messages("nobody_nothing", 0)

    assert empty.new_messages == []
    assert empty.total_count == 0
    with pytest.raises(ValidationFailure):
        harness.dashboard.poll_messages("nobody_nothing", -1)


def test_resolving_resets_handoff_but_keeps_history(escalated):
    harness, operator_id, conversation = escalated
    harness.chat.handle_message(operator_id, "s1", "jane@example.com")
    harness.dashboard.send_operator_message(conversation.id, "All sorted?")

    resolved = harness.dashboard.set_status(conversation.id, ConversationStatus.RESOLVED)

    assert resolved.status is ConversationStatus.RESOLVED
    assert resolved.handoff_state == "none"
    assert resolved.contact_email == "jane@example.com"
    assert resolved.message_count == 6
    reply = harness.chat.handle_message(operator_id, "s1", "one more question")
    assert reply.response == harness.completion.reply


def test_list_and_detail(escalated):
    harness, operator_id, conversation = escalated
    harness.chat.handle_message(operator_id, "s2", "what should I bring?")

    listing = harness.dashboard.list_conversations(operator_id)
    in_progress = harness.dashboard.list_conversations(
        operator_id, status=ConversationStatus.IN_PROGRESS
    )
    detail = harness.dashboard.get_conversation_detail(conversation.id)

    assert listing.total == 2
    assert in_progress.total == 0
    assert detail.id == conversation.id
    assert [m.role for m in detail.messages] == [MessageRole.CUSTOMER, MessageRole.ASSISTANT]
    assert detail.agent_requested is True


def test_unknown_conversation_and_blank_text(escalated):
    harness, _, conversation = escalated

    with pytest.raises(ConversationNotFoundError):
        harness.dashboard.send_operator_message(999, "hello")
    with pytest.raises(ConversationNotFoundError):
        harness.dashboard.set_status(999, ConversationStatus.RESOLVED)
    with pytest.raises(ConversationNotFoundError):
        harness.dashboard.get_conversation_detail(999)
    with pytest.raises(ValidationFailure):
        harness.dashboard.send_operator_message(conversation.id, "   ")
