"""Table-driven tests for the pure handoff state machine."""

from dataclasses import replace

import pytest

from chatdesk.conversations.handoff import (
    AgentRequested,
    ContactSubmitted,
    ConversationResolved,
    CustomerMessage,
    Effect,
    HandoffChannel,
    HandoffPolicy,
    HandoffSnapshot,
    HandoffState,
    OperatorJoined,
    ReplyKind,
    advance,
)
from chatdesk.conversations.models import ContactInfo
from chatdesk.operators.schemas import AlertPreference, SmsMode

EMAIL = HandoffPolicy(alert_preference=AlertPreference.EMAIL)
DASHBOARD = HandoffPolicy(alert_preference=AlertPreference.DASHBOARD)
SILENT = HandoffPolicy(alert_preference=AlertPreference.NONE)
HYBRID = HandoffPolicy(sms_mode=SmsMode.HYBRID)
SMS_FIRST = HandoffPolicy(sms_mode=SmsMode.SMS_FIRST)

NO_CONTACT = ContactInfo()
JANE = ContactInfo(email="jane@example.com")
PHONE = ContactInfo(phone="+15551234567")
START = HandoffSnapshot()


@pytest.mark.parametrize(
    ("policy", "contact", "state", "channel", "effects", "reply"),
    [
        (SILENT, NO_CONTACT, HandoffState.NONE, None, (), ReplyKind.SELF_SERVICE),
        (SILENT, JANE, HandoffState.NONE, None, (), ReplyKind.SELF_SERVICE),
        (
            DASHBOARD,
            NO_CONTACT,
            HandoffState.ESCALATION_REQUESTED,
            HandoffChannel.CHAT,
            (Effect.MARK_AGENT_REQUESTED, Effect.START_POLLING),
            ReplyKind.DASHBOARD_WAIT,
        ),
        (
            DASHBOARD,
            JANE,
            HandoffState.ESCALATION_REQUESTED,
            HandoffChannel.CHAT,
            (
                Effect.MARK_AGENT_REQUESTED,
                Effect.SAVE_CONTACT,
                Effect.NOTIFY_OPERATOR,
                Effect.START_POLLING,
            ),
            ReplyKind.DASHBOARD_WAIT,
        ),
        (
            EMAIL,
            NO_CONTACT,
            HandoffState.ESCALATION_REQUESTED,
            HandoffChannel.EMAIL,
            (Effect.MARK_AGENT_REQUESTED,),
            ReplyKind.ASK_CONTACT,
        ),
        (
            EMAIL,
            JANE,
            HandoffState.CONTACT_CAPTURED,
            HandoffChannel.EMAIL,
            (Effect.MARK_AGENT_REQUESTED, Effect.SAVE_CONTACT, Effect.NOTIFY_OPERATOR),
            ReplyKind.CONFIRM_CONTACT,
        ),
        (
            HYBRID,
            NO_CONTACT,
            HandoffState.AWAITING_CONTACT_CHOICE,
            None,
            (Effect.MARK_AGENT_REQUESTED,),
            ReplyKind.OFFER_CHANNEL_CHOICE,
        ),
        (
            SMS_FIRST,
            NO_CONTACT,
            HandoffState.ESCALATION_REQUESTED,
            HandoffChannel.SMS,
            (Effect.MARK_AGENT_REQUESTED,),
            ReplyKind.ASK_PHONE,
        ),
        (
            SMS_FIRST,
            PHONE,
            HandoffState.CONTACT_CAPTURED,
            HandoffChannel.SMS,
            (
                Effect.MARK_AGENT_REQUESTED,
                Effect.SAVE_CONTACT,
                Effect.SEND_WELCOME_SMS,
                Effect.NOTIFY_OPERATOR,
            ),
            ReplyKind.SMS_WELCOME,
        ),
    ],
)
def test_initial_escalation(policy, contact, state, channel, effects, reply):
    transition = advance(START, AgentRequested(contact=contact), policy)

    assert transition.snapshot.state is state
    assert transition.snapshot.channel is channel
    assert transition.effects == effects
    assert transition.reply is reply


def test_email_flow_captures_contact_then_acknowledges_repeats():
    asked = advance(START, AgentRequested(), EMAIL).snapshot

    captured = advance(asked, CustomerMessage(contact=JANE), EMAIL)
    assert captured.snapshot.state is HandoffState.CONTACT_CAPTURED
    assert captured.reply is ReplyKind.CONTACT_SAVED
    assert captured.effects == (Effect.SAVE_CONTACT, Effect.NOTIFY_OPERATOR)

    repeat = advance(captured.snapshot, CustomerMessage(agent_request=True), EMAIL)
    assert repeat.reply is ReplyKind.ALREADY_NOTIFIED
    assert repeat.effects == ()

    again = advance(captured.snapshot, AgentRequested(contact=JANE), EMAIL)
    assert again.reply is ReplyKind.ALREADY_NOTIFIED
    assert Effect.NOTIFY_OPERATOR not in again.effects


def test_new_contact_details_notify_again_once():
    captured = advance(START, AgentRequested(contact=JANE), EMAIL).snapshot

    updated = advance(captured, CustomerMessage(contact=PHONE), EMAIL)
    assert updated.has(Effect.NOTIFY_OPERATOR)
    assert updated.snapshot.contact == ContactInfo(email=JANE.email, phone=PHONE.phone)

    same = advance(updated.snapshot, CustomerMessage(contact=PHONE), EMAIL)
    assert not same.has(Effect.NOTIFY_OPERATOR)
    assert same.reply is ReplyKind.TEAM_WILL_RESPOND


def test_escalated_without_contact_reasks():
    asked = advance(START, AgentRequested(), EMAIL).snapshot

    transition = advance(asked, CustomerMessage(), EMAIL)

    assert transition.reply is ReplyKind.ASK_CONTACT
    assert transition.snapshot == asked


@pytest.mark.parametrize(
    ("event", "state", "channel", "reply", "effects"),
    [
        (
            CustomerMessage(choice="chat"),
            HandoffState.CONTACT_CAPTURED,
            HandoffChannel.CHAT,
            ReplyKind.CHAT_CONFIRMED,
            (Effect.NOTIFY_OPERATOR, Effect.START_POLLING),
        ),
        (
            CustomerMessage(choice="sms"),
            HandoffState.ESCALATION_REQUESTED,
            HandoffChannel.SMS,
            ReplyKind.ASK_PHONE,
            (),
        ),
        (
            CustomerMessage(contact=JANE),
            HandoffState.CONTACT_CAPTURED,
            HandoffChannel.EMAIL,
            ReplyKind.CONTACT_SAVED,
            (Effect.SAVE_CONTACT, Effect.NOTIFY_OPERATOR),
        ),
        (
            CustomerMessage(contact=PHONE),
            HandoffState.CONTACT_CAPTURED,
            HandoffChannel.SMS,
            ReplyKind.SMS_WELCOME,
            (Effect.SAVE_CONTACT, Effect.SEND_WELCOME_SMS, Effect.NOTIFY_OPERATOR),
        ),
        (
            CustomerMessage(),
            HandoffState.AWAITING_CONTACT_CHOICE,
            None,
            ReplyKind.OFFER_CHANNEL_CHOICE,
            (),
        ),
    ],
)
def test_hybrid_channel_choice(event, state, channel, reply, effects):
    offered = advance(START, AgentRequested(), HYBRID).snapshot

    transition = advance(offered, event, HYBRID)

    assert transition.snapshot.state is state
    assert transition.snapshot.channel is channel
    assert transition.reply is reply
    assert transition.effects == effects


def test_hybrid_text_choice_uses_known_phone():
    offered = replace(
        advance(START, AgentRequested(), HYBRID).snapshot,
        contact=PHONE,
    )

    transition = advance(offered, CustomerMessage(choice="sms"), HYBRID)

    assert transition.reply is ReplyKind.SMS_WELCOME
    assert transition.has(Effect.SEND_WELCOME_SMS)
    assert transition.snapshot.contact.sms_number == "+15551234567"
    assert transition.snapshot.sms_welcomed_number == "+15551234567"


def test_sms_first_then_phone_number():
    asked = advance(START, AgentRequested(), SMS_FIRST).snapshot

    transition = advance(asked, CustomerMessage(contact=PHONE), SMS_FIRST)

    assert transition.reply is ReplyKind.SMS_WELCOME
    assert transition.effects == (
        Effect.SAVE_CONTACT,
        Effect.SEND_WELCOME_SMS,
        Effect.NOTIFY_OPERATOR,
    )
    repeat = advance(transition.snapshot, CustomerMessage(contact=PHONE), SMS_FIRST)
    assert not repeat.has(Effect.SEND_WELCOME_SMS)


def test_operator_join_is_announced_once():
    escalated = advance(START, AgentRequested(contact=JANE), EMAIL).snapshot

    joined = advance(escalated, OperatorJoined(), EMAIL)
    assert joined.snapshot.state is HandoffState.HUMAN_JOINED
    assert joined.effects == (Effect.ANNOUNCE_OPERATOR_JOINED,)

    again = advance(joined.snapshot, OperatorJoined(), EMAIL)
    assert again.effects == ()
    assert again.snapshot == joined.snapshot


def test_human_joined_acknowledges_once_then_stays_silent():
    joined = advance(START, OperatorJoined(), EMAIL).snapshot

    first = advance(joined, CustomerMessage(), EMAIL)
    assert first.reply is ReplyKind.HUMAN_ACK
    assert first.snapshot.human_ack_sent

    second = advance(first.snapshot, CustomerMessage(agent_request=True), EMAIL)
    assert second.reply is None
    assert second.effects == ()

    third = advance(second.snapshot, AgentRequested(contact=JANE), EMAIL)
    assert third.reply is None
    assert not third.has(Effect.NOTIFY_OPERATOR)
    assert third.effects == (Effect.SAVE_CONTACT,)


def test_resolution_resets_state_but_keeps_contact():
    joined = advance(advance(START, AgentRequested(contact=JANE), EMAIL).snapshot, OperatorJoined(), EMAIL)

    resolved = advance(joined.snapshot, ConversationResolved(), EMAIL)

    assert resolved.snapshot == HandoffSnapshot(contact=JANE)
    assert resolved.effects == ()


def test_contact_form_outside_handoff_only_saves():
    transition = advance(START, ContactSubmitted(contact=JANE), EMAIL)

    assert transition.snapshot.state is HandoffState.NONE
    assert transition.effects == (Effect.SAVE_CONTACT,)
    assert transition.reply is ReplyKind.CONTACT_SAVED


def test_contact_form_during_escalation_notifies():
    asked = advance(START, AgentRequested(), EMAIL).snapshot

    transition = advance(asked, ContactSubmitted(contact=JANE), EMAIL)

    assert transition.snapshot.state is HandoffState.CONTACT_CAPTURED
    assert transition.effects == (Effect.SAVE_CONTACT, Effect.NOTIFY_OPERATOR)


def test_customer_message_without_handoff_is_a_no_op():
    transition = advance(START, CustomerMessage(contact=JANE), EMAIL)

    assert transition.snapshot == START
    assert transition.effects == ()
    assert transition.reply is None


def test_effects_are_always_in_execution_order():
    order = list(Effect)
    snapshots = [START]
    events = [
        AgentRequested(contact=PHONE),
        CustomerMessage(contact=JANE),
        OperatorJoined(),
        CustomerMessage(),
        ConversationResolved(),
    ]
    for policy in (EMAIL, DASHBOARD, HYBRID, SMS_FIRST):
        snapshot = START
        for event in events:
            transition = advance(snapshot, event, policy)
            indices = [order.index(effect) for effect in transition.effects]
            assert indices == sorted(indices)
            snapshot = transition.snapshot
            snapshots.append(snapshot)
    assert len(snapshots) == 1 + 4 * len(events)
