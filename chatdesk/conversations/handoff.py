"""Human-handoff state machine.

The orchestrator is a pure function: :func:`advance` takes the persisted
:class:`HandoffSnapshot` of a conversation, an event and the operator's
:class:`HandoffPolicy` and returns the next snapshot, the side effects the
caller must perform and the kind of reply to show the customer. It performs no
I/O, so every transition can be tested without HTTP, database or provider
fakes.

States::

    NONE -> ESCALATION_REQUESTED -> (AWAITING_CONTACT_CHOICE) -> CONTACT_CAPTURED
         \\________________________________________________________ -> HUMAN_JOINED

``HUMAN_JOINED`` is entered from any state when an operator first writes into
the conversation and is only left when the conversation is resolved.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Union

from ..operators.schemas import AlertPreference, OperatorConfig, SmsMode
from .models import ContactInfo


class HandoffState(str, Enum):
    NONE = "none"
    ESCALATION_REQUESTED = "escalation_requested"
    AWAITING_CONTACT_CHOICE = "awaiting_contact_choice"
    CONTACT_CAPTURED = "contact_captured"
    HUMAN_JOINED = "human_joined"


class HandoffChannel(str, Enum):
    CHAT = "chat"
    SMS = "sms"
    EMAIL = "email"


class Effect(str, Enum):
    """Side effects, declared in the order the caller must run them."""

    MARK_AGENT_REQUESTED = "mark_agent_requested"
    SAVE_CONTACT = "save_contact"
    SEND_WELCOME_SMS = "send_welcome_sms"
    NOTIFY_OPERATOR = "notify_operator"
    START_POLLING = "start_polling"
    ANNOUNCE_OPERATOR_JOINED = "announce_operator_joined"


_EFFECT_ORDER = {effect: index for index, effect in enumerate(Effect)}


class ReplyKind(str, Enum):
    SELF_SERVICE = "self_service"
    DASHBOARD_WAIT = "dashboard_wait"
    ASK_CONTACT = "ask_contact"
    ASK_PHONE = "ask_phone"
    CONFIRM_CONTACT = "confirm_contact"
    OFFER_CHANNEL_CHOICE = "offer_channel_choice"
    CHAT_CONFIRMED = "chat_confirmed"
    CONTACT_SAVED = "contact_saved"
    SMS_WELCOME = "sms_welcome"
    ALREADY_NOTIFIED = "already_notified"
    TEAM_WILL_RESPOND = "team_will_respond"
    HUMAN_ACK = "human_ack"


@dataclass(frozen=True)
class HandoffSnapshot:
    state: HandoffState = HandoffState.NONE
    channel: HandoffChannel | None = None
    contact: ContactInfo = field(default_factory=ContactInfo)
    notified_contact: str | None = None
    sms_welcomed_number: str | None = None
    human_ack_sent: bool = False

    @property
    def active(self) -> bool:
        return self.state is not HandoffState.NONE


@dataclass(frozen=True)
class HandoffPolicy:
    alert_preference: AlertPreference = AlertPreference.EMAIL
    sms_mode: SmsMode = SmsMode.OFF

    @classmethod
    def from_config(cls, config: OperatorConfig) -> "HandoffPolicy":
        return cls(alert_preference=config.alert_preference, sms_mode=config.sms_mode)


# Events ------------------------------------------------------------------------


@dataclass(frozen=True)
class AgentRequested:
    contact: ContactInfo = field(default_factory=ContactInfo)


@dataclass(frozen=True)
class CustomerMessage:
    contact: ContactInfo = field(default_factory=ContactInfo)
    choice: str | None = None
    agent_request: bool = False


@dataclass(frozen=True)
class ContactSubmitted:
    contact: ContactInfo


@dataclass(frozen=True)
class OperatorJoined:
    pass


@dataclass(frozen=True)
class ConversationResolved:
    pass


HandoffEvent = Union[
    AgentRequested, CustomerMessage, ContactSubmitted, OperatorJoined, ConversationResolved
]


@dataclass(frozen=True)
class Transition:
    snapshot: HandoffSnapshot
    effects: tuple[Effect, ...] = ()
    reply: ReplyKind | None = None

    def has(self, effect: Effect) -> bool:
        return effect in self.effects


# Transition function -------------------------------------------------------------


def advance(
    snapshot: HandoffSnapshot, event: HandoffEvent, policy: HandoffPolicy
) -> Transition:
    """Return the transition for ``event`` applied to ``snapshot``."""

    if isinstance(event, OperatorJoined):
        return _operator_joined(snapshot)
    if isinstance(event, ConversationResolved):
        return Transition(HandoffSnapshot(contact=snapshot.contact))
    if isinstance(event, AgentRequested):
        if snapshot.active:
            return advance(
                snapshot, CustomerMessage(contact=event.contact, agent_request=True), policy
            )
        return _agent_requested(snapshot, event, policy)
    if isinstance(event, ContactSubmitted):
        return _contact_submitted(snapshot, event, policy)
    if isinstance(event, CustomerMessage):
        return _customer_message(snapshot, event, policy)
    raise TypeError(f"Unsupported handoff event: {event!r}")


def _finish(
    original: HandoffSnapshot,
    snapshot: HandoffSnapshot,
    effects: list[Effect],
    reply: ReplyKind | None,
) -> Transition:
    if snapshot.contact != original.contact and Effect.SAVE_CONTACT not in effects:
        effects.append(Effect.SAVE_CONTACT)
    ordered = tuple(sorted(set(effects), key=_EFFECT_ORDER.__getitem__))
    return Transition(snapshot, ordered, reply)


def _notify_if_changed(
    snapshot: HandoffSnapshot, policy: HandoffPolicy, effects: list[Effect]
) -> HandoffSnapshot:
    """Queue one operator notification per distinct contact fingerprint."""

    if policy.alert_preference is AlertPreference.NONE:
        return snapshot
    customer_waiting_in_chat = (
        snapshot.channel is HandoffChannel.CHAT
        and policy.alert_preference is AlertPreference.EMAIL
    )
    if snapshot.contact.is_empty and not customer_waiting_in_chat:
        return snapshot
    fingerprint = snapshot.contact.fingerprint
    if snapshot.notified_contact == fingerprint:
        return snapshot
    effects.append(Effect.NOTIFY_OPERATOR)
    return replace(snapshot, notified_contact=fingerprint)


def _capture_sms(
    snapshot: HandoffSnapshot, policy: HandoffPolicy, effects: list[Effect]
) -> HandoffSnapshot:
    number = snapshot.contact.text_number
    if number is None:
        raise ValueError("SMS capture requires a phone number")
    snapshot = replace(
        snapshot,
        state=HandoffState.CONTACT_CAPTURED,
        channel=HandoffChannel.SMS,
        contact=replace(snapshot.contact, sms_number=number),
    )
    if snapshot.sms_welcomed_number != number:
        effects.append(Effect.SEND_WELCOME_SMS)
        snapshot = replace(snapshot, sms_welcomed_number=number)
    return _notify_if_changed(snapshot, policy, effects)


def _operator_joined(snapshot: HandoffSnapshot) -> Transition:
    if snapshot.state is HandoffState.HUMAN_JOINED:
        return Transition(snapshot)
    joined = replace(snapshot, state=HandoffState.HUMAN_JOINED, human_ack_sent=False)
    return Transition(joined, (Effect.ANNOUNCE_OPERATOR_JOINED,))


def _agent_requested(
    snapshot: HandoffSnapshot, event: AgentRequested, policy: HandoffPolicy
) -> Transition:
    if policy.alert_preference is AlertPreference.NONE:
        return Transition(snapshot, (), ReplyKind.SELF_SERVICE)

    effects: list[Effect] = [Effect.MARK_AGENT_REQUESTED]
    current = replace(snapshot, contact=snapshot.contact.merged(event.contact))

    if policy.alert_preference is AlertPreference.DASHBOARD:
        current = replace(
            current, state=HandoffState.ESCALATION_REQUESTED, channel=HandoffChannel.CHAT
        )
        effects.append(Effect.START_POLLING)
        current = _notify_if_changed(current, policy, effects)
        return _finish(snapshot, current, effects, ReplyKind.DASHBOARD_WAIT)

    if policy.sms_mode is SmsMode.HYBRID:
        current = replace(current, state=HandoffState.AWAITING_CONTACT_CHOICE, channel=None)
        return _finish(snapshot, current, effects, ReplyKind.OFFER_CHANNEL_CHOICE)

    if policy.sms_mode is SmsMode.SMS_FIRST:
        current = replace(current, channel=HandoffChannel.SMS)
        if current.contact.text_number:
            current = _capture_sms(current, policy, effects)
            return _finish(snapshot, current, effects, ReplyKind.SMS_WELCOME)
        current = replace(current, state=HandoffState.ESCALATION_REQUESTED)
        return _finish(snapshot, current, effects, ReplyKind.ASK_PHONE)

    current = replace(current, channel=HandoffChannel.EMAIL)
    if current.contact.is_empty:
        current = replace(current, state=HandoffState.ESCALATION_REQUESTED)
        return _finish(snapshot, current, effects, ReplyKind.ASK_CONTACT)
    current = replace(current, state=HandoffState.CONTACT_CAPTURED)
    current = _notify_if_changed(current, policy, effects)
    return _finish(snapshot, current, effects, ReplyKind.CONFIRM_CONTACT)


def _resolve_choice(event: CustomerMessage) -> str | None:
    if event.choice:
        return event.choice
    if event.contact.phone:
        return "sms"
    if event.contact.email:
        return "email"
    return None


def _awaiting_choice(
    snapshot: HandoffSnapshot, event: CustomerMessage, policy: HandoffPolicy
) -> Transition:
    effects: list[Effect] = []
    current = replace(snapshot, contact=snapshot.contact.merged(event.contact))
    choice = _resolve_choice(event)

    if choice == "sms":
        current = replace(current, channel=HandoffChannel.SMS)
        if current.contact.text_number:
            current = _capture_sms(current, policy, effects)
            return _finish(snapshot, current, effects, ReplyKind.SMS_WELCOME)
        current = replace(current, state=HandoffState.ESCALATION_REQUESTED)
        return _finish(snapshot, current, effects, ReplyKind.ASK_PHONE)

    if choice == "chat":
        current = replace(
            current, state=HandoffState.CONTACT_CAPTURED, channel=HandoffChannel.CHAT
        )
        effects.append(Effect.START_POLLING)
        current = _notify_if_changed(current, policy, effects)
        return _finish(snapshot, current, effects, ReplyKind.CHAT_CONFIRMED)

    if choice == "email":
        current = replace(
            current, state=HandoffState.CONTACT_CAPTURED, channel=HandoffChannel.EMAIL
        )
        current = _notify_if_changed(current, policy, effects)
        return _finish(snapshot, current, effects, ReplyKind.CONTACT_SAVED)

    return _finish(snapshot, current, effects, ReplyKind.OFFER_CHANNEL_CHOICE)


def _escalated_follow_up(
    snapshot: HandoffSnapshot, event: CustomerMessage, policy: HandoffPolicy
) -> Transition:
    effects: list[Effect] = []
    merged = snapshot.contact.merged(event.contact)
    current = replace(snapshot, contact=merged)
    contact_changed = merged != snapshot.contact

    if snapshot.channel is HandoffChannel.SMS and event.contact.phone:
        current = replace(current, contact=replace(merged, sms_number=event.contact.phone))
        current = _capture_sms(current, policy, effects)
        return _finish(snapshot, current, effects, ReplyKind.SMS_WELCOME)

    if contact_changed:
        current = replace(current, state=HandoffState.CONTACT_CAPTURED)
        current = _notify_if_changed(current, policy, effects)
        return _finish(snapshot, current, effects, ReplyKind.CONTACT_SAVED)

    if event.agent_request:
        return _finish(snapshot, current, effects, ReplyKind.ALREADY_NOTIFIED)

    if snapshot.state is HandoffState.ESCALATION_REQUESTED:
        if snapshot.channel is HandoffChannel.EMAIL:
            return _finish(snapshot, current, effects, ReplyKind.ASK_CONTACT)
        if snapshot.channel is HandoffChannel.SMS:
            return _finish(snapshot, current, effects, ReplyKind.ASK_PHONE)
    return _finish(snapshot, current, effects, ReplyKind.TEAM_WILL_RESPOND)


def _customer_message(
    snapshot: HandoffSnapshot, event: CustomerMessage, policy: HandoffPolicy
) -> Transition:
    if snapshot.state is HandoffState.NONE:
        return Transition(snapshot)

    if snapshot.state is HandoffState.HUMAN_JOINED:
        current = replace(snapshot, contact=snapshot.contact.merged(event.contact))
        if snapshot.human_ack_sent:
            return _finish(snapshot, current, [], None)
        current = replace(current, human_ack_sent=True)
        return _finish(snapshot, current, [], ReplyKind.HUMAN_ACK)

    if snapshot.state is HandoffState.AWAITING_CONTACT_CHOICE:
        return _awaiting_choice(snapshot, event, policy)

    return _escalated_follow_up(snapshot, event, policy)


def _contact_submitted(
    snapshot: HandoffSnapshot, event: ContactSubmitted, policy: HandoffPolicy
) -> Transition:
    if snapshot.state in (HandoffState.NONE, HandoffState.HUMAN_JOINED):
        current = replace(snapshot, contact=snapshot.contact.merged(event.contact))
        return _finish(snapshot, current, [], ReplyKind.CONTACT_SAVED)
    return _customer_message(snapshot, CustomerMessage(contact=event.contact), policy)
