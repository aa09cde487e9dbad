"""Canned replies for the rule-based branches and the handoff flow."""

from __future__ import annotations

from html import escape

from ..integrations.weather import WeatherSnapshot
from ..operators.schemas import OperatorConfig
from .handoff import HandoffSnapshot, ReplyKind
from .models import ContactInfo

JOINED_MESSAGE = "A team member has joined the chat."

_LINK_STYLE = "color: #8B5CF6;"


def _link(url: str, label: str) -> str:
    return (
        f"<a href='{escape(url, quote=True)}' target='_blank' "
        f"style='{_LINK_STYLE}'>{escape(label)}</a>"
    )


def waiver_reply(config: OperatorConfig) -> str:
    if config.waiver_link:
        return f"Here's your waiver: {_link(config.waiver_link, 'Click here to sign')}"
    return (
        f"I don't have a waiver link on file yet. Please reach out to {config.team_name} "
        "and they'll send it over."
    )


def pricing_reply(config: OperatorConfig) -> str:
    link = _link(config.booking_link or "", "View prices and book")
    return (
        "Prices can change with the date and group size, so the best place to see "
        f"current rates is our booking page: {link}"
    )


def booking_reply(config: OperatorConfig) -> str:
    return (
        "You can check availability and reserve your spot here: "
        f"{_link(config.booking_link or '', 'Book now')}"
    )


def weather_reply(config: OperatorConfig, snapshot: WeatherSnapshot) -> str:
    reply = (
        f"Right now in {snapshot.location} it's {round(snapshot.temperature)}"
        f"{snapshot.temperature_unit} with {snapshot.description}."
    )
    if config.weather_policy:
        reply += f" Our weather policy: {config.weather_policy}"
    return reply


def weather_unavailable_reply(config: OperatorConfig) -> str:
    return (
        "I can't check the weather right now. Please reach out to "
        f"{config.team_name} for the latest on conditions."
    )


def _cap(text: str) -> str:
    return text[:1].upper() + text[1:]


def _contact_summary(contact: ContactInfo) -> str:
    parts = [value for value in (contact.email, contact.phone) if value]
    if contact.sms_number and contact.sms_number != contact.phone:
        parts.append(contact.sms_number)
    return " and ".join(parts)


def handoff_reply(
    kind: ReplyKind,
    config: OperatorConfig,
    snapshot: HandoffSnapshot,
    *,
    sms_delivered: bool | None = None,
) -> str:
    """Text for a handoff transition; ``sms_delivered`` only matters for SMS_WELCOME."""

    team = config.team_name
    contact = _contact_summary(snapshot.contact)
    if kind is ReplyKind.SELF_SERVICE:
        return (
            "I'm not able to connect you with a person through this chat, but I'm "
            "happy to help with anything about our tours. What would you like to know?"
        )
    if kind is ReplyKind.DASHBOARD_WAIT:
        return (
            f"I've let {team} know you'd like to talk to a person. Someone will reply "
            "right here in this chat shortly, so please keep this window open."
        )
    if kind is ReplyKind.ASK_CONTACT:
        return (
            f"I'd be happy to connect you with {team}. What's the best email address "
            "or phone number to reach you?"
        )
    if kind is ReplyKind.ASK_PHONE:
        return f"{_cap(team)} can text you. What's the best mobile number to reach you?"
    if kind is ReplyKind.CONFIRM_CONTACT:
        return (
            f"Thanks! I've passed your request to {team} and they'll reach out to "
            f"you at {contact}."
        )
    if kind is ReplyKind.OFFER_CHANNEL_CHOICE:
        return (
            f"I can connect you with {team}. Would you like to continue here in the "
            'chat or switch to text messages? Reply "chat" or "text".'
        )
    if kind is ReplyKind.CHAT_CONFIRMED:
        return f"Great, stay right here. Someone from {team} will reply in this chat shortly."
    if kind is ReplyKind.CONTACT_SAVED:
        if contact:
            return f"Thanks! I've saved your contact details ({contact}) and {team} will be in touch soon."
        return f"Thanks! {_cap(team)} will be in touch soon."
    if kind is ReplyKind.SMS_WELCOME:
        number = snapshot.contact.text_number or ""
        if sms_delivered:
            return f"Done! I just sent a text to {number}. {_cap(team)} will continue the conversation there."
        return f"Thanks! I've saved your number {number} and {team} will text you shortly."
    if kind is ReplyKind.ALREADY_NOTIFIED:
        return f"{_cap(team)} has already been notified and will get back to you as soon as possible."
    if kind is ReplyKind.TEAM_WILL_RESPOND:
        return f"Thanks, I've added that to your conversation. {_cap(team)} will respond shortly."
    if kind is ReplyKind.HUMAN_ACK:
        return f"Thanks! Someone from {team} is here and will respond shortly."
    raise ValueError(f"Unknown reply kind: {kind!r}")


def sms_welcome_text(config: OperatorConfig) -> str:
    name = config.business_name or "us"
    return (
        f"Hi! Thanks for reaching out to {name}. A team member will text you here "
        "shortly. Reply to this message any time."
    )


def notification_subject(config: OperatorConfig) -> str:
    name = config.business_name or "your chat widget"
    return f"Customer requested a person on {name}"
