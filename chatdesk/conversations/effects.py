"""Execute the side effects emitted by the handoff state machine."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..integrations.email import EmailSender
from ..integrations.sms import SmsSender
from ..operators.schemas import OperatorConfig
from . import schemas
from .handoff import Effect, HandoffChannel, HandoffSnapshot, HandoffState, Transition
from .models import ContactInfo, MessageRole
from .replies import JOINED_MESSAGE, notification_subject, sms_welcome_text
from .repository import TranscriptStore

logger = logging.getLogger(__name__)

NOTIFICATION_EXCERPT_MESSAGES = 10


def snapshot_from_record(record: schemas.ConversationRecord) -> HandoffSnapshot:
    """Rebuild the persisted handoff snapshot of ``record``."""

    return HandoffSnapshot(
        state=HandoffState(record.handoff_state or HandoffState.NONE.value),
        channel=HandoffChannel(record.handoff_channel) if record.handoff_channel else None,
        contact=ContactInfo(
            email=record.contact_email,
            phone=record.contact_phone,
            sms_number=record.sms_number,
        ),
        notified_contact=record.notified_contact,
        sms_welcomed_number=record.sms_welcomed_number,
        human_ack_sent=record.human_ack_sent,
    )


@dataclass(frozen=True)
class EffectOutcome:
    conversation: schemas.ConversationRecord
    start_polling: bool = False
    sms_delivered: bool | None = None
    notified: bool | None = None


class EffectRunner:
    """Apply a :class:`Transition` to the transcript and outbound channels.

    Effects run in the order the state machine lists them. Email and SMS
    failures are logged and reported in the outcome, never raised.
    """

    def __init__(
        self,
        transcripts: TranscriptStore,
        *,
        email: EmailSender | None = None,
        sms: SmsSender | None = None,
        dashboard_url: str | None = None,
    ) -> None:
        self._transcripts = transcripts
        self._email = email
        self._sms = sms
        self._dashboard_url = dashboard_url

    def run(
        self,
        conversation: schemas.ConversationRecord,
        transition: Transition,
        config: OperatorConfig | None = None,
    ) -> EffectOutcome:
        snapshot = transition.snapshot
        session_key = conversation.session_key
        start_polling = False
        sms_delivered: bool | None = None
        notified: bool | None = None

        for effect in transition.effects:
            if effect is Effect.MARK_AGENT_REQUESTED:
                self._transcripts.mark_agent_requested(session_key)
                logger.info("Agent requested for session %s", session_key)
            elif effect is Effect.SAVE_CONTACT:
                self._transcripts.update_contact(session_key, snapshot.contact)
            elif effect is Effect.SEND_WELCOME_SMS:
                sms_delivered = self._send_welcome_sms(session_key, snapshot, config)
            elif effect is Effect.NOTIFY_OPERATOR:
                notified = self._notify_operator(conversation, snapshot, config)
            elif effect is Effect.START_POLLING:
                start_polling = True
            elif effect is Effect.ANNOUNCE_OPERATOR_JOINED:
                self._transcripts.append_message(
                    conversation.id, MessageRole.SYSTEM, JOINED_MESSAGE
                )

        if snapshot != snapshot_from_record(conversation):
            conversation = self._transcripts.save_handoff(conversation.id, snapshot)
        else:
            conversation = self._transcripts.get_conversation(conversation.id) or conversation
        return EffectOutcome(
            conversation=conversation,
            start_polling=start_polling,
            sms_delivered=sms_delivered,
            notified=notified,
        )

    def _send_welcome_sms(
        self,
        session_key: str,
        snapshot: HandoffSnapshot,
        config: OperatorConfig | None,
    ) -> bool:
        number = snapshot.contact.text_number
        if self._sms is None or number is None or config is None:
            logger.warning("SMS welcome skipped for session %s: SMS is not configured", session_key)
            return False
        result = self._sms.send(number, sms_welcome_text(config))
        if not result.ok:
            logger.warning(
                "Welcome SMS for session %s failed: %s", session_key, result.error
            )
        return result.ok

    def _notify_operator(
        self,
        conversation: schemas.ConversationRecord,
        snapshot: HandoffSnapshot,
        config: OperatorConfig | None,
    ) -> bool:
        session_key = conversation.session_key
        if config is None or not config.alert_email:
            logger.warning(
                "No alert email configured for operator %s; handoff for %s not emailed",
                conversation.operator_id,
                session_key,
            )
            return False
        if self._email is None:
            logger.warning("Email is not configured; handoff for %s not emailed", session_key)
            return False
        body = self._notification_body(conversation, snapshot)
        result = self._email.send(config.alert_email, notification_subject(config), body)
        if not result.ok:
            logger.warning(
                "Handoff notification for session %s failed: %s", session_key, result.error
            )
        return result.ok

    def _notification_body(
        self, conversation: schemas.ConversationRecord, snapshot: HandoffSnapshot
    ) -> str:
        excerpt = self._transcripts.list_messages(
            conversation.id, limit=NOTIFICATION_EXCERPT_MESSAGES
        )
        channel = snapshot.channel.value if snapshot.channel else "not chosen yet"
        lines = [
            "A customer asked to talk to a person.",
            "",
            f"Session: {conversation.session_id}",
            f"Conversation id: {conversation.id}",
            f"Preferred channel: {channel}",
            snapshot.contact.describe(),
        ]
        if self._dashboard_url:
            lines.append(
                f"Open in dashboard: {self._dashboard_url.rstrip('/')}/conversations/{conversation.id}"
            )
        lines += ["", "Recent messages:"]
        lines += [f"[{message.role.value}] {message.content}" for message in excerpt]
        return "\n".join(lines)
