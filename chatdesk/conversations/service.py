"""Customer-facing chat flow orchestration."""

from __future__ import annotations

import logging

from ..errors import ValidationFailure
from ..integrations.weather import WeatherClient
from ..operators.schemas import OperatorConfig
from ..operators.service import OperatorService
from ..operators.store import validate_operator_id
from . import replies, schemas
from .cache import HistoryItem, SessionCache, SessionLocks
from .classifier import Branch, Classifier, IntentClassifier
from .contact import detect_channel_choice, extract_contact, validate_contact
from .effects import EffectOutcome, EffectRunner, snapshot_from_record
from .handoff import (
    AgentRequested,
    ContactSubmitted,
    CustomerMessage,
    HandoffChannel,
    HandoffPolicy,
    HandoffState,
    Transition,
    advance,
)
from .models import MessageRole, make_session_key
from .repository import TranscriptStore
from .responder import Responder

logger = logging.getLogger(__name__)

_PROMPT_ROLES = {MessageRole.CUSTOMER: "user", MessageRole.ASSISTANT: "assistant"}


def validate_session_id(session_id: str | None, max_length: int) -> str:
    session_id = (session_id or "").strip()
    if not session_id:
        raise ValidationFailure("sessionId is required")
    if len(session_id) > max_length:
        raise ValidationFailure("sessionId is too long")
    return session_id


class ChatService:
    """Handle inbound customer messages and contact submissions.

    All work for one session key runs under that key's lock, so concurrent
    requests for the same conversation observe each other's handoff state.
    """

    def __init__(
        self,
        *,
        operators: OperatorService,
        transcripts: TranscriptStore,
        responder: Responder,
        effects: EffectRunner,
        cache: SessionCache | None = None,
        locks: SessionLocks | None = None,
        classifier: Classifier | None = None,
        weather: WeatherClient | None = None,
        max_message_length: int = 5000,
        session_id_max_length: int = 64,
    ) -> None:
        self._operators = operators
        self._transcripts = transcripts
        self._responder = responder
        self._effects = effects
        self._cache = cache or SessionCache()
        self._locks = locks or SessionLocks()
        self._classifier = classifier or IntentClassifier()
        self._weather = weather
        self._max_message_length = max_message_length
        self._session_id_max_length = session_id_max_length

    @property
    def cache(self) -> SessionCache:
        return self._cache

    # ------------------------------------------------------------------
    # Inbound messages

    def handle_message(
        self, operator_id: str, session_id: str, text: str
    ) -> schemas.ChatReply:
        """Persist ``text`` and return the reply (or none) for the customer."""

        operator_id = validate_operator_id(operator_id)
        session_id = validate_session_id(session_id, self._session_id_max_length)
        text = (text or "").strip()
        if not text:
            raise ValidationFailure("message must not be empty")
        if len(text) > self._max_message_length:
            raise ValidationFailure("message is too long")
        config = self._operators.get_config(operator_id)

        session_key = make_session_key(operator_id, session_id)
        with self._locks.hold(session_key):
            conversation = self._transcripts.get_or_create_conversation(operator_id, session_id)
            self._ensure_cached(conversation)
            self._transcripts.append_message(conversation.id, MessageRole.CUSTOMER, text)
            self._cache.append(session_key, "user", text)

            lowered = text.casefold()
            snapshot = snapshot_from_record(conversation)
            branch = self._classifier.classify(lowered, config, handoff_active=snapshot.active)
            logger.debug("Session %s routed to %s", session_key, branch.value)

            if branch in (Branch.ESCALATE, Branch.HANDOFF_FOLLOW_UP):
                return self._handle_handoff(conversation, config, branch, text, lowered)

            reply = self._branch_reply(branch, config, session_key)
            self._record_reply(conversation, reply)
            return schemas.ChatReply(
                response=reply,
                agent_requested=conversation.agent_requested,
                handoff_state=conversation.handoff_state,
            )

    def _branch_reply(self, branch: Branch, config: OperatorConfig, session_key: str) -> str:
        if branch is Branch.WAIVER:
            return replies.waiver_reply(config)
        if branch is Branch.PRICING:
            return replies.pricing_reply(config)
        if branch is Branch.BOOKING:
            return replies.booking_reply(config)
        if branch is Branch.WEATHER:
            return self._weather_reply(config)
        history = self._cache.get(session_key) or []
        return self._responder.reply(config, history, session_key=session_key)

    def _weather_reply(self, config: OperatorConfig) -> str:
        location = config.resolved_weather_location
        snapshot = None
        if self._weather is not None and location:
            snapshot = self._weather.lookup(location)
        if snapshot is None:
            return replies.weather_unavailable_reply(config)
        return replies.weather_reply(config, snapshot)

    def _handle_handoff(
        self,
        conversation: schemas.ConversationRecord,
        config: OperatorConfig,
        branch: Branch,
        text: str,
        lowered: str,
    ) -> schemas.ChatReply:
        before = snapshot_from_record(conversation)
        contact = extract_contact(text)
        if branch is Branch.ESCALATE:
            event = AgentRequested(contact=contact)
        else:
            choice = None
            if before.state is HandoffState.AWAITING_CONTACT_CHOICE:
                choice = detect_channel_choice(lowered)
            event = CustomerMessage(
                contact=contact,
                choice=choice,
                agent_request=self._classifier.is_agent_request(lowered, config),
            )
        transition = advance(before, event, HandoffPolicy.from_config(config))
        outcome = self._effects.run(conversation, transition, config)
        reply = self._handoff_text(transition, outcome, config)
        if reply is not None:
            self._record_reply(outcome.conversation, reply)
        if before.state is not transition.snapshot.state:
            logger.info(
                "Handoff for session %s moved %s -> %s",
                conversation.session_key,
                before.state.value,
                transition.snapshot.state.value,
            )
        return self._chat_reply(reply, transition, outcome)

    @staticmethod
    def _handoff_text(
        transition: Transition, outcome: EffectOutcome, config: OperatorConfig
    ) -> str | None:
        if transition.reply is None:
            return None
        return replies.handoff_reply(
            transition.reply,
            config,
            transition.snapshot,
            sms_delivered=outcome.sms_delivered,
        )

    @staticmethod
    def _chat_reply(
        reply: str | None, transition: Transition, outcome: EffectOutcome
    ) -> schemas.ChatReply:
        snapshot = transition.snapshot
        human_joined = snapshot.state is HandoffState.HUMAN_JOINED
        polling = (
            outcome.start_polling
            or human_joined
            or (snapshot.active and snapshot.channel is HandoffChannel.CHAT)
        )
        return schemas.ChatReply(
            response=reply,
            agent_requested=outcome.conversation.agent_requested,
            start_polling=polling,
            human_joined=human_joined,
            handoff_state=snapshot.state.value,
        )

    def _record_reply(self, conversation: schemas.ConversationRecord, reply: str) -> None:
        self._transcripts.append_message(conversation.id, MessageRole.ASSISTANT, reply)
        self._cache.append(conversation.session_key, "assistant", reply)

    def _ensure_cached(self, conversation: schemas.ConversationRecord) -> None:
        """Rebuild the prompt history from the transcript after a cache miss."""

        if self._cache.get(conversation.session_key) is not None:
            return
        messages = self._transcripts.list_messages(
            conversation.id, limit=self._cache.max_messages
        )
        self._cache.seed(
            conversation.session_key,
            [
                HistoryItem(role=_PROMPT_ROLES[message.role], content=message.content)
                for message in messages
                if message.role in _PROMPT_ROLES
            ],
        )

    # ------------------------------------------------------------------
    # Contact form

    def submit_contact(
        self,
        operator_id: str,
        session_id: str,
        *,
        email: str | None = None,
        phone: str | None = None,
    ) -> schemas.ContactResponse:
        operator_id = validate_operator_id(operator_id)
        session_id = validate_session_id(session_id, self._session_id_max_length)
        contact = validate_contact(email, phone)
        config = self._operators.get_config(operator_id)

        session_key = make_session_key(operator_id, session_id)
        with self._locks.hold(session_key):
            conversation = self._transcripts.get_or_create_conversation(operator_id, session_id)
            before = snapshot_from_record(conversation)
            transition = advance(
                before, ContactSubmitted(contact=contact), HandoffPolicy.from_config(config)
            )
            outcome = self._effects.run(conversation, transition, config)
            logger.info("Contact details saved for session %s", session_key)
            message = self._handoff_text(transition, outcome, config)
            return schemas.ContactResponse(
                success=True,
                message=message or "Thanks! Your contact details have been saved.",
            )
