"""Free-form replies produced by the completion provider.

The system prompt is assembled from the operator's configuration: business
facts (with friendly defaults so the model never sees empty values), tone,
length tier, knowledge boundaries and don't-answer topics. The token budget
follows the length tier. Any provider failure is replaced by
:data:`FALLBACK_REPLY`; :meth:`Responder.reply` never raises.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ..errors import TransportFailure
from ..integrations.completion import CompletionClient
from ..operators.schemas import OperatorConfig, ResponseLength, Tone
from .cache import HistoryItem

logger = logging.getLogger(__name__)

FALLBACK_REPLY = (
    "Sorry, I'm having trouble answering right now. "
    'Type "human" and I\'ll connect you with someone from our team.'
)

_FACT_DEFAULTS: Mapping[str, str] = {
    "business_name": "our tour company",
    "business_type": "tours",
    "location": "our meeting location",
    "duration": "several hours",
    "adult_price": "contact us for pricing",
    "child_price": "contact us for pricing",
    "group_discount": "ask about group discounts",
    "what_to_bring": "sunscreen, camera, and comfortable clothes",
    "cancellation_policy": "contact us about cancellations",
    "weather_policy": "contact us about weather policies",
}
_TIMES_DEFAULT = "contact us for available times"


def deflection_phrase(config: OperatorConfig) -> str:
    """Sentence used for topics the assistant must not answer."""

    return f'That\'s a great question for {config.team_name}. Type "human" and I\'ll connect you.'


class ToneTemplateStore:
    """Map each configured tone to a style instruction."""

    _DEFAULT_TEMPLATES: Mapping[Tone, str] = {
        Tone.FRIENDLY: "You are a friendly, warm assistant. Sound welcoming and helpful.",
        Tone.PROFESSIONAL: "You are a polished, professional assistant. Be courteous and precise.",
        Tone.CASUAL: "You are a relaxed, casual assistant. Keep it light and conversational.",
        Tone.ENTHUSIASTIC: "You are an upbeat, enthusiastic assistant. Show genuine excitement about the experience.",
    }

    def __init__(self, overrides: Mapping[Tone, str] | None = None):
        self._templates = dict(self._DEFAULT_TEMPLATES)
        if overrides:
            self._templates.update(overrides)

    def resolve(self, tone: Tone) -> str:
        return self._templates.get(tone) or self._templates[Tone.FRIENDLY]


class LengthParameterStore:
    """Completion parameters and length guidance per response-length tier."""

    _DEFAULTS: Mapping[ResponseLength, dict[str, Any]] = {
        ResponseLength.SHORT: {
            "max_tokens": 100,
            "temperature": 0.5,
            "guidance": "Keep replies to 2-3 short sentences.",
        },
        ResponseLength.MODERATE: {
            "max_tokens": 200,
            "temperature": 0.5,
            "guidance": "Keep replies to about 3-5 sentences.",
        },
        ResponseLength.DETAILED: {
            "max_tokens": 400,
            "temperature": 0.5,
            "guidance": "Give complete answers, up to two short paragraphs.",
        },
    }

    def __init__(self, overrides: Mapping[ResponseLength, Mapping[str, Any]] | None = None):
        self._params = {tier: dict(params) for tier, params in self._DEFAULTS.items()}
        if overrides:
            for tier, params in overrides.items():
                self._params.setdefault(tier, {}).update(params)

    def for_tier(self, tier: ResponseLength) -> dict[str, Any]:
        return dict(self._params.get(tier) or self._params[ResponseLength.SHORT])


def _fact(config: OperatorConfig, name: str) -> str:
    value = getattr(config, name)
    if value is None or not str(value).strip():
        return _FACT_DEFAULTS[name]
    return str(value).strip()


def build_system_prompt(
    config: OperatorConfig,
    *,
    tones: ToneTemplateStore | None = None,
    lengths: LengthParameterStore | None = None,
) -> str:
    tones = tones or ToneTemplateStore()
    lengths = lengths or LengthParameterStore()
    times = ", ".join(config.times) if config.times else _TIMES_DEFAULT

    lines = [
        f"{tones.resolve(config.tone)} You answer customer questions for {_fact(config, 'business_name')}.",
        lengths.for_tier(config.response_length)["guidance"],
        "",
        "Business info:",
        f"- Type: {_fact(config, 'business_type')}",
        f"- Location/Meeting: {_fact(config, 'location')}",
        f"- Times: {times}",
        f"- Duration: {_fact(config, 'duration')}",
        f"- Price: Adults {_fact(config, 'adult_price')}, Kids {_fact(config, 'child_price')}",
        f"- Group Discount: {_fact(config, 'group_discount')}",
        f"- What to Bring: {_fact(config, 'what_to_bring')}",
        f"- Cancellation Policy: {_fact(config, 'cancellation_policy')}",
        f"- Weather Policy: {_fact(config, 'weather_policy')}",
    ]
    if config.booking_link:
        lines.append(f"- Booking: {config.booking_link}")

    lines += [
        "",
        "Knowledge boundaries:",
        "- Only use the business info above. If something is not covered, say you are not sure and offer to connect the customer with the team.",
        "- Never make up real-time information such as current weather, live availability or remaining spots.",
        "- Never state specific dates or times that are not listed above.",
        '- Never say "undefined", "null" or "None"; always give a helpful answer.',
        '- If the customer wants a person, tell them to type "human".',
    ]
    blocked = config.blocked_topics
    if blocked:
        lines.append(
            f"- Do not answer questions about: {', '.join(blocked)}. "
            f'Reply with exactly: "{deflection_phrase(config)}"'
        )
    if config.custom_instructions and config.custom_instructions.strip():
        lines += ["", "Additional instructions from the business:", config.custom_instructions.strip()]
    return "\n".join(lines)


class Responder:
    """Generate a free-form reply; degrade to :data:`FALLBACK_REPLY` on failure."""

    def __init__(
        self,
        completion: CompletionClient,
        *,
        tones: ToneTemplateStore | None = None,
        lengths: LengthParameterStore | None = None,
    ) -> None:
        self._completion = completion
        self._tones = tones or ToneTemplateStore()
        self._lengths = lengths or LengthParameterStore()

    def system_prompt(self, config: OperatorConfig) -> str:
        return build_system_prompt(config, tones=self._tones, lengths=self._lengths)

    def reply(
        self,
        config: OperatorConfig,
        history: Sequence[HistoryItem],
        *,
        session_key: str | None = None,
    ) -> str:
        params = self._lengths.for_tier(config.response_length)
        try:
            return self._completion.complete(
                self.system_prompt(config),
                [item.as_dict() for item in history],
                params["max_tokens"],
                params["temperature"],
            )
        except TransportFailure as exc:
            logger.warning(
                "Completion via %s failed for session %s: %s",
                exc.provider,
                session_key,
                exc,
            )
        except Exception:
            logger.exception("Unexpected completion failure for session %s", session_key)
        return FALLBACK_REPLY
