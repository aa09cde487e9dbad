"""Keyword-driven intent classification for inbound customer messages."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Iterable, Protocol

from ..operators.schemas import OperatorConfig


class Branch(str, Enum):
    HANDOFF_FOLLOW_UP = "handoff_follow_up"
    ESCALATE = "escalate"
    WAIVER = "waiver"
    PRICING = "pricing"
    BOOKING = "booking"
    WEATHER = "weather"
    FREE_FORM = "free_form"


DEFAULT_AGENT_KEYWORDS: tuple[str, ...] = (
    "agent",
    "human",
    "speak to someone",
    "talk to someone",
    "representative",
    "manager",
    "urgent",
    "real person",
    "live person",
    "customer service",
)
DEFAULT_WAIVER_KEYWORDS: tuple[str, ...] = ("waiver", "sign", "signature", "form", "release")
DEFAULT_PRICING_KEYWORDS: tuple[str, ...] = (
    "price",
    "pricing",
    "cost",
    "how much",
    "rates",
    "fee",
)
DEFAULT_BOOKING_KEYWORDS: tuple[str, ...] = (
    "book",
    "reserve",
    "reservation",
    "schedule",
    "availability",
    "available",
)
DEFAULT_WEATHER_KEYWORDS: tuple[str, ...] = (
    "weather",
    "rain",
    "forecast",
    "temperature",
    "storm",
    "sunny",
)

#: Word limit for the "phone" + "call" heuristic.
SHORT_MESSAGE_WORDS = 12

#: Endings a keyword may carry and still count as the same word.
_INFLECTIONS = r"(?:s|es|d|ed|ing|ings)?"


@lru_cache(maxsize=512)
def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    # Whole words only: "forms" and "booking" match, "information" and "feel" do not.
    return re.compile(r"(?<!\w)" + re.escape(keyword) + _INFLECTIONS + r"(?!\w)")


def matches_any(text: str, keywords: Iterable[str]) -> bool:
    return any(_keyword_pattern(keyword).search(text) for keyword in keywords if keyword)


@dataclass(frozen=True)
class IntentKeywords:
    """Keyword tables driving classification."""

    agent: tuple[str, ...] = DEFAULT_AGENT_KEYWORDS
    waiver: tuple[str, ...] = DEFAULT_WAIVER_KEYWORDS
    pricing: tuple[str, ...] = DEFAULT_PRICING_KEYWORDS
    booking: tuple[str, ...] = DEFAULT_BOOKING_KEYWORDS
    weather: tuple[str, ...] = DEFAULT_WEATHER_KEYWORDS
    compound_agent: tuple[tuple[str, ...], ...] = field(
        default=(("phone", "call"),)
    )


class Classifier(Protocol):
    def classify(
        self, lowered: str, config: OperatorConfig, *, handoff_active: bool
    ) -> Branch: ...

    def is_agent_request(self, lowered: str, config: OperatorConfig) -> bool: ...


class IntentClassifier:
    """Pick exactly one handling branch, first match wins."""

    def __init__(self, keywords: IntentKeywords | None = None) -> None:
        self._keywords = keywords or IntentKeywords()

    def agent_keywords(self, config: OperatorConfig) -> tuple[str, ...]:
        """Default agent keywords plus the operator's own triggers."""

        custom = tuple(t for t in config.custom_triggers if t not in self._keywords.agent)
        return self._keywords.agent + custom

    def is_agent_request(self, lowered: str, config: OperatorConfig) -> bool:
        if matches_any(lowered, self.agent_keywords(config)):
            return True
        if len(lowered.split()) <= SHORT_MESSAGE_WORDS:
            for group in self._keywords.compound_agent:
                if all(_keyword_pattern(word).search(lowered) for word in group):
                    return True
        return False

    def classify(
        self, lowered: str, config: OperatorConfig, *, handoff_active: bool
    ) -> Branch:
        if handoff_active:
            return Branch.HANDOFF_FOLLOW_UP
        if self.is_agent_request(lowered, config):
            return Branch.ESCALATE
        if matches_any(lowered, self._keywords.waiver):
            return Branch.WAIVER
        if config.booking_link and matches_any(lowered, self._keywords.pricing):
            return Branch.PRICING
        if config.booking_link and matches_any(lowered, self._keywords.booking):
            return Branch.BOOKING
        if config.weather_enabled and matches_any(lowered, self._keywords.weather):
            return Branch.WEATHER
        return Branch.FREE_FORM
