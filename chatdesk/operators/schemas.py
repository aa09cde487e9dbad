"""Pydantic schemas for operator configuration."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel


class Tone(str, Enum):
    FRIENDLY = "friendly"
    PROFESSIONAL = "professional"
    CASUAL = "casual"
    ENTHUSIASTIC = "enthusiastic"


class ResponseLength(str, Enum):
    SHORT = "short"
    MODERATE = "moderate"
    DETAILED = "detailed"


class AlertPreference(str, Enum):
    EMAIL = "email"
    DASHBOARD = "dashboard"
    NONE = "none"


class SmsMode(str, Enum):
    OFF = "off"
    HYBRID = "hybrid"
    SMS_FIRST = "sms_first"


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip().casefold() for item in value.split(",") if item.strip()]


class OperatorConfig(BaseModel):
    """Business facts and behaviour knobs submitted through the setup form.

    Fields are accepted in camelCase (the form's naming) or snake_case and
    serialised back in camelCase.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    business_name: str | None = None
    business_type: str | None = None
    location: str | None = None
    duration: str | None = None
    adult_price: str | None = None
    child_price: str | None = None
    group_discount: str | None = None
    what_to_bring: str | None = None
    cancellation_policy: str | None = None
    weather_policy: str | None = None
    times: list[str] = Field(default_factory=list)
    waiver_link: str | None = None
    booking_link: str | None = None

    tone: Tone = Tone.FRIENDLY
    response_length: ResponseLength = ResponseLength.SHORT
    escalation_triggers: str | None = None
    alert_preference: AlertPreference = AlertPreference.EMAIL
    alert_email: str | None = None
    sms_mode: SmsMode = SmsMode.OFF
    weather_enabled: bool = False
    weather_location: str | None = None
    dont_answer_topics: str | None = None
    custom_instructions: str | None = None

    @field_validator("times", mode="before")
    @classmethod
    def _drop_blank_times(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [str(t).strip() for t in value if t is not None and str(t).strip()]

    @field_validator(
        "tone", "response_length", "alert_preference", "sms_mode", mode="before"
    )
    @classmethod
    def _lower_enums(cls, value, info: ValidationInfo):
        if value is None:
            return cls.model_fields[info.field_name].default
        if isinstance(value, str):
            cleaned = value.strip().lower().replace("-", "_")
            if not cleaned:
                return cls.model_fields[info.field_name].default
            return cleaned
        return value

    @property
    def team_name(self) -> str:
        """``"the <business> team"``, or ``"our team"`` when no name is set."""

        return f"the {self.business_name} team" if self.business_name else "our team"

    @property
    def custom_triggers(self) -> list[str]:
        return _split_csv(self.escalation_triggers)

    @property
    def blocked_topics(self) -> list[str]:
        return _split_csv(self.dont_answer_topics)

    @property
    def resolved_weather_location(self) -> str | None:
        return self.weather_location or self.location


class OperatorRegistration(BaseModel):
    success: bool = True
    operator_id: str = Field(serialization_alias="operatorId")
