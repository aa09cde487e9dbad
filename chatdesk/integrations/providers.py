"""Where chatdesk finds API keys for the services it calls.

Each service is described by a :class:`ProviderEnv`: the environment variables
that may hold its key (first one set wins) and any extra settings it needs,
such as the Twilio account SID. Tests inject credentials through
``ProviderRegistry(overrides)`` instead of touching the environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ProviderEnv:
    key_vars: tuple[str, ...]
    extra_vars: Mapping[str, str] = field(default_factory=dict)


KNOWN_PROVIDERS: Mapping[str, ProviderEnv] = {
    "openai": ProviderEnv(("OPENAI_API_KEY",)),
    "anthropic": ProviderEnv(("ANTHROPIC_API_KEY", "CLAUDE_API_KEY")),
    "sendgrid": ProviderEnv(("SENDGRID_API_KEY",)),
    "twilio": ProviderEnv(("TWILIO_AUTH_TOKEN",), {"account_sid": "TWILIO_ACCOUNT_SID"}),
    "openweathermap": ProviderEnv(("OPENWEATHERMAP_API_KEY",)),
}


@dataclass(frozen=True)
class ProviderCredentials:
    provider: str
    api_key: str | None
    extras: dict[str, str]

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def as_headers(self) -> dict[str, str]:
        """Bearer auth for services that take one (SendGrid, OpenAI)."""

        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}


def _first_set(names: tuple[str, ...]) -> str | None:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


class ProviderRegistry:
    """Look up credentials by provider name, case-insensitively."""

    def __init__(self, overrides: Mapping[str, Mapping[str, str]] | None = None):
        self._overrides = {name.lower(): dict(values) for name, values in (overrides or {}).items()}

    def get_credentials(self, provider: str) -> ProviderCredentials:
        name = provider.lower()
        override = self._overrides.get(name)
        if override is not None:
            extras = {k: v for k, v in override.items() if k != "api_key"}
            return ProviderCredentials(name, override.get("api_key"), extras)

        env = KNOWN_PROVIDERS.get(name)
        if env is None:
            return ProviderCredentials(name, None, {})
        extras = {
            key: value
            for key, var in env.extra_vars.items()
            if (value := os.getenv(var))
        }
        return ProviderCredentials(name, _first_set(env.key_vars), extras)

    def list_supported_providers(self) -> dict[str, bool]:
        """Map every known or overridden provider to whether it has a key."""

        names = set(KNOWN_PROVIDERS) | set(self._overrides)
        return {name: self.get_credentials(name).configured for name in sorted(names)}
