"""Chat-completion clients.

Every client exposes ``complete(system_prompt, history, max_tokens,
temperature) -> str`` and raises :class:`~chatdesk.errors.CompletionError`
for transport problems, timeouts and unusable provider responses.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

import openai
import requests

from ..errors import CompletionError
from ..settings import ChatSettings
from .providers import ProviderRegistry

logger = logging.getLogger(__name__)

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


class CompletionClient(Protocol):
    def complete(
        self,
        system_prompt: str,
        history: Sequence[Mapping[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> str: ...


def _as_dict(item: Any) -> dict[str, str]:
    if isinstance(item, Mapping):
        return {"role": str(item["role"]), "content": str(item["content"])}
    return {"role": str(item.role), "content": str(item.content)}


class OpenAICompletionClient:
    """Chat completions through the official OpenAI SDK."""

    provider = "openai"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        timeout: float = 15.0,
        client: Any | None = None,
    ) -> None:
        self._model = model
        self._timeout = timeout
        self._client = client or openai.OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def complete(
        self,
        system_prompt: str,
        history: Sequence[Mapping[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> str:
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(_as_dict(item) for item in history)
        try:
            completion = self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.OpenAIError as exc:
            raise CompletionError(self.provider, str(exc)) from exc
        try:
            content = completion.choices[0].message.content
        except (AttributeError, IndexError) as exc:
            raise CompletionError(self.provider, "malformed completion response") from exc
        if not content or not content.strip():
            raise CompletionError(self.provider, "empty completion")
        return content.strip()


def _anthropic_messages(history: Sequence[Mapping[str, str]]) -> list[dict[str, str]]:
    """Shape history for the Messages API: starts with ``user``, roles alternate."""

    messages: list[dict[str, str]] = []
    for raw in history:
        item = _as_dict(raw)
        if item["role"] not in ("user", "assistant"):
            continue
        if not messages and item["role"] != "user":
            continue
        if messages and messages[-1]["role"] == item["role"]:
            messages[-1]["content"] += "\n\n" + item["content"]
            continue
        messages.append(item)
    return messages


class AnthropicCompletionClient:
    """Anthropic Messages API over plain HTTP."""

    provider = "anthropic"

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str = "claude-3-haiku-20240307",
        timeout: float = 15.0,
        session: requests.Session | None = None,
        url: str = ANTHROPIC_MESSAGES_URL,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._session = session or requests.Session()
        self._url = url

    def complete(
        self,
        system_prompt: str,
        history: Sequence[Mapping[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> str:
        if not self._api_key:
            raise CompletionError(self.provider, "API key is not configured")
        messages = _anthropic_messages(history)
        if not messages:
            raise CompletionError(self.provider, "no user message to answer")
        payload = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system_prompt,
            "messages": messages,
        }
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        try:
            response = self._session.post(
                self._url, json=payload, headers=headers, timeout=self._timeout
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise CompletionError(self.provider, str(exc)) from exc
        blocks = data.get("content") if isinstance(data, dict) else None
        text = "".join(
            block.get("text", "")
            for block in blocks or []
            if isinstance(block, dict) and block.get("type", "text") == "text"
        ).strip()
        if not text:
            raise CompletionError(self.provider, "empty completion")
        return text


def build_completion_client(
    settings: ChatSettings, registry: ProviderRegistry | None = None
) -> CompletionClient:
    """Return the completion client selected by ``LLM_PROVIDER``."""

    registry = registry or ProviderRegistry()
    provider = settings.llm_provider.lower()
    if provider == "anthropic":
        credentials = registry.get_credentials("anthropic")
        return AnthropicCompletionClient(
            api_key=credentials.api_key,
            model=settings.anthropic_model,
            timeout=settings.completion_timeout,
        )
    if provider != "openai":
        raise ValueError(f"Unsupported LLM provider: {settings.llm_provider}")
    credentials = registry.get_credentials("openai")
    if not credentials.configured:
        logger.warning("OPENAI_API_KEY is not set; free-form replies will use the fallback")
        return _UnconfiguredCompletionClient(provider)
    return OpenAICompletionClient(
        api_key=credentials.api_key,
        model=settings.openai_model,
        timeout=settings.completion_timeout,
    )


class _UnconfiguredCompletionClient:
    def __init__(self, provider: str) -> None:
        self.provider = provider

    def complete(
        self,
        system_prompt: str,
        history: Sequence[Mapping[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> str:
        raise CompletionError(self.provider, "API key is not configured")
