"""Error taxonomy shared by the chat and dashboard paths."""

from __future__ import annotations


class ChatdeskError(RuntimeError):
    """Base class for errors raised by chatdesk services."""


class ConfigNotFoundError(ChatdeskError):
    """Raised when an operator id has no stored configuration."""

    def __init__(self, operator_id: str) -> None:
        super().__init__(f"Operator '{operator_id}' not found")
        self.operator_id = operator_id


class ValidationFailure(ChatdeskError, ValueError):
    """Raised for malformed client input; nothing is persisted."""


class ConversationNotFoundError(ChatdeskError):
    """Raised when an operation targets a conversation that does not exist."""

    def __init__(self, conversation_id: int | str) -> None:
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class TransportFailure(ChatdeskError):
    """An external capability (LLM, email, SMS, weather) failed or timed out."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class CompletionError(TransportFailure):
    """The completion provider was unreachable or returned an unusable reply."""


__all__ = [
    "ChatdeskError",
    "CompletionError",
    "ConfigNotFoundError",
    "ConversationNotFoundError",
    "TransportFailure",
    "ValidationFailure",
]
