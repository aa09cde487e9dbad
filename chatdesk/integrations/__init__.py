"""Adapters for the external capabilities: completion, email, SMS and weather."""

from .completion import (
    AnthropicCompletionClient,
    CompletionClient,
    OpenAICompletionClient,
    build_completion_client,
)
from .email import EmailResult, EmailSender, LoggingEmailSender, SendGridEmailSender
from .providers import ProviderCredentials, ProviderRegistry
from .sms import DisabledSmsSender, SmsResult, SmsSender, TwilioSmsSender
from .weather import OpenWeatherMapClient, WeatherClient, WeatherSnapshot

__all__ = [
    "AnthropicCompletionClient",
    "CompletionClient",
    "DisabledSmsSender",
    "EmailResult",
    "EmailSender",
    "LoggingEmailSender",
    "OpenAICompletionClient",
    "OpenWeatherMapClient",
    "ProviderCredentials",
    "ProviderRegistry",
    "SendGridEmailSender",
    "SmsResult",
    "SmsSender",
    "TwilioSmsSender",
    "WeatherClient",
    "WeatherSnapshot",
    "build_completion_client",
]
