"""Assemble the services behind the HTTP API from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from .conversations.cache import CacheSweeper, SessionCache, SessionLocks
from .conversations.dashboard import DashboardSync
from .conversations.effects import EffectRunner
from .conversations.repository import (
    InMemoryTranscriptStore,
    SqlAlchemyTranscriptStore,
    TranscriptStore,
)
from .conversations.responder import Responder
from .conversations.service import ChatService
from .integrations.completion import CompletionClient, build_completion_client
from .integrations.email import EmailSender, LoggingEmailSender, SendGridEmailSender
from .integrations.providers import ProviderRegistry
from .integrations.sms import DisabledSmsSender, SmsSender, TwilioSmsSender
from .integrations.weather import OpenWeatherMapClient, WeatherClient
from .models.session import ensure_schema, get_engine, get_sessionmaker
from .operators.service import OperatorService
from .operators.store import FileConfigStore, OperatorConfigStore, SqlAlchemyConfigStore
from .settings import ChatSettings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class ChatRuntime:
    """Everything the routers need, shared for the lifetime of the app."""

    settings: ChatSettings
    operators: OperatorService
    chat: ChatService
    dashboard: DashboardSync
    cache: SessionCache
    locks: SessionLocks
    sweeper: CacheSweeper | None = None

    def start(self) -> None:
        if self.sweeper is not None:
            self.sweeper.start()

    def stop(self) -> None:
        if self.sweeper is not None:
            self.sweeper.stop()


def build_email_sender(settings: ChatSettings, registry: ProviderRegistry) -> EmailSender:
    credentials = registry.get_credentials("sendgrid")
    if credentials.configured and settings.email_from:
        return SendGridEmailSender(
            api_key=credentials.api_key or "",
            from_address=settings.email_from,
            timeout=settings.notify_timeout,
        )
    logger.info("SendGrid is not configured; handoff emails will only be logged")
    return LoggingEmailSender()


def build_sms_sender(settings: ChatSettings, registry: ProviderRegistry) -> SmsSender:
    credentials = registry.get_credentials("twilio")
    account_sid = credentials.extras.get("account_sid")
    if credentials.configured and account_sid and settings.twilio_from_number:
        return TwilioSmsSender(
            account_sid=account_sid,
            auth_token=credentials.api_key or "",
            from_number=settings.twilio_from_number,
            timeout=settings.notify_timeout,
        )
    return DisabledSmsSender()


def build_runtime(
    settings: ChatSettings | None = None,
    *,
    registry: ProviderRegistry | None = None,
    config_store: OperatorConfigStore | None = None,
    transcripts: TranscriptStore | None = None,
    completion: CompletionClient | None = None,
    email: EmailSender | None = None,
    sms: SmsSender | None = None,
    weather: WeatherClient | None = None,
    with_sweeper: bool = True,
) -> ChatRuntime:
    """Wire stores, adapters and services; explicit arguments win over settings."""

    settings = settings or get_settings()
    registry = registry or ProviderRegistry()

    if config_store is None or transcripts is None:
        if settings.database_url:
            engine = get_engine(settings.database_url, pool_pre_ping=True)
            ensure_schema(engine)
            factory = get_sessionmaker(engine)
            config_store = config_store or SqlAlchemyConfigStore(factory)
            transcripts = transcripts or SqlAlchemyTranscriptStore(factory)
        else:
            config_store = config_store or FileConfigStore(settings.config_dir)
            transcripts = transcripts or InMemoryTranscriptStore()

    if weather is None:
        weather = OpenWeatherMapClient(
            api_key=registry.get_credentials("openweathermap").api_key,
            units=settings.weather_units,
            timeout=settings.weather_timeout,
        )

    cache = SessionCache(
        max_messages=settings.history_limit,
        idle_ttl=timedelta(seconds=settings.session_idle_ttl_seconds),
    )
    locks = SessionLocks()
    effects = EffectRunner(
        transcripts,
        email=email or build_email_sender(settings, registry),
        sms=sms or build_sms_sender(settings, registry),
        dashboard_url=settings.dashboard_url,
    )
    operators = OperatorService(config_store)
    chat = ChatService(
        operators=operators,
        transcripts=transcripts,
        responder=Responder(completion or build_completion_client(settings, registry)),
        effects=effects,
        cache=cache,
        locks=locks,
        weather=weather,
        max_message_length=settings.chat_max_message_length,
        session_id_max_length=settings.session_id_max_length,
    )
    dashboard = DashboardSync(
        transcripts,
        effects,
        locks=locks,
        max_message_length=settings.chat_max_message_length,
    )
    sweeper = None
    if with_sweeper:
        sweeper = CacheSweeper(
            cache,
            locks,
            interval=timedelta(seconds=settings.cache_sweep_interval_seconds),
        )
    return ChatRuntime(
        settings=settings,
        operators=operators,
        chat=chat,
        dashboard=dashboard,
        cache=cache,
        locks=locks,
        sweeper=sweeper,
    )
