import pathlib
import sys
from dataclasses import dataclass, field
from typing import Any

import pytest
from fastapi import FastAPI, Request

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from chatdesk.app_logging import init_logging
from chatdesk.conversations.repository import (
    InMemoryTranscriptStore,
    SqlAlchemyTranscriptStore,
)
from chatdesk.errors import CompletionError
from chatdesk.integrations.email import EmailResult
from chatdesk.integrations.sms import SmsResult
from chatdesk.integrations.weather import WeatherSnapshot
from chatdesk.models.session import ensure_schema, get_engine, get_sessionmaker
from chatdesk.operators.schemas import OperatorConfig
from chatdesk.operators.store import FileConfigStore
from chatdesk.runtime import ChatRuntime, build_runtime
from chatdesk.settings import ChatSettings


class FakeCompletion:
    provider = "fake"

    def __init__(self, reply: str = "We depart at 9am from the marina.") -> None:
        self.reply = reply
        self.fail = False
        self.calls: list[dict[str, Any]] = []

    def complete(self, system_prompt, history, max_tokens, temperature):
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "history": list(history),
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if self.fail:
            raise CompletionError(self.provider, "boom")
        return self.reply


class FakeEmail:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.sent: list[tuple[str, str, str]] = []

    def send(self, to, subject, body):
        self.sent.append((to, subject, body))
        if not self.ok:
            return EmailResult(ok=False, error="smtp down")
        return EmailResult(ok=True, provider_id=f"msg-{len(self.sent)}")


class FakeSms:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.sent: list[tuple[str, str]] = []

    def send(self, to_number, body):
        self.sent.append((to_number, body))
        if not self.ok:
            return SmsResult(ok=False, error="carrier rejected")
        return SmsResult(ok=True, provider_id=f"SM{len(self.sent)}")


class FakeWeather:
    def __init__(self, snapshot: WeatherSnapshot | None = None) -> None:
        self.snapshot = snapshot
        self.lookups: list[str] = []

    def lookup(self, location):
        self.lookups.append(location)
        return self.snapshot


@dataclass
class ChatHarness:
    runtime: ChatRuntime
    completion: FakeCompletion
    email: FakeEmail
    sms: FakeSms
    weather: FakeWeather
    transcripts: Any
    operator_ids: list[str] = field(default_factory=list)

    @property
    def chat(self):
        return self.runtime.chat

    @property
    def dashboard(self):
        return self.runtime.dashboard

    def register(self, **config: Any) -> str:
        registration = self.runtime.operators.register(OperatorConfig.model_validate(config))
        self.operator_ids.append(registration.operator_id)
        return registration.operator_id

    def conversation(self, operator_id: str, session_id: str):
        return self.transcripts.get_by_session_key(f"{operator_id}_{session_id}")


def _sqlite_store(tmp_path: pathlib.Path) -> SqlAlchemyTranscriptStore:
    engine = get_engine(f"sqlite+pysqlite:///{tmp_path / 'chat.db'}")
    ensure_schema(engine)
    return SqlAlchemyTranscriptStore(get_sessionmaker(engine))


@pytest.fixture(params=["memory", "sqlite"])
def transcript_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryTranscriptStore()
    return _sqlite_store(tmp_path)


@pytest.fixture
def harness_factory(tmp_path):
    def _create(transcripts=None, **settings_overrides: Any) -> ChatHarness:
        completion = FakeCompletion()
        email = FakeEmail()
        sms = FakeSms()
        weather = FakeWeather()
        transcripts = transcripts or InMemoryTranscriptStore()
        runtime = build_runtime(
            ChatSettings(**settings_overrides),
            config_store=FileConfigStore(str(tmp_path / "configs")),
            transcripts=transcripts,
            completion=completion,
            email=email,
            sms=sms,
            weather=weather,
            with_sweeper=False,
        )
        return ChatHarness(
            runtime=runtime,
            completion=completion,
            email=email,
            sms=sms,
            weather=weather,
            transcripts=transcripts,
        )

    return _create


@pytest.fixture
def harness(harness_factory, transcript_store) -> ChatHarness:
    return harness_factory(transcript_store)


@pytest.fixture
def app_factory(monkeypatch):
    def _create_app(log_dir: str, log_request_bodies: bool = False):
        """Create a FastAPI app with logging initialised."""
        monkeypatch.setenv("LOG_DIR", str(log_dir))
        if log_request_bodies:
            monkeypatch.setenv("LOG_REQUEST_BODIES", "true")
        app = FastAPI()

        @app.post("/echo")
        async def echo(request: Request):
            return await request.json()

        init_logging(app)
        return app

    return _create_app
