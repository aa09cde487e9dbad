from chatdesk.integrations.email import LoggingEmailSender, SendGridEmailSender
from chatdesk.integrations.providers import ProviderRegistry
from chatdesk.integrations.sms import DisabledSmsSender, TwilioSmsSender
from chatdesk.operators.schemas import OperatorConfig
from chatdesk.operators.store import FileConfigStore
from chatdesk.runtime import build_email_sender, build_runtime, build_sms_sender
from chatdesk.settings import ChatSettings

from conftest import FakeCompletion


def test_email_sender_requires_key_and_sender_address():
    registry = ProviderRegistry({"sendgrid": {"api_key": "SG.x"}})

    assert isinstance(
        build_email_sender(ChatSettings(email_from="bot@reef.example"), registry),
        SendGridEmailSender,
    )
    assert isinstance(build_email_sender(ChatSettings(), registry), LoggingEmailSender)


def test_sms_sender_requires_full_twilio_setup():
    registry = ProviderRegistry({"twilio": {"api_key": "tok", "account_sid": "AC1"}})

    assert isinstance(
        build_sms_sender(ChatSettings(twilio_from_number="+15550000000"), registry),
        TwilioSmsSender,
    )
    assert isinstance(build_sms_sender(ChatSettings(), registry), DisabledSmsSender)
    assert isinstance(
        build_sms_sender(ChatSettings(twilio_from_number="+15550000000"), ProviderRegistry({})),
        DisabledSmsSender,
    )


def test_database_url_selects_sql_stores(tmp_path):
    settings = ChatSettings(database_url=f"sqlite+pysqlite:///{tmp_path / 'chat.db'}")
    runtime = build_runtime(
        settings,
        registry=ProviderRegistry({}),
        completion=FakeCompletion(),
        with_sweeper=False,
    )

    operator_id = runtime.operators.register(OperatorConfig(businessName="Reef")).operator_id
    runtime.chat.handle_message(operator_id, "s1", "what should I bring?")

    rebuilt = build_runtime(
        settings,
        registry=ProviderRegistry({}),
        completion=FakeCompletion(),
        with_sweeper=False,
    )
    assert rebuilt.operators.get_config(operator_id).business_name == "Reef"
    assert rebuilt.dashboard.list_conversations(operator_id).total == 1


def test_sweeper_follows_runtime_lifecycle(harness_factory, tmp_path):
    assert harness_factory().runtime.sweeper is None

    runtime = build_runtime(
        ChatSettings(cache_sweep_interval_seconds=3600),
        registry=ProviderRegistry({}),
        config_store=FileConfigStore(str(tmp_path / "configs")),
        completion=FakeCompletion(),
    )
    runtime.start()
    assert runtime.sweeper.running
    runtime.stop()
    assert not runtime.sweeper.running
