from datetime import datetime

import pytest
from unittest.mock import patch, MagicMock

from app.channel.memory import InMemoryChannel
from app.channel.models import SendResult
from app.core import state_machine as sm
from app.core.activation import EngineConfig
from app.core.engine import OnboardingEngine
from app.core.errors import DeliveryError
from app.core.orchestrator import DELIVERY_RETRY, deliver, handle_inbound
from app.queue.jobs import send_message_job
from app.store.merchant_repo import InMemoryMerchantStore
from app.settings import settings

NOW = datetime(2024, 1, 1, 10, 0, 0)


@pytest.fixture(autouse=True)
def sync_delivery():
    with patch.object(settings, "DELIVERY_MODE", "sync"):
        yield


@pytest.fixture
def store():
    return InMemoryMerchantStore()


@pytest.fixture
def channel():
    return InMemoryChannel()


@pytest.fixture
def engine():
    return OnboardingEngine(EngineConfig())


def _send(store, channel, engine, text, phone="+1 (555) 123-4567"):
    return handle_inbound(phone, text, store=store, channel=channel, engine=engine, now=NOW)


def test_activation_creates_and_replies(store, channel, engine):
    out = _send(store, channel, engine, "merchant onboarding")

    assert out.phoneNumber == "15551234567"
    rec = store.find("15551234567")
    assert rec is not None
    assert rec.onboardingStep == sm.WELCOME
    assert channel.sent[-1]["phoneNumber"] == "15551234567"
    assert channel.sent[-1]["message"] == out.reply
    assert out.messageId.startswith("mem-")


def test_ignored_sender_creates_nothing(store, channel, engine):
    out = _send(store, channel, engine, "hi")
    assert out.reply is None
    assert store.all() == []
    assert channel.sent == []


def test_step_progress_is_persisted(store, channel, engine):
    _send(store, channel, engine, "merchant onboarding")
    _send(store, channel, engine, "10/02/2024")
    _send(store, channel, engine, "continue")

    rec = store.find("15551234567")
    assert rec.onboardingStep == sm.DELIVERY
    assert rec.goLiveDate == "2024-02-10"
    assert len(rec.conversationHistory) == 6
    assert len(channel.sent) == 3


def test_restart_deletes_record(store, channel, engine):
    _send(store, channel, engine, "merchant onboarding")
    out = _send(store, channel, engine, "restart")

    assert out.merchant is None
    assert store.find("15551234567") is None
    assert "reset" in channel.sent[-1]["message"].lower()


@patch("app.core.orchestrator.log")
def test_escalation_is_logged(mock_log, store, channel, engine):
    _send(store, channel, engine, "merchant onboarding")
    out = _send(store, channel, engine, "03/01/2024")

    assert out.command == "escalate"
    assert store.find("15551234567").status == "escalated"
    events = [c.args[0] for c in mock_log.call_args_list]
    assert "merchant_escalated" in events


def test_send_false_skips_delivery(store, channel, engine):
    out = handle_inbound("15551234567", "merchant onboarding", store=store, channel=channel,
                         engine=engine, now=NOW, send=False)
    assert out.reply
    assert out.messageId is None
    assert channel.sent == []
    assert store.find("15551234567") is not None


def test_delivery_failure_raises_after_persisting(store, engine):
    failing = MagicMock()
    failing.send_text.return_value = SendResult(success=False, error="HTTP 500")

    with pytest.raises(DeliveryError) as exc:
        handle_inbound("15551234567", "merchant onboarding", store=store, channel=failing, engine=engine, now=NOW)

    assert exc.value.phone_number == "15551234567"
    assert store.find("15551234567") is not None


def test_deliver_rq_mode_enqueues():
    mock_queue = MagicMock()
    with patch.object(settings, "DELIVERY_MODE", "rq"), \
            patch("app.core.orchestrator.get_queue", return_value=mock_queue):
        assert deliver("15551234567", "hello") is None

    mock_queue.enqueue.assert_called_once_with(
        send_message_job, "15551234567", "hello", retry=DELIVERY_RETRY
    )


def test_deliver_sync_returns_message_id(channel):
    with patch.object(settings, "DELIVERY_MODE", "sync"):
        message_id = deliver("15551234567", "hello", channel=channel)
    assert message_id == channel.sent[0]["messageId"]
