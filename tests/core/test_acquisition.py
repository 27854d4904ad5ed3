from datetime import datetime

import pytest
from unittest.mock import MagicMock

from app.channel.memory import InMemoryChannel
from app.channel.models import SendResult
from app.core.acquisition import InvalidContactError, acquire_merchant, retry_onboarding
from app.core.errors import DuplicateMerchantError, MerchantNotFoundError
from app.store.merchant_repo import InMemoryMerchantStore

NOW = datetime(2024, 1, 1, 10, 0, 0)


@pytest.fixture
def store():
    return InMemoryMerchantStore()


def _failing_channel(error="HTTP 466: quota exceeded"):
    ch = MagicMock()
    ch.send_text.return_value = SendResult(success=False, error=error)
    return ch


def test_acquire_sends_personalized_welcome(store):
    channel = InMemoryChannel()
    rec, result = acquire_merchant("Bean There", "+44 7700 900123", store=store, channel=channel, now=NOW)

    assert result.success
    assert rec.phoneNumber == "447700900123"
    assert rec.status == "onboarding"
    assert rec.onboardingStep == "welcome"
    assert rec.source == "acquisition"
    assert rec.businessName == "Bean There"
    assert rec.companyName == "Bean There"
    assert rec.lastError is None
    assert channel.sent[0]["message"].startswith("Hello Bean There!")
    assert rec.conversationHistory == [
        {"message": channel.sent[0]["message"], "direction": "outgoing", "timestamp": NOW.isoformat()}
    ]
    assert store.find("447700900123").status == "onboarding"


@pytest.mark.parametrize("name, number", [("", "447700900123"), ("Cafe", ""), ("Cafe", "12345")])
def test_acquire_validates_input(store, name, number):
    with pytest.raises(InvalidContactError):
        acquire_merchant(name, number, store=store, channel=InMemoryChannel())
    assert store.all() == []


def test_acquire_rejects_existing_number(store):
    acquire_merchant("Cafe", "447700900123", store=store, channel=InMemoryChannel(), now=NOW)
    with pytest.raises(DuplicateMerchantError):
        acquire_merchant("Other", "447700900123", store=store, channel=InMemoryChannel(), now=NOW)


def test_acquire_send_failure_marks_failed(store):
    rec, result = acquire_merchant("Cafe", "447700900123", store=store, channel=_failing_channel(), now=NOW)

    assert not result.success
    assert rec.status == "failed"
    assert rec.lastError == "HTTP 466: quota exceeded"
    assert rec.conversationHistory == []


def test_retry_recovers_failed_merchant(store):
    rec, _ = acquire_merchant("Cafe", "447700900123", store=store, channel=_failing_channel(), now=NOW)
    channel = InMemoryChannel()

    updated, result = retry_onboarding(rec.id, store=store, channel=channel, now=NOW)

    assert result.success
    assert updated.status == "onboarding"
    assert updated.lastError is None
    assert len(updated.conversationHistory) == 1


def test_retry_keeps_progress_of_active_merchant(store):
    rec, _ = acquire_merchant("Cafe", "447700900123", store=store, channel=InMemoryChannel(), now=NOW)
    store.update(rec.phoneNumber, {"onboardingStep": "hardware", "status": "support_requested"})

    updated, _ = retry_onboarding(rec.id, store=store, channel=InMemoryChannel(), now=NOW)

    assert updated.onboardingStep == "hardware"
    assert updated.status == "support_requested"


def test_retry_unknown_id(store):
    with pytest.raises(MerchantNotFoundError):
        retry_onboarding("merchant-missing", store=store, channel=InMemoryChannel())
