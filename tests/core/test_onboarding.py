from datetime import datetime

import pytest
from unittest.mock import MagicMock

from app.channel.memory import InMemoryChannel
from app.channel.models import SendResult
from app.core import state_machine as sm
from app.core.acquisition import InvalidContactError, acquire_merchant
from app.core.errors import DuplicateMerchantError
from app.core.onboarding import start_onboarding
from app.core.sla import InvalidDateError
from app.store.merchant_repo import InMemoryMerchantStore

NOW = datetime(2024, 1, 1, 10, 0, 0)
PHONE = "447700900123"


@pytest.fixture
def store():
    return InMemoryMerchantStore()


def _start(store, channel=None, date="15/02/2024", number="+44 7700 900123", name="Bean There"):
    return start_onboarding(
        number, date, name, store=store, channel=channel or InMemoryChannel(), threshold_days=5, now=NOW
    )


def test_start_within_sla_creates_merchant(store):
    channel = InMemoryChannel()
    rec, sla, result = _start(store, channel)

    assert result.success
    assert sla.canMeetSLA
    assert rec.phoneNumber == PHONE
    assert rec.source == "api"
    assert rec.businessName == "Bean There"
    assert rec.goLiveDate == "2024-02-15"
    assert rec.daysUntilGoLive == 45
    assert rec.slaStatus == "within_sla"
    assert rec.onboardingStep == sm.CONTINUE
    assert rec.status == "onboarding"
    assert rec.escalatedAt is None
    assert channel.sent[0]["message"].startswith("✅ Great! We can meet your Go-Live date of 15/02/2024")
    assert store.find(PHONE).conversationHistory[0]["direction"] == "outgoing"


def test_start_sla_miss_escalates(store):
    rec, sla, _ = _start(store, date="03/01/2024")

    assert not sla.canMeetSLA
    assert rec.status == "escalated"
    assert rec.onboardingStep == sm.ESCALATED
    assert rec.slaStatus == "at_risk"
    assert rec.escalatedAt == NOW.isoformat()
    assert rec.escalationReason == "Insufficient time to meet SLA"


def test_start_picks_up_merchant_waiting_at_welcome(store):
    acquired, _ = acquire_merchant("Cafe", PHONE, store=store, channel=InMemoryChannel(), now=NOW)

    rec, _, _ = _start(store, name="")

    assert rec.id == acquired.id
    assert rec.source == "acquisition"
    assert rec.businessName == "Cafe"
    assert rec.onboardingStep == sm.CONTINUE
    assert len(rec.conversationHistory) == 2


def test_start_never_recomputes_sla(store):
    _start(store)
    with pytest.raises(DuplicateMerchantError):
        _start(store, date="03/01/2024")
    assert store.find(PHONE).slaStatus == "within_sla"


@pytest.mark.parametrize("number, date", [("", "15/02/2024"), ("12345", "15/02/2024"), (PHONE, "")])
def test_start_validates_contact(store, number, date):
    with pytest.raises(InvalidContactError):
        _start(store, number=number, date=date)
    assert store.all() == []


@pytest.mark.parametrize("date", ["2024-02-15", "31/02/2024", "around 15/02/2024"])
def test_start_validates_date(store, date):
    with pytest.raises(InvalidDateError):
        _start(store, date=date)
    assert store.all() == []


def test_start_send_failure_is_recorded(store):
    channel = MagicMock()
    channel.send_text.return_value = SendResult(success=False, error="HTTP 466: quota exceeded")

    rec, sla, result = _start(store, channel)

    assert not result.success
    assert rec.lastError == "HTTP 466: quota exceeded"
    assert rec.goLiveDate == "2024-02-15"
    assert rec.conversationHistory == []


@pytest.mark.parametrize("step, expected", [
    (sm.WELCOME, 0),
    (sm.DELIVERY, 29),
    (sm.CONFIRMATION, 86),
    (sm.COMPLETED, 100),
    (sm.ESCALATED, 0),
    ("bogus", 0),
])
def test_progress_percentage(step, expected):
    assert sm.progress_percentage(step) == expected
