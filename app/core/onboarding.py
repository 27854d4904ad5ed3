"""
Onboarding started from the REST API: a back office system supplies the
merchant's number and go-live date up front, the SLA check runs at once and
the merchant receives the verdict on WhatsApp.
"""
import copy
from datetime import datetime
from typing import Optional, Tuple

from app.api.normalize import normalize_phone
from app.channel.models import SendResult
from app.core import messages
from app.core import state_machine as sm
from app.core.acquisition import MIN_PHONE_DIGITS, InvalidContactError
from app.core.engine import new_merchant_id
from app.core.errors import DuplicateMerchantError
from app.core.sla import InvalidDateError, SlaResult, evaluate_sla, find_date, parse_go_live_date, record_sla
from app.observability.logging import log
from app.store.merchant_repo import changed_fields
from app.store.models import DIRECTION_OUTGOING, SOURCE_API, STATUS_ONBOARDING, MerchantRecord
from app.utils.time import iso, now_local


def parse_request_date(text: str):
    match = find_date(text)
    if match is None or match.group(0) != (text or "").strip():
        raise InvalidDateError(text)
    return parse_go_live_date(match)


def start_onboarding(
    whatsapp_number: str,
    go_live_text: str,
    business_name: Optional[str] = None,
    *,
    store,
    channel,
    threshold_days: int,
    now: Optional[datetime] = None,
) -> Tuple[MerchantRecord, SlaResult, SendResult]:
    """
    Create (or pick up at the welcome step) the merchant for this number,
    freeze its SLA snapshot and send the result. The SLA fields are set
    once: a merchant that already has a go-live date raises
    DuplicateMerchantError.
    """
    if not (whatsapp_number or "").strip() or not (go_live_text or "").strip():
        raise InvalidContactError("WhatsApp number and go-live date are required")

    phone = normalize_phone(whatsapp_number)
    if len(phone) < MIN_PHONE_DIGITS:
        raise InvalidContactError("Invalid phone number format")

    go_live = parse_request_date(go_live_text)
    now = now or now_local()
    sla = evaluate_sla(go_live, now, threshold_days)
    name = (business_name or "").strip() or None

    with store.lock(phone):
        existing = store.find(phone)
        if existing is not None and (existing.goLiveDate or existing.onboardingStep != sm.WELCOME):
            raise DuplicateMerchantError(phone)

        if existing is None:
            record = MerchantRecord(
                id=new_merchant_id(),
                phoneNumber=phone,
                createdAt=iso(now),
                businessName=name,
                companyName=name or "Unknown",
                source=SOURCE_API,
                onboardingStep=sm.WELCOME,
                status=STATUS_ONBOARDING,
            )
            record_sla(record, sla, iso(now))
            store.create(record)
        else:
            record = copy.deepcopy(existing)
            if name:
                record.businessName = name
            record_sla(record, sla, iso(now))
            record = store.update(phone, changed_fields(existing, record))

        if not sla.canMeetSLA:
            log("merchant_escalated", merchantId=record.id, phoneNumber=phone, daysUntilGoLive=sla.daysUntilGoLive, via="api")

        text = messages.sla_result_text(sla.canMeetSLA, go_live, sla.daysUntilGoLive)
        result = channel.send_text(phone, text)
        if result.success:
            history = list(record.conversationHistory)
            history.append({"message": text, "direction": DIRECTION_OUTGOING, "timestamp": iso(now)})
            record = store.update(phone, {"conversationHistory": history, "lastError": None})
            log("onboarding_started", merchantId=record.id, phoneNumber=phone, slaStatus=sla.slaStatus, messageId=result.messageId)
        else:
            record = store.update(phone, {"lastError": str(result.error)[:500]})
            log("onboarding_start_send_failed", merchantId=record.id, phoneNumber=phone, error=str(result.error)[:300])

    return record, sla, result
