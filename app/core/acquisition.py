"""
Merchant acquisition: sales adds a merchant by phone number and the
assistant opens the conversation with a personalized welcome, instead of
waiting for the merchant to pass the activation gate.
"""
from datetime import datetime
from typing import Optional, Tuple

from app.api.normalize import normalize_phone
from app.channel.models import SendResult
from app.core import messages
from app.core import state_machine as sm
from app.core.engine import new_merchant_id
from app.core.errors import DuplicateMerchantError, MerchantNotFoundError
from app.observability.logging import log
from app.store.models import (
    DIRECTION_OUTGOING,
    SOURCE_ACQUISITION,
    STATUS_ACQUIRING,
    STATUS_FAILED,
    STATUS_ONBOARDING,
    MerchantRecord,
)
from app.utils.time import iso, now_local

MIN_PHONE_DIGITS = 10


class InvalidContactError(ValueError):
    pass


def send_welcome(record: MerchantRecord, *, store, channel, now: Optional[datetime] = None) -> Tuple[MerchantRecord, SendResult]:
    """
    Send the personalized welcome and record the outcome on the merchant:
    history entry on success, lastError otherwise. A merchant still waiting
    for its first welcome moves to onboarding or failed; one already in the
    flow keeps its step and status.
    """
    now = now or now_local()
    text = messages.welcome_text(record.businessName or "")
    result = channel.send_text(record.phoneNumber, text)

    if result.success:
        history = list(record.conversationHistory)
        history.append({"message": text, "direction": DIRECTION_OUTGOING, "timestamp": iso(now)})
        fields = {"lastError": None, "conversationHistory": history}
        if record.status in (STATUS_ACQUIRING, STATUS_FAILED):
            fields["status"] = STATUS_ONBOARDING
        log("acquisition_sent", merchantId=record.id, phoneNumber=record.phoneNumber, messageId=result.messageId)
    else:
        fields = {"lastError": str(result.error)[:500]}
        if record.status in (STATUS_ACQUIRING, STATUS_FAILED):
            fields["status"] = STATUS_FAILED
        log("acquisition_failed", merchantId=record.id, phoneNumber=record.phoneNumber, error=str(result.error)[:300])

    updated = store.update(record.phoneNumber, fields)
    return updated, result


def acquire_merchant(
    merchant_name: str,
    contact_number: str,
    *,
    store,
    channel,
    company_name: Optional[str] = None,
    source: str = SOURCE_ACQUISITION,
    now: Optional[datetime] = None,
) -> Tuple[MerchantRecord, SendResult]:
    if not (merchant_name or "").strip() or not (contact_number or "").strip():
        raise InvalidContactError("Merchant name and contact number are required")

    phone = normalize_phone(contact_number)
    if len(phone) < MIN_PHONE_DIGITS:
        raise InvalidContactError("Invalid phone number format")

    now = now or now_local()
    with store.lock(phone):
        if store.find(phone) is not None:
            raise DuplicateMerchantError(phone)
        record = MerchantRecord(
            id=new_merchant_id(),
            phoneNumber=phone,
            createdAt=iso(now),
            businessName=merchant_name.strip(),
            companyName=(company_name or merchant_name).strip(),
            source=source or SOURCE_ACQUISITION,
            onboardingStep=sm.WELCOME,
            status=STATUS_ACQUIRING,
        )
        store.create(record)
        return send_welcome(record, store=store, channel=channel, now=now)


def retry_onboarding(merchant_id: str, *, store, channel, now: Optional[datetime] = None) -> Tuple[MerchantRecord, SendResult]:
    record = store.find_by_id(merchant_id)
    if record is None:
        raise MerchantNotFoundError(merchant_id)
    with store.lock(record.phoneNumber):
        record = store.find(record.phoneNumber) or record
        return send_welcome(record, store=store, channel=channel, now=now)
