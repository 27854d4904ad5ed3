import time
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Optional

from rq import Retry

from app.api.normalize import normalize_phone
from app.channel.factory import get_channel
from app.core.activation import EngineConfig
from app.core.engine import CMD_DELETE_RECORD, CMD_ESCALATE, OnboardingEngine
from app.core.errors import DeliveryError
from app.llm.augmenter import get_augmenter
from app.observability.logging import log
from app.queue.jobs import send_message_job
from app.queue.rq_conn import get_queue
from app.settings import settings
from app.store.merchant_repo import changed_fields, get_store
from app.store.models import MerchantRecord
from app.utils.time import now_local

DELIVERY_RETRY = Retry(max=3, interval=[5, 15, 30])


@dataclass
class InboundOutcome:
    phoneNumber: str
    reply: Optional[str]
    merchant: Optional[MerchantRecord]
    command: str
    messageId: Optional[str] = None


@lru_cache(maxsize=1)
def get_engine() -> OnboardingEngine:
    return OnboardingEngine(EngineConfig.from_settings(settings), augmenter=get_augmenter())


def deliver(phone_number: str, text: str, channel=None) -> Optional[str]:
    """
    Send one outbound message according to DELIVERY_MODE.
    sync: returns the channel message id, raises DeliveryError on failure.
    rq: enqueues a retried job and returns None.
    """
    if settings.DELIVERY_MODE == "rq":
        q = get_queue()
        q.enqueue(send_message_job, phone_number, text, retry=DELIVERY_RETRY)
        log("delivery_enqueued", phoneNumber=phone_number, queue=settings.RQ_QUEUE_NAME)
        return None

    channel = channel or get_channel()
    result = channel.send_text(phone_number, text)
    if not result.success:
        log("delivery_failed", phoneNumber=phone_number, mode="sync", error=str(result.error)[:300])
        raise DeliveryError(phone_number, result.error)
    return result.messageId


def _persist(store, phone: str, before: Optional[MerchantRecord], result) -> None:
    if result.command == CMD_DELETE_RECORD:
        store.delete(phone)
        log("merchant_deleted", phoneNumber=phone, merchantId=before.id if before else "")
        return
    if result.record is None:
        return
    if before is None:
        store.create(result.record)
        log(
            "merchant_created",
            phoneNumber=phone,
            merchantId=result.record.id,
            source=result.record.source,
        )
        return
    fields = changed_fields(before, result.record)
    if fields:
        store.update(phone, fields)


def handle_inbound(
    phone_number: str,
    text: str,
    *,
    store=None,
    channel=None,
    engine: Optional[OnboardingEngine] = None,
    now: Optional[datetime] = None,
    send: bool = True,
) -> InboundOutcome:
    """
    Process one inbound message end to end:
    find -> engine -> persist (under the per-merchant lock) -> deliver.
    With send=False the reply is only returned (simulator).
    Store and channel failures propagate to the caller.
    """
    start_time = time.time()
    store = store or get_store()
    engine = engine or get_engine()
    now = now or now_local()
    phone = normalize_phone(phone_number)

    with store.lock(phone):
        before = store.find(phone)
        result = engine.process(phone, before, text, now)
        _persist(store, phone, before, result)

    if result.reply is None:
        log("inbound_ignored", phoneNumber=phone, text=text)
        return InboundOutcome(phoneNumber=phone, reply=None, merchant=None, command=result.command)

    if result.command == CMD_ESCALATE and result.record is not None:
        log(
            "merchant_escalated",
            phoneNumber=phone,
            merchantId=result.record.id,
            goLiveDate=result.record.goLiveDate,
            daysUntilGoLive=result.record.daysUntilGoLive,
        )

    message_id = deliver(phone, result.reply, channel=channel) if send else None

    merchant = None if result.command == CMD_DELETE_RECORD else result.record
    log(
        "inbound_processed",
        phoneNumber=phone,
        merchantId=result.record.id if result.record else "",
        step=merchant.onboardingStep if merchant else "",
        status=merchant.status if merchant else "",
        command=result.command,
        reply=result.reply,
        total_latency_ms=int((time.time() - start_time) * 1000),
    )
    return InboundOutcome(
        phoneNumber=phone,
        reply=result.reply,
        merchant=merchant,
        command=result.command,
        messageId=message_id,
    )
