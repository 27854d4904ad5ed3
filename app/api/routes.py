from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from app.api.auth import require_api_key
from app.api.normalize import normalize_green_api_notification, normalize_phone
from app.api.schemas import (
    SendRequest,
    SendResponse,
    TestMessageRequest,
    TestMessageResponse,
    WebhookAck,
    merchant_out,
)
from app.channel.factory import get_channel
from app.core.errors import OnboardingError
from app.core.orchestrator import handle_inbound
from app.observability.logging import log
from app.store.merchant_repo import get_store

router = APIRouter()

WEBHOOK_PATHS = (
    "/api/webhook/green-api",  # primary
    "/webhook/whatsapp",       # legacy alias
)


async def _read_payload(request: Request, payload: Any) -> dict:
    # Green API posts JSON, but some proxies forward an empty or non-JSON body.
    if payload is None:
        try:
            payload = await request.json()
        except Exception:
            payload = {}
    return payload if isinstance(payload, dict) else {}


async def _handle_webhook(request: Request, payload: Any) -> WebhookAck:
    payload = await _read_payload(request, payload)
    msg = normalize_green_api_notification(payload)
    if msg is None:
        body = payload.get("body") if isinstance(payload.get("body"), dict) else payload
        log("webhook_ignored", typeWebhook=body.get("typeWebhook") or "")
        return WebhookAck(message="Notification ignored")

    if not msg.phoneNumber or not msg.text:
        raise HTTPException(status_code=400, detail="Missing phone number or message text")

    try:
        outcome = await run_in_threadpool(
            handle_inbound, msg.phoneNumber, msg.text, store=get_store(), channel=get_channel()
        )
    except OnboardingError as e:
        raise HTTPException(status_code=502, detail=str(e))

    if outcome.reply is None:
        return WebhookAck(message="Message ignored")
    return WebhookAck(message="Message processed", reply=outcome.reply)


for _path in WEBHOOK_PATHS:
    @router.post(_path, response_model=WebhookAck, dependencies=[Depends(require_api_key)])
    async def green_api_webhook(request: Request, payload: Any = Body(None)):  # type: ignore
        return await _handle_webhook(request, payload)


@router.post("/api/test/message", response_model=TestMessageResponse, dependencies=[Depends(require_api_key)])
async def test_message(req: TestMessageRequest):
    """Simulator: runs the full flow against the store and returns the reply without sending it."""
    phone = normalize_phone(req.phoneNumber)
    if not phone or not req.message:
        raise HTTPException(status_code=400, detail="Phone number and message are required")
    try:
        outcome = await run_in_threadpool(handle_inbound, phone, req.message, store=get_store(), send=False)
    except OnboardingError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return TestMessageResponse(
        phoneNumber=outcome.phoneNumber,
        reply=outcome.reply,
        command=outcome.command,
        merchant=merchant_out(outcome.merchant) if outcome.merchant else None,
    )


@router.post("/api/send", response_model=SendResponse, dependencies=[Depends(require_api_key)])
async def send_message(req: SendRequest):
    phone = normalize_phone(req.phoneNumber)
    if not phone or not req.message:
        raise HTTPException(status_code=400, detail="Phone number and message are required")
    result = await run_in_threadpool(get_channel().send_text, phone, req.message)
    if not result.success:
        log("delivery_failed", phoneNumber=phone, mode="direct", error=str(result.error)[:300])
        raise HTTPException(status_code=502, detail=str(result.error))
    return SendResponse(success=True, messageId=result.messageId)


@router.get("/api/whatsapp/status", dependencies=[Depends(require_api_key)])
async def whatsapp_status():
    return await run_in_threadpool(get_channel().account_info)
