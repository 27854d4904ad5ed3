from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.api.auth import require_admin
from app.api.normalize import normalize_phone
from app.api.schemas import AcquisitionMerchantSummary, AcquisitionRequest, MerchantOut, merchant_out
from app.channel.factory import get_channel
from app.core.acquisition import InvalidContactError, acquire_merchant, retry_onboarding
from app.core.errors import DuplicateMerchantError, MerchantNotFoundError, OnboardingError
from app.store.merchant_repo import get_store
from app.store.models import SOURCE_ACQUISITION

router = APIRouter(prefix="/api/acquisition", tags=["acquisition"], dependencies=[Depends(require_admin)])


def _summary(rec) -> AcquisitionMerchantSummary:
    history = rec.conversationHistory or []
    return AcquisitionMerchantSummary(
        id=rec.id,
        merchantName=rec.businessName,
        companyName=rec.companyName,
        contactNumber=rec.phoneNumber,
        status=rec.status,
        onboardingStep=rec.onboardingStep,
        createdAt=rec.createdAt,
        conversationHistory=len(history),
        lastActivity=history[-1]["timestamp"] if history else rec.createdAt,
    )


def _send_outcome(record, result, ok_message: str):
    body = {
        "merchantId": record.id,
        "status": record.status,
        "merchant": merchant_out(record).model_dump(),
    }
    if not result.success:
        body.update({"success": False, "error": "Failed to send welcome message", "details": str(result.error)})
        return JSONResponse(status_code=500, content=body)
    body.update({"success": True, "message": ok_message, "messageId": result.messageId})
    return body


@router.post("/merchant")
async def add_merchant(req: AcquisitionRequest):
    """Register a merchant from sales and open the conversation with a personalized welcome."""
    store = get_store()
    try:
        record, result = await run_in_threadpool(
            acquire_merchant,
            req.merchantName,
            req.contactNumber,
            store=store,
            channel=get_channel(),
            company_name=req.companyName,
            source=req.source,
        )
    except InvalidContactError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateMerchantError as e:
        existing = store.find(e.phone_number)
        return JSONResponse(
            status_code=409,
            content={
                "success": False,
                "error": "Merchant with this phone number already exists",
                "existingMerchant": _summary(existing).model_dump() if existing else None,
            },
        )
    except OnboardingError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return _send_outcome(record, result, "Merchant added and welcome message sent")


@router.get("/merchants")
def list_acquired_merchants():
    records = [r for r in get_store().all() if r.source == SOURCE_ACQUISITION]
    records.sort(key=lambda r: r.createdAt or "", reverse=True)
    return {"success": True, "total": len(records), "merchants": [_summary(r) for r in records]}


@router.get("/merchant/{merchant_id}", response_model=MerchantOut)
def get_acquired_merchant(merchant_id: str):
    rec = get_store().find_by_id(merchant_id)
    if rec is None:
        raise HTTPException(status_code=404, detail="Merchant not found")
    return merchant_out(rec)


@router.post("/retry/{merchant_id}")
async def retry_merchant(merchant_id: str):
    try:
        record, result = await run_in_threadpool(
            retry_onboarding, merchant_id, store=get_store(), channel=get_channel()
        )
    except MerchantNotFoundError:
        raise HTTPException(status_code=404, detail="Merchant not found")
    except OnboardingError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return _send_outcome(record, result, "Welcome message resent")
