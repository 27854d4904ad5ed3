from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from app.api.auth import require_api_key
from app.api.schemas import OnboardingStartRequest, OnboardingStartResponse, OnboardingStatus
from app.channel.factory import get_channel
from app.core import state_machine as sm
from app.core.acquisition import InvalidContactError
from app.core.errors import DuplicateMerchantError, OnboardingError
from app.core.onboarding import start_onboarding
from app.core.sla import InvalidDateError
from app.settings import settings
from app.store.merchant_repo import get_store

router = APIRouter(prefix="/api/onboarding", tags=["onboarding"], dependencies=[Depends(require_api_key)])


@router.post("/start", response_model=OnboardingStartResponse)
async def start(req: OnboardingStartRequest):
    """Run the SLA check for a known go-live date and tell the merchant the outcome."""
    try:
        record, sla, result = await run_in_threadpool(
            start_onboarding,
            req.whatsappNumber,
            req.goLiveDate,
            req.businessName,
            store=get_store(),
            channel=get_channel(),
            threshold_days=settings.SLA_THRESHOLD_DAYS,
        )
    except InvalidContactError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InvalidDateError:
        raise HTTPException(status_code=400, detail="Go-live date must be a valid DD/MM/YYYY date")
    except DuplicateMerchantError:
        raise HTTPException(status_code=409, detail="Onboarding already started for this number")
    except OnboardingError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return OnboardingStartResponse(
        success=result.success,
        merchantId=record.id,
        canMeetSLA=sla.canMeetSLA,
        daysUntilGoLive=sla.daysUntilGoLive,
        status=record.status,
        slaStatus=sla.slaStatus,
        messageId=result.messageId,
        error=None if result.success else str(result.error),
    )


@router.get("/status/{merchant_id}", response_model=OnboardingStatus)
def status(merchant_id: str):
    rec = get_store().find_by_id(merchant_id)
    if rec is None:
        raise HTTPException(status_code=404, detail="Merchant not found")
    return OnboardingStatus(
        merchantId=rec.id,
        businessName=rec.businessName,
        onboardingStep=rec.onboardingStep,
        status=rec.status,
        slaStatus=rec.slaStatus,
        daysUntilGoLive=rec.daysUntilGoLive,
        escalatedAt=rec.escalatedAt,
        escalationReason=rec.escalationReason,
        progressPercentage=sm.progress_percentage(rec.onboardingStep),
    )
