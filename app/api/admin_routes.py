import math

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.auth import require_admin
from app.api.normalize import normalize_phone
from app.api.schemas import DashboardStats, MerchantList, MerchantOut, merchant_out
from app.core import state_machine as sm
from app.core.errors import StoreError
from app.observability.logging import log
from app.store.merchant_repo import get_store
from app.store.models import (
    SLA_AT_RISK,
    STATUS_COMPLETED,
    STATUS_ESCALATED,
    STATUS_SUPPORT_REQUESTED,
)

router = APIRouter(tags=["admin"], dependencies=[Depends(require_admin)])

LIST_HISTORY_LIMIT = 5


def _load(phone_number: str):
    phone = normalize_phone(phone_number)
    rec = get_store().find(phone)
    if rec is None:
        raise HTTPException(status_code=404, detail="Merchant not found")
    return rec


@router.get("/api/merchants", response_model=MerchantList)
def list_merchants(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100)):
    """Newest first. History is trimmed to the last few messages per merchant."""
    records = sorted(get_store().all(), key=lambda r: r.createdAt or "", reverse=True)
    total = len(records)
    start = (page - 1) * limit
    return MerchantList(
        total=total,
        currentPage=page,
        totalPages=math.ceil(total / limit) if total else 0,
        merchants=[merchant_out(r, history_limit=LIST_HISTORY_LIMIT) for r in records[start:start + limit]],
    )


@router.get("/api/merchants/{phone_number}", response_model=MerchantOut)
def get_merchant(phone_number: str):
    return merchant_out(_load(phone_number))


@router.delete("/api/merchants/{phone_number}")
def delete_merchant(phone_number: str):
    store = get_store()
    rec = _load(phone_number)
    try:
        with store.lock(rec.phoneNumber):
            deleted = store.delete(rec.phoneNumber)
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Merchant not found")
    log("merchant_deleted", phoneNumber=rec.phoneNumber, merchantId=rec.id, via="admin")
    return {"success": True, "message": "Merchant deleted successfully"}


@router.get("/api/merchants/{phone_number}/conversation")
def get_conversation(phone_number: str):
    rec = _load(phone_number)
    return {
        "phoneNumber": rec.phoneNumber,
        "merchantId": rec.id,
        "onboardingStep": rec.onboardingStep,
        "status": rec.status,
        "conversationHistory": rec.conversationHistory,
    }


@router.get("/admin/dashboard", response_model=DashboardStats)
def dashboard():
    records = get_store().all()
    total = len(records)
    completed = sum(1 for r in records if r.status == STATUS_COMPLETED)
    by_step = {}
    for r in records:
        by_step[r.onboardingStep] = by_step.get(r.onboardingStep, 0) + 1
    return DashboardStats(
        totalMerchants=total,
        activeMerchants=sum(1 for r in records if not sm.is_terminal(r.onboardingStep)),
        completedMerchants=completed,
        escalatedMerchants=sum(1 for r in records if r.status == STATUS_ESCALATED),
        supportRequested=sum(1 for r in records if r.status == STATUS_SUPPORT_REQUESTED),
        atRiskMerchants=sum(1 for r in records if r.slaStatus == SLA_AT_RISK),
        completionRate=round(completed / total * 100) if total else 0,
        byStep=by_step,
    )
