from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field

Direction = Literal["incoming", "outgoing"]


class HistoryEntry(BaseModel):
    message: str
    direction: Direction
    timestamp: str  # ISO-8601


class MerchantOut(BaseModel):
    id: str
    phoneNumber: str
    createdAt: str
    companyName: Optional[str] = None
    businessName: Optional[str] = None
    source: str
    onboardingStep: str
    status: str
    goLiveDate: Optional[str] = None
    slaStatus: Optional[str] = None
    daysUntilGoLive: Optional[int] = None
    escalatedAt: Optional[str] = None
    escalationReason: Optional[str] = None
    deliveryAddress: Optional[str] = None
    hardwareChoice: Optional[str] = None
    productList: Optional[str] = None
    trainingInfo: Optional[str] = None
    conversationHistory: List[HistoryEntry] = Field(default_factory=list)
    lastError: Optional[str] = None


class TestMessageRequest(BaseModel):
    phoneNumber: str
    message: str


class TestMessageResponse(BaseModel):
    success: bool = True
    phoneNumber: str
    reply: Optional[str] = None
    command: str = "none"
    merchant: Optional[MerchantOut] = None


class SendRequest(BaseModel):
    phoneNumber: str
    message: str


class SendResponse(BaseModel):
    success: bool
    messageId: Optional[str] = None
    error: Optional[Any] = None


class WebhookAck(BaseModel):
    success: bool = True
    message: str
    reply: Optional[str] = None


class MerchantList(BaseModel):
    total: int
    currentPage: int
    totalPages: int
    merchants: List[MerchantOut]


class AcquisitionRequest(BaseModel):
    merchantName: str = ""
    contactNumber: str = ""
    companyName: Optional[str] = None
    source: str = "acquisition"


class AcquisitionMerchantSummary(BaseModel):
    id: str
    merchantName: Optional[str] = None
    companyName: Optional[str] = None
    contactNumber: str
    status: str
    onboardingStep: str
    createdAt: str
    conversationHistory: int
    lastActivity: str


class DashboardStats(BaseModel):
    totalMerchants: int
    activeMerchants: int
    completedMerchants: int
    escalatedMerchants: int
    supportRequested: int
    atRiskMerchants: int
    completionRate: int
    byStep: Dict[str, int] = Field(default_factory=dict)


def merchant_out(record, history_limit: Optional[int] = None) -> MerchantOut:
    data = dict(record.__dict__)
    history = list(data.get("conversationHistory") or [])
    if history_limit is not None:
        history = history[-history_limit:] if history_limit > 0 else []
    data["conversationHistory"] = history
    return MerchantOut.model_validate(data)


class OnboardingStartRequest(BaseModel):
    whatsappNumber: str = ""
    goLiveDate: str = ""  # DD/MM/YYYY
    businessName: Optional[str] = None


class OnboardingStartResponse(BaseModel):
    success: bool
    merchantId: str
    canMeetSLA: bool
    daysUntilGoLive: int
    status: str
    slaStatus: str
    messageId: Optional[str] = None
    error: Optional[str] = None


class OnboardingStatus(BaseModel):
    merchantId: str
    businessName: Optional[str] = None
    onboardingStep: str
    status: str
    slaStatus: Optional[str] = None
    daysUntilGoLive: Optional[int] = None
    escalatedAt: Optional[str] = None
    escalationReason: Optional[str] = None
    progressPercentage: int = 0
