from dataclasses import dataclass, field
from typing import List, Optional


# Exceptional / terminal conditions, tracked separately from the step
STATUS_NOT_STARTED = "not_started"
STATUS_ACTIVATED = "activated"
STATUS_ONBOARDING = "onboarding"
STATUS_SUPPORT_REQUESTED = "support_requested"
STATUS_ESCALATED = "escalated"
STATUS_COMPLETED = "completed"
STATUS_ACQUIRING = "acquiring"
STATUS_FAILED = "failed"

SLA_WITHIN = "within_sla"
SLA_AT_RISK = "at_risk"
SLA_ESCALATED = "escalated"

HARDWARE_SELF = "self"
HARDWARE_PROFESSIONAL = "professional"

SOURCE_WHATSAPP = "whatsapp"
SOURCE_ACQUISITION = "acquisition"
SOURCE_API = "api"

DIRECTION_INCOMING = "incoming"
DIRECTION_OUTGOING = "outgoing"


@dataclass
class MerchantRecord:
    # Identity (immutable after creation)
    id: str = ""
    phoneNumber: str = ""
    createdAt: str = ""  # ISO-8601

    companyName: Optional[str] = None
    businessName: Optional[str] = None
    source: str = SOURCE_WHATSAPP

    onboardingStep: str = "welcome"  # see app.core.state_machine
    status: str = STATUS_NOT_STARTED

    # --- SLA snapshot, frozen when the go-live date is accepted ---
    goLiveDate: Optional[str] = None  # ISO date (YYYY-MM-DD)
    slaStatus: Optional[str] = None
    daysUntilGoLive: Optional[int] = None
    escalatedAt: Optional[str] = None  # ISO-8601
    escalationReason: Optional[str] = None

    # Collected one per step
    deliveryAddress: Optional[str] = None
    hardwareChoice: Optional[str] = None
    productList: Optional[str] = None
    trainingInfo: Optional[str] = None

    # Append-only: {message, direction, timestamp}
    conversationHistory: List[dict] = field(default_factory=list)

    # Last outbound delivery failure (acquisition flow)
    lastError: Optional[str] = None

    def append_message(self, message: str, direction: str, timestamp: str) -> None:
        self.conversationHistory.append(
            {"message": message, "direction": direction, "timestamp": timestamp}
        )
