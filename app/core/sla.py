"""
Go-live date parsing and SLA evaluation.

Dates are accepted only in day/month/year order (DD/MM/YYYY, one or two
digit day and month, four digit year). The day count is taken between
local midnights, so it is an exact integer and the ceiling is a no-op.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from app.core import state_machine as sm
from app.store.models import SLA_AT_RISK, SLA_WITHIN, STATUS_ESCALATED

ESCALATION_REASON = "Insufficient time to meet SLA"

DATE_RE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")


class InvalidDateError(ValueError):
    pass


@dataclass(frozen=True)
class SlaResult:
    goLiveDate: date
    daysUntilGoLive: int
    canMeetSLA: bool

    @property
    def slaStatus(self) -> str:
        return SLA_WITHIN if self.canMeetSLA else SLA_AT_RISK


def find_date(text: str) -> Optional[re.Match]:
    return DATE_RE.search(text or "")


def parse_go_live_date(match: re.Match) -> date:
    day, month, year = (int(g) for g in match.groups())
    try:
        return date(year, month, day)
    except ValueError as e:
        raise InvalidDateError(match.group(0)) from e


def days_until(go_live: date, now: datetime) -> int:
    return (go_live - now.date()).days


def evaluate_sla(go_live: date, now: datetime, threshold_days: int) -> SlaResult:
    days = days_until(go_live, now)
    return SlaResult(goLiveDate=go_live, daysUntilGoLive=days, canMeetSLA=days >= threshold_days)


def record_sla(record, sla: SlaResult, stamp: str) -> None:
    """
    Freeze the SLA snapshot on the record and move it on: continue when the
    date can be met, escalated (with time and reason) when it cannot.
    """
    record.goLiveDate = sla.goLiveDate.isoformat()
    record.slaStatus = sla.slaStatus
    record.daysUntilGoLive = sla.daysUntilGoLive
    if sla.canMeetSLA:
        record.onboardingStep = sm.CONTINUE
        return
    record.onboardingStep = sm.ESCALATED
    record.status = STATUS_ESCALATED
    record.escalatedAt = stamp
    record.escalationReason = ESCALATION_REASON
