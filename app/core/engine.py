"""
Onboarding Engine
-----------------
Pure dialogue engine: given the merchant record (or None for an unknown
sender), the inbound text and the current time, it decides the reply, the
updated record and a side-effect command for the caller. It never performs
I/O on the store or the channel; the orchestrator does that.

Order of evaluation:
1) no record -> activation gate
2) global commands (help / support / status / restart), any step
3) step transition table
4) optional response augmenter, whose overrides are validated here
"""
import copy
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.core import messages
from app.core import state_machine as sm
from app.core.activation import POLICY_REPLY, EngineConfig, passes_activation_gate
from app.core.sla import InvalidDateError, evaluate_sla, find_date, parse_go_live_date, record_sla
from app.llm.schemas import AugmenterReply
from app.observability.logging import log
from app.store.models import (
    DIRECTION_INCOMING,
    DIRECTION_OUTGOING,
    HARDWARE_PROFESSIONAL,
    HARDWARE_SELF,
    SOURCE_WHATSAPP,
    STATUS_ACTIVATED,
    STATUS_COMPLETED,
    STATUS_SUPPORT_REQUESTED,
    MerchantRecord,
)
from app.utils.time import iso

CMD_NONE = "none"
CMD_DELETE_RECORD = "delete_record"
CMD_ESCALATE = "escalate"

GLOBAL_COMMANDS = ("help", "support", "status", "restart")

# Fields an augmenter may fill in. SLA fields, step and status stay engine-owned.
AUGMENTABLE_FIELDS = {
    "companyName",
    "businessName",
    "deliveryAddress",
    "hardwareChoice",
    "productList",
    "trainingInfo",
}

MIN_ADDRESS_LEN = 10
MIN_FREE_TEXT_LEN = 5


def new_merchant_id() -> str:
    return f"merchant-{uuid.uuid4().hex[:12]}"


@dataclass
class EngineResult:
    reply: Optional[str]
    record: Optional[MerchantRecord]
    command: str = CMD_NONE


class OnboardingEngine:
    def __init__(self, config: EngineConfig, augmenter=None, id_factory=new_merchant_id):
        self.config = config
        self.augmenter = augmenter
        self.id_factory = id_factory

    def process(
        self,
        phone_number: str,
        record: Optional[MerchantRecord],
        text: str,
        now: datetime,
    ) -> EngineResult:
        text = text or ""
        stamp = iso(now)

        if record is None:
            return self._activate(phone_number, text, stamp)

        rec = copy.deepcopy(record)
        rec.append_message(text, DIRECTION_INCOMING, stamp)

        command = text.lower().strip()
        if command in GLOBAL_COMMANDS:
            result = self._run_command(rec, command)
        else:
            baseline = copy.deepcopy(rec)
            result = self._apply_table(rec, text, now)
            if self.augmenter is not None:
                result = self._augment(baseline, text, result)

        if result.reply and result.record is not None:
            result.record.append_message(result.reply, DIRECTION_OUTGOING, stamp)
        return result

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def _activate(self, phone_number: str, text: str, stamp: str) -> EngineResult:
        if not passes_activation_gate(text, self.config):
            if self.config.unknown_sender_policy == POLICY_REPLY:
                return EngineResult(reply=messages.NOT_UNDERSTOOD_TEXT, record=None)
            return EngineResult(reply=None, record=None)

        rec = MerchantRecord(
            id=self.id_factory(),
            phoneNumber=phone_number,
            createdAt=stamp,
            companyName="Unknown",
            source=SOURCE_WHATSAPP,
            onboardingStep=sm.WELCOME,
            status=STATUS_ACTIVATED,
        )
        rec.append_message(text, DIRECTION_INCOMING, stamp)
        reply = messages.welcome_text()
        rec.append_message(reply, DIRECTION_OUTGOING, stamp)
        return EngineResult(reply=reply, record=rec)

    # ------------------------------------------------------------------
    # Global commands
    # ------------------------------------------------------------------

    def _run_command(self, rec: MerchantRecord, command: str) -> EngineResult:
        if command == "help":
            return EngineResult(messages.HELP_TEXT, rec)
        if command == "support":
            rec.status = STATUS_SUPPORT_REQUESTED
            return EngineResult(messages.support_text(rec.id), rec)
        if command == "status":
            return EngineResult(messages.status_text(rec), rec)
        # restart
        return EngineResult(messages.RESET_TEXT, rec, CMD_DELETE_RECORD)

    # ------------------------------------------------------------------
    # Transition table
    # ------------------------------------------------------------------

    def _apply_table(self, rec: MerchantRecord, raw: str, now: datetime) -> EngineResult:
        text = raw.lower().strip()
        step = rec.onboardingStep

        if step == sm.WELCOME:
            match = find_date(raw)
            if match:
                return self._accept_go_live(rec, match, now)

        elif step == sm.CONTINUE and text == "continue":
            rec.onboardingStep = sm.DELIVERY
            return EngineResult(messages.step_text(sm.DELIVERY), rec)

        elif step == sm.DELIVERY and len(raw) > MIN_ADDRESS_LEN:
            rec.deliveryAddress = raw
            rec.onboardingStep = sm.HARDWARE
            return EngineResult(messages.step_text(sm.HARDWARE), rec)

        elif step == sm.HARDWARE and text in ("1", "2"):
            rec.hardwareChoice = HARDWARE_SELF if text == "1" else HARDWARE_PROFESSIONAL
            rec.onboardingStep = sm.PRODUCTS
            return EngineResult(messages.step_text(sm.PRODUCTS), rec)

        elif step == sm.PRODUCTS and len(raw) > MIN_FREE_TEXT_LEN:
            rec.productList = raw
            rec.onboardingStep = sm.TRAINING
            return EngineResult(messages.step_text(sm.TRAINING), rec)

        elif step == sm.TRAINING and len(raw) > MIN_FREE_TEXT_LEN:
            rec.trainingInfo = raw
            rec.onboardingStep = sm.CONFIRMATION
            return EngineResult(messages.step_text(sm.CONFIRMATION), rec)

        elif step == sm.CONFIRMATION and text == "confirm":
            rec.status = STATUS_COMPLETED
            rec.onboardingStep = sm.COMPLETED
            return EngineResult(messages.completion_text(rec), rec)

        elif step == sm.CONFIRMATION and text == "changes":
            rec.onboardingStep = sm.DELIVERY
            return EngineResult(messages.changes_text(), rec)

        return EngineResult(messages.FALLBACK_TEXT, rec)

    def _accept_go_live(self, rec: MerchantRecord, match, now: datetime) -> EngineResult:
        try:
            go_live = parse_go_live_date(match)
        except InvalidDateError:
            return EngineResult(messages.INVALID_DATE_TEXT, rec)

        sla = evaluate_sla(go_live, now, self.config.sla_threshold_days)
        if self.config.reject_past_dates and sla.daysUntilGoLive < 0:
            return EngineResult(messages.PAST_DATE_TEXT, rec)

        record_sla(rec, sla, iso(now))
        reply = messages.sla_result_text(sla.canMeetSLA, go_live, sla.daysUntilGoLive)
        return EngineResult(reply, rec, CMD_NONE if sla.canMeetSLA else CMD_ESCALATE)

    # ------------------------------------------------------------------
    # Response augmenter
    # ------------------------------------------------------------------

    def _augment(self, baseline: MerchantRecord, text: str, planned: EngineResult) -> EngineResult:
        try:
            out = self.augmenter.augment(copy.deepcopy(baseline), text, planned)
            if not isinstance(out, AugmenterReply):
                out = AugmenterReply.model_validate(out)
        except Exception as e:
            log(
                "augmenter_failed",
                merchantId=baseline.id,
                step=baseline.onboardingStep,
                errorType=type(e).__name__,
                error=str(e)[:300],
            )
            return EngineResult(messages.AUGMENTER_FALLBACK_TEXT, baseline)

        rec = planned.record
        reply = out.message.strip() or planned.reply

        if out.stepUpdate:
            self._apply_step_update(baseline, planned, out.stepUpdate)

        for key, value in (out.dataExtracted or {}).items():
            if not self._accepts_field(key, value):
                log("augmenter_rejected_field", merchantId=rec.id, field=key)
                continue
            setattr(rec, key, value)

        if out.nextAction:
            action = out.nextAction.lower().strip()
            # Escalation and terminal steps stay engine-owned
            if action in GLOBAL_COMMANDS and planned.command == CMD_NONE and not sm.is_terminal(rec.onboardingStep):
                return self._run_command(rec, action)
            log("augmenter_rejected_field", merchantId=rec.id, field="nextAction", proposedAction=action[:40])

        return EngineResult(reply, rec, planned.command)

    def _apply_step_update(self, baseline: MerchantRecord, planned: EngineResult, target: str) -> None:
        rec = planned.record
        planned_step = rec.onboardingStep
        allowed = (
            target in sm.ALL_STEPS
            and not sm.is_terminal(target)
            and not sm.is_terminal(planned_step)
            and planned.command == CMD_NONE
            # Leaving welcome requires an accepted go-live date (SLA authority)
            and planned_step != sm.WELCOME
            and (
                target == planned_step
                or sm.is_forward_move(planned_step, target)
                or (baseline.onboardingStep == sm.CONFIRMATION and target == sm.DELIVERY)
            )
        )
        if not allowed:
            log(
                "augmenter_rejected_field",
                merchantId=rec.id,
                field="stepUpdate",
                plannedStep=planned_step,
                proposedStep=str(target)[:40],
            )
            return
        rec.onboardingStep = target

    @staticmethod
    def _accepts_field(key: str, value) -> bool:
        if key not in AUGMENTABLE_FIELDS:
            return False
        if key == "hardwareChoice":
            return value in (HARDWARE_SELF, HARDWARE_PROFESSIONAL)
        return isinstance(value, str) and bool(value.strip())
