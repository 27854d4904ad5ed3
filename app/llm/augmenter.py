import json
import logging
from typing import Any, Dict, List, Optional

from app.core import state_machine as sm
from app.llm.anthropic_client import create_message
from app.llm.openai_client import chat_completion
from app.llm.schemas import AugmenterReply
from app.settings import settings
from app.store.models import DIRECTION_INCOMING
from app.utils.time import format_ddmmyyyy, now_local

logger = logging.getLogger("onboarding_augmenter")

PROVIDERS = ("openai", "anthropic")

# ============================================================
# Prompt helpers
# ============================================================

_STEP_INSTRUCTIONS = {
    sm.WELCOME: (
        "GOAL: Get the customer's preferred go-live date\n"
        "- Ask for date in DD/MM/YYYY format (e.g., 25/12/2024)\n"
        "- The system calculates the SLA; never promise a timeline yourself"
    ),
    sm.CONTINUE: (
        "GOAL: The go-live date was accepted\n"
        "- Ask the customer to reply \"continue\" to start the onboarding steps"
    ),
    sm.DELIVERY: (
        "GOAL: Collect delivery address for hardware shipment\n"
        "- Ask for complete address: Street, City, State, ZIP, Country"
    ),
    sm.HARDWARE: (
        "GOAL: Choose installation type\n"
        "- Option 1: Self-installation (Free)\n"
        "- Option 2: Professional installation ($99)"
    ),
    sm.PRODUCTS: (
        "GOAL: Get product information\n"
        "- Request product list, description, or photos"
    ),
    sm.TRAINING: (
        "GOAL: Schedule training session\n"
        "- Options: Video call (recommended), Phone call, In-person\n"
        "- Ask for type, date (DD/MM/YYYY), and time preference (Morning/Afternoon/Evening)"
    ),
    sm.CONFIRMATION: (
        "GOAL: Final review and confirmation\n"
        "- Allow user to 'confirm' or request 'changes'"
    ),
    sm.ESCALATED: (
        "GOAL: The go-live date cannot be met; a specialist will call within 2 hours\n"
        "- Reassure the customer, do not restart the flow"
    ),
    sm.COMPLETED: "GOAL: Onboarding is complete; answer questions briefly",
}

_SYSTEM_TEMPLATE = """You are a professional WhatsApp onboarding assistant for a payment processing company. You guide merchants through a step-by-step onboarding process.

CURRENT CONTEXT:
- Date: {today}
- Customer Phone: {phone}
- Current Step: {step}
- Company: {company}
- Status: {status}

CURRENT STEP DETAILS:
{instructions}

DRAFT REPLY (from the onboarding system, keep its facts):
{draft}

PERSONALITY & TONE:
- Professional yet friendly, concise
- Use emojis appropriately (📅 📦 🔧 📋 🎓 ✅)

RULES:
1. Stay in character as a payment processing onboarding assistant
2. Never invent dates, prices or SLA outcomes that are not in the draft
3. Commands the customer can type: 'help', 'support', 'status', 'restart'

RESPONSE FORMAT:
Reply with a single JSON object and nothing else:
{{"message": "<text to send>", "stepUpdate": null, "dataExtracted": {{}}, "nextAction": null}}
- stepUpdate: one of {steps} or null
- dataExtracted: any of companyName, businessName, deliveryAddress, hardwareChoice (self|professional), productList, trainingInfo
- nextAction: one of help, support, status, restart, or null (only when the customer clearly asks for it)"""


def build_system_prompt(record, plan) -> str:
    step = record.onboardingStep or sm.WELCOME
    return _SYSTEM_TEMPLATE.format(
        today=format_ddmmyyyy(now_local()),
        phone=record.phoneNumber or "Unknown",
        step=step,
        company=record.companyName or "Not provided",
        status=record.status or "new",
        instructions=_STEP_INSTRUCTIONS.get(step, "Handle general inquiries and guide back to onboarding"),
        draft=(plan.reply or "").strip() or "(none)",
        steps=", ".join(sm.FORWARD_PATH),
    )


def build_history(record, latest: str) -> List[Dict[str, str]]:
    """
    Last N history entries as chat turns, ending with the latest inbound text.
    The record already holds the latest inbound entry; it is not repeated.
    Roles alternate and the list starts with a user turn.
    """
    window = (record.conversationHistory or [])[-settings.LLM_HISTORY_MESSAGES:]
    turns: List[Dict[str, str]] = []
    for m in window:
        role = "user" if m.get("direction") == DIRECTION_INCOMING else "assistant"
        content = (m.get("message") or "").strip()
        if not content:
            continue
        if turns and turns[-1]["role"] == role:
            turns[-1]["content"] += "\n" + content
        else:
            turns.append({"role": role, "content": content})
    while turns and turns[0]["role"] != "user":
        turns.pop(0)
    if not turns or turns[-1]["role"] != "user":
        turns.append({"role": "user", "content": latest})
    return turns


# ============================================================
# Output parsing
# ============================================================

def _extract_json(text: str) -> Optional[Dict[str, Any]]:
    """
    Parse the first JSON object in model output.
    Returns None when the model answered in plain text.
    """
    s = (text or "").strip()
    if not s:
        return None
    try:
        obj = json.loads(s)
        return obj if isinstance(obj, dict) else None
    except ValueError:
        pass
    start = s.find("{")
    if start == -1:
        return None
    try:
        obj, _ = json.JSONDecoder().raw_decode(s[start:])
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def parse_reply(raw: str) -> AugmenterReply:
    obj = _extract_json(raw)
    if obj is None:
        return AugmenterReply(message=(raw or "").strip())
    step = obj.get("stepUpdate")
    action = obj.get("nextAction")
    return AugmenterReply(
        message=str(obj.get("message") or "").strip(),
        stepUpdate=str(step) if step else None,
        dataExtracted=obj.get("dataExtracted") if isinstance(obj.get("dataExtracted"), dict) else {},
        nextAction=str(action) if action else None,
    )


# ============================================================
# Augmenter
# ============================================================

class LLMAugmenter:
    """Rewrites the engine's draft reply through an LLM provider."""

    def __init__(self, provider: str, *, temperature: float = 0.7, max_tokens: int = 500):
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown LLM provider {provider!r}")
        self.provider = provider
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _complete(self, system: str, turns: List[Dict[str, str]]) -> str:
        if self.provider == "anthropic":
            return create_message(system, turns, temperature=self.temperature, max_tokens=self.max_tokens)
        return chat_completion(system, turns, temperature=self.temperature, max_tokens=self.max_tokens)

    def augment(self, record, text: str, plan) -> AugmenterReply:
        system = build_system_prompt(record, plan)
        turns = build_history(record, text)
        raw = self._complete(system, turns)
        out = parse_reply(raw)
        if not out.message:
            # An empty rewrite keeps the engine's draft
            out.message = plan.reply or ""
        logger.info("augmented provider=%s step=%s", self.provider, record.onboardingStep)
        return out


def get_augmenter() -> Optional[LLMAugmenter]:
    if settings.LLM_PROVIDER in ("", "none", "fallback"):
        return None
    return LLMAugmenter(settings.LLM_PROVIDER)
