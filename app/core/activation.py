from dataclasses import dataclass, field
from typing import Tuple

from app.settings import DEFAULT_ACTIVATION_KEYWORDS

POLICY_IGNORE = "ignore"
POLICY_REPLY = "reply"


def _split_keywords(raw: str) -> Tuple[str, ...]:
    return tuple(k.strip().lower() for k in (raw or "").split(",") if k.strip())


@dataclass(frozen=True)
class EngineConfig:
    activation_keywords: Tuple[str, ...] = field(
        default_factory=lambda: _split_keywords(DEFAULT_ACTIVATION_KEYWORDS)
    )
    activation_code: str = "MERCHANT2024"
    sla_threshold_days: int = 5
    unknown_sender_policy: str = POLICY_IGNORE
    reject_past_dates: bool = False

    @classmethod
    def from_settings(cls, settings) -> "EngineConfig":
        policy = settings.UNKNOWN_SENDER_POLICY
        if policy not in (POLICY_IGNORE, POLICY_REPLY):
            raise ValueError(f"UNKNOWN_SENDER_POLICY must be 'ignore' or 'reply', got {policy!r}")
        return cls(
            activation_keywords=_split_keywords(settings.ACTIVATION_KEYWORDS),
            activation_code=settings.ACTIVATION_CODE,
            sla_threshold_days=int(settings.SLA_THRESHOLD_DAYS),
            unknown_sender_policy=policy,
            reject_past_dates=bool(settings.REJECT_PAST_GO_LIVE_DATES),
        )


def passes_activation_gate(text: str, config: EngineConfig) -> bool:
    """
    An unknown sender starts onboarding when the message contains any
    activation keyword, or is exactly the activation code (case-insensitive).
    """
    lowered = (text or "").lower()
    if any(k in lowered for k in config.activation_keywords):
        return True
    code = (config.activation_code or "").strip().lower()
    return bool(code) and lowered.strip() == code
