import pytest
from types import SimpleNamespace

from app.core.activation import EngineConfig, passes_activation_gate


def _settings(**overrides):
    base = dict(
        UNKNOWN_SENDER_POLICY="ignore",
        ACTIVATION_KEYWORDS="onboarding, Go-Live ,",
        ACTIVATION_CODE="SHOP99",
        SLA_THRESHOLD_DAYS=7,
        REJECT_PAST_GO_LIVE_DATES=True,
    )
    base.update(overrides)
    return SimpleNamespace(**base)


def test_from_settings_parses_keywords():
    cfg = EngineConfig.from_settings(_settings())
    assert cfg.activation_keywords == ("onboarding", "go-live")
    assert cfg.activation_code == "SHOP99"
    assert cfg.sla_threshold_days == 7
    assert cfg.reject_past_dates is True


def test_from_settings_rejects_unknown_policy():
    with pytest.raises(ValueError):
        EngineConfig.from_settings(_settings(UNKNOWN_SENDER_POLICY="shout"))


@pytest.mark.parametrize("text, expected", [
    ("Start ONBOARDING now", True),
    ("when is go-live?", True),
    ("shop99", True),
    (" SHOP99 ", True),
    ("my code is shop99", False),
    ("hello", False),
    ("", False),
])
def test_activation_gate(text, expected):
    cfg = EngineConfig.from_settings(_settings())
    assert passes_activation_gate(text, cfg) is expected


def test_default_keywords():
    cfg = EngineConfig()
    assert passes_activation_gate("I want to set up my store", cfg)
    assert passes_activation_gate("MERCHANT2024", cfg)
