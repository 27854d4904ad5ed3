import pytest
from unittest.mock import patch

from app.core.engine import EngineResult
from app.llm.augmenter import LLMAugmenter, build_history, build_system_prompt, get_augmenter, parse_reply
from app.settings import settings
from app.store.models import MerchantRecord


def _record(history=None, step="delivery"):
    return MerchantRecord(
        id="merchant-1",
        phoneNumber="15551234567",
        createdAt="2024-01-01T10:00:00",
        companyName="Bean There",
        onboardingStep=step,
        status="activated",
        conversationHistory=history or [],
    )


def _msg(text, direction):
    return {"message": text, "direction": direction, "timestamp": "2024-01-01T10:00:00"}


def test_parse_reply_json():
    out = parse_reply('{"message": "Hi!", "stepUpdate": "hardware", "dataExtracted": {"deliveryAddress": "1 Main St"}}')
    assert out.message == "Hi!"
    assert out.stepUpdate == "hardware"
    assert out.dataExtracted == {"deliveryAddress": "1 Main St"}
    assert out.nextAction is None


def test_parse_reply_json_wrapped_in_prose():
    out = parse_reply('Sure! ```json\n{"message": "Hello", "nextAction": "support"}\n```')
    assert out.message == "Hello"
    assert out.nextAction == "support"


def test_parse_reply_plain_text():
    out = parse_reply("  Thanks, noted.  ")
    assert out.message == "Thanks, noted."
    assert out.stepUpdate is None
    assert out.dataExtracted == {}


def test_parse_reply_ignores_bad_data_block():
    out = parse_reply('{"message": "ok", "dataExtracted": ["not", "a", "dict"]}')
    assert out.dataExtracted == {}


def test_build_history_alternates_and_starts_with_user():
    rec = _record([
        _msg("welcome!", "outgoing"),
        _msg("hi", "incoming"),
        _msg("there", "incoming"),
        _msg("send date", "outgoing"),
        _msg("1 Main St", "incoming"),
    ])
    turns = build_history(rec, "1 Main St")
    assert turns == [
        {"role": "user", "content": "hi\nthere"},
        {"role": "assistant", "content": "send date"},
        {"role": "user", "content": "1 Main St"},
    ]


def test_build_history_window():
    history = [_msg(f"m{i}", "incoming" if i % 2 == 0 else "outgoing") for i in range(30)]
    history.append(_msg("latest", "incoming"))
    with patch.object(settings, "LLM_HISTORY_MESSAGES", 4):
        turns = build_history(_record(history), "latest")
    assert turns[0]["role"] == "user"
    assert turns[-1] == {"role": "user", "content": "latest"}
    assert len(turns) <= 4


def test_build_history_empty_record():
    assert build_history(_record([]), "hello") == [{"role": "user", "content": "hello"}]


def test_system_prompt_carries_context():
    plan = EngineResult(reply="📦 Step 1: address please", record=None)
    prompt = build_system_prompt(_record(), plan)
    assert "Current Step: delivery" in prompt
    assert "Company: Bean There" in prompt
    assert "📦 Step 1: address please" in prompt
    assert "Collect delivery address" in prompt


@patch("app.llm.augmenter.chat_completion")
def test_augment_openai(mock_chat):
    mock_chat.return_value = '{"message": "Got it!", "dataExtracted": {"deliveryAddress": "1 Main St"}}'
    plan = EngineResult(reply="draft", record=None)
    rec = _record([_msg("1 Main St", "incoming")])

    out = LLMAugmenter("openai").augment(rec, "1 Main St", plan)

    assert out.message == "Got it!"
    assert out.dataExtracted == {"deliveryAddress": "1 Main St"}
    system, turns = mock_chat.call_args.args
    assert "DRAFT REPLY" in system
    assert turns == [{"role": "user", "content": "1 Main St"}]


@patch("app.llm.augmenter.create_message")
def test_augment_anthropic_empty_reply_keeps_draft(mock_create):
    mock_create.return_value = '{"message": ""}'
    plan = EngineResult(reply="draft reply", record=None)
    out = LLMAugmenter("anthropic").augment(_record(), "hi", plan)
    assert out.message == "draft reply"
    assert mock_create.called


@patch("app.llm.augmenter.chat_completion")
def test_augment_propagates_provider_errors(mock_chat):
    mock_chat.side_effect = RuntimeError("chat completion failed")
    with pytest.raises(RuntimeError):
        LLMAugmenter("openai").augment(_record(), "hi", EngineResult(reply="d", record=None))


def test_get_augmenter_by_provider():
    with patch.object(settings, "LLM_PROVIDER", "none"):
        assert get_augmenter() is None
    with patch.object(settings, "LLM_PROVIDER", "openai"):
        assert get_augmenter().provider == "openai"
    with patch.object(settings, "LLM_PROVIDER", "gemini"):
        with pytest.raises(ValueError):
            get_augmenter()
