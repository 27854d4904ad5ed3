import httpx
import pytest
from unittest.mock import patch, MagicMock

from app.llm.anthropic_client import create_message
from app.settings import settings


def _resp(status, data=None, headers=None):
    r = MagicMock()
    r.status_code = status
    r.json.return_value = data
    r.text = str(data)
    r.headers = headers or {}
    return r


@pytest.fixture(autouse=True)
def anthropic_settings():
    with patch.object(settings, "ANTHROPIC_API_KEY", "test-key"), \
            patch.object(settings, "LLM_MAX_RETRIES", 2):
        yield


@patch("app.llm.anthropic_client._sleep_backoff")
@patch("app.llm.anthropic_client._client")
def test_create_message_retries_on_overload(mock_client, mock_backoff):
    mock_client.post.side_effect = [
        _resp(529, {"error": "overloaded"}, {"retry-after": "1"}),
        _resp(200, {"content": [{"type": "text", "text": "Hi there"}]}),
    ]

    assert create_message("sys", [{"role": "user", "content": "hello"}]) == "Hi there"
    mock_backoff.assert_called_once_with(0, retry_after=1.0)
    headers = mock_client.post.call_args.kwargs["headers"]
    assert headers["x-api-key"] == "test-key"
    assert headers["anthropic-version"] == "2023-06-01"
    assert mock_client.post.call_args.kwargs["json"]["system"] == "sys"


@patch("app.llm.anthropic_client._sleep_backoff")
@patch("app.llm.anthropic_client._client")
def test_create_message_non_retriable(mock_client, mock_backoff):
    mock_client.post.return_value = _resp(400, {"error": "bad request"})
    with pytest.raises(RuntimeError):
        create_message("sys", [{"role": "user", "content": "hello"}])
    assert mock_client.post.call_count == 1


def test_create_message_requires_key():
    with patch.object(settings, "ANTHROPIC_API_KEY", ""):
        with pytest.raises(RuntimeError, match="ANTHROPIC_API_KEY"):
            create_message("sys", [])


@patch("app.llm.anthropic_client._sleep_backoff")
@patch("app.llm.anthropic_client._client")
def test_create_message_max_retries_is_total_attempts(mock_client, mock_backoff):
    mock_client.post.return_value = _resp(529, {"error": "overloaded"})
    with pytest.raises(RuntimeError, match="529"):
        create_message("sys", [{"role": "user", "content": "hello"}])
    assert mock_client.post.call_count == 2
    mock_backoff.assert_called_once_with(0, retry_after=None)


@patch("app.llm.anthropic_client._sleep_backoff")
@patch("app.llm.anthropic_client._client")
def test_create_message_single_attempt_never_sleeps(mock_client, mock_backoff):
    mock_client.post.side_effect = httpx.ConnectError("refused")
    with patch.object(settings, "LLM_MAX_RETRIES", 1):
        with pytest.raises(RuntimeError, match="ConnectError"):
            create_message("sys", [{"role": "user", "content": "hello"}])
    assert mock_client.post.call_count == 1
    mock_backoff.assert_not_called()
