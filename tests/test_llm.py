"""Tests for utils.llm — the Anthropic client is mocked."""

from unittest.mock import MagicMock, patch

import anthropic
import httpx
import pytest

from utils.llm import (
    InvalidCredentials, LLMError, LLMTimeout, MalformedResponse, RateLimited,
    call_llm, extract_json, get_client,
)


def _client(text, stop_reason="end_turn"):
    stream = MagicMock()
    stream.text_stream = iter([text])
    stream.get_final_message.return_value = MagicMock(stop_reason=stop_reason)
    client = MagicMock()
    client.messages.stream.return_value.__enter__.return_value = stream
    return client


def test_extract_json_bare():
    assert extract_json('{"tasks": []}') == {"tasks": []}


def test_extract_json_fenced():
    assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}


def test_extract_json_with_prose():
    assert extract_json('Here is the plan:\n{"a": [1, 2]}\nLet me know!') == {"a": [1, 2]}


def test_extract_json_array():
    assert extract_json("Result: [1, 2, 3]") == [1, 2, 3]


def test_extract_json_failure_keeps_raw():
    with pytest.raises(MalformedResponse) as exc:
        extract_json("no structure here")
    assert exc.value.raw == "no structure here"


def test_get_client_requires_key(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with pytest.raises(InvalidCredentials, match="ANTHROPIC_API_KEY"):
        get_client()


@patch("utils.llm.get_client")
def test_call_llm_json(mock_get_client):
    mock_get_client.return_value = _client('{"files": []}')
    assert call_llm("system", "user", response_format="json") == {"files": []}
    kwargs = mock_get_client.return_value.messages.stream.call_args[1]
    assert "valid JSON" in kwargs["system"]
    assert kwargs["messages"] == [{"role": "user", "content": "user"}]


@patch("utils.llm.get_client")
def test_call_llm_text(mock_get_client):
    mock_get_client.return_value = _client("plain answer")
    assert call_llm("system", "user") == "plain answer"


@patch("utils.llm.get_client")
def test_truncated_reply_is_malformed(mock_get_client):
    mock_get_client.return_value = _client('{"files": [', stop_reason="max_tokens")
    with pytest.raises(MalformedResponse, match="truncated"):
        call_llm("system", "user", response_format="json")


@patch("utils.llm.get_client")
def test_empty_reply_is_malformed(mock_get_client):
    mock_get_client.return_value = _client("   ")
    with pytest.raises(MalformedResponse, match="Empty"):
        call_llm("system", "user")


_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _status_error(cls, status):
    return cls(f"status {status}", response=httpx.Response(status, request=_REQUEST), body=None)


def _raising_client(*errors):
    client = MagicMock()
    client.messages.stream.side_effect = list(errors)
    return client


@patch("utils.llm.time.sleep")
@patch("utils.llm.get_client")
def test_rate_limit_retried_once_then_raised(mock_get_client, mock_sleep):
    error = _status_error(anthropic.RateLimitError, 429)
    mock_get_client.return_value = _raising_client(error, error)
    with pytest.raises(RateLimited):
        call_llm("system", "user")
    assert mock_get_client.return_value.messages.stream.call_count == 2
    mock_sleep.assert_called_once()


@patch("utils.llm.time.sleep")
@patch("utils.llm.get_client")
def test_rate_limit_then_success(mock_get_client, mock_sleep):
    client = _client("recovered")
    ok = client.messages.stream.return_value
    client.messages.stream.side_effect = [_status_error(anthropic.RateLimitError, 429), ok]
    mock_get_client.return_value = client
    assert call_llm("system", "user") == "recovered"


@pytest.mark.parametrize("cls,status", [
    (anthropic.AuthenticationError, 401),
    (anthropic.PermissionDeniedError, 403),
])
@patch("utils.llm.get_client")
def test_auth_errors_are_invalid_credentials(mock_get_client, cls, status):
    mock_get_client.return_value = _raising_client(_status_error(cls, status))
    with pytest.raises(InvalidCredentials):
        call_llm("system", "user")


@patch("utils.llm.get_client")
def test_timeout_is_llm_timeout(mock_get_client):
    mock_get_client.return_value = _raising_client(anthropic.APITimeoutError(request=_REQUEST))
    with pytest.raises(LLMTimeout, match="exceeded"):
        call_llm("system", "user")


@patch("utils.llm.get_client")
def test_other_api_errors_are_llm_errors(mock_get_client):
    mock_get_client.return_value = _raising_client(_status_error(anthropic.InternalServerError, 500))
    with pytest.raises(LLMError) as exc:
        call_llm("system", "user")
    assert type(exc.value) is LLMError


@patch("utils.llm.get_client")
def test_connection_error_is_llm_error(mock_get_client):
    mock_get_client.return_value = _raising_client(anthropic.APIConnectionError(request=_REQUEST))
    with pytest.raises(LLMError):
        call_llm("system", "user")
