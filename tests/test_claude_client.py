from types import SimpleNamespace

import anthropic
import httpx
import pytest

from claude_client import ClaudeClient, classify_anthropic_error
from errors import CompletionError, CompletionErrorKind


REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def status_error(cls, status, error_type, message="boom"):
    body = {"type": "error", "error": {"type": error_type, "message": message}}
    return cls(message, response=httpx.Response(status, request=REQUEST), body=body)


@pytest.mark.parametrize(
    "exc,kind",
    [
        (status_error(anthropic.RateLimitError, 429, "rate_limit_error"), CompletionErrorKind.RATE_LIMITED),
        (status_error(anthropic.InternalServerError, 529, "overloaded_error"), CompletionErrorKind.RATE_LIMITED),
        (status_error(anthropic.APIStatusError, 402, "billing_error"), CompletionErrorKind.QUOTA_EXCEEDED),
        (
            status_error(anthropic.BadRequestError, 400, "invalid_request_error",
                         "Your credit balance is too low to access the Anthropic API."),
            CompletionErrorKind.QUOTA_EXCEEDED,
        ),
        (status_error(anthropic.AuthenticationError, 401, "authentication_error"), CompletionErrorKind.OTHER_API_ERROR),
        (status_error(anthropic.BadRequestError, 400, "invalid_request_error"), CompletionErrorKind.OTHER_API_ERROR),
        (anthropic.APIConnectionError(request=REQUEST), CompletionErrorKind.NETWORK_ERROR),
        (anthropic.APITimeoutError(request=REQUEST), CompletionErrorKind.NETWORK_ERROR),
    ],
)
def test_classify_anthropic_error(exc, kind):
    error = classify_anthropic_error(exc)
    assert error.kind is kind
    assert error.recoverable is kind.recoverable


def test_only_rate_limit_and_quota_are_recoverable():
    recoverable = {kind for kind in CompletionErrorKind if kind.recoverable}
    assert recoverable == {CompletionErrorKind.RATE_LIMITED, CompletionErrorKind.QUOTA_EXCEEDED}


class FakeMessages:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        return self.result


def make_client(messages):
    return ClaudeClient(api_key="sk-ant-x", model="claude-test", client=SimpleNamespace(messages=messages))


def test_complete_returns_first_text_block():
    messages = FakeMessages(result=SimpleNamespace(content=[SimpleNamespace(type="text", text="[]")]))
    client = make_client(messages)

    assert client.complete("system", "user", 2000) == "[]"
    assert messages.kwargs["system"] == "system"
    assert messages.kwargs["max_tokens"] == 2000
    assert messages.kwargs["temperature"] == 0.0
    assert messages.kwargs["messages"] == [{"role": "user", "content": "user"}]


def test_complete_empty_reply():
    client = make_client(FakeMessages(result=SimpleNamespace(content=[])))
    assert client.complete("s", "u", 10) == ""


def test_complete_wraps_sdk_errors():
    error = status_error(anthropic.RateLimitError, 429, "rate_limit_error")
    client = make_client(FakeMessages(error=error))

    with pytest.raises(CompletionError) as excinfo:
        client.complete("s", "u", 10)

    assert excinfo.value.kind is CompletionErrorKind.RATE_LIMITED
    assert excinfo.value.status_code == 429
    assert excinfo.value.__cause__ is error
