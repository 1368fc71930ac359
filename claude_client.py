"""
Claude API wrapper for the changelog generator

Sends one system prompt + user message to the Messages API and returns the
text of the reply. SDK exceptions are translated into CompletionError so
callers only deal with the classified kinds.
"""

import logging
from typing import Optional

import anthropic

from errors import CompletionError, CompletionErrorKind

logger = logging.getLogger(__name__)


RATE_LIMIT_ERROR_TYPES = ("rate_limit_error", "overloaded_error")
QUOTA_ERROR_TYPES = ("billing_error",)


def _error_type(exc: anthropic.APIStatusError) -> str:
    body = exc.body if isinstance(exc.body, dict) else {}
    error = body.get("error") if isinstance(body.get("error"), dict) else body
    return str(error.get("type") or "")


def classify_anthropic_error(exc: Exception) -> CompletionError:
    """
    Map an anthropic SDK exception onto the CompletionError taxonomy.

    Args:
        exc: Exception raised by the anthropic client

    Returns:
        CompletionError with the matching kind
    """
    if isinstance(exc, anthropic.APIConnectionError):
        # Also covers APITimeoutError
        return CompletionError(CompletionErrorKind.NETWORK_ERROR, str(exc))

    if isinstance(exc, anthropic.APIStatusError):
        status = exc.status_code
        error_type = _error_type(exc)
        message = str(exc)

        if status == 429 or status == 529 or error_type in RATE_LIMIT_ERROR_TYPES:
            return CompletionError(CompletionErrorKind.RATE_LIMITED, message, status)
        if status == 402 or error_type in QUOTA_ERROR_TYPES or "credit balance" in message.lower():
            return CompletionError(CompletionErrorKind.QUOTA_EXCEEDED, message, status)
        return CompletionError(CompletionErrorKind.OTHER_API_ERROR, message, status)

    return CompletionError(CompletionErrorKind.OTHER_API_ERROR, str(exc))


class ClaudeClient:
    """Minimal Messages API client."""

    def __init__(self, api_key: str, model: str, temperature: float = 0.0,
                 client: Optional[anthropic.Anthropic] = None):
        if not api_key and client is None:
            raise ValueError("ANTHROPIC_API_KEY must be provided")
        # SDK-level retries are disabled, the summarizer owns the retry policy
        self.client = client or anthropic.Anthropic(api_key=api_key, max_retries=0)
        self.model = model
        self.temperature = temperature

    def complete(self, system_prompt: str, user_content: str, max_tokens: int) -> str:
        """
        Run one completion.

        Returns:
            Text of the first content block ("" if the reply has none)

        Raises:
            CompletionError: on any API failure
        """
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=self.temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_content}],
            )
        except anthropic.APIError as e:
            raise classify_anthropic_error(e) from e

        for block in message.content or []:
            text = getattr(block, "text", None)
            if text:
                return text
        return ""
