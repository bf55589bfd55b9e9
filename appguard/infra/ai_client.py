"""Text-completion transport for the AI semantic analyzer.

The scanner treats the language model as a black box with a single blocking
call, ``complete(prompt, max_tokens, timeout) -> str``. Provider and model
are configuration.

Classes
-------
TextCompletionClient : Protocol every transport implements
HttpCompletionClient : OpenAI-compatible chat-completions client over requests
NullCompletionClient : Stand-in used when AI analysis is disabled

Examples
--------
>>> client = HttpCompletionClient(
...     endpoint="https://api.openai.com/v1/chat/completions",
...     model="gpt-4",
...     api_key="sk-...",
... )
>>> client.complete("Say hello", max_tokens=10, timeout=5)  # doctest: +SKIP
'Hello!'
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

import requests

from appguard.core.exceptions import AiTransportError
from appguard.core.logging_config import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a security auditor reviewing third-party application packages "
    "for a multi-tenant marketplace. Answer precisely and only in the "
    "requested format."
)


class TextCompletionClient(Protocol):
    def complete(self, prompt: str, max_tokens: int, timeout: float) -> str: ...


class HttpCompletionClient:
    """OpenAI-compatible ``/chat/completions`` client.

    Timeouts, connection failures, non-2xx statuses and bodies without a
    completion all raise :class:`AiTransportError`.
    """

    def __init__(
        self,
        endpoint: str,
        model: str,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint
        self.model = model
        self.api_key = api_key
        self._session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def complete(self, prompt: str, max_tokens: int, timeout: float) -> str:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": 0,
        }
        try:
            response = self._session.post(
                self.endpoint, json=payload, headers=self._headers(), timeout=timeout
            )
        except requests.exceptions.Timeout as e:
            raise AiTransportError(f"completion timed out after {timeout}s", {"timeout_s": timeout}) from e
        except requests.exceptions.RequestException as e:
            raise AiTransportError(f"completion request failed: {e}") from e

        if response.status_code >= 400:
            raise AiTransportError(
                f"completion endpoint returned HTTP {response.status_code}",
                {"status_code": response.status_code, "body": response.text[:500]},
            )

        try:
            body = response.json()
            return body["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AiTransportError(f"unexpected completion payload: {e}") from e


class NullCompletionClient:
    """Client used when AI analysis is switched off; every call fails fast."""

    def complete(self, prompt: str, max_tokens: int, timeout: float) -> str:
        raise AiTransportError("AI analysis is disabled")


def build_completion_client(ai_config) -> TextCompletionClient:
    """Create the transport described by an :class:`~appguard.config.AiConfig`."""
    if not ai_config.enabled:
        return NullCompletionClient()
    logger.debug("Using completion endpoint %s (model %s)", ai_config.endpoint, ai_config.model)
    return HttpCompletionClient(
        endpoint=ai_config.endpoint,
        model=ai_config.model,
        api_key=ai_config.api_key,
    )


__all__ = [
    "TextCompletionClient",
    "HttpCompletionClient",
    "NullCompletionClient",
    "build_completion_client",
]
