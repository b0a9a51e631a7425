"""
remote.py – Minimal client for an OpenAI-compatible chat-completions API.

Only what the tutor needs: one ``POST /chat/completions`` returning the
first choice's text, and ``GET /models`` to verify a key.  HTTP failures
are mapped onto the :mod:`auslan_tutor.errors` taxonomy so callers never
see a raw ``requests`` exception.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from .config import RemoteConfig, is_valid_api_key
from .errors import AuthFailure, MalformedRemoteResponse, RateLimited, TransportFailure

logger = logging.getLogger(__name__)


class ChatClient:
    """Send chat requests with the configured credential.

    Parameters
    ----------
    config : RemoteConfig
        Endpoint, key and timeout.  The key is read on every call, so a
        settings change takes effect without rebuilding the client.
    session : requests.Session or None
        Injected for tests; a private session is created otherwise.
    """

    def __init__(
        self,
        config: RemoteConfig,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config
        self._session = session or requests.Session()

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    def complete(
        self,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int = 300,
        temperature: float = 0.3,
    ) -> str:
        """Return the assistant text for *messages*.

        Raises
        ------
        AuthFailure
            Missing/invalid key, or HTTP 401/403.
        RateLimited
            HTTP 429.
        TransportFailure
            Network errors and any other non-2xx status.
        MalformedRemoteResponse
            Body without ``choices[0].message.content``.
        """
        api_key = self.config.api_key
        if not is_valid_api_key(api_key):
            raise AuthFailure("No valid API key configured")

        url = f"{self.config.base_url.rstrip('/')}/chat/completions"
        body = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        try:
            response = self._session.post(
                url,
                headers=self._headers(api_key),
                json=body,
                timeout=self.config.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Chat request to %s failed: %s", url, exc)
            raise TransportFailure(str(exc)) from exc

        self._raise_for_status(response)

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise MalformedRemoteResponse(f"Unexpected response body: {exc}") from exc

        if not isinstance(content, str) or not content.strip():
            raise MalformedRemoteResponse("Empty response content")
        return content

    def verify_credential(self, api_key: str) -> bool:
        """True when the service accepts *api_key*."""
        if not is_valid_api_key(api_key):
            return False
        url = f"{self.config.base_url.rstrip('/')}/models"
        try:
            response = self._session.get(
                url, headers=self._headers(api_key), timeout=self.config.timeout
            )
        except requests.RequestException as exc:
            logger.warning("Credential check failed: %s", exc)
            return False
        return response.ok

    @staticmethod
    def _raise_for_status(response: requests.Response) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        if status in (401, 403):
            raise AuthFailure(f"Remote rejected credential (HTTP {status})")
        if status == 429:
            raise RateLimited("Remote rate limit exceeded (HTTP 429)")
        raise TransportFailure(f"Remote API error: HTTP {status}")
