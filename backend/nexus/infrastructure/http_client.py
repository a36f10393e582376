"""Provider HTTP Client — httpx wrapper with timeout, bounded retry, and error mapping.

Invariants:
    - Transient failures (connect/read errors, 5xx, 429) retried only when the call
      is marked retryable; authorization-code exchanges and money-moving POSTs never are
    - Client errors (4xx except 429): immediate failure, no retry
    - Every failure surfaces as UpstreamProviderError carrying the provider's own
      message with configured secrets scrubbed out
    - Non-JSON bodies are failures (fail closed), never parsed optimistically

Design Decisions:
    - One shared httpx.AsyncClient per process (connection pooling), one thin
      ProviderHttpClient per third party (provider name + secrets to scrub)
    - Exponential backoff with ±25% jitter, Retry-After respected on 429
"""

import asyncio
import logging
import random
from collections.abc import Iterable
from typing import Any

import httpx

from nexus.config import Settings
from nexus.core.errors import UpstreamProviderError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


def build_async_client(settings: Settings) -> httpx.AsyncClient:
    """Shared AsyncClient with the configured timeout."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        headers={"User-Agent": "nexus-broker/1.0", "Accept": "application/json"},
    )


def scrub(text: str, secrets: Iterable[str]) -> str:
    """Replace every non-empty secret occurrence with ***."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    return text


def extract_error_message(body: Any) -> str | None:
    """Pull a human-readable message out of the usual provider error shapes."""
    if isinstance(body, list) and body:
        return extract_error_message(body[0])
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        message = error.get("message") or error.get("error_user_msg")
        if message:
            return str(message)
    if body.get("error_description"):
        return str(body["error_description"])
    if isinstance(error, str):
        return error
    if body.get("status") == "ERROR" and body.get("message"):
        return str(body["message"])
    return None


class ProviderHttpClient:
    """Per-provider facade over the shared AsyncClient."""

    def __init__(
        self,
        provider: str,
        client: httpx.AsyncClient,
        *,
        secrets: Iterable[str] = (),
        max_retries: int = 2,
        base_delay_ms: int = 250,
        max_delay_ms: int = 4_000,
    ):
        self.provider = provider
        self.client = client
        self.secrets = tuple(s for s in secrets if s)
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    @classmethod
    def from_settings(
        cls,
        provider: str,
        client: httpx.AsyncClient,
        settings: Settings,
        secrets: Iterable[str] = (),
    ) -> "ProviderHttpClient":
        return cls(
            provider,
            client,
            secrets=secrets,
            max_retries=settings.http_max_retries,
            base_delay_ms=settings.http_base_delay_ms,
            max_delay_ms=settings.http_max_delay_ms,
        )

    async def get_json(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
        retry: bool = True,
    ) -> Any:
        return await self.request_json(
            "GET", url, params=params, headers=headers, retry=retry,
        )

    async def post_json(
        self,
        url: str,
        *,
        params: dict | None = None,
        data: dict | None = None,
        json: Any = None,
        headers: dict | None = None,
        retry: bool = False,
    ) -> Any:
        return await self.request_json(
            "POST", url, params=params, data=data, json=json,
            headers=headers, retry=retry,
        )

    async def request_json(
        self, method: str, url: str, *, retry: bool, **kwargs,
    ) -> Any:
        """Send request; return decoded JSON or raise UpstreamProviderError."""
        attempts = self.max_retries + 1 if retry else 1
        for attempt in range(attempts):
            last = attempt == attempts - 1
            try:
                response = await self.client.request(method, url, **kwargs)
            except httpx.TimeoutException:
                if last:
                    raise self._error("request timed out")
                await self._sleep_before_retry(attempt, None, "timeout")
                continue
            except httpx.HTTPError as e:
                if last:
                    raise self._error(f"connection failed ({type(e).__name__})")
                await self._sleep_before_retry(attempt, None, type(e).__name__)
                continue

            if response.status_code in _RETRYABLE_STATUS and not last:
                await self._sleep_before_retry(
                    attempt, response, f"HTTP {response.status_code}",
                )
                continue
            return self._decode(response)

    def _decode(self, response: httpx.Response) -> Any:
        try:
            body = response.json()
        except ValueError:
            logger.warning(
                f"{self.provider} returned a non-JSON body",
                extra={"provider": self.provider, "status_code": response.status_code},
            )
            raise self._error(
                "unexpected non-JSON response", response.status_code,
            )
        if response.is_error:
            message = extract_error_message(body) or f"HTTP {response.status_code}"
            raise self._error(message, response.status_code)
        return body

    def _error(self, message: str, status_code: int | None = None) -> UpstreamProviderError:
        return UpstreamProviderError(
            self.provider, scrub(message, self.secrets), status_code,
        )

    async def _sleep_before_retry(
        self, attempt: int, response: httpx.Response | None, reason: str,
    ) -> None:
        delay = self._retry_after_ms(response) or self._backoff(attempt)
        logger.warning(
            f"{self.provider} transient failure ({reason}), retry after {delay}ms",
            extra={"provider": self.provider, "attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311

    def _retry_after_ms(self, response: httpx.Response | None) -> int | None:
        if response is None:
            return None
        value = response.headers.get("retry-after")
        if value and value.isdigit():
            return min(int(value) * 1000, self.max_delay_ms)
        return None


# Shared client (initialized on startup)
http_client: httpx.AsyncClient | None = None


def init_http_client(settings: Settings) -> httpx.AsyncClient:
    global http_client
    http_client = build_async_client(settings)
    return http_client


async def close_http_client() -> None:
    global http_client
    if http_client is not None:
        await http_client.aclose()
        http_client = None


def get_http_client() -> httpx.AsyncClient:
    """FastAPI dependency for the shared outbound client."""
    if http_client is None:
        raise RuntimeError("HTTP client not initialized")
    return http_client
