"""
backend/matchdesk/providers/http_client.py

Purpose:
    Per-provider HTTP client for the sport adapters: retries with exponential
    backoff on 429/5xx and network errors (honouring Retry-After), a circuit
    breaker per provider, and a JSON entry point that turns every failure
    into a ProviderError tagged with the adapter operation.

Dependencies:
    - httpx
    - matchdesk.providers.base
"""

import asyncio
import logging
import time
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from matchdesk.providers.base import ProviderError

logger = logging.getLogger("matchdesk.http_client")

_RETRYABLE_STATUSES = {429, 500, 502, 503, 504}
_NETWORK_ERRORS = (httpx.TimeoutException, httpx.ConnectError, httpx.RemoteProtocolError)
_MAX_BACKOFF_SECONDS = 60.0


class CircuitBreaker:
    """Opens after `failure_threshold` consecutive provider failures."""

    def __init__(self, name: str = "provider", failure_threshold: int = 3, recovery_timeout: int = 300):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self.is_open = False

    @property
    def state(self) -> str:
        if not self.is_open:
            return "closed"
        return "half-open" if self._recovered() else "open"

    def _recovered(self) -> bool:
        return bool(self.last_failure_time) and time.time() - self.last_failure_time > self.recovery_timeout

    def record_success(self) -> None:
        if self.is_open:
            logger.info("[%s] Circuit breaker closed", self.name)
        self.failure_count = 0
        self.is_open = False

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()
        if self.failure_count >= self.failure_threshold and not self.is_open:
            self.is_open = True
            logger.warning("[%s] Circuit breaker OPEN after %d failures", self.name, self.failure_count)

    def can_attempt(self) -> bool:
        if not self.is_open:
            return True
        if self._recovered():
            logger.info("[%s] Circuit breaker half-open, allowing a probe request", self.name)
            return True
        return False


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    """Seconds to wait from Retry-After or X-RateLimit-Retry-After, if numeric."""
    for header in ("retry-after", "x-ratelimit-retry-after"):
        value = response.headers.get(header)
        if value is None:
            continue
        try:
            return float(value)
        except (ValueError, TypeError):
            continue
    return None


def _safe_url(url: str) -> str:
    """Drop the query string (RapidAPI keys travel there for some hosts)."""
    parsed = urlparse(str(url))
    return f"{parsed.scheme}://{parsed.netloc}{parsed.path}"


class ResilientClient:
    """One httpx.AsyncClient per provider, with retry/backoff and a circuit breaker."""

    def __init__(
        self,
        name: str,
        timeout: float = 15.0,
        max_retries: int = 2,
        base_delay: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._name = name
        self._max_retries = max_retries
        self._base_delay = base_delay
        self.circuit = CircuitBreaker(name)

    @property
    def name(self) -> str:
        return self._name

    def _backoff(self, attempt: int, response: httpx.Response | None = None) -> float:
        delay = _parse_retry_after(response) if response is not None else None
        if delay is None:
            delay = self._base_delay * (2 ** attempt)
        return min(delay, _MAX_BACKOFF_SECONDS)

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send with retries; returns the last retryable response or re-raises the network error."""
        attempts = self._max_retries + 1
        last_exc: Optional[Exception] = None
        last_resp: Optional[httpx.Response] = None

        for attempt in range(attempts):
            try:
                resp = await self._client.request(method, url, **kwargs)
            except _NETWORK_ERRORS as exc:
                last_exc, last_resp = exc, None
                logger.warning(
                    "[%s] Network error on %s %s (attempt %d/%d): %s",
                    self._name, method, _safe_url(url), attempt + 1, attempts, exc,
                )
            else:
                if resp.status_code not in _RETRYABLE_STATUSES:
                    return resp
                last_resp = resp
                logger.warning(
                    "[%s] %s on %s %s (attempt %d/%d)",
                    self._name,
                    "Rate limited (429)" if resp.status_code == 429 else f"Server error {resp.status_code}",
                    method, _safe_url(url), attempt + 1, attempts,
                )

            if attempt < self._max_retries:
                await asyncio.sleep(self._backoff(attempt, last_resp))

        if last_resp is not None:
            logger.error(
                "[%s] Giving up on %s %s after %d attempts (last status %d)",
                self._name, method, _safe_url(url), attempts, last_resp.status_code,
            )
            return last_resp

        logger.error(
            "[%s] Giving up on %s %s after %d attempts: %s",
            self._name, method, _safe_url(url), attempts, last_exc,
        )
        raise last_exc  # type: ignore[misc]

    async def get_json(
        self,
        url: str,
        *,
        operation: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """GET a JSON document or raise ProviderError(provider, operation)."""
        if not self.circuit.can_attempt():
            raise ProviderError(self._name, operation, "circuit breaker open")

        kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            resp = await self.request("GET", url, **kwargs)
        except httpx.HTTPError as exc:
            self.circuit.record_failure()
            raise ProviderError(self._name, operation, f"{type(exc).__name__}: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            # 4xx other than 429 is a bad request on our side, not an outage.
            if resp.status_code >= 500 or resp.status_code == 429:
                self.circuit.record_failure()
            raise ProviderError(
                self._name,
                operation,
                f"HTTP {resp.status_code} from {_safe_url(url)}",
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise ProviderError(self._name, operation, "response body is not JSON") from exc
        self.circuit.record_success()
        return payload

    async def aclose(self) -> None:
        await self._client.aclose()
