"""HTTP access for quote feeds built on a shared requests session."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Mapping, Optional

import requests

from .base import TransportError

LOGGER = logging.getLogger(__name__)


class WebAccess:
    """Thin GET-only wrapper around :class:`requests.Session` with retries."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        scheme: str = "https",
        timeout: float = 15.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.5,
        rate_limit_sleep: float = 60.0,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.session = session or requests.Session()
        self.scheme = scheme
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = max(0.0, backoff_seconds)
        self.rate_limit_sleep = max(0.0, rate_limit_sleep)
        self.headers: Dict[str, str] = dict(headers or {})

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def build_url(self, host: str, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
        request = requests.Request("GET", self._base_url(host, path), params=dict(params or {}))
        return request.prepare().url

    def get(self, host: str, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
        url = self._base_url(host, path)
        query = dict(params or {})

        last_exc: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.session.get(url, params=query, headers=self.headers, timeout=self.timeout)
                response.raise_for_status()
                return response.text
            except requests.HTTPError as exc:
                last_exc = exc
                resp = exc.response
                if resp is not None and resp.status_code == 429:
                    wait_seconds = self._retry_after_seconds(resp.headers)
                    self._handle_rate_limit(url, attempt, wait_seconds)
                    continue
                if resp is not None and 400 <= resp.status_code < 500:
                    break
                LOGGER.warning(
                    "HTTP error for %s (attempt %s/%s): %s",
                    url,
                    attempt,
                    self.max_retries,
                    exc,
                )
            except requests.RequestException as exc:
                last_exc = exc
                LOGGER.warning(
                    "Request failed for %s (attempt %s/%s): %s",
                    url,
                    attempt,
                    self.max_retries,
                    exc,
                )

            if attempt < self.max_retries and self.backoff_seconds:
                self._sleep(self.backoff_seconds * attempt)

        if last_exc:
            raise TransportError(f"Failed to fetch {url}: {last_exc}") from last_exc
        raise TransportError(f"Failed to fetch {url}")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _base_url(self, host: str, path: str) -> str:
        return f"{self.scheme}://{host.strip('/')}/{path.lstrip('/')}"

    def _handle_rate_limit(self, url: str, attempt: int, wait_seconds: Optional[float]) -> None:
        wait = self.rate_limit_sleep
        if wait_seconds is not None:
            wait = max(wait, wait_seconds)
        if attempt >= self.max_retries:
            return
        LOGGER.warning(
            "Rate limit for %s (attempt %s/%s); sleeping %.1f seconds",
            url,
            attempt,
            self.max_retries,
            wait,
        )
        self._sleep(wait)

    @staticmethod
    def _retry_after_seconds(headers: Mapping[str, str] | None) -> Optional[float]:
        if not headers:
            return None
        value = headers.get("Retry-After")
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None

    @staticmethod
    def _sleep(seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


__all__ = ["WebAccess"]
