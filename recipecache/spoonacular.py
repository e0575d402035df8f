"""
Low-level Spoonacular transport shared by every endpoint adapter.

- Paces requests with a ``pyrate_limiter`` limiter so two calls are never
  closer than ``min_interval`` seconds (Spoonacular's per-second ceiling),
  across all adapters using the client.
- Bounds each request with a timeout.
- Retries transport errors, 429 and 5xx a few times with ``tenacity``
  exponential backoff (base, 2*base, 4*base...). Other 4xx (402 = daily
  points exhausted) fail fast.

It never touches the cache or the quota ledger.
"""

import logging
import time

import requests
import tenacity
from django.conf import settings
from pyrate_limiter import Limiter, Rate

from .exceptions import UpstreamError, UpstreamTimeout

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.spoonacular.com"
RETRY_STATUSES = {429, 500, 502, 503, 504}

# bucket name shared by every adapter on one client
PACE_BUCKET = "spoonacular"
# poll step while waiting for a pacing slot
PACE_POLL = 0.025


def _pacing_limiter(min_interval: float) -> Limiter | None:
    if not min_interval or min_interval <= 0:
        return None
    interval_ms = max(1, int(round(min_interval * 1000)))
    return Limiter([Rate(1, interval_ms)], raise_when_fail=False, max_delay=None)


class SpoonacularClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        min_interval: float | None = None,
        retry_attempts: int | None = None,
        retry_base_delay: float | None = None,
        session: requests.Session | None = None,
        sleep=time.sleep,
    ):
        cfg = getattr(settings, "RECIPE_CACHE", {}) or {}
        self.api_key = api_key if api_key is not None else getattr(settings, "SPOONACULAR_API_KEY", None)
        self.base_url = (base_url or getattr(settings, "SPOONACULAR_BASE_URL", None) or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else cfg.get("REQUEST_TIMEOUT", 12)
        self.min_interval = min_interval if min_interval is not None else cfg.get("MIN_REQUEST_INTERVAL", 0.5)
        self.retry_attempts = max(1, retry_attempts if retry_attempts is not None else cfg.get("RETRY_ATTEMPTS", 3))
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None else cfg.get("RETRY_BASE_DELAY", 1.0)
        )
        self.session = session or requests.Session()
        self._sleep = sleep
        self._limiter = _pacing_limiter(self.min_interval)
        self.last_quota: dict = {}

        if not self.api_key:
            logger.warning("Spoonacular API key not set; upstream calls will fail over to cache.")

    def _wait_for_slot(self) -> None:
        if self._limiter is None:
            return
        while not self._limiter.try_acquire(PACE_BUCKET):
            self._sleep(PACE_POLL)

    def _retrying(self) -> tenacity.Retrying:
        return tenacity.Retrying(
            stop=tenacity.stop_after_attempt(self.retry_attempts),
            wait=tenacity.wait_exponential(multiplier=self.retry_base_delay),
            retry=tenacity.retry_if_exception_type(UpstreamError),
            sleep=self._sleep,
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def _remember_quota(self, resp) -> None:
        headers = getattr(resp, "headers", None) or {}
        quota = {
            "used": headers.get("X-API-Quota-Used"),
            "left": headers.get("X-API-Quota-Left"),
            "request": headers.get("X-API-Quota-Request"),
        }
        quota = {k: v for k, v in quota.items() if v is not None}
        if quota:
            self.last_quota = quota
            logger.debug("Spoonacular points: %s", quota)

    def _attempt(self, url: str, params: dict, endpoint: str):
        """One paced request; raises UpstreamError for anything worth retrying."""
        self._wait_for_slot()
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout as exc:
            raise UpstreamTimeout(f"{endpoint} timed out after {self.timeout}s", endpoint=endpoint) from exc
        except requests.RequestException as exc:
            raise UpstreamError(f"{endpoint} network error: {exc}", endpoint=endpoint) from exc

        if resp.status_code in RETRY_STATUSES:
            raise UpstreamError(
                f"{endpoint} returned {resp.status_code}: {(resp.text or '')[:200]}",
                endpoint=endpoint,
                status_code=resp.status_code,
            )
        return resp

    def get(self, path: str, params: dict | None = None, *, endpoint: str):
        """GET ``path`` and return decoded JSON, or raise ``UpstreamError``."""
        if not self.api_key:
            raise UpstreamError("Spoonacular API key not set", endpoint=endpoint)

        url = f"{self.base_url}/{path.lstrip('/')}"
        query = {**(params or {}), "apiKey": self.api_key}
        resp = self._retrying()(self._attempt, url, query, endpoint)

        self._remember_quota(resp)
        if resp.status_code != 200:
            raise UpstreamError(
                f"{endpoint} returned {resp.status_code}: {(resp.text or '')[:200]}",
                endpoint=endpoint,
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamError(f"{endpoint} returned invalid JSON", endpoint=endpoint) from exc
