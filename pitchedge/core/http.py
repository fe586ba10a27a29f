import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import httpx

from .config import settings
from .logger import get_logger

log = get_logger("http")

RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})

_clients: dict[str, httpx.AsyncClient] = {}


def _new_sportmonks_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.sportmonks_base,
        headers={"Authorization": settings.sportmonks_api_key, "Accept": "application/json"},
        timeout=httpx.Timeout(20.0, connect=5.0),
        limits=httpx.Limits(max_connections=16, max_keepalive_connections=8),
    )


def sportmonks_client() -> httpx.AsyncClient:
    """Shared client for the fixture/odds provider; recreated after close."""
    client = _clients.get("sportmonks")
    if client is None or client.is_closed:
        client = _new_sportmonks_client()
        _clients["sportmonks"] = client
    return client


async def init_http_clients() -> None:
    sportmonks_client()


async def close_http_clients() -> None:
    while _clients:
        name, client = _clients.popitem()
        if not client.is_closed:
            await client.aclose()
            log.debug("http_client_closed name=%s", name)


def retry_after_seconds(value: str | None, now: datetime | None = None) -> float | None:
    """Retry-After as delta-seconds or an HTTP date; None when absent or unparseable."""
    if not value:
        return None
    value = value.strip()
    if value.replace(".", "", 1).isdigit():
        return float(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - (now or datetime.now(timezone.utc))).total_seconds())


@dataclass(frozen=True)
class Backoff:
    base: float = 0.5
    cap: float = 8.0

    def delay(self, attempt: int, retry_after: float | None = None) -> float:
        wait = min(self.cap, self.base * (2**attempt))
        return wait if retry_after is None else max(wait, retry_after)


async def request_with_retries(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    params: dict | None = None,
    retries: int = 3,
    backoff_base: float = 0.5,
    backoff_max: float = 8.0,
    retry_statuses: frozenset[int] | set[int] | None = None,
    retry_exceptions: tuple[type[BaseException], ...] = (httpx.TransportError,),
    _sleep=asyncio.sleep,
    **kwargs,
) -> httpx.Response:
    """Send a request, retrying transport errors and retryable statuses.

    Once retries are spent the last response is returned as-is (the caller
    decides what a 5xx means) and the last transport error is re-raised.
    """
    backoff = Backoff(backoff_base, backoff_max)
    statuses = RETRY_STATUSES if retry_statuses is None else retry_statuses
    attempt = 0
    while True:
        try:
            response = await client.request(method, url, params=params, **kwargs)
        except retry_exceptions as exc:
            if attempt >= retries:
                raise
            delay = backoff.delay(attempt)
            log.warning("http_retry %s %s attempt=%s err=%s delay=%.2fs", method, url, attempt + 1, exc, delay)
        else:
            if response.status_code not in statuses or attempt >= retries:
                return response
            delay = backoff.delay(attempt, retry_after_seconds(response.headers.get("Retry-After")))
            log.warning(
                "http_retry %s %s attempt=%s status=%s delay=%.2fs",
                method,
                url,
                attempt + 1,
                response.status_code,
                delay,
            )
            await response.aclose()
        await _sleep(delay)
        attempt += 1
