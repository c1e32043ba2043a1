"""Shared outbound HTTP client for page fetches, with retry and backoff."""

import asyncio
import random
from typing import Optional

import httpx
import structlog

from config.campaign_config import CampaignConfig

logger = structlog.get_logger(__name__)

_client: Optional[httpx.AsyncClient] = None

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})
MAX_RETRY_AFTER_SECONDS = 30.0


def init_http_client() -> None:
    global _client
    _client = httpx.AsyncClient(
        timeout=httpx.Timeout(CampaignConfig.FETCH_TIMEOUT_SECONDS, connect=10),
        limits=httpx.Limits(max_connections=50, max_keepalive_connections=10),
        headers={"User-Agent": CampaignConfig.USER_AGENT},
    )


async def close_http_client() -> None:
    global _client
    if _client:
        await _client.aclose()
        _client = None


def get_http_client() -> httpx.AsyncClient:
    if _client is None:
        raise RuntimeError("HTTP client not initialized")
    return _client


async def http_request(
    method: str,
    url: str,
    *,
    max_attempts: int = 3,
    base_delay: float = 2.0,
    **kwargs,
) -> httpx.Response:
    """Send a request, retrying throttling, gateway errors and timeouts.

    Non-retryable statuses, and the last failed attempt, raise
    ``httpx.HTTPStatusError``.
    """
    client = get_http_client()

    for attempt in range(max_attempts):
        is_last = attempt == max_attempts - 1
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException:
            if is_last:
                raise
            delay = backoff_delay(attempt, base_delay)
            logger.warning("http_timeout_retry", url=url, attempt=attempt + 1, retry_in=round(delay, 2))
            await asyncio.sleep(delay)
            continue

        if response.is_success:
            return response
        if response.status_code not in RETRYABLE_STATUS_CODES or is_last:
            response.raise_for_status()

        delay = backoff_delay(attempt, base_delay, response)
        logger.warning(
            "http_retry",
            url=url,
            status=response.status_code,
            attempt=attempt + 1,
            retry_in=round(delay, 2),
        )
        await asyncio.sleep(delay)

    raise RuntimeError("Request failed after all retry attempts")


def backoff_delay(attempt: int, base_delay: float, response: Optional[httpx.Response] = None) -> float:
    """Exponential backoff with jitter; a numeric Retry-After header takes precedence."""
    retry_after = response.headers.get("retry-after") if response is not None else None
    if retry_after and retry_after.strip().isdigit():
        return min(float(retry_after), MAX_RETRY_AFTER_SECONDS)
    delay = base_delay * (2**attempt)
    return delay + random.uniform(0, delay * 0.25)
