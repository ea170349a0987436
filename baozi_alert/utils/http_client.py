"""
Shared async HTTP client with timeout and bounded retry logic.
"""
from __future__ import annotations

import asyncio
import logging
import os

import httpx

log = logging.getLogger(__name__)

# Default timeouts (seconds)
_CONNECT_TIMEOUT = 10.0
_READ_TIMEOUT = 15.0

_DEFAULT_RETRY_AFTER = 10  # seconds, when a 429 carries no usable Retry-After
_BACKOFF_DELAYS = [5, 15, 45]  # seconds between attempts


def _max_attempts() -> int:
    """Total attempts per request from HTTP_MAX_ATTEMPTS (default 1: a failed call waits for the next poll cycle)."""
    raw = os.getenv("HTTP_MAX_ATTEMPTS", "")
    try:
        return max(1, int(raw)) if raw else 1
    except ValueError:
        log.warning("Ignoring invalid HTTP_MAX_ATTEMPTS=%r, making a single attempt", raw)
        return 1


def _retry_after(response: httpx.Response) -> int:
    """Seconds to wait after a 429. Only the delta-seconds form of Retry-After is honoured."""
    try:
        return max(0, int(response.headers.get("Retry-After", _DEFAULT_RETRY_AFTER)))
    except ValueError:
        return _DEFAULT_RETRY_AFTER


def _build_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(connect=_CONNECT_TIMEOUT, read=_READ_TIMEOUT, write=10.0, pool=5.0),
        follow_redirects=True,
        headers={"User-Agent": "baozi-claim-alert/1.0"},
    )


# Module-level shared client (initialised lazily per async context)
_client: httpx.AsyncClient | None = None


async def get_client() -> httpx.AsyncClient:
    global _client
    if _client is None or _client.is_closed:
        _client = _build_client()
    return _client


async def close_client() -> None:
    global _client
    if _client and not _client.is_closed:
        await _client.aclose()
        _client = None


def _decode(response: httpx.Response) -> dict | list:
    # Discord webhooks answer 204 with no body
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        # Plain-text acknowledgements from generic webhooks
        return {"text": response.text}


async def _request(method: str, url: str, **kwargs) -> dict | list:
    """
    Perform *method* against *url* and return the decoded JSON body.

    Network errors, timeouts and HTTP 429 are retried up to HTTP_MAX_ATTEMPTS in
    total; the last failure is re-raised. Any other non-2xx response raises
    httpx.HTTPStatusError immediately.
    """
    client = await get_client()
    max_attempts = _max_attempts()

    attempt = 0
    while True:
        attempt += 1
        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return _decode(response)
        except (httpx.TimeoutException, httpx.NetworkError) as exc:
            if attempt >= max_attempts:
                raise
            delay = _BACKOFF_DELAYS[min(attempt - 1, len(_BACKOFF_DELAYS) - 1)]
            log.warning(
                "%s %s failed (attempt %d/%d): %s, retrying in %ds",
                method, url, attempt, max_attempts, exc, delay,
            )
            await asyncio.sleep(delay)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code != 429 or attempt >= max_attempts:
                raise
            retry_after = _retry_after(exc.response)
            log.warning("Rate-limited by %s, waiting %ds", url, retry_after)
            await asyncio.sleep(retry_after)


async def get_json(url: str, params: dict | None = None) -> dict | list:
    """GET *url* and return the parsed JSON response."""
    return await _request("GET", url, params=params)


async def post_json(url: str, payload: dict, headers: dict | None = None) -> dict | list:
    """POST a JSON *payload* and return the parsed JSON response (``{}`` when empty)."""
    return await _request("POST", url, json=payload, headers=headers)
