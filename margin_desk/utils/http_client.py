"""
Shared async HTTP client with retry and timeout logic.

Used for operator notifications only; blockchain RPC traffic goes through web3.
"""
from __future__ import annotations

import asyncio
import logging

import httpx

log = logging.getLogger(__name__)

# Default timeouts (seconds)
_CONNECT_TIMEOUT = 10.0
_READ_TIMEOUT = 15.0

# Retry settings
_MAX_RETRIES = 3
_BACKOFF_DELAYS = [2, 5, 15]  # seconds between attempts


def _build_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(connect=_CONNECT_TIMEOUT, read=_READ_TIMEOUT, write=10.0, pool=5.0),
        follow_redirects=True,
        headers={"User-Agent": "margin-desk/0.1"},
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


async def post_json(url: str, payload: dict) -> dict:
    """
    POST a JSON payload and return the parsed JSON response.
    Retries up to _MAX_RETRIES times with backoff on transient errors.
    Raises httpx.HTTPStatusError for non-2xx responses other than 429.
    """
    client = await get_client()

    last_exc: Exception | None = None
    for attempt in range(_MAX_RETRIES):
        try:
            response = await client.post(url, json=payload)
            response.raise_for_status()
            return response.json()
        except (httpx.TimeoutException, httpx.NetworkError) as exc:
            last_exc = exc
            delay = _BACKOFF_DELAYS[min(attempt, len(_BACKOFF_DELAYS) - 1)]
            log.warning(
                "POST to %s failed (attempt %d/%d): %s, retrying in %ds",
                _redact(url), attempt + 1, _MAX_RETRIES, exc, delay,
            )
            await asyncio.sleep(delay)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 429:
                retry_after = int(exc.response.headers.get("Retry-After", "10"))
                log.warning("Rate-limited by %s, waiting %ds", _redact(url), retry_after)
                await asyncio.sleep(retry_after)
                last_exc = exc
            else:
                raise

    raise RuntimeError(f"All {_MAX_RETRIES} attempts to POST {_redact(url)} failed") from last_exc


def _redact(url: str) -> str:
    """Hide bot tokens embedded in Telegram API paths."""
    if "/bot" not in url:
        return url
    head, _, tail = url.partition("/bot")
    _, _, method = tail.partition("/")
    return f"{head}/bot***/{method}"
