# launchpad/http/client.py
from __future__ import annotations
import asyncio
import logging
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from launchpad import __version__

logger = logging.getLogger(__name__)

__all__ = ["HTTPError", "USER_AGENT", "request"]



USER_AGENT = f"launchpad/{__version__}"



class HTTPError(Exception):
    def __init__(self, status: int, body: str):
        super().__init__(f"HTTP {status}: {body[:200]}")
        self.status = status
        self.body = body



def _parseRetryAfter(value: str | None) -> float | None:
    """Return seconds suggested by Retry-After header, if parsable."""
    if not value:
        return None
    # Retry-After: seconds
    try:
        secondsF = float(value)
        if secondsF >= 0:
            return secondsF
    except ValueError:
        pass
    # Retry-After: HTTP-date
    try:
        dt = parsedate_to_datetime(value)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        now = datetime.now(timezone.utc).timestamp()
        return max(0.0, dt.timestamp() - now)
    except Exception:
        return None



def _shouldRetry(status: int) -> bool:
    # Typical transient HTTP errors upon which retry makes sense
    return status in (408, 429, 500, 502, 503, 504)



def _backoffMs(attempt: int, backoffBaseMs: int, backoffMaxMs: int) -> float:
    base = min(backoffMaxMs, backoffBaseMs * (2 ** attempt))
    jitter = base * 0.25
    return max(0.0, base + random.uniform(-jitter, jitter))



async def request(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    timeoutMs: int = 10_000,
    retries: int = 2,
    backoffBaseMs: int = 250,
    backoffMaxMs: int = 1_000,
    followRedirects: bool = True,
) -> dict[str, Any]:
    """
    Outbound HTTP request with timeout and retries (408/429/5xx, transport errors).
    
    Returns:
    {
        "status": int,
        "headers": dict[str,str],
        "text": str,
        "content": bytes,
        "json": Any? # Present when response looks like JSON and parses
    }
    
    - Raises HTTPError for 408/429/5xx after exhausting retries.
    - Raises httpx.HTTPError for transport errors after exhausting retries.
    - Non-retryable 4xx responses are returned, not raised.
    """
    if timeoutMs <= 0:
        timeoutMs = 1
    timeout = httpx.Timeout(timeoutMs / 1_000)
    attempt = 0
    method = str(method).upper()
    retries = max(0, retries)
    sendHeaders = {"User-Agent": USER_AGENT, **(headers or {})}
    
    async with httpx.AsyncClient(timeout=timeout, http2=True) as cli:
        while True:
            try:
                logger.debug("Fetching %s %s (attempt %d)", method, url, attempt + 1)
                resp = await cli.request(
                    method,
                    url,
                    headers=sendHeaders,
                    params=params,
                    follow_redirects=followRedirects,
                )
                status = resp.status_code
                
                if _shouldRetry(status) and attempt < retries:
                    retryAfter = _parseRetryAfter(resp.headers.get("Retry-After"))
                    if retryAfter is not None:
                        delay = retryAfter
                    else:
                        delay = _backoffMs(attempt, backoffBaseMs, backoffMaxMs) / 1000.0
                    logger.debug("Retrying %s after HTTP %d in %.3fs", url, status, delay)
                    attempt += 1
                    await asyncio.sleep(delay)
                    continue
                
                if status >= 500 or status in (408, 429):
                    raise HTTPError(status, resp.text)
                
                out: dict[str, Any] = {
                    "status": status,
                    "headers": dict(resp.headers),
                    "text": resp.text,
                    "content": resp.content,
                }
                
                # Best-effort JSON parse
                ctype = resp.headers.get("Content-Type", "")
                if "json" in ctype.lower():
                    try:
                        out["json"] = resp.json()
                    except Exception:
                        # Caller still has "text"
                        pass
                
                return out
            
            except httpx.HTTPError as err:
                # Transport-level error. Retry with backoff.
                attempt += 1
                if attempt > retries:
                    raise
                delayMs = _backoffMs(attempt - 1, backoffBaseMs, backoffMaxMs)
                logger.debug("Transport error for %s (%s), retrying in %.0fms", url, err, delayMs)
                await asyncio.sleep(delayMs / 1000.0)
