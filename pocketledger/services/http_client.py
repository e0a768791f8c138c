from __future__ import annotations

"""Lightweight HTTP client util: GET JSON over stdlib urllib.

Blocking by nature; `fetch_json` runs it on a worker thread so several
upstream calls can be awaited concurrently. Retries are opt-in and off by
default, callers decide when to try again.
"""
import asyncio
import json
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Optional


class HttpError(Exception):
    """Transport level failure: timeout, connectivity or non-2xx status."""


class PayloadError(HttpError):
    """Response arrived but was not the JSON we asked for."""


def validate_url(url: str) -> str:
    parsed = urllib.parse.urlsplit(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"malformed URL: {url!r}")
    return url


def get_json(
    url: str, *, timeout: float = 10.0, retries: int = 0, backoff: float = 0.5
) -> Any:
    validate_url(url)
    last_err: Optional[Exception] = None
    for attempt in range(retries + 1):
        try:
            req = urllib.request.Request(url, headers={"Accept": "application/json"})
            with urllib.request.urlopen(req, timeout=timeout) as resp:  # nosec B310
                if not 200 <= resp.status < 300:
                    raise HttpError(f"HTTP {resp.status} for {url}")
                data = resp.read()
        except urllib.error.HTTPError as e:
            last_err = HttpError(f"HTTP {e.code} for {url}")
        except (urllib.error.URLError, TimeoutError, OSError, HttpError) as e:
            last_err = e
        else:
            try:
                return json.loads(data.decode("utf-8"))
            except ValueError as e:  # JSON / unicode decode
                raise PayloadError(f"invalid JSON from {url}: {e}") from e
        if attempt < retries:
            time.sleep(backoff * (2**attempt))
    raise HttpError(f"Failed to fetch JSON from {url}: {last_err}")


async def fetch_json(url: str, *, timeout: float = 10.0) -> Any:
    return await asyncio.to_thread(get_json, url, timeout=timeout)
