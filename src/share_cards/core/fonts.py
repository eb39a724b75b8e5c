from __future__ import annotations

import threading
import time

import httpx

from share_cards.core.config import settings
from share_cards.core.logging import get_logger, log_event, log_exception, monotonic_ms

logger = get_logger(__name__)

_lock = threading.Lock()
_font_bytes: bytes | None = None


def get_font_bytes() -> bytes | None:
    """
    Return the share card font, fetching it once per process.

    Returns None when no font is configured or the fetch fails; callers render
    with the built-in font instead. Failures are not memoized, so a later call
    retries.
    """
    global _font_bytes  # noqa: PLW0603
    if _font_bytes is not None:
        return _font_bytes
    if not settings.font_url:
        return None

    with _lock:
        if _font_bytes is not None:
            return _font_bytes
        _font_bytes = _fetch_font(settings.font_url)
        return _font_bytes


def reset_font_cache() -> None:
    global _font_bytes  # noqa: PLW0603
    with _lock:
        _font_bytes = None


def _fetch_font(url: str) -> bytes | None:
    start = time.monotonic()
    try:
        resp = httpx.get(url, timeout=settings.font_fetch_timeout_s, follow_redirects=True)
        resp.raise_for_status()
    except httpx.HTTPError:
        log_exception(logger, "font.fetch.failure", url=url, duration_ms=monotonic_ms(start))
        return None
    if not resp.content:
        log_event(logger, "font.fetch.empty", url=url, duration_ms=monotonic_ms(start))
        return None
    log_event(
        logger,
        "font.fetch.success",
        url=url,
        byte_size=len(resp.content),
        duration_ms=monotonic_ms(start),
    )
    return resp.content
