# seo_scout/crawler/fetcher.py
"""
Fetcher module: static HTTP rendering with rate limiting, retry/backoff and timeout.
"""
from __future__ import annotations

import asyncio
import logging
import random
import re
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

from aiohttp import ClientError, ClientResponse, ClientSession
from bs4 import BeautifulSoup

from seo_scout.config import CrawlSettings
from seo_scout.errors import FetchError

__all__ = ("RenderedPage", "StaticRenderer", "looks_like_script_shell", "is_html")

_RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)
_CHUNK_SIZE = 64 * 1024
_MOUNT_POINT_RE = re.compile(
    r'<div[^>]+id=["\'](?:root|app|__next|__nuxt|___gatsby)["\'][^>]*>\s*</div>', re.I
)
_FRAMEWORK_RE = re.compile(r"(data-reactroot|ng-version|data-v-app|__NEXT_DATA__|window\.__NUXT__)", re.I)


@dataclass(slots=True)
class RenderedPage:
    """Ответ рендерера: HTML и метаданные ответа."""
    url: str
    final_url: str
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    html: str = ""
    elapsed_ms: float = 0.0
    content_type: str = ""
    rendered: bool = False
    size: int = 0


def _decode(body: bytes, charset: Optional[str]) -> str:
    try:
        return body.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


def is_html(content_type: str) -> bool:
    mime = content_type.split(";", 1)[0].strip().lower()
    return mime in ("text/html", "application/xhtml+xml") or mime == ""


def looks_like_script_shell(html: str) -> bool:
    """True, если страница похожа на пустую JS-оболочку, которую нужно отрендерить.

    Мало видимого текста плюс скрипты и точка монтирования SPA, либо
    явные маркеры фреймворка при почти пустом body.
    """
    if not html:
        return False
    soup = BeautifulSoup(html, "html.parser")
    scripts = soup.find_all("script")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    body = soup.body or soup
    words = len(body.get_text(" ", strip=True).split())
    if words >= 50:
        return False
    if _MOUNT_POINT_RE.search(html):
        return bool(scripts)
    return len(scripts) > 5 or (bool(scripts) and bool(_FRAMEWORK_RE.search(html)) and words < 20)


class StaticRenderer:
    """Handles HTTP fetching with rate limit, retries/backoff, and timeout."""

    def __init__(self, session: ClientSession, settings: CrawlSettings) -> None:
        self.session = session
        self.settings = settings
        self.logger = logging.getLogger("SEOScout")
        self._rate_lock = asyncio.Lock()
        self._last_request_ts = 0.0
        self.crawl_delay: Optional[float] = None

    async def fetch(self, url: str) -> RenderedPage:
        """
        Загружает URL. Повторяет при 5xx/429 и сетевых ошибках.

        После исчерпания повторов HTTP-ошибка возвращается как есть (status >= 400),
        а сетевая ошибка или таймаут поднимают FetchError.
        """
        attempts = 0
        while True:
            await self._wait_for_rate_limit()
            started = time.monotonic()
            try:
                async with self.session.get(url, allow_redirects=True) as resp:
                    ctype = resp.headers.get("Content-Type", "")
                    if resp.status in _RETRY_STATUS and attempts < self.settings.retry_times:
                        raise ClientError(f"retryable status {resp.status}")
                    html = ""
                    size = 0
                    if resp.status < 400 and is_html(ctype):
                        body = await self._read_body(resp)
                        size = len(body)
                        html = _decode(body, resp.charset)
                    return RenderedPage(
                        url=url,
                        final_url=str(resp.url),
                        status=resp.status,
                        headers={k.lower(): v for k, v in resp.headers.items()},
                        html=html,
                        elapsed_ms=(time.monotonic() - started) * 1000,
                        content_type=ctype,
                        size=size,
                    )
            except (ClientError, asyncio.TimeoutError) as exc:
                attempts += 1
                if attempts > self.settings.retry_times:
                    reason = str(exc) or type(exc).__name__
                    self.logger.warning("Failed %s: %s", url, reason)
                    raise FetchError(url, reason) from exc
                backoff = min(60.0, self.settings.retry_backoff * 2**attempts + random.random() * 0.1)
                self.logger.debug(
                    "Retry %d/%d for %s after %.2f s", attempts, self.settings.retry_times, url, backoff
                )
                await asyncio.sleep(backoff)

    async def _wait_for_rate_limit(self) -> None:
        interval = max(1 / self.settings.rate_limit, self.crawl_delay or 0)
        async with self._rate_lock:
            now = time.monotonic()
            wait = interval - (now - self._last_request_ts)
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request_ts = time.monotonic()

    async def _read_body(self, resp: ClientResponse) -> bytes:
        """Читает тело до EOF, но не больше max_content_bytes."""
        limit = self.settings.max_content_bytes
        body = bytearray()
        async for chunk in resp.content.iter_chunked(_CHUNK_SIZE):
            body.extend(chunk)
            if len(body) >= limit:
                self.logger.debug("Body of %s truncated at %d bytes", resp.url, limit)
                del body[limit:]
                break
        return bytes(body)
