# seo_scout/crawler/browser.py
"""
Headless rendering через Playwright для страниц, которые без JS пусты.

Браузер запускается лениво при первом рендере; число одновременных
вкладок ограничено семафором ``browser_concurrency``.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from seo_scout.config import CrawlSettings
from seo_scout.crawler.fetcher import RenderedPage
from seo_scout.errors import FetchError

__all__ = ("BrowserRenderer",)


class BrowserRenderer:
    """Renderer adapter backed by headless Chromium."""

    def __init__(self, settings: CrawlSettings) -> None:
        self.settings = settings
        self.logger = logging.getLogger("SEOScout")
        self._semaphore = asyncio.Semaphore(settings.browser_concurrency)
        self._launch_lock = asyncio.Lock()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    async def __aenter__(self) -> BrowserRenderer:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _ensure_started(self) -> BrowserContext:
        async with self._launch_lock:
            if self._context is None:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=True,
                    args=["--disable-gpu", "--no-sandbox", "--disable-dev-shm-usage"],
                )
                self._context = await self._browser.new_context(user_agent=self.settings.user_agent)
                self.logger.info("Playwright browser initialized for rendering")
            return self._context

    async def render(self, url: str) -> RenderedPage:
        """Открывает URL в браузере и возвращает DOM после загрузки."""
        async with self._semaphore:
            context = await self._ensure_started()
            page = await context.new_page()
            started = time.monotonic()
            try:
                response = await page.goto(
                    url,
                    wait_until="networkidle",
                    timeout=self.settings.page_timeout * 1000,
                )
                html = await page.content()
                status = response.status if response else 200
                headers = await response.all_headers() if response else {}
                return RenderedPage(
                    url=url,
                    final_url=page.url,
                    status=status,
                    headers={k.lower(): v for k, v in headers.items()},
                    html=html,
                    elapsed_ms=(time.monotonic() - started) * 1000,
                    content_type=headers.get("content-type", "text/html"),
                    rendered=True,
                    size=len(html.encode("utf-8")),
                )
            except PlaywrightTimeout as exc:
                raise FetchError(url, "render timeout") from exc
            except PlaywrightError as exc:
                raise FetchError(url, f"render failed: {exc.message}") from exc
            finally:
                await page.close()

    async def close(self) -> None:
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
