# File: tests/conftest.py
from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Callable, Dict, Optional

import pytest
from aiohttp import web

from seo_scout.config import AuditConfig, CrawlSettings
from seo_scout.crawler.fetcher import RenderedPage
from seo_scout.crawler.models import CrawlerOutput, PageRole
from seo_scout.normalizer import PageCrawlResult, normalize
from seo_scout.parser.html_parser import extract_page


def pytest_configure(config):
    """Register custom markers so that `--strict-markers` does not fail."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


#: well-formed page of a local business, used by several test modules
LOCAL_BUSINESS_HTML = """<!doctype html>
<html lang="en">
<head>
  <title>Acme Plumbing | Licensed Plumbers in Springfield</title>
  <meta name="description" content="Acme Plumbing offers licensed emergency plumbing, drain cleaning and water heater repair across Springfield. Call today.">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <meta property="og:site_name" content="Acme Plumbing">
  <link rel="canonical" href="https://acme.example/">
  <link rel="icon" href="/favicon.ico">
  <script type="application/ld+json">
  {"@context": "https://schema.org", "@type": "Plumber", "name": "Acme Plumbing",
   "address": {"@type": "PostalAddress", "streetAddress": "12 Main Street"},
   "telephone": "(555) 123-4567", "openingHours": "Mo-Fr 08:00-18:00"}
  </script>
</head>
<body>
  <nav><a href="/services">Services</a> <a href="/contact">Contact</a></nav>
  <main>
    <h1>Acme Plumbing</h1>
    <h2>Plumbing services</h2>
    <p>We are licensed and insured plumbers with 20 years of experience.</p>
    <ul><li>Drain cleaning</li><li>Water heater repair</li></ul>
    <p>Call <a href="tel:+15551234567">(555) 123-4567</a> or email <a href="mailto:info@acme.example">info@acme.example</a>.</p>
    <address>12 Main Street, Springfield</address>
    <p>Open Monday to Friday 8am to 6pm.</p>
    <img src="/van.jpg" alt="Acme van" width="800" height="600">
    <img src="/team.jpg">
  </main>
</body>
</html>
"""


@pytest.fixture()
def fast_config() -> AuditConfig:
    """Fast crawl settings for local aiohttp servers."""
    return AuditConfig(
        crawl=CrawlSettings(
            user_agent="TestAgent/1.0",
            timeout=2.0,
            page_timeout=5.0,
            rate_limit=200.0,
            retry_times=0,
            retry_backoff=0.0,
            concurrency=4,
            browser_concurrency=2,
            time_budget=20.0,
        )
    )


@pytest.fixture()
def output_factory() -> Callable[..., CrawlerOutput]:
    """Build a CrawlerOutput by running the real extractor on *html*."""

    def _make(
        html: str,
        url: str = "https://acme.example/",
        *,
        headers: Optional[Dict[str, str]] = None,
        elapsed_ms: float = 120.0,
        final_url: Optional[str] = None,
    ) -> CrawlerOutput:
        rendered = RenderedPage(
            url=url,
            final_url=final_url or url,
            status=200,
            headers=headers or {},
            html=html,
            elapsed_ms=elapsed_ms,
            content_type="text/html; charset=utf-8",
            size=len(html.encode("utf-8")),
        )
        return extract_page(rendered, seed_url="https://acme.example/")

    return _make


@pytest.fixture()
def page_factory(output_factory) -> Callable[..., PageCrawlResult]:
    """Build a normalized PageCrawlResult from *html*."""

    def _make(html: str, url: str = "https://acme.example/", role: PageRole = PageRole.OTHER, **kwargs) -> PageCrawlResult:
        return normalize(output_factory(html, url, **kwargs), role=role)

    return _make


async def serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


def html_response(body: str, **kwargs) -> web.Response:
    return web.Response(text=body, content_type="text/html", **kwargs)
