# File: tests/test_crawler.py
# Test-suite for the SEOScout async crawler
from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from typing import List, Optional

import pytest
import pytest_asyncio
from aiohttp import web

from conftest import html_response, serve_app
from seo_scout.config import AuditConfig, CrawlOptions
from seo_scout.crawler.crawler import AsyncCrawler, CrawlJob
from seo_scout.crawler.frontier import Frontier, FrontierEntry, Priority
from seo_scout.crawler.fetcher import RenderedPage
from seo_scout.crawler.models import CrawlResult, PageRole
from seo_scout.crawler.similarity import SimilarityFilter
from seo_scout.errors import JobFatalError
from seo_scout.utils import normalize_url

NO_SITEMAPS = CrawlOptions(follow_sitemaps=False)


# --------------------------------------------------------------------------- #
#                               Helper utilities                              #
# --------------------------------------------------------------------------- #


def make_page(title: str, *links: str, body: Optional[str] = None) -> str:
    """Small page whose main text is unique to *title*."""
    nav = "".join(f'<a href="{href}">{href}</a> ' for href in links)
    text = body or f"This page is about {title}. It has its own text about {title} and nothing else."
    return f"<html><head><title>{title}</title></head><body><nav>{nav}</nav><main><p>{text}</p></main></body></html>"


async def run_crawler(config: AuditConfig, seed: str, options: CrawlOptions = NO_SITEMAPS, **kwargs) -> CrawlResult:
    async with AsyncCrawler(config, options, **kwargs) as crawler:
        return await asyncio.wait_for(crawler.crawl(seed), timeout=15.0)


def keys(result: CrawlResult, ok_only: bool = True) -> List[str]:
    return [normalize_url(p.url) for p in result.pages if p.ok or not ok_only]


def single_worker(config: AuditConfig) -> AuditConfig:
    crawl = config.crawl.model_copy(update={"concurrency": 1, "browser_concurrency": 1})
    return config.model_copy(update={"crawl": crawl})


# --------------------------------------------------------------------------- #
#                            Test-server fixtures                             #
# --------------------------------------------------------------------------- #


@pytest_asyncio.fixture
async def small_site(unused_tcp_port: int) -> AsyncIterator[str]:
    app = web.Application()

    async def root(_):
        return html_response(make_page("home", "/services", "/contact"))

    async def services(_):
        return html_response(make_page("services", "/", "/services/drains"))

    async def drains(_):
        return html_response(make_page("drains", "/services"))

    async def contact(_):
        return html_response(make_page("contact", "/"))

    async def robots(_):
        return web.Response(text="User-agent: *\nDisallow:", content_type="text/plain")

    app.router.add_get("/", root)
    app.router.add_get("/services", services)
    app.router.add_get("/services/drains", drains)
    app.router.add_get("/contact", contact)
    app.router.add_get("/robots.txt", robots)

    async for url in serve_app(app, unused_tcp_port):
        yield url


# --------------------------------------------------------------------------- #
#                                   Tests                                     #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_basic_crawl(fast_config: AuditConfig, small_site: str):
    progress = []
    result = await run_crawler(fast_config, small_site, on_progress=lambda done, total: progress.append(done))

    found = set(keys(result))
    assert found == {normalize_url(f"{small_site}{p}") for p in ("/", "/services", "/services/drains", "/contact")}
    assert result.homepage.url == small_site
    assert result.stats.pages_crawled == 4
    assert result.stats.stop_reason == "frontier_empty"
    assert result.site_structure.homepage == small_site
    assert result.site_structure.contact_page == f"{small_site}/contact"
    assert result.site_structure.role_of(f"{small_site}/services/drains") is PageRole.SERVICE
    assert progress[-1] == 4


@pytest.mark.asyncio()
async def test_depth_limit(fast_config: AuditConfig, small_site: str):
    result = await run_crawler(fast_config, small_site, CrawlOptions(max_depth=1, follow_sitemaps=False))
    assert normalize_url(f"{small_site}/services/drains") not in keys(result)
    assert len(keys(result)) == 3

    only_seed = await run_crawler(fast_config, small_site, CrawlOptions(max_depth=0, follow_sitemaps=False))
    assert keys(only_seed) == [normalize_url(small_site)]


@pytest.mark.asyncio()
async def test_max_pages_is_never_exceeded(fast_config: AuditConfig, unused_tcp_port: int):
    app = web.Application()
    links = [f"/page{i}" for i in range(1, 30)]

    async def root(_):
        return html_response(make_page("home", *links))

    async def page(request):
        return html_response(make_page(request.path))

    app.router.add_get("/", root)
    for link in links:
        app.router.add_get(link, page)

    async for base in serve_app(app, unused_tcp_port):
        result = await run_crawler(fast_config, base, CrawlOptions(max_pages=5, follow_sitemaps=False))

    assert len(result.pages) <= 5
    assert result.stats.pages_attempted <= 5
    assert result.stats.reached_max_pages
    assert result.site_structure.reached_max_pages
    assert result.stats.stop_reason == "max_pages"


@pytest.mark.asyncio()
async def test_trailing_slash_variants_are_fetched_once(fast_config: AuditConfig, unused_tcp_port: int):
    app = web.Application()
    hits = {"about": 0}

    async def root(_):
        return html_response(make_page("home", "/about", "/about/", "/about#team", "/about?"))

    async def about(_):
        hits["about"] += 1
        return html_response(make_page("about"))

    app.router.add_get("/", root)
    app.router.add_get("/about", about)
    app.router.add_get("/about/", about)

    async for base in serve_app(app, unused_tcp_port):
        result = await run_crawler(fast_config, base)

    about_pages = [p for p in result.pages if "about" in p.url.lower()]
    assert len(about_pages) == 1
    assert hits["about"] == 1


@pytest.mark.asyncio()
async def test_seed_failure_is_fatal(fast_config: AuditConfig, unused_tcp_port: int):
    app = web.Application()

    async def broken(_):
        return web.Response(status=500, text="boom")

    app.router.add_get("/", broken)

    async for base in serve_app(app, unused_tcp_port):
        with pytest.raises(JobFatalError) as exc_info:
            await run_crawler(fast_config, base)

    assert exc_info.value.url == base
    assert exc_info.value.stats.stop_reason == "seed_unreachable"
    assert "500" in exc_info.value.reason


@pytest.mark.asyncio()
async def test_unreachable_seed_is_fatal(fast_config: AuditConfig, unused_tcp_port: int):
    # nothing listens on this port
    with pytest.raises(JobFatalError):
        await run_crawler(fast_config, f"http://localhost:{unused_tcp_port}")


@pytest.mark.asyncio()
async def test_invalid_seed(fast_config: AuditConfig):
    with pytest.raises(ValueError):
        await run_crawler(fast_config, "not-a-url")


@pytest.mark.asyncio()
async def test_broken_link_is_recorded(fast_config: AuditConfig, unused_tcp_port: int):
    app = web.Application()

    async def root(_):
        return html_response(make_page("home", "/missing"))

    app.router.add_get("/", root)

    async for base in serve_app(app, unused_tcp_port):
        result = await run_crawler(fast_config, base)

    assert result.failed_urls == [f"{base}/missing"]
    failed = next(p for p in result.pages if not p.ok)
    assert failed.status_code == 404
    assert result.stats.errors_encountered == 1
    assert keys(result) == [normalize_url(base)]


@pytest.mark.asyncio()
async def test_respect_robots(fast_config: AuditConfig, unused_tcp_port: int):
    app = web.Application()

    async def root(_):
        return html_response(make_page("home", "/private", "/public"))

    async def private(_):
        return html_response(make_page("private"))

    async def public(_):
        return html_response(make_page("public"))

    async def robots(_):
        return web.Response(text="User-agent: TestAgent/1.0\nDisallow: /private", content_type="text/plain")

    app.router.add_get("/", root)
    app.router.add_get("/private", private)
    app.router.add_get("/public", public)
    app.router.add_get("/robots.txt", robots)

    async for base in serve_app(app, unused_tcp_port):
        result = await run_crawler(fast_config, base)

    assert normalize_url(f"{base}/private") not in keys(result, ok_only=False)
    assert normalize_url(f"{base}/public") in keys(result)
    assert result.stats.robots_blocked == 1


@pytest.mark.asyncio()
async def test_duplicate_page_is_flagged_and_not_expanded(fast_config: AuditConfig, unused_tcp_port: int):
    app = web.Application()
    article = (
        "Acme Plumbing repairs burst pipes, clears blocked drains and installs water heaters "
        "for homes and businesses across Springfield every day of the week."
    )

    async def root(_):
        return html_response(make_page("home", "/copy", body=article))

    async def copy(_):
        return html_response(make_page("copy", "/hidden", body=article))

    async def hidden(_):
        return html_response(make_page("hidden"))

    app.router.add_get("/", root)
    app.router.add_get("/copy", copy)
    app.router.add_get("/hidden", hidden)

    async for base in serve_app(app, unused_tcp_port):
        result = await run_crawler(fast_config, base)

    copy_page = next(p for p in result.pages if p.url.endswith("/copy"))
    assert copy_page.is_duplicate
    assert copy_page.similar_url == base
    assert copy_page.similarity == 1.0
    assert result.stats.duplicates == 1
    assert normalize_url(f"{base}/hidden") not in keys(result)


@pytest.mark.asyncio()
async def test_sitemap_urls_come_before_links(fast_config: AuditConfig, unused_tcp_port: int):
    app = web.Application()
    base = f"http://localhost:{unused_tcp_port}"

    async def root(_):
        return html_response(make_page("home", "/from-link"))

    async def sitemap(_):
        body = (
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
            f"<url><loc>{base}/from-sitemap</loc></url>"
            "<url><loc>https://elsewhere.example/page</loc></url>"
            "</urlset>"
        )
        return web.Response(text=body, content_type="application/xml")

    async def page(request):
        return html_response(make_page(request.path))

    app.router.add_get("/", root)
    app.router.add_get("/sitemap.xml", sitemap)
    app.router.add_get("/from-link", page)
    app.router.add_get("/from-sitemap", page)

    async for _ in serve_app(app, unused_tcp_port):
        result = await run_crawler(single_worker(fast_config), base, CrawlOptions())

    assert [p.url for p in result.pages] == [base, f"{base}/from-sitemap", f"{base}/from-link"]
    assert result.site_structure.has_sitemap_xml


class FakeBrowser:
    """Stands in for the headless renderer: returns prepared HTML."""

    def __init__(self, html: str) -> None:
        self.html = html
        self.calls: List[str] = []

    async def render(self, url: str) -> RenderedPage:
        self.calls.append(url)
        return RenderedPage(
            url=url,
            final_url=url,
            status=200,
            headers={"content-type": "text/html"},
            html=self.html,
            elapsed_ms=50.0,
            content_type="text/html",
            rendered=True,
            size=len(self.html),
        )


@pytest.mark.asyncio()
async def test_script_shell_is_rendered_in_browser(fast_config: AuditConfig, unused_tcp_port: int):
    app = web.Application()
    shell = '<html><head><title>App</title></head><body><div id="root"></div><script src="/main.js"></script></body></html>'

    async def root(_):
        return html_response(shell)

    app.router.add_get("/", root)
    browser = FakeBrowser(make_page("Rendered home"))

    async for base in serve_app(app, unused_tcp_port):
        result = await run_crawler(fast_config, base, browser=browser)

    assert browser.calls == [base]
    assert result.homepage.rendered
    assert result.homepage.title == "Rendered home"
    assert result.stats.rendered_pages == 1


@pytest.mark.asyncio()
async def test_static_page_skips_browser(fast_config: AuditConfig, small_site: str):
    browser = FakeBrowser("<html></html>")
    result = await run_crawler(fast_config, small_site, CrawlOptions(max_depth=0, follow_sitemaps=False), browser=browser)
    assert browser.calls == []
    assert not result.homepage.rendered


@pytest.mark.asyncio()
@pytest.mark.slow()
async def test_time_budget_stops_crawl(fast_config: AuditConfig, unused_tcp_port: int):
    app = web.Application()

    async def root(_):
        return html_response(make_page("home", "/slow"))

    async def slow(_):
        await asyncio.sleep(2)
        return html_response(make_page("slow"))

    app.router.add_get("/", root)
    app.router.add_get("/slow", slow)
    crawl = fast_config.crawl.model_copy(update={"time_budget": 0.5})
    config = fast_config.model_copy(update={"crawl": crawl})

    async for base in serve_app(app, unused_tcp_port):
        started = time.perf_counter()
        result = await run_crawler(config, base)
        elapsed = time.perf_counter() - started

    assert elapsed < 1.5
    assert result.stats.time_limited
    assert result.stats.stop_reason == "time_budget"
    assert keys(result) == [normalize_url(base)]


@pytest.mark.asyncio()
async def test_cancel_stops_crawl(fast_config: AuditConfig, small_site: str):
    cancel = asyncio.Event()
    cancel.set()
    result = await run_crawler(fast_config, small_site, cancel_event=cancel)
    assert result.stats.cancelled
    assert result.stats.stop_reason == "cancelled"
    assert keys(result) == [normalize_url(small_site)]


@pytest.mark.asyncio()
async def test_large_page_is_read_to_the_end(fast_config: AuditConfig, unused_tcp_port: int):
    filler = "<p>" + "plumbing repair service in springfield " * 30000 + "</p>"
    big = f"<html><head><title>Big</title></head><body>{filler}<a href=\"/tail\">tail</a></body></html>"
    app = web.Application()

    async def root(_):
        return html_response(big)

    async def tail(_):
        return html_response(make_page("tail"))

    app.router.add_get("/", root)
    app.router.add_get("/tail", tail)

    async for base in serve_app(app, unused_tcp_port):
        result = await run_crawler(fast_config, base)
        crawl = fast_config.crawl.model_copy(update={"max_content_bytes": 1000})
        capped = await run_crawler(fast_config.model_copy(update={"crawl": crawl}), base)

    assert len(big.encode("utf-8")) > 1_000_000
    assert result.homepage.resource_size == len(big.encode("utf-8"))
    assert normalize_url(f"{base}/tail") in keys(result)
    assert capped.homepage.resource_size == 1000


@pytest.mark.asyncio()
async def test_worker_seeing_deadline_marks_time_limit(fast_config: AuditConfig):
    def make_job(deadline: float, cancelled: bool) -> CrawlJob:
        cancel = asyncio.Event()
        if cancelled:
            cancel.set()
        return CrawlJob(
            seed_url="https://acme.example/",
            seed_key=normalize_url("https://acme.example/"),
            options=NO_SITEMAPS,
            frontier=Frontier(3),
            similarity=SimilarityFilter(),
            deadline=deadline,
            cancel_event=cancel,
        )

    entry = FrontierEntry(Priority.LINK, 0, "https://acme.example/a", 1, normalize_url("https://acme.example/a"))
    crawler = AsyncCrawler(fast_config, NO_SITEMAPS)

    expired = make_job(time.monotonic() - 1, cancelled=False)
    await expired.frontier.push("https://acme.example/b", 1, Priority.LINK)
    await crawler._visit(expired, entry)
    assert expired.stats.time_limited
    assert expired.stats.reached_max_pages
    assert expired.frontier.qsize() == 0
    assert expired.outputs == []

    cancelled = make_job(time.monotonic() + 60, cancelled=True)
    await crawler._visit(cancelled, entry)
    assert not cancelled.stats.time_limited


@pytest.mark.asyncio()
async def test_failure_after_recording_keeps_one_output_per_url(
    fast_config: AuditConfig, small_site: str, monkeypatch
):
    async with AsyncCrawler(fast_config, NO_SITEMAPS) as crawler:
        expand = crawler._expand

        async def flaky_expand(job, output, depth):
            if depth >= 2:
                raise RuntimeError("link expansion failed")
            await expand(job, output, depth)

        monkeypatch.setattr(crawler, "_expand", flaky_expand)
        result = await asyncio.wait_for(crawler.crawl(small_site), timeout=15.0)

    urls = [p.url for p in result.pages]
    assert sorted(urls) == sorted({small_site, f"{small_site}/services", f"{small_site}/contact"})
    assert all(p.ok for p in result.pages)
    assert result.stats.pages_crawled == 3
    assert result.stats.pages_skipped == 0
    assert result.failed_urls == []
