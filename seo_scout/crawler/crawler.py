# === FILE: seo_scout/crawler/crawler.py ===
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol, Set
from urllib.parse import urlparse, urlunparse

from aiohttp import ClientError, ClientSession, ClientTimeout

from seo_scout.config import AuditConfig, CrawlOptions
from seo_scout.crawler import cms
from seo_scout.crawler.classifier import classify, rank_by_importance
from seo_scout.crawler.fetcher import RenderedPage, StaticRenderer, is_html, looks_like_script_shell
from seo_scout.crawler.frontier import Frontier, FrontierEntry, Priority
from seo_scout.crawler.models import CrawlerOutput, CrawlResult, CrawlStats, PlatformInfo, SiteStructure
from seo_scout.crawler.robots import RobotsTxtRules
from seo_scout.crawler.similarity import SimilarityFilter
from seo_scout.errors import BudgetExceeded, FetchError, JobFatalError
from seo_scout.parser.html_parser import extract_page
from seo_scout.parser.sitemap_parser import discover_sitemaps
from seo_scout.utils import is_same_site, is_valid_url, normalize_url

__all__ = ("CrawlJob", "AsyncCrawler", "PageRenderer")

ProgressCallback = Callable[[int, int], None]


class PageRenderer(Protocol):
    async def render(self, url: str) -> RenderedPage: ...


@dataclass(slots=True)
class CrawlJob:
    """Состояние одного обхода. Принадлежит только AsyncCrawler и не разделяется между заданиями."""
    seed_url: str
    seed_key: str
    options: CrawlOptions
    frontier: Frontier
    similarity: SimilarityFilter
    deadline: float
    cancel_event: asyncio.Event
    stats: CrawlStats = field(default_factory=CrawlStats)
    structure: SiteStructure = field(default_factory=SiteStructure)
    platform: Optional[cms.PlatformGuess] = None
    outputs: List[CrawlerOutput] = field(default_factory=list)
    failed_urls: List[str] = field(default_factory=list)
    recorded: Set[str] = field(default_factory=set)
    slots_used: int = 0

    def reserve(self) -> None:
        """Занимает слот страницы; при исчерпанном бюджете поднимает BudgetExceeded."""
        if self.slots_used >= self.options.max_pages:
            raise BudgetExceeded(f"max_pages={self.options.max_pages} reached")
        self.slots_used += 1

    @property
    def platform_name(self) -> Optional[str]:
        return self.platform.name if self.platform else None

    @property
    def stopped(self) -> bool:
        return self.cancel_event.is_set() or time.monotonic() >= self.deadline


class AsyncCrawler:
    """Асинхронный краулер аудита с учётом robots.txt, sitemap, rate-limit и retry."""

    def __init__(
        self,
        config: AuditConfig,
        options: Optional[CrawlOptions] = None,
        *,
        browser: Optional[PageRenderer] = None,
        cancel_event: Optional[asyncio.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.config = config
        self.settings = config.crawl
        self.options = options or CrawlOptions()
        self.session: Optional[ClientSession] = None
        self.renderer: Optional[StaticRenderer] = None
        self.browser = browser
        self._owns_browser = False
        self.cancel_event = cancel_event or asyncio.Event()
        self.on_progress = on_progress
        self.robots_rules: Optional[RobotsTxtRules] = None
        self.logger = logging.getLogger("SEOScout")
        self.job: Optional[CrawlJob] = None

    async def __aenter__(self) -> AsyncCrawler:
        timeout = ClientTimeout(total=self.settings.timeout)
        self.session = ClientSession(
            timeout=timeout,
            headers={"User-Agent": self.settings.user_agent},
            raise_for_status=False,
        )
        self.renderer = StaticRenderer(self.session, self.settings)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._owns_browser and self.browser is not None:
            await self.browser.close()  # type: ignore[attr-defined]
            self.browser = None
        if self.session and not self.session.closed:
            await self.session.close()

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    async def crawl(self, seed_url: str) -> CrawlResult:
        if not self.session or not self.renderer:
            raise RuntimeError("Session not initialized")
        if not is_valid_url(seed_url):
            raise ValueError(f"seed URL must be an absolute http(s) URL: {seed_url!r}")

        job = CrawlJob(
            seed_url=seed_url,
            seed_key=normalize_url(seed_url),
            options=self.options,
            frontier=Frontier(self.options.max_depth),
            similarity=SimilarityFilter(
                self.config.similarity.threshold,
                self.config.similarity.shingle_size,
                self.config.similarity.enabled,
            ),
            deadline=time.monotonic() + self.settings.time_budget,
            cancel_event=self.cancel_event,
        )
        self.job = job
        self.logger.info("Старт обхода: %s (max_pages=%d, max_depth=%d)", seed_url, self.options.max_pages, self.options.max_depth)
        start = time.monotonic()

        await self._load_robots(seed_url)
        homepage = await self._crawl_seed(job)

        if self.options.follow_sitemaps:
            await self._seed_from_sitemaps(job)
        if homepage.ok and not homepage.is_duplicate:
            await self._expand(job, homepage, 1)

        await self._run_workers(job)

        stats = job.stats
        stats.finished_at = datetime.now(timezone.utc)
        if stats.cancelled:
            stats.stop_reason = "cancelled"
        elif stats.time_limited:
            stats.stop_reason = "time_budget"
        elif stats.reached_max_pages:
            stats.stop_reason = "max_pages"
        else:
            stats.stop_reason = "frontier_empty"
        job.structure.reached_max_pages = stats.reached_max_pages

        duration = time.monotonic() - start
        self.logger.info(
            "Завершено: %d страниц, %d пропущено, %d ошибок за %.2f с (%s)",
            stats.pages_crawled, stats.pages_skipped, stats.errors_encountered, duration, stats.stop_reason,
        )
        self.logger.debug("Обнаружено уникальных URL: %d", len(job.frontier))
        if stats.robots_blocked:
            self.logger.info("Заблокировано robots.txt: %d", stats.robots_blocked)

        platform = None
        if job.platform is not None:
            platform = PlatformInfo(
                name=job.platform.name,
                confidence=job.platform.confidence,
                evidence=list(job.platform.evidence),
                framework=job.platform.framework,
            )
        return CrawlResult(
            homepage=homepage,
            pages=list(job.outputs),
            site_structure=job.structure,
            stats=stats,
            platform=platform,
            failed_urls=list(job.failed_urls),
        )

    def cancel(self) -> None:
        self.cancel_event.set()

    # ------------------------------------------------------------------ #
    # Seed, sitemap and workers                                          #
    # ------------------------------------------------------------------ #

    async def _crawl_seed(self, job: CrawlJob) -> CrawlerOutput:
        url = job.seed_url
        job.reserve()
        await job.frontier.mark_seen(url)

        def _fatal(reason: str, exc: Optional[BaseException] = None) -> JobFatalError:
            job.stats.errors_encountered += 1
            job.stats.pages_skipped += 1
            job.stats.finished_at = datetime.now(timezone.utc)
            job.stats.stop_reason = "seed_unreachable"
            self.logger.error("Seed %s unreachable: %s", url, reason)
            return JobFatalError(url, reason, stats=job.stats)

        try:
            rendered = await asyncio.wait_for(self._render(job, url), timeout=self.settings.page_timeout)
        except FetchError as exc:
            raise _fatal(exc.reason) from exc
        except asyncio.TimeoutError as exc:
            raise _fatal("page timeout") from exc
        if rendered.status >= 400:
            raise _fatal(f"HTTP {rendered.status}")
        if not is_html(rendered.content_type) or not rendered.html:
            raise _fatal(f"non-HTML response ({rendered.content_type or 'unknown'})")

        job.platform = cms.detect(rendered.html, rendered.headers)
        if job.platform:
            self.logger.info(
                "Platform detected: %s (%.2f)%s", job.platform.name, job.platform.confidence,
                f", framework {job.platform.framework}" if job.platform.framework else "",
            )
        await job.frontier.mark_seen(rendered.final_url)
        output = self._to_output(job, rendered, url, 0)
        self._record(job, output)
        return output

    async def _seed_from_sitemaps(self, job: CrawlJob) -> None:
        assert self.session is not None
        discovery = await discover_sitemaps(
            self.session,
            job.seed_url,
            self.robots_rules.sitemaps if self.robots_rules else (),
            max_urls=self.settings.max_sitemap_urls,
            max_children=self.settings.max_child_sitemaps,
        )
        job.structure.has_sitemap_xml = discovery.found
        candidates = [
            u for u in discovery.urls
            if is_same_site(u, job.seed_url) and not cms.should_skip(u, job.platform_name)
        ]
        queued = 0
        for url in rank_by_importance(candidates, job.platform_name):
            if await job.frontier.push(url, 1, Priority.SITEMAP):
                queued += 1
        self.logger.debug("Queued %d sitemap URLs", queued)

    async def _run_workers(self, job: CrawlJob) -> None:
        remaining = job.deadline - time.monotonic()
        workers = [asyncio.create_task(self._worker(job)) for _ in range(self.settings.concurrency)]
        try:
            await asyncio.wait_for(job.frontier.join(), timeout=max(remaining, 0.0))
        except asyncio.TimeoutError:
            job.stats.time_limited = True
            job.stats.reached_max_pages = True
            self.logger.warning("Time budget of %.0f s exhausted, stopping crawl", self.settings.time_budget)
        finally:
            for w in workers:
                w.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
        if job.cancel_event.is_set():
            job.stats.cancelled = True

    async def _worker(self, job: CrawlJob) -> None:
        while True:
            entry = await job.frontier.get()
            try:
                await self._visit(job, entry)
            except Exception as exc:
                self.logger.exception("Unexpected error while crawling %s", entry.url)
                # одна запись на URL: страница могла быть уже учтена до сбоя
                if entry.url not in job.recorded:
                    self._record(job, CrawlerOutput.failed(entry.url, f"internal error: {exc}", depth=entry.depth))
            finally:
                job.frontier.task_done()

    async def _visit(self, job: CrawlJob, entry: FrontierEntry) -> None:
        if job.stopped:
            if not job.cancel_event.is_set():
                job.stats.time_limited = True
                job.stats.reached_max_pages = True
            job.frontier.drain()
            return
        if not self._is_allowed(entry.url):
            job.stats.robots_blocked += 1
            self.logger.debug("Blocked by robots.txt: %s", entry.url)
            return
        try:
            job.reserve()
        except BudgetExceeded as exc:
            job.stats.reached_max_pages = True
            dropped = job.frontier.drain()
            self.logger.debug("%s; dropped %d queued URLs", exc, dropped + 1)
            return

        output = await self._fetch_page(job, entry.url, entry.depth)
        self._record(job, output)
        if output.ok and not output.is_duplicate and entry.depth < self.options.max_depth:
            await self._expand(job, output, entry.depth + 1)

    # ------------------------------------------------------------------ #
    # Page handling                                                      #
    # ------------------------------------------------------------------ #

    async def _fetch_page(self, job: CrawlJob, url: str, depth: int) -> CrawlerOutput:
        try:
            rendered = await asyncio.wait_for(self._render(job, url), timeout=self.settings.page_timeout)
        except FetchError as exc:
            return CrawlerOutput.failed(url, exc.reason, status_code=exc.status, depth=depth)
        except asyncio.TimeoutError:
            self.logger.warning("Page timeout: %s", url)
            return CrawlerOutput.failed(url, "page timeout", depth=depth)

        if rendered.status >= 400:
            self.logger.warning("HTTP %s for %s", rendered.status, url)
            return CrawlerOutput.failed(url, f"HTTP {rendered.status}", status_code=rendered.status, depth=depth)
        if not is_html(rendered.content_type) or not rendered.html:
            return CrawlerOutput.failed(
                url, f"non-HTML content ({rendered.content_type})", status="skipped",
                status_code=rendered.status, depth=depth,
            )
        if not is_same_site(rendered.final_url, job.seed_url):
            return CrawlerOutput.failed(
                url, f"redirected off-site to {rendered.final_url}", status="skipped",
                status_code=rendered.status, depth=depth,
            )
        await job.frontier.mark_seen(rendered.final_url)
        return self._to_output(job, rendered, url, depth)

    def _to_output(self, job: CrawlJob, rendered: RenderedPage, url: str, depth: int) -> CrawlerOutput:
        output = extract_page(rendered, seed_url=job.seed_url, depth=depth, platform=job.platform_name)
        verdict = job.similarity.check(rendered.html, url)
        if verdict.is_duplicate:
            self.logger.debug("Duplicate content: %s ~ %s (%.2f)", url, verdict.similar_url, verdict.similarity)
        return output.model_copy(update={
            "is_duplicate": verdict.is_duplicate,
            "similar_url": verdict.similar_url,
            "similarity": verdict.similarity,
        })

    async def _render(self, job: CrawlJob, url: str) -> RenderedPage:
        """Статическая загрузка, затем headless-рендер для JS-оболочек или по запросу."""
        assert self.renderer is not None
        page = await self.renderer.fetch(url)
        if page.status >= 400 or not page.html:
            return page
        wants_js = self.options.use_javascript or (
            self.settings.render_fallback and looks_like_script_shell(page.html)
        )
        if not wants_js:
            return page
        browser = self._get_browser()
        try:
            rendered = await browser.render(url)
        except FetchError as exc:
            self.logger.warning("Headless render failed for %s: %s; keeping static HTML", url, exc.reason)
            return page
        job.stats.rendered_pages += 1
        return rendered

    def _get_browser(self) -> PageRenderer:
        if self.browser is None:
            # imported lazily so static-only audits never start Playwright
            from seo_scout.crawler.browser import BrowserRenderer

            self.browser = BrowserRenderer(self.settings)
            self._owns_browser = True
        return self.browser

    def _record(self, job: CrawlJob, output: CrawlerOutput) -> None:
        job.outputs.append(output)
        job.recorded.add(output.url)
        stats = job.stats
        if output.ok:
            stats.pages_crawled += 1
            if output.is_duplicate:
                stats.duplicates += 1
            job.structure.add(output.url, classify(output, job.seed_key))
        else:
            stats.pages_skipped += 1
            if output.status == "error":
                stats.errors_encountered += 1
                job.failed_urls.append(output.url)
        if self.on_progress is not None:
            self.on_progress(stats.pages_attempted, self.options.max_pages)

    async def _expand(self, job: CrawlJob, output: CrawlerOutput, depth: int) -> None:
        if depth > self.options.max_depth:
            return
        for link in output.links.internal:
            if not is_same_site(link, job.seed_url) or cms.should_skip(link, job.platform_name):
                continue
            await job.frontier.push(link, depth, Priority.LINK)

    # ------------------------------------------------------------------ #
    # robots.txt                                                         #
    # ------------------------------------------------------------------ #

    def _is_allowed(self, url: str) -> bool:
        if self.robots_rules is None or not self.settings.respect_robots:
            return True
        parsed = urlparse(url)
        path = (parsed.path or "/") + (f"?{parsed.query}" if parsed.query else "")
        return self.robots_rules.can_fetch(self.settings.user_agent, path)

    async def _load_robots(self, seed_url: str) -> None:
        if not self.session:
            return
        parsed = urlparse(seed_url)
        robots_url = urlunparse((parsed.scheme, parsed.netloc, "/robots.txt", "", "", ""))
        self.robots_rules = None
        try:
            async with self.session.get(robots_url) as resp:
                if resp.status == 200:
                    text = await resp.text(errors="replace")
                    self.robots_rules = RobotsTxtRules(text)
                else:
                    # default allow all
                    self.logger.debug("robots.txt %s -> HTTP %s", robots_url, resp.status)
        except (ClientError, asyncio.TimeoutError) as e:
            self.logger.warning("Error loading robots.txt: %s", e)
        if self.robots_rules and self.renderer:
            self.renderer.crawl_delay = self.robots_rules.crawl_delay(self.settings.user_agent)
