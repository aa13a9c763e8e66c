# File: seo_scout/engine.py
"""seo_scout.engine: оркестрация аудита от обхода до итогового AuditResult.

Порядок: обход сайта, нормализация страниц, параллельный запуск анализаторов,
группировка проблем и агрегация оценок. AuditService поверх Engine ведёт
фоновые задания с прогрессом, отменой и хранением результатов.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from seo_scout.aggregator import AuditResult, PageReport, aggregate, aggregate_site, analyzer_means
from seo_scout.analyzers import DEFAULT_ANALYZERS
from seo_scout.analyzers.base import Analyzer, AnalyzerResult
from seo_scout.config import AuditConfig, CrawlOptions, load_config
from seo_scout.crawler.crawler import AsyncCrawler, PageRenderer
from seo_scout.crawler.models import CrawlResult, CrawlStats
from seo_scout.errors import AuditNotFound, JobFatalError, ValidationError
from seo_scout.grouping import group
from seo_scout.logger import logger
from seo_scout.normalizer import PageCrawlResult, normalize
from seo_scout.providers import InsightCollector, SiteInsights
from seo_scout.storage import InMemoryResultStore, ResultStore
from seo_scout.utils import extract_domain

__all__ = ["Engine", "AuditService", "AuditStatus", "incomplete_reasons"]

PhaseCallback = Callable[[str, float], None]

# доли общего прогресса на обход и анализ
_CRAWL_SHARE = 0.7
_ANALYSIS_SHARE = 0.25


def incomplete_reasons(stats: CrawlStats, error_ratio: float) -> List[str]:
    """Причины, по которым результат аудита считается неполным."""
    reasons: List[str] = []
    if stats.reached_max_pages and not stats.time_limited:
        reasons.append("page budget reached before the whole site was crawled")
    if stats.time_limited:
        reasons.append("time budget ran out before the crawl finished")
    attempted = max(1, stats.pages_attempted)
    if stats.errors_encountered / attempted >= error_ratio and stats.errors_encountered:
        reasons.append(f"{stats.errors_encountered} of {attempted} pages failed to load")
    if stats.validation_errors:
        reasons.append(f"{stats.validation_errors} pages had invalid crawl data and were not analyzed")
    if stats.analysis_errors:
        reasons.append(f"{stats.analysis_errors} analyzer runs failed or timed out")
    if stats.cancelled:
        reasons.append("audit was cancelled")
    return reasons


class Engine:
    """Фасад для CLI, сервиса и тестов: обход, анализ и агрегация одного сайта."""

    @staticmethod
    def load_config(path: Optional[str]) -> AuditConfig:
        """Загружает конфиг из YAML/JSON или использует значения по умолчанию."""
        return load_config(path)

    def __init__(
        self,
        config: Optional[AuditConfig] = None,
        *,
        analyzers: Optional[Sequence[Analyzer]] = None,
        browser: Optional[PageRenderer] = None,
        insights: Optional[InsightCollector] = None,
    ) -> None:
        self.config = config or AuditConfig()
        self.analyzers: Tuple[Analyzer, ...] = tuple(analyzers) if analyzers is not None else DEFAULT_ANALYZERS
        self.browser = browser
        self.insights = insights

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def audit(self, url: str, options: Optional[CrawlOptions] = None) -> AuditResult:
        """Синхронная обёртка над run_audit для CLI."""
        return asyncio.run(self.run_audit(url, options))

    async def run_audit(
        self,
        url: str,
        options: Optional[CrawlOptions] = None,
        *,
        job_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
        on_phase: Optional[PhaseCallback] = None,
    ) -> AuditResult:
        """Полный аудит сайта. JobFatalError пробрасывается, если стартовый URL недоступен."""
        options = options or CrawlOptions()
        job_id = job_id or uuid.uuid4().hex
        started_at = datetime.now(timezone.utc)
        notify = on_phase or (lambda phase, progress: None)
        logger.info("Audit %s started for %s", job_id, url)

        def _crawl_progress(done: int, total: int) -> None:
            notify("crawling", _CRAWL_SHARE * min(1.0, done / max(1, total)))

        notify("crawling", 0.0)
        async with AsyncCrawler(
            self.config, options, browser=self.browser, cancel_event=cancel_event, on_progress=_crawl_progress
        ) as crawler:
            crawl = await crawler.crawl(url)

        notify("analyzing", _CRAWL_SHARE)
        pages = self._normalize_all(crawl)
        reports = await self._analyze_all(pages, crawl.stats, notify)

        notify("grouping", _CRAWL_SHARE + _ANALYSIS_SHARE)
        issues = [issue for report in reports for result in report.results for issue in result.issues]
        groups = group(issues, crawl.site_structure.roles, self.config.priority)
        site_score = aggregate_site(reports, self.config.scoring.role_weights)

        insights: Optional[SiteInsights] = None
        if self.insights is not None:
            insights = await self.insights.collect(extract_domain(url), _top_keywords(pages))

        reasons = incomplete_reasons(crawl.stats, self.config.scoring.incomplete_error_ratio)
        result = AuditResult(
            job_id=job_id,
            url=url,
            platform=crawl.platform,
            site_structure=crawl.site_structure,
            site_score=site_score,
            analyzer_scores=analyzer_means(reports),
            pages=reports,
            issue_groups=groups,
            stats=crawl.stats,
            incomplete=bool(reasons),
            incomplete_reasons=reasons,
            insights=insights,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
        logger.info(
            "Audit %s finished: score %.1f (%s), %d pages, %d issue groups%s",
            job_id, site_score.score, site_score.category, len(reports), len(groups),
            " [incomplete]" if reasons else "",
        )
        notify("done", 1.0)
        return result

    # ------------------------------------------------------------------ #
    # Internals                                                          #
    # ------------------------------------------------------------------ #

    def _normalize_all(self, crawl: CrawlResult) -> List[PageCrawlResult]:
        structure = crawl.site_structure
        pages: List[PageCrawlResult] = []
        for output in crawl.pages:
            if not output.ok:
                continue
            try:
                pages.append(
                    normalize(
                        output,
                        role=structure.role_of(output.url),
                        broken_urls=crawl.failed_urls,
                        has_sitemap=structure.has_sitemap_xml,
                    )
                )
            except ValidationError as exc:
                crawl.stats.validation_errors += 1
                logger.warning("Skipping %s: %s", exc.url, exc.details)
        return pages

    async def _analyze_all(
        self, pages: List[PageCrawlResult], stats: CrawlStats, notify: PhaseCallback
    ) -> List[PageReport]:
        semaphore = asyncio.Semaphore(self.config.scoring.analysis_concurrency)
        done = 0

        async def _one(page: PageCrawlResult) -> PageReport:
            nonlocal done
            async with semaphore:
                results = await asyncio.gather(*(self._run_analyzer(a, page, stats) for a in self.analyzers))
            done += 1
            notify("analyzing", _CRAWL_SHARE + _ANALYSIS_SHARE * done / max(1, len(pages)))
            summary = aggregate(results, self.config.scoring.analyzer_weights)
            return PageReport(
                url=page.url,
                role=page.role,
                status_code=page.status_code,
                score=summary.score,
                category=summary.category,
                results=list(results),
                rendered=page.rendered,
                is_duplicate=page.is_duplicate,
                similar_url=page.similar_url,
            )

        # gather сохраняет порядок страниц, а значит и порядок обнаружения проблем
        return list(await asyncio.gather(*(_one(p) for p in pages)))

    async def _run_analyzer(self, analyzer: Analyzer, page: PageCrawlResult, stats: CrawlStats) -> AnalyzerResult:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(analyzer.analyze, page), timeout=self.config.scoring.analysis_timeout
            )
        except asyncio.TimeoutError:
            stats.analysis_errors += 1
            logger.warning("Analyzer %s timed out on %s", analyzer.name, page.url)
            return analyzer.neutral(
                page.url, "analysis_timeout", f"{analyzer.name} did not finish within the time limit"
            )
        except Exception:
            stats.analysis_errors += 1
            logger.exception("Analyzer %s failed on %s", analyzer.name, page.url)
            return analyzer.neutral(page.url, "analysis_error", f"{analyzer.name} failed on this page")


def _top_keywords(pages: Sequence[PageCrawlResult], n: int = 10) -> List[str]:
    totals: Counter[str] = Counter()
    for page in pages:
        for word, density in page.keyword_density.items():
            totals[word] += density
    return [word for word, _ in totals.most_common(n)]


# --------------------------------------------------------------------------- #
# Service boundary                                                            #
# --------------------------------------------------------------------------- #

JobState = Literal["pending", "running", "completed", "failed", "cancelled"]


class AuditStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_id: str
    url: str
    status: JobState
    progress: float = Field(0.0, ge=0, le=1.0)
    phase: str = "pending"
    error: Optional[str] = None


@dataclass
class _Job:
    job_id: str
    url: str
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    status: JobState = "pending"
    progress: float = 0.0
    phase: str = "pending"
    error: Optional[str] = None
    task: Optional[asyncio.Task] = None

    def snapshot(self) -> AuditStatus:
        return AuditStatus(
            job_id=self.job_id,
            url=self.url,
            status=self.status,
            progress=round(self.progress, 3),
            phase=self.phase,
            error=self.error,
        )


class AuditService:
    """Фоновые задания аудита в пределах одного event loop.

    Активные задания живут в ``_jobs``; после завершения от задания остаётся
    только снимок статуса, а хранится не больше ``history`` последних снимков.
    Результаты остаются в ``store``.
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        store: Optional[ResultStore] = None,
        *,
        history: int = 100,
    ) -> None:
        if history < 1:
            raise ValueError("history must be at least 1")
        self.engine = engine or Engine()
        self.store: ResultStore = store or InMemoryResultStore()
        self.history = history
        self._jobs: Dict[str, _Job] = {}
        self._finished: OrderedDict[str, AuditStatus] = OrderedDict()

    async def start_audit(self, url: str, options: Optional[CrawlOptions] = None) -> str:
        job = _Job(job_id=uuid.uuid4().hex, url=url)
        self._jobs[job.job_id] = job
        job.task = asyncio.create_task(self._run(job, options))
        return job.job_id

    def get_audit_status(self, job_id: str) -> AuditStatus:
        job = self._jobs.get(job_id)
        if job is not None:
            return job.snapshot()
        try:
            return self._finished[job_id]
        except KeyError:
            raise AuditNotFound(job_id) from None

    def get_audit_result(self, job_id: str) -> AuditResult:
        return self.store.load(job_id)

    def cancel_audit(self, job_id: str) -> bool:
        """Просит задание остановиться. Частичный результат сохраняется со статусом cancelled."""
        job = self._jobs.get(job_id)
        if job is None:
            # завершённое задание отменить нельзя, неизвестное даёт AuditNotFound
            self.get_audit_status(job_id)
            return False
        job.cancel_event.set()
        return True

    async def wait(self, job_id: str) -> AuditStatus:
        job = self._jobs.get(job_id)
        if job is not None and job.task is not None:
            await job.task
        return self.get_audit_status(job_id)

    def _finish(self, job: _Job) -> None:
        self._jobs.pop(job.job_id, None)
        self._finished[job.job_id] = job.snapshot()
        while len(self._finished) > self.history:
            evicted, _ = self._finished.popitem(last=False)
            logger.debug("Dropped status of finished audit %s", evicted)

    async def _run(self, job: _Job, options: Optional[CrawlOptions]) -> None:
        def _on_phase(phase: str, progress: float) -> None:
            job.phase = phase
            job.progress = max(job.progress, progress)

        job.status = "running"
        try:
            result = await self.engine.run_audit(
                job.url, options, job_id=job.job_id, cancel_event=job.cancel_event, on_phase=_on_phase
            )
        except JobFatalError as exc:
            job.status, job.error = "failed", str(exc)
            logger.error("Audit %s failed: %s", job.job_id, exc)
        except Exception as exc:
            job.status, job.error = "failed", f"unexpected error: {exc}"
            logger.exception("Audit %s crashed", job.job_id)
        else:
            self.store.save(job.job_id, result)
            job.status = "cancelled" if result.stats.cancelled else "completed"
            job.phase, job.progress = "done", 1.0
        finally:
            # задача снята извне (asyncio.CancelledError)
            if job.status == "running":
                job.status = "cancelled"
            self._finish(job)
