# File: seo_scout/aggregator.py
"""seo_scout.aggregator: сводные оценки страниц и сайта, итоговый AuditResult."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from seo_scout.analyzers.base import AnalyzerResult, ScoreCategory, categorize
from seo_scout.crawler.models import CrawlStats, PageRole, PlatformInfo, SiteStructure
from seo_scout.grouping import IssueGroup
from seo_scout.providers import SiteInsights

__all__ = (
    "ScoreSummary",
    "PageReport",
    "AuditResult",
    "aggregate",
    "aggregate_site",
    "analyzer_means",
)


class ScoreSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: float = Field(ge=0, le=100)
    category: ScoreCategory


class PageReport(BaseModel):
    """Оценка одной страницы и результаты всех анализаторов."""
    model_config = ConfigDict(frozen=True)

    url: str
    role: PageRole = PageRole.OTHER
    status_code: Optional[int] = None
    score: float = 0.0
    category: ScoreCategory = "poor"
    results: List[AnalyzerResult] = Field(default_factory=list)
    rendered: bool = False
    is_duplicate: bool = False
    similar_url: Optional[str] = None

    @property
    def issue_count(self) -> int:
        return sum(len(r.issues) for r in self.results)


class AuditResult(BaseModel):
    """Итог аудита. Сериализуется в JSON и читается обратно без потерь."""
    model_config = ConfigDict(frozen=True)

    job_id: str
    url: str
    platform: Optional[PlatformInfo] = None
    site_structure: SiteStructure
    site_score: ScoreSummary
    analyzer_scores: Dict[str, float] = Field(default_factory=dict)
    pages: List[PageReport] = Field(default_factory=list)
    issue_groups: List[IssueGroup] = Field(default_factory=list)
    stats: CrawlStats
    incomplete: bool = False
    incomplete_reasons: List[str] = Field(default_factory=list)
    insights: Optional[SiteInsights] = None
    started_at: datetime
    finished_at: datetime

    def to_json(self, *, pretty: bool = False) -> str:
        return self.model_dump_json(indent=2 if pretty else None)

    @classmethod
    def from_json(cls, data: str | bytes) -> AuditResult:
        return cls.model_validate_json(data)

    def top_issues(self, n: int = 10) -> List[IssueGroup]:
        return self.issue_groups[:n]


def _summary(score: float) -> ScoreSummary:
    score = round(max(0.0, min(100.0, score)), 1)
    return ScoreSummary(score=score, category=categorize(score))


def aggregate(results: Iterable[AnalyzerResult], weights: Optional[Mapping[str, float]] = None) -> ScoreSummary:
    """Взвешенное среднее по имени анализатора; без весов все равны 1.0.

    Пустой вход даёт 0 / poor.
    """
    weights = weights or {}
    total = 0.0
    weight_sum = 0.0
    for result in results:
        w = weights.get(result.analyzer, 1.0)
        total += result.score * w
        weight_sum += w
    if weight_sum <= 0:
        return _summary(0.0)
    return _summary(total / weight_sum)


def aggregate_site(pages: Iterable[PageReport], role_weights: Optional[Mapping[str, float]] = None) -> ScoreSummary:
    """Средняя оценка страниц, взвешенная по роли страницы."""
    role_weights = role_weights or {}
    total = 0.0
    weight_sum = 0.0
    for page in pages:
        w = role_weights.get(page.role.value, 1.0)
        total += page.score * w
        weight_sum += w
    if weight_sum <= 0:
        return _summary(0.0)
    return _summary(total / weight_sum)


def analyzer_means(pages: Sequence[PageReport]) -> Dict[str, float]:
    """Средняя оценка каждого анализатора по всем страницам."""
    buckets: Dict[str, List[float]] = defaultdict(list)
    for page in pages:
        for result in page.results:
            buckets[result.analyzer].append(result.score)
    return {name: round(sum(scores) / len(scores), 1) for name, scores in buckets.items()}
