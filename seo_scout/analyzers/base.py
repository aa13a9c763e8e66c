# File: seo_scout/analyzers/base.py
"""seo_scout.analyzers.base: общий интерфейс анализаторов и модель проблем.

Анализатор состоит из набора проверок. Каждая проверка получает
PageCrawlResult и возвращает Factor (оценка 0..100, вес, проблемы) или None,
если к странице неприменима. AnalyzerDataError превращается в нейтральную
оценку и проблему низкой важности, поэтому одна неудачная проверка не
обнуляет отчёт.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, ClassVar, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from seo_scout.errors import AnalyzerDataError
from seo_scout.normalizer import PageCrawlResult

__all__ = (
    "NEUTRAL_SCORE",
    "Severity",
    "IssueCategory",
    "ScoreCategory",
    "Issue",
    "Factor",
    "AnalyzerResult",
    "Analyzer",
    "categorize",
)

NEUTRAL_SCORE = 50.0

ScoreCategory = Literal["excellent", "good", "needs-work", "poor"]


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class IssueCategory(str, Enum):
    CONTENT = "content"
    TECHNICAL = "technical"
    LOCAL = "local"
    UX = "ux"


class Issue(BaseModel):
    """Одна находка, привязанная ровно к одной странице."""
    model_config = ConfigDict(frozen=True)

    code: str
    category: IssueCategory
    severity: Severity
    page_url: str
    message: str
    suggestion: str = ""
    analyzer: str = ""


@dataclass(slots=True)
class Factor:
    name: str
    score: float
    weight: float = 1.0
    issues: List[Issue] = field(default_factory=list)


class AnalyzerResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    analyzer: str
    score: float = Field(ge=0, le=100)
    category: ScoreCategory
    factors: Dict[str, float] = Field(default_factory=dict)
    issues: List[Issue] = Field(default_factory=list)


def categorize(score: float) -> ScoreCategory:
    """Фиксированные пороги: >=90 excellent, >=70 good, >=50 needs-work, иначе poor."""
    if score >= 90:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 50:
        return "needs-work"
    return "poor"


Check = Callable[[PageCrawlResult], Optional[Factor]]


class Analyzer(ABC):
    """Common capability interface: ``analyze(PageCrawlResult) -> AnalyzerResult``."""

    name: ClassVar[str]
    category: ClassVar[IssueCategory]

    @abstractmethod
    def checks(self) -> Sequence[Check]:
        """Проверки анализатора в порядке вычисления."""

    def analyze(self, page: PageCrawlResult) -> AnalyzerResult:
        factors: List[Factor] = []
        for check in self.checks():
            try:
                factor = check(page)
            except AnalyzerDataError as exc:
                factor = self._missing_data(page, exc)
            if factor is not None:
                factors.append(factor)
        return self._build(factors)

    # helpers -------------------------------------------------------------

    def issue(
        self,
        page: PageCrawlResult,
        code: str,
        severity: Severity,
        message: str,
        suggestion: str = "",
    ) -> Issue:
        return Issue(
            code=code,
            category=self.category,
            severity=severity,
            page_url=page.url,
            message=message,
            suggestion=suggestion,
            analyzer=self.name,
        )

    def _missing_data(self, page: PageCrawlResult, exc: AnalyzerDataError) -> Factor:
        issue = self.issue(
            page,
            "missing_data",
            Severity.LOW,
            f"Could not evaluate {exc.field}: required page data is missing",
            "Check that the page renders its content without errors.",
        )
        return Factor(exc.field, NEUTRAL_SCORE, 1.0, [issue])

    def _build(self, factors: List[Factor]) -> AnalyzerResult:
        total_weight = sum(f.weight for f in factors)
        if total_weight <= 0:
            score = NEUTRAL_SCORE
        else:
            score = sum(max(0.0, min(100.0, f.score)) * f.weight for f in factors) / total_weight
        score = round(score, 1)
        return AnalyzerResult(
            analyzer=self.name,
            score=score,
            category=categorize(score),
            factors={f.name: round(f.score, 1) for f in factors},
            issues=[i for f in factors for i in f.issues],
        )

    @classmethod
    def neutral(cls, page_url: str, code: str, message: str) -> AnalyzerResult:
        """Нейтральный результат для таймаута или сбоя анализатора."""
        issue = Issue(
            code=code,
            category=cls.category,
            severity=Severity.LOW,
            page_url=page_url,
            message=message,
            suggestion="Re-run the audit; if the problem persists the page may be too large to analyze.",
            analyzer=cls.name,
        )
        return AnalyzerResult(
            analyzer=cls.name,
            score=NEUTRAL_SCORE,
            category=categorize(NEUTRAL_SCORE),
            issues=[issue],
        )
