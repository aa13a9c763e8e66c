"""Page analyzers and the default registry used by the engine."""

from typing import Tuple

from .base import Analyzer, AnalyzerResult, Factor, Issue, IssueCategory, Severity, categorize
from .content_quality import ContentQualityAnalyzer
from .local_seo import LocalSeoAnalyzer
from .technical_seo import TechnicalSeoAnalyzer
from .ux_performance import UxPerformanceAnalyzer

DEFAULT_ANALYZERS: Tuple[Analyzer, ...] = (
    ContentQualityAnalyzer(),
    TechnicalSeoAnalyzer(),
    LocalSeoAnalyzer(),
    UxPerformanceAnalyzer(),
)

__all__ = [
    "Analyzer",
    "AnalyzerResult",
    "Factor",
    "Issue",
    "IssueCategory",
    "Severity",
    "categorize",
    "ContentQualityAnalyzer",
    "TechnicalSeoAnalyzer",
    "LocalSeoAnalyzer",
    "UxPerformanceAnalyzer",
    "DEFAULT_ANALYZERS",
]
