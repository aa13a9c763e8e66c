# File: seo_scout/grouping.py
"""seo_scout.grouping: объединение похожих проблем и расчёт приоритета.

Проблемы с одинаковой сигнатурой (код + шаблон сообщения) сливаются в одну
группу. Приоритет растёт с важностью и числом затронутых страниц, но
логарифмически, поэтому одна массовая мелочь не вытесняет серьёзные находки.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from typing import Dict, Iterable, List, Literal, Mapping, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from seo_scout.analyzers.base import Issue, IssueCategory, Severity
from seo_scout.config import PrioritySettings
from seo_scout.crawler.models import PageRole

__all__ = ("IssueGroup", "template", "signature", "url_pattern", "priority", "group")

ImprovementContext = Literal["priority-ofi", "standard-ofi"]

HIGH_VALUE_ROLES = frozenset({PageRole.HOMEPAGE, PageRole.SERVICE, PageRole.CONTACT, PageRole.LOCATION})

_URL_RE = re.compile(r"https?://[^\s\"'<>)]+")
_QUOTED_RE = re.compile(r"\"[^\"]*\"|“[^”]*”")
_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)*")
_SPACE_RE = re.compile(r"\s+")
_SLUG_ID_RE = re.compile(r"^[a-z]+-\d+$")


class IssueGroup(BaseModel):
    signature: str
    code: str
    category: IssueCategory
    severity: Severity
    description: str
    suggestion: str = ""
    pages: List[str] = Field(default_factory=list)
    affected_pages: int = 0
    occurrences: int = 0
    priority: float = 0.0
    role_mix: Dict[str, int] = Field(default_factory=dict)
    is_template_issue: bool = False
    url_pattern: Optional[str] = None
    improvement_context: ImprovementContext = "standard-ofi"
    first_seen: int = 0


def template(message: str) -> str:
    """Заменяет URL, текст в кавычках и числа на плейсхолдеры."""
    text = _URL_RE.sub("{url}", message)
    text = _QUOTED_RE.sub("{text}", text)
    text = _NUMBER_RE.sub("{n}", text)
    return _SPACE_RE.sub(" ", text.lower()).strip()


def signature(issue: Issue) -> str:
    return f"{issue.code}:{template(issue.message)}"


def _segment(seg: str) -> str:
    if seg.isdigit() or _SLUG_ID_RE.match(seg) or len(seg) > 20:
        return "*"
    return seg


def url_pattern(url: str) -> str:
    """``/blog/2023/some-very-long-article-slug`` -> ``/blog/*/*``."""
    segments = [s for s in urlparse(url).path.split("/") if s]
    return "/" + "/".join(_segment(s.lower()) for s in segments)


def _parent_pattern(url: str) -> Optional[str]:
    segments = [s for s in urlparse(url).path.split("/") if s]
    if len(segments) < 2:
        return None
    return "/" + "/".join([_segment(s.lower()) for s in segments[:-1]] + ["*"])


def _template_pattern(pages: List[str], settings: PrioritySettings) -> Optional[str]:
    """Общий шаблон пути, покрывающий не менее template_pattern_share страниц."""
    if len(pages) < settings.template_min_pages:
        return None
    counts: Counter[str] = Counter(url_pattern(u) for u in pages)
    counts.update(p for p in (_parent_pattern(u) for u in pages) if p)
    # одна и та же главная не считается шаблоном
    counts.pop("/", None)
    if not counts:
        return None
    pattern, hits = max(counts.items(), key=lambda kv: (kv[1], kv[0].count("*") == 0))
    if hits / len(pages) >= settings.template_pattern_share:
        return pattern
    return None


def _context(severity: Severity, role_mix: Mapping[str, int], settings: PrioritySettings) -> ImprovementContext:
    total = sum(role_mix.values())
    high_value = sum(n for role, n in role_mix.items() if PageRole(role) in HIGH_VALUE_ROLES)
    if severity is Severity.HIGH and high_value > 0:
        return "priority-ofi"
    if severity.rank >= Severity.MEDIUM.rank and total and high_value / total >= settings.priority_role_share:
        return "priority-ofi"
    return "standard-ofi"


def priority(severity: Severity, category: IssueCategory, affected_pages: int, settings: PrioritySettings) -> float:
    sev_w = settings.severity_weights.get(severity.value, 1.0)
    cat_w = settings.category_importance.get(category.value, 1.0)
    return round(sev_w * cat_w * (1 + math.log(1 + affected_pages)), 4)


def group(
    issues: Iterable[Issue],
    roles: Optional[Mapping[str, PageRole]] = None,
    settings: Optional[PrioritySettings] = None,
) -> List[IssueGroup]:
    """Группирует проблемы и возвращает группы в порядке убывания приоритета.

    Порядок: priority, затем affected_pages, затем severity (все по убыванию),
    затем порядок первого обнаружения.
    """
    settings = settings or PrioritySettings()
    roles = roles or {}
    buckets: Dict[str, dict] = {}

    for index, issue in enumerate(issues):
        sig = signature(issue)
        bucket = buckets.get(sig)
        if bucket is None:
            bucket = buckets[sig] = {
                "first": issue,
                "severity": issue.severity,
                "pages": {},
                "occurrences": 0,
                "first_seen": index,
            }
        bucket["occurrences"] += 1
        bucket["pages"].setdefault(issue.page_url, None)
        if issue.severity.rank > bucket["severity"].rank:
            bucket["severity"] = issue.severity

    groups: List[IssueGroup] = []
    for sig, bucket in buckets.items():
        first: Issue = bucket["first"]
        pages = list(bucket["pages"])
        role_mix: Counter[str] = Counter(roles.get(u, PageRole.OTHER).value for u in pages)
        severity: Severity = bucket["severity"]
        pattern = _template_pattern(pages, settings)
        groups.append(
            IssueGroup(
                signature=sig,
                code=first.code,
                category=first.category,
                severity=severity,
                description=first.message,
                suggestion=first.suggestion,
                pages=pages,
                affected_pages=len(pages),
                occurrences=bucket["occurrences"],
                priority=priority(severity, first.category, len(pages), settings),
                role_mix=dict(role_mix),
                is_template_issue=pattern is not None,
                url_pattern=pattern,
                improvement_context=_context(severity, role_mix, settings),
                first_seen=bucket["first_seen"],
            )
        )

    groups.sort(key=lambda g: (-g.priority, -g.affected_pages, -g.severity.rank, g.first_seen))
    return groups
