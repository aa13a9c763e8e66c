# File: tests/test_aggregator.py
from datetime import datetime, timezone

import pytest

from seo_scout.aggregator import AuditResult, PageReport, aggregate, aggregate_site, analyzer_means
from seo_scout.analyzers.base import AnalyzerResult, Issue, IssueCategory, Severity, categorize
from seo_scout.crawler.models import CrawlStats, PageRole, SiteStructure
from seo_scout.grouping import group


def result(name: str, score: float, issues=()) -> AnalyzerResult:
    return AnalyzerResult(analyzer=name, score=score, category=categorize(score), issues=list(issues))


@pytest.mark.parametrize(
    "scores,expected",
    [
        ([100, 100, 100], (100.0, "excellent")),
        ([0, 0], (0.0, "poor")),
        ([], (0.0, "poor")),
        ([80, 60], (70.0, "good")),
    ],
)
def test_aggregate(scores, expected):
    summary = aggregate([result(f"a{i}", s) for i, s in enumerate(scores)])
    assert (summary.score, summary.category) == expected


def test_aggregate_weights():
    results = [result("content_quality", 80), result("technical_seo", 40)]
    summary = aggregate(results, {"content_quality": 3.0, "technical_seo": 1.0})
    assert summary.score == 70.0
    # unknown analyzers weigh 1.0
    assert aggregate(results, {"other": 5.0}).score == 60.0


def test_aggregate_site_uses_role_weights():
    pages = [
        PageReport(url="https://acme.example/", role=PageRole.HOMEPAGE, score=90.0, category="excellent"),
        PageReport(url="https://acme.example/blog", role=PageRole.OTHER, score=30.0, category="poor"),
    ]
    assert aggregate_site(pages).score == 60.0
    assert aggregate_site(pages, {"homepage": 2.0, "other": 1.0}).score == 70.0
    assert aggregate_site([]).category == "poor"


def test_analyzer_means():
    pages = [
        PageReport(url="https://acme.example/a", results=[result("ux", 80), result("local", 50)]),
        PageReport(url="https://acme.example/b", results=[result("ux", 60)]),
    ]
    assert analyzer_means(pages) == {"ux": 70.0, "local": 50.0}


def test_audit_result_json_round_trip():
    issue = Issue(
        code="missing_title", category=IssueCategory.TECHNICAL, severity=Severity.HIGH,
        page_url="https://acme.example/", message="Page has no title tag", analyzer="technical_seo",
    )
    structure = SiteStructure()
    structure.add("https://acme.example/", PageRole.HOMEPAGE)
    page = PageReport(
        url="https://acme.example/", role=PageRole.HOMEPAGE, status_code=200, score=40.0, category="poor",
        results=[result("technical_seo", 40.0, [issue])],
    )
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    audit = AuditResult(
        job_id="abc123",
        url="https://acme.example/",
        site_structure=structure,
        site_score=aggregate_site([page]),
        analyzer_scores=analyzer_means([page]),
        pages=[page],
        issue_groups=group([issue], structure.roles),
        stats=CrawlStats(pages_crawled=1, started_at=now, finished_at=now),
        started_at=now,
        finished_at=now,
    )

    restored = AuditResult.from_json(audit.to_json(pretty=True))
    assert restored == audit
    assert restored.pages[0].issue_count == 1
    assert restored.top_issues(1)[0].code == "missing_title"
    assert "\n" not in audit.to_json()
