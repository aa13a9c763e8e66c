# File: tests/test_analyzers.py
import pytest

from conftest import LOCAL_BUSINESS_HTML
from seo_scout.analyzers import (
    DEFAULT_ANALYZERS,
    ContentQualityAnalyzer,
    LocalSeoAnalyzer,
    TechnicalSeoAnalyzer,
    UxPerformanceAnalyzer,
    categorize,
)
from seo_scout.analyzers.base import NEUTRAL_SCORE, Severity
from seo_scout.crawler.models import PageRole
from seo_scout.normalizer import normalize

BARE_HTML = "<html><head></head><body><p>Hi</p></body></html>"


def codes(result):
    return {issue.code for issue in result.issues}


@pytest.mark.parametrize(
    "score,expected",
    [(100, "excellent"), (90, "excellent"), (89.9, "good"), (70, "good"), (50, "needs-work"), (49.9, "poor"), (0, "poor")],
)
def test_categorize_thresholds(score, expected):
    assert categorize(score) == expected


def test_default_registry():
    assert [a.name for a in DEFAULT_ANALYZERS] == ["content_quality", "technical_seo", "local_seo", "ux_performance"]


def test_good_page_passes_local_and_technical(page_factory):
    page = page_factory(LOCAL_BUSINESS_HTML, role=PageRole.HOMEPAGE)

    local = LocalSeoAnalyzer().analyze(page)
    assert local.score == 100.0
    assert local.category == "excellent"
    assert local.issues == []

    technical = TechnicalSeoAnalyzer().analyze(page)
    assert codes(technical) == {"missing_security_headers"}
    assert technical.category == "excellent"

    ux = UxPerformanceAnalyzer().analyze(page)
    assert codes(ux) == {"missing_alt_text"}
    assert ux.issues[0].severity is Severity.LOW


def test_security_headers_satisfy_check(page_factory):
    page = page_factory(LOCAL_BUSINESS_HTML, headers={"Strict-Transport-Security": "max-age=63072000"})
    assert "missing_security_headers" not in codes(TechnicalSeoAnalyzer().analyze(page))


def test_bare_page_collects_every_problem(page_factory):
    page = page_factory(BARE_HTML, url="http://acme.example/", role=PageRole.HOMEPAGE)

    technical = codes(TechnicalSeoAnalyzer().analyze(page))
    assert {"missing_title", "missing_meta_description", "missing_canonical",
            "missing_structured_data", "no_https", "missing_security_headers"} <= technical

    local = LocalSeoAnalyzer().analyze(page)
    assert codes(local) == {"incomplete_nap", "few_contact_methods", "missing_local_business_schema",
                            "missing_business_hours"}
    assert local.score == 4.0
    assert local.category == "poor"

    content = ContentQualityAnalyzer().analyze(page)
    by_code = {i.code: i for i in content.issues}
    assert by_code["thin_content"].severity is Severity.HIGH
    assert by_code["missing_h1"].severity is Severity.HIGH
    assert by_code["no_credentials"].severity is Severity.MEDIUM

    ux = codes(UxPerformanceAnalyzer().analyze(page))
    assert {"missing_viewport", "missing_lang", "missing_navigation"} <= ux


def test_issues_carry_page_and_analyzer(page_factory):
    page = page_factory(BARE_HTML, url="https://acme.example/about")
    for analyzer in DEFAULT_ANALYZERS:
        result = analyzer.analyze(page)
        assert 0 <= result.score <= 100
        for issue in result.issues:
            assert issue.page_url == "https://acme.example/about"
            assert issue.analyzer == analyzer.name
            assert issue.category is analyzer.category


def test_missing_data_becomes_neutral_factor(page_factory):
    page = page_factory(LOCAL_BUSINESS_HTML).model_copy(update={"word_count": 400, "keyword_density": {}})
    result = ContentQualityAnalyzer().analyze(page)
    assert result.factors["keyword_density"] == NEUTRAL_SCORE
    missing = [i for i in result.issues if i.code == "missing_data"]
    assert len(missing) == 1
    assert missing[0].severity is Severity.LOW


def test_keyword_stuffing(page_factory):
    html = "<html><head><title>Plumbing</title></head><body><h1>Plumbing</h1><p>" + "plumbing " * 60 + "</p></body></html>"
    result = ContentQualityAnalyzer().analyze(page_factory(html))
    assert "keyword_stuffing" in codes(result)
    assert "keyword_missing_title" not in codes(result)


def test_hard_to_read(page_factory):
    page = page_factory(LOCAL_BUSINESS_HTML).model_copy(update={"word_count": 200, "readability_score": 20.0})
    issue = next(i for i in ContentQualityAnalyzer().analyze(page).issues if i.code == "hard_to_read")
    assert issue.severity is Severity.MEDIUM


def test_thin_content_threshold_depends_on_role(page_factory):
    page = page_factory(LOCAL_BUSINESS_HTML).model_copy(update={"word_count": 250})
    contact = ContentQualityAnalyzer().analyze(page.model_copy(update={"role": PageRole.CONTACT}))
    service = ContentQualityAnalyzer().analyze(page.model_copy(update={"role": PageRole.SERVICE}))
    assert "thin_content" not in codes(contact)
    assert "thin_content" in codes(service)


def test_location_page_checks(page_factory):
    page = page_factory(LOCAL_BUSINESS_HTML, url="https://acme.example/locations/springfield", role=PageRole.LOCATION)
    found = codes(LocalSeoAnalyzer().analyze(page))
    assert "location_missing_map" in found
    assert "location_thin" in found
    assert "location_missing_address" not in found


def test_duplicate_and_redirect(page_factory):
    page = page_factory(LOCAL_BUSINESS_HTML, url="https://acme.example/old", final_url="https://acme.example/").model_copy(
        update={"is_duplicate": True, "similarity": 0.93, "similar_url": "https://acme.example/home"}
    )
    result = TechnicalSeoAnalyzer().analyze(page)
    duplicate = next(i for i in result.issues if i.code == "duplicate_content")
    assert duplicate.message == "Content is 93% similar to https://acme.example/home"
    assert "redirected_url" in codes(result)


def test_hreflang_validation(page_factory):
    head = '<link rel="alternate" hreflang="{}" href="/x">'
    good = page_factory(f"<html><head>{head.format('en-US')}{head.format('x-default')}</head></html>")
    bad = page_factory(f"<html><head>{head.format('english')}</head></html>")
    assert "invalid_hreflang" not in codes(TechnicalSeoAnalyzer().analyze(good))
    assert "invalid_hreflang" in codes(TechnicalSeoAnalyzer().analyze(bad))


def test_broken_internal_links(output_factory):
    page = normalize(output_factory(LOCAL_BUSINESS_HTML), broken_urls=["https://acme.example/contact"])
    result = TechnicalSeoAnalyzer().analyze(page)
    issue = next(i for i in result.issues if i.code == "broken_internal_links")
    assert issue.severity is Severity.HIGH
    assert result.factors["internal_links"] == 0


def test_slow_and_heavy_page(page_factory):
    page = page_factory(LOCAL_BUSINESS_HTML, elapsed_ms=3200).model_copy(update={"page_size": 3_000_000})
    result = UxPerformanceAnalyzer().analyze(page)
    by_code = {i.code: i for i in result.issues}
    assert by_code["slow_response"].severity is Severity.HIGH
    assert by_code["heavy_page"].severity is Severity.MEDIUM


def test_neutral_result():
    result = TechnicalSeoAnalyzer.neutral("https://acme.example/", "analysis_timeout", "Analysis timed out")
    assert result.score == NEUTRAL_SCORE
    assert result.category == "needs-work"
    assert result.analyzer == "technical_seo"
    assert [i.code for i in result.issues] == ["analysis_timeout"]
