# File: seo_scout/analyzers/technical_seo.py
"""Technical SEO checks: titles, meta descriptions, indexability, security, links."""

from __future__ import annotations

import re
from typing import Optional, Sequence

from seo_scout.analyzers.base import Analyzer, Check, Factor, IssueCategory, Severity
from seo_scout.crawler.models import PageRole
from seo_scout.normalizer import PageCrawlResult
from seo_scout.utils import absolute_url, normalize_url

__all__ = ("TechnicalSeoAnalyzer",)

TITLE_RANGE = (30, 60)
DESCRIPTION_RANGE = (70, 160)

_HREFLANG_RE = re.compile(r"^(x-default|[a-z]{2,3}(-[a-z]{4})?(-([a-z]{2}|\d{3}))?)$", re.I)


class TechnicalSeoAnalyzer(Analyzer):
    name = "technical_seo"
    category = IssueCategory.TECHNICAL

    def checks(self) -> Sequence[Check]:
        return (
            self.title_tag,
            self.meta_description,
            self.canonical_tag,
            self.indexability,
            self.structured_data,
            self.transport_security,
            self.hreflang,
            self.redirects,
            self.duplicate_content,
            self.broken_links,
        )

    def title_tag(self, page: PageCrawlResult) -> Factor:
        title = page.title.strip()
        low, high = TITLE_RANGE
        if not title:
            issue = self.issue(
                page, "missing_title", Severity.HIGH, "Page has no title tag",
                f"Add a unique title of {low}-{high} characters.",
            )
            return Factor("title", 0, 2.0, [issue])
        length = len(title)
        if length < low:
            issue = self.issue(
                page, "title_too_short", Severity.MEDIUM, f"Title is {length} characters long (min {low})",
                "Make the title more descriptive and include the main keyword.",
            )
            return Factor("title", 60, 2.0, [issue])
        if length > high:
            issue = self.issue(
                page, "title_too_long", Severity.LOW, f"Title is {length} characters long (max {high})",
                "Shorten the title so it is not truncated in search results.",
            )
            return Factor("title", 75, 2.0, [issue])
        return Factor("title", 100, 2.0)

    def meta_description(self, page: PageCrawlResult) -> Factor:
        description = (page.meta_description or "").strip()
        low, high = DESCRIPTION_RANGE
        if not description:
            issue = self.issue(
                page, "missing_meta_description", Severity.MEDIUM, "Page has no meta description",
                f"Write a compelling meta description of {low}-{high} characters.",
            )
            return Factor("meta_description", 0, 1.5, [issue])
        length = len(description)
        if length < low:
            issue = self.issue(
                page, "meta_description_too_short", Severity.LOW,
                f"Meta description is {length} characters long (min {low})",
                "Expand the description with a clear summary and call to action.",
            )
            return Factor("meta_description", 70, 1.5, [issue])
        if length > high:
            issue = self.issue(
                page, "meta_description_too_long", Severity.LOW,
                f"Meta description is {length} characters long (max {high})",
                "Trim the description so it is not cut off in search results.",
            )
            return Factor("meta_description", 80, 1.5, [issue])
        return Factor("meta_description", 100, 1.5)

    def canonical_tag(self, page: PageCrawlResult) -> Factor:
        if not page.has_canonical:
            issue = self.issue(
                page, "missing_canonical", Severity.LOW, "Page has no canonical tag",
                "Add a self-referencing canonical link to avoid duplicate URLs.",
            )
            return Factor("canonical", 60, 1.0, [issue])
        target = absolute_url(page.final_url, page.canonical or "")
        if target and normalize_url(target) != normalize_url(page.final_url):
            issue = self.issue(
                page, "canonical_mismatch", Severity.MEDIUM,
                f"Canonical points to another URL: {target}",
                "Make sure the canonical URL is the preferred version of this page.",
            )
            return Factor("canonical", 50, 1.0, [issue])
        return Factor("canonical", 100, 1.0)

    def indexability(self, page: PageCrawlResult) -> Factor:
        if page.is_noindex:
            severity = Severity.HIGH if page.role is not PageRole.OTHER else Severity.MEDIUM
            issue = self.issue(
                page, "noindex", severity, "Page is excluded from search by a robots noindex directive",
                "Remove noindex if this page should appear in search results.",
            )
            return Factor("indexability", 0, 2.0, [issue])
        return Factor("indexability", 100, 2.0)

    def structured_data(self, page: PageCrawlResult) -> Factor:
        types = [t for t in page.schema_types if t != "invalid"]
        issues = []
        if "invalid" in page.schema_types:
            issues.append(self.issue(
                page, "invalid_structured_data", Severity.MEDIUM, "Page contains JSON-LD that cannot be parsed",
                "Fix the JSON syntax in the structured data block.",
            ))
        if not types:
            issues.append(self.issue(
                page, "missing_structured_data", Severity.LOW, "Page has no structured data",
                "Add schema.org markup (Organization, LocalBusiness, Service, FAQPage) where relevant.",
            ))
            return Factor("structured_data", 20 if len(issues) > 1 else 30, 1.0, issues)
        return Factor("structured_data", 70 if issues else 100, 1.0, issues)

    def transport_security(self, page: PageCrawlResult) -> Factor:
        issues = []
        score = 100.0
        if not page.has_https:
            score -= 60
            issues.append(self.issue(
                page, "no_https", Severity.HIGH, "Page is served over plain HTTP",
                "Serve the whole site over HTTPS and redirect HTTP requests.",
            ))
        elif page.has_mixed_content:
            score -= 30
            issues.append(self.issue(
                page, "mixed_content", Severity.MEDIUM, "HTTPS page loads resources over HTTP",
                "Load every script, image and stylesheet over HTTPS.",
            ))
        if not page.has_security_headers:
            score -= 15
            issues.append(self.issue(
                page, "missing_security_headers", Severity.LOW, "Response has no security headers",
                "Send Strict-Transport-Security and Content-Security-Policy headers.",
            ))
        return Factor("security", max(score, 0), 1.5, issues)

    def hreflang(self, page: PageCrawlResult) -> Optional[Factor]:
        if not page.hreflangs:
            return None
        bad = [entry.get("lang", "") for entry in page.hreflangs if not _HREFLANG_RE.match(entry.get("lang", ""))]
        if not bad:
            return Factor("hreflang", 100, 0.5)
        issue = self.issue(
            page, "invalid_hreflang", Severity.LOW,
            f"{len(bad)} hreflang values are not valid language codes",
            "Use ISO 639-1 language codes with optional ISO 3166-1 region codes.",
        )
        return Factor("hreflang", 40, 0.5, [issue])

    def redirects(self, page: PageCrawlResult) -> Optional[Factor]:
        if not page.redirected:
            return None
        issue = self.issue(
            page, "redirected_url", Severity.LOW, f"URL redirects to {page.final_url}",
            "Link directly to the final URL to avoid redirect hops.",
        )
        return Factor("redirects", 70, 0.5, [issue])

    def duplicate_content(self, page: PageCrawlResult) -> Optional[Factor]:
        if not page.is_duplicate:
            return None
        issue = self.issue(
            page, "duplicate_content", Severity.MEDIUM,
            f"Content is {round(page.similarity * 100)}% similar to {page.similar_url}",
            "Make the page unique or point its canonical to the original.",
        )
        return Factor("duplicate_content", 20, 1.5, [issue])

    def broken_links(self, page: PageCrawlResult) -> Optional[Factor]:
        if not page.links.internal:
            return None
        broken = page.links.broken
        if not broken:
            return Factor("internal_links", 100, 1.0)
        share = len(broken) / len(page.links.internal)
        issue = self.issue(
            page, "broken_internal_links", Severity.HIGH if share >= 0.2 else Severity.MEDIUM,
            f"Page links to {len(broken)} broken internal URLs",
            "Fix or remove links that point to missing pages.",
        )
        return Factor("internal_links", round(max(0.0, 100 - share * 200)), 1.0, [issue])
