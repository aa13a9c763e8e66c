# File: seo_scout/analyzers/ux_performance.py
"""UX and performance checks built from response timing, page weight and markup."""

from __future__ import annotations

from typing import Optional, Sequence

from seo_scout.analyzers.base import Analyzer, Check, Factor, IssueCategory, Severity
from seo_scout.normalizer import PageCrawlResult

__all__ = ("UxPerformanceAnalyzer",)

# response time in ms: good / acceptable
LOAD_TIME_MS = (800.0, 2500.0)
# HTML weight in bytes: good / acceptable
PAGE_WEIGHT = (500_000, 2_000_000)


class UxPerformanceAnalyzer(Analyzer):
    name = "ux_performance"
    category = IssueCategory.UX

    def checks(self) -> Sequence[Check]:
        return (
            self.load_time,
            self.page_weight,
            self.mobile_viewport,
            self.image_alt,
            self.document_language,
            self.form_labels,
            self.navigation,
            self.large_images,
        )

    def load_time(self, page: PageCrawlResult) -> Factor:
        good, acceptable = LOAD_TIME_MS
        ms = page.response_time
        if ms <= good:
            return Factor("load_time", 100, 2.0)
        if ms <= acceptable:
            issue = self.issue(
                page, "slow_response", Severity.LOW, f"Server responded in {round(ms)} ms",
                "Enable caching and compression to reduce response time.",
            )
            return Factor("load_time", 70, 2.0, [issue])
        issue = self.issue(
            page, "slow_response", Severity.HIGH, f"Server responded in {round(ms)} ms",
            "Investigate slow server processing, enable caching and use a CDN.",
        )
        return Factor("load_time", 30, 2.0, [issue])

    def page_weight(self, page: PageCrawlResult) -> Factor:
        good, acceptable = PAGE_WEIGHT
        size = page.page_size
        if size <= good:
            return Factor("page_weight", 100, 1.0)
        kb = size // 1024
        if size <= acceptable:
            issue = self.issue(
                page, "heavy_page", Severity.LOW, f"HTML document weighs {kb} KB",
                "Remove inline scripts and styles that are not needed on this page.",
            )
            return Factor("page_weight", 70, 1.0, [issue])
        issue = self.issue(
            page, "heavy_page", Severity.MEDIUM, f"HTML document weighs {kb} KB",
            "Split the page or load heavy sections lazily.",
        )
        return Factor("page_weight", 30, 1.0, [issue])

    def mobile_viewport(self, page: PageCrawlResult) -> Factor:
        if page.mobile_compatible:
            return Factor("mobile_viewport", 100, 2.0)
        issue = self.issue(
            page, "missing_viewport", Severity.HIGH, "Page has no responsive viewport meta tag",
            'Add <meta name="viewport" content="width=device-width, initial-scale=1">.',
        )
        return Factor("mobile_viewport", 0, 2.0, [issue])

    def image_alt(self, page: PageCrawlResult) -> Optional[Factor]:
        images = page.images
        if images.total == 0:
            return None
        coverage = images.with_alt / images.total
        if images.without_alt == 0:
            return Factor("image_alt", 100, 1.0)
        issue = self.issue(
            page, "missing_alt_text", Severity.MEDIUM if coverage < 0.5 else Severity.LOW,
            f"{images.without_alt} of {images.total} images have no alt text",
            "Describe every meaningful image with alt text.",
        )
        return Factor("image_alt", round(coverage * 100), 1.0, [issue])

    def document_language(self, page: PageCrawlResult) -> Factor:
        if page.lang:
            return Factor("document_language", 100, 0.5)
        issue = self.issue(
            page, "missing_lang", Severity.LOW, "The html element has no lang attribute",
            'Declare the page language, for example <html lang="en">.',
        )
        return Factor("document_language", 50, 0.5, [issue])

    def form_labels(self, page: PageCrawlResult) -> Optional[Factor]:
        if page.form_fields == 0:
            return None
        unlabeled = page.form_fields - page.labeled_fields
        if unlabeled <= 0:
            return Factor("form_labels", 100, 1.0)
        issue = self.issue(
            page, "unlabeled_form_fields", Severity.MEDIUM,
            f"{unlabeled} of {page.form_fields} form fields have no label",
            "Associate a visible label or aria-label with every form field.",
        )
        return Factor("form_labels", round(100 * page.labeled_fields / page.form_fields), 1.0, [issue])

    def navigation(self, page: PageCrawlResult) -> Factor:
        if page.has_navigation:
            return Factor("navigation", 100, 1.0)
        issue = self.issue(
            page, "missing_navigation", Severity.MEDIUM, "Page has no navigation menu",
            "Add a <nav> menu linking to the main sections of the site.",
        )
        return Factor("navigation", 40, 1.0, [issue])

    def large_images(self, page: PageCrawlResult) -> Optional[Factor]:
        if page.images.total == 0:
            return None
        if page.images.large_images == 0:
            return Factor("image_size", 100, 0.5)
        issue = self.issue(
            page, "oversized_images", Severity.LOW,
            f"{page.images.large_images} images are larger than 1920 px",
            "Resize images to the size they are displayed at and serve modern formats.",
        )
        return Factor("image_size", 50, 0.5, [issue])
