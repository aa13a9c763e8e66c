# File: seo_scout/analyzers/content_quality.py
"""Content quality: depth, heading hierarchy, keywords, readability, E-E-A-T signals."""

from __future__ import annotations

from typing import Dict, Optional, Sequence

from seo_scout.analyzers.base import Analyzer, Check, Factor, IssueCategory, Severity
from seo_scout.crawler.models import PageRole
from seo_scout.errors import AnalyzerDataError
from seo_scout.normalizer import PageCrawlResult

__all__ = ("ContentQualityAnalyzer", "MIN_WORDS")

MIN_WORDS: Dict[PageRole, int] = {
    PageRole.HOMEPAGE: 300,
    PageRole.SERVICE: 500,
    PageRole.LOCATION: 400,
    PageRole.SERVICE_AREA: 400,
    PageRole.CONTACT: 200,
    PageRole.OTHER: 300,
}

_STUFFING_DENSITY = 5.0


class ContentQualityAnalyzer(Analyzer):
    name = "content_quality"
    category = IssueCategory.CONTENT

    def checks(self) -> Sequence[Check]:
        return (
            self.content_depth,
            self.heading_hierarchy,
            self.keyword_usage,
            self.readability,
            self.expertise_signals,
            self.content_structure,
        )

    def content_depth(self, page: PageCrawlResult) -> Factor:
        minimum = MIN_WORDS.get(page.role, 300)
        words = page.word_count
        if words >= minimum:
            return Factor("content_depth", 100, 2.0)
        ratio = words / minimum
        if ratio < 0.3:
            severity = Severity.HIGH
        elif ratio < 0.7:
            severity = Severity.MEDIUM
        else:
            severity = Severity.LOW
        issue = self.issue(
            page,
            "thin_content",
            severity,
            f"Page has {words} words, below the recommended {minimum} for this page type",
            "Expand the page with useful, specific information for visitors.",
        )
        return Factor("content_depth", round(ratio * 100), 2.0, [issue])

    def heading_hierarchy(self, page: PageCrawlResult) -> Factor:
        h = page.headings
        issues = []
        score = 100.0
        if not h.h1:
            score -= 50
            issues.append(self.issue(
                page, "missing_h1", Severity.HIGH, "Page has no H1 heading",
                "Add a single descriptive H1 that states the page topic.",
            ))
        elif len(h.h1) > 1:
            score -= 20
            issues.append(self.issue(
                page, "multiple_h1", Severity.MEDIUM, f"Page has {len(h.h1)} H1 headings",
                "Keep one H1 and demote the others to H2.",
            ))
        levels = [bool(h.h1), bool(h.h2), bool(h.h3), bool(h.h4), bool(h.h5), bool(h.h6)]
        deepest = max((i for i, present in enumerate(levels) if present), default=-1)
        if any(not levels[i] for i in range(1, deepest)):
            score -= 20
            issues.append(self.issue(
                page, "skipped_heading_level", Severity.LOW, "Heading levels are skipped in the page outline",
                "Use headings in order (H2 after H1, H3 after H2) to keep a clear outline.",
            ))
        if page.word_count >= 300 and not h.h2:
            score -= 15
            issues.append(self.issue(
                page, "no_subheadings", Severity.LOW, "Long page has no H2 subheadings",
                "Break the content into sections with H2 subheadings.",
            ))
        return Factor("heading_hierarchy", max(score, 0), 1.5, issues)

    def keyword_usage(self, page: PageCrawlResult) -> Optional[Factor]:
        if page.word_count < 50:
            return None
        if not page.keyword_density:
            raise AnalyzerDataError("keyword_density")
        top_word, top_density = next(iter(page.keyword_density.items()))
        issues = []
        score = 100.0
        top_terms = list(page.keyword_density)[:3]
        title = page.title.lower()
        h1 = " ".join(page.headings.h1).lower()
        if not any(term in title for term in top_terms):
            score -= 25
            issues.append(self.issue(
                page, "keyword_missing_title", Severity.MEDIUM,
                f"Main topic terms \"{', '.join(top_terms)}\" do not appear in the title",
                "Include the primary keyword near the start of the title.",
            ))
        if h1 and not any(term in h1 for term in top_terms):
            score -= 15
            issues.append(self.issue(
                page, "keyword_missing_h1", Severity.LOW,
                "Main topic terms do not appear in the H1",
                "Use the primary keyword in the H1 heading.",
            ))
        if top_density > _STUFFING_DENSITY:
            score -= 30
            issues.append(self.issue(
                page, "keyword_stuffing", Severity.MEDIUM,
                f"Keyword \"{top_word}\" makes up {top_density}% of the text",
                "Write naturally and use synonyms instead of repeating one keyword.",
            ))
        return Factor("keyword_usage", max(score, 0), 1.0, issues)

    def readability(self, page: PageCrawlResult) -> Optional[Factor]:
        if page.word_count < 100:
            return None
        if page.readability_score is None:
            raise AnalyzerDataError("readability_score")
        ease = page.readability_score
        if ease >= 60:
            return Factor("readability", 100, 1.0)
        if ease >= 30:
            issue = self.issue(
                page, "hard_to_read", Severity.LOW,
                f"Readability score is {ease} (fairly difficult)",
                "Shorten sentences and prefer plain words.",
            )
            return Factor("readability", 70, 1.0, [issue])
        issue = self.issue(
            page, "hard_to_read", Severity.MEDIUM,
            f"Readability score is {ease} (very difficult)",
            "Shorten sentences and prefer plain words.",
        )
        return Factor("readability", 40, 1.0, [issue])

    def expertise_signals(self, page: PageCrawlResult) -> Factor:
        score = 100.0
        issues = []
        if not page.has_credentials:
            score -= 40
            issues.append(self.issue(
                page, "no_credentials", Severity.LOW if page.role is PageRole.OTHER else Severity.MEDIUM,
                "No credentials, licensing or experience signals found",
                "Mention licenses, certifications, awards or years of experience.",
            ))
        if not page.has_author and page.role is PageRole.OTHER and page.word_count >= 300:
            score -= 30
            issues.append(self.issue(
                page, "no_author", Severity.LOW, "Article content has no author attribution",
                "Add an author byline with a short bio.",
            ))
        return Factor("expertise_signals", max(score, 0), 1.0, issues)

    def content_structure(self, page: PageCrawlResult) -> Optional[Factor]:
        if page.word_count < 150:
            return None
        s = page.content_structure
        present = sum((s.has_lists, s.has_table, s.has_faq, s.has_video, s.has_emphasis))
        if present >= 2:
            return Factor("content_structure", 100, 0.5)
        issue = self.issue(
            page, "flat_structure", Severity.LOW, "Content is a wall of text with little formatting",
            "Use lists, tables, FAQs or emphasis to make the content scannable.",
        )
        return Factor("content_structure", 50 + 25 * present, 0.5, [issue])
