# File: seo_scout/analyzers/local_seo.py
"""
Local SEO checks.

Проверки ориентированы на сайты местного бизнеса: NAP (name, address, phone),
способы связи, разметка LocalBusiness и полнота страниц локаций.
"""

from __future__ import annotations

from typing import Optional, Sequence

from seo_scout.analyzers.base import Analyzer, Check, Factor, IssueCategory, Severity
from seo_scout.crawler.models import PageRole
from seo_scout.normalizer import PageCrawlResult

__all__ = ("LocalSeoAnalyzer",)

_KEY_ROLES = (PageRole.HOMEPAGE, PageRole.CONTACT, PageRole.LOCATION, PageRole.SERVICE_AREA)
_LOCATION_ROLES = (PageRole.LOCATION, PageRole.SERVICE_AREA)


class LocalSeoAnalyzer(Analyzer):
    name = "local_seo"
    category = IssueCategory.LOCAL

    def checks(self) -> Sequence[Check]:
        return (
            self.nap_completeness,
            self.nap_consistency,
            self.contact_methods,
            self.local_business_schema,
            self.location_page,
            self.business_hours,
        )

    def nap_completeness(self, page: PageCrawlResult) -> Factor:
        parts = {
            "business name": page.has_business_name,
            "address": page.has_address,
            "phone number": page.has_phone_number,
        }
        missing = [label for label, present in parts.items() if not present]
        if not missing:
            return Factor("nap", 100, 2.0)
        key_page = page.role in _KEY_ROLES
        if len(missing) == 3:
            severity = Severity.HIGH if key_page else Severity.LOW
        else:
            severity = Severity.MEDIUM if key_page else Severity.LOW
        issue = self.issue(
            page, "incomplete_nap", severity,
            f"Business details are incomplete: missing \"{', '.join(missing)}\"",
            "Show the business name, address and phone number consistently on every key page.",
        )
        return Factor("nap", round(100 * (3 - len(missing)) / 3), 2.0, [issue])

    def nap_consistency(self, page: PageCrawlResult) -> Optional[Factor]:
        if len(page.phone_numbers) <= 1:
            return None
        count = len(page.phone_numbers)
        issue = self.issue(
            page, "inconsistent_phone", Severity.MEDIUM if count > 2 else Severity.LOW,
            f"Page lists {count} different phone numbers",
            "Use one primary phone number so search engines can match your listing.",
        )
        return Factor("nap_consistency", 60 if count == 2 else 30, 1.0, [issue])

    def contact_methods(self, page: PageCrawlResult) -> Factor:
        methods = sum((page.has_phone_number, bool(page.emails), page.has_contact_form, page.has_map_embed))
        if methods >= 2:
            return Factor("contact_methods", 100, 1.0)
        if page.role is PageRole.CONTACT:
            severity = Severity.HIGH if methods == 0 else Severity.MEDIUM
        else:
            severity = Severity.LOW
        issue = self.issue(
            page, "few_contact_methods", severity,
            f"Page offers {methods} ways to get in touch",
            "Offer a phone number, email, contact form or map so visitors can reach you.",
        )
        return Factor("contact_methods", 50 * methods, 1.0, [issue])

    def local_business_schema(self, page: PageCrawlResult) -> Optional[Factor]:
        if page.role not in _KEY_ROLES:
            return None
        if page.has_local_business_schema:
            return Factor("local_business_schema", 100, 1.5)
        issue = self.issue(
            page, "missing_local_business_schema",
            Severity.HIGH if page.role is PageRole.HOMEPAGE else Severity.MEDIUM,
            "No LocalBusiness structured data found",
            "Add LocalBusiness JSON-LD with name, address, phone, hours and geo coordinates.",
        )
        return Factor("local_business_schema", 0, 1.5, [issue])

    def location_page(self, page: PageCrawlResult) -> Optional[Factor]:
        if page.role not in _LOCATION_ROLES:
            return None
        score = 100.0
        issues = []
        if not page.has_map_embed:
            score -= 30
            issues.append(self.issue(
                page, "location_missing_map", Severity.LOW, "Location page has no embedded map",
                "Embed a map of the location or service area.",
            ))
        if not page.has_address and page.role is PageRole.LOCATION:
            score -= 40
            issues.append(self.issue(
                page, "location_missing_address", Severity.MEDIUM, "Location page has no street address",
                "Show the full address of this location.",
            ))
        if page.word_count < 250:
            score -= 30
            issues.append(self.issue(
                page, "location_thin", Severity.MEDIUM,
                f"Location page has only {page.word_count} words of local content",
                "Describe the area served, local projects, landmarks and testimonials.",
            ))
        return Factor("location_page", max(score, 0), 1.5, issues)

    def business_hours(self, page: PageCrawlResult) -> Optional[Factor]:
        if page.role not in (PageRole.HOMEPAGE, PageRole.CONTACT, PageRole.LOCATION):
            return None
        if page.has_business_hours:
            return Factor("business_hours", 100, 0.5)
        issue = self.issue(
            page, "missing_business_hours", Severity.LOW, "Opening hours are not listed",
            "List opening hours on the page and in LocalBusiness markup.",
        )
        return Factor("business_hours", 40, 0.5, [issue])
