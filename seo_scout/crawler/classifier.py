# seo_scout/crawler/classifier.py
"""
Классификация страниц по роли (главная, контакты, услуги, локации,
зоны обслуживания, прочие) по шаблонам URL и эвристикам содержимого.
"""
from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urlparse

from seo_scout.crawler import cms
from seo_scout.crawler.models import CrawlerOutput, PageRole
from seo_scout.utils import normalize_url

__all__ = ("classify", "rank_by_importance", "count_location_mentions")

_CONTACT_TERMS = ("contact", "get in touch", "reach us", "contact us")
_STRONG_CONTACT = (
    "contact form", "get in touch", "reach out", "contact information",
    "business hours", "office hours", "call us", "email us",
)

_SERVICE_AREA_URL = re.compile(r"/(service-areas?|coverage-area|we-serve|areas?-served|service-locations?)(/|$)")
_SERVICE_AREA_TITLE = (
    "service area", "areas served", "coverage area", "service locations", "we serve", "serving areas",
)
_SERVICE_AREA_BODY = (
    "service area", "areas served", "we serve", "coverage area", "service coverage",
    "service territory", "service locations", "service region", "service zone",
)
_DISTANCE_TERMS = re.compile(r"\b(miles?|radius|within|kilometers?|km)\b")

_LOCATION_URL = re.compile(r"/(locations?|areas?|cities|city|towns?)(/|$)")
_LOCATION_TITLE = ("location", "locations", "cities", "towns", "neighborhoods", "regions")
_LOCATION_BODY = (
    "we serve", "serving", "locations", "cities we serve", "coverage area", "service region",
)
_LOCATION_WORDS = re.compile(
    r"\b(city|cities|town|towns|county|counties|state|area|areas|region|regions|neighborhoods?"
    r"|districts?|suburbs?|metro|metropolitan|local|nearby)\b"
)

_SERVICE_URL = re.compile(r"/(services?|what-we-do|our-services?|offerings?|solutions?|products?)(/|$)")
_SERVICE_TITLE = (
    "service", "repair", "installation", "maintenance", "hvac", "plumbing", "electrical",
    "roofing", "cleaning", "landscaping", "construction", "renovation", "remodeling",
)
_SERVICE_BODY = (
    "we provide", "we offer", "our service", "our services", "professional", "certified",
    "licensed", "experienced", "installation", "repair", "maintenance", "replacement",
    "inspection", "consultation", "estimate", "quote",
)
_INDUSTRY_TERMS = (
    "air conditioning", "heating", "furnace", "heat pump", "plumbing", "drain cleaning",
    "water heater", "electrical", "wiring", "panel upgrade", "roofing", "siding", "flooring",
    "painting", "insulation", "carpet cleaning", "pressure washing", "lawn care", "tree service",
)


def count_location_mentions(text: str) -> int:
    return len(_LOCATION_WORDS.findall(text.lower()))


def _path(url: str) -> str:
    return urlparse(url).path.lower()


def _is_contact(path: str, title: str, body: str, has_form: bool) -> bool:
    if any(term.replace(" ", "-") in path or term in path for term in _CONTACT_TERMS):
        return True
    if any(term in title for term in _CONTACT_TERMS):
        return True
    if has_form and any(term in body for term in _CONTACT_TERMS):
        return True
    return sum(1 for term in _STRONG_CONTACT if term in body) >= 2


def _is_service_area(path: str, title: str, body: str) -> bool:
    if _SERVICE_AREA_URL.search(path):
        return True
    if any(term in title for term in _SERVICE_AREA_TITLE):
        return True
    hits = sum(1 for term in _SERVICE_AREA_BODY if term in body)
    return hits >= 1 and count_location_mentions(body) >= 2 and bool(_DISTANCE_TERMS.search(body))


def _is_location(path: str, title: str, body: str) -> bool:
    if _LOCATION_URL.search(path):
        return True
    if any(re.search(rf"\b{term}\b", title) for term in _LOCATION_TITLE):
        return True
    hits = sum(1 for term in _LOCATION_BODY if term in body)
    return hits >= 2 or (hits >= 1 and count_location_mentions(body) >= 3)


def _is_service(path: str, title: str, body: str) -> bool:
    if _SERVICE_URL.search(path):
        return True
    if any(term in title for term in _SERVICE_TITLE):
        return True
    indicators = sum(1 for term in _SERVICE_BODY if term in body)
    industry = sum(1 for term in _INDUSTRY_TERMS if term in body)
    return indicators >= 3 or (indicators >= 1 and industry >= 2) or industry >= 4


def _has_contact_form(output: CrawlerOutput) -> bool:
    html = output.html.lower()
    return "<form" in html and ("type=\"email\"" in html or "name=\"email\"" in html or "<textarea" in html)


def classify(output: CrawlerOutput, seed_key: Optional[str] = None) -> PageRole:
    """Определяет роль страницы. Порядок проверок задаёт приоритет ролей."""
    url_key = normalize_url(output.final_url or output.url)
    if seed_key is not None and (url_key == seed_key or normalize_url(output.url) == seed_key):
        return PageRole.HOMEPAGE
    path = _path(output.url)
    if path in ("", "/") or path.rstrip("/") in ("/index.html", "/index.php", "/home"):
        return PageRole.HOMEPAGE
    title = output.title.lower()
    body = output.content.text.lower()
    if _is_contact(path, title, body, _has_contact_form(output)):
        return PageRole.CONTACT
    if _is_service_area(path, title, body):
        return PageRole.SERVICE_AREA
    if _is_location(path, title, body):
        return PageRole.LOCATION
    if _is_service(path, title, body):
        return PageRole.SERVICE
    return PageRole.OTHER


def rank_by_importance(urls: Iterable[str], platform: Optional[str] = None) -> List[str]:
    """Упорядочивает URL из sitemap: сначала важные разделы, затем более короткие пути."""
    patterns: Sequence[str] = cms.priority_patterns(platform)

    def _score(item: tuple[int, str]) -> tuple[int, int, int]:
        idx, url = item
        path = _path(url)
        hit = next((i for i, p in enumerate(patterns) if p in path), len(patterns))
        depth = len([seg for seg in path.split("/") if seg])
        return hit, depth, idx

    return [url for _, url in sorted(enumerate(urls), key=_score)]
