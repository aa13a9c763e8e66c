# seo_scout/crawler/models.py
"""
Data models for the SEOScout crawler.

``CrawlerOutput`` is the raw, page-level extraction result. It is validated
again by the normalizer, so every nested shape is declared here explicitly.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, NonNegativeInt


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PageRole(str, Enum):
    HOMEPAGE = "homepage"
    CONTACT = "contact"
    SERVICE = "service"
    LOCATION = "location"
    SERVICE_AREA = "service_area"
    OTHER = "other"


class MetaTags(BaseModel):
    description: Optional[str] = None
    robots: Optional[str] = None
    viewport: Optional[str] = None
    canonical: Optional[str] = None
    lang: Optional[str] = None
    generator: Optional[str] = None
    hreflang: List[Dict[str, str]] = Field(default_factory=list)
    og_tags: Dict[str, str] = Field(default_factory=dict)
    twitter_tags: Dict[str, str] = Field(default_factory=dict)


class PageContent(BaseModel):
    text: str = ""
    word_count: NonNegativeInt = 0
    paragraphs: List[str] = Field(default_factory=list)


class Headings(BaseModel):
    h1: List[str] = Field(default_factory=list)
    h2: List[str] = Field(default_factory=list)
    h3: List[str] = Field(default_factory=list)
    h4: List[str] = Field(default_factory=list)
    h5: List[str] = Field(default_factory=list)
    h6: List[str] = Field(default_factory=list)


class LinkSets(BaseModel):
    internal: List[str] = Field(default_factory=list)
    external: List[str] = Field(default_factory=list)


class ImageInfo(BaseModel):
    src: str
    alt: Optional[str] = None
    title: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


class SchemaBlock(BaseModel):
    type: str
    types: List[str] = Field(default_factory=list)
    json_data: Any = Field(default=None, alias="json")

    model_config = ConfigDict(populate_by_name=True)


class PerformanceInfo(BaseModel):
    load_time: NonNegativeFloat = 0.0
    resource_count: NonNegativeInt = 0
    resource_size: NonNegativeInt = 0


class SecurityInfo(BaseModel):
    has_https: bool = False
    has_mixed_content: bool = False
    has_security_headers: bool = False


class AccessibilityInfo(BaseModel):
    accessible_elements: NonNegativeInt = 0
    missing_alt: NonNegativeInt = 0
    has_aria: bool = False
    has_proper_heading_structure: bool = False


class CrawlerOutput(BaseModel):
    """Сырые данные одной загруженной страницы."""
    model_config = ConfigDict(extra="allow")

    url: str = Field(..., min_length=1)
    final_url: Optional[str] = None
    status: Literal["success", "error", "skipped"] = "success"
    status_code: Optional[int] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    response_time: NonNegativeFloat = 0.0
    timestamp: datetime = Field(default_factory=_utcnow)
    title: str = ""
    meta: MetaTags = Field(default_factory=MetaTags)
    content: PageContent = Field(default_factory=PageContent)
    headings: Headings = Field(default_factory=Headings)
    links: LinkSets = Field(default_factory=LinkSets)
    images: List[ImageInfo] = Field(default_factory=list)
    schema_blocks: List[SchemaBlock] = Field(default_factory=list)
    mobile_compatible: bool = False
    performance: PerformanceInfo = Field(default_factory=PerformanceInfo)
    security: SecurityInfo = Field(default_factory=SecurityInfo)
    accessibility: AccessibilityInfo = Field(default_factory=AccessibilityInfo)
    html: str = ""
    raw_html: str = ""
    rendered: bool = False
    platform: Optional[str] = None
    error: Optional[str] = None
    depth: NonNegativeInt = 0
    is_duplicate: bool = False
    similar_url: Optional[str] = None
    similarity: float = Field(0.0, ge=0.0, le=1.0)

    @classmethod
    def failed(
        cls,
        url: str,
        reason: str,
        *,
        status: Literal["error", "skipped"] = "error",
        status_code: Optional[int] = None,
        depth: int = 0,
    ) -> CrawlerOutput:
        return cls(url=url, status=status, status_code=status_code, error=reason, depth=depth)

    @property
    def ok(self) -> bool:
        return self.status == "success"


class CrawlStats(BaseModel):
    pages_crawled: int = 0
    pages_skipped: int = 0
    errors_encountered: int = 0
    robots_blocked: int = 0
    duplicates: int = 0
    rendered_pages: int = 0
    reached_max_pages: bool = False
    time_limited: bool = False
    cancelled: bool = False
    stop_reason: Optional[str] = None
    validation_errors: int = 0
    analysis_errors: int = 0
    started_at: datetime = Field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None

    @property
    def pages_attempted(self) -> int:
        return self.pages_crawled + self.pages_skipped


class SiteStructure(BaseModel):
    """Роли просканированных страниц."""

    homepage: Optional[str] = None
    contact_page: Optional[str] = None
    service_pages: List[str] = Field(default_factory=list)
    location_pages: List[str] = Field(default_factory=list)
    service_area_pages: List[str] = Field(default_factory=list)
    other_pages: List[str] = Field(default_factory=list)
    has_sitemap_xml: bool = False
    reached_max_pages: bool = False
    roles: Dict[str, PageRole] = Field(default_factory=dict)

    def add(self, url: str, role: PageRole) -> None:
        self.roles[url] = role
        if role is PageRole.HOMEPAGE:
            self.homepage = self.homepage or url
        elif role is PageRole.CONTACT:
            if self.contact_page is None:
                self.contact_page = url
            else:
                self.other_pages.append(url)
        elif role is PageRole.SERVICE:
            self.service_pages.append(url)
        elif role is PageRole.LOCATION:
            self.location_pages.append(url)
        elif role is PageRole.SERVICE_AREA:
            self.service_area_pages.append(url)
        else:
            self.other_pages.append(url)

    def role_of(self, url: str) -> PageRole:
        return self.roles.get(url, PageRole.OTHER)


class PlatformInfo(BaseModel):
    name: str
    confidence: float
    evidence: List[str] = Field(default_factory=list)
    framework: Optional[str] = None


class CrawlResult(BaseModel):
    homepage: CrawlerOutput
    pages: List[CrawlerOutput]
    site_structure: SiteStructure
    stats: CrawlStats
    platform: Optional[PlatformInfo] = None
    failed_urls: List[str] = Field(default_factory=list)
