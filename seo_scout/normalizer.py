# File: seo_scout/normalizer.py
"""seo_scout.normalizer: проверка CrawlerOutput и построение PageCrawlResult.

PageCrawlResult является единственным контрактом, который видят анализаторы.
Нормализатор работает по принципу fail closed: невалидный вход не
дополняется значениями по умолчанию, а отклоняется с ValidationError.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from bs4 import BeautifulSoup
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError

from seo_scout.crawler.models import CrawlerOutput, Headings, PageRole
from seo_scout.errors import ValidationError
from seo_scout.logger import logger
from seo_scout.utils import normalize_url

__all__ = (
    "PageLinks",
    "ImageSummary",
    "ContentStructure",
    "PageCrawlResult",
    "normalize",
    "flesch_reading_ease",
    "keyword_density",
)

_PHONE_RE = re.compile(r"(?<!\d)(?:\+?1[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}(?!\d)")
_INTL_PHONE_RE = re.compile(r"(?<![\w+])\+\d{1,3}(?:[\s.-]?\d{2,4}){2,5}(?!\d)")
_ADDRESS_RE = re.compile(
    r"\b\d{1,6}\s+(?:[A-Z][\w.]*\s+){1,4}"
    r"(?:street|st|avenue|ave|road|rd|boulevard|blvd|drive|dr|lane|ln|way|court|ct|place|pl|suite|parkway|pkwy|highway|hwy)\b\.?",
    re.I,
)
_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
_HOURS_RE = re.compile(
    r"\b(mon(day)?|tue(s|sday)?|wed(nesday)?|thu(rs|rsday)?|fri(day)?|sat(urday)?|sun(day)?)\b"
    r"[^.]{0,40}?\d{1,2}(:\d{2})?\s*(am|pm|a\.m\.|p\.m\.)",
    re.I,
)
_CREDENTIAL_RE = re.compile(
    r"\b(licensed|certified|insured|accredited|bonded|award[- ]winning|years of experience|\d+\+? years)\b", re.I
)
_SENTENCE_RE = re.compile(r"[.!?]+(?:\s|$)")
_WORD_RE = re.compile(r"[A-Za-zÀ-ÿА-Яа-яЁё']+")
_VOWEL_GROUP_RE = re.compile(r"[aeiouy]+")
_STOPWORDS = frozenset(
    """a an and are as at be but by for from has have in is it its of on or our that the their this to was we
    were will with you your us can all more not any about into than then also if so do does how what which who
    """.split()
)
# nested sections that must be present; defaults are never filled in for them
_REQUIRED_SECTIONS = ("url", "status", "meta", "content", "headings", "links", "images", "schema_blocks")
_LOCAL_BUSINESS_TYPES = frozenset(
    {"LocalBusiness", "Organization", "ProfessionalService", "HomeAndConstructionBusiness",
     "Plumber", "Electrician", "HVACBusiness", "RoofingContractor", "GeneralContractor",
     "Dentist", "Attorney", "LegalService", "MedicalBusiness", "Restaurant", "Store", "AutoRepair"}
)


class PageLinks(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    internal: List[str]
    external: List[str]
    broken: List[str] = Field(default_factory=list)


class ImageSummary(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    total: int
    with_alt: int
    without_alt: int
    large_images: int
    alt_texts: List[str] = Field(default_factory=list)


class ContentStructure(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    has_faq: bool = False
    has_table: bool = False
    has_lists: bool = False
    has_video: bool = False
    has_emphasis: bool = False


class PageCrawlResult(BaseModel):
    """Каноническое представление страницы для анализаторов."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str
    final_url: str
    status_code: Optional[int]
    role: PageRole = PageRole.OTHER
    platform: Optional[str] = None
    rendered: bool = False

    title: str
    meta_description: Optional[str]
    canonical: Optional[str]
    robots_meta: Optional[str]
    lang: Optional[str]
    viewport: Optional[str]
    hreflangs: List[Dict[str, str]]

    headings: Headings
    text: str
    word_count: int
    paragraph_count: int

    links: PageLinks
    images: ImageSummary
    schema_types: List[str]
    schema_names: List[str] = Field(default_factory=list)

    has_contact_form: bool
    has_phone_number: bool
    phone_numbers: List[str]
    has_address: bool
    has_business_name: bool
    has_nap: bool
    emails: List[str]
    has_business_hours: bool
    has_map_embed: bool
    has_author: bool
    has_credentials: bool
    has_social_tags: bool
    has_icon: bool
    has_amp_version: bool
    has_navigation: bool
    has_sitemap: bool
    form_fields: int
    labeled_fields: int

    has_https: bool
    has_mixed_content: bool
    has_security_headers: bool
    mobile_compatible: bool

    keyword_density: Dict[str, float]
    readability_score: Optional[float]
    content_structure: ContentStructure

    response_time: float
    page_size: int
    resource_count: int

    is_duplicate: bool = False
    similar_url: Optional[str] = None
    similarity: float = 0.0

    @property
    def has_canonical(self) -> bool:
        return bool(self.canonical)

    @property
    def has_robots_meta(self) -> bool:
        return bool(self.robots_meta)

    @property
    def is_noindex(self) -> bool:
        return "noindex" in (self.robots_meta or "").lower()

    @property
    def redirected(self) -> bool:
        return normalize_url(self.final_url) != normalize_url(self.url)

    @property
    def has_local_business_schema(self) -> bool:
        return any(t in _LOCAL_BUSINESS_TYPES for t in self.schema_types)


# --------------------------------------------------------------------------- #
# Text metrics                                                                #
# --------------------------------------------------------------------------- #


def _syllables(word: str) -> int:
    word = word.lower().strip("'")
    if len(word) <= 3:
        return 1
    word = re.sub(r"(?:es|ed|e)$", "", word)
    return max(1, len(_VOWEL_GROUP_RE.findall(word)))


def flesch_reading_ease(text: str) -> Optional[float]:
    """Flesch Reading Ease (0..100, выше значит проще). None для пустого текста."""
    words = _WORD_RE.findall(text)
    if not words:
        return None
    sentences = max(1, len(_SENTENCE_RE.findall(text)))
    syllables = sum(_syllables(w) for w in words)
    score = 206.835 - 1.015 * (len(words) / sentences) - 84.6 * (syllables / len(words))
    return round(max(0.0, min(100.0, score)), 1)


def keyword_density(text: str, top: int = 10) -> Dict[str, float]:
    """Доля (в процентах) самых частых значимых слов."""
    words = [w.lower() for w in _WORD_RE.findall(text)]
    if not words:
        return {}
    counts = Counter(w for w in words if len(w) > 2 and w not in _STOPWORDS)
    total = len(words)
    return {word: round(count * 100.0 / total, 2) for word, count in counts.most_common(top)}


# --------------------------------------------------------------------------- #
# Validation                                                                  #
# --------------------------------------------------------------------------- #


def _validate(output: Union[CrawlerOutput, Mapping[str, Any]]) -> CrawlerOutput:
    data = output.model_dump() if isinstance(output, CrawlerOutput) else output
    url = str(data.get("url", "<unknown>")) if isinstance(data, Mapping) else "<unknown>"
    if isinstance(data, Mapping):
        missing = [key for key in _REQUIRED_SECTIONS if key not in data]
        if missing:
            logger.warning("Rejected crawler output for %s: missing %s", url, ", ".join(missing))
            raise ValidationError(url, f"missing required fields: {', '.join(missing)}")
    try:
        return CrawlerOutput.model_validate(data)
    except SchemaError as exc:
        summary = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()[:5]
        )
        logger.warning("Rejected crawler output for %s: %s", url, summary)
        raise ValidationError(url, summary) from exc


def _schema_names(blocks: Iterable[Any]) -> List[str]:
    names: List[str] = []
    for block in blocks:
        data = block.json_data
        items = data if isinstance(data, list) else [data]
        for item in items:
            if isinstance(item, dict) and isinstance(item.get("name"), str):
                names.append(item["name"].strip())
    return names


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #


def normalize(
    output: Union[CrawlerOutput, Mapping[str, Any]],
    *,
    role: PageRole = PageRole.OTHER,
    broken_urls: Iterable[str] = (),
    has_sitemap: bool = False,
) -> PageCrawlResult:
    """Проверяет CrawlerOutput и строит PageCrawlResult.

    Для любого валидного успешного входа не бросает исключений; длины массивов
    (заголовки, ссылки, изображения, блоки разметки) совпадают с исходными.
    """
    page = _validate(output)
    if not page.ok:
        raise ValidationError(page.url, f"page status is {page.status}: {page.error or 'no content'}")

    soup = BeautifulSoup(page.html or "", "html.parser")
    text = page.content.text
    lower_text = text.lower()

    broken_keys = {normalize_url(u) for u in broken_urls}
    broken = [u for u in page.links.internal if normalize_url(u) in broken_keys]

    # images
    alt_texts = [img.alt.strip() for img in page.images if img.alt and img.alt.strip()]
    large = sum(1 for img in page.images if (img.width or 0) > 1920 or (img.height or 0) > 1920)
    images = ImageSummary(
        total=len(page.images),
        with_alt=len(alt_texts),
        without_alt=len(page.images) - len(alt_texts),
        large_images=large,
        alt_texts=alt_texts,
    )

    # contact signals
    tel_links = [a["href"][4:].strip() for a in soup.select('a[href^="tel:"]')]
    phones = list(dict.fromkeys(tel_links + _PHONE_RE.findall(text) + _INTL_PHONE_RE.findall(text)))
    digits = {re.sub(r"\D", "", p)[-10:] for p in phones if re.sub(r"\D", "", p)}
    phone_numbers = sorted(digits)
    mail_links = [a["href"][7:].split("?", 1)[0] for a in soup.select('a[href^="mailto:"]')]
    emails = list(dict.fromkeys(mail_links + _EMAIL_RE.findall(text)))
    schema_types = [block.type for block in page.schema_blocks]
    all_types = {t for block in page.schema_blocks for t in (block.types or [block.type])}
    has_address = bool(
        _ADDRESS_RE.search(text) or soup.find("address") or "PostalAddress" in all_types
        or '"streetaddress"' in (page.html or "").lower()
    )
    names = _schema_names(page.schema_blocks)
    has_business_name = bool(names or page.meta.og_tags.get("og:site_name"))

    forms = soup.find_all("form")
    has_contact_form = any(
        f.find("textarea") or f.find("input", attrs={"type": "email"}) or f.find("input", attrs={"name": re.compile("email", re.I)})
        for f in forms
    )
    fields = [
        el for el in soup.find_all(["input", "select", "textarea"])
        if el.get("type", "").lower() not in ("hidden", "submit", "button", "image", "reset")
    ]
    label_for = {str(lbl.get("for")) for lbl in soup.find_all("label") if lbl.get("for")}
    labeled = sum(
        1 for el in fields
        if (el.get("id") and str(el["id"]) in label_for) or el.get("aria-label") or el.get("aria-labelledby")
        or el.find_parent("label") is not None
    )

    author = bool(
        soup.find("meta", attrs={"name": "author"}) or soup.find(attrs={"rel": "author"})
        or soup.find(class_=re.compile(r"\b(author|byline)\b", re.I))
        or any(isinstance(b.json_data, dict) and "author" in b.json_data for b in page.schema_blocks)
    )
    maps = any("maps" in str(f.get("src", "")).lower() for f in soup.find_all("iframe"))
    hours = bool(_HOURS_RE.search(text) or any("openingHours" in str(b.json_data or "") for b in page.schema_blocks))

    structure = ContentStructure(
        has_faq="faq" in lower_text or "frequently asked" in lower_text or "FAQPage" in all_types,
        has_table=soup.find("table") is not None,
        has_lists=soup.find(["ul", "ol"]) is not None,
        has_video=soup.find(["video"]) is not None or any(
            host in str(f.get("src", "")) for f in soup.find_all("iframe") for host in ("youtube", "vimeo")
        ),
        has_emphasis=soup.find(["strong", "b", "em"]) is not None,
    )

    return PageCrawlResult(
        url=page.url,
        final_url=page.final_url or page.url,
        status_code=page.status_code,
        role=role,
        platform=page.platform,
        rendered=page.rendered,
        title=page.title,
        meta_description=page.meta.description,
        canonical=page.meta.canonical,
        robots_meta=page.meta.robots,
        lang=page.meta.lang,
        viewport=page.meta.viewport,
        hreflangs=list(page.meta.hreflang),
        headings=page.headings,
        text=text,
        word_count=page.content.word_count,
        paragraph_count=len(page.content.paragraphs),
        links=PageLinks(internal=list(page.links.internal), external=list(page.links.external), broken=broken),
        images=images,
        schema_types=schema_types,
        schema_names=names,
        has_contact_form=bool(has_contact_form),
        has_phone_number=bool(phone_numbers),
        phone_numbers=phone_numbers,
        has_address=has_address,
        has_business_name=has_business_name,
        has_nap=bool(phone_numbers) and has_address and has_business_name,
        emails=emails,
        has_business_hours=hours,
        has_map_embed=maps,
        has_author=author,
        has_credentials=bool(_CREDENTIAL_RE.search(text)),
        has_social_tags=bool(page.meta.og_tags or page.meta.twitter_tags),
        has_icon=soup.find("link", rel=re.compile(r"icon", re.I)) is not None,
        has_amp_version=soup.find("link", rel="amphtml") is not None,
        has_navigation=soup.find("nav") is not None or soup.find(attrs={"role": "navigation"}) is not None,
        has_sitemap=has_sitemap,
        form_fields=len(fields),
        labeled_fields=labeled,
        has_https=page.security.has_https,
        has_mixed_content=page.security.has_mixed_content,
        has_security_headers=page.security.has_security_headers,
        mobile_compatible=page.mobile_compatible,
        keyword_density=keyword_density(text),
        readability_score=flesch_reading_ease(text),
        content_structure=structure,
        response_time=page.response_time,
        page_size=page.performance.resource_size,
        resource_count=page.performance.resource_count,
        is_duplicate=page.is_duplicate,
        similar_url=page.similar_url,
        similarity=page.similarity,
    )

