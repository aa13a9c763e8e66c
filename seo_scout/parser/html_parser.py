# === FILE: seo_scout/parser/html_parser.py ===
"""HTML extraction for SEOScout.

:func:`extract_page` turns one rendered response into a
:class:`~seo_scout.crawler.models.CrawlerOutput`:

* title, meta tags (description, robots, viewport, canonical, hreflang, OG/Twitter);
* headings h1..h6, visible text, paragraphs and word count;
* internal/external links (absolute, deduplicated, stable ordering);
* image inventory and JSON-LD structured-data blocks;
* security, accessibility and mobile flags plus a rough resource count.

Everything is derived from a single BeautifulSoup parse.
"""
from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from seo_scout.crawler.fetcher import RenderedPage
from seo_scout.crawler.models import (
    AccessibilityInfo,
    CrawlerOutput,
    Headings,
    ImageInfo,
    LinkSets,
    MetaTags,
    PageContent,
    PerformanceInfo,
    SchemaBlock,
    SecurityInfo,
)
from seo_scout.utils import absolute_url, is_same_site

__all__: Sequence[str] = ("extract_page", "extract_links", "parse_schema_blocks")

_SECURITY_HEADERS = (
    "strict-transport-security",
    "content-security-policy",
    "x-content-type-options",
    "x-frame-options",
)
_VISIBLE_SKIP = ("script", "style", "noscript", "template")


def _meta(soup: BeautifulSoup, *, name: str | None = None, prop: str | None = None) -> Optional[str]:
    attrs = {"name": name} if name else {"property": prop}
    tag = soup.find("meta", attrs=attrs)
    if isinstance(tag, Tag) and tag.get("content") is not None:
        return str(tag["content"]).strip()
    return None


def _int_attr(tag: Tag, attr: str) -> Optional[int]:
    value = str(tag.get(attr, "")).strip().removesuffix("px")
    return int(value) if value.isdigit() else None


def extract_links(soup: BeautifulSoup, base_url: str, seed_url: str) -> LinkSets:
    seen: set[str] = set()
    internal: List[str] = []
    external: List[str] = []
    for tag in soup.find_all("a", href=True):
        full = absolute_url(base_url, str(tag["href"]))
        if full is None or full in seen:
            continue
        seen.add(full)
        (internal if is_same_site(full, seed_url) else external).append(full)
    return LinkSets(internal=internal, external=external)


def _schema_types(data: Any) -> List[str]:
    types: List[str] = []
    if isinstance(data, dict):
        value = data.get("@type")
        if isinstance(value, str):
            types.append(value)
        elif isinstance(value, list):
            types.extend(str(v) for v in value)
        for nested in data.get("@graph", []) if isinstance(data.get("@graph"), list) else []:
            types.extend(_schema_types(nested))
    elif isinstance(data, list):
        for item in data:
            types.extend(_schema_types(item))
    return types


def parse_schema_blocks(soup: BeautifulSoup) -> List[SchemaBlock]:
    """JSON-LD блоки; невалидный JSON сохраняется как блок типа ``invalid``."""
    blocks: List[SchemaBlock] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text() or ""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            blocks.append(SchemaBlock(type="invalid", types=[], json_data=None))
            continue
        types = _schema_types(data)
        blocks.append(SchemaBlock(type=types[0] if types else "unknown", types=types, json_data=data))
    for item in soup.find_all(attrs={"itemtype": True}):
        itemtype = str(item["itemtype"]).rstrip("/").rsplit("/", 1)[-1]
        blocks.append(SchemaBlock(type=itemtype, types=[itemtype], json_data=None))
    return blocks


def _hreflang(soup: BeautifulSoup, base_url: str) -> List[Dict[str, str]]:
    out: List[Dict[str, str]] = []
    for link in soup.find_all("link", hreflang=True):
        rel = link.get("rel") or []
        if "alternate" not in [r.lower() for r in rel]:
            continue
        out.append({"lang": str(link["hreflang"]).strip(), "href": absolute_url(base_url, str(link.get("href", ""))) or ""})
    return out


def _resource_count(soup: BeautifulSoup) -> int:
    scripts = soup.find_all("script", src=True)
    styles = soup.find_all("link", rel="stylesheet")
    images = soup.find_all("img")
    frames = soup.find_all("iframe")
    return len(scripts) + len(styles) + len(images) + len(frames)


def _mixed_content(soup: BeautifulSoup, is_https: bool) -> bool:
    if not is_https:
        return False
    for tag, attr in (("img", "src"), ("script", "src"), ("link", "href"), ("iframe", "src"), ("source", "src")):
        for el in soup.find_all(tag, attrs={attr: True}):
            if str(el[attr]).strip().lower().startswith("http://"):
                return True
    return False


def extract_page(
    rendered: RenderedPage,
    *,
    seed_url: str,
    depth: int = 0,
    platform: Optional[str] = None,
) -> CrawlerOutput:
    """Parse a rendered response into a :class:`CrawlerOutput`."""
    base_url = rendered.final_url or rendered.url
    soup = BeautifulSoup(rendered.html, "html.parser")
    html_tag = soup.find("html")

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""

    canonical_tag = soup.find("link", rel="canonical")
    canonical = None
    if isinstance(canonical_tag, Tag) and canonical_tag.get("href"):
        canonical = absolute_url(base_url, str(canonical_tag["href"]))

    meta = MetaTags(
        description=_meta(soup, name="description"),
        robots=_meta(soup, name="robots"),
        viewport=_meta(soup, name="viewport"),
        canonical=canonical,
        lang=str(html_tag.get("lang")).strip() if isinstance(html_tag, Tag) and html_tag.get("lang") else None,
        generator=_meta(soup, name="generator"),
        hreflang=_hreflang(soup, base_url),
        og_tags={
            str(t["property"]): str(t.get("content", ""))
            for t in soup.find_all("meta", property=lambda v: v and v.startswith("og:"))
        },
        twitter_tags={
            str(t["name"]): str(t.get("content", ""))
            for t in soup.find_all("meta", attrs={"name": lambda v: v and v.startswith("twitter:")})
        },
    )

    headings = Headings(**{
        level: [h.get_text(" ", strip=True) for h in soup.find_all(level)]
        for level in ("h1", "h2", "h3", "h4", "h5", "h6")
    })

    images = [
        ImageInfo(
            src=absolute_url(base_url, str(img.get("src") or img.get("data-src") or "")) or str(img.get("src") or ""),
            alt=str(img["alt"]) if img.has_attr("alt") else None,
            title=str(img["title"]) if img.has_attr("title") else None,
            width=_int_attr(img, "width"),
            height=_int_attr(img, "height"),
        )
        for img in soup.find_all("img")
    ]

    links = extract_links(soup, base_url, seed_url)
    schema_blocks = parse_schema_blocks(soup)
    resource_count = _resource_count(soup)
    has_aria = soup.find(lambda tag: any(k.startswith("aria-") for k in tag.attrs)) is not None
    is_https = urlparse(base_url).scheme == "https"
    mixed = _mixed_content(soup, is_https)
    accessible = len(soup.find_all(["nav", "main", "header", "footer", "label"])) + len(soup.find_all(attrs={"role": True}))

    # Visible text (skip <script>, <style>, etc.)
    for element in soup(list(_VISIBLE_SKIP)):
        element.decompose()
    paragraphs = [p.get_text(" ", strip=True) for p in soup.find_all("p") if p.get_text(strip=True)]
    text_root = soup.body or soup
    text = " ".join(text_root.get_text(" ", strip=True).split())

    headers = {k.lower(): v for k, v in rendered.headers.items()}
    return CrawlerOutput(
        url=rendered.url,
        final_url=rendered.final_url,
        status="success",
        status_code=rendered.status,
        headers=headers,
        response_time=round(rendered.elapsed_ms, 1),
        title=title,
        meta=meta,
        content=PageContent(text=text, word_count=len(text.split()), paragraphs=paragraphs),
        headings=headings,
        links=links,
        images=images,
        schema_blocks=schema_blocks,
        mobile_compatible=bool(meta.viewport and "width=device-width" in meta.viewport.replace(" ", "")),
        performance=PerformanceInfo(
            load_time=round(rendered.elapsed_ms, 1),
            resource_count=resource_count,
            resource_size=rendered.size or len(rendered.html.encode("utf-8")),
        ),
        security=SecurityInfo(
            has_https=is_https,
            has_mixed_content=mixed,
            has_security_headers=any(h in headers for h in _SECURITY_HEADERS),
        ),
        accessibility=AccessibilityInfo(
            accessible_elements=accessible,
            missing_alt=sum(1 for img in images if not (img.alt or "").strip()),
            has_aria=has_aria,
            has_proper_heading_structure=len(headings.h1) == 1,
        ),
        html=rendered.html,
        raw_html=rendered.html if not rendered.rendered else "",
        rendered=rendered.rendered,
        platform=platform,
        depth=depth,
    )
