# File: seo_scout/parser/sitemap_parser.py
"""seo_scout.parser.sitemap_parser: Поиск и парсинг sitemap.xml (включая sitemap index)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set
from urllib.parse import urljoin

from aiohttp import ClientError, ClientSession
from lxml import etree

__all__ = ("SitemapDocument", "SitemapDiscovery", "WELL_KNOWN_PATHS", "parse_sitemap", "discover_sitemaps")

WELL_KNOWN_PATHS: Sequence[str] = (
    "/sitemap.xml",
    "/sitemap_index.xml",
    "/sitemap-index.xml",
    "/wp-sitemap.xml",
    "/sitemap/sitemap.xml",
)

logger = logging.getLogger("SEOScout")


@dataclass(slots=True)
class SitemapDocument:
    """Разобранный sitemap: либо список страниц, либо индекс дочерних sitemap."""
    urls: List[str] = field(default_factory=list)
    children: List[str] = field(default_factory=list)

    @property
    def is_index(self) -> bool:
        return bool(self.children)


@dataclass(slots=True)
class SitemapDiscovery:
    urls: List[str] = field(default_factory=list)
    sitemaps: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.sitemaps)


def parse_sitemap(xml_content: str | bytes) -> SitemapDocument:
    """Разбирает XML sitemap и возвращает URL из тегов <loc>.

    Для ``<sitemapindex>`` ссылки попадают в ``children``, для ``<urlset>`` в ``urls``.
    Битый XML разбирается в режиме recover; пустой документ даёт пустой результат.

    Пример:
    ```python
    from seo_scout.parser.sitemap_parser import parse_sitemap

    with open('sitemap.xml', encoding='utf-8') as f:
        doc = parse_sitemap(f.read())
    print(doc.urls)
    ```
    """
    raw = xml_content.encode("utf-8") if isinstance(xml_content, str) else xml_content
    if not raw.strip():
        return SitemapDocument()
    parser = etree.XMLParser(ns_clean=True, recover=True, resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(raw, parser=parser)
    except etree.XMLSyntaxError:
        return SitemapDocument()
    if root is None:
        return SitemapDocument()
    locs = [loc.text.strip() for loc in root.findall(".//{*}loc") if loc.text and loc.text.strip()]
    tag = etree.QName(root).localname.lower()
    if tag == "sitemapindex":
        return SitemapDocument(children=locs)
    return SitemapDocument(urls=locs)


async def _get_text(session: ClientSession, url: str) -> Optional[str]:
    try:
        async with session.get(url) as resp:
            if resp.status != 200:
                logger.debug("sitemap %s -> HTTP %s", url, resp.status)
                return None
            ctype = resp.headers.get("Content-Type", "").lower()
            if "html" in ctype:
                # soft-404 pages served as HTML
                return None
            return await resp.text(errors="replace")
    except (ClientError, asyncio.TimeoutError) as exc:
        logger.debug("sitemap %s failed: %s", url, exc)
        return None


async def discover_sitemaps(
    session: ClientSession,
    base_url: str,
    robots_sitemaps: Sequence[str] = (),
    *,
    max_urls: int = 250,
    max_children: int = 10,
) -> SitemapDiscovery:
    """Проверяет стандартные пути, затем ссылки Sitemap: из robots.txt.

    Индексы раскрываются не глубже одного уровня и не более *max_children*
    дочерних файлов; общее число URL ограничено *max_urls*.
    """
    result = SitemapDiscovery()
    checked: Set[str] = set()
    seen_urls: Set[str] = set()
    candidates = [urljoin(base_url, path) for path in WELL_KNOWN_PATHS] + list(robots_sitemaps)

    for sitemap_url in candidates:
        if len(result.urls) >= max_urls:
            break
        if sitemap_url in checked:
            continue
        checked.add(sitemap_url)
        text = await _get_text(session, sitemap_url)
        if text is None:
            continue
        doc = parse_sitemap(text)
        if not doc.urls and not doc.children:
            continue
        result.sitemaps.append(sitemap_url)
        page_urls = list(doc.urls)
        for child in doc.children[:max_children]:
            if child in checked:
                continue
            checked.add(child)
            child_text = await _get_text(session, child)
            if child_text is None:
                continue
            # nested indexes are not followed further
            page_urls.extend(parse_sitemap(child_text).urls)
            if len(page_urls) >= max_urls:
                break
        for url in page_urls:
            if url not in seen_urls:
                seen_urls.add(url)
                result.urls.append(url)
        # stop at the first sitemap that yields pages
        if result.urls:
            break

    del result.urls[max_urls:]
    logger.info("Sitemap discovery: %d URLs from %d sitemap(s)", len(result.urls), len(result.sitemaps))
    return result
