# File: seo_scout/utils.py
"""seo_scout.utils: Утилитарные функции для обработки URL."""

from __future__ import annotations

import posixpath
from typing import Sequence
from urllib.parse import parse_qsl, quote, unquote, urlencode, urljoin, urlparse, urlunparse

from seo_scout.logger import logger

__all__: Sequence[str] = (
    "normalize_url",
    "is_valid_url",
    "is_same_site",
    "extract_domain",
    "absolute_url",
    "strip_fragment",
)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """Каноническая форма URL для множества посещённых страниц.

    Схема и хост в нижнем регистре, порт по умолчанию и фрагмент отброшены,
    ``.``/``..`` в пути разрешены, завершающий слеш снят (корень становится
    пустым путём), параметры запроса отсортированы.
    """
    parsed = urlparse(url.strip())
    scheme = parsed.scheme.lower()
    host = (parsed.hostname or "").lower()
    port = parsed.port
    netloc = host if port is None or _DEFAULT_PORTS.get(scheme) == port else f"{host}:{port}"

    path = unquote(parsed.path)
    if path:
        norm = posixpath.normpath(path)
        # normpath keeps a leading double slash
        if norm.startswith("//"):
            norm = "/" + norm.lstrip("/")
        norm = "" if norm in ("/", ".") else norm.rstrip("/")
        path = quote(norm, safe="/%:@!$&'()*+,;=-._~")

    qs = parse_qsl(parsed.query, keep_blank_values=True)
    qs.sort()
    query = urlencode(qs, doseq=True)
    normalized = urlunparse((scheme, netloc, path, "", query, ""))
    return normalized


def strip_fragment(url: str) -> str:
    parsed = urlparse(url)
    return urlunparse(parsed._replace(fragment=""))


def absolute_url(base: str, href: str) -> str | None:
    """Resolve *href* against *base*; return None for non-http(s) targets."""
    href = href.strip()
    if not href or href.startswith(("mailto:", "tel:", "javascript:", "data:", "#")):
        return None
    full = strip_fragment(urljoin(base, href))
    if urlparse(full).scheme not in ("http", "https"):
        return None
    return full


def _bare_host(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def is_same_site(url: str, seed: str) -> bool:
    """Один сайт: совпадение хоста без учёта префикса ``www.``."""
    return bool(_bare_host(url)) and _bare_host(url) == _bare_host(seed)


def is_valid_url(url: str) -> bool:
    """Проверяет, что URL абсолютный и использует http(s)."""
    try:
        parsed = urlparse(url)
    except ValueError as exc:
        logger.debug("URL validation error %s: %s", url, exc)
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def extract_domain(url: str) -> str:
    """Возвращает домен из URL без дополнительных проверок."""
    return urlparse(url).netloc

