# seo_scout/crawler/similarity.py
"""
Content similarity filter: flags duplicate and boilerplate pages before they
consume more crawl budget.

Text is reduced to the main content, normalized, split into word k-shingles
and hashed; two pages are compared with the Jaccard index of their shingle sets.
"""
from __future__ import annotations

import re
import zlib
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional

from bs4 import BeautifulSoup

__all__ = (
    "Fingerprint",
    "SimilarityResult",
    "SimilarityFilter",
    "extract_main_text",
    "normalize_text",
    "fingerprint",
    "jaccard",
    "check_duplicate",
)

_BOILERPLATE_TAGS = ("nav", "header", "footer", "aside", "script", "style", "noscript", "template", "form", "iframe")
_WS_RE = re.compile(r"\s+")
_PUNCT_RE = re.compile(r"[^\w\s]", re.UNICODE)


@dataclass(frozen=True, slots=True)
class Fingerprint:
    url: str
    shingles: FrozenSet[int]

    def __bool__(self) -> bool:
        return bool(self.shingles)


@dataclass(frozen=True, slots=True)
class SimilarityResult:
    is_duplicate: bool
    similar_url: Optional[str] = None
    similarity: float = 0.0


def extract_main_text(html: str) -> str:
    """Видимый текст страницы без навигации, шапки, подвала и скриптов."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(list(_BOILERPLATE_TAGS)):
        tag.decompose()
    root = soup.find("main") or soup.find("article") or soup.body or soup
    return root.get_text(" ", strip=True)


def normalize_text(text: str) -> str:
    text = _PUNCT_RE.sub(" ", text.lower())
    return _WS_RE.sub(" ", text).strip()


def fingerprint(text: str, url: str = "", shingle_size: int = 5) -> Fingerprint:
    words = normalize_text(text).split()
    if not words:
        return Fingerprint(url, frozenset())
    k = min(shingle_size, len(words))
    shingles = frozenset(
        zlib.crc32(" ".join(words[i:i + k]).encode("utf-8")) for i in range(len(words) - k + 1)
    )
    return Fingerprint(url, shingles)


def jaccard(a: FrozenSet[int], b: FrozenSet[int]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def check_duplicate(
    text: str,
    seen: Iterable[Fingerprint],
    threshold: float = 0.9,
    shingle_size: int = 5,
) -> SimilarityResult:
    """Сравнивает текст со всеми ранее увиденными отпечатками.

    Дубликат, если лучшее совпадение не ниже *threshold*. Пустой текст
    никогда не считается дубликатом.
    """
    candidate = fingerprint(text, shingle_size=shingle_size)
    if not candidate:
        return SimilarityResult(False, None, 0.0)
    best_url: Optional[str] = None
    best = 0.0
    for other in seen:
        score = jaccard(candidate.shingles, other.shingles)
        if score > best:
            best, best_url = score, other.url
            if best == 1.0:
                break
    if best >= threshold:
        return SimilarityResult(True, best_url, round(best, 4))
    return SimilarityResult(False, None, round(best, 4))


class SimilarityFilter:
    """Состояние фильтра для одного задания обхода."""

    def __init__(self, threshold: float = 0.9, shingle_size: int = 5, enabled: bool = True) -> None:
        self.threshold = threshold
        self.shingle_size = shingle_size
        self.enabled = enabled
        self._seen: List[Fingerprint] = []

    def check(self, html: str, url: str) -> SimilarityResult:
        if not self.enabled:
            return SimilarityResult(False)
        text = extract_main_text(html)
        result = check_duplicate(text, self._seen, self.threshold, self.shingle_size)
        if not result.is_duplicate:
            fp = fingerprint(text, url, self.shingle_size)
            if fp:
                self._seen.append(fp)
        return result

    def __len__(self) -> int:
        return len(self._seen)
