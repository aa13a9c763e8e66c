# seo_scout/crawler/cms.py
"""
Определение CMS по HTML и заголовкам ответа.

Правила упорядочены по надёжности: meta generator, характерные пути к
ресурсам, заголовки, затем слабые маркеры в разметке. Уверенность платформы
равна сумме весов сработавших правил (не больше 1.0).
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Mapping, Optional, Sequence, Tuple

__all__ = ("Rule", "PlatformGuess", "RULES", "detect", "detect_framework", "skip_patterns", "priority_patterns", "should_skip")

RuleKind = Literal["generator", "asset", "header", "marker"]


@dataclass(frozen=True, slots=True)
class Rule:
    platform: str
    kind: RuleKind
    pattern: str
    weight: float
    header: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PlatformGuess:
    name: str
    confidence: float
    evidence: Tuple[str, ...] = field(default_factory=tuple)
    framework: Optional[str] = None


RULES: Sequence[Rule] = (
    # generator meta
    Rule("WordPress", "generator", "wordpress", 0.9),
    Rule("Joomla", "generator", "joomla", 0.9),
    Rule("Drupal", "generator", "drupal", 0.9),
    Rule("Wix", "generator", "wix.com", 0.9),
    Rule("Squarespace", "generator", "squarespace", 0.9),
    Rule("Webflow", "generator", "webflow", 0.9),
    Rule("Ghost", "generator", "ghost", 0.9),
    # asset paths
    Rule("WordPress", "asset", "/wp-content/", 0.6),
    Rule("WordPress", "asset", "/wp-includes/", 0.6),
    Rule("Shopify", "asset", "cdn.shopify.com", 0.7),
    Rule("Squarespace", "asset", "static1.squarespace.com", 0.7),
    Rule("Squarespace", "asset", "assets.squarespace.com", 0.7),
    Rule("Wix", "asset", "static.wixstatic.com", 0.7),
    Rule("Joomla", "asset", "/components/com_", 0.6),
    Rule("Drupal", "asset", "/sites/default/files/", 0.6),
    Rule("Webflow", "asset", "assets.website-files.com", 0.6),
    # headers
    Rule("WordPress", "header", "wordpress", 0.5, header="x-powered-by"),
    Rule("Shopify", "header", "", 0.8, header="x-shopid"),
    Rule("Shopify", "header", "", 0.8, header="x-shopify-stage"),
    Rule("Drupal", "header", "drupal", 0.8, header="x-generator"),
    Rule("Drupal", "header", "", 0.5, header="x-drupal-cache"),
    Rule("Joomla", "header", "joomla", 0.5, header="x-content-encoded-by"),
    Rule("Wix", "header", "", 0.6, header="x-wix-request-id"),
    # weak markup markers
    Rule("WordPress", "marker", "wp-json", 0.3),
    Rule("Shopify", "marker", "shopify.theme", 0.4),
    Rule("Wix", "marker", "wix-code", 0.3),
    Rule("Drupal", "marker", "drupal-settings-json", 0.4),
    Rule("Joomla", "marker", "mootools", 0.1),
)

_RULE_RANK = {rule: idx for idx, rule in enumerate(RULES)}

_GENERATOR_RE = re.compile(
    r"<meta[^>]+name=[\"']generator[\"'][^>]*content=[\"']([^\"']+)[\"']"
    r"|<meta[^>]+content=[\"']([^\"']+)[\"'][^>]*name=[\"']generator[\"']",
    re.I,
)

_FRAMEWORKS: Sequence[Tuple[str, re.Pattern[str]]] = (
    ("Next.js", re.compile(r"__NEXT_DATA__|/_next/static/")),
    ("Nuxt", re.compile(r"window\.__NUXT__|/_nuxt/")),
    ("React", re.compile(r"data-reactroot|react-dom(\.production)?(\.min)?\.js", re.I)),
    ("Angular", re.compile(r"ng-version=|ng-app", re.I)),
    ("Vue.js", re.compile(r"data-v-app|data-v-[0-9a-f]{8}|vue(\.runtime)?(\.global)?(\.min)?\.js", re.I)),
)

_SKIP_PATTERNS: Dict[str, Tuple[str, ...]] = {
    "WordPress": (
        "/wp-admin", "/wp-content/uploads", "/wp-includes", "/wp-login.php",
        "/feed", "?replytocom=", "?preview=", "/tag/", "/category/",
        "/author/", "/page/", "?m=", "?paged=",
    ),
    "Shopify": (
        "/admin", "/cart", "/account", "/collections/all",
        "/search", "?sort_by=", "?page=", "/blogs/news/tagged/",
    ),
    "Squarespace": ("/config", "/universal", "?format=json"),
    "Wix": ("/_api/", "/wix-blog-backend"),
    "Joomla": ("/administrator", "?format=feed", "/component/mailto"),
    "Drupal": ("/user/login", "/user/register", "/node/add", "?page="),
    "Ghost": ("/ghost/", "/rss/"),
}

_BASE_SKIP: Tuple[str, ...] = ("/wp-admin", "/wp-content/uploads", "/cdn-cgi/")

_PRIORITY_PATTERNS: Dict[str, Tuple[str, ...]] = {
    "WordPress": ("/contact", "/about", "/services", "/shop", "/blog"),
    "Shopify": ("/products", "/collections", "/pages/contact", "/pages/about"),
    "Squarespace": ("/contact", "/about", "/work", "/services"),
}
_BASE_PRIORITY: Tuple[str, ...] = ("/contact", "/about", "/services")


def _generator(html: str) -> str:
    match = _GENERATOR_RE.search(html)
    if not match:
        return ""
    return (match.group(1) or match.group(2) or "").lower()


def _matches(rule: Rule, html_lower: str, generator: str, headers: Mapping[str, str]) -> bool:
    if rule.kind == "generator":
        return rule.pattern in generator
    if rule.kind == "header":
        value = headers.get(rule.header or "")
        if value is None:
            return False
        return rule.pattern in value.lower()
    return rule.pattern in html_lower


def detect_framework(html: str) -> Optional[str]:
    for name, pattern in _FRAMEWORKS:
        if pattern.search(html):
            return name
    return None


def detect(html: str, headers: Mapping[str, str] | None = None) -> Optional[PlatformGuess]:
    """Возвращает самую уверенную платформу или None. Чистая функция."""
    lowered_headers = {k.lower(): v for k, v in (headers or {}).items()}
    html_lower = html.lower()
    generator = _generator(html)

    scores: Dict[str, float] = {}
    evidence: Dict[str, List[str]] = {}
    best_rank: Dict[str, int] = {}
    for rule in RULES:
        if not _matches(rule, html_lower, generator, lowered_headers):
            continue
        scores[rule.platform] = scores.get(rule.platform, 0.0) + rule.weight
        label = f"{rule.kind}:{rule.header or rule.pattern}"
        evidence.setdefault(rule.platform, []).append(label)
        best_rank.setdefault(rule.platform, _RULE_RANK[rule])

    if not scores:
        return None
    name = min(scores, key=lambda p: (-min(scores[p], 1.0), best_rank[p]))
    return PlatformGuess(
        name=name,
        confidence=round(min(scores[name], 1.0), 2),
        evidence=tuple(evidence[name]),
        framework=detect_framework(html),
    )


def skip_patterns(platform: Optional[str]) -> Tuple[str, ...]:
    if platform is None:
        return _BASE_SKIP
    return _SKIP_PATTERNS.get(platform, _BASE_SKIP)


def priority_patterns(platform: Optional[str]) -> Tuple[str, ...]:
    if platform is None:
        return _BASE_PRIORITY
    return _PRIORITY_PATTERNS.get(platform, _BASE_PRIORITY)


def should_skip(url: str, platform: Optional[str]) -> bool:
    url_lower = url.lower()
    return any(pattern in url_lower for pattern in skip_patterns(platform))
