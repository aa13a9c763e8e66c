# seo_scout/crawler/robots.py
"""
Parser and checker for robots.txt rules (RFC 9309), including ``Sitemap:``
references and ``Crawl-delay``.
"""
from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

__all__ = ("RobotsTxtRules",)


class RobotsTxtRules:
    """
    Парсит robots.txt.
    Пустое Disallow считается разрешением всех путей; побеждает самое длинное правило.
    """
    _Directive = Tuple[str, str]
    _WILDCARD_RE = re.compile(r"(\*|\$)")

    def __init__(self, text: str) -> None:
        self._groups: List[Dict[str, object]] = []
        self._regex_cache: Dict[str, re.Pattern[str]] = {}
        self.sitemaps: List[str] = []
        self._parse(text)

    def can_fetch(self, user_agent: str, path: str) -> bool:
        """Return True if *user_agent* may fetch *path* (path plus optional query)."""
        group = self._match_group(user_agent)
        if group is None:
            return True
        best_len = -1
        allow: Optional[bool] = None
        for directive, pattern in group["directives"]:  # type: ignore[index]
            if not self._match_path(path, pattern):
                continue
            length = self._rule_len(pattern)
            if length > best_len or (length == best_len and directive == "allow" and allow is False):
                best_len = length
                allow = directive == "allow"
        return True if allow is None else allow

    def crawl_delay(self, user_agent: str) -> Optional[float]:
        group = self._match_group(user_agent)
        return None if group is None else group.get("crawl_delay")  # type: ignore[return-value]

    def _new_group(self, agents: List[str]) -> Dict[str, object]:
        group: Dict[str, object] = {"agents": agents, "directives": [], "crawl_delay": None}
        self._groups.append(group)
        return group

    def _parse(self, text: str) -> None:
        current: Optional[Dict[str, object]] = None
        for raw in text.splitlines():
            line = raw.split("#", 1)[0].strip()
            if not line:
                continue
            key, _, val = line.partition(":")
            key = key.lower().strip()
            val = val.strip()
            if key == "sitemap":
                # group-independent directive
                if val:
                    self.sitemaps.append(val)
            elif key == "user-agent":
                if current is None or (current["directives"] or current["crawl_delay"] is not None):
                    current = self._new_group([])
                current["agents"].append(val.lower())  # type: ignore[union-attr]
            elif key in ("allow", "disallow"):
                # пустой Disallow разрешает все, пропускаем
                if key == "disallow" and val == "":
                    continue
                if current is None:
                    current = self._new_group(["*"])
                current["directives"].append((key, val))  # type: ignore[union-attr]
            elif key == "crawl-delay":
                if current is None:
                    current = self._new_group(["*"])
                try:
                    current["crawl_delay"] = float(val)
                except ValueError:
                    pass

    def _match_group(self, user_agent: str) -> Optional[Dict[str, object]]:
        ua = user_agent.lower()
        for group in self._groups:
            if any(a != "*" and ua.startswith(a) for a in group["agents"]):  # type: ignore[attr-defined]
                return group
        for group in self._groups:
            if "*" in group["agents"]:  # type: ignore[operator]
                return group
        return None

    def _match_path(self, path: str, pattern: str) -> bool:
        if pattern not in self._regex_cache:
            anchored = pattern.endswith("$")
            body = pattern[:-1] if anchored else pattern
            esc = re.escape(body).replace(r"\*", ".*")
            self._regex_cache[pattern] = re.compile(f"^{esc}" + ("$" if anchored else ""))
        return bool(self._regex_cache[pattern].match(path))

    @classmethod
    def _rule_len(cls, pattern: str) -> int:
        return len(cls._WILDCARD_RE.sub("", pattern))
