# File: seo_scout/providers.py
"""seo_scout.providers: внешние источники данных о ключевых словах и конкурентах.

Ядро аудита не зависит от формата конкретного API: провайдер возвращает уже
нормализованные модели KeywordMetric и Competitor. Расход квоты учитывается
явным объектом UsageCounter с подключаемым хранилищем, а не глобальным
состоянием процесса.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Union, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from seo_scout.errors import UsageLimitExceeded
from seo_scout.logger import logger

__all__ = (
    "KeywordMetric",
    "Competitor",
    "SiteInsights",
    "InsightProvider",
    "UsageStore",
    "InMemoryUsageStore",
    "JsonUsageStore",
    "UsageCounter",
    "InsightCollector",
)


class KeywordMetric(BaseModel):
    model_config = ConfigDict(frozen=True)

    keyword: str
    search_volume: Optional[int] = Field(None, ge=0)
    difficulty: Optional[float] = Field(None, ge=0, le=100)
    cpc: Optional[float] = Field(None, ge=0)


class Competitor(BaseModel):
    model_config = ConfigDict(frozen=True)

    domain: str
    overlap: float = Field(0.0, ge=0, le=1.0)
    rank: Optional[int] = None


class SiteInsights(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: Optional[str] = None
    keywords: List[KeywordMetric] = Field(default_factory=list)
    competitors: List[Competitor] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


@runtime_checkable
class InsightProvider(Protocol):
    name: str

    async def keyword_metrics(self, keywords: Sequence[str]) -> List[KeywordMetric]:
        ...

    async def competitors(self, domain: str) -> List[Competitor]:
        ...


# --------------------------------------------------------------------------- #
# Usage accounting                                                            #
# --------------------------------------------------------------------------- #


class UsageStore(Protocol):
    def load(self) -> Dict[str, int]:
        ...

    def save(self, counts: Dict[str, int]) -> None:
        ...


class InMemoryUsageStore:
    def __init__(self, initial: Optional[Dict[str, int]] = None) -> None:
        self._counts: Dict[str, int] = dict(initial or {})

    def load(self) -> Dict[str, int]:
        return dict(self._counts)

    def save(self, counts: Dict[str, int]) -> None:
        self._counts = dict(counts)


class JsonUsageStore:
    """Счётчики в JSON-файле; отсутствующий файл означает нулевой расход."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> Dict[str, int]:
        if not self.path.is_file():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Неправильный JSON в {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise TypeError(f"Usage file must contain a mapping, got {type(data).__name__}")
        return {str(k): int(v) for k, v in data.items()}

    def save(self, counts: Dict[str, int]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(counts, f, ensure_ascii=False, indent=2)


class UsageCounter:
    """Квота обращений к провайдерам. Состояние сохраняется после каждого списания."""

    def __init__(self, store: Optional[UsageStore] = None, limits: Optional[Dict[str, int]] = None,
                 default_limit: int = 100) -> None:
        self.store: UsageStore = store or InMemoryUsageStore()
        self.limits = dict(limits or {})
        self.default_limit = default_limit
        self._counts = self.store.load()

    def limit(self, provider: str) -> int:
        return self.limits.get(provider, self.default_limit)

    def used(self, provider: str) -> int:
        return self._counts.get(provider, 0)

    def remaining(self, provider: str) -> int:
        return max(0, self.limit(provider) - self.used(provider))

    def consume(self, provider: str, n: int = 1) -> int:
        if self.used(provider) + n > self.limit(provider):
            raise UsageLimitExceeded(provider, self.limit(provider))
        self._counts[provider] = self.used(provider) + n
        self.store.save(self._counts)
        return self._counts[provider]


# --------------------------------------------------------------------------- #
# Collector                                                                   #
# --------------------------------------------------------------------------- #


class InsightCollector:
    """Опрашивает провайдера в пределах квоты. Никогда не роняет аудит."""

    def __init__(self, provider: InsightProvider, counter: Optional[UsageCounter] = None,
                 max_keywords: int = 10) -> None:
        self.provider = provider
        self.counter = counter or UsageCounter()
        self.max_keywords = max_keywords

    async def collect(self, domain: str, keywords: Sequence[str]) -> SiteInsights:
        name = getattr(self.provider, "name", type(self.provider).__name__)
        errors: List[str] = []
        metrics: List[KeywordMetric] = []
        rivals: List[Competitor] = []

        wanted = list(dict.fromkeys(keywords))[: self.max_keywords]
        if wanted:
            try:
                self.counter.consume(name)
                metrics = list(await self.provider.keyword_metrics(wanted))
            except UsageLimitExceeded as exc:
                logger.warning("Skipping keyword metrics: %s", exc)
                errors.append(str(exc))
            except Exception as exc:
                logger.warning("Keyword metrics from %s failed: %s", name, exc)
                errors.append(f"keyword_metrics: {exc}")

        try:
            self.counter.consume(name)
            rivals = list(await self.provider.competitors(domain))
        except UsageLimitExceeded as exc:
            logger.warning("Skipping competitor lookup: %s", exc)
            errors.append(str(exc))
        except Exception as exc:
            logger.warning("Competitor lookup from %s failed: %s", name, exc)
            errors.append(f"competitors: {exc}")

        return SiteInsights(provider=name, keywords=metrics, competitors=rivals, errors=errors)
