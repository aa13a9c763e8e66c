"""
Модуль для загрузки и валидации конфигурации SEOScout.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

__all__ = (
    "CrawlSettings",
    "SimilaritySettings",
    "ScoringSettings",
    "PrioritySettings",
    "AuditConfig",
    "CrawlOptions",
    "load_config",
)


class CrawlSettings(BaseModel):
    """Параметры обхода сайта."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    user_agent: str = Field("SEOScoutBot/1.0", min_length=1, description="Заголовок User-Agent.")
    timeout: float = Field(10.0, gt=0, description="Таймаут на один HTTP-запрос (секунд).")
    page_timeout: float = Field(20.0, gt=0, description="Таймаут на страницу с повторами и рендером.")
    rate_limit: float = Field(5.0, gt=0, description="Лимит запросов в секунду.")
    retry_times: int = Field(2, ge=0, description="Число повторных попыток при 5xx/429/сетевых ошибках.")
    retry_backoff: float = Field(1.0, ge=0, description="Базовая задержка экспоненциального backoff.")
    concurrency: int = Field(4, ge=1, description="Число параллельных воркеров.")
    browser_concurrency: int = Field(2, ge=1, description="Лимит одновременных headless-рендеров.")
    time_budget: float = Field(300.0, gt=0, description="Бюджет времени на весь обход (секунд).")
    render_fallback: bool = Field(True, description="Перезагружать JS-оболочки через браузер.")
    respect_robots: bool = Field(True, description="Учитывать robots.txt.")
    max_sitemap_urls: int = Field(250, ge=0, description="Максимум URL, берущихся из sitemap.")
    max_child_sitemaps: int = Field(10, ge=0, description="Максимум дочерних sitemap из индекса.")
    max_content_bytes: int = Field(5_000_000, gt=0, description="Предельный размер HTML-ответа.")

    @model_validator(mode="after")
    def _check_concurrency(self) -> CrawlSettings:
        if self.browser_concurrency > self.concurrency:
            raise ValueError("browser_concurrency must not exceed concurrency")
        return self


class SimilaritySettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    threshold: float = Field(0.9, gt=0, le=1.0, description="Порог Jaccard для дубликата.")
    shingle_size: int = Field(5, ge=1, description="Длина шингла в словах.")


_ROLE_WEIGHTS = {
    "homepage": 2.0,
    "service": 1.5,
    "contact": 1.2,
    "location": 1.2,
    "service_area": 1.0,
    "other": 1.0,
}


class ScoringSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    analyzer_weights: Dict[str, float] = Field(
        default_factory=dict, description="Веса анализаторов; отсутствующие равны 1.0."
    )
    role_weights: Dict[str, float] = Field(default_factory=lambda: dict(_ROLE_WEIGHTS))
    analysis_timeout: float = Field(10.0, gt=0, description="Таймаут одного анализатора на странице.")
    analysis_concurrency: int = Field(4, ge=1, description="Сколько страниц анализируется параллельно.")
    incomplete_error_ratio: float = Field(0.2, ge=0, le=1.0)


class PrioritySettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    severity_weights: Dict[str, float] = Field(
        default_factory=lambda: {"high": 3.0, "medium": 2.0, "low": 1.0}
    )
    category_importance: Dict[str, float] = Field(
        default_factory=lambda: {"technical": 1.2, "content": 1.0, "local": 1.0, "ux": 1.0}
    )
    template_min_pages: int = Field(3, ge=2)
    template_pattern_share: float = Field(0.7, gt=0, le=1.0)
    priority_role_share: float = Field(0.5, ge=0, le=1.0)


class AuditConfig(BaseModel):
    """Полная конфигурация аудита."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    crawl: CrawlSettings = Field(default_factory=CrawlSettings)
    similarity: SimilaritySettings = Field(default_factory=SimilaritySettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    priority: PrioritySettings = Field(default_factory=PrioritySettings)


class CrawlOptions(BaseModel):
    """Параметры одного задания, задаваемые вызывающей стороной."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_pages: int = Field(50, ge=1, description="Жесткий лимит по числу страниц.")
    max_depth: int = Field(3, ge=0, description="Максимальная глубина обхода ссылок.")
    use_javascript: bool = Field(False, description="Всегда рендерить страницы в браузере.")
    follow_sitemaps: bool = Field(True, description="Засевать очередь из sitemap.xml.")


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None] = None) -> AuditConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект AuditConfig.
    Без пути берётся configs/default.yaml, а если его нет, значения по умолчанию.
    Явно указанный, но отсутствующий файл даёт FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.is_file():
            return AuditConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(f"Config file not found: {path_obj}")

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    try:
        return AuditConfig(**data)
    except ValidationError:
        raise
