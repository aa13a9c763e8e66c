# seo_scout/errors.py
"""
Иерархия исключений SEOScout.

Страничные ошибки (FetchError, ValidationError) фиксируются и обход
продолжается. AnalyzerDataError действует в пределах одного фактора.
Только JobFatalError прерывает аудит целиком.
"""
from __future__ import annotations

from typing import Any, Optional

__all__ = (
    "AuditError",
    "FetchError",
    "ValidationError",
    "AnalyzerDataError",
    "BudgetExceeded",
    "JobFatalError",
    "AuditNotFound",
    "UsageLimitExceeded",
)


class AuditError(Exception):
    """Базовый класс всех ошибок аудита."""


class FetchError(AuditError):
    """Сетевая ошибка, таймаут или TLS при загрузке страницы."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None) -> None:
        self.url = url
        self.reason = reason
        self.status = status
        suffix = f" (HTTP {status})" if status is not None else ""
        super().__init__(f"{url}: {reason}{suffix}")


class ValidationError(AuditError):
    """CrawlerOutput не прошёл проверку схемы и не попадёт в анализаторы."""

    def __init__(self, url: str, details: str) -> None:
        self.url = url
        self.details = details
        super().__init__(f"invalid crawler output for {url}: {details}")


class AnalyzerDataError(AuditError):
    """Для фактора не хватает данных или они неоднозначны."""

    def __init__(self, field: str, message: str = "") -> None:
        self.field = field
        super().__init__(message or f"missing data: {field}")


class BudgetExceeded(AuditError):
    """Исчерпан бюджет страниц. Нормальная остановка, а не сбой."""


class JobFatalError(AuditError):
    """Стартовый URL недоступен после всех повторов."""

    def __init__(self, url: str, reason: str, stats: Any = None) -> None:
        self.url = url
        self.reason = reason
        self.stats = stats
        super().__init__(f"seed {url} unreachable: {reason}")


class AuditNotFound(AuditError, KeyError):
    """Неизвестный идентификатор задания."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(job_id)

    def __str__(self) -> str:
        return f"audit not found: {self.job_id}"


class UsageLimitExceeded(AuditError):
    """Квота обращений к внешнему провайдеру исчерпана."""

    def __init__(self, provider: str, limit: int) -> None:
        self.provider = provider
        self.limit = limit
        super().__init__(f"usage limit {limit} exceeded for {provider}")
