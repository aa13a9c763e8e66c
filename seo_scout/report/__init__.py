# File: seo_scout/report/__init__.py
"""seo_scout.report: сериализация результатов аудита, используемая CLI, хранилищем и тестами."""

from .json_report import render_json, summarize

__all__ = ["render_json", "summarize"]
