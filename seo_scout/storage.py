# File: seo_scout/storage.py
"""seo_scout.storage: хранение готовых AuditResult по идентификатору задания."""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Protocol, Union

from seo_scout.errors import AuditNotFound

if TYPE_CHECKING:
    from seo_scout.aggregator import AuditResult

__all__ = ("ResultStore", "InMemoryResultStore", "JsonResultStore")

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class ResultStore(Protocol):
    def save(self, job_id: str, result: AuditResult) -> None:
        ...

    def load(self, job_id: str) -> AuditResult:
        ...


class InMemoryResultStore:
    def __init__(self) -> None:
        self._results: Dict[str, AuditResult] = {}

    def save(self, job_id: str, result: AuditResult) -> None:
        self._results[job_id] = result

    def load(self, job_id: str) -> AuditResult:
        try:
            return self._results[job_id]
        except KeyError:
            raise AuditNotFound(job_id) from None

    def job_ids(self) -> List[str]:
        return list(self._results)


class JsonResultStore:
    """Один JSON-файл на задание: ``<directory>/<job_id>.json``."""

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def _path(self, job_id: str) -> Path:
        if not _SAFE_ID.match(job_id):
            raise AuditNotFound(job_id)
        return self.directory / f"{job_id}.json"

    def save(self, job_id: str, result: AuditResult) -> None:
        from seo_scout.report.json_report import render_json

        render_json(result, self._path(job_id))

    def load(self, job_id: str) -> AuditResult:
        from seo_scout.aggregator import AuditResult

        path = self._path(job_id)
        if not path.is_file():
            raise AuditNotFound(job_id)
        return AuditResult.from_json(path.read_text(encoding="utf-8"))

    def job_ids(self) -> List[str]:
        return sorted(p.stem for p in self.directory.glob("*.json"))
