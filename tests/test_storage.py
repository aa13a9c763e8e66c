# File: tests/test_storage.py
import json
from datetime import datetime, timezone

import pytest

from seo_scout.aggregator import AuditResult, ScoreSummary
from seo_scout.crawler.models import CrawlStats, SiteStructure
from seo_scout.errors import AuditNotFound
from seo_scout.report import render_json, summarize
from seo_scout.storage import InMemoryResultStore, JsonResultStore


def sample_result(job_id: str = "job1") -> AuditResult:
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    return AuditResult(
        job_id=job_id,
        url="https://acme.example/",
        site_structure=SiteStructure(homepage="https://acme.example/"),
        site_score=ScoreSummary(score=72.5, category="good"),
        analyzer_scores={"technical_seo": 72.5},
        stats=CrawlStats(pages_crawled=1, started_at=now),
        started_at=now,
        finished_at=now,
    )


def test_in_memory_store():
    store = InMemoryResultStore()
    result = sample_result()
    store.save("job1", result)
    assert store.load("job1") is result
    assert store.job_ids() == ["job1"]
    with pytest.raises(AuditNotFound):
        store.load("missing")


def test_json_store_round_trip(tmp_path):
    store = JsonResultStore(tmp_path / "results")
    result = sample_result("abc")
    store.save("abc", result)

    assert (tmp_path / "results" / "abc.json").is_file()
    assert store.load("abc") == result
    assert store.job_ids() == ["abc"]


@pytest.mark.parametrize("job_id", ["missing", "../escape", ""])
def test_json_store_unknown_ids(tmp_path, job_id):
    with pytest.raises(AuditNotFound):
        JsonResultStore(tmp_path).load(job_id)


def test_not_found_is_a_key_error():
    err = AuditNotFound("x")
    assert isinstance(err, KeyError)
    assert str(err) == "audit not found: x"


def test_render_json_and_summary(tmp_path):
    path = render_json(sample_result(), tmp_path / "out" / "audit.json")
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["site_score"] == {"score": 72.5, "category": "good"}
    assert data["started_at"].startswith("2024-05-01")

    summary = summarize(sample_result())
    assert summary["score"] == 72.5
    assert summary["pages"] == 0
    assert summary["top_issues"] == []
