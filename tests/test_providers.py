# File: tests/test_providers.py
import json
from typing import List, Sequence

import pytest

from seo_scout.errors import UsageLimitExceeded
from seo_scout.providers import (
    Competitor,
    InMemoryUsageStore,
    InsightCollector,
    InsightProvider,
    JsonUsageStore,
    KeywordMetric,
    UsageCounter,
)


class EchoProvider:
    name = "echo"

    def __init__(self) -> None:
        self.keyword_calls: List[List[str]] = []

    async def keyword_metrics(self, keywords: Sequence[str]) -> List[KeywordMetric]:
        self.keyword_calls.append(list(keywords))
        return [KeywordMetric(keyword=k, search_volume=10 * i) for i, k in enumerate(keywords)]

    async def competitors(self, domain: str) -> List[Competitor]:
        return [Competitor(domain=f"rival-of-{domain}", overlap=0.5)]


class BrokenProvider:
    name = "broken"

    async def keyword_metrics(self, keywords):
        raise ConnectionError("api down")

    async def competitors(self, domain):
        raise TimeoutError("too slow")


def test_provider_protocol():
    assert isinstance(EchoProvider(), InsightProvider)


def test_counter_enforces_limits():
    counter = UsageCounter(limits={"echo": 2}, default_limit=5)
    assert counter.limit("echo") == 2
    assert counter.limit("other") == 5
    assert counter.consume("echo") == 1
    assert counter.consume("echo") == 2
    assert counter.remaining("echo") == 0
    with pytest.raises(UsageLimitExceeded) as exc_info:
        counter.consume("echo")
    assert exc_info.value.limit == 2
    assert counter.used("echo") == 2


def test_counter_state_survives_restart(tmp_path):
    path = tmp_path / "usage" / "counts.json"
    first = UsageCounter(JsonUsageStore(path), limits={"echo": 3})
    first.consume("echo", 2)
    assert json.loads(path.read_text(encoding="utf-8")) == {"echo": 2}

    second = UsageCounter(JsonUsageStore(path), limits={"echo": 3})
    assert second.used("echo") == 2
    with pytest.raises(UsageLimitExceeded):
        second.consume("echo", 2)


@pytest.mark.parametrize("content,error", [("{broken", ValueError), ("[1, 2]", TypeError)])
def test_json_store_rejects_bad_files(tmp_path, content, error):
    path = tmp_path / "counts.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(error):
        JsonUsageStore(path).load()


def test_missing_usage_file_means_zero(tmp_path):
    assert JsonUsageStore(tmp_path / "absent.json").load() == {}


@pytest.mark.asyncio()
async def test_collector_gathers_data():
    provider = EchoProvider()
    collector = InsightCollector(provider, UsageCounter(InMemoryUsageStore()), max_keywords=2)
    insights = await collector.collect("acme.example", ["plumber", "drain", "plumber", "heater"])

    assert provider.keyword_calls == [["plumber", "drain"]]
    assert [k.keyword for k in insights.keywords] == ["plumber", "drain"]
    assert insights.competitors[0].domain == "rival-of-acme.example"
    assert insights.errors == []
    assert collector.counter.used("echo") == 2


@pytest.mark.asyncio()
async def test_collector_never_raises():
    insights = await InsightCollector(BrokenProvider()).collect("acme.example", ["plumber"])
    assert insights.provider == "broken"
    assert insights.keywords == [] and insights.competitors == []
    assert insights.errors == ["keyword_metrics: api down", "competitors: too slow"]


@pytest.mark.asyncio()
async def test_collector_respects_quota():
    counter = UsageCounter(InMemoryUsageStore({"echo": 1}), limits={"echo": 1})
    insights = await InsightCollector(EchoProvider(), counter).collect("acme.example", ["plumber"])
    assert insights.keywords == [] and insights.competitors == []
    assert len(insights.errors) == 2
    assert all("usage limit" in e for e in insights.errors)
