# File: tests/test_frontier.py
import pytest

from seo_scout.crawler.frontier import Frontier, Priority


@pytest.mark.asyncio()
async def test_priority_classes_then_fifo():
    frontier = Frontier(max_depth=3)
    await frontier.push("https://example.com/link-a", 1, Priority.LINK)
    await frontier.push("https://example.com/sitemap-a", 1, Priority.SITEMAP)
    await frontier.push("https://example.com/link-b", 1, Priority.LINK)
    await frontier.push("https://example.com/", 0, Priority.HOMEPAGE)
    await frontier.push("https://example.com/sitemap-b", 1, Priority.SITEMAP)

    order = []
    while frontier.qsize():
        entry = await frontier.get()
        order.append(entry.url.rsplit("/", 1)[-1])
        frontier.task_done()
    assert order == ["", "sitemap-a", "sitemap-b", "link-a", "link-b"]


@pytest.mark.asyncio()
async def test_push_is_noop_for_seen_and_too_deep():
    frontier = Frontier(max_depth=1)
    assert await frontier.push("https://example.com/a/", 1, Priority.LINK)
    # same page, different spelling
    assert not await frontier.push("https://EXAMPLE.com/a", 1, Priority.LINK)
    assert not await frontier.push("https://example.com/deep", 2, Priority.LINK)
    assert frontier.qsize() == 1
    # too-deep URLs are not even remembered
    assert len(frontier) == 1


@pytest.mark.asyncio()
async def test_mark_seen_blocks_later_push():
    frontier = Frontier(max_depth=2)
    await frontier.mark_seen("https://example.com/final")
    assert not await frontier.push("https://example.com/final/", 1, Priority.LINK)
    assert len(frontier) == 1


@pytest.mark.asyncio()
async def test_drain_releases_join():
    frontier = Frontier(max_depth=2)
    for i in range(5):
        await frontier.push(f"https://example.com/p{i}", 1, Priority.LINK)
    assert frontier.drain() == 5
    assert frontier.qsize() == 0
    # every drained entry was marked done, so join returns at once
    await frontier.join()
