# seo_scout/crawler/frontier.py
"""
Очередь обхода с классами приоритета и множеством посещённых URL.

Ключ очереди ``(priority_class, discovery_seq)``: главная раньше sitemap,
sitemap раньше найденных ссылок, внутри класса FIFO.
"""
from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Set

from seo_scout.utils import normalize_url

__all__ = ("Priority", "FrontierEntry", "Frontier")


class Priority(IntEnum):
    HOMEPAGE = 0
    SITEMAP = 1
    LINK = 2


@dataclass(order=True, slots=True)
class FrontierEntry:
    priority: Priority
    seq: int
    url: str = field(compare=False)
    depth: int = field(compare=False)
    key: str = field(compare=False)


class Frontier:
    """Единственная разделяемая изменяемая структура задания; все изменения под lock."""

    def __init__(self, max_depth: int) -> None:
        self.max_depth = max_depth
        self._queue: asyncio.PriorityQueue[FrontierEntry] = asyncio.PriorityQueue()
        self._seen: Set[str] = set()
        self._seq = itertools.count()
        self._lock = asyncio.Lock()

    async def push(self, url: str, depth: int, priority: Priority) -> bool:
        """Добавляет URL. Повтор, превышение глубины: no-op, возвращает False."""
        if depth > self.max_depth:
            return False
        key = normalize_url(url)
        async with self._lock:
            if key in self._seen:
                return False
            self._seen.add(key)
            await self._queue.put(FrontierEntry(priority, next(self._seq), url, depth, key))
        return True

    async def mark_seen(self, url: str) -> str:
        key = normalize_url(url)
        async with self._lock:
            self._seen.add(key)
        return key

    async def get(self) -> FrontierEntry:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    def drain(self) -> int:
        """Выбрасывает оставшиеся записи (при остановке по бюджету)."""
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return dropped
            self._queue.task_done()
            dropped += 1

    def qsize(self) -> int:
        return self._queue.qsize()

    def __len__(self) -> int:
        return len(self._seen)
