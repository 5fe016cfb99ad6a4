"""Bounded worker pool for file reads and tracker calls.

Items are processed in batches on a ``ThreadPoolExecutor`` driven by
asyncio. An exception raised for one item is captured in that item's
``Outcome`` and never cancels the others. Outcomes come back in input order.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Generic, TypeVar

from .logging import get_logger

T = TypeVar('T')
R = TypeVar('R')


class ConcurrencyConfig:
    """Configuration for concurrency settings."""

    def __init__(self, enabled: bool = False, max_workers: int = 4, batch_size: int = 10):
        self.enabled = enabled
        self.max_workers = max(1, max_workers)
        self.batch_size = max(1, batch_size)


@dataclass
class Outcome(Generic[T, R]):
    item: T
    result: R | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _call(func: Callable[[T], R], item: T) -> Outcome[T, R]:
    try:
        return Outcome(item, result=func(item))
    except Exception as exc:
        return Outcome(item, error=exc)


def _loop_running() -> bool:
    # asyncio.run cannot nest; callers already inside a loop get sequential processing
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class ConcurrentProcessor:
    """Runs ``func`` over items sequentially or on a bounded pool."""

    def __init__(self, concurrency_config: ConcurrencyConfig):
        self.config = concurrency_config
        self.logger = get_logger()

    def process(self, items: Sequence[T], func: Callable[[T], R]) -> list[Outcome[T, R]]:
        if not self.config.enabled or len(items) <= 1 or _loop_running():
            return [_call(func, item) for item in items]
        return asyncio.run(self.process_concurrent(items, func))

    async def process_concurrent(
        self, items: Sequence[T], func: Callable[[T], R]
    ) -> list[Outcome[T, R]]:
        self.logger.log_operation(
            "concurrent_processing_start",
            item_count=len(items),
            batch_size=self.config.batch_size,
            max_workers=self.config.max_workers,
        )
        start_time = time.perf_counter()
        results: list[Outcome[T, R]] = []
        loop = asyncio.get_running_loop()
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            for i in range(0, len(items), self.config.batch_size):
                batch = items[i : i + self.config.batch_size]
                futures = [loop.run_in_executor(executor, _call, func, item) for item in batch]
                results.extend(await asyncio.gather(*futures))
        duration_ms = (time.perf_counter() - start_time) * 1000
        self.logger.log_performance(
            "concurrent_processing", duration_ms, item_count=len(items)
        )
        return results


def create_concurrent_processor(config: ConcurrencyConfig) -> ConcurrentProcessor:
    """Factory function to create concurrent processor."""
    return ConcurrentProcessor(config)


__all__ = ["ConcurrencyConfig", "Outcome", "ConcurrentProcessor", "create_concurrent_processor"]
