from __future__ import annotations

import asyncio
from typing import Any

import pytest

from yokatlas.ingest.base import PageCursor, PageResult
from yokatlas.ingest.errors import CountDeterminationError, PageFetchExhaustedError, TransientPageError
from yokatlas.ingest.pagination import RetryPolicy, collect_category, fetch_page_with_retry
from yokatlas.normalize.rows import normalize_api_row
from yokatlas.normalize.schema import Category

_NO_WAIT = RetryPolicy(max_attempts=3, base_delay_seconds=0.0)


class _ScriptedPager:
    """Replays a fixed list of outcomes per page index."""

    first_page_index = 1
    page_size = 0

    def __init__(self, page_count: int, script: dict[int, list[Any]]) -> None:
        self.page_count = page_count
        self.script = script
        self.calls: list[int] = []
        self.normalize = normalize_api_row

    async def read_page_count(self, category: Category) -> int:
        if self.page_count < 0:
            raise CountDeterminationError("no pagination", category=category.value)
        return self.page_count

    async def fetch_page(self, cursor: PageCursor) -> PageResult:
        self.calls.append(cursor.index)
        outcome = self.script[cursor.index].pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _rows(count: int) -> list[list[str]]:
    return [[""] * 45 for _ in range(count)]


def test_retry_policy_backs_off_exponentially_with_cap() -> None:
    policy = RetryPolicy(base_delay_seconds=0.5, max_delay_seconds=3.0, multiplier=2.0)

    assert [policy.delay_for(attempt) for attempt in range(1, 6)] == [0.5, 1.0, 2.0, 3.0, 3.0]


def test_pages_are_fetched_in_order_starting_at_first_index() -> None:
    pager = _ScriptedPager(
        3,
        {
            1: [PageResult(rows=_rows(2), has_more=True)],
            2: [PageResult(rows=_rows(2), has_more=True)],
            3: [PageResult(rows=_rows(1), has_more=False)],
        },
    )

    collection = asyncio.run(collect_category(pager, Category.EA, retry_policy=_NO_WAIT))

    assert pager.calls == [1, 2, 3]
    assert len(collection.records) == 5
    assert all(record.category == "ea" for record in collection.records)


def test_transient_failure_is_retried_on_the_same_page() -> None:
    pager = _ScriptedPager(
        2,
        {
            1: [PageResult(rows=_rows(1), has_more=True)],
            2: [
                TransientPageError("empty", page_index=2),
                PageResult(rows=_rows(100), has_more=False),
            ],
        },
    )

    collection = asyncio.run(collect_category(pager, Category.SAY, retry_policy=_NO_WAIT))

    assert pager.calls == [1, 2, 2]
    assert len(collection.records) == 101


def test_exhausted_retries_raise_page_fetch_exhausted() -> None:
    pager = _ScriptedPager(1, {1: [TransientPageError("empty", page_index=1) for _ in range(3)]})

    with pytest.raises(PageFetchExhaustedError) as excinfo:
        asyncio.run(collect_category(pager, Category.DIL, retry_policy=_NO_WAIT))

    assert excinfo.value.attempts == 3
    assert excinfo.value.page_index == 1
    assert pager.calls == [1, 1, 1]


def test_driver_stops_when_source_reports_no_more_pages() -> None:
    pager = _ScriptedPager(5, {1: [PageResult(rows=_rows(3), has_more=False)]})

    collection = asyncio.run(collect_category(pager, Category.EA, retry_policy=_NO_WAIT))

    assert pager.calls == [1]
    assert len(collection.records) == 3


def test_count_failure_propagates() -> None:
    pager = _ScriptedPager(-1, {})

    with pytest.raises(CountDeterminationError):
        asyncio.run(collect_category(pager, Category.EA, retry_policy=_NO_WAIT))


def test_non_transient_errors_are_not_retried() -> None:
    pager = _ScriptedPager(1, {1: [RuntimeError("boom"), PageResult(rows=_rows(1), has_more=False)]})
    cursor = PageCursor(category=Category.SAY, index=1, size=0)

    with pytest.raises(RuntimeError):
        asyncio.run(fetch_page_with_retry(pager, cursor, retry_policy=_NO_WAIT))
    assert pager.calls == [1]


def test_retry_sleeps_between_attempts(monkeypatch) -> None:
    delays: list[float] = []

    async def _fake_sleep(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr("yokatlas.ingest.pagination.asyncio.sleep", _fake_sleep)
    pager = _ScriptedPager(
        1,
        {1: [TransientPageError("a"), TransientPageError("b"), PageResult(rows=_rows(1), has_more=False)]},
    )
    cursor = PageCursor(category=Category.SAY, index=1, size=0)

    result = asyncio.run(
        fetch_page_with_retry(pager, cursor, retry_policy=RetryPolicy(max_attempts=4, base_delay_seconds=0.25))
    )

    assert len(result.rows) == 1
    assert delays == [0.25, 0.5]
