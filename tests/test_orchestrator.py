from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import pytest

from yokatlas.ingest.base import PageCursor, PageResult
from yokatlas.ingest.errors import CountDeterminationError, TransientPageError
from yokatlas.ingest.orchestrator import collect_records, fetch_department_data
from yokatlas.ingest.pagination import RetryPolicy
from yokatlas.ingest.session import AcquisitionSession
from yokatlas.normalize.rows import normalize_api_row
from yokatlas.normalize.schema import RECORD_FIELDS, Category

_NO_WAIT = RetryPolicy(max_attempts=2, base_delay_seconds=0.0)


class _FakePager:
    first_page_index = 0
    page_size = 100

    def __init__(self, total: int | None) -> None:
        self.total = total
        self.normalize = normalize_api_row

    async def read_page_count(self, category: Category) -> int:
        if self.total is None:
            raise CountDeterminationError("probe failed", category=category.value)
        return -(-self.total // self.page_size)

    async def fetch_page(self, cursor: PageCursor) -> PageResult:
        await asyncio.sleep(0)
        remaining = max(0, self.total - cursor.offset)
        count = min(self.page_size, remaining)
        rows = [[""] * 41 + [f"U{cursor.offset + i}"] for i in range(count)]
        return PageResult(rows=rows, has_more=cursor.offset + count < self.total)


class _FakeSource:
    name = "fake"

    def __init__(self, totals: dict[Category, int | None]) -> None:
        self.totals = totals
        self.opened: list[Category] = []
        self.closed: list[Category] = []

    @asynccontextmanager
    async def open_category(self, category: Category) -> AsyncIterator[_FakePager]:
        self.opened.append(category)
        try:
            yield _FakePager(self.totals[category])
        finally:
            self.closed.append(category)


def _session(totals: dict[Category, int | None]) -> AcquisitionSession:
    return AcquisitionSession(strategy="fake", source=_FakeSource(totals))


def test_empty_selection_yields_empty_result_without_touching_the_source() -> None:
    session = _session({})

    result = asyncio.run(fetch_department_data(session, []))

    assert result.records == []
    assert result.categories == []
    assert session.source.opened == []


def test_failed_category_is_isolated_from_siblings() -> None:
    session = _session({Category.DIL: None, Category.EA: 40})

    result = asyncio.run(fetch_department_data(session, ["dil", "ea"], retry_policy=_NO_WAIT))

    assert len(result.records) == 40
    assert {record.category for record in result.records} == {"ea"}
    assert result.failed_categories == [Category.DIL]
    reports = {report.category: report for report in result.categories}
    assert reports[Category.DIL].status == "failed"
    assert reports[Category.DIL].exception_summary["type"] == "CountDeterminationError"
    assert reports[Category.EA].status == "succeeded"
    assert reports[Category.EA].records == 40
    assert sorted(session.source.closed) == sorted([Category.DIL, Category.EA])


def test_duplicate_categories_are_collapsed() -> None:
    session = _session({Category.SAY: 5})

    records = asyncio.run(collect_records(session, ["say", Category.SAY, "say"], retry_policy=_NO_WAIT))

    assert session.source.opened == [Category.SAY]
    assert len(records) == 5


def test_all_categories_produce_complete_records_in_page_order() -> None:
    totals = {Category.DIL: 3, Category.EA: 120, Category.SOZ: 0, Category.SAY: 250}
    session = _session(totals)

    result = asyncio.run(fetch_department_data(session, retry_policy=_NO_WAIT))

    assert len(result.records) == 373
    for record in result.records:
        as_dict = record.to_dict()
        assert tuple(as_dict) == RECORD_FIELDS
        assert as_dict["category"] in {"dil", "ea", "söz", "say"}
    say_names = [record.university_name for record in result.records if record.category == "say"]
    assert say_names == [f"U{i}" for i in range(250)]


def test_exhausted_page_retries_fail_only_that_category() -> None:
    class _EmptyPager(_FakePager):
        async def fetch_page(self, cursor: PageCursor) -> PageResult:
            raise TransientPageError("empty", category="say", page_index=cursor.index)

    class _MixedSource(_FakeSource):
        @asynccontextmanager
        async def open_category(self, category: Category) -> AsyncIterator[_FakePager]:
            pager = _EmptyPager(100) if category is Category.SAY else _FakePager(self.totals[category])
            yield pager

    session = AcquisitionSession(strategy="fake", source=_MixedSource({Category.EA: 7}))

    result = asyncio.run(fetch_department_data(session, ["say", "ea"], retry_policy=_NO_WAIT))

    assert len(result.records) == 7
    assert result.failed_categories == [Category.SAY]
    failed = result.categories[0]
    assert failed.exception_summary["type"] == "PageFetchExhaustedError"


def test_unknown_category_is_rejected_before_any_fetch() -> None:
    session = _session({})

    with pytest.raises(ValueError, match="Unknown category"):
        asyncio.run(fetch_department_data(session, ["tyt"]))
    assert session.source.opened == []
