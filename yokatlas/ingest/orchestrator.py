from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

from yokatlas.ingest.pagination import RetryPolicy, collect_category
from yokatlas.ingest.session import AcquisitionSession
from yokatlas.normalize.schema import ALL_CATEGORIES, Category, DepartmentRecord, resolve_categories

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CategoryReport:
    category: Category
    status: str = "failed"
    records: int = 0
    pages: int | None = None
    duration_seconds: float = 0.0
    exception_summary: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "status": self.status,
            "records": self.records,
            "pages": self.pages,
            "duration_seconds": round(self.duration_seconds, 3),
            "exception_summary": self.exception_summary,
        }


@dataclass(slots=True)
class AcquisitionResult:
    records: list[DepartmentRecord] = field(default_factory=list)
    categories: list[CategoryReport] = field(default_factory=list)

    @property
    def failed_categories(self) -> list[Category]:
        return [report.category for report in self.categories if report.status != "succeeded"]


async def _run_category(
    session: AcquisitionSession,
    category: Category,
    retry_policy: RetryPolicy,
) -> tuple[list[DepartmentRecord], CategoryReport]:
    report = CategoryReport(category=category)
    started_at = time.monotonic()
    records: list[DepartmentRecord] = []
    try:
        async with session.source.open_category(category) as pager:
            collection = await collect_category(pager, category, retry_policy=retry_policy)
        records = collection.records
        report.status = "succeeded"
        report.records = len(records)
        report.pages = collection.page_count
        logger.info("Category=%s collected %d records", category, len(records))
    except Exception as exc:
        report.exception_summary = {"type": type(exc).__name__, "message": str(exc)}
        logger.exception("Category %s failed. Continuing with remaining categories.", category)
    finally:
        report.duration_seconds = time.monotonic() - started_at
    return records, report


async def fetch_department_data(
    session: AcquisitionSession,
    categories: Iterable[Category | str] = ALL_CATEGORIES,
    *,
    retry_policy: RetryPolicy | None = None,
) -> AcquisitionResult:
    """Collect every requested category concurrently; a failing category contributes no records."""

    selected = resolve_categories(categories)
    if not selected:
        return AcquisitionResult()

    policy = retry_policy or RetryPolicy()
    logger.info("Fetching categories: %s", ", ".join(category.value for category in selected))
    outcomes = await asyncio.gather(
        *(_run_category(session, category, policy) for category in selected)
    )

    result = AcquisitionResult()
    for records, report in outcomes:
        result.records.extend(records)
        result.categories.append(report)
    return result


async def collect_records(
    session: AcquisitionSession,
    categories: Iterable[Category | str] = ALL_CATEGORIES,
    *,
    retry_policy: RetryPolicy | None = None,
) -> list[DepartmentRecord]:
    result = await fetch_department_data(session, categories, retry_policy=retry_policy)
    return result.records
