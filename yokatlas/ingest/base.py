from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from yokatlas.normalize.schema import Category, DepartmentRecord

RowNormalizer = Callable[[Any, str], DepartmentRecord]


@dataclass(frozen=True, slots=True)
class PageCursor:
    category: Category
    index: int
    size: int

    @property
    def offset(self) -> int:
        return self.index * self.size


@dataclass(slots=True)
class PageResult:
    rows: list[Any]
    has_more: bool


class CategoryPager(Protocol):
    """Fetches the pages of one category; bound to that category's sub-resource."""

    first_page_index: int
    page_size: int
    normalize: RowNormalizer

    async def read_page_count(self, category: Category) -> int:
        ...

    async def fetch_page(self, cursor: PageCursor) -> PageResult:
        ...


class PageSource(Protocol):
    """A fetch strategy; opens one pager per category."""

    name: str

    def open_category(self, category: Category) -> AbstractAsyncContextManager[CategoryPager]:
        ...
