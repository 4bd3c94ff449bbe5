from __future__ import annotations

from .rows import fix_decimal_comma, normalize_api_row, normalize_browser_row
from .schema import ALL_CATEGORIES, RECORD_FIELDS, Category, DepartmentRecord, resolve_categories

__all__ = [
    "ALL_CATEGORIES",
    "RECORD_FIELDS",
    "Category",
    "DepartmentRecord",
    "fix_decimal_comma",
    "normalize_api_row",
    "normalize_browser_row",
    "resolve_categories",
]
