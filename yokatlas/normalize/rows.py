from __future__ import annotations

import re
from html import unescape
from typing import Any

from .schema import DepartmentRecord

_TAG_PATTERN = re.compile(r"<[^>]+>")
_DECIMAL_COMMA_PATTERN = re.compile(r"^\d+,\d+$")

# Cell positions in the server-side DataTables response of
# server_processing-atlas2016-TS-t4.php. These follow the upstream column
# layout exactly and must be revised whenever YOK-ATLAS reorders the table.
_API_DEPARTMENT_CODE = 2
_API_PROGRAM_DETAIL = 5
_API_CITY = 6
_API_UNIVERSITY_TYPE = 7
_API_SCHOLARSHIP_TYPE = 8
_API_BASE_SCORE = 37
_API_UNIVERSITY_NAME = 41
_API_PROGRAM_NAME = 42
_API_MINIMUM_PLACEMENT = 44

# (cell, fragment) selectors over the rendered "#mydata" table. Each cell is
# read as its rendered lines; yearly columns list the latest year first.
_BROWSER_DEPARTMENT_CODE = (1, 0)
_BROWSER_UNIVERSITY_NAME = (2, 0)
_BROWSER_PROGRAM = 3
_BROWSER_CITY = (4, 0)
_BROWSER_UNIVERSITY_TYPE = (5, 0)
_BROWSER_SCHOLARSHIP_TYPE = (6, 0)
_BROWSER_MINIMUM_PLACEMENT = (11, 0)
_BROWSER_BASE_SCORE = (12, 0)


def fix_decimal_comma(value: str) -> str:
    """Rewrite ``"12,34"`` as ``"12.34"``; anything that is not digits-comma-digits is returned as-is."""

    if _DECIMAL_COMMA_PATTERN.match(value):
        return value.replace(",", ".", 1)
    return value


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _cell(row: Any, index: int) -> str:
    if not isinstance(row, (list, tuple)) or index >= len(row):
        return ""
    return _as_text(row[index])


def _strip_tags(value: str) -> str:
    return " ".join(unescape(_TAG_PATTERN.sub(" ", value)).split())


def _join_parts(*parts: str) -> str:
    return " ".join(part for part in parts if part)


def _build_record(category: str, **values: str) -> DepartmentRecord:
    cleaned = {key: fix_decimal_comma(value) for key, value in values.items()}
    return DepartmentRecord(category=category, **cleaned)


def normalize_api_row(row: Any, category: str) -> DepartmentRecord:
    return _build_record(
        str(category),
        university_name=_cell(row, _API_UNIVERSITY_NAME).rstrip(),
        university_type=_cell(row, _API_UNIVERSITY_TYPE),
        city=_cell(row, _API_CITY).rstrip(),
        department_code=_strip_tags(_cell(row, _API_DEPARTMENT_CODE)),
        department_name=_join_parts(
            _cell(row, _API_PROGRAM_NAME).rstrip(),
            _cell(row, _API_PROGRAM_DETAIL).rstrip(),
        ),
        scholarship_type=_cell(row, _API_SCHOLARSHIP_TYPE),
        minimum_placement=_cell(row, _API_MINIMUM_PLACEMENT),
        base_score=_cell(row, _API_BASE_SCORE),
    )


def _fragments(row: Any, cell_index: int) -> list[str]:
    if not isinstance(row, (list, tuple)) or cell_index >= len(row):
        return []
    cell = row[cell_index]
    if isinstance(cell, str):
        cell = cell.splitlines()
    if not isinstance(cell, (list, tuple)):
        return []
    return [text for text in (_as_text(part).strip() for part in cell) if text]


def _fragment(row: Any, selector: tuple[int, int]) -> str:
    cell_index, fragment_index = selector
    parts = _fragments(row, cell_index)
    if fragment_index >= len(parts):
        return ""
    return parts[fragment_index]


def normalize_browser_row(row: Any, category: str) -> DepartmentRecord:
    return _build_record(
        str(category),
        university_name=_fragment(row, _BROWSER_UNIVERSITY_NAME),
        university_type=_fragment(row, _BROWSER_UNIVERSITY_TYPE),
        city=_fragment(row, _BROWSER_CITY),
        department_code=_fragment(row, _BROWSER_DEPARTMENT_CODE),
        department_name=_join_parts(*_fragments(row, _BROWSER_PROGRAM)),
        scholarship_type=_fragment(row, _BROWSER_SCHOLARSHIP_TYPE),
        minimum_placement=_fragment(row, _BROWSER_MINIMUM_PLACEMENT),
        base_score=_fragment(row, _BROWSER_BASE_SCORE),
    )
