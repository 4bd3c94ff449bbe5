from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Iterable


class Category(str, Enum):
    """Score-type tracks published by YOK-ATLAS (the upstream ``puan_turu`` code)."""

    DIL = "dil"
    EA = "ea"
    SOZ = "söz"
    SAY = "say"

    def __str__(self) -> str:
        return self.value


ALL_CATEGORIES: tuple[Category, ...] = tuple(Category)


def resolve_categories(values: Iterable[Category | str]) -> list[Category]:
    """Coerce category codes to enum members, dropping duplicates in first-seen order."""

    resolved: list[Category] = []
    for value in values:
        try:
            category = Category(value)
        except ValueError:
            allowed = ", ".join(item.value for item in Category)
            raise ValueError(f"Unknown category {value!r}; expected one of: {allowed}") from None
        if category not in resolved:
            resolved.append(category)
    return resolved


@dataclass(frozen=True, slots=True)
class DepartmentRecord:
    """Canonical normalized department record emitted by every strategy.

    Numeric values stay strings to keep the source formatting; missing values are ``""``.
    """

    university_name: str
    university_type: str
    city: str
    department_code: str
    department_name: str
    scholarship_type: str
    minimum_placement: str
    base_score: str
    category: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


RECORD_FIELDS: tuple[str, ...] = tuple(item.name for item in fields(DepartmentRecord))
