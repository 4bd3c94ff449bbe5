from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Mapping
from uuid import uuid4

import pandas as pd

from yokatlas.normalize.schema import RECORD_FIELDS, DepartmentRecord

EMPTY_CSV_VALUE = '""'
_QUOTE_TRIGGERS = (" ", ",", "\n", "\r")


def _as_mapping(record: DepartmentRecord | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(record, DepartmentRecord):
        return record.to_dict()
    return record


def records_to_frame(records: Iterable[DepartmentRecord | Mapping[str, Any]]) -> pd.DataFrame:
    rows = [_as_mapping(record) for record in records]
    if not rows:
        return pd.DataFrame(columns=list(RECORD_FIELDS))

    df = pd.DataFrame(rows)
    for column in RECORD_FIELDS:
        if column not in df.columns:
            df[column] = ""
    df = df[list(RECORD_FIELDS)].astype(object)
    return df.where(pd.notna(df), "")


def format_csv_value(value: Any) -> str:
    if value is None or value == "":
        return EMPTY_CSV_VALUE
    text = str(value)
    if '"' in text:
        text = text.replace('"', '""')
    if any(trigger in text for trigger in _QUOTE_TRIGGERS):
        text = f'"{text}"'
    return text


def to_csv_text(records: Iterable[DepartmentRecord | Mapping[str, Any]]) -> str:
    df = records_to_frame(records)
    if df.empty:
        return ""

    lines = [",".join(df.columns)]
    for values in df.itertuples(index=False, name=None):
        lines.append(",".join(format_csv_value(value) for value in values))
    return "\n".join(lines)


def to_json_text(records: Iterable[DepartmentRecord | Mapping[str, Any]]) -> str:
    df = records_to_frame(records)
    return json.dumps(df.to_dict(orient="records"), ensure_ascii=False)


def write_text_atomic(text: str, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = output_path.parent / f"{output_path.name}.{uuid4().hex}.tmp"
    try:
        temp_path.write_text(text, encoding="utf-8")
        temp_path.replace(output_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()


def write_json_atomic(payload: dict[str, Any], output_path: Path) -> None:
    write_text_atomic(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False), output_path)


def write_outputs(
    records: Iterable[DepartmentRecord | Mapping[str, Any]],
    *,
    output_dir: Path,
    stem: str = "yok-atlas-veriler",
) -> tuple[Path, Path]:
    materialized = list(records)
    json_path = output_dir / f"{stem}.json"
    csv_path = output_dir / f"{stem}.csv"
    write_text_atomic(to_json_text(materialized), json_path)
    write_text_atomic(to_csv_text(materialized), csv_path)
    return json_path, csv_path
