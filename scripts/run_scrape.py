from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Sequence

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from yokatlas.ingest.orchestrator import AcquisitionResult, fetch_department_data
from yokatlas.ingest.pagination import RetryPolicy
from yokatlas.ingest.session import STRATEGIES, SessionSettings, open_session
from yokatlas.io.export import write_json_atomic, write_outputs
from yokatlas.normalize.schema import ALL_CATEGORIES, resolve_categories

logger = logging.getLogger("run_scrape")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Scrape YOK-ATLAS department tables into JSON and CSV.")
    parser.add_argument(
        "--categories",
        nargs="*",
        default=[category.value for category in ALL_CATEGORIES],
        help="Score types to fetch (dil, ea, söz, say). Duplicates are ignored.",
    )
    parser.add_argument("--strategy", choices=STRATEGIES, default="api")
    parser.add_argument("--output-dir", type=Path, default=ROOT_DIR / "output")
    parser.add_argument("--stem", default="yok-atlas-veriler")
    parser.add_argument("--report-dir", type=Path, default=ROOT_DIR / "reports" / "scrape_runs")
    parser.add_argument("--requests-per-second", type=float, default=2.0)
    parser.add_argument("--request-timeout-seconds", type=float, default=30.0)
    parser.add_argument("--max-attempts", type=int, default=5)
    parser.add_argument("--headless", action=argparse.BooleanOptionalAction, default=True)
    return parser.parse_args(argv)


def _resolve_repo_path(path: Path) -> Path:
    if path.is_absolute():
        return path
    return ROOT_DIR / path


def format_duration(elapsed_seconds: float) -> str:
    total_ms = int(round(elapsed_seconds * 1000))
    minutes, remainder = divmod(total_ms, 60_000)
    seconds, millis = divmod(remainder, 1000)
    return f"{minutes}m {seconds}s {millis}ms"


def _exception_summary(exc: Exception) -> dict[str, str]:
    return {"type": type(exc).__name__, "message": str(exc)}


async def _acquire_all(
    settings: SessionSettings,
    categories: Sequence[str],
    retry_policy: RetryPolicy,
) -> AcquisitionResult:
    async with open_session(settings) as session:
        return await fetch_department_data(session, categories, retry_policy=retry_policy)


def run_scrape(
    *,
    categories: Sequence[str] = tuple(category.value for category in ALL_CATEGORIES),
    strategy: str = "api",
    output_dir: Path | None = None,
    stem: str = "yok-atlas-veriler",
    report_dir: Path | None = None,
    requests_per_second: float = 2.0,
    request_timeout_seconds: float = 30.0,
    max_attempts: int = 5,
    headless: bool = True,
) -> dict[str, Any]:
    started_at = datetime.now(tz=UTC)
    started_monotonic = time.monotonic()
    resolved_output_dir = _resolve_repo_path(output_dir or (ROOT_DIR / "output"))
    resolved_report_dir = _resolve_repo_path(report_dir or (ROOT_DIR / "reports" / "scrape_runs"))
    report_path = resolved_report_dir / f"scrape_{started_at.strftime('%Y%m%dT%H%M%SZ')}.json"

    result = AcquisitionResult()
    json_path: Path | None = None
    csv_path: Path | None = None
    run_exception: dict[str, str] | None = None
    selected: list[str] = []

    try:
        selected = [category.value for category in resolve_categories(categories)]
        settings = SessionSettings(
            strategy=strategy,
            requests_per_second=requests_per_second,
            request_timeout_seconds=request_timeout_seconds,
            headless=headless,
            browser_timeout_seconds=request_timeout_seconds,
        )
        retry_policy = RetryPolicy(max_attempts=max_attempts)
        result = asyncio.run(_acquire_all(settings, selected, retry_policy))
        json_path, csv_path = write_outputs(result.records, output_dir=resolved_output_dir, stem=stem)
        logger.info("Wrote %d records to %s and %s", len(result.records), json_path, csv_path)
    except Exception as exc:
        run_exception = _exception_summary(exc)
        logger.exception("Scrape run failed.")
    finally:
        elapsed = time.monotonic() - started_monotonic
        logger.info("Duration: %s", format_duration(elapsed))

        succeeded = [report.category.value for report in result.categories if report.status == "succeeded"]
        failed = [report.category.value for report in result.categories if report.status != "succeeded"]
        if run_exception is not None:
            status = "failed"
        elif failed:
            status = "partial" if succeeded else "failed"
        else:
            status = "success"

        report_payload = {
            "status": status,
            "run_started_at": started_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "run_finished_at": datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "duration_seconds": round(elapsed, 3),
            "duration": format_duration(elapsed),
            "config": {
                "categories": selected,
                "strategy": strategy,
                "requests_per_second": requests_per_second,
                "request_timeout_seconds": request_timeout_seconds,
                "max_attempts": max_attempts,
                "headless": headless,
            },
            "categories": {
                "requested": selected,
                "succeeded": succeeded,
                "failed": failed,
                "details": [report.to_dict() for report in result.categories],
            },
            "records": {"total": len(result.records)},
            "artifact_paths": {
                "json": str(json_path.resolve()) if json_path else None,
                "csv": str(csv_path.resolve()) if csv_path else None,
                "report": str(report_path.resolve()),
            },
            "exception_summary": run_exception,
        }
        write_json_atomic(report_payload, report_path)
    return report_payload


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    report = run_scrape(
        categories=args.categories,
        strategy=args.strategy,
        output_dir=args.output_dir,
        stem=args.stem,
        report_dir=args.report_dir,
        requests_per_second=args.requests_per_second,
        request_timeout_seconds=args.request_timeout_seconds,
        max_attempts=args.max_attempts,
        headless=args.headless,
    )

    print(f"Run status: {report['status']}")
    print(f"Records: {report['records']['total']}")
    print(f"Wrote JSON: {report['artifact_paths']['json']}")
    print(f"Wrote CSV: {report['artifact_paths']['csv']}")
    print(f"Wrote scrape report: {report['artifact_paths']['report']}")
    return 1 if report["exception_summary"] is not None else 0


if __name__ == "__main__":
    raise SystemExit(main())
