"""Command line entry point: summarize receipt exports as JSON.

Examples:
    All sections for one export:
        receipts-core receipts.json

    Only gas and payments for 2024 at warehouse 482:
        receipts-core receipts.json orders.json --year 2024 \\
            --location 482 --section gas --section payments

    Custom reward settings:
        receipts-core receipts.json --config analytics.json -o summary.json

Exit codes: 0 on success, 1 when no record could be processed, 2 on bad
input (unreadable file, invalid config or filter arguments).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from receipts_core.api import SECTIONS, load_export, run_analytics
from receipts_core.config import AnalyticsConfig
from receipts_core.exceptions import ReceiptsCoreError
from receipts_core.filters import (
    DateRangeFilter,
    FilterPipeline,
    LocationFilter,
    TransactionTypeFilter,
    YearFilter,
)

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="receipts-core",
        description="Summarize warehouse receipt and online order exports.",
    )
    p.add_argument("exports", nargs="+", help="JSON export file(s).")
    p.add_argument("--year", action="append", default=[], help="Keep only this year (repeatable).")
    p.add_argument(
        "--location", action="append", default=[], help="Keep only this warehouse (repeatable)."
    )
    p.add_argument("--start", default=None, help="First date to keep (YYYY-MM-DD).")
    p.add_argument("--end", default=None, help="Last date to keep (YYYY-MM-DD).")
    p.add_argument(
        "--type",
        action="append",
        default=[],
        dest="types",
        help="Keep only this transaction type, e.g. Sales or Refund (repeatable).",
    )
    p.add_argument("--config", default=None, help="JSON file with analytics settings.")
    p.add_argument(
        "--section",
        action="append",
        choices=SECTIONS,
        default=[],
        dest="sections",
        help="Only output this section (repeatable). Default: all.",
    )
    p.add_argument("-o", "--output", default=None, help="Write JSON here instead of stdout.")
    p.add_argument(
        "--verbose", "--debug",
        action="store_true",
        dest="verbose",
        help="Debug logging.",
    )
    return p


def build_pipeline(args: argparse.Namespace) -> FilterPipeline:
    """Translate filter flags into a pipeline."""
    pipeline = FilterPipeline()
    if args.year:
        pipeline.add_filter(YearFilter(args.year))
    if args.location:
        pipeline.add_filter(LocationFilter(args.location))
    if args.start or args.end:
        pipeline.add_filter(DateRangeFilter(args.start or "1900-01-01", args.end or "9999-12-31"))
    if args.types:
        pipeline.add_filter(TransactionTypeFilter(args.types))
    return pipeline


def read_exports(paths: Sequence[str]) -> list[Any]:
    """Concatenate the records of several export files, in order."""
    records: list[Any] = []
    for path in paths:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        batch = load_export(data)
        logger.info("Read %d record(s) from %s", len(batch), path)
        records.extend(batch)
    return records


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    try:
        config = AnalyticsConfig.from_json(args.config) if args.config else AnalyticsConfig()
        pipeline = build_pipeline(args)
        records = read_exports(args.exports)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, ReceiptsCoreError) as e:
        logger.error("Error: %s", e)
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    result = run_analytics(records, pipeline=pipeline, config=config)
    if result.report.failed_count:
        print(
            f"{result.report.failed_count} of {result.report.input_count} records could not be processed",
            file=sys.stderr,
        )
    if result.transaction_count == 0:
        print("ERROR: no record could be processed", file=sys.stderr)
        return 1

    text = json.dumps(result.to_dict(args.sections or None), indent=2)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        print(f"Wrote summary to: {args.output}")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
