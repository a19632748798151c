"""Example: Drive a dashboard with AnalyticsSession

This example shows the stateful API a dashboard or notebook would use:
- load() normalizes records and publishes them to the state store
- set_pipeline() swaps filters; cached marts are dropped on the spot
- subscribe() notifies views when the filtered history changes

Prerequisites:
- Export your receipts JSON and save it as data/receipts.json
"""

import json
from pathlib import Path

from receipts_core import AnalyticsSession
from receipts_core.api import load_export
from receipts_core.filters import DateRangeFilter, FilterPipeline, LocationFilter

records = load_export(json.loads(Path("data/receipts.json").read_text(encoding="utf-8")))

session = AnalyticsSession()


def on_filtered(new, old, key):
    print(f"[view] {key}: {len(new)} transaction(s)")


session.subscribe("filtered", on_filtered)

report = session.load(records)
print(f"Loaded {report.normalized_count} of {report.input_count} records")
print(f"Spent overall: ${session.overview().total_spent:,.2f}")

# Narrow to one warehouse for the first half of 2024
session.set_pipeline(
    FilterPipeline(
        [
            LocationFilter("482"),  # MODIFY AS NEEDED
            DateRangeFilter("2024-01-01", "2024-06-30"),
        ]
    )
)
print(f"Spent at warehouse 482, H1 2024: ${session.overview().total_spent:,.2f}")

# Second call is served from the cache
session.overview()
print(f"\nSession stats: {session.get_stats()}")
