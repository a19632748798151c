"""Example: Summarize a receipts export with run_analytics

This example shows the one-shot API. run_analytics handles every stage:
1. Normalize raw receipts and online orders (Bronze -> Silver)
2. Apply the filter pipeline
3. Build every mart (Gold): items, categories, discounts, refunds, gas,
   payments and the overview

Prerequisites:
- Export your receipts JSON and save it as data/receipts.json
  (a plain list or the GraphQL envelope both work)
"""

import json
from pathlib import Path

from receipts_core import AnalyticsConfig, run_analytics
from receipts_core.api import load_export
from receipts_core.filters import year_location_pipeline

export_path = Path("data/receipts.json")  # MODIFY AS NEEDED

records = load_export(json.loads(export_path.read_text(encoding="utf-8")))

# Only 2024, every warehouse
pipeline = year_location_pipeline(years=["2024"])

# Executive reward rate and cap can be tuned per member
config = AnalyticsConfig(rewards_rate=0.02, max_reward=1250)

print(f"Summarizing {len(records)} records from {export_path}...")
result = run_analytics(records, pipeline=pipeline, config=config)

report = result.report
if report.failed_count:
    print(f"{report.failed_count} of {report.input_count} records could not be processed")

overview = result.overview
print("\nOverview:")
print(f"  - Visits: {overview.visit_count}")
print(f"  - Total spent: ${overview.total_spent:,.2f}")
print(f"  - Refunded: ${overview.total_refunded:,.2f} ({overview.refund_count} refunds)")
print(f"  - Estimated executive reward: ${overview.estimated_rewards:,.2f}")

print("\nTop items:")
for item in result.items[:5]:
    print(f"  - {item.name}: ${item.total_spent:,.2f} (net ${item.net_spend:,.2f})")

print("\nTop departments:")
for category in result.categories[:5]:
    print(f"  - {category.name}: ${category.spend:,.2f}")

gas = result.gas
if gas.visits:
    print(f"\nGas: {gas.total_gallons:.1f} gal at ${gas.average_price:.3f}/gal over {gas.visits} visits")

print("\nPayment methods:")
for method in result.payments.methods:
    print(f"  - {method.name}: ${method.total:,.2f} (reward ~${method.estimated_reward:,.2f})")

print(f"\nInstant savings: ${result.discounts.total_saved:,.2f}")
