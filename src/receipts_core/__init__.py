"""Receipts Core - analytics over warehouse receipt and online order exports.

This package turns the JSON a shopper can export from a warehouse retailer
(in-store receipts, gas station receipts, online orders) into spend,
refund, discount, gas and payment summaries, across these layers:

- **Bronze (raw)**: vendor JSON records, as exported
- **Silver (core)**: normalized transactions (``receipts_core.ingest``)
- **Silver+ (facts)**: transaction, line item and tender tables
  (``receipts_core.facts``)
- **Gold (marts)**: per item / department / month / payment method
  summaries (``receipts_core.marts``)

Module Structure:
    receipts_core.ingest: Record normalizers
    receipts_core.filters: Composable transaction filters
    receipts_core.facts: Atomic-grain DataFrames
    receipts_core.marts: Summary builders
    receipts_core.calculations: Financial formulas
    receipts_core.cache: Versioned memoization
    receipts_core.state: Observable session state
    receipts_core.api: run_analytics and AnalyticsSession
    receipts_core.config: AnalyticsConfig

Quick Start:
    >>> import json
    >>> from receipts_core import AnalyticsConfig, run_analytics
    >>> from receipts_core.filters import year_location_pipeline
    >>>
    >>> records = json.load(open("receipts.json"))
    >>> result = run_analytics(
    ...     records,
    ...     pipeline=year_location_pipeline(years=["2024"]),
    ...     config=AnalyticsConfig.from_json("analytics.json"),
    ... )
    >>> result.gas.average_price
    >>> [item.name for item in result.items[:5]]

Grain Reference:
    - core: normalized transaction - one purchase or refund event
    - facts: fact_line_items - one line; fact_tenders - one tender
    - marts: items (item id), categories (department), gas (month x grade),
      payments (method x year), refunds (refunded line)
"""

__version__ = "0.1.0"

from receipts_core.api import AnalyticsResult, AnalyticsSession, run_analytics
from receipts_core.config import AnalyticsConfig
from receipts_core.exceptions import (
    ArithmeticGuardError,
    ConfigError,
    DataValidationError,
    ReceiptsCoreError,
    UnsupportedRecordError,
)

__all__ = [
    "AnalyticsConfig",
    "AnalyticsResult",
    "AnalyticsSession",
    "ArithmeticGuardError",
    "ConfigError",
    "DataValidationError",
    "ReceiptsCoreError",
    "UnsupportedRecordError",
    "run_analytics",
    "__version__",
]
