"""Marts (Gold) layer - per-entity summaries for reporting.

This layer aggregates the core facts (Silver+ layer) into the objects a
dashboard renders. Every builder is a pure function of a list of normalized
transactions and an optional :class:`~receipts_core.config.AnalyticsConfig`;
results are rebuilt on every call and serialize with ``to_dict()``.

Grain and Layers
----------------
- **Core facts (Silver+)** are the atomic grains (``receipts_core.facts``):
  - Transactions: one row per receipt or order (``fact_transactions``)
  - Line items: one row per item, return, adjustment or discount line
    (``fact_line_items``)
  - Tenders: one row per payment instrument (``fact_tenders``)

- **Marts (Gold)** aggregate beyond those grains:
  - ``build_item_summaries``: item id
  - ``build_category_summaries``: department
  - ``collect_discount_insights``: discount target item
  - ``collect_refund_insights``: refunded line, department
  - ``collect_gas_insights``: month × fuel grade
  - ``collect_payment_insights``: payment method × year
  - ``build_overview``: whole history, month, year
"""

from receipts_core.marts.categories import CategoryItem, CategorySummary, build_category_summaries
from receipts_core.marts.discounts import DiscountInsights, DiscountTarget, collect_discount_insights
from receipts_core.marts.gas import GasInsights, collect_gas_insights
from receipts_core.marts.items import ItemSummary, PurchaseEvent, build_item_summaries
from receipts_core.marts.overview import OverviewSummary, build_overview
from receipts_core.marts.payments import PaymentInsights, PaymentMethod, collect_payment_insights
from receipts_core.marts.refunds import (
    DepartmentRefund,
    RefundEntry,
    RefundInsights,
    collect_refund_insights,
)

__all__ = [
    "build_item_summaries",
    "build_category_summaries",
    "collect_discount_insights",
    "collect_refund_insights",
    "collect_gas_insights",
    "collect_payment_insights",
    "build_overview",
    "ItemSummary",
    "PurchaseEvent",
    "CategorySummary",
    "CategoryItem",
    "DiscountInsights",
    "DiscountTarget",
    "RefundInsights",
    "RefundEntry",
    "DepartmentRefund",
    "GasInsights",
    "PaymentInsights",
    "PaymentMethod",
    "OverviewSummary",
]
