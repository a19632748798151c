"""Marts (Gold) layer: per-item purchase, refund and discount summaries.

Grain: one row per item id. Discount lines never get an entry of their own;
their savings are attributed to the item they reference, which may create
an entry for an item that was never bought in the selected period.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import pandas as pd

from receipts_core.config import AnalyticsConfig
from receipts_core.facts import fact_line_items
from receipts_core.utils import to_jsonable

logger = logging.getLogger(__name__)


@dataclass
class PurchaseEvent:
    """One purchase of an item: when, where, how many and at what price."""

    date: date | None
    warehouse: str
    quantity: float
    price: float
    total: float


@dataclass
class ItemSummary:
    """Lifetime figures for a single item id.

    Attributes:
        id: Item number (or description when the line has no number).
        name: First non-empty description seen for the item.
        total_spent: Sum of non-negative line amounts.
        total_refunded: Sum of absolute negative line amounts.
        discount_total: Savings from discount lines referencing this item.
        unit_count: Units bought (negative quantities count as zero).
        refund_count: Units refunded.
        discount_count: Number of discount lines applied.
        purchase_events: Purchases in ascending date order.
        departments: Department ids the item was sold under.
        first_purchase: Earliest purchase date.
        last_purchase: Latest purchase date.
    """

    id: str
    name: str
    total_spent: float = 0.0
    total_refunded: float = 0.0
    discount_total: float = 0.0
    unit_count: float = 0.0
    refund_count: float = 0.0
    discount_count: int = 0
    purchase_events: list[PurchaseEvent] = field(default_factory=list)
    departments: list[str] = field(default_factory=list)
    first_purchase: date | None = None
    last_purchase: date | None = None

    @property
    def net_spend(self) -> float:
        return self.total_spent - self.total_refunded - self.discount_total

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(
            {
                "id": self.id,
                "name": self.name,
                "total_spent": self.total_spent,
                "total_refunded": self.total_refunded,
                "discount_total": self.discount_total,
                "net_spend": self.net_spend,
                "unit_count": self.unit_count,
                "refund_count": self.refund_count,
                "discount_count": self.discount_count,
                "purchase_events": [vars(e) for e in self.purchase_events],
                "departments": self.departments,
                "first_purchase": self.first_purchase,
                "last_purchase": self.last_purchase,
            }
        )


def sort_purchase_events(events: list[PurchaseEvent]) -> list[PurchaseEvent]:
    """Sort purchases ascending by date; undated events keep their index.

    Dated events are stable-sorted among the positions they occupy.
    """
    dated = iter(sorted((e for e in events if e.date is not None), key=lambda e: e.date))
    return [e if e.date is None else next(dated) for e in events]


def _item_name(group: pd.DataFrame, item_id: str) -> str:
    names = group.loc[~group["is_discount"] & (group["description"] != ""), "description"]
    return names.iloc[0] if len(names) else f"Item {item_id}"


def build_item_summaries(
    transactions: Sequence[Mapping[str, Any]], config: AnalyticsConfig | None = None
) -> list[ItemSummary]:
    """Aggregate line items into one summary per item.

    Args:
        transactions: Normalized (optionally filtered) transactions. Not
            modified.
        config: Analytics settings.

    Returns:
        Item summaries sorted by ``total_spent`` descending; ties keep the
        order in which items were first seen.

    Examples:
        >>> tx = [{"transactionDate": "2024-01-05", "itemArray": [
        ...     {"itemNumber": "111", "itemDescription01": "MILK", "amount": 4.0, "unit": 1},
        ...     {"itemNumber": "9", "itemDescription01": "/111", "amount": -1.0, "unit": 1},
        ... ]}]
        >>> [(s.id, s.net_spend) for s in build_item_summaries(tx)]
        [('111', 3.0)]
    """
    lines = fact_line_items(transactions, config)
    lines = lines[lines["item_key"].notna()]
    if lines.empty:
        return []

    discount = lines["is_discount"].astype(bool)
    purchase = ~discount & (lines["amount"] >= 0)
    refund = ~discount & (lines["amount"] < 0)

    frame = lines.assign(
        is_discount=discount,
        is_purchase=purchase,
        spent=lines["amount"].where(purchase, 0.0),
        units=lines["quantity"].clip(lower=0).where(purchase, 0.0),
        refunded=lines["amount"].abs().where(refund, 0.0),
        refund_units=lines["quantity"].abs().where(refund, 0.0),
        saved=lines["amount"].abs().where(discount, 0.0),
        discount_lines=discount.astype(int),
    )

    summaries: list[ItemSummary] = []
    for item_id, group in frame.groupby("item_key", sort=False):
        bought = group[group["is_purchase"]]
        events = [
            PurchaseEvent(
                date=row.tx_date,
                warehouse=row.warehouse,
                quantity=float(row.quantity),
                price=float(row.unit_price),
                total=float(row.amount),
            )
            for row in bought.itertuples(index=False)
        ]
        dates = [e.date for e in events if e.date is not None]
        departments = list(dict.fromkeys(group.loc[~group["is_discount"], "department"]))

        summaries.append(
            ItemSummary(
                id=str(item_id),
                name=_item_name(group, str(item_id)),
                total_spent=float(group["spent"].sum()),
                total_refunded=float(group["refunded"].sum()),
                discount_total=float(group["saved"].sum()),
                unit_count=float(group["units"].sum()),
                refund_count=float(group["refund_units"].sum()),
                discount_count=int(group["discount_lines"].sum()),
                purchase_events=sort_purchase_events(events),
                departments=departments,
                first_purchase=min(dates) if dates else None,
                last_purchase=max(dates) if dates else None,
            )
        )

    summaries.sort(key=lambda s: s.total_spent, reverse=True)
    logger.debug("Built %d item summaries from %d line(s)", len(summaries), len(lines))
    return summaries
