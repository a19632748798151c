"""Marts (Gold) layer: instant savings from discount lines."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from receipts_core import constants
from receipts_core.config import AnalyticsConfig
from receipts_core.facts import fact_line_items
from receipts_core.utils import to_jsonable

logger = logging.getLogger(__name__)


@dataclass
class DiscountTarget:
    id: str
    name: str
    total: float = 0.0
    count: int = 0


@dataclass
class DiscountInsights:
    """Savings totals and the items saved on most.

    Attributes:
        total_saved: Sum of absolute discount amounts.
        discount_count: Number of non-zero discount lines.
        top_items: Discount targets by total saved, descending, capped at
            ``AnalyticsConfig.top_discount_items``.
    """

    total_saved: float = 0.0
    discount_count: int = 0
    top_items: list[DiscountTarget] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(
            {
                "total_saved": self.total_saved,
                "discount_count": self.discount_count,
                "top_items": [vars(t) for t in self.top_items],
            }
        )


def _target_id(target: Any, item_number: Any, description: str) -> str:
    return str(target or item_number or description or constants.UNKNOWN)


def collect_discount_insights(
    transactions: Sequence[Mapping[str, Any]], config: AnalyticsConfig | None = None
) -> DiscountInsights:
    """Total the discount lines and rank the items they were applied to.

    Zero-amount discount lines are ignored. A discount whose description
    holds no item id falls back to the line's item number, then to the
    description itself.
    """
    config = config or AnalyticsConfig()
    lines = fact_line_items(transactions, config)
    lines = lines[lines["is_discount"].astype(bool) & (lines["amount"] != 0)]
    if lines.empty:
        return DiscountInsights()

    frame = lines.assign(
        target_id=[
            _target_id(t, n, d)
            for t, n, d in zip(lines["discount_target"], lines["item_number"], lines["description"])
        ],
        target_name=[d.replace("/", "", 1).strip() for d in lines["description"]],
        saved=lines["amount"].abs(),
    )

    grouped = frame.groupby("target_id", sort=False).agg(
        name=("target_name", "first"), total=("saved", "sum"), count=("saved", "size")
    )
    targets = [
        DiscountTarget(
            id=str(target_id),
            name=row["name"] or f"Item #{target_id}",
            total=float(row["total"]),
            count=int(row["count"]),
        )
        for target_id, row in grouped.iterrows()
    ]
    targets.sort(key=lambda t: t.total, reverse=True)

    insights = DiscountInsights(
        total_saved=float(frame["saved"].sum()),
        discount_count=len(frame),
        top_items=targets[: config.top_discount_items],
    )
    logger.debug(
        "Discounts: %d line(s), %d target(s), saved %.2f",
        insights.discount_count,
        len(targets),
        insights.total_saved,
    )
    return insights
