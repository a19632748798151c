"""Marts (Gold) layer: spend and refunds per department."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from receipts_core.config import AnalyticsConfig
from receipts_core.facts import fact_line_items
from receipts_core.utils import to_jsonable

logger = logging.getLogger(__name__)


@dataclass
class CategoryItem:
    name: str
    total: float = 0.0
    count: int = 0


@dataclass
class CategorySummary:
    """Department-level totals.

    Attributes:
        id: Department number, or ``"Other"``.
        name: Department description when the export has one, else
            ``"Dept <id>"``.
        spend: Sum of non-negative line amounts.
        refund_amount: Sum of absolute negative line amounts.
        return_count: Number of negative lines.
        monthly: ``YYYY-MM`` -> spend, in first-seen order.
        items: Per item name totals, sorted by total descending. Items seen
            only in refunds appear with a zero total.
    """

    id: str
    name: str
    spend: float = 0.0
    refund_amount: float = 0.0
    return_count: int = 0
    monthly: dict[str, float] = field(default_factory=dict)
    items: list[CategoryItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(
            {
                "id": self.id,
                "name": self.name,
                "spend": self.spend,
                "refund_amount": self.refund_amount,
                "return_count": self.return_count,
                "monthly": self.monthly,
                "items": [vars(i) for i in self.items],
            }
        )


def build_category_summaries(
    transactions: Sequence[Mapping[str, Any]], config: AnalyticsConfig | None = None
) -> list[CategorySummary]:
    """Group non-discount line items by department.

    Returns:
        Category summaries sorted by spend descending (ties in first-seen
        order).
    """
    lines = fact_line_items(transactions, config)
    lines = lines[~lines["is_discount"].astype(bool)]
    if lines.empty:
        return []

    purchase = lines["amount"] >= 0
    item_names = [
        desc or (str(num) if num else "Item")
        for desc, num in zip(lines["description"], lines["item_number"])
    ]
    frame = lines.assign(
        item_name=item_names,
        is_purchase=purchase,
        spent=lines["amount"].where(purchase, 0.0),
        refunded=lines["amount"].abs().where(~purchase, 0.0),
    )

    summaries: list[CategorySummary] = []
    for dept, group in frame.groupby("department", sort=False):
        described = group.loc[group["department_description"] != "", "department_description"]
        bought = group[group["is_purchase"]]
        monthly = bought.groupby("month", sort=False)["amount"].sum()

        per_item = group.groupby("item_name", sort=False).agg(
            total=("spent", "sum"), count=("is_purchase", "sum")
        )
        items = [
            CategoryItem(name=str(name), total=float(row["total"]), count=int(row["count"]))
            for name, row in per_item.iterrows()
        ]
        items.sort(key=lambda i: i.total, reverse=True)

        summaries.append(
            CategorySummary(
                id=str(dept),
                name=described.iloc[0] if len(described) else f"Dept {dept}",
                spend=float(group["spent"].sum()),
                refund_amount=float(group["refunded"].sum()),
                return_count=int((~group["is_purchase"]).sum()),
                monthly={str(k): float(v) for k, v in monthly.items()},
                items=items,
            )
        )

    summaries.sort(key=lambda s: s.spend, reverse=True)
    logger.debug("Built %d category summaries", len(summaries))
    return summaries
