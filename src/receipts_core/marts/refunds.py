"""Marts (Gold) layer: returns and price adjustments.

A negative, non-discount line is a **return** when its quantity is negative
and a **price adjustment** otherwise (the item was kept, money came back).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from receipts_core import constants
from receipts_core.config import AnalyticsConfig
from receipts_core.facts import fact_line_items, fact_transactions
from receipts_core.utils import to_jsonable

logger = logging.getLogger(__name__)


@dataclass
class RefundEntry:
    """One refunded line. ``buy_date``/``days_kept`` are filled by callers
    that match the return to a purchase."""

    id: str
    name: str
    amount: float
    return_date: date | None
    buy_date: date | None = None
    days_kept: int | None = None


@dataclass
class DepartmentRefund:
    id: str
    name: str
    amount: float


@dataclass
class RefundInsights:
    total_purchases: float = 0.0
    total_returned: float = 0.0
    total_adjustments: float = 0.0
    return_count: int = 0
    returns: list[RefundEntry] = field(default_factory=list)
    adjustments: list[RefundEntry] = field(default_factory=list)
    by_department: list[DepartmentRefund] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(
            {
                "total_purchases": self.total_purchases,
                "total_returned": self.total_returned,
                "total_adjustments": self.total_adjustments,
                "return_count": self.return_count,
                "returns": [vars(e) for e in self.returns],
                "adjustments": [vars(e) for e in self.adjustments],
                "by_department": [vars(d) for d in self.by_department],
            }
        )


def _newest_first(entries: list[RefundEntry]) -> list[RefundEntry]:
    # Undated entries sort last, keeping their relative order
    return sorted(
        entries,
        key=lambda e: -e.return_date.toordinal() if e.return_date is not None else 0,
    )


def collect_refund_insights(
    transactions: Sequence[Mapping[str, Any]], config: AnalyticsConfig | None = None
) -> RefundInsights:
    """Split negative lines into returns and adjustments.

    ``total_purchases`` sums only non-negative transaction totals, so
    refund receipts add nothing to it.

    Returns:
        RefundInsights with both lists newest first and departments by
        refunded amount, descending.
    """
    txs = fact_transactions(transactions, config)
    total_purchases = float(txs["total"].clip(lower=0).sum()) if not txs.empty else 0.0

    lines = fact_line_items(transactions, config)
    lines = lines[~lines["is_discount"].astype(bool) & (lines["amount"] < 0)]

    returns: list[RefundEntry] = []
    adjustments: list[RefundEntry] = []
    by_dept: dict[str, float] = {}

    for row in lines.itertuples(index=False):
        item_id = str(row.item_number or row.description or constants.UNKNOWN)
        entry = RefundEntry(
            id=item_id,
            name=row.description or f"Item #{item_id}",
            amount=abs(float(row.amount)),
            return_date=row.tx_date,
        )
        by_dept[row.department] = by_dept.get(row.department, 0.0) + entry.amount
        if row.quantity < 0:
            returns.append(entry)
        else:
            adjustments.append(entry)

    departments = [DepartmentRefund(id=d, name=f"Dept {d}", amount=a) for d, a in by_dept.items()]
    departments.sort(key=lambda d: d.amount, reverse=True)

    insights = RefundInsights(
        total_purchases=total_purchases,
        total_returned=sum(e.amount for e in returns),
        total_adjustments=sum(e.amount for e in adjustments),
        return_count=len(returns),
        returns=_newest_first(returns),
        adjustments=_newest_first(adjustments),
        by_department=departments,
    )
    logger.debug(
        "Refunds: %d return(s), %d adjustment(s)", insights.return_count, len(adjustments)
    )
    return insights
