"""Marts (Gold) layer: gas station spend, gallons and price per grade.

Grain: transaction-level totals per calendar month, plus fuel lines bucketed
by (month, grade) for the price history.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from receipts_core.config import AnalyticsConfig
from receipts_core.facts import fact_line_items, fact_transactions
from receipts_core.utils import to_jsonable

logger = logging.getLogger(__name__)

GAS_LOCATION_FALLBACK = "Gas Station"


@dataclass
class GasInsights:
    """Gas station summary.

    Attributes:
        total_spent: Sum of gas transaction totals.
        total_gallons: Gallons on fuel lines with a positive quantity and
            unit price.
        average_price: Gallon-weighted average unit price, 0 without gallons.
        visits: Number of gas transactions.
        location_count: Distinct gas station names.
        monthly: ``{"labels": [YYYY-MM, ...], "values": [spend, ...]}``,
            months ascending.
        price_history: One row per month, ``{"month": m, <grade>: price}``
            where price is spend/gallons for that grade, or None when the
            grade has no gallons that month.
        grade_breakdown: One row per month, ``{"month": m,
            "<grade>_spend": spend}``.
    """

    total_spent: float = 0.0
    total_gallons: float = 0.0
    average_price: float = 0.0
    visits: int = 0
    location_count: int = 0
    monthly: dict[str, list[Any]] = field(default_factory=lambda: {"labels": [], "values": []})
    price_history: list[dict[str, Any]] = field(default_factory=list)
    grade_breakdown: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(vars(self))


def collect_gas_insights(
    transactions: Sequence[Mapping[str, Any]], config: AnalyticsConfig | None = None
) -> GasInsights:
    """Summarize gas station purchases.

    Args:
        transactions: Normalized transactions; non-gas ones are ignored.
        config: Supplies the gas markers and the fuel grade codes.

    Returns:
        GasInsights. Grade buckets without gallons report a None price
        rather than dividing by zero.
    """
    config = config or AnalyticsConfig()

    txs = fact_transactions(transactions, config)
    gas_txs = txs[txs["is_gas"].astype(bool)]
    if gas_txs.empty:
        return GasInsights()

    monthly_totals = gas_txs.groupby("month")["total"].sum().sort_index()
    labels = [str(m) for m in monthly_totals.index]

    lines = fact_line_items(transactions, config)
    gas_lines = lines[lines["is_gas"].astype(bool)]

    priced = gas_lines[(gas_lines["gallons"] > 0) & (gas_lines["fuel_price"] > 0)]
    total_gallons = float(priced["gallons"].sum())
    weighted = float((priced["gallons"] * priced["fuel_price"]).sum())

    graded = gas_lines[gas_lines["grade"].notna()]
    grouped = (
        graded.assign(spend=graded["amount"].abs())
        .groupby(["month", "grade"])[["spend", "gallons"]]
        .sum()
    )
    buckets = {row.Index: (float(row.spend), float(row.gallons)) for row in grouped.itertuples()}

    price_history: list[dict[str, Any]] = []
    grade_breakdown: list[dict[str, Any]] = []
    for month in labels:
        prices: dict[str, Any] = {"month": month}
        spend: dict[str, Any] = {"month": month}
        for grade in config.grade_names:
            grade_spend, gallons = buckets.get((month, grade), (0.0, 0.0))
            prices[grade] = grade_spend / gallons if gallons > 0 else None
            spend[f"{grade}_spend"] = grade_spend
        price_history.append(prices)
        grade_breakdown.append(spend)

    insights = GasInsights(
        total_spent=float(gas_txs["total"].sum()),
        total_gallons=total_gallons,
        average_price=weighted / total_gallons if total_gallons > 0 else 0.0,
        visits=len(gas_txs),
        location_count=int(gas_txs["warehouse"].fillna(GAS_LOCATION_FALLBACK).nunique()),
        monthly={"labels": labels, "values": [float(v) for v in monthly_totals]},
        price_history=price_history,
        grade_breakdown=grade_breakdown,
    )
    logger.debug("Gas: %d visit(s), %.2f gallon(s)", insights.visits, insights.total_gallons)
    return insights
