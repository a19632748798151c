"""Marts (Gold) layer: headline figures for the whole (filtered) history."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from receipts_core import constants
from receipts_core.calculations import (
    calculate_average_transaction,
    calculate_rewards,
    calculate_year_over_year_growth,
)
from receipts_core.config import AnalyticsConfig
from receipts_core.facts import fact_line_items, fact_transactions
from receipts_core.utils import to_jsonable

logger = logging.getLogger(__name__)


@dataclass
class OverviewSummary:
    """Headline totals.

    Attributes:
        visit_count: Number of transactions.
        total_spent: Signed sum of transaction totals (refunds reduce it).
        total_refunded: Absolute sum of refund transactions (negative total
            or ``transactionType == "Refund"``).
        refund_count: Number of refund transactions.
        avg_transaction: ``total_spent / visit_count``, a negative total
            counting as 0.
        item_count: Units across all lines (quantity 0 counts as 1).
        gas_spent: Total of gas transactions.
        gas_gallons: Fuel quantity on gas transactions.
        online_spent: Total of online orders.
        online_order_count: Number of online orders.
        warehouse_count: Distinct warehouse names.
        rewards_eligible: Merchandise subtotal outside gas, floored at 0.
        estimated_rewards: Executive reward on ``rewards_eligible``.
        monthly: ``YYYY-MM`` -> signed spend, months ascending.
        yearly: ``YYYY`` -> signed spend, years ascending.
        growth: Year-over-year growth between the last two years present,
            or None with fewer than two years.
    """

    visit_count: int = 0
    total_spent: float = 0.0
    total_refunded: float = 0.0
    refund_count: int = 0
    avg_transaction: float = 0.0
    item_count: float = 0.0
    gas_spent: float = 0.0
    gas_gallons: float = 0.0
    online_spent: float = 0.0
    online_order_count: int = 0
    warehouse_count: int = 0
    rewards_eligible: float = 0.0
    estimated_rewards: float = 0.0
    monthly: dict[str, float] = field(default_factory=dict)
    yearly: dict[str, float] = field(default_factory=dict)
    growth: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(vars(self))


def build_overview(
    transactions: Sequence[Mapping[str, Any]], config: AnalyticsConfig | None = None
) -> OverviewSummary:
    """Compute the headline totals for a set of transactions."""
    config = config or AnalyticsConfig()
    txs = fact_transactions(transactions, config)
    if txs.empty:
        return OverviewSummary()

    gas = txs["is_gas"].astype(bool)
    online = txs["is_online"].astype(bool)
    refund = (txs["total"] < 0) | (txs["transaction_type"] == constants.REFUND)

    lines = fact_line_items(transactions, config)
    gas_lines = lines[lines["is_gas"].astype(bool)]

    total_spent = float(txs["total"].sum())
    visit_count = len(txs)
    rewards_eligible = max(float(txs.loc[~gas, "sub_total"].sum()), 0.0)

    dated = txs[txs["month"] != constants.UNKNOWN_MONTH]
    monthly = dated.groupby("month")["total"].sum().sort_index()
    yearly = dated.groupby("year")["total"].sum().sort_index()
    yearly_map = {str(k): float(v) for k, v in yearly.items()}

    growth = None
    if len(yearly_map) >= 2:
        previous_year, current_year = list(yearly_map)[-2:]
        growth = calculate_year_over_year_growth(yearly_map, current_year, previous_year).to_dict()
        growth.update({"current_year": current_year, "previous_year": previous_year})

    summary = OverviewSummary(
        visit_count=visit_count,
        total_spent=total_spent,
        total_refunded=float(txs.loc[refund, "total"].abs().sum()),
        refund_count=int(refund.sum()),
        avg_transaction=calculate_average_transaction(max(total_spent, 0.0), visit_count),
        item_count=float(lines["quantity"].sum()) if not lines.empty else 0.0,
        gas_spent=float(txs.loc[gas, "total"].sum()),
        gas_gallons=float(gas_lines["gallons"].sum()) if not gas_lines.empty else 0.0,
        online_spent=float(txs.loc[online, "total"].sum()),
        online_order_count=int(online.sum()),
        warehouse_count=int(txs["warehouse"].dropna().nunique()),
        rewards_eligible=rewards_eligible,
        estimated_rewards=calculate_rewards(rewards_eligible, config.rewards_rate, config.max_reward),
        monthly={str(k): float(v) for k, v in monthly.items()},
        yearly=yearly_map,
        growth=growth,
    )
    logger.debug("Overview: %d transaction(s), spent %.2f", visit_count, total_spent)
    return summary
