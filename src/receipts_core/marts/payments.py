"""Marts (Gold) layer: spend per payment method and card reward estimates."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from receipts_core.config import AnalyticsConfig
from receipts_core.facts import fact_tenders
from receipts_core.utils import to_jsonable

logger = logging.getLogger(__name__)


@dataclass
class PaymentMethod:
    """Usage of one tender description.

    ``yearly`` maps ``YYYY`` (or ``"Unknown"``) to the amount paid, keys
    ascending.
    """

    name: str
    total: float = 0.0
    count: int = 0
    gas_spend: float = 0.0
    merch_spend: float = 0.0
    yearly: dict[str, float] = field(default_factory=dict)
    estimated_reward: float = 0.0


@dataclass
class PaymentInsights:
    total: float = 0.0
    methods: list[PaymentMethod] = field(default_factory=list)
    rewards: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(
            {
                "total": self.total,
                "methods": [vars(m) for m in self.methods],
                "rewards": self.rewards,
            }
        )


def estimate_reward(method: PaymentMethod, config: AnalyticsConfig) -> float:
    """Card reward estimate for one payment method.

    The co-brand card (matched case-insensitively on its marker) earns
    separate gas and merchandise rates; any other method earns the default
    rate on its total.
    """
    if config.cobrand_card_marker.upper() in method.name.upper():
        return method.gas_spend * config.cobrand_gas_rate + method.merch_spend * config.cobrand_merch_rate
    return method.total * config.default_card_rate


def collect_payment_insights(
    transactions: Sequence[Mapping[str, Any]], config: AnalyticsConfig | None = None
) -> PaymentInsights:
    """Aggregate tender lines per payment method.

    Tender amounts count as absolute values. Gas vs merchandise uses the
    same gas detector as :func:`receipts_core.marts.gas.collect_gas_insights`.

    Returns:
        PaymentInsights with methods sorted by total, descending.
    """
    config = config or AnalyticsConfig()
    tenders = fact_tenders(transactions, config)
    if tenders.empty:
        return PaymentInsights()

    gas = tenders["is_gas"].astype(bool)
    frame = tenders.assign(
        gas_amount=tenders["amount"].where(gas, 0.0),
        merch_amount=tenders["amount"].where(~gas, 0.0),
    )

    methods: list[PaymentMethod] = []
    for name, group in frame.groupby("method", sort=False):
        yearly = group.groupby("year")["amount"].sum().sort_index()
        method = PaymentMethod(
            name=str(name),
            total=float(group["amount"].sum()),
            count=len(group),
            gas_spend=float(group["gas_amount"].sum()),
            merch_spend=float(group["merch_amount"].sum()),
            yearly={str(k): float(v) for k, v in yearly.items()},
        )
        method.estimated_reward = estimate_reward(method, config)
        methods.append(method)

    methods.sort(key=lambda m: m.total, reverse=True)
    insights = PaymentInsights(
        total=float(frame["amount"].sum()),
        methods=methods,
        rewards=sum(m.estimated_reward for m in methods),
    )
    logger.debug("Payments: %d method(s), total %.2f", len(methods), insights.total)
    return insights
