"""Financial formulas used by the marts and by report consumers.

All functions are pure. Numeric arguments are validated up front: a
negative, non-finite or non-numeric value raises
:class:`~receipts_core.exceptions.ArithmeticGuardError`. That is a bug in
the caller, so nothing in this package catches it.

Examples:
    >>> calculate_rewards(25000)
    500.0
    >>> calculate_rewards(50000)
    1000.0
    >>> calculate_refund_rate(0, 0)
    0.0
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from typing import Any

import numpy as np

from receipts_core import constants
from receipts_core.exceptions import ArithmeticGuardError
from receipts_core.utils import to_date

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return (
        not isinstance(value, bool)
        and isinstance(value, (int, float, np.number))
        and math.isfinite(value)
    )


def _non_negative(name: str, value: Any) -> float:
    if not _is_number(value) or value < 0:
        raise ArithmeticGuardError(f"{name} must be a non-negative number", {name: value})
    return float(value)


def _numeric_array(name: str, values: Any) -> np.ndarray:
    if isinstance(values, (str, bytes, Mapping)) or not isinstance(values, Iterable):
        raise ArithmeticGuardError(f"{name} must be a non-empty list of numbers", {name: values})
    values = list(values)
    if not values or not all(_is_number(v) for v in values):
        raise ArithmeticGuardError(f"{name} must be a non-empty list of numbers", {name: values})
    return np.asarray(values, dtype=float)


def _field_number(name: str, value: Any) -> float:
    """Coerce a record field to float. Missing values count as 0."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0.0
    if isinstance(value, bool):
        raise ArithmeticGuardError(f"{name} must be numeric", {name: value})
    try:
        num = float(value)
    except (TypeError, ValueError) as exc:
        raise ArithmeticGuardError(f"{name} must be numeric", {name: value}) from exc
    if not math.isfinite(num):
        raise ArithmeticGuardError(f"{name} must be finite", {name: value})
    return num


def _records(name: str, values: Any) -> list[Mapping[str, Any]]:
    if isinstance(values, (str, bytes, Mapping)) or not isinstance(values, Iterable):
        raise ArithmeticGuardError(f"{name} must be a list", {name: values})
    values = list(values)
    for i, value in enumerate(values):
        if not isinstance(value, Mapping):
            raise ArithmeticGuardError(f"{name} entries must be mappings", {"index": i, "entry": value})
    return values


@dataclass
class RefundClassification:
    type: str
    amount: float
    matched_purchase: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Statistics:
    """Population statistics: variance divides by n, not n - 1."""

    mean: float
    variance: float
    std_dev: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Growth:
    growth: float
    growth_percent: float
    current: float
    previous: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class GasMetrics:
    total_spent: float
    total_gallons: float
    avg_price_per_gallon: float
    transaction_count: int | None = None
    average_fill_up: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DiscountEffect:
    saved: float
    percent_off: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def calculate_rewards(
    subtotal: float,
    rate: float = constants.REWARDS_RATE,
    max_reward: float = constants.MAX_REWARD,
) -> float:
    """Executive membership reward on a merchandise subtotal, capped.

    Args:
        subtotal: Reward-eligible spend.
        rate: Reward rate.
        max_reward: Annual cap.

    Returns:
        ``min(subtotal * rate, max_reward)``.

    Raises:
        ArithmeticGuardError: If any argument is negative or not a number.
    """
    subtotal = _non_negative("subtotal", subtotal)
    rate = _non_negative("rate", rate)
    max_reward = _non_negative("max_reward", max_reward)
    reward = subtotal * rate
    if reward > max_reward:
        logger.debug("Reward %.2f capped at %.2f", reward, max_reward)
        return max_reward
    return reward


def calculate_refund_rate(total_spent: float, total_refunded: float) -> float:
    """Refunded share of spend, as a percentage. 0 when nothing was spent."""
    total_spent = _non_negative("total_spent", total_spent)
    total_refunded = _non_negative("total_refunded", total_refunded)
    if total_spent == 0:
        return 0.0
    return total_refunded / total_spent * 100


def calculate_average_transaction(total_spent: float, transaction_count: float) -> float:
    """Average value per transaction. 0 when the count is 0."""
    total_spent = _non_negative("total_spent", total_spent)
    transaction_count = _non_negative("transaction_count", transaction_count)
    if transaction_count == 0:
        return 0.0
    return total_spent / transaction_count


def calculate_average_purchase(total_spent: float, purchase_count: float) -> float:
    return calculate_average_transaction(total_spent, purchase_count)


def calculate_average_item_price(total_spent: float, item_count: float) -> float:
    """Average price per item. 0 when the count is 0."""
    total_spent = _non_negative("total_spent", total_spent)
    item_count = _non_negative("item_count", item_count)
    if item_count == 0:
        return 0.0
    return total_spent / item_count


def classify_refund_type(
    item: Mapping[str, Any],
    purchase_history: Iterable[Mapping[str, Any]] = (),
    tolerance: float = constants.PRICE_MATCH_TOLERANCE,
) -> RefundClassification | None:
    """Tell a full return from a price adjustment.

    Args:
        item: Refunded line. Reads ``totalPrice`` (or ``amount``),
            ``quantity`` (or ``unit``), ``unitPrice`` and ``productName``.
        purchase_history: Earlier purchases with ``productName`` and
            ``unitPrice``.
        tolerance: Max unit price difference for a purchase to match.

    Returns:
        None when the item is not a refund (total >= 0). Otherwise a
        classification: ``PRICE_ADJUSTMENT`` when the quantity is not
        negative, else ``FULL_RETURN`` with ``matched_purchase`` set when a
        purchase of the same product at the same price exists.

    Raises:
        ArithmeticGuardError: If item is not a mapping, history is not a
            list of mappings, or a price or quantity is not numeric.

    Examples:
        >>> classify_refund_type({"totalPrice": -50, "quantity": -1}).to_dict()
        {'type': 'FULL_RETURN', 'amount': 50.0, 'matched_purchase': False}
        >>> classify_refund_type({"totalPrice": -10, "quantity": 1}).type
        'PRICE_ADJUSTMENT'
    """
    if not isinstance(item, Mapping):
        raise ArithmeticGuardError("Item must be a mapping", {"item": item})
    purchase_history = _records("purchase_history", purchase_history)

    total_price = _field_number("totalPrice", item.get("totalPrice") or item.get("amount"))
    quantity = _field_number("quantity", item.get("quantity") or item.get("unit"))
    unit_price = _field_number("unitPrice", item.get("unitPrice"))

    if total_price >= 0:
        return None

    amount = abs(total_price)
    if quantity >= 0:
        return RefundClassification(type=constants.PRICE_ADJUSTMENT, amount=amount)

    product = item.get("productName")
    matched = any(
        p.get("productName") == product
        and abs(_field_number("unitPrice", p.get("unitPrice")) - unit_price) < tolerance
        for p in purchase_history
    )
    return RefundClassification(type=constants.FULL_RETURN, amount=amount, matched_purchase=matched)


def calculate_days_kept(purchase_date: Any, return_date: Any) -> int | None:
    """Whole days between purchase and return, or None if a date is unusable.

    Accepts dates, datetimes and ISO strings. Times and timezones are
    dropped, so only the calendar dates are compared.

    Examples:
        >>> calculate_days_kept("2023-01-15", "2023-02-20")
        36
    """
    start = to_date(purchase_date)
    end = to_date(return_date)
    if start is None or end is None:
        return None
    return (end - start).days


def calculate_standard_deviation(values: Iterable[float]) -> Statistics:
    """Mean, population variance and standard deviation.

    Examples:
        >>> calculate_standard_deviation([10, 20, 30, 40, 50]).variance
        200.0
    """
    arr = _numeric_array("values", values)
    variance = float(np.var(arr))
    return Statistics(mean=float(arr.mean()), variance=variance, std_dev=math.sqrt(variance))


def calculate_percentile(value: float, dataset: Iterable[float]) -> float:
    """Share of the dataset strictly below value, as a percentage."""
    if not _is_number(value):
        raise ArithmeticGuardError("value must be a number", {"value": value})
    arr = _numeric_array("dataset", dataset)
    return float(np.count_nonzero(arr < value)) / arr.size * 100


def calculate_year_over_year_growth(
    yearly: Mapping[str, float], current_year: str | int, previous_year: str | int
) -> Growth:
    """Growth between two years of a year -> amount map.

    Missing years count as 0. With no previous amount the growth percent is
    100 when the current year has spend, else 0.

    Examples:
        >>> calculate_year_over_year_growth({"2022": 5000, "2023": 6000}, "2023", "2022").growth_percent
        20.0
    """
    if not isinstance(yearly, Mapping):
        raise ArithmeticGuardError("Yearly data must be a mapping", {"yearly": yearly})

    current = _field_number(str(current_year), yearly.get(str(current_year)))
    previous = _field_number(str(previous_year), yearly.get(str(previous_year)))

    if previous == 0:
        return Growth(
            growth=current,
            growth_percent=100.0 if current > 0 else 0.0,
            current=current,
            previous=previous,
        )

    growth = current - previous
    return Growth(growth=growth, growth_percent=growth / previous * 100, current=current, previous=previous)


def calculate_gas_metrics(
    fill_ups: Iterable[Mapping[str, Any]] | None = None,
    *,
    total_spent: float | None = None,
    total_gallons: float | None = None,
) -> GasMetrics:
    """Price per gallon from a list of fill-ups or from explicit totals.

    Args:
        fill_ups: Records with ``totalPrice`` and ``gallons``. When given,
            the keyword totals are ignored.
        total_spent: Total gas spend.
        total_gallons: Total gallons.

    Raises:
        ArithmeticGuardError: If neither form is given, or a total is
            negative.
    """
    if fill_ups is not None:
        fill_ups = _records("fill_ups", fill_ups)
        spent = sum(_field_number("totalPrice", f.get("totalPrice")) for f in fill_ups)
        gallons = sum(_field_number("gallons", f.get("gallons")) for f in fill_ups)
        return GasMetrics(
            total_spent=spent,
            total_gallons=gallons,
            avg_price_per_gallon=spent / gallons if gallons > 0 else 0.0,
            transaction_count=len(fill_ups),
            average_fill_up=spent / len(fill_ups) if fill_ups else 0.0,
        )

    if total_spent is None or total_gallons is None:
        raise ArithmeticGuardError(
            "calculate_gas_metrics needs fill_ups or both totals",
            {"total_spent": total_spent, "total_gallons": total_gallons},
        )
    spent = _non_negative("total_spent", total_spent)
    gallons = _non_negative("total_gallons", total_gallons)
    return GasMetrics(
        total_spent=spent,
        total_gallons=gallons,
        avg_price_per_gallon=spent / gallons if gallons > 0 else 0.0,
    )


def calculate_monthly_average(monthly_spend: Mapping[str, float]) -> float:
    """Mean of a month -> spend map. 0 for an empty map."""
    if not isinstance(monthly_spend, Mapping):
        raise ArithmeticGuardError("Monthly spend must be a mapping", {"monthly_spend": monthly_spend})
    if not monthly_spend:
        return 0.0
    return float(np.mean(_numeric_array("monthly_spend", monthly_spend.values())))


def calculate_discount_effectiveness(regular_price: float, discounted_price: float) -> DiscountEffect:
    """Amount saved and percent off. Both zero when the regular price is 0."""
    regular_price = _non_negative("regular_price", regular_price)
    discounted_price = _non_negative("discounted_price", discounted_price)
    if regular_price == 0:
        return DiscountEffect(saved=0.0, percent_off=0.0)
    saved = regular_price - discounted_price
    return DiscountEffect(saved=saved, percent_off=saved / regular_price * 100)


def aggregate_by_category(items: Iterable[Mapping[str, Any]]) -> dict[str, float]:
    """Sum ``amount`` per ``category`` (``"Other"`` when missing), first-seen order."""
    totals: dict[str, float] = {}
    for item in _records("items", items):
        category = item.get("category") or constants.OTHER_DEPARTMENT
        totals[category] = totals.get(category, 0.0) + _field_number("amount", item.get("amount"))
    return totals
