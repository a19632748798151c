"""Tests for the financial formulas and their input guards."""

import math
from datetime import date, datetime, timezone

import numpy as np
import pytest

from receipts_core.calculations import (
    aggregate_by_category,
    calculate_average_item_price,
    calculate_average_purchase,
    calculate_average_transaction,
    calculate_days_kept,
    calculate_discount_effectiveness,
    calculate_gas_metrics,
    calculate_monthly_average,
    calculate_percentile,
    calculate_refund_rate,
    calculate_rewards,
    calculate_standard_deviation,
    calculate_year_over_year_growth,
    classify_refund_type,
)
from receipts_core.exceptions import ArithmeticGuardError


class TestRewards:
    def test_uncapped(self) -> None:
        assert calculate_rewards(25000) == 500.0

    def test_capped(self) -> None:
        assert calculate_rewards(50000) == 1000.0

    def test_custom_rate_and_cap(self) -> None:
        assert calculate_rewards(1000, rate=0.05, max_reward=20) == 20.0

    @pytest.mark.parametrize("bad", [-1, "100", None, math.nan, True])
    def test_rejects_bad_subtotal(self, bad) -> None:
        with pytest.raises(ArithmeticGuardError, match="subtotal"):
            calculate_rewards(bad)

    def test_accepts_numpy_scalars(self) -> None:
        assert calculate_rewards(np.float64(25000)) == 500.0


class TestRatesAndAverages:
    def test_refund_rate(self) -> None:
        assert calculate_refund_rate(10000, 500) == pytest.approx(5.0)
        assert calculate_refund_rate(0, 0) == 0.0

    def test_refund_rate_rejects_negative(self) -> None:
        with pytest.raises(ArithmeticGuardError, match="total_refunded"):
            calculate_refund_rate(100, -1)

    def test_averages(self) -> None:
        assert calculate_average_transaction(300, 4) == 75.0
        assert calculate_average_transaction(300, 0) == 0.0
        assert calculate_average_purchase(90, 3) == 30.0
        assert calculate_average_item_price(50, 20) == 2.5
        assert calculate_average_item_price(50, 0) == 0.0

    def test_monthly_average(self) -> None:
        assert calculate_monthly_average({"2024-01": 100, "2024-02": 300}) == 200.0
        assert calculate_monthly_average({}) == 0.0

    def test_monthly_average_rejects_list(self) -> None:
        with pytest.raises(ArithmeticGuardError):
            calculate_monthly_average([100, 200])


class TestClassifyRefundType:
    def test_full_return(self) -> None:
        result = classify_refund_type({"totalPrice": -50, "quantity": -1}, [])

        assert result.type == "FULL_RETURN"
        assert result.amount == 50.0
        assert result.matched_purchase is False

    def test_price_adjustment(self) -> None:
        result = classify_refund_type({"totalPrice": -10, "quantity": 1}, [])

        assert result.type == "PRICE_ADJUSTMENT"
        assert result.amount == 10.0

    def test_not_a_refund(self) -> None:
        assert classify_refund_type({"totalPrice": 10, "quantity": 1}) is None

    def test_matches_prior_purchase_within_tolerance(self) -> None:
        item = {"totalPrice": -20, "quantity": -1, "unitPrice": 20.0, "productName": "TV"}
        history = [
            {"productName": "TV", "unitPrice": 20.01},
            {"productName": "RADIO", "unitPrice": 20.0},
        ]

        assert classify_refund_type(item, history).matched_purchase is True
        assert classify_refund_type(item, history[1:]).matched_purchase is False

    def test_receipt_line_fields(self) -> None:
        """Receipt lines use amount and unit instead of totalPrice and quantity."""
        assert classify_refund_type({"amount": -5, "unit": -1}).type == "FULL_RETURN"

    def test_rejects_non_mapping(self) -> None:
        with pytest.raises(ArithmeticGuardError):
            classify_refund_type(["totalPrice", -1])

    def test_rejects_bad_history(self) -> None:
        with pytest.raises(ArithmeticGuardError):
            classify_refund_type({"totalPrice": -1, "quantity": -1}, "history")

    @pytest.mark.parametrize(
        "item",
        [
            {"totalPrice": "abc", "quantity": -1},
            {"totalPrice": -5, "quantity": "one"},
            {"totalPrice": -5, "quantity": -1, "unitPrice": math.nan},
            {"totalPrice": [5], "quantity": -1},
        ],
    )
    def test_rejects_non_numeric_fields(self, item) -> None:
        with pytest.raises(ArithmeticGuardError, match="must be"):
            classify_refund_type(item)

    def test_numeric_strings_are_accepted(self) -> None:
        result = classify_refund_type({"totalPrice": "-12.5", "quantity": "-1"})

        assert result.type == "FULL_RETURN"
        assert result.amount == 12.5

    def test_rejects_history_entries_that_are_not_mappings(self) -> None:
        with pytest.raises(ArithmeticGuardError, match="mappings"):
            classify_refund_type({"totalPrice": -5, "quantity": -1}, [{"unitPrice": 5}, "KIRKLAND"])

    def test_rejects_non_numeric_history_price(self) -> None:
        history = [{"productName": "TV", "unitPrice": "n/a"}]

        with pytest.raises(ArithmeticGuardError, match="unitPrice"):
            classify_refund_type({"totalPrice": -5, "quantity": -1, "productName": "TV"}, history)


class TestStatistics:
    def test_population_statistics(self) -> None:
        stats = calculate_standard_deviation([10, 20, 30, 40, 50])

        assert stats.mean == 30.0
        assert stats.variance == 200.0
        assert stats.std_dev == pytest.approx(14.142, abs=1e-3)

    @pytest.mark.parametrize("bad", [[], [1, "2"], "123", None, [1, math.inf]])
    def test_rejects_bad_values(self, bad) -> None:
        with pytest.raises(ArithmeticGuardError):
            calculate_standard_deviation(bad)

    def test_percentile(self) -> None:
        assert calculate_percentile(30, [10, 20, 30, 40, 50]) == 40.0
        assert calculate_percentile(5, [10, 20]) == 0.0

    def test_percentile_rejects_bad_value(self) -> None:
        with pytest.raises(ArithmeticGuardError):
            calculate_percentile("30", [10, 20])


class TestGrowthAndGas:
    def test_year_over_year(self) -> None:
        growth = calculate_year_over_year_growth({"2022": 5000, "2023": 6000}, "2023", "2022")

        assert growth.growth == 1000.0
        assert growth.growth_percent == pytest.approx(20.0)

    def test_year_over_year_without_previous(self) -> None:
        assert calculate_year_over_year_growth({"2023": 10}, 2023, 2022).growth_percent == 100.0
        assert calculate_year_over_year_growth({}, 2023, 2022).growth_percent == 0.0

    @pytest.mark.parametrize("yearly", [{"2023": "abc", "2022": 5}, {"2023": 10, "2022": math.inf}, ["2023"]])
    def test_year_over_year_rejects_bad_amounts(self, yearly) -> None:
        with pytest.raises(ArithmeticGuardError):
            calculate_year_over_year_growth(yearly, "2023", "2022")

    @pytest.mark.parametrize(
        "fill_ups",
        [[{"totalPrice": "lots", "gallons": 10}], [{"totalPrice": 40, "gallons": 10}, 40], "fill-ups"],
    )
    def test_gas_metrics_rejects_bad_fill_ups(self, fill_ups) -> None:
        with pytest.raises(ArithmeticGuardError):
            calculate_gas_metrics(fill_ups)

    def test_gas_metrics_from_fill_ups(self) -> None:
        metrics = calculate_gas_metrics([{"totalPrice": 40, "gallons": 10}, {"totalPrice": 45, "gallons": 9}])

        assert metrics.total_spent == 85.0
        assert metrics.total_gallons == 19.0
        assert metrics.avg_price_per_gallon == pytest.approx(85 / 19)
        assert metrics.transaction_count == 2
        assert metrics.average_fill_up == 42.5

    def test_gas_metrics_from_totals(self) -> None:
        metrics = calculate_gas_metrics(total_spent=30, total_gallons=0)

        assert metrics.avg_price_per_gallon == 0.0
        assert metrics.transaction_count is None

    def test_gas_metrics_needs_input(self) -> None:
        with pytest.raises(ArithmeticGuardError):
            calculate_gas_metrics(total_spent=30)


class TestMisc:
    def test_days_kept(self) -> None:
        assert calculate_days_kept("2023-01-15", "2023-02-20") == 36
        assert calculate_days_kept(date(2024, 1, 1), "2024-01-01T12:00:00") == 0
        assert calculate_days_kept(None, "2024-01-01") is None
        assert calculate_days_kept("garbage", "2024-01-01") is None

    def test_days_kept_mixes_aware_and_naive_dates(self) -> None:
        assert calculate_days_kept("2023-01-15T00:00:00Z", "2023-02-20") == 36
        assert calculate_days_kept(datetime(2023, 1, 15, tzinfo=timezone.utc), date(2023, 2, 20)) == 36
        assert calculate_days_kept("2023-02-20T08:00:00-08:00", "2023-02-20T23:00:00") == 0

    def test_discount_effectiveness(self) -> None:
        effect = calculate_discount_effectiveness(20, 15)

        assert effect.to_dict() == {"saved": 5.0, "percent_off": 25.0}
        assert calculate_discount_effectiveness(0, 0).percent_off == 0.0

    def test_aggregate_by_category(self) -> None:
        totals = aggregate_by_category(
            [
                {"category": "Produce", "amount": 3},
                {"amount": 2},
                {"category": "Produce", "amount": 4.5},
            ]
        )

        assert totals == {"Produce": 7.5, "Other": 2.0}

    @pytest.mark.parametrize(
        "items",
        [[{"category": "Produce", "amount": "three"}], [{"category": "Produce", "amount": 3}, 7], {"amount": 1}],
    )
    def test_aggregate_by_category_rejects_bad_items(self, items) -> None:
        with pytest.raises(ArithmeticGuardError):
            aggregate_by_category(items)
