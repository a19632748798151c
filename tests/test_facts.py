"""Grain tests for the core fact tables (Silver+).

- fact_transactions: one row per transaction
- fact_line_items: one row per line item, discount lines included
- fact_tenders: one row per tender line
"""

from datetime import date

import pandas as pd

from receipts_core.config import AnalyticsConfig
from receipts_core.facts import (
    LINE_COLUMNS,
    TENDER_COLUMNS,
    TRANSACTION_COLUMNS,
    fact_line_items,
    fact_tenders,
    fact_transactions,
    is_gas_transaction,
)


class TestTransactionGrain:
    def test_one_row_per_transaction(self, sample_transactions) -> None:
        txs = fact_transactions(sample_transactions)

        assert list(txs.columns) == TRANSACTION_COLUMNS
        assert len(txs) == len(sample_transactions)
        assert txs["tx_index"].is_unique

    def test_gas_detection(self, sample_transactions) -> None:
        """Receipt type and fuel codes both mark gas transactions."""
        txs = fact_transactions(sample_transactions)

        assert txs["is_gas"].tolist() == [False, False, False, False, True, True]

    def test_period_keys(self, sample_transactions) -> None:
        txs = fact_transactions(sample_transactions)

        assert txs["month"].tolist()[:4] == ["2024-01", "2024-03", "2024-03", "2023-12"]
        assert txs["year"].tolist()[3] == "2023"
        assert txs["tx_date"].iloc[0] == date(2024, 1, 15)

    def test_gas_codes_come_from_config(self, sample_transactions) -> None:
        """With other fuel codes only the receipt-type marker remains."""
        config = AnalyticsConfig(gas_grade_codes={"diesel": ("900001",)})

        assert not is_gas_transaction(sample_transactions[5], config)
        assert is_gas_transaction(sample_transactions[4], config)

    def test_empty_input(self) -> None:
        txs = fact_transactions([])

        assert txs.empty
        assert list(txs.columns) == TRANSACTION_COLUMNS


class TestLineItemGrain:
    def test_one_row_per_line(self, sample_transactions) -> None:
        lines = fact_line_items(sample_transactions)

        assert list(lines.columns) == LINE_COLUMNS
        assert len(lines) == sum(len(tx["itemArray"]) for tx in sample_transactions)
        assert not lines.duplicated(subset=["tx_index", "line_index"]).any()

    def test_discount_line_targets_item(self, sample_transactions) -> None:
        lines = fact_line_items(sample_transactions)
        discount = lines[lines["is_discount"]]

        assert len(discount) == 1
        row = discount.iloc[0]
        assert row["discount_target"] == "111"
        assert row["item_key"] == "111"
        assert row["item_number"] == "900"

    def test_quantity_and_unit_price(self, sample_transactions) -> None:
        """Zero quantity counts as one; unit price falls back to amount / quantity."""
        lines = fact_line_items(sample_transactions).set_index(["tx_index", "line_index"])

        assert lines.loc[(1, 1), "quantity"] == 1.0
        assert lines.loc[(1, 1), "unit_price"] == 8.0
        assert lines.loc[(1, 0), "unit_price"] == 6.0
        assert lines.loc[(0, 0), "unit_price"] == 5.0

    def test_departments_are_text(self, sample_transactions) -> None:
        lines = fact_line_items(sample_transactions)

        assert lines["department"].tolist()[:4] == ["17", "14", "17", "65"]
        assert lines["department"].iloc[-1] == "Other"

    def test_fuel_columns(self, sample_transactions) -> None:
        lines = fact_line_items(sample_transactions)
        fuel = lines[lines["grade"].notna()]

        assert fuel["grade"].tolist() == ["regular", "premium"]
        assert fuel["gallons"].tolist() == [10.0, 9.0]
        assert fuel["fuel_price"].tolist() == [4.0, 5.0]

    def test_synthetic_key_is_stable(self) -> None:
        """A line with neither number nor description gets a positional key."""
        txs = [{"transactionDate": "2024-01-01", "itemArray": [{"amount": 1.0}, "junk", {"amount": 2.0}]}]

        first = fact_line_items(txs)
        second = fact_line_items(txs)

        assert first["item_key"].tolist() == ["line-0-0", "line-0-2"]
        pd.testing.assert_frame_equal(first, second)

    def test_item_numbers_stay_text(self) -> None:
        """Integer item numbers next to missing ones do not become floats."""
        txs = [
            {
                "transactionDate": "2024-01-01",
                "itemArray": [
                    {"itemNumber": 123, "itemDescription01": "A", "amount": 1.0},
                    {"itemDescription01": "B", "amount": 2.0},
                ],
            }
        ]

        lines = fact_line_items(txs)

        assert lines["item_number"].tolist() == ["123", None]
        assert lines["item_key"].tolist() == ["123", "B"]


class TestTenderGrain:
    def test_one_row_per_tender(self, sample_transactions) -> None:
        tenders = fact_tenders(sample_transactions)

        assert list(tenders.columns) == TENDER_COLUMNS
        assert len(tenders) == 6
        assert (tenders["amount"] >= 0).all()

    def test_missing_tender_array(self) -> None:
        tenders = fact_tenders([{"transactionDate": "2024-01-01", "tenderArray": None}])

        assert tenders.empty
