"""Shared sample data for the test suite.

``sample_transactions`` is a small normalized history:

- two in-warehouse purchases at SEATTLE #1 (one with a discount line)
- a full return and a price adjustment at TACOMA #2
- two gas fill-ups, one flagged by receipt type, one only by fuel code
"""

from __future__ import annotations

from typing import Any

import pytest


def _tx(
    date: str,
    warehouse: str,
    total: float,
    items: list[dict[str, Any]],
    tenders: list[dict[str, Any]],
    **extra: Any,
) -> dict[str, Any]:
    return {
        "transactionDate": date,
        "transactionDateTime": f"{date}T10:00:00",
        "transactionType": "Refund" if total < 0 else "Sales",
        "warehouseName": warehouse,
        "total": total,
        "subTotal": total,
        "taxes": 0.0,
        "itemArray": items,
        "tenderArray": tenders,
        "isOnline": False,
        **extra,
    }


@pytest.fixture
def sample_transactions() -> list[dict[str, Any]]:
    """Six normalized transactions covering purchases, refunds and gas."""
    return [
        _tx(
            "2024-01-15",
            "SEATTLE #1",
            50.0,
            [
                {"itemNumber": "111", "itemDescription01": "KS MILK", "amount": 10.0, "unit": 2, "itemDepartmentNumber": 17},
                {"itemNumber": "222", "itemDescription01": "PAPER TOWEL", "amount": 25.0, "unit": 1, "itemDepartmentNumber": 14},
                {"itemNumber": "900", "itemDescription01": "/111", "amount": -2.0, "unit": -1, "itemDepartmentNumber": 17},
                {"itemNumber": "444", "itemDescription01": "BANANAS", "amount": 17.0, "unit": 1, "itemDepartmentNumber": 65},
            ],
            [{"tenderDescription": "COSTCO VISA", "amountTender": 50.0}],
        ),
        _tx(
            "2024-03-02",
            "SEATTLE #1",
            20.0,
            [
                {"itemNumber": "111", "itemDescription01": "KS MILK", "amount": 12.0, "unit": 2, "unitPrice": 6.0, "itemDepartmentNumber": 17},
                {"itemNumber": "555", "itemDescription01": "COFFEE", "amount": 8.0, "unit": 0, "itemDepartmentNumber": 17},
            ],
            [{"tenderDescription": "DEBIT", "amountTender": 20.0}],
        ),
        _tx(
            "2024-03-10",
            "TACOMA #2",
            -25.0,
            [
                {"itemNumber": "222", "itemDescription01": "PAPER TOWEL", "amount": -25.0, "unit": -1, "itemDepartmentNumber": 14},
            ],
            [{"tenderDescription": "COSTCO VISA", "amountTender": -25.0}],
        ),
        _tx(
            "2023-12-20",
            "TACOMA #2",
            -3.0,
            [
                {"itemNumber": "444", "itemDescription01": "BANANAS", "amount": -3.0, "unit": 1, "itemDepartmentNumber": 65},
            ],
            [{"tenderDescription": "DEBIT", "amountTender": -3.0}],
        ),
        _tx(
            "2024-01-20",
            "SEATTLE GAS",
            40.0,
            [
                {"itemNumber": "800599", "itemDescription01": "REGULAR", "amount": 40.0, "unit": 10, "fuelUnitQuantity": 10.0, "itemUnitPriceAmount": 4.0},
            ],
            [{"tenderDescription": "COSTCO VISA", "amountTender": 40.0}],
            receiptType="Gas Station",
            documentType="FuelReceipts",
        ),
        _tx(
            "2024-03-05",
            "TACOMA GAS",
            45.0,
            [
                {"itemNumber": "800877", "itemDescription01": "PREMIUM", "amount": 45.0, "fuelUnitQuantity": 9.0, "itemUnitPriceAmount": 5.0},
            ],
            [{"tenderDescription": "COSTCO VISA", "amountTender": 45.0}],
        ),
    ]


@pytest.fixture
def raw_receipt() -> dict[str, Any]:
    """A warehouse receipt as exported."""
    return {
        "transactionDateTime": "2024-02-01T09:15:00",
        "transactionDate": "2024-02-01",
        "warehouseName": "SEATTLE #1",
        "receiptType": "In-Warehouse",
        "total": 12.5,
        "subTotal": 11.5,
        "taxes": 1.0,
        "itemArray": [
            {"itemNumber": "111", "itemDescription01": "KS MILK", "amount": 11.5, "unit": 1, "itemDepartmentNumber": 17},
        ],
        "tenderArray": [{"tenderDescription": "COSTCO VISA", "amountTender": 12.5}],
    }


@pytest.fixture
def raw_online_detailed() -> dict[str, Any]:
    """An online order with per-item prices."""
    return {
        "orderNumber": "A100",
        "orderPlacedDate": "2024-02-10T12:00:00",
        "status": "Delivered",
        "orderTotal": 65.0,
        "merchandiseTotal": 60.0,
        "uSTaxTotal1": 5.0,
        "shipToAddress": [
            {
                "orderLineItems": [
                    {"itemNumber": "777", "itemDescription": "BLENDER", "price": 30.0, "quantity": 2},
                ]
            }
        ],
    }


@pytest.fixture
def raw_online_simple() -> dict[str, Any]:
    """An online order with an order-level total only."""
    return {
        "orderNumber": "B200",
        "orderedDate": "2024-02-11",
        "orderTotal": 30.0,
        "orderLineItems": [
            {"itemNumber": "1", "itemDescription": "A"},
            {"itemNumber": "2", "itemDescription": "B"},
            {"itemNumber": "3", "itemDescription": "C"},
        ],
    }
