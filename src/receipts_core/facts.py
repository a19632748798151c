"""Core facts (Silver+): flatten transactions into atomic-grain tables.

Grain:
    - ``fact_transactions``: one row per normalized transaction
    - ``fact_line_items``: one row per line item (purchases, returns,
      adjustments and discount lines)
    - ``fact_tenders``: one row per tender line of a transaction

Every table carries ``tx_index``, the position of the transaction in the
input list, so rows can be joined back and first-seen order is preserved.
Line-level values are coerced once here (finite amounts, normalized
quantities, department fallback) so the marts only aggregate.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import pandas as pd

from receipts_core import constants
from receipts_core.config import AnalyticsConfig
from receipts_core.utils import (
    extract_discount_target,
    is_discount_line,
    month_key,
    normalize_quantity,
    safe_number,
    to_date,
    year_key,
)

logger = logging.getLogger(__name__)

TRANSACTION_COLUMNS = [
    "tx_index",
    "transaction_date",
    "tx_date",
    "month",
    "year",
    "warehouse",
    "total",
    "sub_total",
    "transaction_type",
    "is_gas",
    "is_online",
]

LINE_COLUMNS = [
    "tx_index",
    "line_index",
    "tx_date",
    "month",
    "warehouse",
    "is_gas",
    "item_number",
    "description",
    "is_discount",
    "discount_target",
    "item_key",
    "amount",
    "quantity",
    "unit_price",
    "department",
    "department_description",
    "gallons",
    "fuel_price",
    "grade",
]

TENDER_COLUMNS = ["tx_index", "year", "is_gas", "method", "amount"]


def _lines(record: Mapping[str, Any]) -> list[Any]:
    lines = record.get("itemArray")
    return lines if isinstance(lines, list) else []


def is_gas_transaction(record: Mapping[str, Any], config: AnalyticsConfig) -> bool:
    """Return True if a transaction is a gas station purchase.

    A transaction is gas when its ``receiptType`` or ``documentType`` is a
    configured gas marker, or when any of its lines carries a configured
    fuel grade code.
    """
    if record.get("receiptType") in config.gas_receipt_types:
        return True
    if record.get("documentType") in config.gas_document_types:
        return True
    codes = config.all_gas_codes
    return any(
        isinstance(line, Mapping) and str(line.get("itemNumber")) in codes
        for line in _lines(record)
    )


def _as_id(value: Any) -> str | None:
    # Item numbers arrive as ints or strings; keep them as text so a missing
    # one cannot turn the whole column into floats.
    return str(value) if value else None


def _item_key(line: Mapping[str, Any], description: str, tx_index: int, line_index: int) -> str:
    item_number = _as_id(line.get("itemNumber"))
    if item_number:
        return item_number
    if description:
        return description
    # Neither number nor description: a stable per-line key keeps output idempotent
    return f"line-{tx_index}-{line_index}"


def fact_transactions(
    transactions: Sequence[Mapping[str, Any]], config: AnalyticsConfig | None = None
) -> pd.DataFrame:
    """Build the transaction-grain fact table.

    Args:
        transactions: Normalized transactions.
        config: Analytics settings (gas detection). Defaults to
            ``AnalyticsConfig()``.

    Returns:
        DataFrame with :data:`TRANSACTION_COLUMNS`, one row per transaction.
    """
    config = config or AnalyticsConfig()
    rows = []
    for tx_index, record in enumerate(transactions):
        raw_date = record.get("transactionDate") or ""
        rows.append(
            {
                "tx_index": tx_index,
                "transaction_date": raw_date,
                "tx_date": to_date(raw_date),
                "month": month_key(raw_date),
                "year": year_key(raw_date),
                "warehouse": record.get("warehouseName") or None,
                "total": safe_number(record.get("total")),
                "sub_total": safe_number(record.get("subTotal")),
                "transaction_type": record.get("transactionType"),
                "is_gas": is_gas_transaction(record, config),
                "is_online": bool(record.get("isOnline")),
            }
        )
    return pd.DataFrame(rows, columns=TRANSACTION_COLUMNS)


def fact_line_items(
    transactions: Sequence[Mapping[str, Any]], config: AnalyticsConfig | None = None
) -> pd.DataFrame:
    """Build the line-item-grain fact table.

    Discount lines (description starting with ``/``) are kept and flagged
    with ``is_discount``; their ``item_key`` is the referenced item id, or
    None when no id can be extracted.

    Args:
        transactions: Normalized transactions.
        config: Analytics settings (gas detection, fuel grades).

    Returns:
        DataFrame with :data:`LINE_COLUMNS`, rows in transaction then line
        order.
    """
    config = config or AnalyticsConfig()
    rows = []
    skipped = 0
    for tx_index, record in enumerate(transactions):
        raw_date = record.get("transactionDate") or ""
        tx_date = to_date(raw_date)
        month = month_key(raw_date)
        warehouse = record.get("warehouseName") or constants.UNKNOWN
        gas = is_gas_transaction(record, config)

        for line_index, line in enumerate(_lines(record)):
            if not isinstance(line, Mapping):
                skipped += 1
                continue

            description = line.get("itemDescription01") or ""
            discount = is_discount_line(description)
            target = extract_discount_target(description) if discount else None
            amount = safe_number(line.get("amount"))
            quantity = normalize_quantity(line.get("unit"))

            rows.append(
                {
                    "tx_index": tx_index,
                    "line_index": line_index,
                    "tx_date": tx_date,
                    "month": month,
                    "warehouse": warehouse,
                    "is_gas": gas,
                    "item_number": _as_id(line.get("itemNumber")),
                    "description": description,
                    "is_discount": discount,
                    "discount_target": target,
                    "item_key": target if discount else _item_key(line, description, tx_index, line_index),
                    "amount": amount,
                    "quantity": quantity,
                    "unit_price": safe_number(line.get("unitPrice"), fallback=amount / quantity),
                    "department": str(line.get("itemDepartmentNumber") or constants.OTHER_DEPARTMENT),
                    "department_description": line.get("departmentDescription") or "",
                    "gallons": safe_number(line.get("fuelUnitQuantity")),
                    "fuel_price": safe_number(line.get("itemUnitPriceAmount")),
                    "grade": config.grade_for(line.get("itemNumber")),
                }
            )

    if skipped:
        logger.debug("Skipped %d non-object line item(s)", skipped)
    return pd.DataFrame(rows, columns=LINE_COLUMNS)


def fact_tenders(
    transactions: Sequence[Mapping[str, Any]], config: AnalyticsConfig | None = None
) -> pd.DataFrame:
    """Build the tender-grain fact table.

    Transactions without a ``tenderArray`` list contribute no rows. Tender
    amounts are absolute values so refunds count toward method usage.
    """
    config = config or AnalyticsConfig()
    rows = []
    for tx_index, record in enumerate(transactions):
        tenders = record.get("tenderArray")
        if not isinstance(tenders, list):
            continue
        year = year_key(record.get("transactionDate") or "")
        gas = is_gas_transaction(record, config)
        for tender in tenders:
            if not isinstance(tender, Mapping):
                continue
            rows.append(
                {
                    "tx_index": tx_index,
                    "year": year,
                    "is_gas": gas,
                    "method": tender.get("tenderDescription") or constants.UNKNOWN,
                    "amount": abs(safe_number(tender.get("amountTender"))),
                }
            )
    return pd.DataFrame(rows, columns=TENDER_COLUMNS)
