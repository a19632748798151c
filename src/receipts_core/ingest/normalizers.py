"""Silver layer: normalize raw vendor records into transactions.

Two export shapes reach this module:

- **Warehouse receipts** (in-store and gas station), already close to the
  canonical shape: ``transactionDate``, ``itemArray``, ``tenderArray``.
- **Online orders**, in a "detailed" shape (``shipToAddress[].orderLineItems[]``
  with per-item prices) or a "simple" shape (flat ``orderLineItems[]`` with an
  order-level total only).

Each normalizer claims records with :meth:`DataNormalizer.can_handle` and
turns them into one canonical transaction dict with :meth:`DataNormalizer.normalize`.
:class:`CompositeNormalizer` dispatches to the first normalizer that claims a
record.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from receipts_core import constants
from receipts_core.exceptions import DataValidationError, UnsupportedRecordError
from receipts_core.utils import safe_number, to_date

logger = logging.getLogger(__name__)

Transaction = dict[str, Any]


@dataclass
class NormalizationReport:
    """Outcome of a batch normalization.

    Attributes:
        input_count: Number of records received.
        normalized_count: Number of transactions produced.
        unsupported_count: Records no normalizer claimed (dropped silently).
        skipped: One entry per record that failed validation, with its
            position in the input and the reason.
    """

    input_count: int = 0
    normalized_count: int = 0
    unsupported_count: int = 0
    skipped: list[dict[str, Any]] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def failed_count(self) -> int:
        """Records that could not be processed, for "N of M" reporting."""
        return self.input_count - self.normalized_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "input_count": self.input_count,
            "normalized_count": self.normalized_count,
            "unsupported_count": self.unsupported_count,
            "skipped_count": self.skipped_count,
            "skipped": list(self.skipped),
        }


def _coerce_total(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise DataValidationError("total must be numeric", {"total": value})
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise DataValidationError("total must be a finite number", {"total": value})
        return float(value)
    if isinstance(value, str):
        try:
            num = float(value)
        except ValueError as e:
            raise DataValidationError("total must be numeric", {"total": value}) from e
        if not math.isfinite(num):
            raise DataValidationError("total must be a finite number", {"total": value})
        return num
    raise DataValidationError("total must be numeric", {"total": value})


class DataNormalizer(ABC):
    """Abstract base class for record normalizers.

    :meth:`normalize` is the fixed algorithm: claim check, source-specific
    extraction, defaults for the canonical fields, validation. Subclasses
    implement :meth:`can_handle` and :meth:`extract`.
    """

    name = "DataNormalizer"

    @abstractmethod
    def can_handle(self, record: Mapping[str, Any]) -> bool:
        """Return True if this normalizer understands the record."""

    @abstractmethod
    def extract(self, record: Mapping[str, Any]) -> dict[str, Any]:
        """Pull source-specific fields out of a claimed record.

        Raises:
            DataValidationError: If the record must be skipped.
        """

    def normalize(self, record: Any) -> Transaction | None:
        """Normalize one raw record.

        Args:
            record: Raw vendor record.

        Returns:
            Canonical transaction dict, or None if the record is not a
            mapping or this normalizer does not claim it.

        Raises:
            DataValidationError: If the claimed record is cancelled, malformed,
                or fails validation after extraction.
        """
        if not isinstance(record, Mapping):
            logger.warning("%s: invalid record (not an object): %r", self.name, type(record))
            return None

        if not self.can_handle(record):
            logger.debug("%s: cannot handle record", self.name)
            return None

        try:
            specific = self.extract(record)
            normalized = self._build(specific)
        except DataValidationError:
            raise
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error("%s: normalization failed: %s", self.name, e)
            raise DataValidationError(
                f"Failed to normalize record: {e}", {"normalizer": self.name}
            ) from e

        self.validate(normalized)
        logger.debug("%s: record normalized (%s)", self.name, normalized["transactionDate"])
        return normalized

    def _build(self, specific: dict[str, Any]) -> Transaction:
        raw_date = specific.get("transactionDate") or ""
        raw_datetime = specific.get("transactionDateTime") or ""
        if not raw_date and isinstance(raw_datetime, str):
            raw_date = raw_datetime[:10]

        parsed = to_date(raw_date)
        if parsed is None:
            raise DataValidationError(
                "transactionDate is missing or unparseable",
                {"normalizer": self.name, "transactionDate": raw_date},
            )

        total = _coerce_total(specific.get("total"))
        sub_total = specific.get("subTotal")
        taxes = specific.get("taxes")

        return {
            **specific,
            "transactionDate": parsed.isoformat(),
            "transactionDateTime": raw_datetime or parsed.isoformat(),
            "transactionType": specific.get("transactionType") or constants.SALES,
            "warehouseName": specific.get("warehouseName") or constants.UNKNOWN,
            "total": total,
            "subTotal": safe_number(sub_total, fallback=total) if sub_total is not None else total,
            "taxes": safe_number(taxes),
            "itemArray": list(specific.get("itemArray") or []),
            "tenderArray": list(specific.get("tenderArray") or []),
            "isOnline": bool(specific.get("isOnline", False)),
        }

    def validate(self, normalized: Transaction) -> None:
        """Check the canonical fields of a normalized record.

        Raises:
            DataValidationError: If a required field is missing or mistyped.
        """
        if not normalized.get("transactionDate"):
            raise DataValidationError("Normalized record has no transactionDate", {"normalizer": self.name})
        if not isinstance(normalized.get("total"), float):
            raise DataValidationError("Normalized record total is not numeric", {"normalizer": self.name})

    def normalize_batch(self, records: Iterable[Any]) -> tuple[list[Transaction], NormalizationReport]:
        """Normalize many records, skipping the ones that fail.

        Args:
            records: Raw vendor records.

        Returns:
            Tuple of (transactions in input order, report).

        Raises:
            DataValidationError: If records is not an iterable of records
                (a single mapping or a string is rejected).
        """
        if isinstance(records, (Mapping, str, bytes)) or not isinstance(records, Iterable):
            raise DataValidationError("Records must be a list", {"type": type(records).__name__})

        report = NormalizationReport()
        normalized: list[Transaction] = []

        for index, record in enumerate(records):
            report.input_count += 1
            try:
                result = self.normalize(record)
            except DataValidationError as e:
                logger.warning("%s: skipping record %d: %s", self.name, index, e)
                report.skipped.append({"index": index, "reason": str(e)})
                continue
            if result is None:
                report.unsupported_count += 1
                continue
            normalized.append(result)

        report.normalized_count = len(normalized)
        logger.info(
            "%s: normalized %d/%d record(s)", self.name, report.normalized_count, report.input_count
        )
        return normalized, report

    def normalize_many(self, records: Iterable[Any]) -> list[Transaction]:
        """Normalize many records and return only the successes, in order."""
        normalized, _ = self.normalize_batch(records)
        return normalized


class OnlineOrderNormalizer(DataNormalizer):
    """Normalizer for online order records, detailed and simple formats."""

    name = "OnlineOrderNormalizer"

    def can_handle(self, record: Mapping[str, Any]) -> bool:
        has_order_key = bool(
            record.get("orderPlacedDate") or record.get("orderedDate") or record.get("orderNumber")
        )
        has_receipt_date = bool(record.get("transactionDate") or record.get("transactionDateTime"))
        return has_order_key and not has_receipt_date

    def extract(self, record: Mapping[str, Any]) -> dict[str, Any]:
        if record.get("status") == constants.CANCELLED_STATUS:
            raise DataValidationError(
                "Order is cancelled", {"orderNumber": record.get("orderNumber")}
            )

        if isinstance(record.get("shipToAddress"), list):
            return self._extract_detailed(record)
        return self._extract_simple(record)

    @staticmethod
    def _order_dates(record: Mapping[str, Any]) -> tuple[str, str]:
        placed = record.get("orderPlacedDate") or record.get("orderedDate") or ""
        placed = str(placed)
        return placed[:10], placed

    def _extract_detailed(self, record: Mapping[str, Any]) -> dict[str, Any]:
        items = []
        for ship in record["shipToAddress"]:
            for line in (ship or {}).get("orderLineItems") or []:
                price = safe_number(line.get("price"))
                quantity = safe_number(line.get("quantity"))
                items.append(
                    {
                        "itemNumber": line.get("itemNumber"),
                        "itemDescription01": line.get("itemDescription"),
                        "amount": price * quantity,
                        "unit": quantity,
                        "unitPrice": price,
                        "itemDepartmentNumber": constants.ONLINE_DEPARTMENT,
                        "isOnline": True,
                    }
                )

        tx_date, tx_datetime = self._order_dates(record)
        total = record.get("orderTotal") or 0
        return {
            "transactionDate": tx_date,
            "transactionDateTime": tx_datetime,
            "warehouseName": constants.ONLINE_WAREHOUSE_NAME,
            "total": total,
            "subTotal": record.get("merchandiseTotal") or total,
            "taxes": safe_number(record.get("uSTaxTotal1")) + safe_number(record.get("foreignTaxTotal1")),
            "itemArray": items,
            "isOnline": True,
            "transactionType": constants.SALES,
            "orderNumber": record.get("orderNumber"),
        }

    def _extract_simple(self, record: Mapping[str, Any]) -> dict[str, Any]:
        # Approximation: the simple export has no per-item prices, so the
        # order total is split evenly across its lines.
        total = _coerce_total(record.get("orderTotal"))
        lines = record.get("orderLineItems") or []
        share = total / (len(lines) or 1)

        tx_date, tx_datetime = self._order_dates(record)
        return {
            "transactionDate": tx_date,
            "transactionDateTime": tx_datetime,
            "warehouseName": constants.ONLINE_WAREHOUSE_NAME,
            "total": total,
            "subTotal": total,
            "taxes": 0.0,
            "itemArray": [
                {
                    "itemNumber": line.get("itemNumber"),
                    "itemDescription01": line.get("itemDescription"),
                    "amount": share,
                    "unit": 1,
                    "itemDepartmentNumber": constants.ONLINE_DEPARTMENT,
                    "isOnline": True,
                    "isApproximate": True,
                }
                for line in lines
            ],
            "isOnline": True,
            "transactionType": constants.SALES,
            "orderNumber": record.get("orderNumber"),
        }


class WarehouseReceiptNormalizer(DataNormalizer):
    """Normalizer for warehouse receipts (in-store and gas station)."""

    name = "WarehouseReceiptNormalizer"

    def can_handle(self, record: Mapping[str, Any]) -> bool:
        return bool(record.get("transactionDate") or record.get("transactionDateTime"))

    def extract(self, record: Mapping[str, Any]) -> dict[str, Any]:
        total = _coerce_total(record.get("total"))
        return {
            **record,
            "total": total,
            "isOnline": False,
            "itemArray": record.get("itemArray") or [],
            "tenderArray": record.get("tenderArray") or [],
            "transactionType": record.get("transactionType")
            or (constants.REFUND if total < 0 else constants.SALES),
        }


class CompositeNormalizer(DataNormalizer):
    """Dispatch each record to the first normalizer that claims it."""

    name = "CompositeNormalizer"

    def __init__(self, normalizers: Iterable[DataNormalizer] | None = None) -> None:
        self.normalizers: list[DataNormalizer] = []
        for normalizer in normalizers or []:
            self.add_normalizer(normalizer)
        logger.debug("CompositeNormalizer initialized with %d normalizer(s)", len(self.normalizers))

    def add_normalizer(self, normalizer: DataNormalizer) -> CompositeNormalizer:
        if not isinstance(normalizer, DataNormalizer):
            raise DataValidationError(
                "Must be a DataNormalizer instance", {"normalizer": type(normalizer).__name__}
            )
        self.normalizers.append(normalizer)
        return self

    def normalizer_for(self, record: Mapping[str, Any]) -> DataNormalizer:
        """Return the first normalizer claiming the record.

        Raises:
            UnsupportedRecordError: If no normalizer claims it.
        """
        for normalizer in self.normalizers:
            if normalizer.can_handle(record):
                return normalizer
        raise UnsupportedRecordError("No normalizer could handle this record")

    def can_handle(self, record: Mapping[str, Any]) -> bool:
        return any(n.can_handle(record) for n in self.normalizers)

    def extract(self, record: Mapping[str, Any]) -> dict[str, Any]:
        return self.normalizer_for(record).extract(record)

    def normalize(self, record: Any) -> Transaction | None:
        if not isinstance(record, Mapping):
            logger.warning("%s: invalid record (not an object): %r", self.name, type(record))
            return None
        try:
            normalizer = self.normalizer_for(record)
        except UnsupportedRecordError:
            logger.debug("%s: no normalizer for record with keys %s", self.name, sorted(record)[:5])
            return None
        return normalizer.normalize(record)

    def get_stats(self) -> dict[str, Any]:
        return {
            "normalizer_count": len(self.normalizers),
            "normalizers": [n.name for n in self.normalizers],
        }


def create_default_normalizer() -> CompositeNormalizer:
    """Build the normalizer chain for both vendor export shapes."""
    return CompositeNormalizer([OnlineOrderNormalizer(), WarehouseReceiptNormalizer()])


def normalize_many(records: Iterable[Any]) -> list[Transaction]:
    """Normalize a batch with the default normalizer chain."""
    return create_default_normalizer().normalize_many(records)
