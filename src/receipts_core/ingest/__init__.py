"""Ingest (Silver) layer - vendor records to normalized transactions.

Bronze input is the raw JSON exported from the retailer: warehouse receipts
(in-store and gas) and online orders. This layer turns each record into one
canonical transaction dict; everything downstream reads only that shape.
"""

from receipts_core.ingest.normalizers import (
    CompositeNormalizer,
    DataNormalizer,
    NormalizationReport,
    OnlineOrderNormalizer,
    Transaction,
    WarehouseReceiptNormalizer,
    create_default_normalizer,
    normalize_many,
)

__all__ = [
    "DataNormalizer",
    "OnlineOrderNormalizer",
    "WarehouseReceiptNormalizer",
    "CompositeNormalizer",
    "NormalizationReport",
    "Transaction",
    "create_default_normalizer",
    "normalize_many",
]
