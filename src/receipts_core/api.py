"""Public API: run the whole receipts pipeline in memory.

Two entry points:

- :func:`run_analytics` is a pure function: raw records in, every mart out.
- :class:`AnalyticsSession` is the composition root for long-lived use
  (a dashboard, a notebook). It owns the config, the loaded transactions,
  the active filter pipeline, a :class:`~receipts_core.cache.DataVersion`,
  a mart result cache and a :class:`~receipts_core.state.StateStore`.

Examples:
    >>> session = AnalyticsSession()
    >>> _ = session.load([{"transactionDate": "2024-01-05", "total": 10}])
    >>> session.overview().visit_count
    1
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from receipts_core.cache import DataVersion, VersionedCache
from receipts_core.config import AnalyticsConfig
from receipts_core.exceptions import DataValidationError
from receipts_core.filters import FilterPipeline
from receipts_core.ingest import NormalizationReport, Transaction, create_default_normalizer
from receipts_core.marts import (
    CategorySummary,
    DiscountInsights,
    GasInsights,
    ItemSummary,
    OverviewSummary,
    PaymentInsights,
    RefundInsights,
    build_category_summaries,
    build_item_summaries,
    build_overview,
    collect_discount_insights,
    collect_gas_insights,
    collect_payment_insights,
    collect_refund_insights,
)
from receipts_core.state import StateStore

logger = logging.getLogger(__name__)

SECTIONS = ("overview", "items", "categories", "discounts", "refunds", "gas", "payments")


@dataclass
class AnalyticsResult:
    """Everything computed for one set of records.

    Attributes:
        report: Normalization outcome ("N of M records could not be
            processed").
        transaction_count: Transactions after normalization.
        filtered_count: Transactions after the filter pipeline.
        filters: Config of the pipeline that was applied.
    """

    report: NormalizationReport
    transaction_count: int
    filtered_count: int
    filters: list[dict[str, Any]] = field(default_factory=list)
    overview: OverviewSummary | None = None
    items: list[ItemSummary] = field(default_factory=list)
    categories: list[CategorySummary] = field(default_factory=list)
    discounts: DiscountInsights | None = None
    refunds: RefundInsights | None = None
    gas: GasInsights | None = None
    payments: PaymentInsights | None = None

    def to_dict(self, sections: Iterable[str] | None = None) -> dict[str, Any]:
        """JSON-ready dict, optionally restricted to some sections."""
        wanted = list(sections) if sections else list(SECTIONS)
        data: dict[str, Any] = {
            "normalization": self.report.to_dict(),
            "transaction_count": self.transaction_count,
            "filtered_count": self.filtered_count,
            "filters": self.filters,
        }
        for name in wanted:
            value = getattr(self, name)
            if isinstance(value, list):
                data[name] = [v.to_dict() for v in value]
            else:
                data[name] = value.to_dict() if value is not None else None
        return data


def _build_marts(transactions: list[Transaction], config: AnalyticsConfig) -> dict[str, Any]:
    return {
        "overview": build_overview(transactions, config),
        "items": build_item_summaries(transactions, config),
        "categories": build_category_summaries(transactions, config),
        "discounts": collect_discount_insights(transactions, config),
        "refunds": collect_refund_insights(transactions, config),
        "gas": collect_gas_insights(transactions, config),
        "payments": collect_payment_insights(transactions, config),
    }


def run_analytics(
    records: Iterable[Any],
    pipeline: FilterPipeline | None = None,
    config: AnalyticsConfig | None = None,
) -> AnalyticsResult:
    """Normalize raw records, filter them and build every mart.

    Args:
        records: Raw vendor records (receipts and/or online orders).
        pipeline: Filters to apply after normalization. None keeps all.
        config: Analytics settings. Defaults to ``AnalyticsConfig()``.

    Returns:
        AnalyticsResult with all sections filled.

    Raises:
        DataValidationError: If records is not a list of records.
    """
    config = config or AnalyticsConfig()
    pipeline = pipeline or FilterPipeline()

    transactions, report = create_default_normalizer().normalize_batch(records)
    if report.failed_count:
        logger.warning(
            "%d of %d record(s) could not be processed", report.failed_count, report.input_count
        )

    filtered = pipeline.apply(transactions)
    marts = _build_marts(filtered, config)
    return AnalyticsResult(
        report=report,
        transaction_count=len(transactions),
        filtered_count=len(filtered),
        filters=pipeline.get_filters_config(),
        **marts,
    )


class AnalyticsSession:
    """Stateful analytics over a loaded history.

    Loading records or changing the pipeline bumps the data version, which
    clears the mart cache before anything else can read it, and publishes
    ``transactions``, ``filtered`` and ``filters`` to the state store.

    Args:
        config: Analytics settings shared by every mart.
        store: State store to publish to. A private one is created if None.
    """

    def __init__(self, config: AnalyticsConfig | None = None, store: StateStore | None = None) -> None:
        self.config = config or AnalyticsConfig()
        self.store = store or StateStore()
        self.version = DataVersion()
        self.cache = VersionedCache(self.version)
        self._pipeline = FilterPipeline()
        self.transactions: list[Transaction] = []
        self.filtered: list[Transaction] = []
        self.report = NormalizationReport()

    @property
    def pipeline(self) -> FilterPipeline:
        """A copy of the active pipeline. Use :meth:`set_pipeline` to change filters."""
        return FilterPipeline(self._pipeline.filters)

    def load(self, records: Iterable[Any]) -> NormalizationReport:
        """Replace the loaded history with newly normalized records."""
        self.transactions, self.report = create_default_normalizer().normalize_batch(records)
        self.version.bump("load")
        self.store.set("transactions", self.transactions)
        self.store.set("normalization", self.report.to_dict())
        self._refilter()
        logger.info(
            "Session loaded %d transaction(s), %d after filters",
            len(self.transactions),
            len(self.filtered),
        )
        return self.report

    def set_pipeline(self, pipeline: FilterPipeline) -> list[Transaction]:
        """Swap the filter pipeline and return the newly filtered transactions."""
        self._pipeline = pipeline
        self.version.bump("filters")
        self._refilter()
        return self.filtered

    def _refilter(self) -> None:
        self.filtered = self._pipeline.apply(self.transactions)
        self.store.set("filters", self._pipeline.get_filters_config())
        self.store.set("filtered", self.filtered)

    def _mart(self, name: str, builder: Callable[[list[Transaction], AnalyticsConfig], Any]) -> Any:
        return self.cache.get_or_compute(
            name,
            [self.version.value, self._pipeline.get_filters_config()],
            lambda: builder(self.filtered, self.config),
        )

    def overview(self) -> OverviewSummary:
        return self._mart("overview", build_overview)

    def items(self) -> list[ItemSummary]:
        return self._mart("items", build_item_summaries)

    def categories(self) -> list[CategorySummary]:
        return self._mart("categories", build_category_summaries)

    def discounts(self) -> DiscountInsights:
        return self._mart("discounts", collect_discount_insights)

    def refunds(self) -> RefundInsights:
        return self._mart("refunds", collect_refund_insights)

    def gas(self) -> GasInsights:
        return self._mart("gas", collect_gas_insights)

    def payments(self) -> PaymentInsights:
        return self._mart("payments", collect_payment_insights)

    def result(self) -> AnalyticsResult:
        """Every mart for the current history and filters."""
        return AnalyticsResult(
            report=self.report,
            transaction_count=len(self.transactions),
            filtered_count=len(self.filtered),
            filters=self._pipeline.get_filters_config(),
            **{name: getattr(self, name)() for name in SECTIONS},
        )

    def subscribe(self, key: str, observer: Callable[[Any, Any, str], None]) -> Callable[[], bool]:
        """Shortcut for ``session.store.subscribe``."""
        return self.store.subscribe(key, observer)

    def get_stats(self) -> dict[str, Any]:
        return {
            "version": self.version.value,
            "transactions": len(self.transactions),
            "filtered": len(self.filtered),
            "pipeline": self._pipeline.get_stats(),
            "cache": self.cache.get_stats(),
        }


def load_export(data: Any) -> list[Any]:
    """Extract the record list from a parsed JSON export.

    Accepts a plain list or the GraphQL envelope
    ``{"data": {"receiptsWithCounts": {"receipts": [...]}}}``.

    Raises:
        DataValidationError: If no record list can be found.
    """
    if isinstance(data, list):
        return data
    if isinstance(data, Mapping):
        envelope = data.get("data")
        counts = envelope.get("receiptsWithCounts") if isinstance(envelope, Mapping) else None
        receipts = counts.get("receipts") if isinstance(counts, Mapping) else None
        if isinstance(receipts, list):
            return receipts
    raise DataValidationError(
        "Export must be a list of records or a receipts envelope", {"type": type(data).__name__}
    )
