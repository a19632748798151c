"""Composable transaction filters.

Filters are small strategy objects with a ``test(record) -> bool`` method, a
``name`` and a plain-data ``get_config()``. A :class:`FilterPipeline` ANDs
them together and is applied between normalization and the marts.

Records may be normalized transactions (``transactionDate``,
``warehouseName``) or lightweight rows using the short ``date`` /
``location`` keys.

Examples:
    >>> pipeline = FilterPipeline([YearFilter(2024), LocationFilter("123")])
    >>> rows = [
    ...     {"date": "2024-01-15", "location": "123"},
    ...     {"date": "2024-01-15", "location": "456"},
    ...     {"date": "2023-01-15", "location": "123"},
    ... ]
    >>> pipeline.apply(rows)
    [{'date': '2024-01-15', 'location': '123'}]

"""

from __future__ import annotations

import logging
import re
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from datetime import date
from typing import Any

from receipts_core import constants
from receipts_core.exceptions import DataValidationError
from receipts_core.utils import to_date

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]

_LOCATION_RE = re.compile(constants.LOCATION_NUMBER_PATTERN, re.IGNORECASE)


def default_location_key(name: Any) -> str:
    """Reduce a warehouse name to a comparable key.

    The warehouse number wins when one is embedded in the name; otherwise
    the lowercased, trimmed name is used.

    Examples:
        >>> default_location_key("Warehouse #482")
        '482'
        >>> default_location_key("  Costco.com ")
        'costco.com'

    """
    if not name:
        return ""
    text = str(name)
    m = _LOCATION_RE.search(text)
    return m.group(1) if m else text.lower().strip()


def _record_date_field(record: Record) -> Any:
    return record.get("transactionDate") or record.get("date")


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (str, int)):
        return [value]
    return list(value)


class FilterStrategy(ABC):
    """Base class for a single transaction predicate."""

    name = "FilterStrategy"

    @abstractmethod
    def test(self, record: Record) -> bool:
        """Return True when the record passes this filter."""

    def __call__(self, record: Record) -> bool:
        return self.test(record)

    def get_config(self) -> dict[str, Any]:
        """Plain-data description of the filter, for persistence."""
        return {"name": self.name}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.get_config()!r})"


class YearFilter(FilterStrategy):
    """Keep records whose date string starts with one of the given years.

    Comparison is on the first four characters of the date string, so no
    timezone conversion can move a record across a year boundary.
    """

    name = "YearFilter"

    def __init__(self, years: int | str | Iterable[int | str]) -> None:
        year_list = _as_list(years)
        if not year_list:
            raise DataValidationError("Years must be a non-empty list", {"years": years})
        self.years = {str(y) for y in year_list}

    def test(self, record: Record) -> bool:
        value = _record_date_field(record)
        if not value:
            return False
        if isinstance(value, date):
            return str(value.year) in self.years
        return str(value)[:4] in self.years

    def get_config(self) -> dict[str, Any]:
        return {**super().get_config(), "years": sorted(self.years)}


class LocationFilter(FilterStrategy):
    """Keep records from the given warehouses.

    Args:
        locations: Location key(s) to keep, e.g. warehouse numbers.
        normalizer: Maps a raw warehouse name to a key. Defaults to
            :func:`default_location_key`.
    """

    name = "LocationFilter"

    def __init__(
        self,
        locations: str | int | Iterable[str | int],
        normalizer: Callable[[Any], str] | None = None,
    ) -> None:
        loc_list = _as_list(locations)
        if not loc_list:
            raise DataValidationError("Locations must be a non-empty list", {"locations": locations})
        self.locations = {str(loc) for loc in loc_list}
        self.normalizer = normalizer or default_location_key

    def test(self, record: Record) -> bool:
        raw = record.get("location") or record.get("warehouseName") or ""
        if self.normalizer(raw) in self.locations:
            return True
        return str(raw) in self.locations

    def get_config(self) -> dict[str, Any]:
        return {**super().get_config(), "locations": sorted(self.locations)}


class DateRangeFilter(FilterStrategy):
    """Keep records dated within ``[start, end]``, both ends inclusive.

    Raises:
        DataValidationError: If either bound is unparseable or start > end.
    """

    name = "DateRangeFilter"

    def __init__(self, start: date | str, end: date | str) -> None:
        start_date = to_date(start)
        end_date = to_date(end)
        if start_date is None or end_date is None:
            raise DataValidationError("Invalid date range", {"start": start, "end": end})
        if start_date > end_date:
            raise DataValidationError(
                "Start date must be before or equal to end date",
                {"start": start_date.isoformat(), "end": end_date.isoformat()},
            )
        self.start = start_date
        self.end = end_date

    def test(self, record: Record) -> bool:
        value = to_date(_record_date_field(record))
        if value is None:
            return False
        return self.start <= value <= self.end

    def get_config(self) -> dict[str, Any]:
        return {
            **super().get_config(),
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


class TransactionTypeFilter(FilterStrategy):
    """Keep records whose ``transactionType`` is one of the given types."""

    name = "TransactionTypeFilter"

    def __init__(self, types: str | Iterable[str]) -> None:
        type_list = _as_list(types)
        if not type_list:
            raise DataValidationError("Types must be a non-empty list", {"types": types})
        self.types = set(type_list)

    def test(self, record: Record) -> bool:
        return record.get("transactionType") in self.types

    def get_config(self) -> dict[str, Any]:
        return {**super().get_config(), "types": sorted(self.types)}


class CustomFilter(FilterStrategy):
    """Wrap an arbitrary predicate.

    A predicate that raises is logged and counts as a non-match. Custom
    filters cannot be rebuilt by :meth:`FilterPipeline.from_config`.
    """

    def __init__(self, name: str, predicate: Callable[[Record], bool]) -> None:
        if not callable(predicate):
            raise DataValidationError("Predicate must be callable", {"name": name})
        self.name = name
        self.predicate = predicate

    def test(self, record: Record) -> bool:
        try:
            return bool(self.predicate(record))
        except Exception as e:
            logger.error("Error in custom filter %r: %s", self.name, e)
            return False

    def get_config(self) -> dict[str, Any]:
        return {"name": self.name, "custom": True}


class FilterPipeline:
    """AND-combination of filters. An empty pipeline passes everything."""

    def __init__(self, filters: Iterable[FilterStrategy] | None = None) -> None:
        self.filters: list[FilterStrategy] = []
        for f in filters or []:
            self.add_filter(f)
        logger.debug("FilterPipeline created with %d filter(s)", len(self.filters))

    def add_filter(self, filter_: FilterStrategy) -> FilterPipeline:
        if not isinstance(filter_, FilterStrategy):
            raise DataValidationError(
                "Filter must be a FilterStrategy instance", {"filter": type(filter_).__name__}
            )
        self.filters.append(filter_)
        logger.debug("Filter added: %s (%d total)", filter_.name, len(self.filters))
        return self

    def remove_filter(self, filter_: FilterStrategy) -> bool:
        """Remove a filter by identity. Returns False if it was not present."""
        for i, existing in enumerate(self.filters):
            if existing is filter_:
                del self.filters[i]
                logger.debug("Filter removed: %s (%d remaining)", filter_.name, len(self.filters))
                return True
        return False

    def clear(self) -> FilterPipeline:
        logger.debug("Cleared %d filter(s)", len(self.filters))
        self.filters = []
        return self

    def test(self, record: Record) -> bool:
        return all(f.test(record) for f in self.filters)

    def apply(self, records: Iterable[Record]) -> list[Record]:
        """Return the records passing every filter, in input order.

        Raises:
            DataValidationError: If records is a single mapping or a string.
        """
        if isinstance(records, (Mapping, str, bytes)) or not isinstance(records, Iterable):
            raise DataValidationError("Records must be a list", {"type": type(records).__name__})

        started = time.perf_counter()
        records = list(records)
        filtered = [r for r in records if self.test(r)]
        logger.info(
            "Filters applied: %d -> %d record(s), %d filter(s), %.2fms",
            len(records),
            len(filtered),
            len(self.filters),
            (time.perf_counter() - started) * 1000,
        )
        return filtered

    def get_filters_config(self) -> list[dict[str, Any]]:
        return [f.get_config() for f in self.filters]

    def get_stats(self) -> dict[str, Any]:
        return {"filter_count": len(self.filters), "filters": [f.name for f in self.filters]}

    @classmethod
    def from_config(cls, configs: Iterable[Mapping[str, Any]]) -> FilterPipeline:
        """Rebuild a pipeline from :meth:`get_filters_config` output.

        Raises:
            DataValidationError: If a config names an unknown or custom filter.
        """
        pipeline = cls()
        for cfg in configs:
            name = cfg.get("name")
            if name == YearFilter.name:
                pipeline.add_filter(YearFilter(cfg.get("years")))
            elif name == LocationFilter.name:
                pipeline.add_filter(LocationFilter(cfg.get("locations")))
            elif name == DateRangeFilter.name:
                pipeline.add_filter(DateRangeFilter(cfg.get("start"), cfg.get("end")))
            elif name == TransactionTypeFilter.name:
                pipeline.add_filter(TransactionTypeFilter(cfg.get("types")))
            else:
                raise DataValidationError(
                    f"Cannot rebuild filter from config: {name!r}", {"config": dict(cfg)}
                )
        return pipeline


def year_location_pipeline(
    years: Iterable[int | str] | None = None,
    locations: Iterable[str | int] | None = None,
    normalizer: Callable[[Any], str] | None = None,
) -> FilterPipeline:
    """Pipeline with a year filter and a location filter, each only if given."""
    pipeline = FilterPipeline()
    years = _as_list(years)
    locations = _as_list(locations)
    if years:
        pipeline.add_filter(YearFilter(years))
    if locations:
        pipeline.add_filter(LocationFilter(locations, normalizer))
    return pipeline


def date_range_pipeline(start: date | str, end: date | str) -> FilterPipeline:
    return FilterPipeline([DateRangeFilter(start, end)])


def _is_not_refund(record: Record) -> bool:
    return (record.get("total") or 0) >= 0 and record.get("transactionType") != constants.REFUND


def no_refunds_pipeline() -> FilterPipeline:
    """Pipeline dropping refund transactions and negative totals."""
    return FilterPipeline([CustomFilter("NoRefunds", _is_not_refund)])
