"""Tests for versioned memoization."""

import numpy as np
import pandas as pd
import pytest

from receipts_core.cache import DataVersion, MemoizedCalculations, VersionedCache, make_key, materialize
from receipts_core.exceptions import ArithmeticGuardError
from receipts_core.filters import YearFilter


class TestVersionedCache:
    def test_hit_and_miss(self) -> None:
        cache = VersionedCache()
        calls = []

        def compute():
            calls.append(1)
            return {"value": 4}

        assert cache.get_or_compute("double", (2,), compute) == {"value": 4}
        assert cache.get_or_compute("double", (2,), compute) == {"value": 4}
        assert len(calls) == 1
        assert ("double", (2,)) in cache
        assert cache.get_stats() == {"size": 1, "hits": 1, "misses": 1, "version": 0}

    def test_bump_clears_before_returning(self) -> None:
        """No entry computed before a bump is visible after it."""
        version = DataVersion()
        cache = VersionedCache(version)
        cache.get_or_compute("total", [], lambda: 1)

        assert version.bump("upload") == 1
        assert len(cache) == 0
        assert cache.get_or_compute("total", [], lambda: 2) == 2

    def test_results_are_copied(self) -> None:
        cache = VersionedCache()
        first = cache.get_or_compute("rows", [], lambda: [1, 2])
        first.append(3)

        assert cache.get_or_compute("rows", [], lambda: []) == [1, 2]

    def test_lru_eviction(self) -> None:
        cache = VersionedCache(max_entries=2)
        cache.get_or_compute("f", [1], lambda: 1)
        cache.get_or_compute("f", [2], lambda: 2)
        cache.get_or_compute("f", [1], lambda: 1)
        cache.get_or_compute("f", [3], lambda: 3)

        assert ("f", [1]) in cache
        assert ("f", [2]) not in cache
        assert len(cache) == 2

    def test_make_key_handles_filters_and_sets(self) -> None:
        assert make_key([YearFilter(2024)]) == make_key([YearFilter("2024")])
        assert make_key({"b": 1, "a": {2, 1}}) == make_key({"a": {1, 2}, "b": 1})

    def test_make_key_rejects_opaque_objects(self) -> None:
        with pytest.raises(TypeError, match="object"):
            make_key([object()])

    def test_unkeyable_arguments_are_computed_every_time(self) -> None:
        cache = VersionedCache()
        calls = []

        for _ in range(2):
            cache.get_or_compute("f", [object()], lambda: calls.append(1))

        assert len(calls) == 2
        assert len(cache) == 0
        assert ("f", [object()]) not in cache

    def test_materialize(self) -> None:
        assert materialize(np.array([1.5, 2.5])) == [1.5, 2.5]
        assert materialize(v * 2 for v in (1, 2)) == [2, 4]
        assert materialize((np.float64(1.0), "a")) == [1.0, "a"]
        assert materialize({"a": 1}) == {"a": 1}
        assert materialize("text") == "text"


class TestMemoizedCalculations:
    def test_cached_call(self) -> None:
        calcs = MemoizedCalculations()

        assert calcs.calculate_rewards(25000) == 500.0
        assert calcs.calculate_rewards(25000) == 500.0
        assert calcs.get_cache_stats()["calculate_rewards"] == 1
        assert calcs.calculate_rewards.__name__ == "calculate_rewards"

    def test_errors_are_not_cached(self) -> None:
        calcs = MemoizedCalculations()

        with pytest.raises(ArithmeticGuardError):
            calcs.calculate_rewards(-1)
        assert calcs.get_cache_stats()["calculate_rewards"] == 0

    def test_version_bump_clears_every_cache(self) -> None:
        version = DataVersion()
        calcs = MemoizedCalculations(version)
        calcs.calculate_refund_rate(100, 5)
        calcs.calculate_standard_deviation([1, 2, 3])

        version.bump("filters")

        assert set(calcs.get_cache_stats().values()) == {0}

    def test_clear_caches_keeps_version(self) -> None:
        calcs = MemoizedCalculations()
        calcs.calculate_percentile(3, [1, 2, 3, 4])

        calcs.clear_caches()

        assert calcs.get_cache_stats()["calculate_percentile"] == 0
        assert calcs.version.value == 0

    def test_keyword_arguments_are_part_of_the_key(self) -> None:
        calcs = MemoizedCalculations()

        first = calcs.calculate_gas_metrics(total_spent=40, total_gallons=10)
        second = calcs.calculate_gas_metrics(total_spent=45, total_gallons=9)

        assert first.avg_price_per_gallon == 4.0
        assert second.avg_price_per_gallon == 5.0
        assert calcs.get_cache_stats()["calculate_gas_metrics"] == 2

    def test_large_arrays_with_different_contents_are_not_shared(self) -> None:
        calcs = MemoizedCalculations()
        a = np.arange(2000.0)
        b = a.copy()
        b[1000] = 1e9

        first = calcs.calculate_standard_deviation(a)
        second = calcs.calculate_standard_deviation(b)

        assert first.mean == pytest.approx(999.5)
        assert second.mean == pytest.approx((a.sum() - 1000 + 1e9) / 2000)
        assert calcs.get_cache_stats()["calculate_standard_deviation"] == 2

    def test_generators_are_keyed_by_contents(self) -> None:
        calcs = MemoizedCalculations()

        means = [
            calcs.calculate_standard_deviation(v for v in values).mean
            for values in ([1, 2, 3], [100, 200], [5, 5, 5, 5])
        ]
        again = calcs.calculate_standard_deviation(iter([1, 2, 3]))

        assert means == [2.0, 150.0, 5.0]
        assert again.mean == 2.0
        assert calcs.get_cache_stats()["calculate_standard_deviation"] == 3

    def test_percentile_accepts_a_series(self) -> None:
        calcs = MemoizedCalculations()

        assert calcs.calculate_percentile(3, pd.Series([1, 2, 3, 4])) == 50.0
        assert calcs.calculate_percentile(3, [1, 2, 3, 4]) == 50.0
        assert calcs.get_cache_stats()["calculate_percentile"] == 1
