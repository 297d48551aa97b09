"""Unit tests for the amount baseline"""

import pytest

from fee_audit.domain.statistics import build_baseline, mean, percentile, std_dev


def test_mean_and_population_std_dev():
    """Test mean and population standard deviation"""
    values = [2, 4, 4, 4, 5, 5, 7, 9]
    assert mean(values) == 5
    assert std_dev(values) == pytest.approx(2.0)


def test_percentile_uses_floor_index_on_sorted_values():
    """Test percentile floor index"""
    values = list(range(1, 21))  # 1..20
    assert percentile(values, 95) == 20  # index floor(19) -> 20
    assert percentile(values, 50) == 11  # index 10
    assert percentile(values, 100) == 20  # clamped to the last element


def test_degenerate_inputs_return_zero_values():
    """Test empty input statistics"""
    assert mean([]) == 0.0
    assert std_dev([]) == 0.0
    assert std_dev([42]) == 0.0
    assert percentile([], 95) == 0.0


def test_baseline_uses_absolute_amounts():
    """Test baseline over absolute amounts"""
    baseline = build_baseline([-100, 100, -100, 100])
    assert baseline.count == 4
    assert baseline.mean == 100
    assert baseline.std_dev == 0


def test_flat_or_single_baseline_flags_nothing():
    """Test flat baseline flags nothing"""
    assert not build_baseline([500]).is_outlier(10_000)
    assert not build_baseline([500, 500, 500]).is_outlier(10_000)


def test_outlier_threshold():
    """Test outlier threshold"""
    baseline = build_baseline([10, 20, 30])
    threshold = baseline.outlier_threshold(2)
    assert threshold == pytest.approx(20 + 2 * baseline.std_dev)
    assert baseline.is_outlier(threshold + 1, 2)
    assert not baseline.is_outlier(threshold - 1, 2)
