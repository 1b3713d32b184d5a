import math

import numpy as np
import pytest

from dl4j_inspector.analysis.stats import compute_histogram, compute_stats, finite_values


def test_stats_population_std():
    s = compute_stats([1.0, 2.0, 3.0, 4.0])
    assert (s.min, s.max) == (1.0, 4.0)
    assert s.mean == 2.5
    assert s.std_dev == pytest.approx(math.sqrt(1.25))


def test_stats_empty_is_zero():
    s = compute_stats([])
    assert (s.min, s.max, s.mean, s.std_dev) == (0.0, 0.0, 0.0, 0.0)


def test_histogram_counts_and_edges():
    values = [0.0, 1.0, 2.0, 3.0, 4.0]
    bins = compute_histogram(values, 4)
    assert [b.count for b in bins] == [1, 1, 1, 2]
    assert bins[0].min == 0.0
    assert bins[-1].max == 4.0
    assert sum(b.count for b in bins) == len(values)


def test_histogram_bins_are_contiguous():
    values = [-0.37, 0.11, 0.5, 0.93, -1.0, 0.02, 0.7]
    bins = compute_histogram(values, 7)
    assert len(bins) == 7
    for prev, cur in zip(bins, bins[1:]):
        assert cur.min == pytest.approx(prev.max)
        assert prev.min < cur.min
    assert sum(b.count for b in bins) == len(values)


def test_histogram_zero_range_single_bin():
    bins = compute_histogram([2.0, 2.0, 2.0])
    assert len(bins) == 1
    assert (bins[0].min, bins[0].max, bins[0].count) == (2.0, 2.0, 3)


def test_histogram_empty():
    assert compute_histogram([]) == []


def test_histogram_rejects_zero_bins():
    with pytest.raises(ValueError):
        compute_histogram([1.0, 2.0], 0)


def test_non_finite_values_are_ignored():
    values = [1.0, float("nan"), 3.0, float("inf"), float("-inf")]
    s = compute_stats(values)
    assert (s.min, s.max, s.mean) == (1.0, 3.0, 2.0)
    assert s.std_dev == 1.0
    bins = compute_histogram(values, 2)
    assert [b.count for b in bins] == [1, 1]
    assert finite_values(values).tolist() == [1.0, 3.0]


def test_only_non_finite_values_behave_as_empty():
    values = [float("nan"), float("inf")]
    s = compute_stats(values)
    assert (s.min, s.max, s.mean, s.std_dev) == (0.0, 0.0, 0.0, 0.0)
    assert compute_histogram(values) == []


def test_accepts_float32_arrays():
    bins = compute_histogram(np.array([0.0, 0.5, 1.0], dtype=np.float32), 2)
    assert [b.count for b in bins] == [1, 2]
    assert bins[-1].max == 1.0
