# dl4j_inspector/analysis/stats.py
"""
Summary statistics and equal-width histograms for flat weight arrays.

NaN and infinite values are left out of every statistic and every bin, so
``num_values`` always equals the sum of the bin counts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Union

import numpy as np

from dl4j_inspector.analysis.base import HistogramBin

DEFAULT_BINS = 20

Values = Union[Sequence[float], np.ndarray]


@dataclass
class Stats:
    min: float
    max: float
    mean: float
    std_dev: float


def finite_values(values: Values) -> np.ndarray:
    """``values`` as float64 with NaN and +-inf removed."""
    arr = np.asarray(values, dtype=np.float64).ravel()
    return arr[np.isfinite(arr)]


def compute_stats(values: Values) -> Stats:
    """Min, max, mean and population standard deviation of the finite values.

    All zeros when there are none.
    """
    arr = finite_values(values)
    if arr.size == 0:
        return Stats(0.0, 0.0, 0.0, 0.0)
    return Stats(float(arr.min()), float(arr.max()), float(arr.mean()), float(arr.std()))


def compute_histogram(values: Values, num_bins: int = DEFAULT_BINS) -> List[HistogramBin]:
    """Bucket the finite ``values`` into ``num_bins`` equal-width bins over ``[min, max]``.

    The last bin ends exactly at ``max`` and absorbs rounding. A zero range gives a
    single bin holding every value.
    """
    arr = finite_values(values)
    if arr.size == 0:
        return []
    if num_bins < 1:
        raise ValueError("num_bins must be >= 1")
    lo = float(arr.min())
    hi = float(arr.max())
    if hi == lo:
        return [HistogramBin(min=lo, max=hi, count=int(arr.size))]

    width = (hi - lo) / num_bins
    with np.errstate(over="ignore", invalid="ignore"):
        idx = np.clip(np.nan_to_num((arr - lo) / width), 0, num_bins - 1).astype(np.int64)
    counts = np.bincount(idx, minlength=num_bins)

    bins = []
    for i, count in enumerate(counts.tolist()):
        b_min = lo + i * width
        b_max = hi if i == num_bins - 1 else min(b_min + width, hi)
        bins.append(HistogramBin(min=b_min, max=b_max, count=int(count)))
    return bins
