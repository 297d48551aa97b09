"""Statistical baseline over a set of amounts (mean, population std, percentiles)"""

import math
from dataclasses import dataclass
from typing import Iterable

import numpy as np


@dataclass(frozen=True)
class AmountBaseline:
    """Summary of an amount distribution; all zeros when fewer than one value"""

    count: int
    mean: float
    std_dev: float
    p95: float

    def outlier_threshold(self, k: float = 2.0) -> float:
        """mean + k * std_dev"""
        return self.mean + k * self.std_dev

    def is_outlier(self, amount: float, k: float = 2.0) -> bool:
        # a flat or single-value baseline flags nothing
        if self.count < 2 or self.std_dev == 0:
            return False
        return amount > self.outlier_threshold(k)


def mean(values: Iterable[float]) -> float:
    data = np.asarray(list(values), dtype=float)
    return float(data.mean()) if data.size else 0.0


def std_dev(values: Iterable[float]) -> float:
    """Population standard deviation (ddof=0); 0 below two values"""
    data = np.asarray(list(values), dtype=float)
    return float(data.std()) if data.size > 1 else 0.0


def percentile(values: Iterable[float], p: float) -> float:
    """
    Empirical p-th percentile from a full sort: the element at index
    floor(n * p / 100), clamped to the last element. 0 for empty input.
    """
    data = np.sort(np.asarray(list(values), dtype=float))
    if not data.size:
        return 0.0
    index = min(int(math.floor(data.size * p / 100)), data.size - 1)
    return float(data[index])


def build_baseline(amounts: Iterable[float]) -> AmountBaseline:
    data = [abs(a) for a in amounts]
    return AmountBaseline(
        count=len(data),
        mean=mean(data),
        std_dev=std_dev(data),
        p95=percentile(data, 95),
    )
