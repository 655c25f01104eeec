from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

import numpy as np


@dataclass(frozen=True)
class Boxplot:
    count: int
    min: float
    lower_quartile: float
    median: float
    upper_quartile: float
    max: float
    mean: float

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "min": self.min,
            "lower_quartile": self.lower_quartile,
            "median": self.median,
            "upper_quartile": self.upper_quartile,
            "max": self.max,
            "mean": self.mean,
        }


class BoxplotData:
    """Collects raw values; partial collections combine with ``merge``."""

    def __init__(self, values: Iterable[float] = ()) -> None:
        self._values: List[float] = [float(v) for v in values]

    def add(self, value: float) -> None:
        self._values.append(float(value))

    def add_all(self, values: Iterable[float]) -> None:
        for value in values:
            self.add(value)

    def merge(self, other: "BoxplotData") -> None:
        self._values.extend(other._values)

    @property
    def values(self) -> List[float]:
        return list(self._values)

    def __len__(self) -> int:
        return len(self._values)

    @property
    def mean(self) -> float:
        if not self._values:
            return 0.0
        return float(np.mean(self._values))

    def boxplot(self) -> Boxplot:
        if not self._values:
            return Boxplot(0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
        data = np.asarray(self._values, dtype=np.float64)
        q1, median, q3 = np.percentile(data, [25, 50, 75])
        return Boxplot(
            count=len(self._values),
            min=float(data.min()),
            lower_quartile=float(q1),
            median=float(median),
            upper_quartile=float(q3),
            max=float(data.max()),
            mean=float(data.mean()),
        )
