# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Named duration samples and the statistics computed from them.

Thread Safety:
    - A Metrics instance may be shared by several predictors on several
      threads; appends and reads are protected by a lock.
"""

import math
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Dict, List

from ndinfer.errors import NoSamplesError


@dataclass(frozen=True)
class Metric:
    """A single sample."""

    name: str
    value: float
    unit: str = "nano"
    timestamp: float = field(default_factory=time.time)


@dataclass
class MetricSummary:
    """Statistics over every sample of one metric."""

    name: str
    unit: str
    mean: float
    min: float
    max: float
    std_dev: float
    count: int

    def __repr__(self) -> str:
        return (
            f"MetricSummary({self.name}: mean={self.mean:.4f}{self.unit}, "
            f"min={self.min:.4f}{self.unit}, "
            f"max={self.max:.4f}{self.unit}, "
            f"std_dev={self.std_dev:.4f}{self.unit}, "
            f"count={self.count})"
        )


class Metrics:
    """Append-only, per-name ordered sequences of samples."""

    def __init__(self):
        self._lock = threading.Lock()
        self._metrics: Dict[str, List[Metric]] = defaultdict(list)

    def add_metric(self, metric: Metric) -> None:
        with self._lock:
            self._metrics[metric.name].append(metric)

    def add(self, name: str, value: float, unit: str = "nano") -> Metric:
        metric = Metric(name, value, unit)
        self.add_metric(metric)
        return metric

    def get_metric(self, name: str) -> List[Metric]:
        """Samples of ``name`` in recording order (a copy)."""
        with self._lock:
            return list(self._metrics.get(name, ()))

    def metric_names(self) -> List[str]:
        with self._lock:
            return [name for name, samples in self._metrics.items() if samples]

    def count(self, name: str) -> int:
        with self._lock:
            return len(self._metrics.get(name, ()))

    def _samples(self, name: str) -> List[Metric]:
        samples = self.get_metric(name)
        if not samples:
            raise NoSamplesError(f"No samples recorded for metric '{name}'")
        return samples

    def percentile(self, name: str, percentile: float) -> Metric:
        """Sample at 1-indexed rank ceil(percentile / 100 * N) of the sorted values.

        Args:
            name: Metric name
            percentile: Value in [0, 100]

        Returns:
            The selected Metric sample.
        """
        if not 0 <= percentile <= 100:
            raise ValueError(f"percentile must be in [0, 100], got {percentile}")
        samples = sorted(self._samples(name), key=lambda m: m.value)
        # Exact arithmetic: 70 / 100 * 10 is 7.000000000000001 in floats
        rank = max(1, math.ceil(Fraction(str(percentile)) * len(samples) / 100))
        return samples[rank - 1]

    def mean(self, name: str) -> float:
        samples = self._samples(name)
        return sum(m.value for m in samples) / len(samples)

    def summary(self, name: str) -> MetricSummary:
        samples = self._samples(name)
        values = [m.value for m in samples]
        n = len(values)
        mean = sum(values) / n
        variance = sum((v - mean) ** 2 for v in values) / n
        return MetricSummary(
            name=name,
            unit=samples[0].unit,
            mean=mean,
            min=min(values),
            max=max(values),
            std_dev=math.sqrt(variance),
            count=n,
        )

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()
