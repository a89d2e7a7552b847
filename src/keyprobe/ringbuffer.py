# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
"""Bounded interval windows with running sums.

Intervals are integer microseconds, so the running sum and sum of squares stay exact no
matter how many values pass through the window; only the final mean/stddev step touches
floating point.
"""
from __future__ import annotations

import collections
import math
import typing

from .events import InsufficientData


class RingBuffer:
    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"Ring buffer capacity must be positive, not {capacity}")
        self.capacity = capacity
        self._values: collections.deque[int] = collections.deque(maxlen=capacity)
        self._sum = 0
        self._sum_sq = 0

    def push(self, value: int):
        if len(self._values) == self.capacity:
            evicted = self._values[0]
            self._sum -= evicted
            self._sum_sq -= evicted * evicted
        self._values.append(value)
        self._sum += value
        self._sum_sq += value * value

    def clear(self):
        self._values.clear()
        self._sum = 0
        self._sum_sq = 0

    def __len__(self):
        return len(self._values)

    def __iter__(self) -> typing.Iterator[int]:
        return iter(self._values)

    def __bool__(self):
        return bool(self._values)

    @property
    def last(self) -> typing.Optional[int]:
        return self._values[-1] if self._values else None

    def values(self) -> tuple[int, ...]:
        return tuple(self._values)

    def mean(self) -> float | InsufficientData:
        if not self._values:
            return InsufficientData(needed=1, have=0)
        return self._sum / len(self._values)

    def stddev(self) -> float | InsufficientData:
        "Population standard deviation of the window."
        count = len(self._values)
        if count < 2:
            return InsufficientData(needed=2, have=count)
        mean = self._sum / count
        mean_sq = self._sum_sq / count
        return math.sqrt(max(0.0, mean_sq - mean * mean))

    def variance(self) -> float | InsufficientData:
        count = len(self._values)
        if count < 2:
            return InsufficientData(needed=2, have=count)
        mean = self._sum / count
        return max(0.0, self._sum_sq / count - mean * mean)


class RunningStats:
    """Session-wide count/sum/min/max in constant memory."""

    __slots__ = ("count", "total", "total_sq", "minimum", "maximum")

    def __init__(self):
        self.count = 0
        self.total = 0
        self.total_sq = 0
        self.minimum: typing.Optional[int] = None
        self.maximum: typing.Optional[int] = None

    def add(self, value: int):
        self.count += 1
        self.total += value
        self.total_sq += value * value
        if self.minimum is None or value < self.minimum:
            self.minimum = value
        if self.maximum is None or value > self.maximum:
            self.maximum = value

    def mean(self) -> float | InsufficientData:
        if self.count == 0:
            return InsufficientData(needed=1, have=0)
        return self.total / self.count

    def stddev(self) -> float | InsufficientData:
        if self.count < 2:
            return InsufficientData(needed=2, have=self.count)
        mean = self.total / self.count
        return math.sqrt(max(0.0, self.total_sq / self.count - mean * mean))

    def clear(self):
        self.count = 0
        self.total = 0
        self.total_sq = 0
        self.minimum = None
        self.maximum = None
