# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
"""Inter-event timing.

This is the spacing between consecutive presses as the host saw them, which tracks the
poll interval. It is not switch-to-screen input latency; that needs external hardware.
"""
from __future__ import annotations

import typing

import msgspec

from ..durations import format_millis
from ..events import Edge, InsufficientData, KeyTransition, MetricRow, Severity
from ..keycodes import KeyIdentifier, key_name
from ..ringbuffer import RunningStats
from ..util import MICROS_PER_MS, MICROS_PER_SECOND
from .base import Analyzer

if typing.TYPE_CHECKING:
    from ..settings import Settings
    from ..state import KeyboardState

RATINGS = (
    (5.0, "Excellent (<5ms)"),
    (10.0, "Great (<10ms)"),
    (20.0, "Good (<20ms)"),
    (50.0, "Acceptable (<50ms)"),
)


def timing_rating(avg_ms: float) -> str:
    for limit, label in RATINGS:
        if avg_ms < limit:
            return label
    return "Poor (>50ms)"


def timing_severity(avg_ms: float) -> Severity:
    if avg_ms < 10.0:
        return Severity.OK
    if avg_ms < 20.0:
        return Severity.WARNING
    return Severity.ERROR


class KeyTiming(msgspec.Struct, frozen=True, kw_only=True):
    key: KeyIdentifier
    samples: int
    avg_ms: float
    min_ms: float
    max_ms: float


def _to_ms(us) -> float:
    return us / MICROS_PER_MS


class TimingAnalyzer(Analyzer):
    name = "Event Timing"

    def __init__(self, *, idle_gap_us: int = MICROS_PER_SECOND):
        self.idle_gap_us = idle_gap_us
        self.reset()

    @classmethod
    def from_settings(cls, settings: Settings):
        return cls(idle_gap_us=settings.timing_gap_ms * MICROS_PER_MS)

    def reset(self):
        self.last_event_time: typing.Optional[int] = None
        self.total_presses = 0
        self.global_stats = RunningStats()
        self.key_stats: dict[KeyIdentifier, RunningStats] = {}

    def ingest(self, event: KeyTransition, state: KeyboardState):
        previous = self.last_event_time
        if previous is None or event.timestamp > previous:
            self.last_event_time = event.timestamp
        if event.edge is not Edge.PRESS or previous is None:
            return
        self.total_presses += 1
        interval = event.timestamp - previous
        if not 0 <= interval < self.idle_gap_us:
            return
        self.global_stats.add(interval)
        stats = self.key_stats.get(event.key)
        if stats is None:
            stats = self.key_stats[event.key] = RunningStats()
        stats.add(interval)

    def average_ms(self) -> float | InsufficientData:
        mean = self.global_stats.mean()
        if isinstance(mean, InsufficientData):
            return mean
        return _to_ms(mean)

    def min_ms(self) -> float | InsufficientData:
        if self.global_stats.minimum is None:
            return InsufficientData(needed=1, have=0)
        return _to_ms(self.global_stats.minimum)

    def max_ms(self) -> float | InsufficientData:
        if self.global_stats.maximum is None:
            return InsufficientData(needed=1, have=0)
        return _to_ms(self.global_stats.maximum)

    def stddev_ms(self) -> float | InsufficientData:
        stddev = self.global_stats.stddev()
        if isinstance(stddev, InsufficientData):
            return stddev
        return _to_ms(stddev)

    def per_key(self) -> list[KeyTiming]:
        return [
            KeyTiming(
                key=key,
                samples=stats.count,
                avg_ms=_to_ms(stats.total / stats.count),
                min_ms=_to_ms(stats.minimum),
                max_ms=_to_ms(stats.maximum),
            )
            for key, stats in sorted(self.key_stats.items())
        ]

    def fastest_key(self) -> typing.Optional[KeyTiming]:
        timings = self.per_key()
        return min(timings, key=lambda t: t.avg_ms) if timings else None

    def slowest_key(self) -> typing.Optional[KeyTiming]:
        timings = self.per_key()
        return max(timings, key=lambda t: t.avg_ms) if timings else None

    def rows(self):
        rows = [MetricRow.info("Samples", str(self.global_stats.count))]
        avg = self.average_ms()
        if isinstance(avg, InsufficientData):
            rows.append(avg.as_row("Avg Event Timing"))
            rows.append(MetricRow.info("Rating", "Not measured"))
            return rows
        rows.append(MetricRow("Avg Event Timing", format_millis(avg), timing_severity(avg)))
        rows.append(MetricRow.info("Min Timing", format_millis(self.min_ms())))
        rows.append(MetricRow.info("Max Timing", format_millis(self.max_ms())))
        stddev = self.stddev_ms()
        if isinstance(stddev, InsufficientData):
            rows.append(stddev.as_row("Std Dev"))
        else:
            rows.append(MetricRow.info("Std Dev", format_millis(stddev)))
        rows.append(MetricRow.info("Rating", timing_rating(avg)))
        fastest = self.fastest_key()
        slowest = self.slowest_key()
        if fastest is not None and slowest is not None:
            rows.append(MetricRow.ok("Fastest Key", f"{key_name(fastest.key)}: {format_millis(fastest.avg_ms)}"))
            rows.append(MetricRow.info("Slowest Key", f"{key_name(slowest.key)}: {format_millis(slowest.avg_ms)}"))
        return rows
