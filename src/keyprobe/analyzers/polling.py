# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import logging
import typing

from ..events import Edge, InsufficientData, KeyTransition, MetricRow, Severity
from ..ringbuffer import RunningStats
from ..util import MICROS_PER_MS, MICROS_PER_SECOND
from .base import Analyzer, metric_row

if typing.TYPE_CHECKING:
    from ..settings import Settings
    from ..state import KeyboardState

logger = logging.getLogger(__name__)


def rate_severity(hz: float) -> Severity:
    if hz >= 900.0:
        return Severity.OK
    if hz >= 450.0:
        return Severity.WARNING
    return Severity.ERROR


def jitter_severity(jitter_us: float) -> Severity:
    if jitter_us < 500.0:
        return Severity.OK
    if jitter_us < 2000.0:
        return Severity.WARNING
    return Severity.ERROR


def format_hz(hz: float) -> str:
    return f"{hz:.1f} Hz"


class PollingRateAnalyzer(Analyzer):
    """Estimates the polling rate from the spacing of key presses.

    Gaps of ``idle_gap_us`` or more are pauses in typing, not polling intervals, and are
    skipped. Only intervals that end inside the test window (``test_duration_us`` from the
    first event) count toward the windowed figures.
    """

    name = "Polling Rate"

    def __init__(self, *, test_duration_us: int, jitter_tolerance: float = 0.25, idle_gap_us: int = 100 * MICROS_PER_MS):
        self.test_duration_us = test_duration_us
        self.jitter_tolerance = jitter_tolerance
        self.idle_gap_us = idle_gap_us
        self.reset()

    @classmethod
    def from_settings(cls, settings: Settings):
        return cls(
            test_duration_us=settings.test_duration_secs * MICROS_PER_SECOND,
            jitter_tolerance=settings.jitter_tolerance,
            idle_gap_us=settings.polling_gap_ms * MICROS_PER_MS,
        )

    def reset(self):
        self.first_event_time: typing.Optional[int] = None
        self.last_press_time: typing.Optional[int] = None
        self.latest_time: typing.Optional[int] = None
        self.event_count = 0
        self.last_interval_us: typing.Optional[int] = None
        self.window = RunningStats()

    def ingest(self, event: KeyTransition, state: KeyboardState):
        self._observe_time(event.timestamp)
        if self.first_event_time is None:
            self.first_event_time = event.timestamp
        if event.edge is not Edge.PRESS:
            return
        if self.last_press_time is not None:
            interval = event.timestamp - self.last_press_time
            if 0 <= interval < self.idle_gap_us:
                self.last_interval_us = interval
                if event.timestamp - self.first_event_time <= self.test_duration_us:
                    self.window.add(interval)
        self.last_press_time = event.timestamp
        self.event_count += 1

    def tick(self, now: int):
        self._observe_time(now)

    def _observe_time(self, now: int):
        if self.latest_time is None or now > self.latest_time:
            self.latest_time = now

    def instantaneous_hz(self) -> float | InsufficientData:
        if not self.last_interval_us:
            return InsufficientData(needed=1, have=0)
        return MICROS_PER_SECOND / self.last_interval_us

    def mean_interval_us(self) -> float | InsufficientData:
        return self.window.mean()

    def average_hz(self) -> float | InsufficientData:
        mean = self.mean_interval_us()
        if isinstance(mean, InsufficientData):
            return mean
        if mean <= 0:
            return InsufficientData(needed=1, have=0)
        return MICROS_PER_SECOND / mean

    def min_hz(self) -> float | InsufficientData:
        if not self.window.maximum:
            return InsufficientData(needed=1, have=0)
        return MICROS_PER_SECOND / self.window.maximum

    def max_hz(self) -> float | InsufficientData:
        if not self.window.minimum:
            return InsufficientData(needed=1, have=0)
        return MICROS_PER_SECOND / self.window.minimum

    def jitter_us(self) -> float | InsufficientData:
        return self.window.stddev()

    def inconsistent(self) -> bool:
        jitter = self.jitter_us()
        mean = self.mean_interval_us()
        if isinstance(jitter, InsufficientData) or isinstance(mean, InsufficientData):
            return False
        return jitter > self.jitter_tolerance * mean

    def elapsed_us(self) -> int:
        if self.first_event_time is None or self.latest_time is None:
            return 0
        return self.latest_time - self.first_event_time

    def progress(self) -> float:
        return min(1.0, self.elapsed_us() / self.test_duration_us)

    def complete(self) -> bool:
        return self.first_event_time is not None and self.elapsed_us() > self.test_duration_us

    def rows(self):
        rows = [
            MetricRow.info("Events Recorded", str(self.event_count)),
            metric_row("Average Rate", self.average_hz(), format_hz, rate_severity),
            metric_row("Instantaneous Rate", self.instantaneous_hz(), format_hz),
            metric_row("Min Rate", self.min_hz(), format_hz),
            metric_row("Max Rate", self.max_hz(), format_hz),
            metric_row("Jitter", self.jitter_us(), lambda j: f"{j:.1f} us", jitter_severity),
        ]
        if self.inconsistent():
            rows.append(MetricRow.warning("Consistency", "Inconsistent polling"))
        elif not isinstance(self.jitter_us(), InsufficientData):
            rows.append(MetricRow.ok("Consistency", "Stable"))
        rows.append(MetricRow.info("Progress", f"{self.progress() * 100:.0f}%"))
        return rows
