# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import collections
import logging
import typing

import msgspec

from ..durations import format_micros
from ..events import Edge, InsufficientData, KeyTransition, MetricRow
from ..keycodes import KeyIdentifier, key_name
from ..ringbuffer import RingBuffer
from ..util import MICROS_PER_MS, MICROS_PER_SECOND
from .base import Analyzer, metric_row

if typing.TYPE_CHECKING:
    from ..settings import Settings
    from ..state import KeyboardState

logger = logging.getLogger(__name__)

# Enough history to test a handful of edges inside one bounce window.
EDGE_HISTORY = 5
REPEAT_WINDOW = 16
# Repeat intervals longer than this are manual re-presses, not auto repeat.
MAX_REPEAT_INTERVAL_US = 500 * MICROS_PER_MS


class BounceIncident(msgspec.Struct, frozen=True, kw_only=True):
    key: KeyIdentifier
    edge: Edge
    started_at: int
    gap_us: int


class RepeatMeasurement(msgspec.Struct, frozen=True, kw_only=True):
    key: KeyIdentifier
    delay_us: int
    interval_us: float

    @property
    def rate_cps(self) -> float:
        return MICROS_PER_SECOND / self.interval_us


class _KeyEdges:
    __slots__ = ("edges", "incident_until")

    def __init__(self):
        self.edges: collections.deque[tuple[Edge, int]] = collections.deque(maxlen=EDGE_HISTORY)
        # end of the currently open bounce incident, if any
        self.incident_until: typing.Optional[int] = None


class _HeldKey:
    __slots__ = ("pressed_at", "last_press", "delay_us", "intervals")

    def __init__(self, pressed_at: int):
        self.pressed_at = pressed_at
        self.last_press = pressed_at
        self.delay_us: typing.Optional[int] = None
        self.intervals = RingBuffer(REPEAT_WINDOW)


def detect_auto_repeat(delay_us: int, intervals: RingBuffer, *, tolerance: float, min_run: int) -> typing.Optional[float]:
    """Return the mean repeat interval if ``intervals`` look like OS auto repeat.

    That means at least ``min_run`` intervals, all within ``tolerance`` (a fraction) of
    their mean, and an initial delay noticeably longer than that mean. This is a timing
    heuristic; a fast, very even typist re-pressing one key can satisfy it too.
    """
    if len(intervals) < min_run:
        return None
    mean = intervals.mean()
    if isinstance(mean, InsufficientData) or mean <= 0 or mean > MAX_REPEAT_INTERVAL_US:
        return None
    spread = tolerance * mean
    if any(abs(value - mean) > spread for value in intervals):
        return None
    if delay_us <= mean * (1 + tolerance):
        return None
    return mean


class BounceAnalyzer(Analyzer):
    """Detects contact bounce and, for held keys, the auto-repeat delay and rate.

    A bounce is an edge that repeats the polarity of an earlier edge for the same key
    within the bounce window. The first such edge opens an incident; more bounce edges
    before the window lapses belong to the same incident.
    """

    name = "Bounce"

    def __init__(self, *, window_us: int, repeat_tolerance: float = 0.15, repeat_min_run: int = 3, history_length: int = 20):
        self.window_us = window_us
        self.repeat_tolerance = repeat_tolerance
        self.repeat_min_run = repeat_min_run
        self.history_length = history_length
        self.reset()

    @classmethod
    def from_settings(cls, settings: Settings):
        return cls(
            window_us=settings.bounce_window_ms * MICROS_PER_MS,
            repeat_tolerance=settings.repeat_tolerance,
            repeat_min_run=settings.repeat_min_run,
            history_length=settings.history_length,
        )

    def reset(self):
        self.key_edges: dict[KeyIdentifier, _KeyEdges] = {}
        self.held: dict[KeyIdentifier, _HeldKey] = {}
        self.bounce_counts: collections.Counter[KeyIdentifier] = collections.Counter()
        self.bounce_edges = 0
        self.incidents: collections.deque[BounceIncident] = collections.deque(maxlen=self.history_length)
        self.total_presses = 0
        self.repeat: typing.Optional[RepeatMeasurement] = None

    @property
    def total_bounces(self) -> int:
        return sum(self.bounce_counts.values())

    def _check_bounce(self, event: KeyTransition) -> bool:
        "Record the edge; True when it repeats the previous same-polarity edge inside the window."
        record = self.key_edges.get(event.key)
        if record is None:
            record = self.key_edges[event.key] = _KeyEdges()
        previous = None
        for edge, timestamp in reversed(record.edges):
            if edge is event.edge:
                previous = timestamp
                break
        bounced = previous is not None and 0 <= event.timestamp - previous <= self.window_us
        if bounced:
            self.bounce_edges += 1
            if record.incident_until is None or event.timestamp > record.incident_until:
                self.bounce_counts[event.key] += 1
                self.incidents.append(BounceIncident(key=event.key, edge=event.edge, started_at=previous, gap_us=event.timestamp - previous))
                logger.debug("Bounce on %s: repeated %s after %s", key_name(event.key), event.edge.name, format_micros(event.timestamp - previous))
            record.incident_until = event.timestamp + self.window_us
        record.edges.append((event.edge, event.timestamp))
        return bounced

    def _track_repeat(self, event: KeyTransition, bounced: bool):
        held = self.held.get(event.key)
        match event.edge:
            case Edge.PRESS if held is None:
                self.held[event.key] = _HeldKey(event.timestamp)
                self.total_presses += 1
            case Edge.PRESS if bounced:
                # chatter during a hold is neither the repeat delay nor a repeat interval
                return
            case Edge.PRESS:
                if held.delay_us is None:
                    held.delay_us = event.timestamp - held.pressed_at
                else:
                    held.intervals.push(event.timestamp - held.last_press)
                held.last_press = event.timestamp
                if held.delay_us is not None:
                    mean = detect_auto_repeat(held.delay_us, held.intervals, tolerance=self.repeat_tolerance, min_run=self.repeat_min_run)
                    if mean is not None:
                        self.repeat = RepeatMeasurement(key=event.key, delay_us=held.delay_us, interval_us=mean)
            case Edge.RELEASE:
                self.held.pop(event.key, None)

    def ingest(self, event: KeyTransition, state: KeyboardState):
        bounced = self._check_bounce(event)
        self._track_repeat(event, bounced)

    def repeat_rate(self) -> float | InsufficientData:
        "Auto-repeat rate in characters per second."
        if self.repeat is None:
            return InsufficientData(needed=self.repeat_min_run, have=0)
        return self.repeat.rate_cps

    def repeat_delay_ms(self) -> float | InsufficientData:
        if self.repeat is None:
            return InsufficientData(needed=self.repeat_min_run, have=0)
        return self.repeat.delay_us / MICROS_PER_MS

    def bouncy_keys(self) -> list[tuple[KeyIdentifier, int]]:
        return sorted(self.bounce_counts.items())

    def rows(self):
        rows = [MetricRow.info("Total Presses", str(self.total_presses))]
        if not self.bounce_counts:
            rows.append(MetricRow.ok("Bounces Detected", "None"))
        else:
            rows.append(MetricRow.error("Bounces Detected", str(self.total_bounces)))
            rows.append(MetricRow.info("Bounce Edges", str(self.bounce_edges)))
            for key, count in self.bouncy_keys():
                rows.append(MetricRow.warning(f"  {key_name(key)}", f"{count} bounce{'s' if count != 1 else ''}"))
        rows.append(MetricRow.info("Bounce Window", format_micros(self.window_us)))
        rows.append(metric_row("Repeat Delay", self.repeat_delay_ms(), lambda ms: f"{ms:.0f} ms"))
        rows.append(metric_row("Repeat Rate", self.repeat_rate(), lambda cps: f"{cps:.1f} cps"))
        return rows
