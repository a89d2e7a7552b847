# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import collections
import logging
import typing

import msgspec

from .events import Anomaly, AnomalyKind, Edge, InsufficientData, KeyTransition, Origin
from .keycodes import KeyIdentifier
from .ringbuffer import RingBuffer, RunningStats
from .util import MICROS_PER_SECOND

logger = logging.getLogger(__name__)


class KeySnapshot(msgspec.Struct, frozen=True, kw_only=True):
    key: KeyIdentifier
    last_edge: typing.Optional[Edge]
    last_transition_time: typing.Optional[int]
    press_started_at: typing.Optional[int]
    press_count: int
    release_count: int
    repeat_count: int
    min_duration_us: typing.Optional[int]
    avg_duration_us: typing.Optional[float]
    max_duration_us: typing.Optional[int]
    intervals: tuple[int, ...]


class GlobalSnapshot(msgspec.Struct, frozen=True, kw_only=True):
    pressed: tuple[KeyIdentifier, ...]
    total_events: int
    physical_events: int
    virtual_events: int
    session_start_time: typing.Optional[int]
    last_event_time: typing.Optional[int]
    last_sequence_no: typing.Optional[int]
    intervals: tuple[int, ...]
    anomaly_counts: tuple[tuple[str, int], ...]
    recent_anomalies: tuple[Anomaly, ...]


class KeyRuntimeState:
    def __init__(self, key: KeyIdentifier, capacity: int):
        self.key = key
        self.last_edge: typing.Optional[Edge] = None
        self.last_transition_time: typing.Optional[int] = None
        self.press_started_at: typing.Optional[int] = None
        self.intervals = RingBuffer(capacity)
        self.press_count = 0
        self.release_count = 0
        self.repeat_count = 0
        self.durations = RunningStats()

    @property
    def is_pressed(self):
        return self.press_started_at is not None

    def min_duration(self) -> int | InsufficientData:
        if self.durations.minimum is None:
            return InsufficientData(needed=1, have=0)
        return self.durations.minimum

    def avg_duration(self) -> float | InsufficientData:
        return self.durations.mean()

    def max_duration(self) -> int | InsufficientData:
        if self.durations.maximum is None:
            return InsufficientData(needed=1, have=0)
        return self.durations.maximum

    def snapshot(self) -> KeySnapshot:
        avg = self.durations.mean()
        return KeySnapshot(
            key=self.key,
            last_edge=self.last_edge,
            last_transition_time=self.last_transition_time,
            press_started_at=self.press_started_at,
            press_count=self.press_count,
            release_count=self.release_count,
            repeat_count=self.repeat_count,
            min_duration_us=self.durations.minimum,
            avg_duration_us=None if isinstance(avg, InsufficientData) else avg,
            max_duration_us=self.durations.maximum,
            intervals=self.intervals.values(),
        )


class GlobalState:
    def __init__(self, capacity: int, history_length: int):
        # dict as an insertion-ordered set
        self.pressed: dict[KeyIdentifier, None] = {}
        self.total_events = 0
        self.physical_events = 0
        self.virtual_events = 0
        self.session_start_time: typing.Optional[int] = None
        self.last_event_time: typing.Optional[int] = None
        self.last_sequence_no: typing.Optional[int] = None
        self.intervals = RingBuffer(capacity)
        self.anomaly_counts: collections.Counter[AnomalyKind] = collections.Counter()
        self.recent_anomalies: collections.deque[Anomaly] = collections.deque(maxlen=history_length)

    def snapshot(self) -> GlobalSnapshot:
        return GlobalSnapshot(
            pressed=tuple(self.pressed),
            total_events=self.total_events,
            physical_events=self.physical_events,
            virtual_events=self.virtual_events,
            session_start_time=self.session_start_time,
            last_event_time=self.last_event_time,
            last_sequence_no=self.last_sequence_no,
            intervals=self.intervals.values(),
            anomaly_counts=tuple((kind.value, self.anomaly_counts[kind]) for kind in AnomalyKind),
            recent_anomalies=tuple(self.recent_anomalies),
        )


class KeyboardState:
    """Canonical running state shared by every analyzer.

    Only the dispatcher calls ingest(). Per-key state, the pressed set and the interval
    windows follow the physical stream; virtual events are only counted here.
    """

    def __init__(self, *, ring_buffer_capacity: int = 100, global_ring_buffer_capacity: int = 1000, history_length: int = 20):
        self.ring_buffer_capacity = ring_buffer_capacity
        self.global_ring_buffer_capacity = global_ring_buffer_capacity
        self.history_length = history_length
        self.keys: dict[KeyIdentifier, KeyRuntimeState] = {}
        self.global_state = GlobalState(global_ring_buffer_capacity, history_length)

    def reset(self):
        self.keys = {}
        self.global_state = GlobalState(self.global_ring_buffer_capacity, self.history_length)

    def key_state(self, key: KeyIdentifier) -> KeyRuntimeState:
        try:
            return self.keys[key]
        except KeyError:
            state = self.keys[key] = KeyRuntimeState(key, self.ring_buffer_capacity)
            return state

    def _anomaly(self, kind: AnomalyKind, event: KeyTransition):
        logger.debug("Anomaly %s for key %d (seq %d)", kind.value, event.key, event.sequence_no)
        g = self.global_state
        g.anomaly_counts[kind] += 1
        g.recent_anomalies.append(Anomaly(kind=kind, key=event.key, sequence_no=event.sequence_no, timestamp=event.timestamp))

    def ingest(self, event: KeyTransition):
        g = self.global_state
        g.total_events += 1

        if g.last_sequence_no is not None and event.sequence_no <= g.last_sequence_no:
            self._anomaly(AnomalyKind.OUT_OF_ORDER, event)
        else:
            g.last_sequence_no = event.sequence_no

        if event.origin is Origin.VIRTUAL:
            g.virtual_events += 1
            return
        g.physical_events += 1

        if g.session_start_time is None:
            g.session_start_time = event.timestamp
        if g.last_event_time is not None:
            interval = event.timestamp - g.last_event_time
            if interval < 0:
                self._anomaly(AnomalyKind.CLOCK_REGRESSION, event)
            else:
                g.intervals.push(interval)
        if g.last_event_time is None or event.timestamp > g.last_event_time:
            g.last_event_time = event.timestamp

        ks = self.key_state(event.key)
        if ks.last_transition_time is not None:
            key_interval = event.timestamp - ks.last_transition_time
            if key_interval >= 0:
                ks.intervals.push(key_interval)

        match event.edge:
            case Edge.PRESS:
                if ks.is_pressed:
                    # no release in between; the hold continues
                    ks.repeat_count += 1
                else:
                    ks.press_count += 1
                    ks.press_started_at = event.timestamp
                    g.pressed[event.key] = None
            case Edge.RELEASE:
                if ks.is_pressed:
                    ks.release_count += 1
                    duration = event.timestamp - ks.press_started_at
                    if duration >= 0:
                        ks.durations.add(duration)
                    ks.press_started_at = None
                    del g.pressed[event.key]
                else:
                    self._anomaly(AnomalyKind.UNMATCHED_RELEASE, event)

        ks.last_edge = event.edge
        ks.last_transition_time = event.timestamp

    @property
    def rollover(self) -> int:
        return len(self.global_state.pressed)

    @property
    def pressed_keys(self) -> frozenset[KeyIdentifier]:
        return frozenset(self.global_state.pressed)

    def anomaly_count(self, kind: typing.Optional[AnomalyKind] = None) -> int:
        counts = self.global_state.anomaly_counts
        if kind is None:
            return sum(counts.values())
        return counts[kind]

    def average_interval(self) -> float | InsufficientData:
        return self.global_state.intervals.mean()

    def jitter(self) -> float | InsufficientData:
        return self.global_state.intervals.stddev()

    def polling_rate(self) -> float | InsufficientData:
        "Implied polling rate in Hz from the average interval."
        avg = self.average_interval()
        if isinstance(avg, InsufficientData):
            return avg
        if avg <= 0:
            return InsufficientData(needed=1, have=0)
        return MICROS_PER_SECOND / avg

    def snapshot(self) -> tuple[GlobalSnapshot, tuple[KeySnapshot, ...]]:
        return (
            self.global_state.snapshot(),
            tuple(self.keys[key].snapshot() for key in sorted(self.keys)),
        )
