# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
"""Physical versus virtual input.

Two things happen here. Events from both origins are correlated: the same key and edge
arriving from each origin inside the correlation window is a matched pair, and a probe
(a set of keys that should arrive from both origins) turns into a diagnosis. Separately,
each stream's timing is screened: bursts on the virtual stream mean the synthesizer
misbehaved, and machine-perfect timing on the physical stream suggests automation.
"""
from __future__ import annotations

import collections
import enum
import logging
import typing

import msgspec

from ..events import Edge, InsufficientData, KeyTransition, MetricRow, Origin, Severity
from ..keycodes import KeyIdentifier, key_name
from ..ringbuffer import RingBuffer
from ..util import MICROS_PER_MS, MICROS_PER_SECOND
from .base import ALL_ORIGINS, Analyzer

if typing.TYPE_CHECKING:
    from ..settings import Settings
    from ..state import KeyboardState

logger = logging.getLogger(__name__)

MIN_HUMAN_INTERVAL_US = 15 * MICROS_PER_MS
# ms², over the analysis window
PERFECT_TIMING_VARIANCE = 0.5
BURST_WINDOW_US = 50 * MICROS_PER_MS
BURST_COUNT_THRESHOLD = 5
ANALYSIS_WINDOW = 20
MIN_CLASSIFIED_PRESSES = 10
ANOMALY_DEDUP_US = 100 * MICROS_PER_MS
MAX_ANOMALIES = 50
RECENT_ANOMALY_US = 5 * MICROS_PER_SECOND


class DiagnosticOutcome(enum.Enum):
    NOT_TESTED = "Not tested yet"
    PENDING = "Waiting for probe keys"
    KEYBOARD_OK = "Keyboard OK"
    HARDWARE_ISSUE = "Hardware Issue Detected"
    SOFTWARE_ISSUE = "Software/Driver Issue"
    API_ISSUE = "API/Permission Issue"

    @enum.property
    def severity(self) -> Severity:
        match self:
            case DiagnosticOutcome.KEYBOARD_OK:
                return Severity.OK
            case DiagnosticOutcome.HARDWARE_ISSUE | DiagnosticOutcome.SOFTWARE_ISSUE:
                return Severity.ERROR
            case DiagnosticOutcome.API_ISSUE:
                return Severity.WARNING
            case _:
                return Severity.INFO


# worst first
_OUTCOME_PRECEDENCE = (DiagnosticOutcome.SOFTWARE_ISSUE, DiagnosticOutcome.HARDWARE_ISSUE, DiagnosticOutcome.API_ISSUE, DiagnosticOutcome.KEYBOARD_OK)


def diagnose(physical_seen: bool, virtual_seen: bool) -> DiagnosticOutcome:
    match (physical_seen, virtual_seen):
        case (True, True):
            return DiagnosticOutcome.KEYBOARD_OK
        case (False, True):
            return DiagnosticOutcome.HARDWARE_ISSUE
        case (False, False):
            return DiagnosticOutcome.SOFTWARE_ISSUE
        case (True, False):
            return DiagnosticOutcome.API_ISSUE


class InputClassification(enum.Enum):
    PHYSICAL = "Physical"
    LIKELY_PHYSICAL = "Likely Physical"
    UNCERTAIN = "Uncertain"
    LIKELY_VIRTUAL = "Likely Virtual"
    VIRTUAL = "Virtual/Automated"

    @enum.property
    def severity(self) -> Severity:
        match self:
            case InputClassification.PHYSICAL | InputClassification.LIKELY_PHYSICAL:
                return Severity.OK
            case InputClassification.UNCERTAIN:
                return Severity.INFO
            case _:
                return Severity.WARNING


class TimingAnomaly(msgspec.Struct, frozen=True, kw_only=True):
    description: str
    origin: Origin
    timestamp: int


class ProbeKeyResult(msgspec.Struct, frozen=True, kw_only=True):
    key: KeyIdentifier
    physical_seen: bool
    virtual_seen: bool

    @property
    def outcome(self) -> DiagnosticOutcome:
        return diagnose(self.physical_seen, self.virtual_seen)


class ProbeResult(msgspec.Struct, frozen=True, kw_only=True):
    started_at: int
    resolved_at: int
    keys: tuple[ProbeKeyResult, ...]

    @property
    def outcome(self) -> DiagnosticOutcome:
        outcomes = {k.outcome for k in self.keys}
        for candidate in _OUTCOME_PRECEDENCE:
            if candidate in outcomes:
                return candidate
        return DiagnosticOutcome.NOT_TESTED


class _Probe:
    def __init__(self, keys: frozenset[KeyIdentifier], started_at: int):
        self.started_at = started_at
        self.physical: dict[KeyIdentifier, bool] = {k: False for k in sorted(keys)}
        self.virtual: dict[KeyIdentifier, bool] = {k: False for k in sorted(keys)}

    def observe(self, event: KeyTransition):
        if event.key not in self.physical or event.timestamp < self.started_at:
            return
        seen = self.physical if event.origin is Origin.PHYSICAL else self.virtual
        seen[event.key] = True

    @property
    def satisfied(self):
        return all(self.physical.values()) and all(self.virtual.values())

    def result(self, resolved_at: int) -> ProbeResult:
        return ProbeResult(
            started_at=self.started_at,
            resolved_at=resolved_at,
            keys=tuple(ProbeKeyResult(key=k, physical_seen=self.physical[k], virtual_seen=self.virtual[k]) for k in self.physical),
        )


class _BurstDetector:
    __slots__ = ("window",)

    def __init__(self):
        self.window: collections.deque[int] = collections.deque()

    def push(self, timestamp: int) -> int:
        "Record a press; return how many presses fall inside the burst window."
        self.window.append(timestamp)
        while self.window and timestamp - self.window[0] > BURST_WINDOW_US:
            self.window.popleft()
        return len(self.window)


class VirtualComparisonAnalyzer(Analyzer):
    name = "Virtual Input"
    origins = ALL_ORIGINS

    def __init__(self, *, correlation_window_us: int = 500 * MICROS_PER_MS):
        self.correlation_window_us = correlation_window_us
        self.reset()

    @classmethod
    def from_settings(cls, settings: Settings):
        return cls(correlation_window_us=settings.correlation_window_ms * MICROS_PER_MS)

    def reset(self):
        # (key, edge, origin) -> timestamp of the latest event still waiting for a partner
        self.pending: dict[tuple[KeyIdentifier, Edge, Origin], int] = {}
        self.correlated_pairs = 0
        self.presses = {Origin.PHYSICAL: 0, Origin.VIRTUAL: 0}
        self.probe: typing.Optional[_Probe] = None
        self.last_probe: typing.Optional[ProbeResult] = None
        self.last_physical_press: typing.Optional[int] = None
        self.physical_intervals = RingBuffer(ANALYSIS_WINDOW)
        self.suspicious_presses = 0
        self.physical_bursts = _BurstDetector()
        self.virtual_bursts = _BurstDetector()
        self.synthesis_failures = 0
        self._in_virtual_burst = False
        self.anomalies: collections.deque[TimingAnomaly] = collections.deque(maxlen=MAX_ANOMALIES)
        self.latest_time: typing.Optional[int] = None

    def start_probe(self, keys: typing.Iterable[KeyIdentifier], timestamp: int):
        keys = frozenset(keys)
        if not keys:
            raise ValueError("A probe needs at least one key")
        if self.probe is not None:
            self._resolve_probe(timestamp)
        self.probe = _Probe(keys, timestamp)
        logger.debug("Probe started for %s", ", ".join(key_name(k) for k in sorted(keys)))

    def _resolve_probe(self, now: int):
        assert self.probe is not None
        self.last_probe = self.probe.result(now)
        self.probe = None
        logger.debug("Probe resolved: %s", self.last_probe.outcome.value)

    def _check_probe(self, now: int):
        if self.probe is None:
            return
        if self.probe.satisfied or now - self.probe.started_at > self.correlation_window_us:
            self._resolve_probe(now)

    def _record_anomaly(self, description: str, origin: Origin, timestamp: int):
        for previous in reversed(self.anomalies):
            if previous.origin is origin:
                if timestamp - previous.timestamp < ANOMALY_DEDUP_US:
                    return
                break
        self.anomalies.append(TimingAnomaly(description=description, origin=origin, timestamp=timestamp))

    def _correlate(self, event: KeyTransition):
        other = Origin.VIRTUAL if event.origin is Origin.PHYSICAL else Origin.PHYSICAL
        partner = self.pending.get((event.key, event.edge, other))
        if partner is not None and abs(event.timestamp - partner) <= self.correlation_window_us:
            del self.pending[(event.key, event.edge, other)]
            self.correlated_pairs += 1
        else:
            self.pending[(event.key, event.edge, event.origin)] = event.timestamp

    def _screen_physical(self, event: KeyTransition):
        suspicious = False
        if self.last_physical_press is not None:
            interval = event.timestamp - self.last_physical_press
            if 0 <= interval < MIN_HUMAN_INTERVAL_US:
                self._record_anomaly(f"Inhuman speed: {interval / MICROS_PER_MS:.1f}ms interval", Origin.PHYSICAL, event.timestamp)
                suspicious = True
            if interval >= 0:
                self.physical_intervals.push(interval)
            variance = self.physical_intervals.variance()
            if len(self.physical_intervals) >= MIN_CLASSIFIED_PRESSES and not isinstance(variance, InsufficientData):
                variance_ms2 = variance / (MICROS_PER_MS * MICROS_PER_MS)
                if variance_ms2 < PERFECT_TIMING_VARIANCE:
                    self._record_anomaly(f"Perfect timing: variance={variance_ms2:.2f}ms²", Origin.PHYSICAL, event.timestamp)
                    suspicious = True
        self.last_physical_press = event.timestamp
        count = self.physical_bursts.push(event.timestamp)
        if count >= BURST_COUNT_THRESHOLD:
            self._record_anomaly(f"{count} keys in {BURST_WINDOW_US // MICROS_PER_MS}ms window", Origin.PHYSICAL, event.timestamp)
            suspicious = True
        if suspicious:
            self.suspicious_presses += 1

    def _screen_virtual(self, event: KeyTransition):
        count = self.virtual_bursts.push(event.timestamp)
        if count >= BURST_COUNT_THRESHOLD:
            if not self._in_virtual_burst:
                self.synthesis_failures += 1
                logger.debug("Virtual burst: %d presses within %dms", count, BURST_WINDOW_US // MICROS_PER_MS)
            self._in_virtual_burst = True
            self._record_anomaly(f"Synthesis burst: {count} keys in {BURST_WINDOW_US // MICROS_PER_MS}ms", Origin.VIRTUAL, event.timestamp)
        else:
            self._in_virtual_burst = False

    def ingest(self, event: KeyTransition, state: KeyboardState):
        if self.latest_time is None or event.timestamp > self.latest_time:
            self.latest_time = event.timestamp
        # a press that arrives after the window must not count toward the probe
        self._check_probe(event.timestamp)
        self._correlate(event)
        if event.edge is Edge.PRESS:
            self.presses[event.origin] += 1
            if self.probe is not None:
                self.probe.observe(event)
            if event.origin is Origin.PHYSICAL:
                self._screen_physical(event)
            else:
                self._screen_virtual(event)
        self._check_probe(event.timestamp)

    def tick(self, now: int):
        if self.latest_time is None or now > self.latest_time:
            self.latest_time = now
        self._check_probe(now)

    def diagnosis(self) -> DiagnosticOutcome:
        if self.probe is not None:
            return DiagnosticOutcome.PENDING
        if self.last_probe is None:
            return DiagnosticOutcome.NOT_TESTED
        return self.last_probe.outcome

    def classification(self) -> InputClassification:
        total = self.presses[Origin.PHYSICAL]
        if total < MIN_CLASSIFIED_PRESSES:
            return InputClassification.UNCERTAIN
        ratio = self.suspicious_presses / total
        recent = 0
        if self.latest_time is not None:
            recent = sum(
                1 for a in self.anomalies if a.origin is Origin.PHYSICAL and self.latest_time - a.timestamp < RECENT_ANOMALY_US
            )
        if ratio > 0.5 or recent >= 3:
            return InputClassification.VIRTUAL
        if ratio > 0.2 or recent >= 1:
            return InputClassification.LIKELY_VIRTUAL
        if ratio > 0.05:
            return InputClassification.UNCERTAIN
        if total > 50:
            return InputClassification.PHYSICAL
        return InputClassification.LIKELY_PHYSICAL

    def complete(self) -> bool:
        return self.last_probe is not None and self.probe is None

    def rows(self):
        classification = self.classification()
        diagnosis = self.diagnosis()
        rows = [
            MetricRow.info("Physical Presses", str(self.presses[Origin.PHYSICAL])),
            MetricRow.info("Virtual Presses", str(self.presses[Origin.VIRTUAL])),
            MetricRow.info("Correlated Pairs", str(self.correlated_pairs)),
            MetricRow("Input Source", classification.value, classification.severity),
            MetricRow("Diagnosis", diagnosis.value, diagnosis.severity),
        ]
        if self.last_probe is not None and self.probe is None:
            for result in self.last_probe.keys:
                outcome = result.outcome
                rows.append(MetricRow(f"  {key_name(result.key)}", outcome.value, outcome.severity))
        if self.synthesis_failures:
            rows.append(MetricRow.error("Synthesis Failures", str(self.synthesis_failures)))
        else:
            rows.append(MetricRow.ok("Synthesis Failures", "None"))
        rows.append(MetricRow.info("Timing Anomalies", str(len(self.anomalies))))
        for anomaly in list(self.anomalies)[-5:]:
            rows.append(MetricRow.warning(f"  {anomaly.origin.value}", anomaly.description))
        return rows
