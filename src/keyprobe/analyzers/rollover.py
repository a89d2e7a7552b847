# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import collections
import logging
import typing

import msgspec

from ..events import Edge, InsufficientData, KeyTransition, MetricRow, Severity
from ..keycodes import KeyIdentifier, key_name
from .base import Analyzer

if typing.TYPE_CHECKING:
    from ..settings import Settings
    from ..state import KeyboardState

logger = logging.getLogger(__name__)


def rollover_class(count: int) -> str:
    if count == 0:
        return "Not tested"
    if count <= 2:
        return "2KRO"
    if count <= 6:
        return "6KRO"
    return "NKRO"


def rollover_severity(count: int) -> Severity:
    if count == 0:
        return Severity.INFO
    if count <= 2:
        return Severity.ERROR
    if count < 6:
        return Severity.WARNING
    return Severity.OK


def describe_keys(keys: typing.Iterable[KeyIdentifier]) -> str:
    names = [key_name(k) for k in sorted(keys)]
    return ", ".join(names) if names else "none"


class GhostingReport(msgspec.Struct, frozen=True, kw_only=True):
    expected: frozenset[KeyIdentifier]
    registered: frozenset[KeyIdentifier]
    phantom: frozenset[KeyIdentifier]
    dropped: frozenset[KeyIdentifier]

    @property
    def clean(self):
        return not self.phantom and not self.dropped


def compare_combo(expected: typing.AbstractSet[KeyIdentifier], registered: typing.AbstractSet[KeyIdentifier]) -> GhostingReport:
    expected = frozenset(expected)
    registered = frozenset(registered)
    return GhostingReport(expected=expected, registered=registered, phantom=registered - expected, dropped=expected - registered)


class GhostEvent(msgspec.Struct, frozen=True, kw_only=True):
    ghost_key: KeyIdentifier
    pressed: tuple[KeyIdentifier, ...]
    timestamp: int


class RolloverAnalyzer(Analyzer):
    name = "Rollover"

    def __init__(self, *, expected_keys: typing.Iterable[KeyIdentifier] = (), history_length: int = 20):
        self.default_expected_keys = frozenset(expected_keys)
        self.history_length = history_length
        self.reset()

    @classmethod
    def from_settings(cls, settings: Settings):
        return cls(expected_keys=settings.combo_test_keys, history_length=settings.history_length)

    def reset(self):
        # keys set by SetExpectedKeys last until the next reset
        self.expected_keys: frozenset[KeyIdentifier] = self.default_expected_keys
        self.max_simultaneous = 0
        self.current = 0
        self._chord_samples = 0
        self._chord_total = 0
        self.ghost_events: collections.deque[GhostEvent] = collections.deque(maxlen=self.history_length)
        self.ghost_count = 0
        self.last_check: typing.Optional[GhostingReport] = None
        self.best_check: typing.Optional[GhostingReport] = None

    def set_expected_keys(self, keys: typing.Iterable[KeyIdentifier]):
        self.expected_keys = frozenset(keys)
        self.last_check = None
        self.best_check = None
        logger.debug("Expecting combo %s", describe_keys(self.expected_keys))

    def ingest(self, event: KeyTransition, state: KeyboardState):
        self.current = state.rollover
        if self.current > self.max_simultaneous:
            self.max_simultaneous = self.current
        if event.edge is Edge.PRESS and self.current >= 2:
            self._chord_samples += 1
            self._chord_total += self.current
        if self.expected_keys:
            self._check_combo(event, state.pressed_keys)

    def _check_combo(self, event: KeyTransition, pressed: frozenset[KeyIdentifier]):
        if not pressed & self.expected_keys:
            # combo not being held
            return
        report = compare_combo(self.expected_keys, pressed)
        self.last_check = report
        # releases only shrink the combo; on a tie the later press wins
        if event.edge is Edge.PRESS:
            overlap = len(report.registered & report.expected)
            if self.best_check is None or overlap >= len(self.best_check.registered & self.best_check.expected):
                self.best_check = report
        if event.edge is Edge.PRESS and event.key in report.phantom:
            self.ghost_count += 1
            self.ghost_events.append(GhostEvent(ghost_key=event.key, pressed=tuple(sorted(pressed)), timestamp=event.timestamp))
            logger.debug("Phantom key %s during combo %s", key_name(event.key), describe_keys(self.expected_keys))

    def rollover_class(self) -> str:
        return rollover_class(self.max_simultaneous)

    def average_chord(self) -> float | InsufficientData:
        if self._chord_samples == 0:
            return InsufficientData(needed=1, have=0)
        return self._chord_total / self._chord_samples

    def ghosting(self) -> typing.Optional[GhostingReport]:
        return self.best_check

    def rows(self):
        rows = [
            MetricRow.info("Currently Pressed", f"{self.current} keys"),
            MetricRow("Max Rollover", self.rollover_class(), rollover_severity(self.max_simultaneous)),
            MetricRow.info("Peak Keys", f"{self.max_simultaneous} simultaneous"),
        ]
        avg = self.average_chord()
        if isinstance(avg, InsufficientData):
            rows.append(avg.as_row("Avg Chord"))
        else:
            rows.append(MetricRow.info("Avg Chord", f"{avg:.1f} keys"))
        if self.expected_keys:
            rows.append(MetricRow.info("Expected Combo", describe_keys(self.expected_keys)))
            report = self.best_check
            if report is None:
                rows.append(MetricRow.info("Combo Check", "Waiting for combo"))
            else:
                rows.append(MetricRow.error("Phantom Keys", describe_keys(report.phantom)) if report.phantom else MetricRow.ok("Phantom Keys", "none"))
                rows.append(MetricRow.error("Dropped Keys", describe_keys(report.dropped)) if report.dropped else MetricRow.ok("Dropped Keys", "none"))
        if self.ghost_count == 0:
            rows.append(MetricRow.ok("Ghosting", "None detected"))
        else:
            rows.append(MetricRow.error("Ghost Events", f"{self.ghost_count} detected"))
        return rows
