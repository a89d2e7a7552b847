# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import collections
import enum
import logging
import typing

import msgspec

from ..durations import format_micros
from ..events import Edge, KeyTransition, MetricRow
from ..keycodes import KeyIdentifier, key_name
from ..util import MICROS_PER_MS
from .base import Analyzer

if typing.TYPE_CHECKING:
    from ..settings import Settings
    from ..state import KeyboardState

logger = logging.getLogger(__name__)


class StuckCause(enum.Enum):
    LONG_HOLD = "release arrived late"
    STILL_HELD = "release overdue"
    PRESSED_AGAIN = "pressed again while release overdue"


class StuckIncident(msgspec.Struct, frozen=True, kw_only=True):
    key: KeyIdentifier
    pressed_at: int
    detected_at: int
    held_us: int
    cause: StuckCause


class StickinessAnalyzer(Analyzer):
    name = "Stickiness"

    def __init__(self, *, threshold_us: int, history_length: int = 20):
        self.threshold_us = threshold_us
        self.history_length = history_length
        self.reset()

    @classmethod
    def from_settings(cls, settings: Settings):
        return cls(threshold_us=settings.stuck_threshold_ms * MICROS_PER_MS, history_length=settings.history_length)

    def reset(self):
        # key -> press timestamp of the current hold
        self.held: dict[KeyIdentifier, int] = {}
        # keys whose current hold has already produced an incident
        self.flagged_holds: set[KeyIdentifier] = set()
        self.incident_counts: collections.Counter[KeyIdentifier] = collections.Counter()
        self.incidents: collections.deque[StuckIncident] = collections.deque(maxlen=self.history_length)
        self.keys_tested = 0
        self.latest_time: typing.Optional[int] = None

    def _flag(self, key: KeyIdentifier, pressed_at: int, now: int, cause: StuckCause):
        if key in self.flagged_holds:
            return
        self.flagged_holds.add(key)
        self.incident_counts[key] += 1
        incident = StuckIncident(key=key, pressed_at=pressed_at, detected_at=now, held_us=now - pressed_at, cause=cause)
        self.incidents.append(incident)
        logger.debug("Stuck key %s: %s after %s", key_name(key), cause.value, format_micros(incident.held_us))

    def ingest(self, event: KeyTransition, state: KeyboardState):
        if self.latest_time is None or event.timestamp > self.latest_time:
            self.latest_time = event.timestamp
        pressed_at = self.held.get(event.key)
        match event.edge:
            case Edge.PRESS:
                if pressed_at is None:
                    self.held[event.key] = event.timestamp
                    self.keys_tested += 1
                elif event.timestamp - pressed_at > self.threshold_us:
                    self._flag(event.key, pressed_at, event.timestamp, StuckCause.PRESSED_AGAIN)
            case Edge.RELEASE:
                if pressed_at is None:
                    return
                if event.timestamp - pressed_at > self.threshold_us:
                    self._flag(event.key, pressed_at, event.timestamp, StuckCause.LONG_HOLD)
                del self.held[event.key]
                self.flagged_holds.discard(event.key)

    def tick(self, now: int):
        if self.latest_time is None or now > self.latest_time:
            self.latest_time = now
        for key, pressed_at in sorted(self.held.items()):
            if now - pressed_at > self.threshold_us:
                self._flag(key, pressed_at, now, StuckCause.STILL_HELD)

    def stuck_keys(self) -> list[KeyIdentifier]:
        return sorted(self.incident_counts)

    def classification(self, key: KeyIdentifier) -> typing.Optional[str]:
        count = self.incident_counts[key]
        if count == 0:
            return None
        return "intermittent" if count >= 2 else "stuck"

    def intermittent_keys(self) -> list[KeyIdentifier]:
        return sorted(key for key, count in self.incident_counts.items() if count >= 2)

    def overdue_keys(self, now: typing.Optional[int] = None) -> list[tuple[KeyIdentifier, int]]:
        if now is None:
            now = self.latest_time
        if now is None:
            return []
        return sorted((key, now - pressed_at) for key, pressed_at in self.held.items() if now - pressed_at > self.threshold_us)

    def rows(self):
        rows = [
            MetricRow.info("Keys Tested", str(self.keys_tested)),
            MetricRow.info("Currently Held", str(len(self.held))),
            MetricRow.info("Threshold", format_micros(self.threshold_us)),
        ]
        if not self.incident_counts:
            rows.append(MetricRow.ok("Sticky Keys", "None detected"))
        else:
            rows.append(MetricRow.warning("Sticky Keys Found", str(len(self.incident_counts))))
            for key in self.stuck_keys():
                count = self.incident_counts[key]
                rows.append(MetricRow.error(f"  {key_name(key)}", f"{self.classification(key)} ({count} incident{'s' if count != 1 else ''})"))
        for key, held_us in self.overdue_keys():
            rows.append(MetricRow.warning(f"  {key_name(key)} held", format_micros(held_us)))
        return rows
