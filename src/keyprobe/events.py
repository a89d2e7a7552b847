# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import enum
import typing

import msgspec

from .keycodes import KeyIdentifier

if typing.TYPE_CHECKING:
    from .remap import FnKeyMode
    from .report import SessionSnapshot
    from .shortcuts import ConflictTable
    from .util import Future


class Edge(enum.IntEnum):
    RELEASE = 0
    PRESS = 1


class Origin(enum.Enum):
    PHYSICAL = "physical"
    VIRTUAL = "virtual"


class KeyTransition(msgspec.Struct, frozen=True, kw_only=True):
    key: KeyIdentifier
    edge: Edge
    # monotonic, microseconds
    timestamp: int
    sequence_no: int
    origin: Origin = Origin.PHYSICAL

    @property
    def is_press(self):
        return self.edge is Edge.PRESS


class Severity(enum.IntEnum):
    OK = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


class MetricRow(msgspec.Struct, frozen=True):
    label: str
    value: str
    severity: Severity = Severity.INFO

    @classmethod
    def ok(cls, label: str, value: str):
        return cls(label, value, Severity.OK)

    @classmethod
    def info(cls, label: str, value: str):
        return cls(label, value, Severity.INFO)

    @classmethod
    def warning(cls, label: str, value: str):
        return cls(label, value, Severity.WARNING)

    @classmethod
    def error(cls, label: str, value: str):
        return cls(label, value, Severity.ERROR)


class AnalyzerResult(msgspec.Struct, frozen=True):
    analyzer_name: str
    rows: tuple[MetricRow, ...]

    def row(self, label: str) -> MetricRow:
        for row in self.rows:
            if row.label == label:
                return row
        raise KeyError(label)

    def issues(self) -> int:
        return sum(1 for row in self.rows if row.severity >= Severity.WARNING)


class InsufficientData(msgspec.Struct, frozen=True):
    needed: int
    have: int

    def describe(self):
        return f"Not enough samples (have {self.have} of {self.needed})"

    def as_row(self, label: str) -> MetricRow:
        return MetricRow.info(label, self.describe())


class AnomalyKind(enum.Enum):
    UNMATCHED_RELEASE = "unmatched release"
    OUT_OF_ORDER = "out-of-order sequence number"
    CLOCK_REGRESSION = "timestamp went backwards"


class Anomaly(msgspec.Struct, frozen=True):
    kind: AnomalyKind
    key: KeyIdentifier
    sequence_no: int
    timestamp: int


# Control messages share the event channel with KeyTransitions, so the dispatcher sees
# them in exactly the order they were sent relative to data.


class Start(msgspec.Struct, frozen=True):
    pass


class Pause(msgspec.Struct, frozen=True):
    pass


class Resume(msgspec.Struct, frozen=True):
    pass


class Reset(msgspec.Struct, frozen=True):
    pass


class Stop(msgspec.Struct, frozen=True):
    pass


class SourceClosed(msgspec.Struct, frozen=True):
    pass


class Tick(msgspec.Struct, frozen=True):
    timestamp: int


class SnapshotRequest(msgspec.Struct, frozen=True):
    reply: Future[SessionSnapshot]


class SetExpectedKeys(msgspec.Struct, frozen=True):
    keys: frozenset[KeyIdentifier]


class SetConflictTable(msgspec.Struct, frozen=True):
    table: ConflictTable


class SetFnKeyMode(msgspec.Struct, frozen=True):
    mode: FnKeyMode


class StartVirtualProbe(msgspec.Struct, frozen=True):
    keys: frozenset[KeyIdentifier]
    timestamp: int


ControlMessage = (
    Start | Pause | Resume | Reset | Stop | SourceClosed | Tick | SnapshotRequest | SetExpectedKeys | SetConflictTable | SetFnKeyMode | StartVirtualProbe
)
SessionMessage = KeyTransition | ControlMessage
