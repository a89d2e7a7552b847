# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import typing

import msgspec

from .analyzers import PollingRateAnalyzer, RolloverAnalyzer
from .analyzers.rollover import rollover_class
from .events import AnalyzerResult, InsufficientData, Severity
from .state import GlobalSnapshot, KeySnapshot

if typing.TYPE_CHECKING:
    from .engine import Engine


class ReportSummary(msgspec.Struct, frozen=True, kw_only=True):
    total_events: int
    max_rollover: int
    rollover_class: str
    average_polling_hz: typing.Optional[float]
    issue_count: int
    anomaly_count: int


class SessionSnapshot(msgspec.Struct, frozen=True, kw_only=True):
    state: str
    global_state: GlobalSnapshot
    keys: tuple[KeySnapshot, ...]
    results: tuple[AnalyzerResult, ...]
    summary: ReportSummary

    def result(self, analyzer_name: str) -> AnalyzerResult:
        for result in self.results:
            if result.analyzer_name == analyzer_name:
                return result
        raise KeyError(analyzer_name)

    def issues(self) -> list[tuple[str, str, str, Severity]]:
        "Every warning or error row, as (analyzer, label, value, severity)."
        return [
            (result.analyzer_name, row.label, row.value, row.severity)
            for result in self.results
            for row in result.rows
            if row.severity >= Severity.WARNING
        ]


class ReportAggregator:
    @staticmethod
    def summarize(engine: Engine, global_state: GlobalSnapshot, results: typing.Sequence[AnalyzerResult]) -> ReportSummary:
        max_rollover = engine.analyzer(RolloverAnalyzer).max_simultaneous
        hz = engine.analyzer(PollingRateAnalyzer).average_hz()
        return ReportSummary(
            total_events=global_state.total_events,
            max_rollover=max_rollover,
            rollover_class=rollover_class(max_rollover),
            average_polling_hz=None if isinstance(hz, InsufficientData) else hz,
            issue_count=sum(result.issues() for result in results),
            anomaly_count=engine.state.anomaly_count(),
        )

    @classmethod
    def capture(cls, engine: Engine, state_name: str) -> SessionSnapshot:
        global_state, keys = engine.state.snapshot()
        results = tuple(engine.results())
        return SessionSnapshot(
            state=state_name,
            global_state=global_state,
            keys=keys,
            results=results,
            summary=cls.summarize(engine, global_state, results),
        )
