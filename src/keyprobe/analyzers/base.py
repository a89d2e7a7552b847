# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import abc
import typing

from ..events import AnalyzerResult, InsufficientData, KeyTransition, MetricRow, Origin

if typing.TYPE_CHECKING:
    from ..settings import Settings
    from ..state import KeyboardState

PHYSICAL_ONLY = frozenset({Origin.PHYSICAL})
ALL_ORIGINS = frozenset(Origin)


class Analyzer(abc.ABC):
    """One stateful diagnostic, fed every event in arrival order.

    Subclasses set ``name`` (also the lookup tag) and may widen ``origins`` to see
    virtual events. ``ingest`` must be total: malformed input is recorded, never raised.
    """

    name: typing.ClassVar[str]
    origins: typing.ClassVar[frozenset[Origin]] = PHYSICAL_ONLY

    @classmethod
    @abc.abstractmethod
    def from_settings(cls, settings: Settings) -> Analyzer: ...

    @abc.abstractmethod
    def ingest(self, event: KeyTransition, state: KeyboardState) -> None: ...

    def tick(self, now: int) -> None:
        pass

    @abc.abstractmethod
    def rows(self) -> list[MetricRow]: ...

    def results(self) -> AnalyzerResult:
        return AnalyzerResult(analyzer_name=self.name, rows=tuple(self.rows()))

    @abc.abstractmethod
    def reset(self) -> None: ...

    def complete(self) -> bool:
        return False


def metric_row(label: str, value, formatter, severity_for=None) -> MetricRow:
    "Build a row from an accessor result, rendering InsufficientData explicitly."
    if isinstance(value, InsufficientData):
        return value.as_row(label)
    if severity_for is None:
        return MetricRow.info(label, formatter(value))
    return MetricRow(label, formatter(value), severity_for(value))
