# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import logging
import typing

from .analyzers import Analyzer, OemKeyAnalyzer, RolloverAnalyzer, ShortcutAnalyzer, VirtualComparisonAnalyzer, build_analyzers
from .commontypes import UnknownAnalyzer
from .events import AnalyzerResult, KeyTransition
from .report import ReportAggregator, SessionSnapshot
from .state import KeyboardState

if typing.TYPE_CHECKING:
    from .remap import FnKeyMode
    from .settings import Settings
    from .shortcuts import ConflictTable

logger = logging.getLogger(__name__)

A = typing.TypeVar("A", bound=Analyzer)


class Engine:
    """KeyboardState plus the fixed battery of analyzers.

    The engine has no locking of its own; a session's dispatcher is the only caller.
    """

    def __init__(self, settings: Settings, conflict_table: typing.Optional[ConflictTable] = None):
        self.settings = settings
        self.state = KeyboardState(
            ring_buffer_capacity=settings.ring_buffer_capacity,
            global_ring_buffer_capacity=settings.global_ring_buffer_capacity,
            history_length=settings.history_length,
        )
        self.analyzers = build_analyzers(settings)
        if conflict_table is not None:
            shortcuts = self.analyzer(ShortcutAnalyzer)
            shortcuts.default_conflict_table = conflict_table
            shortcuts.set_conflict_table(conflict_table)

    def ingest(self, event: KeyTransition):
        # analyzers read the state as it stands after this event
        self.state.ingest(event)
        for analyzer in self.analyzers:
            if event.origin in analyzer.origins:
                analyzer.ingest(event, self.state)

    def tick(self, now: int):
        for analyzer in self.analyzers:
            analyzer.tick(now)

    def reset(self):
        logger.debug("Resetting engine")
        self.state.reset()
        for analyzer in self.analyzers:
            analyzer.reset()

    @typing.overload
    def analyzer(self, kind: type[A]) -> A: ...

    @typing.overload
    def analyzer(self, kind: str) -> Analyzer: ...

    def analyzer(self, kind):
        "Look up an analyzer by its class or by its display name."
        for analyzer in self.analyzers:
            if isinstance(kind, str):
                if analyzer.name == kind:
                    return analyzer
            elif isinstance(analyzer, kind):
                return analyzer
        raise UnknownAnalyzer(kind if isinstance(kind, str) else kind.__name__)

    def results(self) -> list[AnalyzerResult]:
        return [analyzer.results() for analyzer in self.analyzers]

    def complete(self) -> bool:
        "True once every analyzer that can finish has finished."
        return all(analyzer.complete() for analyzer in self.analyzers if type(analyzer).complete is not Analyzer.complete)

    def snapshot(self, state_name: str = "Idle") -> SessionSnapshot:
        return ReportAggregator.capture(self, state_name)

    def set_expected_keys(self, keys: typing.Iterable[int]):
        self.analyzer(RolloverAnalyzer).set_expected_keys(keys)

    def set_conflict_table(self, table: ConflictTable):
        self.analyzer(ShortcutAnalyzer).set_conflict_table(table)

    def set_fn_key_mode(self, mode: FnKeyMode):
        self.analyzer(OemKeyAnalyzer).set_mode(mode)

    def start_virtual_probe(self, keys: typing.Iterable[int], timestamp: int):
        self.analyzer(VirtualComparisonAnalyzer).start_probe(keys, timestamp)
