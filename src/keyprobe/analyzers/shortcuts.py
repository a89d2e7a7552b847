# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import collections
import logging
import typing

import msgspec

from ..events import Edge, KeyTransition, MetricRow
from ..keycodes import MODIFIER_KEYS, KeyIdentifier, Modifier, is_fn
from ..shortcuts import DEFAULT_CONFLICTS, ConflictEntry, ConflictTable, combo_for_key
from .base import Analyzer

if typing.TYPE_CHECKING:
    from ..settings import Settings
    from ..state import KeyboardState

logger = logging.getLogger(__name__)


class ShortcutActivation(msgspec.Struct, frozen=True, kw_only=True):
    combo: str
    timestamp: int
    match: typing.Optional[ConflictEntry] = None

    @property
    def is_conflict(self):
        return self.match is not None


class ShortcutAnalyzer(Analyzer):
    """Watches modifier combos and reports the ones a known application would intercept."""

    name = "Shortcuts"

    def __init__(self, *, conflict_table: ConflictTable = DEFAULT_CONFLICTS, history_length: int = 20):
        self.default_conflict_table = conflict_table
        self.history_length = history_length
        self.reset()

    @classmethod
    def from_settings(cls, settings: Settings):
        return cls(history_length=settings.history_length)

    def reset(self):
        # a table swapped in at runtime lasts until the next reset
        self.conflict_table = self.default_conflict_table
        # each modifier key tracked separately, so releasing one of two held Shifts keeps SHIFT set
        self.held_modifiers: dict[KeyIdentifier, Modifier] = {}
        self.history: collections.deque[ShortcutActivation] = collections.deque(maxlen=self.history_length)
        self.total_shortcuts = 0
        self.conflict_count = 0

    def set_conflict_table(self, table: ConflictTable):
        self.conflict_table = table
        logger.debug("Conflict table replaced (%d entries)", len(table))

    @property
    def modifiers(self) -> Modifier:
        mask = Modifier.NONE
        for modifier in self.held_modifiers.values():
            mask |= modifier
        return mask

    def ingest(self, event: KeyTransition, state: KeyboardState):
        modifier = MODIFIER_KEYS.get(event.key)
        if modifier is not None:
            if event.edge is Edge.PRESS:
                self.held_modifiers[event.key] = modifier
            else:
                self.held_modifiers.pop(event.key, None)
            return
        if event.edge is not Edge.PRESS or is_fn(event.key):
            return
        modifiers = self.modifiers
        combo = combo_for_key(modifiers, event.key)
        match = self.conflict_table.lookup(combo)
        if not modifiers and match is None:
            # a plain keystroke, not a shortcut
            return
        activation = ShortcutActivation(combo=combo, timestamp=event.timestamp, match=match)
        self.history.append(activation)
        self.total_shortcuts += 1
        if match is not None:
            self.conflict_count += 1
            logger.debug("%s is bound by %s (%s)", combo, match.application, match.action)

    @property
    def last_activation(self) -> typing.Optional[ShortcutActivation]:
        return self.history[-1] if self.history else None

    def rows(self):
        rows = [
            MetricRow.info("Shortcuts Pressed", str(self.total_shortcuts)),
            MetricRow.info("Known Bindings", str(len(self.conflict_table))),
        ]
        if self.conflict_count == 0:
            rows.append(MetricRow.ok("Conflicts", "None"))
        else:
            rows.append(MetricRow.warning("Conflicts", str(self.conflict_count)))
        for activation in reversed(self.history):
            if activation.match is None:
                rows.append(MetricRow.info(f"  {activation.combo}", "no known binding"))
            else:
                rows.append(MetricRow.warning(f"  {activation.combo}", f"{activation.match.application}: {activation.match.action}"))
        return rows
