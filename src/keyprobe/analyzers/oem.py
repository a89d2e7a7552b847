# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import collections
import enum
import logging
import typing

import msgspec

from ..events import Edge, KeyTransition, MetricRow, Severity
from ..keycodes import FN_SCANCODES, MODIFIER_KEYS, KeyIdentifier, Modifier, is_oem, is_unmapped, key_name
from ..remap import FnKeyMode, ModifierState, Passthrough
from .base import Analyzer

if typing.TYPE_CHECKING:
    from ..settings import Settings
    from ..state import KeyboardState

logger = logging.getLogger(__name__)


class OemKind(enum.Enum):
    FN = "fn"
    OEM = "oem"
    UNKNOWN = "unknown"
    REMAPPED = "remapped"


class OemKeyEvent(msgspec.Struct, frozen=True, kw_only=True):
    key: KeyIdentifier
    edge: Edge
    timestamp: int
    kind: OemKind
    # what the configured mode would turn this key into, when that differs
    remapped_to: typing.Optional[KeyIdentifier] = None

    @property
    def severity(self) -> Severity:
        match self.kind:
            case OemKind.OEM | OemKind.FN:
                return Severity.OK
            case OemKind.REMAPPED:
                return Severity.WARNING
            case _:
                return Severity.INFO

    def describe(self) -> str:
        desc = f"{key_name(self.key)} ({'pressed' if self.edge is Edge.PRESS else 'released'})"
        if self.remapped_to is not None:
            desc = f"{desc} -> {key_name(self.remapped_to)}"
        return desc


class OemKeyAnalyzer(Analyzer):
    """Classifies vendor keys and reports what the configured FN mode would do.

    Classification only: suggested remaps are recorded, never applied.
    """

    name = "OEM Keys"

    def __init__(self, *, mode: FnKeyMode = Passthrough(), fn_scancodes: typing.Iterable[KeyIdentifier] = FN_SCANCODES, history_length: int = 100):
        self.default_mode = mode
        self.fn_scancodes = frozenset(fn_scancodes)
        self.history_length = history_length
        self.reset()

    @classmethod
    def from_settings(cls, settings: Settings):
        return cls(mode=settings.fn_key_mode, fn_scancodes=settings.fn_scancodes, history_length=settings.oem_history_length)

    def reset(self):
        # a mode set at runtime lasts until the next reset
        self.mode = self.default_mode
        self.fn_held = False
        self.held_modifiers: dict[KeyIdentifier, Modifier] = {}
        self.fn_press_count = 0
        self.fn_combo_count = 0
        self.remapped_count = 0
        self.last_fn_combo: typing.Optional[tuple[KeyIdentifier, KeyIdentifier]] = None
        self.detected_oem: collections.Counter[KeyIdentifier] = collections.Counter()
        self.detected_unknown: collections.Counter[KeyIdentifier] = collections.Counter()
        self.events: collections.deque[OemKeyEvent] = collections.deque(maxlen=self.history_length)
        self.last_event: typing.Optional[OemKeyEvent] = None

    def set_mode(self, mode: FnKeyMode):
        self.mode = mode
        logger.debug("FN mode is now %s", mode.label)

    @property
    def modifier_state(self) -> ModifierState:
        mask = Modifier.NONE
        for modifier in self.held_modifiers.values():
            mask |= modifier
        return ModifierState(modifiers=mask, fn_held=self.fn_held)

    def _record(self, event: KeyTransition, kind: OemKind, remapped_to: typing.Optional[KeyIdentifier] = None):
        record = OemKeyEvent(key=event.key, edge=event.edge, timestamp=event.timestamp, kind=kind, remapped_to=remapped_to)
        self.events.append(record)
        if event.edge is Edge.PRESS:
            self.last_event = record

    def ingest(self, event: KeyTransition, state: KeyboardState):
        pressed = event.edge is Edge.PRESS
        if event.key in self.fn_scancodes:
            self.fn_held = pressed
            if pressed:
                self.fn_press_count += 1
            self._record(event, OemKind.FN)
            return

        modifier = MODIFIER_KEYS.get(event.key)
        if modifier is not None:
            if pressed:
                self.held_modifiers[event.key] = modifier
            else:
                self.held_modifiers.pop(event.key, None)

        modifier_state = self.modifier_state
        logical = self.mode.apply(event.key, modifier_state)
        if logical != event.key:
            if pressed:
                if modifier_state.fn_held:
                    self.fn_combo_count += 1
                    self.last_fn_combo = (event.key, logical)
                else:
                    self.remapped_count += 1
            self._record(event, OemKind.REMAPPED, logical)
            return

        if is_oem(event.key):
            if pressed:
                self.detected_oem[event.key] += 1
            self._record(event, OemKind.OEM)
        elif is_unmapped(event.key):
            if pressed:
                self.detected_unknown[event.key] += 1
                logger.debug("Unmapped scancode 0x%03X", event.key)
            self._record(event, OemKind.UNKNOWN)

    def rows(self):
        rows = [
            MetricRow("FN Key Held", "Yes" if self.fn_held else "No", Severity.OK if self.fn_held else Severity.INFO),
            MetricRow.info("FN Mode", self.mode.label),
            MetricRow.info("FN Presses", str(self.fn_press_count)),
            MetricRow.info("FN Combos Triggered", str(self.fn_combo_count)),
        ]
        if self.last_fn_combo is not None:
            original, result = self.last_fn_combo
            rows.append(MetricRow.ok("Last FN Combo", f"FN+{key_name(original)} -> {key_name(result)}"))
        rows.append(MetricRow.info("OEM Keys Detected", str(len(self.detected_oem))))
        rows.append(MetricRow.info("Unknown Keys Found", str(len(self.detected_unknown))))
        rows.append(MetricRow.info("Keys Remapped", str(self.remapped_count)))
        if self.last_event is not None:
            rows.append(MetricRow("Last OEM Key", self.last_event.describe(), self.last_event.severity))
        for record in list(self.events)[-5:]:
            rows.append(MetricRow(f"  0x{record.key:03X}", record.describe(), record.severity))
        # most-pressed first, then by scancode
        for scancode, count in sorted(self.detected_unknown.items(), key=lambda item: (-item[1], item[0]))[:5]:
            rows.append(MetricRow.warning(f"  Scancode 0x{scancode:03X}", f"pressed {count} time(s)"))
        return rows
