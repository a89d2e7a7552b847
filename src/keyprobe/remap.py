# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
"""FN/OEM remap modes.

Every mode is a pure function from a raw scancode plus modifier state to the logical key
it would produce. Nothing here touches the live input stream; the OEM analyzer uses the
answers to say what a remapper would do.
"""
from __future__ import annotations

import typing

import msgspec

from .keycodes import KeyCode, KeyIdentifier, Modifier

FN_FKEY_COMBOS: dict[KeyIdentifier, KeyIdentifier] = {
    KeyCode.KEY_1: KeyCode.KEY_F1,
    KeyCode.KEY_2: KeyCode.KEY_F2,
    KeyCode.KEY_3: KeyCode.KEY_F3,
    KeyCode.KEY_4: KeyCode.KEY_F4,
    KeyCode.KEY_5: KeyCode.KEY_F5,
    KeyCode.KEY_6: KeyCode.KEY_F6,
    KeyCode.KEY_7: KeyCode.KEY_F7,
    KeyCode.KEY_8: KeyCode.KEY_F8,
    KeyCode.KEY_9: KeyCode.KEY_F9,
    KeyCode.KEY_0: KeyCode.KEY_F10,
    KeyCode.KEY_MINUS: KeyCode.KEY_F11,
    KeyCode.KEY_EQUAL: KeyCode.KEY_F12,
    KeyCode.KEY_BACKSPACE: KeyCode.KEY_DELETE,
    KeyCode.KEY_ESC: KeyCode.KEY_SLEEP,
}

FN_MEDIA_COMBOS: dict[KeyIdentifier, KeyIdentifier] = {
    KeyCode.KEY_LEFT: KeyCode.KEY_PREVIOUSSONG,
    KeyCode.KEY_RIGHT: KeyCode.KEY_NEXTSONG,
    KeyCode.KEY_UP: KeyCode.KEY_VOLUMEUP,
    KeyCode.KEY_DOWN: KeyCode.KEY_VOLUMEDOWN,
    KeyCode.KEY_SPACE: KeyCode.KEY_PLAYPAUSE,
    KeyCode.KEY_F1: KeyCode.KEY_MUTE,
    KeyCode.KEY_F2: KeyCode.KEY_VOLUMEDOWN,
    KeyCode.KEY_F3: KeyCode.KEY_VOLUMEUP,
}

FN_COMBOS = FN_FKEY_COMBOS | FN_MEDIA_COMBOS


class ModifierState(msgspec.Struct, frozen=True):
    modifiers: Modifier = Modifier.NONE
    fn_held: bool = False


class Passthrough(msgspec.Struct, frozen=True, tag="passthrough"):
    @property
    def label(self):
        return "Passthrough"

    def apply(self, raw_scancode: KeyIdentifier, state: ModifierState) -> KeyIdentifier:
        return raw_scancode


class MapToFKeys(msgspec.Struct, frozen=True, tag="map_to_fkeys"):
    @property
    def label(self):
        return "Map to F-Keys"

    def apply(self, raw_scancode: KeyIdentifier, state: ModifierState) -> KeyIdentifier:
        if state.fn_held:
            return FN_FKEY_COMBOS.get(raw_scancode, raw_scancode)
        return raw_scancode


class MapToMedia(msgspec.Struct, frozen=True, tag="map_to_media"):
    @property
    def label(self):
        return "Map to Media"

    def apply(self, raw_scancode: KeyIdentifier, state: ModifierState) -> KeyIdentifier:
        if state.fn_held:
            return FN_MEDIA_COMBOS.get(raw_scancode, raw_scancode)
        return raw_scancode


class RestoreWithModifier(msgspec.Struct, frozen=True, tag="restore_with_modifier"):
    "FN behaves as a full modifier layer: every known FN combo applies."

    @property
    def label(self):
        return "Restore as Modifier"

    def apply(self, raw_scancode: KeyIdentifier, state: ModifierState) -> KeyIdentifier:
        if state.fn_held:
            return FN_COMBOS.get(raw_scancode, raw_scancode)
        return raw_scancode


class Custom(msgspec.Struct, frozen=True, tag="custom"):
    "User tables: ``fn_mapping`` while FN is held, ``mapping`` for everything else."

    mapping: dict[int, int] = {}
    fn_mapping: dict[int, int] = {}

    @property
    def label(self):
        return "Custom"

    def apply(self, raw_scancode: KeyIdentifier, state: ModifierState) -> KeyIdentifier:
        if state.fn_held and raw_scancode in self.fn_mapping:
            return self.fn_mapping[raw_scancode]
        return self.mapping.get(raw_scancode, raw_scancode)


FnKeyMode = Passthrough | MapToFKeys | MapToMedia | RestoreWithModifier | Custom


def fn_key_mode_name(mode: FnKeyMode) -> str:
    return type(mode).__struct_config__.tag


def parse_fn_key_mode(value: str | dict[str, typing.Any]) -> FnKeyMode:
    """Build a mode from its name ("map_to_fkeys") or a tagged dict.

    Custom modes need their tables, so they come as ``{"type": "custom", "mapping": ...}``.
    """
    if isinstance(value, str):
        value = {"type": value}
    return msgspec.convert(value, FnKeyMode, strict=False)


def unparse_fn_key_mode(mode: FnKeyMode) -> str | dict[str, typing.Any]:
    if isinstance(mode, Custom):
        return msgspec.to_builtins(mode)
    return fn_key_mode_name(mode)
