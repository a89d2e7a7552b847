# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
"""Shortcut combos and the conflict tables they are checked against."""
from __future__ import annotations

import collections.abc
import logging
import typing

import msgspec
import trio

from .keycodes import MODIFIER_NAMES, MODIFIER_ORDER, KeyIdentifier, Modifier, key_name, lookup_key_name

logger = logging.getLogger(__name__)

MODIFIER_ALIASES = {
    "ctrl": Modifier.CTRL,
    "control": Modifier.CTRL,
    "primary": Modifier.CTRL,
    "alt": Modifier.ALT,
    "shift": Modifier.SHIFT,
    "meta": Modifier.META,
    "super": Modifier.META,
    "win": Modifier.META,
}

GSETTINGS_SCHEMAS = {
    "org.gnome.desktop.wm.keybindings": "Window Manager",
    "org.gnome.settings-daemon.plugins.media-keys": "Media Keys",
    "org.gnome.shell.keybindings": "GNOME Shell",
}


class ConflictEntry(msgspec.Struct, frozen=True):
    application: str
    action: str


def format_combo(modifiers: Modifier, key_label: str) -> str:
    parts = [MODIFIER_NAMES[m] for m in MODIFIER_ORDER if m in modifiers]
    parts.append(key_label)
    return "+".join(parts)


def combo_for_key(modifiers: Modifier, key: KeyIdentifier) -> str:
    return format_combo(modifiers, key_name(key))


def canonical_combo(text: str) -> str:
    """Normalise a combo string such as "alt+ctrl+delete" to "Ctrl+Alt+Del".

    Modifiers are reordered into the fixed Ctrl, Alt, Shift, Meta order; the key part is
    resolved through the key table when it names a known key and kept verbatim otherwise.
    """
    modifiers = Modifier.NONE
    key_label = ""
    for part in text.split("+"):
        part = part.strip()
        if not part:
            continue
        alias = MODIFIER_ALIASES.get(part.lower())
        if alias is not None:
            modifiers |= alias
            continue
        key = lookup_key_name(part)
        key_label = key_name(key) if key is not None else (part.upper() if len(part) == 1 else part)
    if not key_label:
        raise ValueError(f"Combo {text!r} has no key")
    return format_combo(modifiers, key_label)


class ConflictTable(collections.abc.Mapping):
    """Read-only mapping of canonical combo string to ConflictEntry."""

    def __init__(self, entries: typing.Mapping[str, ConflictEntry] | None = None):
        self._entries: dict[str, ConflictEntry] = {}
        for combo, entry in (entries or {}).items():
            self._entries[canonical_combo(combo)] = entry

    def __getitem__(self, combo: str) -> ConflictEntry:
        return self._entries[combo]

    def __iter__(self):
        return iter(self._entries)

    def __len__(self):
        return len(self._entries)

    def lookup(self, combo: str) -> typing.Optional[ConflictEntry]:
        return self._entries.get(combo)

    def merged(self, other: typing.Mapping[str, ConflictEntry]) -> ConflictTable:
        "A new table with ``other``'s entries layered over this one's."
        combined = dict(self._entries)
        combined.update(other)
        return ConflictTable(combined)

    def __repr__(self):
        return f"ConflictTable({len(self)} entries)"


DEFAULT_CONFLICTS = ConflictTable(
    {
        "Ctrl+W": ConflictEntry("Common", "Close tab/window"),
        "Ctrl+Q": ConflictEntry("Common", "Quit application"),
        "Ctrl+S": ConflictEntry("Common", "Save"),
        "Ctrl+C": ConflictEntry("Common", "Copy / Interrupt"),
        "Ctrl+V": ConflictEntry("Common", "Paste"),
        "Ctrl+Z": ConflictEntry("Common", "Undo"),
        "Ctrl+Tab": ConflictEntry("Common", "Switch tab"),
        "Alt+Tab": ConflictEntry("Window Manager", "Switch window"),
        "Alt+F4": ConflictEntry("Window Manager", "Close window"),
        "Meta+L": ConflictEntry("Desktop", "Lock screen"),
        "Ctrl+Alt+Del": ConflictEntry("Desktop", "System menu"),
        "Ctrl+Shift+Esc": ConflictEntry("Desktop", "Task manager"),
        "PrtSc": ConflictEntry("Desktop", "Screenshot"),
    }
)


def parse_gsettings_line(line: str, application: str) -> typing.Optional[tuple[str, ConflictEntry]]:
    """Parse one line of ``gsettings list-recursively`` output.

    Lines look like ``org.gnome.desktop.wm.keybindings close ['<Alt>F4']``. Disabled or
    empty bindings give None; otherwise the first binding is returned as a canonical
    combo.
    """
    parts = line.split(" ", 2)
    if len(parts) < 3:
        return None
    _, action, value = parts
    value = value.strip()
    if value in ("@as []", "['']") or "disabled" in value:
        return None
    first = value.strip("[]").split(",")[0].strip().strip("'")
    if not first:
        return None
    combo = first
    for tag, prefix in (("<Super>", "Super+"), ("<Primary>", "Ctrl+"), ("<Control>", "Ctrl+"), ("<Alt>", "Alt+"), ("<Shift>", "Shift+"), ("<Meta>", "Meta+")):
        combo = combo.replace(tag, prefix)
    try:
        combo = canonical_combo(combo)
    except ValueError:
        return None
    return combo, ConflictEntry(application, action.replace("-", " ").replace("_", " "))


def parse_gsettings_output(output: str, application: str) -> dict[str, ConflictEntry]:
    found = {}
    for line in output.splitlines():
        parsed = parse_gsettings_line(line, application)
        if parsed is not None:
            combo, entry = parsed
            found.setdefault(combo, entry)
    return found


async def enumerate_gsettings_conflicts(schemas: typing.Mapping[str, str] = GSETTINGS_SCHEMAS) -> ConflictTable:
    """Build a conflict table from the GNOME keybinding schemas.

    Missing gsettings or unknown schemas are skipped; the result may be empty.
    """
    found: dict[str, ConflictEntry] = {}
    for schema, application in schemas.items():
        try:
            result = await trio.run_process(["gsettings", "list-recursively", schema], capture_stdout=True, capture_stderr=True, check=False)
        except OSError as exc:
            logger.debug("Could not run gsettings: %s", exc)
            break
        if result.returncode != 0:
            logger.debug("gsettings failed for %s: %s", schema, result.stderr.decode(errors="replace").strip())
            continue
        for combo, entry in parse_gsettings_output(result.stdout.decode(errors="replace"), application).items():
            found.setdefault(combo, entry)
    return ConflictTable(found)
