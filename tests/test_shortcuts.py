# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
import pytest
import trio

from keyprobe.analyzers.shortcuts import ShortcutAnalyzer
from keyprobe.events import Severity
from keyprobe.keycodes import KeyCode, Modifier
from keyprobe.shortcuts import (
    DEFAULT_CONFLICTS,
    ConflictEntry,
    ConflictTable,
    canonical_combo,
    combo_for_key,
    enumerate_gsettings_conflicts,
    parse_gsettings_line,
    parse_gsettings_output,
)

MS = 1_000


@pytest.mark.parametrize(
    "text,expected",
    (
        ("ctrl+w", "Ctrl+W"),
        ("alt+ctrl+delete", "Ctrl+Alt+Del"),
        ("Shift+Ctrl+Escape", "Ctrl+Shift+Esc"),
        ("super+l", "Meta+L"),
        ("meta+shift+alt+ctrl+tab", "Ctrl+Alt+Shift+Meta+Tab"),
        ("Print", "PrtSc"),
        ("alt+f4", "Alt+F4"),
        ("Ctrl+XF86Foo", "Ctrl+XF86Foo"),
    ),
)
def test_canonical_combo(text: str, expected: str):
    assert canonical_combo(text) == expected


def test_canonical_combo_needs_a_key():
    with pytest.raises(ValueError):
        canonical_combo("ctrl+alt")


def test_combo_for_key():
    assert combo_for_key(Modifier.SHIFT | Modifier.CTRL, KeyCode.KEY_ESC) == "Ctrl+Shift+Esc"
    assert combo_for_key(Modifier.NONE, KeyCode.KEY_SYSRQ) == "PrtSc"


def test_default_table_is_canonical():
    assert DEFAULT_CONFLICTS.lookup("Ctrl+Alt+Del") == ConflictEntry("Desktop", "System menu")
    assert "Alt+Tab" in DEFAULT_CONFLICTS
    assert DEFAULT_CONFLICTS.lookup("Ctrl+Shift+Q") is None


def test_merged_table():
    table = DEFAULT_CONFLICTS.merged({"ctrl+s": ConflictEntry("Editor", "Save all")})
    assert table.lookup("Ctrl+S") == ConflictEntry("Editor", "Save all")
    assert len(table) == len(DEFAULT_CONFLICTS)
    # the original is untouched
    assert DEFAULT_CONFLICTS.lookup("Ctrl+S").application == "Common"


@pytest.mark.parametrize(
    "line,expected",
    (
        ("org.gnome.desktop.wm.keybindings close ['<Alt>F4']", ("Alt+F4", ConflictEntry("Window Manager", "close"))),
        ("org.gnome.desktop.wm.keybindings switch-windows ['<Super>Tab', '<Alt>Tab']", ("Meta+Tab", ConflictEntry("Window Manager", "switch windows"))),
        ("org.gnome.desktop.wm.keybindings minimize @as []", None),
        ("org.gnome.desktop.wm.keybindings maximize ['']", None),
        ("org.gnome.desktop.wm.keybindings lower ['disabled']", None),
        ("garbage", None),
    ),
)
def test_parse_gsettings_line(line: str, expected):
    assert parse_gsettings_line(line, "Window Manager") == expected


def test_parse_gsettings_output_keeps_first_binding():
    output = "\n".join(
        [
            "org.gnome.settings-daemon.plugins.media-keys screensaver ['<Super>l']",
            "org.gnome.settings-daemon.plugins.media-keys logout ['<Control><Alt>Delete']",
            "org.gnome.settings-daemon.plugins.media-keys lock ['<Super>L']",
        ]
    )
    found = parse_gsettings_output(output, "Media Keys")
    assert found == {
        "Meta+L": ConflictEntry("Media Keys", "screensaver"),
        "Ctrl+Alt+Del": ConflictEntry("Media Keys", "logout"),
    }


async def test_enumerate_gsettings_without_gsettings(monkeypatch):
    async def no_gsettings(*args, **kwargs):
        raise FileNotFoundError("gsettings")

    monkeypatch.setattr(trio, "run_process", no_gsettings)
    table = await enumerate_gsettings_conflicts()
    assert len(table) == 0


def press_combo(typist, modifiers: list[int], key: int, at: int):
    events = [typist.press(m, at + i) for i, m in enumerate(modifiers)]
    events += typist.tap(key, at + 100, hold=100)
    events += [typist.release(m, at + 300 + i) for i, m in enumerate(modifiers)]
    return events


def test_conflict_detected(typist, drive):
    analyzer = ShortcutAnalyzer()
    drive(analyzer, press_combo(typist, [KeyCode.KEY_LEFTALT], KeyCode.KEY_TAB, 0))
    activation = analyzer.last_activation
    assert activation.combo == "Alt+Tab"
    assert activation.match == ConflictEntry("Window Manager", "Switch window")
    assert analyzer.conflict_count == 1
    assert analyzer.modifiers == Modifier.NONE
    result = analyzer.results()
    assert result.row("Conflicts").severity is Severity.WARNING
    assert result.row("  Alt+Tab").value == "Window Manager: Switch window"


def test_unbound_combo_recorded_without_conflict(typist, drive):
    analyzer = ShortcutAnalyzer()
    drive(analyzer, press_combo(typist, [KeyCode.KEY_RIGHTCTRL, KeyCode.KEY_LEFTSHIFT], KeyCode.KEY_K, 0))
    assert analyzer.last_activation.combo == "Ctrl+Shift+K"
    assert not analyzer.last_activation.is_conflict
    assert analyzer.total_shortcuts == 1
    assert analyzer.conflict_count == 0


def test_plain_typing_is_not_a_shortcut(typist, drive):
    analyzer = ShortcutAnalyzer()
    drive(analyzer, typist.taps([KeyCode.KEY_H, KeyCode.KEY_I], 0, 50 * MS))
    assert analyzer.total_shortcuts == 0
    assert analyzer.results().row("Conflicts").value == "None"


def test_print_screen_needs_no_modifier(typist, drive):
    analyzer = ShortcutAnalyzer()
    drive(analyzer, typist.tap(KeyCode.KEY_SYSRQ, 0))
    assert analyzer.last_activation.combo == "PrtSc"
    assert analyzer.conflict_count == 1


def test_one_of_two_shifts_released(typist, drive):
    analyzer = ShortcutAnalyzer()
    drive(
        analyzer,
        [
            typist.press(KeyCode.KEY_LEFTSHIFT, 0),
            typist.press(KeyCode.KEY_RIGHTSHIFT, 10),
            typist.release(KeyCode.KEY_LEFTSHIFT, 20),
        ],
    )
    assert analyzer.modifiers == Modifier.SHIFT


def test_history_is_bounded(typist, drive):
    analyzer = ShortcutAnalyzer(history_length=20)
    events = []
    for i in range(30):
        events += press_combo(typist, [KeyCode.KEY_LEFTCTRL], KeyCode.KEY_Z, i * MS)
    drive(analyzer, events)
    assert analyzer.total_shortcuts == 30
    assert len(analyzer.history) == 20


def test_swapped_conflict_table(typist, drive):
    analyzer = ShortcutAnalyzer()
    analyzer.set_conflict_table(ConflictTable({"Ctrl+K": ConflictEntry("Editor", "Kill line")}))
    drive(analyzer, press_combo(typist, [KeyCode.KEY_LEFTCTRL], KeyCode.KEY_K, 0) + press_combo(typist, [KeyCode.KEY_LEFTCTRL], KeyCode.KEY_W, MS))
    assert analyzer.conflict_count == 1
    assert analyzer.last_activation.combo == "Ctrl+W"
    assert analyzer.last_activation.match is None
