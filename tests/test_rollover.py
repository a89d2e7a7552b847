# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
import pytest

from keyprobe.analyzers.rollover import RolloverAnalyzer, compare_combo, rollover_class
from keyprobe.events import Severity
from keyprobe.keycodes import KeyCode

W, A, S, D, Q = KeyCode.KEY_W, KeyCode.KEY_A, KeyCode.KEY_S, KeyCode.KEY_D, KeyCode.KEY_Q
WASD = frozenset({W, A, S, D})


@pytest.mark.parametrize(
    "pressed,phantom,dropped",
    (
        ({W, A, S, D, Q}, {Q}, set()),
        ({W, A, D}, set(), {S}),
        ({W, A, S, D}, set(), set()),
    ),
)
def test_compare_combo(pressed, phantom, dropped):
    report = compare_combo(WASD, pressed)
    assert report.phantom == phantom
    assert report.dropped == dropped
    assert report.clean is (not phantom and not dropped)


@pytest.mark.parametrize(
    "count,expected",
    ((0, "Not tested"), (1, "2KRO"), (2, "2KRO"), (3, "6KRO"), (6, "6KRO"), (7, "NKRO"), (20, "NKRO")),
)
def test_rollover_class(count: int, expected: str):
    assert rollover_class(count) == expected


def test_peak_rollover(typist, drive):
    analyzer = RolloverAnalyzer()
    keys = [KeyCode.KEY_A, KeyCode.KEY_S, KeyCode.KEY_D, KeyCode.KEY_F, KeyCode.KEY_J, KeyCode.KEY_K, KeyCode.KEY_L]
    events = [typist.press(key, i * 1000) for i, key in enumerate(keys)]
    events += [typist.release(key, 10_000 + i * 1000) for i, key in enumerate(keys)]
    drive(analyzer, events)
    assert analyzer.max_simultaneous == 7
    assert analyzer.current == 0
    assert analyzer.rollover_class() == "NKRO"
    result = analyzer.results()
    assert result.row("Max Rollover").value == "NKRO"
    assert result.row("Max Rollover").severity is Severity.OK


def test_ghost_key_during_combo(typist, drive):
    analyzer = RolloverAnalyzer()
    analyzer.set_expected_keys(WASD)
    events = [typist.press(key, i * 1000) for i, key in enumerate([W, A, S, D])]
    events.append(typist.press(Q, 5000))
    drive(analyzer, events)
    report = analyzer.ghosting()
    assert report.phantom == {Q}
    assert report.dropped == set()
    assert analyzer.ghost_count == 1
    assert analyzer.ghost_events[0].ghost_key == Q
    assert analyzer.results().row("Ghost Events").severity is Severity.ERROR


def test_dropped_key_in_combo(typist, drive):
    analyzer = RolloverAnalyzer()
    analyzer.set_expected_keys(WASD)
    drive(analyzer, [typist.press(key, i * 1000) for i, key in enumerate([W, A, D])])
    report = analyzer.ghosting()
    assert report.phantom == set()
    assert report.dropped == {S}
    assert analyzer.results().row("Dropped Keys").value == "S"


def test_configured_combo_survives_reset():
    analyzer = RolloverAnalyzer(expected_keys=WASD)
    analyzer.set_expected_keys({Q})
    analyzer.reset()
    assert analyzer.expected_keys == WASD
    assert RolloverAnalyzer().results().row("Max Rollover").value == "Not tested"
