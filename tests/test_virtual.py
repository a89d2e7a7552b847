# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
import pytest

from keyprobe.analyzers.virtual import DiagnosticOutcome, InputClassification, VirtualComparisonAnalyzer, diagnose
from keyprobe.events import Origin, Severity
from keyprobe.keycodes import KeyCode

MS = 1_000
PHYSICAL = Origin.PHYSICAL
VIRTUAL = Origin.VIRTUAL


@pytest.mark.parametrize(
    "physical,virtual,outcome",
    (
        (True, True, DiagnosticOutcome.KEYBOARD_OK),
        (False, True, DiagnosticOutcome.HARDWARE_ISSUE),
        (False, False, DiagnosticOutcome.SOFTWARE_ISSUE),
        (True, False, DiagnosticOutcome.API_ISSUE),
    ),
)
def test_outcome_table(physical: bool, virtual: bool, outcome: DiagnosticOutcome):
    assert diagnose(physical, virtual) is outcome


def test_matched_pairs(typist, drive):
    analyzer = VirtualComparisonAnalyzer(correlation_window_us=500 * MS)
    drive(
        analyzer,
        [
            typist.press(KeyCode.KEY_A, 0, VIRTUAL),
            typist.press(KeyCode.KEY_A, 2 * MS, PHYSICAL),
            typist.release(KeyCode.KEY_A, 10 * MS, VIRTUAL),
            typist.release(KeyCode.KEY_A, 11 * MS, PHYSICAL),
            # too far apart to be the same keystroke
            typist.press(KeyCode.KEY_B, 20 * MS, VIRTUAL),
            typist.press(KeyCode.KEY_B, 900 * MS, PHYSICAL),
        ],
    )
    assert analyzer.correlated_pairs == 2
    assert analyzer.presses == {PHYSICAL: 2, VIRTUAL: 2}


def test_probe_keyboard_ok(typist, drive):
    analyzer = VirtualComparisonAnalyzer()
    analyzer.start_probe([KeyCode.KEY_F], 0)
    assert analyzer.diagnosis() is DiagnosticOutcome.PENDING
    drive(analyzer, [typist.press(KeyCode.KEY_F, 1 * MS, VIRTUAL), typist.press(KeyCode.KEY_F, 3 * MS, PHYSICAL)])
    assert analyzer.diagnosis() is DiagnosticOutcome.KEYBOARD_OK
    assert analyzer.complete()
    assert analyzer.results().row("Diagnosis").severity is Severity.OK


def test_probe_hardware_issue_after_window(typist, drive):
    analyzer = VirtualComparisonAnalyzer(correlation_window_us=500 * MS)
    analyzer.start_probe([KeyCode.KEY_F], 0)
    drive(analyzer, [typist.press(KeyCode.KEY_F, 1 * MS, VIRTUAL)])
    analyzer.tick(400 * MS)
    assert analyzer.diagnosis() is DiagnosticOutcome.PENDING
    analyzer.tick(501 * MS)
    assert analyzer.diagnosis() is DiagnosticOutcome.HARDWARE_ISSUE
    assert analyzer.results().row("Diagnosis").severity is Severity.ERROR


def test_late_press_does_not_satisfy_probe(typist, drive):
    analyzer = VirtualComparisonAnalyzer(correlation_window_us=500 * MS)
    analyzer.start_probe([KeyCode.KEY_F], 0)
    drive(analyzer, [typist.press(KeyCode.KEY_F, 700 * MS, PHYSICAL)])
    assert analyzer.diagnosis() is DiagnosticOutcome.SOFTWARE_ISSUE


def test_probe_worst_key_wins(typist, drive):
    analyzer = VirtualComparisonAnalyzer(correlation_window_us=500 * MS)
    analyzer.start_probe([KeyCode.KEY_F, KeyCode.KEY_J], 0)
    drive(
        analyzer,
        [
            typist.press(KeyCode.KEY_F, 1 * MS, VIRTUAL),
            typist.press(KeyCode.KEY_F, 2 * MS, PHYSICAL),
            typist.press(KeyCode.KEY_J, 3 * MS, PHYSICAL),
        ],
    )
    analyzer.tick(600 * MS)
    assert analyzer.last_probe.keys[0].outcome is DiagnosticOutcome.KEYBOARD_OK
    assert analyzer.last_probe.keys[1].outcome is DiagnosticOutcome.API_ISSUE
    assert analyzer.diagnosis() is DiagnosticOutcome.API_ISSUE


def test_probe_needs_keys():
    analyzer = VirtualComparisonAnalyzer()
    with pytest.raises(ValueError):
        analyzer.start_probe([], 0)


def test_virtual_burst_is_one_synthesis_failure(typist, drive):
    analyzer = VirtualComparisonAnalyzer()
    keys = [KeyCode.KEY_1, KeyCode.KEY_2, KeyCode.KEY_3, KeyCode.KEY_4, KeyCode.KEY_5, KeyCode.KEY_6, KeyCode.KEY_7]
    drive(analyzer, [typist.press(key, i * MS, VIRTUAL) for i, key in enumerate(keys)])
    assert analyzer.synthesis_failures == 1
    assert analyzer.results().row("Synthesis Failures").severity is Severity.ERROR


def test_human_typing_classified_physical(typist, drive):
    analyzer = VirtualComparisonAnalyzer()
    spacing = [120, 95, 180, 140, 110, 210, 130, 160, 100, 150, 170, 125]
    events = []
    now = 0
    for i, gap in enumerate(spacing):
        now += gap * MS
        events += typist.tap(KeyCode.KEY_A + (i % 5), now, hold=40 * MS)
    drive(analyzer, events)
    assert analyzer.classification() is InputClassification.LIKELY_PHYSICAL
    assert len(analyzer.anomalies) == 0


def test_machine_timing_classified_virtual(typist, drive):
    analyzer = VirtualComparisonAnalyzer()
    events = []
    for i in range(30):
        events += typist.tap(KeyCode.KEY_A, i * 10 * MS, hold=2 * MS)
    drive(analyzer, events)
    assert analyzer.classification() is InputClassification.VIRTUAL
    assert analyzer.results().row("Input Source").severity is Severity.WARNING


def test_too_few_presses_to_classify(typist, drive):
    analyzer = VirtualComparisonAnalyzer()
    drive(analyzer, typist.taps([KeyCode.KEY_A] * 3, 0, 5 * MS, hold=MS))
    assert analyzer.classification() is InputClassification.UNCERTAIN
