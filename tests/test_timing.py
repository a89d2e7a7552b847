# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
import pytest

from keyprobe.analyzers.timing import TimingAnalyzer, timing_rating
from keyprobe.events import InsufficientData, Severity
from keyprobe.keycodes import KeyCode

MS = 1_000


def test_press_timing(typist, drive):
    analyzer = TimingAnalyzer()
    events = [
        typist.press(KeyCode.KEY_A, 0),
        typist.press(KeyCode.KEY_B, 4 * MS),
        typist.press(KeyCode.KEY_C, 10 * MS),
        typist.press(KeyCode.KEY_B, 20 * MS),
    ]
    drive(analyzer, events)
    assert analyzer.average_ms() == pytest.approx(20 / 3)
    assert analyzer.min_ms() == pytest.approx(4.0)
    assert analyzer.max_ms() == pytest.approx(10.0)
    assert analyzer.fastest_key().key == KeyCode.KEY_C
    assert analyzer.slowest_key().key == KeyCode.KEY_B
    # sorted by key code: C is 46, B is 48
    (c, b) = analyzer.per_key()
    assert c.samples == 1
    assert b.samples == 2
    assert b.avg_ms == pytest.approx(7.0)
    result = analyzer.results()
    assert result.row("Avg Event Timing").value == "6.67ms"
    assert result.row("Avg Event Timing").severity is Severity.OK
    assert result.row("Rating").value == "Great (<10ms)"


def test_gaps_over_a_second_are_skipped(typist, drive):
    analyzer = TimingAnalyzer()
    drive(analyzer, [typist.press(KeyCode.KEY_A, 0), typist.press(KeyCode.KEY_B, 2_000 * MS), typist.press(KeyCode.KEY_C, 2_020 * MS)])
    assert analyzer.global_stats.count == 1
    assert analyzer.average_ms() == pytest.approx(20.0)
    assert analyzer.total_presses == 2


def test_no_samples(typist, drive):
    analyzer = TimingAnalyzer()
    drive(analyzer, [typist.press(KeyCode.KEY_A, 0)])
    assert isinstance(analyzer.average_ms(), InsufficientData)
    result = analyzer.results()
    assert result.row("Avg Event Timing").value == "Not enough samples (have 0 of 1)"
    assert result.row("Rating").value == "Not measured"


@pytest.mark.parametrize(
    "avg_ms,rating",
    (
        (1.0, "Excellent (<5ms)"),
        (7.5, "Great (<10ms)"),
        (15.0, "Good (<20ms)"),
        (49.9, "Acceptable (<50ms)"),
        (50.0, "Poor (>50ms)"),
    ),
)
def test_timing_rating(avg_ms: float, rating: str):
    assert timing_rating(avg_ms) == rating
