# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
import pytest

from keyprobe.analyzers.polling import PollingRateAnalyzer, jitter_severity, rate_severity
from keyprobe.events import InsufficientData, Severity
from keyprobe.keycodes import KeyCode

SECOND = 1_000_000


def presses(typist, intervals: list[int], start: int = 0):
    keys = [KeyCode.KEY_A, KeyCode.KEY_S, KeyCode.KEY_D, KeyCode.KEY_F]
    now = start
    events = [typist.press(keys[0], now)]
    for i, interval in enumerate(intervals, start=1):
        now += interval
        events.append(typist.press(keys[i % len(keys)], now))
    return events


def test_steady_rate(typist, drive):
    analyzer = PollingRateAnalyzer(test_duration_us=10 * SECOND)
    drive(analyzer, presses(typist, [1000, 1000, 1000]))
    assert analyzer.average_hz() == pytest.approx(1000.0)
    assert analyzer.jitter_us() == pytest.approx(0.0)
    assert analyzer.instantaneous_hz() == pytest.approx(1000.0)
    assert not analyzer.inconsistent()
    result = analyzer.results()
    assert result.analyzer_name == "Polling Rate"
    assert result.row("Average Rate").value == "1000.0 Hz"
    assert result.row("Average Rate").severity is Severity.OK
    assert result.row("Consistency").value == "Stable"


def test_uneven_rate(typist, drive):
    analyzer = PollingRateAnalyzer(test_duration_us=10 * SECOND)
    drive(analyzer, presses(typist, [900, 1000, 1100]))
    assert analyzer.average_hz() == pytest.approx(1000.0)
    assert analyzer.jitter_us() == pytest.approx(81.6, abs=0.1)
    assert analyzer.min_hz() == pytest.approx(SECOND / 1100)
    assert analyzer.max_hz() == pytest.approx(SECOND / 900)


def test_idle_gaps_are_not_intervals(typist, drive):
    analyzer = PollingRateAnalyzer(test_duration_us=10 * SECOND)
    drive(analyzer, presses(typist, [1000, 500_000, 1000]))
    assert analyzer.window.count == 2
    assert analyzer.average_hz() == pytest.approx(1000.0)


def test_releases_do_not_count(typist, drive):
    analyzer = PollingRateAnalyzer(test_duration_us=10 * SECOND)
    drive(analyzer, typist.tap(KeyCode.KEY_A, 0, hold=400))
    assert analyzer.event_count == 1
    assert isinstance(analyzer.average_hz(), InsufficientData)
    assert analyzer.results().row("Average Rate").value == "Not enough samples (have 0 of 1)"


def test_inconsistent_polling(typist, drive):
    analyzer = PollingRateAnalyzer(test_duration_us=10 * SECOND, jitter_tolerance=0.25)
    drive(analyzer, presses(typist, [1000, 8000, 1000, 8000]))
    assert analyzer.inconsistent()
    assert analyzer.results().row("Consistency").severity is Severity.WARNING


def test_completes_after_test_duration(typist, drive):
    analyzer = PollingRateAnalyzer(test_duration_us=SECOND)
    drive(analyzer, presses(typist, [1000]))
    assert not analyzer.complete()
    analyzer.tick(SECOND // 2)
    assert analyzer.progress() == pytest.approx(0.5)
    analyzer.tick(SECOND + 1)
    assert analyzer.complete()
    assert analyzer.progress() == 1.0


def test_reset(typist, drive):
    analyzer = PollingRateAnalyzer(test_duration_us=SECOND)
    drive(analyzer, presses(typist, [1000, 1000]))
    analyzer.reset()
    assert analyzer.results() == PollingRateAnalyzer(test_duration_us=SECOND).results()


@pytest.mark.parametrize(
    "hz,severity",
    ((1000.0, Severity.OK), (900.0, Severity.OK), (500.0, Severity.WARNING), (125.0, Severity.ERROR)),
)
def test_rate_severity(hz: float, severity: Severity):
    assert rate_severity(hz) is severity


@pytest.mark.parametrize(
    "jitter,severity",
    ((0.0, Severity.OK), (499.0, Severity.OK), (1500.0, Severity.WARNING), (2000.0, Severity.ERROR)),
)
def test_jitter_severity(jitter: float, severity: Severity):
    assert jitter_severity(jitter) is severity
