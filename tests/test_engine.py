# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
import random

import pytest

from keyprobe.analyzers import (
    ANALYZER_TYPES,
    BounceAnalyzer,
    OemKeyAnalyzer,
    PollingRateAnalyzer,
    RolloverAnalyzer,
    ShortcutAnalyzer,
    StickinessAnalyzer,
    VirtualComparisonAnalyzer,
)
from keyprobe.commontypes import UnknownAnalyzer
from keyprobe.engine import Engine
from keyprobe.events import Edge, Origin
from keyprobe.keycodes import KeyCode
from keyprobe.remap import MapToMedia
from keyprobe.settings import Settings
from keyprobe.shortcuts import ConflictEntry, ConflictTable

MS = 1_000


def session_events(typist, seed: int = 99):
    "A plausible few seconds of typing, with some chatter, a long hold and a combo."
    rng = random.Random(seed)
    events = []
    now = 0
    letters = [KeyCode.KEY_T, KeyCode.KEY_H, KeyCode.KEY_E, KeyCode.KEY_Q, KeyCode.KEY_U, KeyCode.KEY_I, KeyCode.KEY_C, KeyCode.KEY_K]
    for _ in range(60):
        now += rng.randint(60, 200) * MS
        events += typist.tap(rng.choice(letters), now, hold=rng.randint(30, 45) * MS)
    now += 200 * MS
    events += [typist.press(KeyCode.KEY_J, now), typist.release(KeyCode.KEY_J, now + 2 * MS), typist.press(KeyCode.KEY_J, now + 3 * MS)]
    events.append(typist.release(KeyCode.KEY_J, now + 900 * MS))
    now += 1_000 * MS
    events += [typist.press(KeyCode.KEY_LEFTCTRL, now), typist.press(KeyCode.KEY_W, now + 20 * MS)]
    events += [typist.release(KeyCode.KEY_W, now + 35 * MS), typist.release(KeyCode.KEY_LEFTCTRL, now + 45 * MS)]
    events.append(typist.press(KeyCode.KEY_VOLUMEUP, now + 500 * MS))
    events.append(typist.press(KeyCode.KEY_A, now + 510 * MS, Origin.VIRTUAL))
    return events


def run(engine: Engine, events):
    for event in events:
        engine.ingest(event)
    return engine


def test_results_in_fixed_order(typist):
    engine = run(Engine(Settings()), session_events(typist))
    names = [result.analyzer_name for result in engine.results()]
    assert names == [analyzer_type.name for analyzer_type in ANALYZER_TYPES]
    assert names == ["Polling Rate", "Stickiness", "Bounce", "Rollover", "Event Timing", "Shortcuts", "Virtual Input", "OEM Keys"]


def test_findings_reach_the_analyzers(typist):
    events = session_events(typist)
    engine = run(Engine(Settings()), events)
    assert engine.analyzer(BounceAnalyzer).bounce_counts[KeyCode.KEY_J] == 1
    assert engine.analyzer(StickinessAnalyzer).stuck_keys() == [KeyCode.KEY_J]
    assert engine.analyzer(ShortcutAnalyzer).last_activation.combo == "Ctrl+W"
    assert engine.analyzer(OemKeyAnalyzer).detected_oem[KeyCode.KEY_VOLUMEUP] == 1
    assert engine.analyzer(VirtualComparisonAnalyzer).presses[Origin.VIRTUAL] == 1
    # virtual events never reach the physical analyzers
    physical_presses = sum(1 for e in events if e.origin is Origin.PHYSICAL and e.edge is Edge.PRESS)
    assert engine.analyzer(PollingRateAnalyzer).event_count == physical_presses
    assert engine.state.global_state.virtual_events == 1


def test_tagged_lookup(typist):
    engine = Engine(Settings())
    assert engine.analyzer("Rollover") is engine.analyzer(RolloverAnalyzer)
    with pytest.raises(UnknownAnalyzer):
        engine.analyzer("Latency")
    with pytest.raises(LookupError):
        engine.analyzer("Latency")


def test_reset_matches_fresh_engine(typist):
    settings = Settings(combo_test_keys=[KeyCode.KEY_W, KeyCode.KEY_A, KeyCode.KEY_S, KeyCode.KEY_D])
    engine = run(Engine(settings), session_events(typist))
    engine.set_expected_keys({KeyCode.KEY_Q})
    engine.set_fn_key_mode(MapToMedia())
    engine.set_conflict_table(ConflictTable({"Ctrl+J": ConflictEntry("Editor", "Join lines")}))
    engine.tick(10_000 * MS)
    engine.reset()
    assert engine.snapshot() == Engine(settings).snapshot()


def test_replay_is_deterministic(typist):
    events = session_events(typist)
    first = run(Engine(Settings()), events).snapshot("Running")
    second = run(Engine(Settings()), events).snapshot("Running")
    assert first == second
    assert first.summary.total_events == len(events)


def test_snapshot_summary(typist):
    engine = run(Engine(Settings()), session_events(typist))
    snapshot = engine.snapshot("Running")
    assert snapshot.state == "Running"
    assert snapshot.summary.max_rollover == 2
    assert snapshot.summary.rollover_class == "2KRO"
    assert snapshot.summary.issue_count == sum(result.issues() for result in snapshot.results)
    assert snapshot.summary.issue_count > 0
    assert [key.key for key in snapshot.keys] == sorted(key.key for key in snapshot.keys)
    assert snapshot.result("Bounce").row("Bounces Detected").value == "1"


def test_runtime_configuration(typist):
    table = ConflictTable({"Ctrl+J": ConflictEntry("Editor", "Join lines")})
    engine = Engine(Settings(), conflict_table=table)
    assert engine.analyzer(ShortcutAnalyzer).conflict_table is table
    engine.set_fn_key_mode(MapToMedia())
    assert engine.analyzer(OemKeyAnalyzer).mode == MapToMedia()
    engine.start_virtual_probe({KeyCode.KEY_F}, 0)
    engine.ingest(typist.press(KeyCode.KEY_F, MS, Origin.VIRTUAL))
    engine.ingest(typist.press(KeyCode.KEY_F, 2 * MS))
    assert engine.analyzer(VirtualComparisonAnalyzer).complete()


def test_complete_needs_polling_window_and_probe(typist):
    engine = Engine(Settings(test_duration_secs=1))
    run(engine, typist.taps([KeyCode.KEY_A, KeyCode.KEY_B], 0, 10 * MS))
    engine.tick(2_000 * MS)
    # the polling window is done, but no virtual probe has run
    assert not engine.complete()
    engine.start_virtual_probe({KeyCode.KEY_A}, 2_000 * MS)
    engine.tick(3_000 * MS)
    assert engine.complete()


def test_ingest_is_total(typist):
    engine = Engine(Settings())
    events = [
        typist.release(KeyCode.KEY_A, 0),
        typist.event(0x3FF, Edge.PRESS, 5),
        typist.event(KeyCode.KEY_B, Edge.PRESS, 2),
        typist.event(KeyCode.KEY_B, Edge.RELEASE, 6),
    ]
    run(engine, events)
    assert engine.state.anomaly_count() == 2
    assert engine.snapshot().summary.anomaly_count == 2


def test_reset_restores_construction_configuration(typist):
    table = ConflictTable({"Ctrl+J": ConflictEntry("Editor", "Join lines")})
    engine = Engine(Settings(), conflict_table=table)
    engine.set_conflict_table(ConflictTable())
    engine.set_fn_key_mode(MapToMedia())
    engine.reset()
    assert engine.analyzer(ShortcutAnalyzer).conflict_table is table
    assert engine.analyzer(OemKeyAnalyzer).mode == Settings().fn_key_mode
