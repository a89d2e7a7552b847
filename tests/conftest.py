# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
import itertools
import typing

import pytest
from keyprobe.events import Edge, KeyTransition, Origin


class Typist:
    "Builds event streams with increasing sequence numbers."

    def __init__(self):
        self.sequence = itertools.count()

    def event(self, key: int, edge: Edge, at: int, origin: Origin = Origin.PHYSICAL) -> KeyTransition:
        return KeyTransition(key=key, edge=edge, timestamp=at, sequence_no=next(self.sequence), origin=origin)

    def press(self, key: int, at: int, origin: Origin = Origin.PHYSICAL) -> KeyTransition:
        return self.event(key, Edge.PRESS, at, origin)

    def release(self, key: int, at: int, origin: Origin = Origin.PHYSICAL) -> KeyTransition:
        return self.event(key, Edge.RELEASE, at, origin)

    def tap(self, key: int, at: int, hold: int = 1_000, origin: Origin = Origin.PHYSICAL) -> list[KeyTransition]:
        return [self.press(key, at, origin), self.release(key, at + hold, origin)]

    def taps(self, keys: typing.Iterable[int], start: int, spacing: int, hold: int = 500) -> list[KeyTransition]:
        events = []
        for i, key in enumerate(keys):
            events.extend(self.tap(key, start + i * spacing, hold))
        return events


@pytest.fixture
def typist():
    return Typist()


@pytest.fixture
def drive():
    "Feed events through a fresh KeyboardState into one analyzer, the way the engine does."
    from keyprobe.state import KeyboardState

    def _drive(analyzer, events: typing.Iterable[KeyTransition], state: typing.Optional[KeyboardState] = None):
        if state is None:
            state = KeyboardState()
        for event in events:
            state.ingest(event)
            if event.origin in analyzer.origins:
                analyzer.ingest(event, state)
        return state

    return _drive
