# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import collections.abc
import datetime
import itertools
import logging
import pathlib
import typing
from contextlib import aclosing

import msgspec
import trio
import trio_util

from .events import Edge, KeyTransition, Origin, SessionMessage, SourceClosed, StartVirtualProbe, Tick
from .keycodes import KeyIdentifier
from .util import MICROS_PER_SECOND, now, trio_clock_us

logger = logging.getLogger(__name__)


class Recording(msgspec.Struct, kw_only=True):
    recorded_at: datetime.datetime
    events: list[KeyTransition]


class Recorder:
    "Keeps a copy of every key transition that passes through on its way to a session."

    def __init__(self):
        self.started_at: typing.Optional[datetime.datetime] = None
        self.events: list[KeyTransition] = []

    def record(self, event: KeyTransition):
        if self.started_at is None:
            self.started_at = now()
        self.events.append(event)

    async def pump(self, source: trio.MemoryReceiveChannel[SessionMessage], sink: trio.MemorySendChannel[SessionMessage]):
        async with aclosing(source), aclosing(sink):
            async for message in source:
                if isinstance(message, KeyTransition):
                    self.record(message)
                await sink.send(message)

    def recording(self) -> Recording:
        return Recording(recorded_at=self.started_at or now(), events=list(self.events))

    def save_events(self, path: pathlib.Path):
        path.write_bytes(msgspec.json.encode(self.recording()))


class ReplaySource:
    """Feeds recorded transitions into a session.

    With ``tick_us`` set, a Tick is sent every ``tick_us`` of recorded time, so
    time-based checks behave as they did live. With ``realtime`` the replay also
    sleeps out the recorded gaps.
    """

    def __init__(
        self,
        events: collections.abc.Iterable[KeyTransition],
        *,
        tick_us: typing.Optional[int] = None,
        realtime: bool = False,
        close_session: bool = True,
    ):
        if tick_us is not None and tick_us <= 0:
            raise ValueError(f"tick_us must be positive, not {tick_us}")
        self.events = list(events)
        self.tick_us = tick_us
        self.realtime = realtime
        self.close_session = close_session

    @classmethod
    def load(cls, path: pathlib.Path, **kwargs) -> ReplaySource:
        recording = msgspec.json.decode(path.read_bytes(), type=Recording)
        logger.debug("Loaded %d events recorded at %s", len(recording.events), recording.recorded_at)
        return cls(recording.events, **kwargs)

    def messages(self) -> collections.abc.Iterator[SessionMessage]:
        next_tick: typing.Optional[int] = None
        for event in self.events:
            if self.tick_us is not None:
                if next_tick is None:
                    next_tick = event.timestamp + self.tick_us
                while next_tick <= event.timestamp:
                    yield Tick(timestamp=next_tick)
                    next_tick += self.tick_us
            yield event
        if next_tick is not None:
            # one trailing tick so keys still held at the end get noticed
            yield Tick(timestamp=next_tick)
        if self.close_session:
            yield SourceClosed()

    async def run(self, send_channel: trio.MemorySendChannel[SessionMessage], *, task_status=trio.TASK_STATUS_IGNORED):
        task_status.started()
        previous: typing.Optional[int] = None
        async with send_channel:
            for message in self.messages():
                if self.realtime and isinstance(message, KeyTransition):
                    if previous is not None and message.timestamp > previous:
                        await trio.sleep((message.timestamp - previous) / MICROS_PER_SECOND)
                    previous = message.timestamp
                await send_channel.send(message)


class TickSource:
    "Sends a Tick stamped with the trio clock every ``interval_us``, until cancelled or the dispatcher has gone."

    def __init__(self, interval_us: int, clock: collections.abc.Callable[[], int] = trio_clock_us):
        if interval_us <= 0:
            raise ValueError(f"interval_us must be positive, not {interval_us}")
        self.interval_us = interval_us
        self.clock = clock

    async def run(self, send_channel: trio.MemorySendChannel[SessionMessage], *, task_status=trio.TASK_STATUS_IGNORED):
        task_status.started()
        async with send_channel:
            async for _ in trio_util.periodic(self.interval_us / MICROS_PER_SECOND):
                try:
                    await send_channel.send(Tick(timestamp=self.clock()))
                except trio.BrokenResourceError:
                    logger.debug("Session closed; no more ticks")
                    return


class VirtualInjector:
    """Sends synthetic (virtual-origin) transitions, for comparison against what the
    physical device reports for the same keys."""

    def __init__(
        self,
        send_channel: trio.MemorySendChannel[SessionMessage],
        *,
        sequence: typing.Optional[typing.Iterator[int]] = None,
        clock: collections.abc.Callable[[], int] = trio_clock_us,
    ):
        self.send_channel = send_channel
        # share one counter with the physical source, or sequence anomalies follow
        self.sequence = itertools.count() if sequence is None else sequence
        self.clock = clock

    async def aclose(self):
        await self.send_channel.aclose()

    async def start_probe(self, keys: collections.abc.Iterable[KeyIdentifier]):
        await self.send_channel.send(StartVirtualProbe(keys=frozenset(keys), timestamp=self.clock()))

    async def inject(self, key: KeyIdentifier, edge: Edge):
        event = KeyTransition(key=key, edge=edge, timestamp=self.clock(), sequence_no=next(self.sequence), origin=Origin.VIRTUAL)
        await self.send_channel.send(event)

    async def tap(self, key: KeyIdentifier):
        await self.inject(key, Edge.PRESS)
        await self.inject(key, Edge.RELEASE)

    async def probe(self, keys: collections.abc.Iterable[KeyIdentifier]):
        "Start a probe for ``keys`` and tap each of them virtually."
        keys = sorted(set(keys))
        await self.start_probe(keys)
        for key in keys:
            await self.tap(key)
