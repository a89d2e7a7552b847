# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import enum
import logging
import typing
from contextlib import aclosing, asynccontextmanager

import trio
import trio_util

from .commontypes import SessionClosed
from .events import (
    KeyTransition,
    Pause,
    Reset,
    Resume,
    SessionMessage,
    SetConflictTable,
    SetExpectedKeys,
    SetFnKeyMode,
    SnapshotRequest,
    SourceClosed,
    Start,
    StartVirtualProbe,
    Stop,
    Tick,
)
from .util import Future

if typing.TYPE_CHECKING:
    from .engine import Engine
    from .report import SessionSnapshot

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    IDLE = "Idle"
    RUNNING = "Running"
    PAUSED = "Paused"
    STOPPED = "Stopped"


# message type -> (states it is valid in, resulting state)
TRANSITIONS: dict[type, tuple[frozenset[SessionState], SessionState]] = {
    Start: (frozenset({SessionState.IDLE}), SessionState.RUNNING),
    Pause: (frozenset({SessionState.RUNNING}), SessionState.PAUSED),
    Resume: (frozenset({SessionState.PAUSED}), SessionState.RUNNING),
    Stop: (frozenset({SessionState.IDLE, SessionState.RUNNING, SessionState.PAUSED}), SessionState.STOPPED),
    SourceClosed: (frozenset({SessionState.IDLE, SessionState.RUNNING, SessionState.PAUSED}), SessionState.STOPPED),
}


class Dispatcher:
    """The single consumer of a session's channel and the only mutator of its engine.

    Data and control messages share one channel, so a Pause sent after an event
    always takes effect after that event has been ingested. A stopped session discards
    events until a Reset returns it to Idle; the dispatcher itself runs until every
    sender has closed.
    """

    state: trio_util.AsyncValue[SessionState]
    final_snapshot: Future[SessionSnapshot]

    def __init__(self, engine: Engine):
        self.engine = engine
        self.state = trio_util.AsyncValue(SessionState.IDLE)
        self.discarded = 0
        self.final_snapshot = Future()

    def current_snapshot(self) -> SessionSnapshot:
        return self.engine.snapshot(self.state.value.value)

    def _transition(self, message: SessionMessage):
        valid_from, target = TRANSITIONS[type(message)]
        current = self.state.value
        if current not in valid_from:
            logger.warning("Ignoring %s while %s", type(message).__name__, current.value)
            return
        logger.debug("Session %s -> %s", current.value, target.value)
        self.state.value = target
        if target is SessionState.STOPPED:
            self.final_snapshot.set_result(self.current_snapshot())

    def _ingest(self, event: KeyTransition):
        match self.state.value:
            case SessionState.IDLE:
                logger.debug("First event; starting session")
                self.state.value = SessionState.RUNNING
            case SessionState.PAUSED | SessionState.STOPPED:
                self.discarded += 1
                return
        self.engine.ingest(event)

    def _configure(self, message: SessionMessage):
        if self.state.value is SessionState.STOPPED:
            logger.warning("Ignoring %s after the session stopped", type(message).__name__)
            return
        match message:
            case SetExpectedKeys(keys=keys):
                self.engine.set_expected_keys(keys)
            case SetConflictTable(table=table):
                self.engine.set_conflict_table(table)
            case SetFnKeyMode(mode=mode):
                self.engine.set_fn_key_mode(mode)
            case StartVirtualProbe(keys=keys, timestamp=timestamp):
                if not keys:
                    logger.warning("Ignoring a virtual probe with no keys")
                    return
                self.engine.start_virtual_probe(keys, timestamp)

    def handle(self, message: SessionMessage):
        match message:
            case KeyTransition():
                self._ingest(message)
            case Start() | Pause() | Resume() | Stop() | SourceClosed():
                self._transition(message)
            case Reset():
                logger.debug("Session %s -> %s (reset)", self.state.value.value, SessionState.IDLE.value)
                self.engine.reset()
                self.discarded = 0
                self.state.value = SessionState.IDLE
                if self.final_snapshot.done:
                    # the next stop gets a final snapshot of its own
                    self.final_snapshot = Future()
            case Tick(timestamp=timestamp):
                # time does not pass for a session that is not collecting
                if self.state.value is SessionState.RUNNING:
                    self.engine.tick(timestamp)
            case SnapshotRequest(reply=reply):
                reply.set_result(self.current_snapshot())
            case SetExpectedKeys() | SetConflictTable() | SetFnKeyMode() | StartVirtualProbe():
                self._configure(message)
            case _:
                logger.warning("Unknown message %r", message)

    async def run(self, receive_channel: trio.MemoryReceiveChannel[SessionMessage], *, task_status=trio.TASK_STATUS_IGNORED):
        task_status.started()
        async with aclosing(receive_channel):
            async for message in receive_channel:
                self.handle(message)
        # every sender hung up
        if self.state.value is not SessionState.STOPPED:
            self.handle(SourceClosed())


class Session:
    "The sending side of an open session."

    def __init__(self, dispatcher: Dispatcher, send_channel: trio.MemorySendChannel[SessionMessage]):
        self.dispatcher = dispatcher
        self.send_channel = send_channel

    @property
    def state(self) -> trio_util.AsyncValue[SessionState]:
        return self.dispatcher.state

    def sender(self) -> trio.MemorySendChannel[SessionMessage]:
        "A clone of the send channel for an event source to own and close."
        try:
            return self.send_channel.clone()
        except trio.ClosedResourceError as exc:
            raise SessionClosed() from exc

    async def send(self, message: SessionMessage):
        try:
            await self.send_channel.send(message)
        except (trio.BrokenResourceError, trio.ClosedResourceError) as exc:
            raise SessionClosed() from exc

    async def snapshot(self) -> SessionSnapshot:
        return await request_snapshot(self.send_channel)

    async def stop(self) -> SessionSnapshot:
        await self.send(Stop())
        return await self.dispatcher.final_snapshot.wait()


async def request_snapshot(send_channel: trio.MemorySendChannel[SessionMessage]) -> SessionSnapshot:
    "Ask the dispatcher for a snapshot taken between two messages."
    reply: Future[SessionSnapshot] = Future()
    try:
        await send_channel.send(SnapshotRequest(reply=reply))
    except (trio.BrokenResourceError, trio.ClosedResourceError) as exc:
        raise SessionClosed() from exc
    return await reply.wait()


@asynccontextmanager
async def open_session(engine: Engine, capacity: typing.Optional[int] = None):
    """Run a dispatcher for ``engine`` for the duration of the block.

    Leaving the block closes this side of the channel. The session stops once every
    clone handed out by ``Session.sender`` has been closed too.
    """
    if capacity is None:
        capacity = engine.settings.channel_capacity
    send_channel, receive_channel = trio.open_memory_channel(capacity)
    dispatcher = Dispatcher(engine)
    async with trio.open_nursery() as nursery:
        await nursery.start(dispatcher.run, receive_channel)
        async with send_channel:
            yield Session(dispatcher, send_channel)
