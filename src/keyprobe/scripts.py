import argparse
import logging
import pathlib
import pprint

import msgspec
import trio

from .dispatcher import open_session
from .durations import parse_micros
from .engine import Engine
from .settings import Settings
from .sources import ReplaySource


async def replay(recording: pathlib.Path, settings: Settings, tick_us: int):
    engine = Engine(settings)
    source = ReplaySource.load(recording, tick_us=tick_us)
    async with open_session(engine) as session:
        await source.run(session.sender())
        return await session.dispatcher.final_snapshot.wait()


replay_parser = argparse.ArgumentParser(description="Replay a recorded keyboard session through every analyzer.")
replay_parser.add_argument("recording", type=pathlib.Path)
replay_parser.add_argument("--settings", type=pathlib.Path)
replay_parser.add_argument("--tick", type=parse_micros, default="100ms", help="recorded time between ticks")
replay_parser.add_argument("--verbose", "-v", action="store_true")


def replay_cli():
    args = replay_parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    if args.settings is not None:
        settings = Settings.load(args.settings)
    else:
        settings = Settings()
    snapshot = trio.run(replay, args.recording, settings, args.tick)
    pprint.pprint(msgspec.to_builtins(snapshot), sort_dicts=False)
