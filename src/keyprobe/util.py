# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import datetime
import math
import typing

import outcome
import trio
from dateutil.tz import tzlocal

T = typing.TypeVar("T")

MICROS_PER_SECOND = 1_000_000
MICROS_PER_MS = 1_000


def now():
    return datetime.datetime.now(tzlocal())


def trio_clock_us() -> int:
    "The current trio clock reading, in whole microseconds."
    return int(trio.current_time() * MICROS_PER_SECOND)


def maybe_int(val: float) -> int | float:
    if math.isclose(val, round(val)):
        return round(val)
    return val


class Future(typing.Generic[T]):
    def __init__(self):
        self.final_result: typing.Optional[outcome.Outcome] = None
        self.finished = trio.Event()

    def set_result(self, result: T):
        if self.final_result is not None:
            raise RuntimeError("Future already finalized")
        self.final_result = outcome.Value(result)
        self.finished.set()

    def set_error(self, exc: BaseException):
        if self.final_result is not None:
            raise RuntimeError("Future already finalized")
        self.final_result = outcome.Error(exc)
        self.finished.set()

    @property
    def done(self) -> bool:
        return self.final_result is not None

    async def wait(self) -> T:
        await self.finished.wait()
        # unwrap() only works once, and a future can have several waiters
        match self.final_result:
            case outcome.Value(value=value):
                return value
            case outcome.Error(error=error):
                raise error
        raise AssertionError("unreachable")
