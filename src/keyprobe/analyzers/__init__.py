# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import typing

from .base import Analyzer
from .bounce import BounceAnalyzer
from .oem import OemKeyAnalyzer
from .polling import PollingRateAnalyzer
from .rollover import RolloverAnalyzer
from .shortcuts import ShortcutAnalyzer
from .stickiness import StickinessAnalyzer
from .timing import TimingAnalyzer
from .virtual import VirtualComparisonAnalyzer

if typing.TYPE_CHECKING:
    from ..settings import Settings

# Dispatch order, which is also the order of results in a report.
ANALYZER_TYPES: tuple[type[Analyzer], ...] = (
    PollingRateAnalyzer,
    StickinessAnalyzer,
    BounceAnalyzer,
    RolloverAnalyzer,
    TimingAnalyzer,
    ShortcutAnalyzer,
    VirtualComparisonAnalyzer,
    OemKeyAnalyzer,
)


def build_analyzers(settings: Settings) -> list[Analyzer]:
    return [analyzer_type.from_settings(settings) for analyzer_type in ANALYZER_TYPES]


__all__ = [
    "ANALYZER_TYPES",
    "Analyzer",
    "BounceAnalyzer",
    "OemKeyAnalyzer",
    "PollingRateAnalyzer",
    "RolloverAnalyzer",
    "ShortcutAnalyzer",
    "StickinessAnalyzer",
    "TimingAnalyzer",
    "VirtualComparisonAnalyzer",
    "build_analyzers",
]
