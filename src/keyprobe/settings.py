import dataclasses
import json
import operator
import pathlib
import typing

import cattrs

from .commontypes import ConfigOutOfRange
from .keycodes import FN_SCANCODES, KeyCode
from .remap import Custom, FnKeyMode, MapToFKeys, MapToMedia, Passthrough, RestoreWithModifier, parse_fn_key_mode, unparse_fn_key_mode

settings_converter = cattrs.Converter()
settings_converter.register_unstructure_hook(pathlib.Path, str)
settings_converter.register_structure_hook(pathlib.Path, lambda v, _: pathlib.Path(v))
settings_converter.register_unstructure_hook(KeyCode, operator.attrgetter("name"))
settings_converter.register_structure_hook(KeyCode, lambda v, _: KeyCode[v])
settings_converter.register_structure_hook_func(lambda t: t == FnKeyMode, lambda v, _: parse_fn_key_mode(v))
settings_converter.register_unstructure_hook_func(lambda t: t == FnKeyMode, unparse_fn_key_mode)
for _mode_type in (Passthrough, MapToFKeys, MapToMedia, RestoreWithModifier, Custom):
    settings_converter.register_unstructure_hook(_mode_type, unparse_fn_key_mode)


def _positive(name: str, value):
    if value <= 0:
        raise ConfigOutOfRange(name, value, "must be positive")


def _fraction(name: str, value: float):
    if not 0 < value < 1:
        raise ConfigOutOfRange(name, value, "must be between 0 and 1")


@dataclasses.dataclass(kw_only=True)
class Settings:
    _path: typing.Optional[pathlib.Path] = None
    test_duration_secs: int = 10
    stuck_threshold_ms: int = 50
    bounce_window_ms: int = 5
    correlation_window_ms: int = 500
    history_length: int = 20
    ring_buffer_capacity: int = 100
    fn_key_mode: FnKeyMode = dataclasses.field(default_factory=Passthrough)

    global_ring_buffer_capacity: int = 1000
    jitter_tolerance: float = 0.25
    polling_gap_ms: int = 100
    timing_gap_ms: int = 1000
    repeat_tolerance: float = 0.15
    repeat_min_run: int = 3
    fn_scancodes: list[int] = dataclasses.field(default_factory=lambda: list(FN_SCANCODES))
    oem_history_length: int = 100
    combo_test_keys: list[KeyCode] = dataclasses.field(default_factory=list)
    channel_capacity: int = 256

    def __post_init__(self):
        self.validate()

    def validate(self):
        for name in (
            "test_duration_secs",
            "stuck_threshold_ms",
            "bounce_window_ms",
            "correlation_window_ms",
            "history_length",
            "ring_buffer_capacity",
            "global_ring_buffer_capacity",
            "polling_gap_ms",
            "timing_gap_ms",
            "oem_history_length",
            "channel_capacity",
        ):
            _positive(name, getattr(self, name))
        _fraction("jitter_tolerance", self.jitter_tolerance)
        _fraction("repeat_tolerance", self.repeat_tolerance)
        if self.repeat_min_run < 2:
            raise ConfigOutOfRange("repeat_min_run", self.repeat_min_run, "needs at least 2 intervals to compare")
        if self.bounce_window_ms >= self.stuck_threshold_ms:
            raise ConfigOutOfRange("bounce_window_ms", self.bounce_window_ms, "must be shorter than stuck_threshold_ms")

    def save(self, dest: typing.Optional[pathlib.Path] = None):
        if dest is None:
            dest = self._path
        raw = settings_converter.unstructure(self)
        del raw["_path"]
        with dest.open("w") as outfile:
            json.dump(raw, outfile, indent=2)

    @classmethod
    def load(cls, src: pathlib.Path):
        with src.open() as infile:
            raw = json.load(infile)
        raw["_path"] = src
        return settings_converter.structure(raw, cls)

    @classmethod
    def for_test(cls, **overrides):
        raw = {"_path": "test.settings.json"}
        raw.update(overrides)
        return settings_converter.structure(raw, cls)


settings_converter.register_structure_hook(Settings, cattrs.gen.make_dict_structure_fn(Settings, settings_converter))
