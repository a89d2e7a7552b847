# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
"""Canonical key codes.

Codes follow the Linux input-event numbering, which is what every raw-input backend is
expected to translate into before events reach the engine. A key identifier is a plain
int; codes without a KeyCode member are legal and are treated as unmapped (OEM) keys.
"""
import enum
import typing

KeyIdentifier = int


class KeyCode(enum.IntEnum):
    KEY_ESC = 1
    KEY_1 = 2
    KEY_2 = 3
    KEY_3 = 4
    KEY_4 = 5
    KEY_5 = 6
    KEY_6 = 7
    KEY_7 = 8
    KEY_8 = 9
    KEY_9 = 10
    KEY_0 = 11
    KEY_MINUS = 12
    KEY_EQUAL = 13
    KEY_BACKSPACE = 14
    KEY_TAB = 15
    KEY_Q = 16
    KEY_W = 17
    KEY_E = 18
    KEY_R = 19
    KEY_T = 20
    KEY_Y = 21
    KEY_U = 22
    KEY_I = 23
    KEY_O = 24
    KEY_P = 25
    KEY_LEFTBRACE = 26
    KEY_RIGHTBRACE = 27
    KEY_ENTER = 28
    KEY_LEFTCTRL = 29
    KEY_A = 30
    KEY_S = 31
    KEY_D = 32
    KEY_F = 33
    KEY_G = 34
    KEY_H = 35
    KEY_J = 36
    KEY_K = 37
    KEY_L = 38
    KEY_SEMICOLON = 39
    KEY_APOSTROPHE = 40
    KEY_GRAVE = 41
    KEY_LEFTSHIFT = 42
    KEY_BACKSLASH = 43
    KEY_Z = 44
    KEY_X = 45
    KEY_C = 46
    KEY_V = 47
    KEY_B = 48
    KEY_N = 49
    KEY_M = 50
    KEY_COMMA = 51
    KEY_DOT = 52
    KEY_SLASH = 53
    KEY_RIGHTSHIFT = 54
    KEY_KPASTERISK = 55
    KEY_LEFTALT = 56
    KEY_SPACE = 57
    KEY_CAPSLOCK = 58
    KEY_F1 = 59
    KEY_F2 = 60
    KEY_F3 = 61
    KEY_F4 = 62
    KEY_F5 = 63
    KEY_F6 = 64
    KEY_F7 = 65
    KEY_F8 = 66
    KEY_F9 = 67
    KEY_F10 = 68
    KEY_NUMLOCK = 69
    KEY_SCROLLLOCK = 70
    KEY_KP7 = 71
    KEY_KP8 = 72
    KEY_KP9 = 73
    KEY_KPMINUS = 74
    KEY_KP4 = 75
    KEY_KP5 = 76
    KEY_KP6 = 77
    KEY_KPPLUS = 78
    KEY_KP1 = 79
    KEY_KP2 = 80
    KEY_KP3 = 81
    KEY_KP0 = 82
    KEY_KPDOT = 83
    KEY_102ND = 86
    KEY_F11 = 87
    KEY_F12 = 88
    KEY_KPENTER = 96
    KEY_RIGHTCTRL = 97
    KEY_KPSLASH = 98
    KEY_SYSRQ = 99
    KEY_RIGHTALT = 100
    KEY_HOME = 102
    KEY_UP = 103
    KEY_PAGEUP = 104
    KEY_LEFT = 105
    KEY_RIGHT = 106
    KEY_END = 107
    KEY_DOWN = 108
    KEY_PAGEDOWN = 109
    KEY_INSERT = 110
    KEY_DELETE = 111
    KEY_MUTE = 113
    KEY_VOLUMEDOWN = 114
    KEY_VOLUMEUP = 115
    KEY_POWER = 116
    KEY_PAUSE = 119
    KEY_LEFTMETA = 125
    KEY_RIGHTMETA = 126
    KEY_COMPOSE = 127
    KEY_CALC = 140
    KEY_SLEEP = 142
    KEY_WWW = 150
    KEY_MAIL = 155
    KEY_BACK = 158
    KEY_FORWARD = 159
    KEY_EJECTCD = 161
    KEY_NEXTSONG = 163
    KEY_PLAYPAUSE = 164
    KEY_PREVIOUSSONG = 165
    KEY_STOPCD = 166
    KEY_HOMEPAGE = 172
    KEY_REFRESH = 173
    KEY_SEARCH = 217
    KEY_BRIGHTNESSDOWN = 224
    KEY_BRIGHTNESSUP = 225
    KEY_SWITCHVIDEOMODE = 227
    KEY_KBDILLUMTOGGLE = 228
    KEY_KBDILLUMDOWN = 229
    KEY_KBDILLUMUP = 230
    KEY_WLAN = 238
    KEY_MICMUTE = 248
    KEY_FN = 464


class Modifier(enum.IntFlag):
    NONE = 0
    CTRL = 1
    ALT = 2
    SHIFT = 4
    META = 8


# Prefix order for canonical combo strings.
MODIFIER_ORDER = (Modifier.CTRL, Modifier.ALT, Modifier.SHIFT, Modifier.META)
MODIFIER_NAMES = {
    Modifier.CTRL: "Ctrl",
    Modifier.ALT: "Alt",
    Modifier.SHIFT: "Shift",
    Modifier.META: "Meta",
}

MODIFIER_KEYS: dict[KeyIdentifier, Modifier] = {
    KeyCode.KEY_LEFTCTRL: Modifier.CTRL,
    KeyCode.KEY_RIGHTCTRL: Modifier.CTRL,
    KeyCode.KEY_LEFTALT: Modifier.ALT,
    KeyCode.KEY_RIGHTALT: Modifier.ALT,
    KeyCode.KEY_LEFTSHIFT: Modifier.SHIFT,
    KeyCode.KEY_RIGHTSHIFT: Modifier.SHIFT,
    KeyCode.KEY_LEFTMETA: Modifier.META,
    KeyCode.KEY_RIGHTMETA: Modifier.META,
}

# Some vendors report FN on a second, undocumented code.
FN_SCANCODES: tuple[KeyIdentifier, ...] = (KeyCode.KEY_FN, 480)

# Vendor and media keys: recognised, but not part of the standard typing layout.
OEM_KEYS: frozenset[KeyIdentifier] = frozenset(
    {
        KeyCode.KEY_MUTE,
        KeyCode.KEY_VOLUMEDOWN,
        KeyCode.KEY_VOLUMEUP,
        KeyCode.KEY_POWER,
        KeyCode.KEY_CALC,
        KeyCode.KEY_SLEEP,
        KeyCode.KEY_WWW,
        KeyCode.KEY_MAIL,
        KeyCode.KEY_BACK,
        KeyCode.KEY_FORWARD,
        KeyCode.KEY_EJECTCD,
        KeyCode.KEY_NEXTSONG,
        KeyCode.KEY_PLAYPAUSE,
        KeyCode.KEY_PREVIOUSSONG,
        KeyCode.KEY_STOPCD,
        KeyCode.KEY_HOMEPAGE,
        KeyCode.KEY_REFRESH,
        KeyCode.KEY_SEARCH,
        KeyCode.KEY_BRIGHTNESSDOWN,
        KeyCode.KEY_BRIGHTNESSUP,
        KeyCode.KEY_SWITCHVIDEOMODE,
        KeyCode.KEY_KBDILLUMTOGGLE,
        KeyCode.KEY_KBDILLUMDOWN,
        KeyCode.KEY_KBDILLUMUP,
        KeyCode.KEY_WLAN,
        KeyCode.KEY_MICMUTE,
        KeyCode.KEY_FN,
    }
)

STANDARD_LAYOUT: frozenset[KeyIdentifier] = frozenset(k for k in KeyCode if k not in OEM_KEYS)

_DISPLAY_NAMES = {
    KeyCode.KEY_ESC: "Esc",
    KeyCode.KEY_MINUS: "Minus",
    KeyCode.KEY_EQUAL: "Equals",
    KeyCode.KEY_LEFTBRACE: "LeftBracket",
    KeyCode.KEY_RIGHTBRACE: "RightBracket",
    KeyCode.KEY_LEFTCTRL: "LeftCtrl",
    KeyCode.KEY_RIGHTCTRL: "RightCtrl",
    KeyCode.KEY_LEFTSHIFT: "LeftShift",
    KeyCode.KEY_RIGHTSHIFT: "RightShift",
    KeyCode.KEY_LEFTALT: "LeftAlt",
    KeyCode.KEY_RIGHTALT: "RightAlt",
    KeyCode.KEY_LEFTMETA: "LeftMeta",
    KeyCode.KEY_RIGHTMETA: "RightMeta",
    KeyCode.KEY_CAPSLOCK: "CapsLock",
    KeyCode.KEY_BACKSPACE: "Backspace",
    KeyCode.KEY_PAGEUP: "PageUp",
    KeyCode.KEY_PAGEDOWN: "PageDown",
    KeyCode.KEY_DELETE: "Del",
    KeyCode.KEY_SYSRQ: "PrtSc",
    KeyCode.KEY_DOT: "Period",
    KeyCode.KEY_COMPOSE: "Menu",
    KeyCode.KEY_VOLUMEDOWN: "VolumeDown",
    KeyCode.KEY_VOLUMEUP: "VolumeUp",
    KeyCode.KEY_NEXTSONG: "NextTrack",
    KeyCode.KEY_PREVIOUSSONG: "PreviousTrack",
    KeyCode.KEY_PLAYPAUSE: "PlayPause",
    KeyCode.KEY_BRIGHTNESSDOWN: "BrightnessDown",
    KeyCode.KEY_BRIGHTNESSUP: "BrightnessUp",
    KeyCode.KEY_MICMUTE: "MicMute",
    KeyCode.KEY_FN: "Fn",
}


def key_name(key: KeyIdentifier) -> str:
    """Human-readable name for a key code; unmapped codes are rendered as hex scancodes."""
    if key in _DISPLAY_NAMES:
        return _DISPLAY_NAMES[key]
    try:
        code = KeyCode(key)
    except ValueError:
        if key in FN_SCANCODES:
            return "Fn"
        return f"0x{key:03X}"
    name = code.name.removeprefix("KEY_")
    if len(name) == 1:
        return name
    return name.capitalize()


_NAME_LOOKUP: dict[str, KeyIdentifier] = {}


def lookup_key_name(name: str) -> typing.Optional[KeyIdentifier]:
    """Inverse of key_name, case-insensitive, also accepting KeyCode member names."""
    if not _NAME_LOOKUP:
        for code in KeyCode:
            _NAME_LOOKUP[key_name(code).lower()] = code
            _NAME_LOOKUP[code.name.lower()] = code
            _NAME_LOOKUP[code.name.removeprefix("KEY_").lower()] = code
        _NAME_LOOKUP.update(
            {
                "escape": KeyCode.KEY_ESC,
                "delete": KeyCode.KEY_DELETE,
                "return": KeyCode.KEY_ENTER,
                "print": KeyCode.KEY_SYSRQ,
                "page_up": KeyCode.KEY_PAGEUP,
                "page_down": KeyCode.KEY_PAGEDOWN,
            }
        )
    return _NAME_LOOKUP.get(name.lower())


def is_modifier(key: KeyIdentifier) -> bool:
    return key in MODIFIER_KEYS


def is_fn(key: KeyIdentifier) -> bool:
    return key in FN_SCANCODES


def is_oem(key: KeyIdentifier) -> bool:
    return key in OEM_KEYS


def is_unmapped(key: KeyIdentifier) -> bool:
    "True for codes the canonical table does not name at all."
    return key not in STANDARD_LAYOUT and key not in OEM_KEYS and key not in FN_SCANCODES
