"""Convert integer microsecond durations to and from strings, using a format based on Go's Duration format."""
import decimal

from .util import maybe_int

UNIT_MICROS = {
    "us": 1,
    "ms": 1_000,
    "s": 1_000_000,
    "m": 60_000_000,
    "h": 3_600_000_000,
}

# Longest suffix first, so "ms" is not read as "m" followed by junk.
_PARSE_ORDER = sorted(UNIT_MICROS, key=len, reverse=True)


def format_micros(val: int) -> str:
    """Render a microsecond count in the single most readable unit.

    Values under a millisecond stay in microseconds, values under a second are given as
    (possibly fractional) milliseconds, and anything longer is broken into hours, minutes
    and fractional seconds.
    """
    if val == 0:
        return "0"

    parts = []
    if val < 0:
        parts.append("-")
        val = -val

    if val < UNIT_MICROS["ms"]:
        parts.append(str(val))
        parts.append("us")
    elif val < UNIT_MICROS["s"]:
        parts.append(str(maybe_int(val / UNIT_MICROS["ms"])))
        parts.append("ms")
    else:
        hours, val = divmod(val, UNIT_MICROS["h"])
        if hours > 0:
            parts.append(f"{hours}h")
        minutes, val = divmod(val, UNIT_MICROS["m"])
        if minutes > 0:
            parts.append(f"{minutes}m")
        if val > 0:
            parts.append(str(maybe_int(val / UNIT_MICROS["s"])))
            parts.append("s")

    return "".join(parts)


def format_millis(val: float, places: int = 2) -> str:
    "Format a float millisecond value for metric rows."
    return f"{val:.{places}f}ms"


def parse_micros(val: str) -> int:
    sign = 1
    if val.startswith("-"):
        sign = -1
        val = val[1:]
    elif val.startswith("+"):
        val = val[1:]
    if len(val) == 0:
        raise ValueError("Empty duration string")
    if val == "0":
        return 0

    accum = decimal.Decimal(0)
    while len(val) > 0:
        numberpart = ""
        while len(val) > 0 and (val[0].isdigit() or val[0] == "."):
            numberpart += val[0]
            val = val[1:]
        if len(numberpart) == 0:
            raise ValueError("Invalid duration string; expected number")
        if not numberpart[0].isdigit():
            raise ValueError("Invalid duration string; expected leading digit")
        if len(val) == 0:
            raise ValueError("Invalid duration string; expected unit")
        for unitstr in _PARSE_ORDER:
            if val.startswith(unitstr):
                accum += decimal.Decimal(numberpart) * UNIT_MICROS[unitstr]
                val = val[len(unitstr) :]
                break
        else:
            raise ValueError("Invalid duration string; expected unit")

    if accum != accum.to_integral_value():
        raise ValueError("Invalid duration string; finer than one microsecond")
    return sign * int(accum)
