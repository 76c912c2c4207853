"""Parsing and formatting of timestamps typed or read by the operator."""

import math
import re

_CLOCK_RE = re.compile(r"^(?:(?:(\d+):)?(\d+):)?(\d+(?:\.\d*)?)$")


def format_duration(seconds: float) -> str:
    """``h:mm:ss.ff`` with hundredths, e.g. ``3723.5`` -> ``1:02:03.50``."""
    seconds = max(seconds, 0.0)
    whole = int(seconds)
    h = whole // 3600
    m = (whole % 3600) // 60
    s = whole % 60
    cs = int(round((seconds - whole) * 100))
    if cs == 100:
        # 59.999 must not render as 59.100
        return format_duration(float(whole + 1))
    return f"{h}:{m:02d}:{s:02d}.{cs:02d}"


def parse_time(text: str) -> float:
    """Parse bare seconds (``90``, ``12.5``) or ``[[hh:]mm:]ss[.frac]``.

    Raises ValueError on anything else, including negative values.
    """
    text = text.strip()
    if ":" not in text:
        try:
            value = float(text)
        except ValueError:
            raise ValueError(f"Invalid time: {text!r}") from None
        if not math.isfinite(value) or value < 0:
            raise ValueError(f"Invalid time: {text!r}")
        return value

    match = _CLOCK_RE.match(text)
    if match is None:
        raise ValueError(f"Invalid time: {text!r}")

    hours, minutes, seconds = match.groups()
    seconds = float(seconds)
    if seconds >= 60:
        raise ValueError(f"Invalid time: {text!r} (seconds must be below 60)")
    if hours is not None and int(minutes) >= 60:
        raise ValueError(f"Invalid time: {text!r} (minutes must be below 60)")

    return int(hours or 0) * 3600 + int(minutes or 0) * 60 + seconds
