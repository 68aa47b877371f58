"""Human-readable wait times for rate limit messages."""

from __future__ import annotations

import math


def plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def seconds_until(ms: int) -> str:
    return plural(math.ceil(ms / 1000), "second")


def minutes_until(ms: int) -> str:
    return plural(math.ceil(ms / 60_000), "minute")


def format_duration(ms: int) -> str:
    """Render a wait time with the coarsest unit that keeps it readable.

    Each step rounds up so the advertised wait is never shorter than the real one.

    Examples:
        >>> format_duration(45_000)
        '45 seconds'
        >>> format_duration(300_000)
        '5 minutes'
        >>> format_duration(7_200_000)
        '2 hours'
    """

    seconds = math.ceil(ms / 1000)
    if seconds < 60:
        return plural(seconds, "second")
    minutes = math.ceil(seconds / 60)
    if minutes < 60:
        return plural(minutes, "minute")
    hours = math.ceil(minutes / 60)
    if hours < 24:
        return plural(hours, "hour")
    return plural(math.ceil(hours / 24), "day")
