"""
Shared arithmetic for worker sizing.

Both calculators turn host memory into a worker count the same way:
subtract what the OS and other services need, keep a safety buffer, and
divide what is left by the measured size of one worker. The helpers below
are the only place that arithmetic lives, so the clamping and truncation
rules stay identical across models.
"""

from __future__ import annotations

MB_PER_GB = 1024


def clamp_non_negative(value: float) -> float:
    return max(value, 0)


def round_to(value: float, digits: int = 2) -> float:
    """Round for display and downstream arithmetic (two decimals by default)."""
    return round(float(value), digits)


def available_memory_gb(total_gb: float, reserved_gb: float, buffer_percent: float) -> float:
    """Return memory left for workers, in GB, rounded to two decimals.

    available = (total - reserved) * (1 - buffer/100), clamped at zero.

    Each factor is clamped before multiplying. A buffer above 100 % drives the
    result to 0, and reserving more than the host has never turns positive
    again when the buffer also exceeds 100 %.
    """
    headroom = clamp_non_negative(float(total_gb) - float(reserved_gb))
    keep_ratio = clamp_non_negative(1.0 - float(buffer_percent) / 100.0)
    return round_to(clamp_non_negative(headroom * keep_ratio))


def gb_to_mb(value_gb: float) -> int:
    """Convert GB to whole MB, rounding to nearest."""
    return int(round(float(value_gb) * MB_PER_GB))


def integer_divide_floor(numerator: float, denominator: float) -> int:
    """Whole number of ``denominator`` units that fit in ``numerator``.

    Truncates toward zero (an integer cast, never round-to-nearest) and
    returns 0 instead of raising when ``denominator <= 0``. Negative
    quotients are clamped to 0.
    """
    if denominator <= 0:
        return 0
    quotient = int(float(numerator) / float(denominator))
    return max(quotient, 0)
