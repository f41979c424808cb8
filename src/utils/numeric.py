"""Small numeric helpers shared by the pixel and progress arithmetic."""

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity.

    Python's :func:`round` uses banker's rounding, which would make crop
    bounds and progress percentages flip between neighbours on exact halves.
    """
    return int(math.floor(value + 0.5))
