# mission/util/timeutil.py
from __future__ import annotations

import time


def now_ms() -> int:
    """Wall clock in epoch milliseconds (the unit every stored timestamp uses)."""
    return int(time.time() * 1000)


def minutes_to_ms(minutes: float) -> int:
    return int(minutes * 60 * 1000)
