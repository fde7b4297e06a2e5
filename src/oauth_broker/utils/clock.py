"""Wall-clock helpers.

All broker timestamps are integer milliseconds since the Unix epoch.
Components accept a ``Clock`` so tests can pin time.
"""

import time
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """Current server time in epoch milliseconds."""
    return time.time_ns() // 1_000_000
