import time
import uuid


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def random_suffix() -> str:
    return uuid.uuid4().hex[:12]


class MonotonicIds:
    """Timestamp-based ids that never repeat within one process.

    Two ids requested in the same millisecond get consecutive numbers.
    """

    def __init__(self):
        self._last = 0

    def next(self, prefix: str, ts: int) -> str:
        value = max(ts, self._last + 1)
        self._last = value
        return f"{prefix}-{value}"
