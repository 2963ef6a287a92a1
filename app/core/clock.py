from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

# Services take a Clock so expiry scenarios can be tested without sleeping.
Clock = Callable[[], int]


def utc_now() -> int:
    """Current time as integer Unix seconds (UTC)."""
    return int(datetime.now(UTC).timestamp())
