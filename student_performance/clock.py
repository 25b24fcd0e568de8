"""Wall-clock provider, injectable for deterministic tests."""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the way the database stores it."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
