# src/padelrank/clock.py

"""The single source of "now" for the validation window and the processor.

Both the window arithmetic and the processor's waits go through a clock so
that tests can drive time by hand instead of sleeping.
"""

import asyncio
from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Time source injected into the validation services."""

    def now(self) -> datetime:
        """Returns the current time as an aware UTC datetime."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Cooperatively waits for ``seconds``."""
        ...


class SystemClock:
    """Wall-clock time backed by the running event loop."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


def ensure_aware(value: datetime) -> datetime:
    """Returns ``value`` as an aware UTC datetime.

    Naive values (as returned by SQLite) are taken to be UTC already; aware
    values in any other offset are converted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
