"""Time sources used by the booking engine.

Every component takes a clock in its constructor so that "now" is decided in one
place. Times are naive local wall-clock datetimes, matching how slot dates and
start times are stored.
"""

from datetime import datetime, timedelta


class Clock:
    def now(self) -> datetime:
        raise NotImplementedError

    def today(self):
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now()


class FixedClock(Clock):
    """A clock frozen at a given moment until moved explicitly."""

    def __init__(self, moment: datetime):
        self._moment = moment

    def now(self) -> datetime:
        return self._moment

    def set(self, moment: datetime) -> None:
        self._moment = moment

    def advance(self, **delta) -> datetime:
        self._moment = self._moment + timedelta(**delta)
        return self._moment
