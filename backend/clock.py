"""Injectable source of "now" and "today" in the configured server timezone."""

from datetime import datetime

import pytz


class Clock:
    def __init__(self, tz_name='Europe/Berlin'):
        try:
            self.tz = pytz.timezone(tz_name or 'UTC')
        except pytz.UnknownTimeZoneError:
            self.tz = pytz.UTC

    def now(self):
        return datetime.now(self.tz)

    def utcnow(self):
        """Naive UTC timestamp, the form instants are stored in."""
        return self.now().astimezone(pytz.UTC).replace(tzinfo=None)

    def today(self):
        return self.now().date()


class FixedClock(Clock):
    """Clock pinned to one instant; naive values are read as local time."""

    def __init__(self, fixed, tz_name='Europe/Berlin'):
        super().__init__(tz_name)
        self.set(fixed)

    def set(self, fixed):
        if fixed.tzinfo is None:
            fixed = self.tz.localize(fixed)
        self.fixed = fixed

    def now(self):
        return self.fixed.astimezone(self.tz)
