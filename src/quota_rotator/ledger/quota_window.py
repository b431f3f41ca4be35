"""
Daily quota window arithmetic.

A quota window starts every day at `daily_reset_hour` in an explicit IANA
timezone and lasts until the same hour on the next day. The window is
identified by the calendar date on which it started, so a moment before the
reset hour still belongs to the previous day's window.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from quota_rotator.models.credential_models import GlobalSettings


@dataclass(frozen=True)
class QuotaWindow:
    """Reset hour plus reference timezone of the daily quota window."""

    reset_hour: int
    tz: ZoneInfo

    @classmethod
    def from_settings(cls, global_settings: GlobalSettings) -> "QuotaWindow":
        return cls(
            reset_hour=global_settings.daily_reset_hour,
            tz=ZoneInfo(global_settings.reset_timezone),
        )

    def _localize(self, moment: datetime) -> datetime:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(self.tz)

    def window_date(self, moment: datetime) -> date:
        """Date identifying the quota window that contains `moment`."""
        local = self._localize(moment)
        return (local - timedelta(hours=self.reset_hour)).date()

    def next_reset(self, moment: datetime) -> datetime:
        """First reset instant strictly after `moment` (in the window timezone)."""
        reset_day = self.window_date(moment) + timedelta(days=1)
        return datetime.combine(reset_day, time(self.reset_hour), tzinfo=self.tz)

    def seconds_until_reset(self, moment: datetime) -> float:
        # Subtract in UTC; same-zone subtraction ignores DST transitions
        reset = self.next_reset(moment).astimezone(timezone.utc)
        now = self._localize(moment).astimezone(timezone.utc)
        return max(0.0, (reset - now).total_seconds())
