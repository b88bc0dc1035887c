from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from gradschool.config import settings


APP_TIMEZONE = settings.app_timezone or 'Asia/Manila'
APP_ZONEINFO = ZoneInfo(APP_TIMEZONE)


class TimeProvider:
    def now(self) -> datetime:
        return datetime.now(APP_ZONEINFO)

    def today(self) -> date:
        return self.now().date()

    def naive_now(self) -> datetime:
        # Columns are stored without tzinfo, in the app timezone.
        return self.now().replace(tzinfo=None)


def school_year_for(day: date, *, start_month: int | None = None) -> str:
    """Academic year label (``2025-2026``) containing ``day``."""
    first_month = int(start_month or settings.school_year_start_month or 6)
    if day.month >= first_month:
        return f'{day.year}-{day.year + 1}'
    return f'{day.year - 1}-{day.year}'


default_time_provider = TimeProvider()
