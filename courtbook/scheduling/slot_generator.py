"""
Candidate start times and the rolling booking window.

Base start times run every hour from the configured first to last start
hour, inclusive (07:00 to 22:00 by default). On the current day only
hours that have not begun yet are offered. The list is rebuilt on every
call because the cutoff moves with the wall clock.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from courtbook.config import ScheduleConfig, settings
from courtbook.errors import OutOfRangeError
from courtbook.scheduling.time_interval import format_minutes

logger = logging.getLogger(__name__)


def base_start_times(config: Optional[ScheduleConfig] = None) -> list[str]:
    """All hourly start times of a day, in chronological order."""
    config = config or settings.schedule
    return [
        format_minutes(hour * 60)
        for hour in range(config.first_start_hour, config.last_start_hour + 1)
    ]


def generate_start_times(
    target_date: date, now: datetime, config: Optional[ScheduleConfig] = None
) -> list[str]:
    """
    Start times still selectable on ``target_date`` as seen at ``now``.

    When ``target_date`` is today, any start whose hour is less than or
    equal to the current hour is dropped: at 14:00 or 14:59 the 14:00 slot
    has already begun and only 15:00 onwards remain. Other days return
    every base time. The date is not range-checked here; see
    :func:`ensure_in_window`.
    """
    times = base_start_times(config)
    if target_date != now.date():
        return times
    remaining = [t for t in times if int(t[:2]) > now.hour]
    logger.debug(
        "Today cutoff at hour %d keeps %d of %d start times", now.hour, len(remaining), len(times)
    )
    return remaining


def booking_window(today: date, days: Optional[int] = None) -> list[date]:
    """Selectable dates, starting with ``today``."""
    if days is None:
        days = settings.schedule.booking_window_days
    return [today + timedelta(days=offset) for offset in range(days)]


def ensure_in_window(target_date: date, today: date, days: Optional[int] = None) -> date:
    """Return ``target_date`` unchanged or raise OutOfRangeError when it is not selectable."""
    window = booking_window(today, days)
    if target_date < window[0] or target_date > window[-1]:
        raise OutOfRangeError(
            f"{target_date.isoformat()} is outside the booking window "
            f"{window[0].isoformat()} to {window[-1].isoformat()}"
        )
    return target_date
