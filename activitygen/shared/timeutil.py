import calendar
from datetime import datetime, timedelta


def start_of_month(t: datetime) -> datetime:
    return t.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def end_of_month(t: datetime) -> datetime:
    """Last representable instant of the month containing ``t``."""
    start = start_of_month(t)
    if start.month == 12:
        nxt = start.replace(year=start.year + 1, month=1)
    else:
        nxt = start.replace(month=start.month + 1)
    return nxt - timedelta(microseconds=1)


def months_previous_to(months: int, t: datetime) -> datetime:
    """Shift ``t`` back by whole calendar months, clamping the day."""
    total = t.year * 12 + (t.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    day = min(t.day, calendar.monthrange(year, month)[1])
    return t.replace(year=year, month=month, day=day)
