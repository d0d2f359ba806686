"""NYSE holiday and early-close calendar, computed from the exchange's observance rules."""
from datetime import date, timedelta
from functools import lru_cache
from typing import Dict, List, NamedTuple


class Holiday(NamedTuple):
    day: date
    name: str
    early_close: bool = False


def _nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (n - 1))


def _last_weekday(year: int, month: int, weekday: int) -> date:
    if month == 12:
        last = date(year, 12, 31)
    else:
        last = date(year, month + 1, 1) - timedelta(days=1)
    return last - timedelta(days=(last.weekday() - weekday) % 7)


def easter_sunday(year: int) -> date:
    # Anonymous Gregorian algorithm
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


def _observed(day: date) -> date:
    """Saturday holidays move to Friday, Sunday holidays to Monday"""
    if day.weekday() == 5:
        return day - timedelta(days=1)
    if day.weekday() == 6:
        return day + timedelta(days=1)
    return day


@lru_cache(maxsize=32)
def holidays_for_year(year: int) -> List[Holiday]:
    holidays = []

    # A Saturday New Year's Day is not observed on the preceding Friday
    new_year = date(year, 1, 1)
    if new_year.weekday() != 5:
        holidays.append(Holiday(_observed(new_year), "New Year's Day"))

    holidays.append(Holiday(_nth_weekday(year, 1, 0, 3), "Martin Luther King Jr. Day"))
    holidays.append(Holiday(_nth_weekday(year, 2, 0, 3), "Washington's Birthday"))
    holidays.append(Holiday(easter_sunday(year) - timedelta(days=2), "Good Friday"))
    holidays.append(Holiday(_last_weekday(year, 5, 0), "Memorial Day"))
    if year >= 2022:
        holidays.append(Holiday(_observed(date(year, 6, 19)), "Juneteenth"))
    independence = _observed(date(year, 7, 4))
    holidays.append(Holiday(independence, "Independence Day"))
    holidays.append(Holiday(_nth_weekday(year, 9, 0, 1), "Labor Day"))
    thanksgiving = _nth_weekday(year, 11, 3, 4)
    holidays.append(Holiday(thanksgiving, "Thanksgiving Day"))
    christmas = _observed(date(year, 12, 25))
    holidays.append(Holiday(christmas, "Christmas Day"))

    full_days = {h.day for h in holidays}
    early = [
        (date(year, 7, 3), "Independence Day Eve"),
        (thanksgiving + timedelta(days=1), "Day after Thanksgiving"),
        (date(year, 12, 24), "Christmas Eve"),
    ]
    for day, name in early:
        if day.weekday() < 5 and day not in full_days:
            holidays.append(Holiday(day, name, early_close=True))

    return sorted(holidays, key=lambda h: h.day)


def _index(year: int) -> Dict[date, Holiday]:
    return {h.day: h for h in holidays_for_year(year)}


def full_holiday(day: date):
    holiday = _index(day.year).get(day)
    if holiday and not holiday.early_close:
        return holiday
    return None


def early_close(day: date):
    holiday = _index(day.year).get(day)
    if holiday and holiday.early_close:
        return holiday
    return None


def is_trading_day(day: date) -> bool:
    return day.weekday() < 5 and full_holiday(day) is None
