"""
Market-hours status for the trading UI.

US equities follow the NYSE day (pre-market 04:00, open 09:30, close 16:00,
after-hours until 20:00, all America/New_York). Early-close days end the
regular session at 13:00 and after-hours at 17:00. Forex trades from Sunday
17:00 to Friday 17:00 New York time. Crypto never closes.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from fastapi import HTTPException

from app.modules.markets.calendar import early_close, full_holiday, holidays_for_year, is_trading_day
from app.modules.markets.schemas import HolidayListResponse, HolidayResponse, MarketSession, MarketStatus

EASTERN = ZoneInfo("America/New_York")

PRE_MARKET_START = time(4, 0)
REGULAR_OPEN = time(9, 30)
REGULAR_CLOSE = time(16, 0)
EARLY_CLOSE = time(13, 0)
AFTER_HOURS_END = time(20, 0)
EARLY_AFTER_HOURS_END = time(17, 0)
FOREX_ROLLOVER = time(17, 0)

SUPPORTED_MARKETS = ("us_equities", "forex", "crypto")


def _at(day: date, t: time) -> datetime:
    return datetime.combine(day, t, tzinfo=EASTERN)


def _to_local(at: datetime) -> datetime:
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return at.astimezone(EASTERN)


def _minutes_until(start: datetime, end: Optional[datetime]) -> Optional[int]:
    if end is None:
        return None
    # Aware datetimes in one zone subtract as wall-clock time
    elapsed = end.astimezone(timezone.utc) - start.astimezone(timezone.utc)
    return max(0, int(elapsed.total_seconds() // 60))


def _next_trading_day(day: date) -> date:
    day += timedelta(days=1)
    while not is_trading_day(day):
        day += timedelta(days=1)
    return day


def _regular_close(day: date) -> datetime:
    return _at(day, EARLY_CLOSE if early_close(day) else REGULAR_CLOSE)


def _session_boundaries(day: date) -> List[Tuple[datetime, MarketSession]]:
    """Start time of each session on a trading day, in order"""
    after_end = EARLY_AFTER_HOURS_END if early_close(day) else AFTER_HOURS_END
    return [
        (_at(day, PRE_MARKET_START), MarketSession.PRE_MARKET),
        (_at(day, REGULAR_OPEN), MarketSession.OPEN),
        (_regular_close(day), MarketSession.AFTER_HOURS),
        (_at(day, after_end), MarketSession.CLOSED),
    ]


def next_regular_open(at: datetime) -> datetime:
    local = _to_local(at)
    day = local.date()
    if is_trading_day(day) and local < _at(day, REGULAR_OPEN):
        return _at(day, REGULAR_OPEN)
    return _at(_next_trading_day(day), REGULAR_OPEN)


def next_regular_close(at: datetime) -> datetime:
    local = _to_local(at)
    day = local.date()
    if is_trading_day(day) and local < _regular_close(day):
        return _regular_close(day)
    return _regular_close(_next_trading_day(day))


def _us_equities_status(local: datetime) -> MarketStatus:
    day = local.date()
    is_early = early_close(day) is not None

    if not is_trading_day(day):
        holiday = full_holiday(day)
        reason = f"holiday: {holiday.name}" if holiday else "weekend"
        session = MarketSession.CLOSED
        next_change = _at(_next_trading_day(day), PRE_MARKET_START)
    else:
        session = MarketSession.CLOSED
        next_change = None
        for start, boundary_session in _session_boundaries(day):
            if local >= start:
                session = boundary_session
            else:
                next_change = start
                break
        if next_change is None:
            next_change = _at(_next_trading_day(day), PRE_MARKET_START)

        if session == MarketSession.CLOSED:
            reason = "before pre-market" if local.time() < PRE_MARKET_START else "after-hours ended"
        elif is_early:
            reason = f"early close: {early_close(day).name}"
        else:
            reason = None

    return MarketStatus(
        market="us_equities",
        session=session,
        is_open=session == MarketSession.OPEN,
        local_time=local,
        timezone=str(EASTERN),
        reason=reason,
        next_open=next_regular_open(local),
        next_close=next_regular_close(local),
        next_change=next_change,
        minutes_to_next_change=_minutes_until(local, next_change),
        early_close=is_early and is_trading_day(day),
    )


def _forex_status(local: datetime) -> MarketStatus:
    day = local.date()
    weekday = local.weekday()
    after_rollover = local.time() >= FOREX_ROLLOVER

    closed = weekday == 5 or (weekday == 6 and not after_rollover) or (weekday == 4 and after_rollover)
    if closed:
        next_open = _at(day + timedelta(days=(6 - weekday) % 7), FOREX_ROLLOVER)
        next_close = _at(next_open.date() + timedelta(days=5), FOREX_ROLLOVER)
        session, next_change, reason = MarketSession.CLOSED, next_open, "weekend"
    else:
        next_close = _at(day + timedelta(days=(4 - weekday) % 7), FOREX_ROLLOVER)
        next_open = _at(next_close.date() + timedelta(days=2), FOREX_ROLLOVER)
        session, next_change, reason = MarketSession.OPEN, next_close, None

    return MarketStatus(
        market="forex",
        session=session,
        is_open=session == MarketSession.OPEN,
        local_time=local,
        timezone=str(EASTERN),
        reason=reason,
        next_open=next_open,
        next_close=next_close,
        next_change=next_change,
        minutes_to_next_change=_minutes_until(local, next_change),
    )


def get_market_status(market: str = "us_equities", at: Optional[datetime] = None) -> MarketStatus:
    """Session state of a market at a point in time (now when omitted; naive times are UTC)"""
    if at is None:
        at = datetime.now(timezone.utc)
    market = (market or "us_equities").lower()

    if market == "us_equities":
        return _us_equities_status(_to_local(at))
    if market == "forex":
        return _forex_status(_to_local(at))
    if market == "crypto":
        utc_time = at.replace(tzinfo=timezone.utc) if at.tzinfo is None else at.astimezone(timezone.utc)
        return MarketStatus(
            market="crypto",
            session=MarketSession.OPEN,
            is_open=True,
            local_time=utc_time,
            timezone="UTC",
        )
    raise HTTPException(
        status_code=400,
        detail=f"Unknown market: {market}. Supported: {', '.join(SUPPORTED_MARKETS)}"
    )


def list_holidays(year: int) -> HolidayListResponse:
    if year < 2000 or year > 2100:
        raise HTTPException(status_code=400, detail="Year must be between 2000 and 2100")
    return HolidayListResponse(
        year=year,
        holidays=[HolidayResponse(date=h.day, name=h.name, early_close=h.early_close) for h in holidays_for_year(year)],
    )
