"""Tests for the market-hours calculator and NYSE calendar."""

from datetime import date, datetime, timezone

import pytest
from fastapi import HTTPException

from app.modules.markets.calendar import easter_sunday, early_close, full_holiday, holidays_for_year, is_trading_day
from app.modules.markets.schemas import MarketSession
from app.modules.markets.service import get_market_status, list_holidays


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.mark.parametrize("year,expected", [
    (2000, date(2000, 4, 23)),
    (2019, date(2019, 4, 21)),
    (2024, date(2024, 3, 31)),
    (2025, date(2025, 4, 20)),
])
def test_easter(year, expected):
    assert easter_sunday(year) == expected


def test_holidays_2024():
    holidays = holidays_for_year(2024)
    full = {h.day: h.name for h in holidays if not h.early_close}
    early = {h.day for h in holidays if h.early_close}
    assert full == {
        date(2024, 1, 1): "New Year's Day",
        date(2024, 1, 15): "Martin Luther King Jr. Day",
        date(2024, 2, 19): "Washington's Birthday",
        date(2024, 3, 29): "Good Friday",
        date(2024, 5, 27): "Memorial Day",
        date(2024, 6, 19): "Juneteenth",
        date(2024, 7, 4): "Independence Day",
        date(2024, 9, 2): "Labor Day",
        date(2024, 11, 28): "Thanksgiving Day",
        date(2024, 12, 25): "Christmas Day",
    }
    assert early == {date(2024, 7, 3), date(2024, 11, 29), date(2024, 12, 24)}


def test_observance_rules():
    # Saturday New Year's Day is not moved to Friday
    assert full_holiday(date(2021, 12, 31)) is None
    assert not any(h.name == "New Year's Day" for h in holidays_for_year(2022))
    # Sunday holidays move to Monday
    assert full_holiday(date(2022, 6, 20)).name == "Juneteenth"
    assert full_holiday(date(2022, 12, 26)).name == "Christmas Day"
    # Saturday Independence Day is observed Friday, which is then not an early close
    assert full_holiday(date(2026, 7, 3)).name == "Independence Day"
    assert early_close(date(2026, 7, 3)) is None
    # No Juneteenth before 2022
    assert not any(h.name == "Juneteenth" for h in holidays_for_year(2021))
    # Christmas Eve on a Saturday is no early close
    assert early_close(date(2022, 12, 24)) is None


def test_is_trading_day():
    assert is_trading_day(date(2024, 3, 13))
    assert not is_trading_day(date(2024, 3, 16))
    assert not is_trading_day(date(2024, 3, 29))
    assert is_trading_day(date(2024, 11, 29))


def test_regular_session_during_dst():
    status = get_market_status("us_equities", utc(2024, 3, 13, 14, 0))
    assert status.session == MarketSession.OPEN
    assert status.is_open
    assert status.local_time.hour == 10
    assert status.next_close == utc(2024, 3, 13, 20, 0)
    assert status.minutes_to_next_change == 360
    assert status.reason is None


def test_same_utc_time_is_pre_market_in_winter():
    status = get_market_status("us_equities", utc(2024, 1, 10, 14, 0))
    assert status.session == MarketSession.PRE_MARKET
    assert not status.is_open
    assert status.next_change == utc(2024, 1, 10, 14, 30)
    assert status.minutes_to_next_change == 30


def test_before_pre_market():
    status = get_market_status("us_equities", utc(2024, 1, 10, 8, 0))
    assert status.session == MarketSession.CLOSED
    assert status.reason == "before pre-market"
    assert status.next_change == utc(2024, 1, 10, 9, 0)


def test_after_hours_skips_holiday_monday():
    # Friday 16:00 ET before MLK day
    status = get_market_status("us_equities", utc(2024, 1, 12, 21, 0))
    assert status.session == MarketSession.AFTER_HOURS
    assert status.next_open == utc(2024, 1, 16, 14, 30)


def test_weekend():
    status = get_market_status("us_equities", utc(2024, 3, 16, 15, 0))
    assert status.session == MarketSession.CLOSED
    assert status.reason == "weekend"
    assert status.next_open == utc(2024, 3, 18, 13, 30)


def test_holiday():
    status = get_market_status("us_equities", utc(2024, 12, 25, 15, 0))
    assert status.reason == "holiday: Christmas Day"
    assert not status.is_open


def test_early_close_day():
    open_status = get_market_status("us_equities", utc(2024, 11, 29, 17, 30))
    assert open_status.session == MarketSession.OPEN
    assert open_status.early_close
    assert open_status.reason == "early close: Day after Thanksgiving"
    assert open_status.next_close == utc(2024, 11, 29, 18, 0)

    after = get_market_status("us_equities", utc(2024, 11, 29, 18, 30))
    assert after.session == MarketSession.AFTER_HOURS

    closed = get_market_status("us_equities", utc(2024, 11, 29, 22, 30))
    assert closed.session == MarketSession.CLOSED
    assert closed.reason == "after-hours ended"


def test_naive_time_is_utc():
    assert get_market_status("us_equities", datetime(2024, 3, 13, 14, 0)).is_open


def test_forex_week():
    assert get_market_status("forex", utc(2024, 1, 13, 12, 0)).session == MarketSession.CLOSED

    sunday_open = get_market_status("forex", utc(2024, 1, 14, 22, 30))
    assert sunday_open.is_open
    assert sunday_open.next_close == utc(2024, 1, 19, 22, 0)

    friday_close = get_market_status("forex", utc(2024, 1, 12, 22, 30))
    assert not friday_close.is_open
    assert friday_close.next_open == utc(2024, 1, 14, 22, 0)



def test_minutes_to_next_change_across_spring_forward():
    # Saturday before the 2024-03-10 DST switch; the clocks lose an hour on Sunday
    saturday = utc(2024, 3, 9, 17, 0)

    equities = get_market_status("us_equities", saturday)
    assert equities.next_change == utc(2024, 3, 11, 8, 0)
    assert equities.minutes_to_next_change == 2340

    forex = get_market_status("forex", saturday)
    assert forex.next_change == utc(2024, 3, 10, 21, 0)
    assert forex.minutes_to_next_change == 1680


def test_crypto_always_open():
    status = get_market_status("crypto", utc(2024, 12, 25, 3, 0))
    assert status.is_open
    assert status.timezone == "UTC"


def test_unknown_market():
    with pytest.raises(HTTPException) as exc:
        get_market_status("nasdaq")
    assert exc.value.status_code == 400


def test_list_holidays_bounds():
    assert list_holidays(2024).year == 2024
    with pytest.raises(HTTPException):
        list_holidays(1999)


def test_status_route(client):
    resp = client.get("/api/v1/markets/status", params={"market": "us_equities", "at": "2024-03-13T14:00:00Z"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["session"] == "open"
    assert data["timezone"] == "America/New_York"


def test_status_route_unknown_market(client):
    resp = client.get("/api/v1/markets/status", params={"market": "nasdaq"})
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Unknown market: nasdaq")


def test_holidays_route(client):
    resp = client.get("/api/v1/markets/holidays", params={"year": 2024})
    assert resp.status_code == 200
    assert len(resp.json()["holidays"]) == 13
