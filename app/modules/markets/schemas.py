from pydantic import BaseModel
from typing import Optional, List
from datetime import date, datetime
from enum import Enum


class MarketSession(str, Enum):
    PRE_MARKET = "pre_market"
    OPEN = "open"
    AFTER_HOURS = "after_hours"
    CLOSED = "closed"


class MarketStatus(BaseModel):
    market: str
    session: MarketSession
    is_open: bool
    local_time: datetime
    timezone: str
    reason: Optional[str] = None
    next_open: Optional[datetime] = None
    next_close: Optional[datetime] = None
    next_change: Optional[datetime] = None
    minutes_to_next_change: Optional[int] = None
    early_close: bool = False


class HolidayResponse(BaseModel):
    date: date
    name: str
    early_close: bool = False


class HolidayListResponse(BaseModel):
    year: int
    holidays: List[HolidayResponse]
