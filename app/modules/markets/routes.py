from fastapi import APIRouter
from app.modules.markets.schemas import MarketStatus, HolidayListResponse
from app.modules.markets import service
from typing import Optional
from datetime import datetime, timezone

router = APIRouter(prefix="/markets", tags=["markets"])


@router.get("/status", response_model=MarketStatus)
async def market_status(market: str = "us_equities", at: Optional[datetime] = None):
    """Current (or historical) session state of a market"""
    return service.get_market_status(market, at)


@router.get("/holidays", response_model=HolidayListResponse)
async def market_holidays(year: Optional[int] = None):
    """NYSE holidays and early closes for a year"""
    return service.list_holidays(year or datetime.now(timezone.utc).year)
