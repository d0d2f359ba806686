from fastapi import APIRouter, Depends
from app.database.supabase_client import get_service_supabase
from app.modules.gift_cards.schemas import (
    VerifyCardRequest, VerifyCardResponse, RedeemCardRequest, RedeemCardResponse
)
from app.modules.gift_cards.service import GiftCardService
from supabase import Client

router = APIRouter(prefix="/gift-cards", tags=["gift-cards"])


def get_gift_card_service(supabase: Client = Depends(get_service_supabase)) -> GiftCardService:
    return GiftCardService(supabase)


@router.post("/verify", response_model=VerifyCardResponse)
async def verify_gift_card(
    request: VerifyCardRequest,
    service: GiftCardService = Depends(get_gift_card_service)
):
    """Check that a card code and recipient email can be redeemed"""
    return service.verify_card(request.card_code, request.email)


@router.post("/redeem", response_model=RedeemCardResponse)
async def redeem_gift_card(
    request: RedeemCardRequest,
    service: GiftCardService = Depends(get_gift_card_service)
):
    """Redeem the remaining value of a card"""
    return service.redeem_card(request)
