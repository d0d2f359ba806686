from supabase import Client
from app.core.timestamps import parse_timestamp
from app.modules.gift_cards.schemas import (
    CardStatus, CardSummary, PayoutDetails, RedeemCardRequest, RedeemCardResponse,
    RedemptionMethod, VerifyCardResponse,
)
from typing import Any, Dict, List, Optional
from fastapi import HTTPException
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

REQUIRED_PAYOUT_FIELDS = {
    RedemptionMethod.PLATFORM_CREDITS: [],
    RedemptionMethod.PREPAID_CARD: ["shipping_name", "shipping_address", "shipping_city", "shipping_state", "shipping_zip"],
    RedemptionMethod.BANK_DEPOSIT: ["bank_account_last4", "bank_routing_last4"],
    RedemptionMethod.PAYPAL: ["paypal_email"],
    RedemptionMethod.VENMO: ["venmo_handle"],
}


def missing_payout_fields(method: RedemptionMethod, details: PayoutDetails) -> List[str]:
    missing = [f for f in REQUIRED_PAYOUT_FIELDS[method] if not (getattr(details, f) or "").strip()]
    for field in ("bank_account_last4", "bank_routing_last4"):
        if field in REQUIRED_PAYOUT_FIELDS[method] and field not in missing:
            value = getattr(details, field).strip()
            if len(value) != 4 or not value.isdigit():
                missing.append(field)
    return missing


class GiftCardService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _get_card(self, card_code: str) -> Dict[str, Any]:
        result = self.supabase.table("ai_gift_cards")\
            .select("*")\
            .eq("card_code", card_code.strip().upper())\
            .maybe_single()\
            .execute()
        card = result.data if result else None
        if not card:
            raise HTTPException(status_code=404, detail="Gift card not found")
        return card

    def _recipient_email(self, card: Dict[str, Any]) -> Optional[str]:
        email = (card.get("metadata") or {}).get("recipient_email")
        if email:
            return email
        if not card.get("order_id"):
            return None
        result = self.supabase.table("ai_card_orders")\
            .select("recipient_email")\
            .eq("id", card["order_id"])\
            .maybe_single()\
            .execute()
        order = result.data if result else None
        return order.get("recipient_email") if order else None

    def _provider_name(self, card: Dict[str, Any]) -> Optional[str]:
        if not card.get("provider_id"):
            return None
        try:
            result = self.supabase.table("ai_providers")\
                .select("name")\
                .eq("id", card["provider_id"])\
                .maybe_single()\
                .execute()
            provider = result.data if result else None
            return provider.get("name") if provider else None
        except Exception as e:
            logger.warning(f"Could not load provider for card {card.get('id')}: {e}")
            return None

    def check_card(self, card_code: str, email: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Return the card row if it can be claimed by this email right now"""
        now = now or datetime.now(timezone.utc)
        card = self._get_card(card_code)

        recipient = self._recipient_email(card)
        if not recipient or recipient.strip().lower() != email.strip().lower():
            raise HTTPException(status_code=403, detail="Email does not match the gift card recipient")

        status = card.get("status")
        if status == CardStatus.CANCELLED.value:
            raise HTTPException(status_code=400, detail="Gift card has been cancelled")
        if status == CardStatus.PENDING.value:
            raise HTTPException(status_code=400, detail="Gift card is not yet activated")
        if status == CardStatus.REDEEMED.value or float(card.get("remaining_value") or 0) <= 0:
            raise HTTPException(status_code=409, detail="Gift card has already been redeemed")
        if status == CardStatus.EXPIRED.value:
            raise HTTPException(status_code=410, detail="Gift card has expired")

        if parse_timestamp(card["expires_at"]) <= now:
            self.supabase.table("ai_gift_cards")\
                .update({"status": CardStatus.EXPIRED.value, "updated_at": now.isoformat()})\
                .eq("id", card["id"])\
                .execute()
            logger.info(f"Gift card {card['id']} expired at {card['expires_at']}")
            raise HTTPException(status_code=410, detail="Gift card has expired")
        return card

    def verify_card(self, card_code: str, email: str, now: Optional[datetime] = None) -> VerifyCardResponse:
        card = self.check_card(card_code, email, now)
        return VerifyCardResponse(card=CardSummary(
            id=card["id"],
            card_code=card["card_code"],
            card_type=card.get("card_type"),
            status=card["status"],
            face_value=card["face_value"],
            remaining_value=card["remaining_value"],
            expires_at=parse_timestamp(card["expires_at"]),
            provider_id=card.get("provider_id"),
            provider_name=self._provider_name(card),
            redemption_url=card.get("redemption_url"),
        ))

    def _restore_card(self, card: Dict[str, Any], redeemed_at: datetime, is_credits: bool) -> None:
        """Put a card claimed by this request back to active"""
        restore = {
            "status": CardStatus.ACTIVE.value,
            "remaining_value": card["remaining_value"],
            "redeemed_at": card.get("redeemed_at"),
            "redemption_count": card.get("redemption_count") or 0,
        }
        if is_credits:
            restore["provider_credits_applied"] = card.get("provider_credits_applied")
        try:
            self.supabase.table("ai_gift_cards")\
                .update(restore)\
                .eq("id", card["id"])\
                .eq("status", CardStatus.REDEEMED.value)\
                .eq("redeemed_at", redeemed_at.isoformat())\
                .execute()
            logger.info(f"Gift card {card['id']} restored to active after failed redemption")
        except Exception as e:
            logger.error(f"Could not restore gift card {card['id']}: {str(e)}")

    def redeem_card(self, request: RedeemCardRequest, now: Optional[datetime] = None) -> RedeemCardResponse:
        """Claim the full remaining value of an active card"""
        now = now or datetime.now(timezone.utc)
        card = self.check_card(request.card_code, request.email, now)

        missing = missing_payout_fields(request.redemption_method, request.payout_details)
        if missing:
            raise HTTPException(status_code=400, detail=f"Missing or invalid payout details: {', '.join(missing)}")

        amount = float(card["remaining_value"])
        is_credits = request.redemption_method == RedemptionMethod.PLATFORM_CREDITS
        update_data = {
            "status": CardStatus.REDEEMED.value,
            "remaining_value": 0,
            "redeemed_at": now.isoformat(),
            "last_activity_at": now.isoformat(),
            "redemption_count": (card.get("redemption_count") or 0) + 1,
        }
        if is_credits:
            update_data["provider_credits_applied"] = amount

        # Guarded on status so two concurrent claims cannot both succeed
        updated = self.supabase.table("ai_gift_cards")\
            .update(update_data)\
            .eq("id", card["id"])\
            .eq("status", CardStatus.ACTIVE.value)\
            .execute()
        if not updated.data:
            raise HTTPException(status_code=409, detail="Gift card has already been redeemed")

        redemption_status = "completed" if is_credits else "pending"
        try:
            result = self.supabase.table("ai_card_redemptions").insert({
                "card_id": card["id"],
                "email": request.email.lower(),
                "amount": amount,
                "redemption_method": request.redemption_method.value,
                "payout_details": request.payout_details.model_dump(exclude_none=True),
                "status": redemption_status,
            }).execute()
        except Exception as e:
            logger.error(f"Error recording redemption for card {card['id']}: {str(e)}")
            self._restore_card(card, now, is_credits)
            raise HTTPException(status_code=500, detail=str(e))

        redemption_id = result.data[0].get("id") if result.data else None
        logger.info(f"Gift card {card['id']} redeemed for {amount} via {request.redemption_method.value}")
        return RedeemCardResponse(
            redemption_id=redemption_id,
            amount=amount,
            method=request.redemption_method,
            status=redemption_status,
            redemption_url=card.get("redemption_url") if is_credits else None,
        )
