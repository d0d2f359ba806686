from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime
from enum import Enum


class CardStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REDEEMED = "redeemed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class RedemptionMethod(str, Enum):
    PLATFORM_CREDITS = "platform_credits"
    PREPAID_CARD = "prepaid_card"
    BANK_DEPOSIT = "bank_deposit"
    PAYPAL = "paypal"
    VENMO = "venmo"


class PayoutDetails(BaseModel):
    # Accepts both snake_case and the camelCase the redeem page sends
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    shipping_name: Optional[str] = None
    shipping_address: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_state: Optional[str] = None
    shipping_zip: Optional[str] = None
    bank_account_last4: Optional[str] = None
    bank_routing_last4: Optional[str] = None
    paypal_email: Optional[str] = None
    venmo_handle: Optional[str] = None


class VerifyCardRequest(BaseModel):
    card_code: str
    email: EmailStr


class RedeemCardRequest(VerifyCardRequest):
    redemption_method: RedemptionMethod = RedemptionMethod.PLATFORM_CREDITS
    payout_details: PayoutDetails = PayoutDetails()


class CardSummary(BaseModel):
    id: str
    card_code: str
    card_type: Optional[str] = None
    status: str
    face_value: float
    remaining_value: float
    expires_at: datetime
    provider_id: Optional[str] = None
    provider_name: Optional[str] = None
    redemption_url: Optional[str] = None


class VerifyCardResponse(BaseModel):
    valid: bool = True
    card: CardSummary


class RedeemCardResponse(BaseModel):
    success: bool = True
    redemption_id: Optional[str] = None
    amount: float
    method: RedemptionMethod
    status: str
    redemption_url: Optional[str] = None
