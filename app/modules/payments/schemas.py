from pydantic import BaseModel, Field, model_validator
from typing import Optional, Dict
from datetime import datetime
from enum import Enum


class CheckoutMode(str, Enum):
    PAYMENT = "payment"
    SUBSCRIPTION = "subscription"


class RefundPolicy(str, Enum):
    FULL = "full"
    PRORATED = "prorated"
    NONE = "none"


class CheckoutSessionCreate(BaseModel):
    price_id: Optional[str] = None
    amount_cents: Optional[int] = Field(default=None, gt=0)
    product_name: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    mode: CheckoutMode = CheckoutMode.PAYMENT
    success_url: str
    cancel_url: str
    metadata: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def require_price_or_amount(self):
        if not self.price_id and not (self.amount_cents and self.product_name):
            raise ValueError("Either price_id or amount_cents with product_name must be set")
        if self.price_id and self.amount_cents:
            raise ValueError("Cannot set both price_id and amount_cents")
        if self.mode == CheckoutMode.SUBSCRIPTION and not self.price_id:
            raise ValueError("Subscriptions require a price_id")
        return self


class CheckoutSessionResponse(BaseModel):
    session_id: str
    url: Optional[str] = None
    payment_session_id: str


class RefundQuoteRequest(BaseModel):
    policy: RefundPolicy = RefundPolicy.FULL
    cancelled_at: Optional[datetime] = None
    cancellation_fee_percent: float = Field(default=0, ge=0, le=100)


class RefundRequest(RefundQuoteRequest):
    reason: Optional[str] = None


class RefundQuote(BaseModel):
    policy: RefundPolicy
    amount_paid_cents: int
    already_refunded_cents: int
    gross_refund_cents: int
    fee_cents: int
    refundable_cents: int
    unused_ratio: float


class RefundResponse(BaseModel):
    refund_id: str
    payment_id: str
    amount_cents: int
    status: str
    payment_status: str
    quote: RefundQuote
