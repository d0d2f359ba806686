from fastapi import APIRouter, Depends, Request
from app.database.supabase_client import get_service_supabase
from app.modules.payments.schemas import (
    CheckoutSessionCreate, CheckoutSessionResponse, RefundQuote, RefundQuoteRequest,
    RefundRequest, RefundResponse,
)
from app.modules.payments.service import PaymentService
from app.core.dependencies import get_current_user, require_admin
from supabase import Client
from typing import Any, Dict

router = APIRouter(prefix="/payments", tags=["payments"])


def get_payment_service(supabase: Client = Depends(get_service_supabase)) -> PaymentService:
    return PaymentService(supabase)


@router.post("/checkout", response_model=CheckoutSessionResponse, status_code=201)
def create_checkout(
    request: CheckoutSessionCreate,
    user_data: Dict = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """Create a checkout session for the caller"""
    return service.create_checkout_session(request, user_data)


@router.post("/{payment_id}/refund-quote", response_model=RefundQuote)
async def quote_refund(
    payment_id: str,
    request: RefundQuoteRequest,
    user_data: Dict = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """Refund amount the caller would receive for one of their payments"""
    return service.quote_refund(payment_id, request, user_data)


@router.post("/{payment_id}/refund", response_model=RefundResponse)
def issue_refund(
    payment_id: str,
    request: RefundRequest,
    admin_data: Dict = Depends(require_admin),
    service: PaymentService = Depends(get_payment_service)
):
    """Issue the quoted refund through Stripe (admin only)"""
    return service.issue_refund(payment_id, request, admin_data)


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    service: PaymentService = Depends(get_payment_service)
) -> Dict[str, Any]:
    """Stripe event delivery"""
    payload = await request.body()
    return service.handle_webhook(payload, request.headers.get("stripe-signature"))
