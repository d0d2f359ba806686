import json
import uuid
import stripe
from supabase import Client
from app.config.settings import settings
from app.core.http import require_key
from app.core.timestamps import parse_timestamp
from app.modules.payments.refunds import calculate_refund
from app.modules.payments.schemas import (
    CheckoutMode, CheckoutSessionCreate, CheckoutSessionResponse, RefundQuote,
    RefundQuoteRequest, RefundRequest, RefundResponse,
)
from typing import Any, Dict, Optional
from fastapi import HTTPException
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    @property
    def api_key(self) -> str:
        return require_key(settings.stripe_secret_key, "STRIPE_SECRET_KEY")

    def create_checkout_session(self, request: CheckoutSessionCreate, user_data: Dict[str, Any]) -> CheckoutSessionResponse:
        """Create a hosted checkout session and record it as open"""
        payment_session_id = str(uuid.uuid4())
        metadata = {**request.metadata, "user_id": user_data["id"], "payment_session_id": payment_session_id}

        if request.price_id:
            line_item = {"price": request.price_id, "quantity": request.quantity}
        else:
            line_item = {
                "price_data": {
                    "currency": settings.stripe_currency,
                    "product_data": {"name": request.product_name},
                    "unit_amount": request.amount_cents,
                },
                "quantity": request.quantity,
            }

        params: Dict[str, Any] = {
            "mode": request.mode.value,
            "line_items": [line_item],
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "metadata": metadata,
            "client_reference_id": user_data["id"],
        }
        if user_data.get("email"):
            params["customer_email"] = user_data["email"]
        if request.mode == CheckoutMode.PAYMENT:
            params["payment_intent_data"] = {"metadata": metadata}
        else:
            params["subscription_data"] = {"metadata": metadata}

        try:
            session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        except stripe.CardError as e:
            raise HTTPException(status_code=402, detail=e.user_message or str(e))
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout error: {e}")
            raise HTTPException(status_code=502, detail=e.user_message or str(e))

        try:
            self.supabase.table("payment_sessions").insert({
                "id": payment_session_id,
                "user_id": user_data["id"],
                "stripe_session_id": session.id,
                "mode": request.mode.value,
                "price_id": request.price_id,
                "amount_cents": request.amount_cents * request.quantity if request.amount_cents else None,
                "currency": settings.stripe_currency,
                "status": "open",
                "metadata": request.metadata,
            }).execute()
        except Exception as e:
            logger.error(f"Error recording checkout session: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

        logger.info(f"Checkout session {session.id} created for user {user_data['id']}")
        return CheckoutSessionResponse(session_id=session.id, url=session.url, payment_session_id=payment_session_id)

    def _get_payment(self, payment_id: str, user_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query = self.supabase.table("payments").select("*").eq("id", payment_id)
        if user_data is not None:
            query = query.eq("user_id", user_data["id"])
        result = query.maybe_single().execute()
        payment = result.data if result else None
        if not payment:
            raise HTTPException(status_code=404, detail="Payment not found")
        return payment

    def _quote(self, payment: Dict[str, Any], request: RefundQuoteRequest) -> RefundQuote:
        try:
            return calculate_refund(
                amount_paid=int(payment.get("amount_cents") or 0),
                already_refunded=int(payment.get("amount_refunded_cents") or 0),
                policy=request.policy,
                service_start=parse_timestamp(payment["service_start"]) if payment.get("service_start") else None,
                service_end=parse_timestamp(payment["service_end"]) if payment.get("service_end") else None,
                cancelled_at=parse_timestamp(request.cancelled_at) if request.cancelled_at else datetime.now(timezone.utc),
                cancellation_fee_percent=request.cancellation_fee_percent,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    def quote_refund(self, payment_id: str, request: RefundQuoteRequest, user_data: Dict[str, Any]) -> RefundQuote:
        """Quote what a refund of the caller's payment would return"""
        return self._quote(self._get_payment(payment_id, user_data), request)

    def issue_refund(self, payment_id: str, request: RefundRequest, admin_data: Dict[str, Any]) -> RefundResponse:
        payment = self._get_payment(payment_id)
        quote = self._quote(payment, request)
        if quote.refundable_cents <= 0:
            raise HTTPException(status_code=400, detail="Nothing to refund")
        if not payment.get("stripe_payment_intent_id"):
            raise HTTPException(status_code=400, detail="Payment has no payment intent to refund")

        try:
            refund = stripe.Refund.create(
                api_key=self.api_key,
                payment_intent=payment["stripe_payment_intent_id"],
                amount=quote.refundable_cents,
                metadata={"payment_id": payment_id, "issued_by": admin_data["id"], "policy": quote.policy.value},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe refund error for payment {payment_id}: {e}")
            raise HTTPException(status_code=502, detail=e.user_message or str(e))

        total_refunded = quote.already_refunded_cents + quote.refundable_cents
        payment_status = "refunded" if total_refunded >= quote.amount_paid_cents else "partially_refunded"
        self.supabase.table("payments").update({
            "amount_refunded_cents": total_refunded,
            "status": payment_status,
            "refund_reason": request.reason,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }).eq("id", payment_id).execute()

        logger.info(f"Refunded {quote.refundable_cents} cents on payment {payment_id}")
        return RefundResponse(
            refund_id=refund.id,
            payment_id=payment_id,
            amount_cents=quote.refundable_cents,
            status=refund.status or "pending",
            payment_status=payment_status,
            quote=quote,
        )

    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify a Stripe webhook delivery and apply it"""
        if not signature:
            raise HTTPException(status_code=400, detail="Missing stripe-signature header")
        secret = require_key(settings.stripe_webhook_secret, "STRIPE_WEBHOOK_SECRET")
        try:
            stripe.Webhook.construct_event(payload, signature, secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Signature verification failed: {e}")
            raise HTTPException(status_code=400, detail="Webhook signature verification failed")

        event = json.loads(payload)
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}
        logger.info(f"Stripe event received: {event_type} ({event.get('id')})")

        if event_type == "checkout.session.completed":
            result = self._on_checkout_completed(obj)
        elif event_type == "payment_intent.payment_failed":
            result = self._on_payment_failed(obj)
        elif event_type == "charge.refunded":
            result = self._on_charge_refunded(obj)
        else:
            logger.info(f"Unhandled event type: {event_type}")
            result = {}
        return {"received": True, **result}

    def _on_checkout_completed(self, session: Dict[str, Any]) -> Dict[str, Any]:
        existing = self.supabase.table("payments")\
            .select("id")\
            .eq("stripe_session_id", session.get("id"))\
            .execute()
        if existing.data:
            return {"processed": False, "reason": "already_processed"}

        metadata = session.get("metadata") or {}
        self.supabase.table("payment_sessions")\
            .update({"status": "paid"})\
            .eq("stripe_session_id", session.get("id"))\
            .execute()
        result = self.supabase.table("payments").insert({
            "user_id": metadata.get("user_id"),
            "payment_session_id": metadata.get("payment_session_id"),
            "stripe_session_id": session.get("id"),
            "stripe_payment_intent_id": session.get("payment_intent"),
            "amount_cents": session.get("amount_total") or 0,
            "amount_refunded_cents": 0,
            "currency": session.get("currency") or settings.stripe_currency,
            "service_start": metadata.get("service_start"),
            "service_end": metadata.get("service_end"),
            "status": "paid",
        }).execute()
        payment_id = result.data[0].get("id") if result.data else None
        return {"processed": True, "payment_id": payment_id}

    def _on_payment_failed(self, intent: Dict[str, Any]) -> Dict[str, Any]:
        metadata = intent.get("metadata") or {}
        payment_session_id = metadata.get("payment_session_id")
        if not payment_session_id:
            return {"processed": False, "reason": "no_payment_session"}
        error = (intent.get("last_payment_error") or {}).get("message")
        self.supabase.table("payment_sessions")\
            .update({"status": "failed", "last_error": error})\
            .eq("id", payment_session_id)\
            .execute()
        return {"processed": True, "payment_session_id": payment_session_id}

    def _on_charge_refunded(self, charge: Dict[str, Any]) -> Dict[str, Any]:
        intent_id = charge.get("payment_intent")
        if not intent_id:
            return {"processed": False, "reason": "no_payment_intent"}
        amount_refunded = int(charge.get("amount_refunded") or 0)
        status = "refunded" if amount_refunded >= int(charge.get("amount") or 0) else "partially_refunded"
        updated = self.supabase.table("payments")\
            .update({"amount_refunded_cents": amount_refunded, "status": status})\
            .eq("stripe_payment_intent_id", intent_id)\
            .execute()
        if not updated.data:
            return {"processed": False, "reason": "payment_not_found"}
        return {"processed": True, "status": status}
