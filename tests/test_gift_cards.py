"""Tests for gift card claim and expiry."""

from datetime import datetime, timedelta, timezone

import pytest

from app.modules.gift_cards.schemas import PayoutDetails, RedemptionMethod
from app.modules.gift_cards.service import GiftCardService, missing_payout_fields

RECIPIENT = "recipient@example.com"


def make_card(**overrides):
    card = {
        "id": "card-1",
        "card_code": "GIFT-ABCD-1234",
        "card_type": "provider",
        "status": "active",
        "face_value": 50.0,
        "remaining_value": 50.0,
        "expires_at": (datetime.now(timezone.utc) + timedelta(days=30)).isoformat(),
        "provider_id": "provider-1",
        "redemption_url": "https://provider.example.com/redeem",
        "redemption_count": 0,
        "metadata": {"recipient_email": RECIPIENT},
    }
    card.update(overrides)
    return card


@pytest.fixture
def card(db):
    db.tables["ai_gift_cards"] = [make_card()]
    db.tables["ai_providers"] = [{"id": "provider-1", "name": "OpenAI"}]
    return db.tables["ai_gift_cards"][0]


def verify(client, code="GIFT-ABCD-1234", email=RECIPIENT):
    return client.post("/api/v1/gift-cards/verify", json={"card_code": code, "email": email})


def redeem(client, **body):
    payload = {"card_code": "GIFT-ABCD-1234", "email": RECIPIENT}
    payload.update(body)
    return client.post("/api/v1/gift-cards/redeem", json=payload)


def test_verify_card(client, card):
    resp = verify(client, code=" gift-abcd-1234 ", email="Recipient@Example.com")
    assert resp.status_code == 200
    data = resp.json()
    assert data["valid"] is True
    assert data["card"]["remaining_value"] == 50.0
    assert data["card"]["provider_name"] == "OpenAI"


def test_recipient_from_order(client, db):
    db.tables["ai_gift_cards"] = [make_card(metadata={}, order_id="order-1")]
    db.tables["ai_card_orders"] = [{"id": "order-1", "recipient_email": RECIPIENT}]
    assert verify(client).status_code == 200


def test_unknown_card(client, card):
    resp = verify(client, code="NOPE")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Gift card not found"}


def test_email_mismatch(client, card):
    assert verify(client, email="someone@example.com").status_code == 403


def test_invalid_email(client, card):
    assert verify(client, email="not-an-email").status_code == 400


@pytest.mark.parametrize("status,code", [
    ("cancelled", 400),
    ("pending", 400),
    ("redeemed", 409),
    ("expired", 410),
])
def test_card_status(client, db, status, code):
    db.tables["ai_gift_cards"] = [make_card(status=status)]
    assert verify(client).status_code == code


def test_expiry_marks_card_expired(client, db):
    db.tables["ai_gift_cards"] = [make_card(expires_at="2020-01-01T00:00:00Z")]
    resp = verify(client)
    assert resp.status_code == 410
    assert resp.json() == {"error": "Gift card has expired"}
    assert db.tables["ai_gift_cards"][0]["status"] == "expired"


def test_redeem_for_credits(client, db, card):
    resp = redeem(client, redemption_method="platform_credits")
    assert resp.status_code == 200
    data = resp.json()
    assert data["amount"] == 50.0
    assert data["status"] == "completed"
    assert data["redemption_url"] == "https://provider.example.com/redeem"

    stored = db.tables["ai_gift_cards"][0]
    assert stored["status"] == "redeemed"
    assert stored["remaining_value"] == 0
    assert stored["provider_credits_applied"] == 50.0
    assert stored["redemption_count"] == 1
    redemption = db.tables["ai_card_redemptions"][0]
    assert redemption["id"] == data["redemption_id"]
    assert redemption["email"] == RECIPIENT


def test_double_redeem(client, card):
    assert redeem(client).status_code == 200
    resp = redeem(client)
    assert resp.status_code == 409
    assert resp.json() == {"error": "Gift card has already been redeemed"}


def test_redeem_loses_race_to_concurrent_claim(client, db, monkeypatch):
    stale = make_card()
    db.tables["ai_gift_cards"] = [make_card(status="redeemed", remaining_value=0, redemption_count=1)]
    monkeypatch.setattr(GiftCardService, "check_card", lambda self, code, email, now=None: stale)

    resp = redeem(client, redemption_method="platform_credits")
    assert resp.status_code == 409
    assert resp.json() == {"error": "Gift card has already been redeemed"}
    assert "ai_card_redemptions" not in db.tables
    assert db.tables["ai_gift_cards"][0]["redemption_count"] == 1


def test_failed_redemption_record_restores_card(client, db, card):
    db.failing_tables.add("ai_card_redemptions")
    resp = redeem(client, redemption_method="platform_credits")
    assert resp.status_code == 500

    stored = db.tables["ai_gift_cards"][0]
    assert stored["status"] == "active"
    assert stored["remaining_value"] == 50.0
    assert stored["redemption_count"] == 0
    assert stored["redeemed_at"] is None
    assert stored["provider_credits_applied"] is None

    db.failing_tables.clear()
    assert redeem(client, redemption_method="platform_credits").status_code == 200


def test_redeem_by_paypal_is_pending(client, db, card):
    resp = redeem(client, redemption_method="paypal", payout_details={"paypalEmail": "me@example.com"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "pending"
    assert resp.json()["redemption_url"] is None
    assert db.tables["ai_card_redemptions"][0]["payout_details"] == {"paypal_email": "me@example.com"}


def test_redeem_missing_payout_details(client, db, card):
    resp = redeem(client, redemption_method="bank_deposit", payout_details={"bankAccountLast4": "12"})
    assert resp.status_code == 400
    assert "bank_account_last4" in resp.json()["error"]
    assert db.tables["ai_gift_cards"][0]["status"] == "active"


def test_missing_payout_fields():
    shipping = PayoutDetails(shipping_name="Ada", shipping_address="1 Main St", shipping_city="Springfield")
    assert missing_payout_fields(RedemptionMethod.PREPAID_CARD, shipping) == ["shipping_state", "shipping_zip"]
    bank = PayoutDetails(bank_account_last4="1234", bank_routing_last4="12a4")
    assert missing_payout_fields(RedemptionMethod.BANK_DEPOSIT, bank) == ["bank_routing_last4"]
    assert missing_payout_fields(RedemptionMethod.PLATFORM_CREDITS, PayoutDetails()) == []
