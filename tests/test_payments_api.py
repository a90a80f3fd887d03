import json

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from localys.core.dependencies import get_stripe_service
from localys.enums import OrderStatus
from localys.exceptions import PaymentProviderException
from localys import app
from localys.models import CoinPurchase, Coupon, ItemPurchase, Profile, UserCoupon
from localys.routers import payments as payments_router
from localys.services.stripe_service import StripeService
from localys.utils.verification import generate_token

from .conftest import checkout_completed_event, sign_webhook


def checkout_item(menu_item, seller, buyer, **overrides):
    item = {
        "itemId": menu_item.id,
        "itemName": menu_item.item_name,
        "itemPrice": menu_item.price,
        "sellerId": seller.id,
        "buyerId": buyer.id,
    }
    item.update(overrides)
    return item


async def post_webhook(client, session):
    payload = checkout_completed_event(session)
    return await client.post(
        "/api/v1/payments/webhooks/stripe",
        content=payload,
        headers={"stripe-signature": sign_webhook(payload), "content-type": "application/json"},
    )


async def item_purchases(db):
    result = await db.execute(select(ItemPurchase).execution_options(populate_existing=True))
    return result.scalars().all()


async def test_item_checkout_creates_pending_order(client, db, fake_stripe, menu_item, seller, buyer):
    response = await client.post(
        "/api/v1/payments/checkout-item",
        json={"items": [checkout_item(menu_item, seller, buyer)]},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["session_id"] == "cs_test_1"
    assert body["url"].startswith("https://checkout.stripe.test/")

    created = fake_stripe.created[0]
    assert created["line_items"][0]["price_data"]["unit_amount"] == 2500
    assert created["metadata"]["checkoutType"] == "items"
    assert created["metadata"]["itemId"] == str(menu_item.id)
    assert created["success_url"].endswith("/purchase-success?session_id={CHECKOUT_SESSION_ID}")
    assert created["cancel_url"].endswith(f"/profile/{seller.id}?canceled=true")

    [order] = await item_purchases(db)
    assert order.status == OrderStatus.PENDING
    assert order.stripe_session_id == "cs_test_1"
    assert order.verification_token is None


async def test_item_checkout_missing_fields(client, menu_item, seller, buyer):
    response = await client.post(
        "/api/v1/payments/checkout-item",
        json={"items": [checkout_item(menu_item, seller, buyer, sellerId=None)]},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Missing required fields"

    response = await client.post("/api/v1/payments/checkout-item", json={"items": []})
    assert response.status_code == 400


async def test_item_checkout_without_stripe(client, menu_item, seller, buyer):
    app.dependency_overrides[get_stripe_service] = lambda: StripeService(secret_key="", webhook_secret="")

    response = await client.post(
        "/api/v1/payments/checkout-item",
        json={"items": [checkout_item(menu_item, seller, buyer)]},
    )
    assert response.status_code == 500
    assert response.json()["detail"] == "Payment system not configured"


async def test_item_checkout_with_coupon(client, db, fake_stripe, menu_item, seller, buyer):
    coupon = Coupon(code="SAVE20", discount_percentage=20, created_by=seller.id)
    db.add(coupon)
    await db.commit()

    response = await client.post(
        "/api/v1/payments/checkout-item",
        json={"items": [checkout_item(menu_item, seller, buyer)], "couponCode": "save20"},
    )
    assert response.status_code == 200
    assert fake_stripe.created[0]["line_items"][0]["price_data"]["unit_amount"] == 2000
    assert fake_stripe.created[0]["metadata"]["couponCode"] == "SAVE20"

    [order] = await item_purchases(db)
    assert order.price == 20.0
    assert order.original_price == 25.0
    assert order.coupon_code == "SAVE20"

    await db.refresh(coupon)
    assert coupon.used_count == 1


async def test_item_checkout_with_used_up_coupon(client, db, menu_item, seller, buyer):
    db.add(Coupon(code="ONCE", discount_percentage=50, max_uses=1, used_count=1))
    await db.commit()

    response = await client.post(
        "/api/v1/payments/checkout-item",
        json={"items": [checkout_item(menu_item, seller, buyer)], "couponCode": "ONCE"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Coupon has reached maximum uses"
    assert await item_purchases(db) == []


async def test_item_checkout_rejects_repeated_item(client, db, fake_stripe, menu_item, seller, buyer):
    line = checkout_item(menu_item, seller, buyer)

    response = await client.post("/api/v1/payments/checkout-item", json={"items": [line, dict(line)]})
    assert response.status_code == 400
    assert response.json()["detail"] == "Each item can only appear once in a checkout"
    assert fake_stripe.created == []
    assert await item_purchases(db) == []


async def test_item_checkout_with_another_shops_coupon(client, db, fake_stripe, menu_item, seller, buyer):
    rival = Profile(email="rival@example.com", username="rival", full_name="Rita Rival")
    db.add(rival)
    await db.flush()
    coupon = Coupon(code="RIVAL30", discount_percentage=30, created_by=rival.id)
    db.add(coupon)
    await db.commit()

    response = await client.post(
        "/api/v1/payments/checkout-item",
        json={"items": [checkout_item(menu_item, seller, buyer)], "couponCode": "RIVAL30"},
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Coupon is not valid for this shop"
    assert fake_stripe.created == []

    await db.refresh(coupon)
    assert coupon.used_count == 0


async def test_item_checkout_with_global_coupon(client, fake_stripe, menu_item, seller, buyer, db):
    db.add(Coupon(code="EVERYONE10", discount_percentage=10))
    await db.commit()

    response = await client.post(
        "/api/v1/payments/checkout-item",
        json={"items": [checkout_item(menu_item, seller, buyer)], "couponCode": "EVERYONE10"},
    )
    assert response.status_code == 200
    assert fake_stripe.created[0]["line_items"][0]["price_data"]["unit_amount"] == 2250


async def test_item_checkout_with_someone_elses_welcome_coupon(client, db, fake_stripe, menu_item, seller, buyer):
    coupon = Coupon(code="WELCOMESELLER", discount_percentage=20, created_by=seller.id)
    db.add(coupon)
    await db.flush()
    db.add(UserCoupon(user_id=seller.id, coupon_id=coupon.id))
    await db.commit()

    response = await client.post(
        "/api/v1/payments/checkout-item",
        json={"items": [checkout_item(menu_item, seller, buyer)], "couponCode": "WELCOMESELLER"},
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "You do not have access to this coupon"
    assert fake_stripe.created == []


async def test_item_checkout_with_own_welcome_coupon_once(client, db, fake_stripe, menu_item, seller, buyer):
    coupon = Coupon(code="WELCOMEBUYER", discount_percentage=20, created_by=buyer.id)
    db.add(coupon)
    await db.flush()
    user_coupon = UserCoupon(user_id=buyer.id, coupon_id=coupon.id)
    db.add(user_coupon)
    await db.commit()

    response = await client.post(
        "/api/v1/payments/checkout-item",
        json={"items": [checkout_item(menu_item, seller, buyer)], "couponCode": "WELCOMEBUYER"},
    )
    assert response.status_code == 200
    assert fake_stripe.created[0]["line_items"][0]["price_data"]["unit_amount"] == 2000

    await db.refresh(user_coupon)
    assert user_coupon.is_used is True

    again = await client.post(
        "/api/v1/payments/checkout-item",
        json={"items": [checkout_item(menu_item, seller, buyer)], "couponCode": "WELCOMEBUYER"},
    )
    assert again.status_code == 400
    assert again.json()["detail"] == "You have already used this coupon"
    assert len(fake_stripe.created) == 1


async def test_webhook_marks_items_paid_once(client, db, fake_stripe, menu_item, seller, buyer):
    await client.post("/api/v1/payments/checkout-item", json={"items": [checkout_item(menu_item, seller, buyer)]})
    session = fake_stripe.mark_paid("cs_test_1")

    response = await post_webhook(client, session)
    assert response.status_code == 200
    assert response.json() == {"received": True, "processed": True}

    [order] = await item_purchases(db)
    assert order.status == OrderStatus.PAID
    assert order.verification_token == generate_token(str(order.id))

    duplicate = await post_webhook(client, session)
    assert duplicate.json() == {"received": True, "processed": False}
    assert len(await item_purchases(db)) == 1


async def test_webhook_records_item_from_metadata(client, db, menu_item, seller, buyer):
    session = {
        "id": "cs_direct",
        "payment_status": "paid",
        "metadata": {
            "itemId": str(menu_item.id),
            "itemName": "Beef Pho",
            "itemPrice": "25.0",
            "sellerId": str(seller.id),
            "buyerId": str(buyer.id),
        },
    }

    response = await post_webhook(client, session)
    assert response.json()["processed"] is True

    [order] = await item_purchases(db)
    assert order.status == OrderStatus.PAID
    assert order.buyer_id == buyer.id
    assert order.verification_token == generate_token(str(order.id))


async def test_webhook_ignores_unpaid_and_other_events(client, fake_stripe, menu_item, seller, buyer):
    await client.post("/api/v1/payments/checkout-item", json={"items": [checkout_item(menu_item, seller, buyer)]})

    response = await post_webhook(client, fake_stripe.sessions["cs_test_1"])
    assert response.json() == {"received": True, "processed": False}

    payload = json.dumps({"id": "evt_x", "type": "payment_intent.created", "data": {"object": {}}}).encode()
    response = await client.post(
        "/api/v1/payments/webhooks/stripe",
        content=payload,
        headers={"stripe-signature": sign_webhook(payload)},
    )
    assert response.json() == {"received": True, "processed": False}


async def test_webhook_rejects_bad_signature(client):
    payload = checkout_completed_event({"id": "cs_x", "payment_status": "paid", "metadata": {}})

    response = await client.post(
        "/api/v1/payments/webhooks/stripe",
        content=payload,
        headers={"stripe-signature": sign_webhook(payload, secret="whsec_wrong")},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid signature"

    response = await client.post("/api/v1/payments/webhooks/stripe", content=payload)
    assert response.status_code == 400
    assert response.json()["detail"] == "Missing stripe signature"


async def test_coin_purchase_credited_once(client, db, fake_stripe, buyer):
    response = await client.post("/api/v1/payments/checkout-coins", json={"packageId": "starter", "userId": buyer.id})
    assert response.status_code == 200
    assert fake_stripe.created[0]["line_items"][0]["price_data"]["unit_amount"] == 1000
    assert fake_stripe.created[0]["metadata"]["coins"] == "1000"

    session = fake_stripe.mark_paid("cs_test_1")
    first = await post_webhook(client, session)
    assert first.json()["processed"] is True

    second = await post_webhook(client, session)
    assert second.json()["processed"] is False

    confirm = await client.get("/api/v1/payments/verify-purchase", params={"session_id": "cs_test_1"})
    assert confirm.status_code == 200
    assert confirm.json()["already_processed"] is True
    assert confirm.json()["new_balance"] == 1000

    await db.refresh(buyer)
    assert buyer.coin_balance == 1000
    purchases = (await db.execute(select(CoinPurchase))).scalars().all()
    assert len(purchases) == 1


async def test_coin_confirmation_credits_when_webhook_is_late(client, db, fake_stripe, buyer):
    await client.post("/api/v1/payments/checkout-coins", json={"packageId": "pro", "userId": buyer.id})

    unpaid = await client.get("/api/v1/payments/verify-purchase", params={"session_id": "cs_test_1"})
    assert unpaid.status_code == 400

    fake_stripe.mark_paid("cs_test_1")
    confirm = await client.get("/api/v1/payments/verify-purchase", params={"session_id": "cs_test_1"})
    assert confirm.json() == {"success": True, "coins_added": 2500, "new_balance": 2500, "already_processed": False}


async def test_coin_checkout_unknown_package(client, buyer):
    response = await client.post("/api/v1/payments/checkout-coins", json={"packageId": "mega", "userId": buyer.id})
    assert response.status_code == 400


async def test_coin_checkout_with_welcome_coupon(client, db, fake_stripe, buyer):
    coupon = Coupon(code="WELCOMEABC123", discount_percentage=20, created_by=buyer.id)
    db.add(coupon)
    await db.flush()
    db.add(UserCoupon(user_id=buyer.id, coupon_id=coupon.id))
    await db.commit()

    response = await client.post(
        "/api/v1/payments/checkout-coins",
        json={"packageId": "starter", "userId": buyer.id, "couponCode": "WELCOMEABC123"},
    )
    assert response.status_code == 200
    assert fake_stripe.created[0]["line_items"][0]["price_data"]["unit_amount"] == 800

    again = await client.post(
        "/api/v1/payments/checkout-coins",
        json={"packageId": "starter", "userId": buyer.id, "couponCode": "WELCOMEABC123"},
    )
    assert again.status_code == 400
    assert again.json()["detail"] == "You have already used this coupon"


async def test_item_confirmation_is_optimistic(client, fake_stripe, menu_item, seller, buyer):
    response = await client.post("/api/v1/payments/verify-item-purchase", json={"sessionId": "cs_unknown"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert len(body["confirmation_number"]) > 8
    assert body["orders"] == []

    await client.post("/api/v1/payments/checkout-item", json={"items": [checkout_item(menu_item, seller, buyer)]})
    fake_stripe.mark_paid("cs_test_1")

    response = await client.post("/api/v1/payments/verify-item-purchase", json={"sessionId": "cs_test_1"})
    [order] = response.json()["orders"]
    assert order["status"] == "paid"
    assert order["verification_token"] == generate_token(str(order["id"]))


async def test_coin_packages(client):
    response = await client.get("/api/v1/payments/coin-packages")
    assert [package["id"] for package in response.json()] == ["starter", "pro", "premium"]


async def test_item_confirmation_without_body(client):
    response = await client.post("/api/v1/payments/verify-item-purchase")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Order confirmed"
    assert body["orders"] == []


async def test_item_confirmation_when_stripe_fails(client, fake_stripe, monkeypatch):
    async def unreachable(session_id):
        raise PaymentProviderException("Network error calling Stripe")

    monkeypatch.setattr(fake_stripe, "retrieve_checkout_session", unreachable)

    response = await client.post("/api/v1/payments/verify-item-purchase", json={"sessionId": "cs_test_1"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Order confirmed - will be processed"
    assert body["orders"] == []


async def test_item_confirmation_when_storage_fails(client, db, fake_stripe, menu_item, seller, buyer, monkeypatch):
    await client.post("/api/v1/payments/checkout-item", json={"items": [checkout_item(menu_item, seller, buyer)]})
    fake_stripe.mark_paid("cs_test_1")

    async def broken(session, db):
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(payments_router.payment_service, "mark_items_paid", broken)

    response = await client.post("/api/v1/payments/verify-item-purchase", json={"sessionId": "cs_test_1"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Order confirmed - will be processed"

    [order] = await item_purchases(db)
    assert order.status == OrderStatus.PENDING
