import pytest_asyncio

from localys.enums import OrderStatus
from localys.models import CoinPurchase, ItemPurchase
from localys.utils.verification import generate_token


async def add_order(db, menu_item, seller, buyer, status=OrderStatus.PAID):
    order = ItemPurchase(
        item_id=menu_item.id,
        seller_id=seller.id,
        buyer_id=buyer.id,
        item_name=menu_item.item_name,
        price=menu_item.price,
        status=status,
    )
    db.add(order)
    await db.flush()
    if status != OrderStatus.PENDING:
        order.verification_token = generate_token(str(order.id))
    await db.commit()
    await db.refresh(order)
    return order


@pytest_asyncio.fixture
async def paid_order(db, menu_item, seller, buyer):
    return await add_order(db, menu_item, seller, buyer)


async def test_verify_order(client, paid_order):
    response = await client.get(
        "/api/v1/orders/verify",
        params={"id": paid_order.id, "token": paid_order.verification_token},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == paid_order.id
    assert body["status"] == "paid"
    assert body["item_name"] == "Beef Pho"


async def test_verify_order_bad_token(client, paid_order):
    response = await client.get("/api/v1/orders/verify", params={"id": paid_order.id, "token": "0" * 64})
    assert response.status_code == 403
    assert response.json()["detail"] == "Invalid verification token"


async def test_verify_order_missing_params(client, paid_order):
    response = await client.get("/api/v1/orders/verify", params={"id": paid_order.id})
    assert response.status_code == 400
    assert response.json()["detail"] == "Missing orderId or token"


async def test_verify_unknown_order(client):
    response = await client.get("/api/v1/orders/verify", params={"id": 999, "token": generate_token("999")})
    assert response.status_code == 404


async def test_complete_order_once(client, db, paid_order):
    payload = {"orderId": paid_order.id, "token": paid_order.verification_token}

    first = await client.post("/api/v1/orders/complete", json=payload)
    assert first.status_code == 200
    assert first.json()["success"] is True
    assert first.json()["order"]["status"] == "completed"

    second = await client.post("/api/v1/orders/complete", json=payload)
    assert second.status_code == 409
    assert second.json()["detail"] == "Order already completed"

    await db.refresh(paid_order)
    assert paid_order.status == OrderStatus.COMPLETED


async def test_complete_requires_paid_order(client, db, menu_item, seller, buyer):
    pending = await add_order(db, menu_item, seller, buyer, status=OrderStatus.PENDING)

    response = await client.post(
        "/api/v1/orders/complete",
        json={"orderId": pending.id, "token": generate_token(str(pending.id))},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Order status is 'pending', expected 'paid'"


async def test_complete_with_wrong_token(client, paid_order):
    response = await client.post(
        "/api/v1/orders/complete",
        json={"orderId": paid_order.id, "token": generate_token(str(paid_order.id + 1))},
    )
    assert response.status_code == 403


async def test_qr_code_for_buyer(client, paid_order, buyer):
    response = await client.get(f"/api/v1/orders/{paid_order.id}/qr", params={"buyer_id": buyer.id})
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content.startswith(b"\x89PNG")

    url_response = await client.get(f"/api/v1/orders/{paid_order.id}/qr-url", params={"buyer_id": buyer.id})
    url = url_response.json()["url"]
    assert f"/orders/verify?id={paid_order.id}&token={paid_order.verification_token}" in url


async def test_qr_code_only_for_own_paid_orders(client, db, paid_order, seller, menu_item, buyer):
    response = await client.get(f"/api/v1/orders/{paid_order.id}/qr", params={"buyer_id": seller.id})
    assert response.status_code == 403

    pending = await add_order(db, menu_item, seller, buyer, status=OrderStatus.PENDING)
    response = await client.get(f"/api/v1/orders/{pending.id}/qr-url", params={"buyer_id": buyer.id})
    assert response.status_code == 400


async def test_order_history(client, db, paid_order, buyer):
    db.add(CoinPurchase(user_id=buyer.id, coins=1000, amount_cents=1000, stripe_session_id="cs_coins"))
    await db.commit()

    response = await client.get(f"/api/v1/orders/history/{buyer.id}")
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    kinds = sorted(order["kind"] for order in body["orders"])
    assert kinds == ["coin_purchase", "item_purchase"]

    item = next(order for order in body["orders"] if order["kind"] == "item_purchase")
    assert item["verification_token"] == paid_order.verification_token


async def test_seller_sales(client, db, paid_order, menu_item, seller, buyer):
    await add_order(db, menu_item, seller, buyer, status=OrderStatus.PENDING)

    response = await client.get(f"/api/v1/orders/sales/{seller.id}", params={"status": "paid"})
    assert response.status_code == 200
    assert [sale["id"] for sale in response.json()] == [paid_order.id]

    response = await client.get(f"/api/v1/orders/sales/{seller.id}")
    assert len(response.json()) == 2
