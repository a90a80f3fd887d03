async def test_sign_up_issues_welcome_coupon(client):
    response = await client.post(
        "/api/v1/profiles/",
        json={"email": "new@example.com", "username": "newbie", "full_name": "New User"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["profile"]["coin_balance"] == 0
    assert body["welcome_coupon_code"].startswith("WELCOME")

    user_id = body["profile"]["id"]
    coupons = await client.get(f"/api/v1/coupons/user/{user_id}")
    [user_coupon] = coupons.json()
    assert user_coupon["coupon"]["code"] == body["welcome_coupon_code"]
    assert user_coupon["coupon"]["discount_percentage"] == 20

    validated = await client.post(
        "/api/v1/coupons/validate",
        json={"code": body["welcome_coupon_code"].lower(), "user_id": user_id},
    )
    assert validated.status_code == 200


async def test_duplicate_sign_up(client, buyer):
    response = await client.post(
        "/api/v1/profiles/",
        json={"email": buyer.email, "username": "someone-else", "full_name": "Dup"},
    )
    assert response.status_code == 409

    response = await client.post(
        "/api/v1/profiles/",
        json={"email": "other@example.com", "username": buyer.username, "full_name": "Dup"},
    )
    assert response.status_code == 409


async def test_shop_coupons_api(client, seller):
    created = await client.post(
        f"/api/v1/coupons/shop/{seller.id}",
        json={"code": "lunch15", "discount_percentage": 15},
    )
    assert created.status_code == 201
    assert created.json()["code"] == "LUNCH15"

    response = await client.get(f"/api/v1/coupons/shop/{seller.id}")
    assert [coupon["code"] for coupon in response.json()] == ["LUNCH15"]

    bad = await client.post(
        f"/api/v1/coupons/shop/{seller.id}",
        json={"code": "FREE", "discount_percentage": 150},
    )
    assert bad.status_code == 422
