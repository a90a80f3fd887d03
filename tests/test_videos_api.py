import pytest_asyncio

from localys.models import Video


@pytest_asyncio.fixture
async def video(db, seller, shop):
    video = Video(user_id=seller.id, business_id=shop.id, caption="Best pho in town", video_url="https://cdn.test/v1.mp4")
    db.add(video)
    await db.commit()
    await db.refresh(video)
    return video


async def test_create_video(client, seller, shop):
    response = await client.post(
        "/api/v1/videos",
        json={"user_id": seller.id, "business_id": shop.id, "video_url": "https://cdn.test/v2.mp4"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["boost_value"] == 1.0
    assert body["view_count"] == 0


async def test_record_view(client, video):
    await client.post(f"/api/v1/videos/{video.id}/views")
    response = await client.post(f"/api/v1/videos/{video.id}/views")
    assert response.json() == {"video_id": video.id, "view_count": 2}

    response = await client.post("/api/v1/videos/999/views")
    assert response.status_code == 404


async def test_promote_video(client, db, video, seller):
    response = await client.post(f"/api/v1/videos/{video.id}/promote", json={"user_id": seller.id, "coins": 200})
    assert response.status_code == 200
    body = response.json()
    assert body["coin_balance"] == 300
    assert body["promotion"]["previous_boost"] == 1.0
    assert body["promotion"]["new_boost"] == 3.0

    await db.refresh(video)
    assert video.boost_value == 3.0
    assert video.coins_spent_on_promotion == 200
    assert video.last_promoted_at is not None


async def test_promote_with_insufficient_coins(client, db, video, seller):
    response = await client.post(f"/api/v1/videos/{video.id}/promote", json={"user_id": seller.id, "coins": 501})
    assert response.status_code == 400
    assert response.json()["detail"] == "Insufficient coins"

    await db.refresh(seller)
    assert seller.coin_balance == 500


async def test_only_owner_can_promote(client, video, buyer):
    response = await client.post(f"/api/v1/videos/{video.id}/promote", json={"user_id": buyer.id, "coins": 10})
    assert response.status_code == 403


async def test_promote_requires_positive_coins(client, video, seller):
    response = await client.post(f"/api/v1/videos/{video.id}/promote", json={"user_id": seller.id, "coins": 0})
    assert response.status_code == 422


async def test_coin_balance_and_credit(client, buyer):
    response = await client.get(f"/api/v1/users/{buyer.id}/coins")
    assert response.json() == {"user_id": buyer.id, "coin_balance": 0}

    response = await client.post(f"/api/v1/users/{buyer.id}/coins", json={"amount": 150})
    assert response.json()["coin_balance"] == 150

    response = await client.post(f"/api/v1/users/{buyer.id}/coins", json={"amount": -5})
    assert response.status_code == 422


async def test_analytics_summary(client, video, seller):
    for _ in range(3):
        await client.post(f"/api/v1/videos/{video.id}/views")
    await client.post(f"/api/v1/videos/{video.id}/promote", json={"user_id": seller.id, "coins": 100})
    await client.post(f"/api/v1/videos/{video.id}/promote", json={"user_id": seller.id, "coins": 20})

    response = await client.get(f"/api/v1/users/{seller.id}/analytics")
    assert response.json() == {
        "total_coins_spent": 120,
        "total_views": 3,
        "views_per_coin": 0.0,
        "current_balance": 380,
        "total_promotions": 2,
        "total_videos_promoted": 1,
    }

    history = await client.get(f"/api/v1/users/{seller.id}/promotions")
    assert [p["coins_spent"] for p in history.json()] == [20, 100]
