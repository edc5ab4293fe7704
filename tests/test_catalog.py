from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import status


@pytest.mark.asyncio
async def test_banners_fill_placeholder_and_default_order(client, db):
    await db.banners.insert_many([
        {"title": "Diwali offer", "image": "/uploads/diwali.png", "position": "homepage_top", "isActive": True, "sortOrder": 2},
        {"title": "No image", "position": "homepage_top", "isActive": True},
        {"title": "Sidebar", "imageUrl": "/uploads/side.png", "position": "sidebar", "isActive": True, "sortOrder": 1},
        {"title": "Old", "imageUrl": "/uploads/old.png", "position": "homepage_top", "isActive": False, "sortOrder": 0},
    ])

    response = await client.get("/api/banners?active=true&position=homepage_top")

    banners = response.json()["data"]
    assert [b["title"] for b in banners] == ["Diwali offer", "No image"]
    assert banners[0]["imageUrl"] == "/uploads/diwali.png"
    assert banners[1]["imageUrl"] == "/uploads/placeholder.svg"
    assert banners[1]["sortOrder"] == 999

@pytest.mark.asyncio
async def test_admin_banner_and_package_crud(client, db, as_admin):
    banner = await client.post("/api/admin/banners", json={"title": "Monsoon sale", "imageUrl": "/b.png"})
    assert banner.status_code == status.HTTP_201_CREATED
    banner_id = banner.json()["data"]["_id"]
    updated = await client.put(f"/api/admin/banners/{banner_id}", json={"isActive": False})
    assert updated.json()["data"]["isActive"] is False
    assert (await client.delete(f"/api/admin/banners/{banner_id}")).status_code == status.HTTP_200_OK
    assert (await client.delete(f"/api/admin/banners/{banner_id}")).status_code == status.HTTP_404_NOT_FOUND

    package = await client.post("/api/admin/packages", json={"name": "Featured 30", "type": "featured", "price": 499, "duration": 30})
    assert package.status_code == status.HTTP_201_CREATED
    package_id = package.json()["data"]["_id"]
    await client.post("/api/admin/packages", json={"name": "Basic", "price": 99, "duration": 7})

    public = await client.get("/api/packages")
    assert [p["name"] for p in public.json()["data"]] == ["Basic", "Featured 30"]

    await client.put(f"/api/admin/packages/{package_id}", json={"isActive": False})
    public = await client.get("/api/packages")
    assert [p["name"] for p in public.json()["data"]] == ["Basic"]

    bad = await client.put("/api/admin/packages/nope", json={"isActive": True})
    assert bad.status_code == status.HTTP_400_BAD_REQUEST

@pytest.mark.asyncio
async def test_admin_users_hide_passwords(client, db, as_admin):
    result = await db.users.insert_one(
        {"name": "Ravi", "email": "ravi@example.com", "userType": "seller", "password": "$2b$10$hash", "status": "active"}
    )

    listing = await client.get("/api/admin/users?userType=seller&search=ravi")
    users = listing.json()["data"]["users"]
    assert len(users) == 1
    assert "password" not in users[0]

    suspended = await client.put(f"/api/admin/users/{result.inserted_id}/status", json={"status": "suspended"})
    assert suspended.json()["data"]["status"] == "suspended"
    assert "password" not in suspended.json()["data"]

    missing = await client.put("/api/admin/users/507f1f77bcf86cd799439011/status", json={"status": "active"})
    assert missing.status_code == status.HTTP_404_NOT_FOUND

@pytest.mark.asyncio
async def test_ping(client):
    response = await client.get("/api/ping")
    body = response.json()
    assert response.status_code == status.HTTP_200_OK
    assert body["message"] == "pong"
    assert body["db"] in ("connected", "failed")

@pytest.mark.asyncio
@patch("marketplace.routers.health.Redis")
async def test_health_reports_checks(mock_redis, client):
    redis = MagicMock()
    redis.ping = AsyncMock(return_value=True)
    redis.aclose = AsyncMock()
    mock_redis.from_url.return_value = redis

    response = await client.get("/api/health")

    body = response.json()
    assert body["checks"]["redis"] == "ok"
    assert "database" in body["checks"]
    assert body["status"] in ("ok", "degraded")
    assert body["environment"]
    assert body["uptime"] >= 0
