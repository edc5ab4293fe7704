from datetime import datetime, timedelta

import pytest
from fastapi import status


async def _seed(db):
    now = datetime(2024, 6, 1)
    result = await db.properties.insert_many([
        {"title": "Old flat", "price": 3000000, "propertyType": "buy", "ownerId": "seller-1",
         "status": "active", "approvalStatus": "approved", "createdAt": now - timedelta(days=3)},
        {"title": "Premium villa", "price": 9000000, "propertyType": "buy", "ownerId": "seller-1",
         "status": "active", "approvalStatus": "approved", "premium": True, "featured": True, "createdAt": now - timedelta(days=5)},
        {"title": "New shop", "price": 1500000, "propertyType": "commercial", "ownerId": "seller-2",
         "status": "active", "approvalStatus": "approved", "featured": True, "createdAt": now},
        {"title": "Pending plot", "price": 500000, "propertyType": "buy", "ownerId": "seller-1",
         "status": "active", "approvalStatus": "pending", "createdAt": now},
        {"title": "Retired house", "price": 700000, "propertyType": "buy", "ownerId": "seller-1",
         "status": "inactive", "approvalStatus": "approved", "createdAt": now},
    ])
    return result.inserted_ids

@pytest.mark.asyncio
async def test_public_listing_only_shows_approved_active(client, db):
    await _seed(db)

    response = await client.get("/api/properties")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert [p["title"] for p in data["properties"]] == ["Premium villa", "New shop", "Old flat"]
    assert data["pagination"] == {"page": 1, "limit": 20, "total": 3, "pages": 1}

@pytest.mark.asyncio
async def test_listing_filters(client, db):
    await _seed(db)

    response = await client.get("/api/properties?propertyType=buy&maxPrice=5000000")
    assert [p["title"] for p in response.json()["data"]["properties"]] == ["Old flat"]

    invalid = await client.get("/api/properties?minPrice=10&maxPrice=5")
    assert invalid.status_code == status.HTTP_400_BAD_REQUEST

@pytest.mark.asyncio
async def test_featured(client, db):
    await _seed(db)
    response = await client.get("/api/properties/featured")
    assert [p["title"] for p in response.json()["data"]] == ["Premium villa", "New shop"]

@pytest.mark.asyncio
async def test_pending_listing_hidden_from_public_but_visible_to_owner(client, db, login):
    ids = await _seed(db)
    pending_id = str(ids[3])

    login({"id": "buyer-1", "userType": "buyer"})
    assert (await client.get(f"/api/properties/{pending_id}")).status_code == status.HTTP_404_NOT_FOUND

    login({"id": "seller-1", "userType": "seller"})
    response = await client.get(f"/api/properties/{pending_id}")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["data"]["title"] == "Pending plot"

@pytest.mark.asyncio
async def test_buyer_cannot_post(client, as_buyer):
    response = await client.post("/api/properties", json={"title": "My flat", "price": 100, "propertyType": "buy"})
    assert response.status_code == status.HTTP_403_FORBIDDEN

@pytest.mark.asyncio
async def test_seller_creates_then_edit_resets_approval(client, db, as_seller):
    created = await client.post("/api/properties", json={"title": "Corner plot", "price": 800000, "propertyType": "buy"})
    assert created.status_code == status.HTTP_201_CREATED
    property_id = created.json()["data"]["_id"]
    assert created.json()["data"]["approvalStatus"] == "pending"

    await db.properties.update_one({"title": "Corner plot"}, {"$set": {"approvalStatus": "approved"}})
    updated = await client.put(f"/api/properties/{property_id}", json={"price": 750000})
    assert updated.json()["data"]["price"] == 750000
    assert updated.json()["data"]["approvalStatus"] == "pending"

    mine = await client.get("/api/user/properties")
    assert [p["title"] for p in mine.json()["data"]] == ["Corner plot"]

@pytest.mark.asyncio
async def test_only_owner_edits_and_delete_soft_retires(client, db, login):
    ids = await _seed(db)
    villa_id = str(ids[1])

    login({"id": "seller-2", "userType": "seller"})
    forbidden = await client.put(f"/api/properties/{villa_id}", json={"price": 1})
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    login({"id": "seller-1", "userType": "seller"})
    deleted = await client.delete(f"/api/properties/{villa_id}")
    assert deleted.status_code == status.HTTP_200_OK
    assert (await db.properties.find_one({"_id": ids[1]}))["status"] == "inactive"

@pytest.mark.asyncio
async def test_admin_moderation(client, db, as_admin):
    ids = await _seed(db)

    queue = await client.get("/api/admin/properties?approvalStatus=pending")
    assert [p["title"] for p in queue.json()["data"]["properties"]] == ["Pending plot"]

    rejected = await client.put(
        f"/api/admin/properties/{ids[3]}/approval", json={"approvalStatus": "rejected", "rejectionReason": "Blurry photos"}
    )
    assert rejected.json()["data"]["approvalStatus"] == "rejected"
    assert rejected.json()["data"]["rejectionReason"] == "Blurry photos"
