import pytest
from fastapi import status

from marketplace.services.normalize import normalize_category, slugify


async def _seed_buy_rent(db):
    await db.categories.insert_many([
        {"name": "Buy", "slug": "buy", "sortOrder": 1, "isActive": True},
        {"name": "Rent", "slug": "rent", "sortOrder": 2, "isActive": True},
    ])

@pytest.mark.asyncio
async def test_public_categories_in_sort_order(client, db):
    await _seed_buy_rent(db)

    response = await client.get("/api/categories?active=true")
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert [c["name"] for c in body["data"]] == ["Buy", "Rent"]
    assert body["meta"]["fromCache"] is False
    assert response.headers["ETag"] == f'"{body["meta"]["etag"]}"'
    assert response.headers["Cache-Control"] == "public, max-age=60"

    again = await client.get("/api/categories?active=true")
    assert again.json()["meta"]["fromCache"] is True
    assert again.json()["data"] == body["data"]

@pytest.mark.asyncio
async def test_admin_create_clears_public_cache(client, db, as_admin):
    await _seed_buy_rent(db)
    await client.get("/api/categories?active=true")

    created = await client.post("/api/admin/categories", json={"name": "Commercial Space", "order": 3})
    assert created.status_code == status.HTTP_201_CREATED
    assert created.json()["data"]["slug"] == "commercial-space"

    response = await client.get("/api/categories?active=true")
    assert response.json()["meta"]["fromCache"] is False
    assert [c["name"] for c in response.json()["data"]] == ["Buy", "Rent", "Commercial Space"]

@pytest.mark.asyncio
async def test_duplicate_slug_conflicts_and_inserts_nothing(client, db, as_admin):
    first = await client.post("/api/admin/categories", json={"name": "Buy"})
    assert first.status_code == status.HTTP_201_CREATED

    second = await client.post("/api/admin/categories", json={"name": "BUY!"})
    assert second.status_code == status.HTTP_409_CONFLICT
    assert second.json()["success"] is False
    assert await db.categories.count_documents({}) == 1

@pytest.mark.asyncio
async def test_delete_blocked_while_subcategories_exist(client, db, as_admin):
    created = await client.post("/api/admin/categories", json={"name": "Rent"})
    category_id = created.json()["data"]["_id"]
    sub = await client.post("/api/admin/subcategories", json={"categoryId": category_id, "name": "2 BHK"})
    assert sub.status_code == status.HTTP_201_CREATED

    response = await client.delete(f"/api/admin/categories/{category_id}")
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "1 subcategories" in response.json()["error"]
    assert await db.categories.count_documents({}) == 1
    assert await db.subcategories.count_documents({}) == 1

@pytest.mark.asyncio
async def test_delete_unknown_category_is_404(client, as_admin):
    response = await client.delete("/api/admin/categories/not-an-id")
    assert response.status_code == status.HTTP_404_NOT_FOUND

@pytest.mark.asyncio
async def test_subcategory_requires_existing_parent(client, as_admin):
    response = await client.post(
        "/api/admin/subcategories", json={"categoryId": "507f1f77bcf86cd799439011", "name": "Villa"}
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "Parent category not found"

@pytest.mark.asyncio
async def test_toggle_and_sort_order(client, db, as_admin):
    await _seed_buy_rent(db)
    buy = await db.categories.find_one({"slug": "buy"})
    rent = await db.categories.find_one({"slug": "rent"})

    toggled = await client.patch(f"/api/admin/categories/{buy['_id']}/toggle")
    assert toggled.json()["data"]["isActive"] is False

    reorder = await client.put("/api/admin/categories/sort-order", json={"updates": [
        {"id": str(rent["_id"]), "sortOrder": 0},
    ]})
    assert reorder.json()["data"]["updated"] == 1

    response = await client.get("/api/categories?active=true")
    assert [c["name"] for c in response.json()["data"]] == ["Rent"]

@pytest.mark.asyncio
async def test_admin_routes_require_admin(client, as_buyer):
    response = await client.get("/api/admin/categories")
    assert response.status_code == status.HTTP_403_FORBIDDEN

@pytest.mark.asyncio
async def test_validation_errors_are_400(client, as_admin):
    response = await client.post("/api/admin/categories", json={"slug": "no-name"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["success"] is False

@pytest.mark.asyncio
async def test_category_by_slug_with_active_subcategories(client, db):
    await _seed_buy_rent(db)
    rent = await db.categories.find_one({"slug": "rent"})
    await db.subcategories.insert_many([
        {"categoryId": str(rent["_id"]), "name": "Flat", "slug": "flat", "sortOrder": 1, "isActive": True},
        {"categoryId": str(rent["_id"]), "name": "PG", "slug": "pg", "active": False, "order": 2},
    ])

    response = await client.get("/api/categories/rent")
    assert response.status_code == status.HTTP_200_OK
    assert [s["slug"] for s in response.json()["data"]["subcategories"]] == ["flat"]

    subs = await client.get("/api/categories/rent/subcategories")
    assert [s["name"] for s in subs.json()["data"]] == ["Flat"]

    missing = await client.get("/api/categories/plots")
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.json() == {"success": False, "error": "Category not found"}

@pytest.mark.asyncio
async def test_category_listing_filters_by_subcategory(client, db):
    await _seed_buy_rent(db)
    rent = await db.categories.find_one({"slug": "rent"})
    await db.subcategories.insert_one(
        {"categoryId": str(rent["_id"]), "name": "Flat", "slug": "flat", "sortOrder": 1, "isActive": True}
    )
    await db.properties.insert_many([
        {"title": "Flat A", "propertyType": "rent", "subCategory": "flat", "status": "active", "approvalStatus": "approved"},
        {"title": "House B", "propertyType": "rent", "subCategory": "house", "status": "active", "approvalStatus": "approved"},
        {"title": "Flat C", "propertyType": "rent", "subCategory": "flat", "status": "active", "approvalStatus": "pending"},
    ])

    response = await client.get("/api/categories/rent/properties?subcategory=flat")
    data = response.json()["data"]
    assert data["filter"] == {"propertyType": "rent", "subCategory": "flat"}
    assert [p["title"] for p in data["properties"]] == ["Flat A"]

    unknown = await client.get("/api/categories/rent/properties?subcategory=villa")
    assert unknown.status_code == status.HTTP_404_NOT_FOUND

def test_normalize_legacy_category():
    normalized = normalize_category({"name": "Agricultural Land", "active": False, "order": "3", "icon": "/i.svg"})
    assert normalized["isActive"] is False
    assert normalized["sortOrder"] == 3
    assert normalized["iconUrl"] == "/i.svg"
    assert normalized["slug"] == "agricultural-land"
    assert "active" not in normalized and "order" not in normalized

def test_normalize_fills_defaults():
    normalized = normalize_category({"name": "Plots"})
    assert normalized["isActive"] is True
    assert normalized["sortOrder"] == 999

def test_slugify_collapses_dashes():
    assert slugify("  New -- Projects & Plots ") == "new-projects-plots"

def test_normalize_tolerates_unparseable_order():
    assert normalize_category({"name": "Odd", "order": "inf"})["sortOrder"] == 999
    assert normalize_category({"name": "Odd", "order": "n/a"})["sortOrder"] == 999
