import httpx
import pytest

from marketplace.client import MarketplaceClient


def _legacy_categories():
    # twelve categories in the legacy shape, one of them inactive
    categories = [{"_id": f"c{i}", "name": f"Cat {i:02d}", "order": 5, "active": True} for i in range(10)]
    categories.append({"_id": "z", "name": "Agriculture", "order": 1, "active": True})
    categories.append({"_id": "off", "name": "Archived", "order": 0, "active": False})
    categories.append({"_id": "noorder", "name": "Misc"})
    return categories

def _transport(public_status=200, admin_status=200, admin_body=None, public_data=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/categories":
            if public_status != 200:
                return httpx.Response(public_status, json={"success": False, "error": "boom"})
            data = public_data if public_data is not None else [{"name": "Buy", "slug": "buy"}]
            return httpx.Response(200, json={"success": True, "data": data})
        if request.url.path == "/api/admin/categories":
            if admin_status != 200:
                return httpx.Response(admin_status, json={"success": False, "error": "Admin access required"})
            return httpx.Response(200, json=admin_body)
        if request.url.path == "/api/categories/rent":
            return httpx.Response(200, json={"success": True, "data": {"name": "Rent", "slug": "rent"}})
        return httpx.Response(404, json={"success": False, "error": "Category not found"})
    return httpx.MockTransport(handler)

@pytest.mark.asyncio
async def test_public_endpoint_used_when_available():
    client = MarketplaceClient("http://api.test", transport=_transport())
    categories = await client.fetch_public_categories()
    assert [c["slug"] for c in categories] == ["buy"]
    assert categories[0]["isActive"] is True
    assert categories[0]["sortOrder"] == 999

@pytest.mark.asyncio
async def test_public_endpoint_result_is_normalised_sorted_and_truncated():
    legacy = [{"_id": f"c{i}", "name": f"C{i:02d}", "order": i, "active": True} for i in reversed(range(12))]
    legacy.append({"_id": "off", "name": "Archived", "order": 0, "active": False})
    client = MarketplaceClient("http://api.test", transport=_transport(public_data=legacy))

    categories = await client.fetch_public_categories()

    assert len(categories) == 10
    assert [c["name"] for c in categories] == [f"C{i:02d}" for i in range(10)]
    assert categories[0]["sortOrder"] == 0
    assert categories[0]["isActive"] is True
    assert "order" not in categories[0] and "active" not in categories[0]

@pytest.mark.asyncio
async def test_falls_back_to_admin_listing_sorted_and_truncated():
    body = {"success": True, "data": {"categories": _legacy_categories(), "pagination": {}}}
    client = MarketplaceClient("http://api.test", token="t", transport=_transport(public_status=500, admin_body=body))

    categories = await client.fetch_public_categories()

    assert len(categories) == 10
    assert categories[0]["name"] == "Agriculture"
    assert [c["name"] for c in categories[1:]] == [f"Cat {i:02d}" for i in range(9)]
    assert all(c["isActive"] for c in categories)
    assert "Misc" not in [c["name"] for c in categories]

@pytest.mark.asyncio
async def test_fallback_accepts_bare_list_and_defaults_missing_order():
    body = [{"name": "Rent", "isActive": True, "sortOrder": 2}, {"name": "Plots"}]
    client = MarketplaceClient("http://api.test", transport=_transport(public_status=503, admin_body=body))

    categories = await client.fetch_public_categories()

    assert [(c["name"], c["sortOrder"]) for c in categories] == [("Rent", 2), ("Plots", 999)]

@pytest.mark.asyncio
async def test_both_paths_failing_returns_empty_list():
    client = MarketplaceClient("http://api.test", transport=_transport(public_status=500, admin_status=401))
    assert await client.fetch_public_categories() == []

@pytest.mark.asyncio
async def test_get_category():
    client = MarketplaceClient("http://api.test", transport=_transport())
    assert (await client.get_category("rent"))["slug"] == "rent"
    assert await client.get_category("unknown") is None
