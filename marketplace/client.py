import httpx
from structlog import get_logger
from typing import Any, Dict, List, Optional

from marketplace.services.normalize import normalize_category

logger = get_logger()

# the homepage only has room for this many category tiles
MAX_PUBLIC_CATEGORIES = 10


def public_shape(data: Any) -> List[Dict[str, Any]]:
    """Normalise, keep active, order by (sortOrder, name) and cap for display."""
    raw = data.get("categories", []) if isinstance(data, dict) else data or []
    categories = [normalize_category(c) for c in raw if isinstance(c, dict)]
    active = [c for c in categories if c["isActive"]]
    active.sort(key=lambda c: (c["sortOrder"], c.get("name") or ""))
    return active[:MAX_PUBLIC_CATEGORIES]


class MarketplaceClient:
    """
    Thin async client for the marketplace API, used by the storefront.
    Mirrors the frontend's category loading: public endpoint first, then the
    admin listing, then an empty list.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return httpx.AsyncClient(
            base_url=self.base_url, headers=headers, timeout=self.timeout, transport=self._transport
        )

    async def _get_data(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        async with self._client() as client:
            response = await client.get(path, params=params)
        response.raise_for_status()
        body = response.json()
        if isinstance(body, dict) and body.get("success") is False:
            raise ValueError(body.get("error") or f"{path} returned success=false")
        return body.get("data") if isinstance(body, dict) and "data" in body else body

    async def fetch_public_categories(self) -> List[Dict[str, Any]]:
        try:
            data = await self._get_data("/api/categories", params={"active": "true"})
            categories = public_shape(data)
            logger.info("Fetched public categories", count=len(categories))
            return categories
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Public categories unavailable, trying admin listing", error=str(e))

        try:
            data = await self._get_data("/api/admin/categories")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Admin categories unavailable", error=str(e))
            return []

        categories = public_shape(data)
        logger.info("Derived public categories from admin listing", count=len(categories))
        return categories

    async def get_category(self, slug: str) -> Optional[Dict[str, Any]]:
        try:
            return await self._get_data(f"/api/categories/{slug}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise
