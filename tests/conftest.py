import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from marketplace.main import app
from marketplace.db import ensure_indexes, get_db
from marketplace.dependencies.auth import get_current_user, get_optional_user
from marketplace.dependencies.rate_limit import message_rate_limit, payment_rate_limit
from marketplace.services.category_cache import clear_categories_cache

# Mock user data
MOCK_BUYER = {"id": "buyer-1", "userType": "buyer", "name": "Asha"}
MOCK_SELLER = {"id": "seller-1", "userType": "seller", "name": "Ravi"}
MOCK_OTHER = {"id": "buyer-2", "userType": "buyer", "name": "Meera"}
MOCK_ADMIN = {"id": "admin-1", "userType": "admin", "name": "Admin"}

async def no_rate_limit():
    return None

def _login(user):
    async def override():
        return user
    app.dependency_overrides[get_current_user] = override
    app.dependency_overrides[get_optional_user] = override

@pytest.fixture(autouse=True)
def fresh_category_cache():
    clear_categories_cache()
    yield
    clear_categories_cache()

@pytest_asyncio.fixture
async def db():
    database = AsyncMongoMockClient()[f"marketplace_test_{uuid.uuid4().hex[:8]}"]
    await ensure_indexes(database)
    app.dependency_overrides[get_db] = lambda: database
    app.dependency_overrides[payment_rate_limit] = no_rate_limit
    app.dependency_overrides[message_rate_limit] = no_rate_limit
    yield database
    app.dependency_overrides = {}

@pytest_asyncio.fixture
async def client(db):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

@pytest.fixture
def login():
    """Call with a user dict to authenticate subsequent requests as that user."""
    return _login

@pytest.fixture
def as_buyer():
    _login(MOCK_BUYER)
    return MOCK_BUYER

@pytest.fixture
def as_seller():
    _login(MOCK_SELLER)
    return MOCK_SELLER

@pytest.fixture
def as_admin():
    _login(MOCK_ADMIN)
    return MOCK_ADMIN
