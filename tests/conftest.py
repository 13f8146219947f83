"""Test configuration and fixtures"""

import os

# Must be set before the app modules read their settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["NOTIFICATIONS_ENABLED"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from uuid import uuid4

from app.main import app
from app.database import Base, get_db
from app.mapping import MappingService, get_mapping_service
from app.mapping.geocoding import GeocodingError
from app.mapping.providers.base import BaseRoutingProvider, RoutingError
from app.mapping.providers.haversine import HaversineProvider
from app.models.driver import Driver
from app.models.promo import PromoCode
from app.models.restaurant import Restaurant
from app.models.user import User, UserRole
from app.api.auth import create_access_token, create_portal_token, get_password_hash
from app.orders.state_machine import Actor


# Test database URL (use in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

KERMIT_LAT = 9.7869
KERMIT_LNG = 126.1622
CUSTOMER_PHONE = "09170001111"


class FixedDistanceProvider(BaseRoutingProvider):
    """Routing stand-in with a settable distance and an outage switch"""

    name = "fixed"

    def __init__(self, km: float = 2.0):
        self.km = km
        self.failing = False

    async def distance_km(self, origin, destination):
        if self.failing:
            raise RoutingError("routing is down")
        return self.km


class FakeGeocoder:
    """Geocoder stand-in returning canned places"""

    def __init__(self):
        self.failing = False

    async def search(self, query, limit=5):
        if self.failing:
            raise GeocodingError("geocoding is down")
        return [{"label": f"{query}, General Luna", "lat": 9.786, "lng": 126.158}]

    async def reverse(self, point):
        if self.failing:
            raise GeocodingError("geocoding is down")
        return f"Near {point.lat:.3f},{point.lng:.3f}"

    async def aclose(self):
        return None


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def test_db():
    """Create test database"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def routing():
    return FixedDistanceProvider()


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def mapping(routing, geocoder):
    return MappingService(provider=routing, fallback=HaversineProvider(), geocoder=geocoder)


@pytest.fixture
async def client(test_db, mapping):
    """Create test client with overridden database and mapping service"""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mapping_service] = lambda: mapping

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def test_staff_user(test_db):
    """Create a dispatcher"""
    user = User(
        id=uuid4(),
        email="dispatch@example.com",
        hashed_password=get_password_hash("dispatchpass"),
        full_name="Dispatch Desk",
        role=UserRole.DISPATCHER,
        is_active=True,
    )
    test_db.add(user)
    await test_db.commit()

    return user


@pytest.fixture
async def test_admin_user(test_db):
    """Create an admin"""
    user = User(
        id=uuid4(),
        email="admin@example.com",
        hashed_password=get_password_hash("adminpass123"),
        full_name="Admin User",
        role=UserRole.ADMIN,
        is_active=True,
    )
    test_db.add(user)
    await test_db.commit()

    return user


@pytest.fixture
async def test_restaurant(test_db):
    """Create a restaurant with a map pin"""
    restaurant = Restaurant(
        id=uuid4(),
        slug="kermit",
        name="Kermit",
        lat=KERMIT_LAT,
        lng=KERMIT_LNG,
        commission_pct=30,
        delivery_commission_pct=30,
        min_order=0,
        hashed_password=get_password_hash("kermit123"),
    )
    test_db.add(restaurant)
    await test_db.commit()

    return restaurant


@pytest.fixture
async def other_restaurant(test_db):
    """A second restaurant for cart-mix and scoping checks"""
    restaurant = Restaurant(
        id=uuid4(),
        slug="shaka",
        name="Shaka",
        lat=9.7847,
        lng=126.1598,
        hashed_password=get_password_hash("shaka123"),
    )
    test_db.add(restaurant)
    await test_db.commit()

    return restaurant


@pytest.fixture
async def test_grocery(test_db):
    """Create a grocery"""
    grocery = Restaurant(
        id=uuid4(),
        slug="island-mart",
        name="Island Mart",
        is_grocery=True,
        lat=9.7858,
        lng=126.1580,
    )
    test_db.add(grocery)
    await test_db.commit()

    return grocery


@pytest.fixture
async def test_driver(test_db):
    """Create an online driver"""
    driver = Driver(
        id=uuid4(),
        name="Jun",
        phone="09171234567",
        hashed_password=get_password_hash("driver123"),
        is_active=True,
        is_available=True,
    )
    test_db.add(driver)
    await test_db.commit()

    return driver


@pytest.fixture
async def other_driver(test_db):
    driver = Driver(
        id=uuid4(),
        name="Rico",
        phone="09181234567",
        hashed_password=get_password_hash("driver123"),
        is_active=True,
        is_available=True,
    )
    test_db.add(driver)
    await test_db.commit()

    return driver


@pytest.fixture
async def test_promo(test_db):
    """50 off orders of 300 or more"""
    promo = PromoCode(
        code="SAVE50",
        discount_type="fixed",
        discount_value=50,
        min_order=300,
        max_uses=2,
        uses_count=0,
    )
    test_db.add(promo)
    await test_db.commit()

    return promo


@pytest.fixture
def portal_headers():
    """Factory for driver or restaurant bearer headers"""
    def build(actor, subject):
        return auth_headers(create_portal_token(actor, subject))

    return build


@pytest.fixture
def staff_headers(test_staff_user):
    return auth_headers(create_access_token(test_staff_user))


@pytest.fixture
def admin_headers(test_admin_user):
    return auth_headers(create_access_token(test_admin_user))


@pytest.fixture
def restaurant_headers(test_restaurant):
    return auth_headers(create_portal_token(Actor.RESTAURANT, test_restaurant.slug))


@pytest.fixture
def driver_headers(test_driver):
    return auth_headers(create_portal_token(Actor.DRIVER, str(test_driver.id)))


@pytest.fixture
def other_driver_headers(other_driver):
    return auth_headers(create_portal_token(Actor.DRIVER, str(other_driver.id)))


@pytest.fixture
def order_payload():
    """Factory for checkout payloads; keyword arguments override fields"""
    def build(**overrides):
        payload = {
            "customer_name": "Test Customer",
            "customer_phone": CUSTOMER_PHONE,
            "landmark": "Blue gate beside the sari-sari store",
            "delivery_lat": 9.7901,
            "delivery_lng": 126.1651,
            "items": [
                {
                    "restaurant_name": "Kermit",
                    "restaurant_slug": "kermit",
                    "item_name": "Chicken Adobo",
                    "price": "250 PHP",
                    "price_value": 250,
                    "quantity": 2,
                },
            ],
            "payment_method": "cash",
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
async def placed_order(client, test_restaurant, order_payload):
    """A fresh cash order at Kermit"""
    response = await client.post("/orders", json=order_payload())
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
async def accepted_order(client, placed_order, restaurant_headers):
    response = await client.post(
        f"/restaurant/orders/{placed_order['id']}/accept",
        json={"prep_minutes": 20},
        headers=restaurant_headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
async def ready_order(client, accepted_order, restaurant_headers):
    response = await client.patch(
        f"/restaurant/orders/{accepted_order['id']}/status",
        json={"status": "ready"},
        headers=restaurant_headers,
    )
    assert response.status_code == 200, response.text
    return response.json()["order"]
