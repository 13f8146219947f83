#!/usr/bin/env python3
"""
Seed script to create demo restaurants, drivers, staff and promo codes
"""

import asyncio
import uuid
from datetime import datetime, timedelta

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


async def seed_demo_data():
    """Seed demo data for development"""
    from app.database import SessionLocal, engine, Base
    from app.models.restaurant import Restaurant, ItemAvailability
    from app.models.driver import Driver
    from app.models.promo import PromoCode
    from app.models.user import User, UserRole

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        # Check if demo data already exists
        from sqlalchemy import select
        result = await db.execute(
            select(Restaurant).where(Restaurant.slug == "kermit")
        )
        existing = result.scalar_one_or_none()

        if existing:
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo restaurants...")

        restaurants = [
            {"slug": "kermit", "name": "Kermit", "lat": 9.7869, "lng": 126.1622, "min_order": 0},
            {"slug": "shaka", "name": "Shaka", "lat": 9.7847, "lng": 126.1598, "min_order": 200},
            {"slug": "lamari", "name": "Lamari", "lat": 9.7901, "lng": 126.1651, "min_order": 0},
            {"slug": "island-mart", "name": "Island Mart", "lat": 9.7858, "lng": 126.1580, "min_order": 300, "is_grocery": True},
        ]

        for data in restaurants:
            restaurant = Restaurant(
                id=uuid.uuid4(),
                hashed_password=pwd_context.hash(f"{data['slug']}123"),
                ntfy_topic=f"island-eats-{data['slug']}",
                commission_pct=30,
                delivery_commission_pct=30,
                **data,
            )
            db.add(restaurant)
            print(f"Created restaurant: {restaurant.name} (slug: {restaurant.slug})")

        await db.flush()

        # One sold-out item so the checkout can show the flag
        result = await db.execute(select(Restaurant).where(Restaurant.slug == "shaka"))
        shaka = result.scalar_one()
        db.add(ItemAvailability(restaurant_id=shaka.id, item_name="Acai Bowl", is_available=False))

        print("Creating drivers...")

        drivers = [
            {"name": "Jun", "phone": "09171234567"},
            {"name": "Rico", "phone": "09181234567"},
        ]
        for data in drivers:
            db.add(
                Driver(
                    id=uuid.uuid4(),
                    hashed_password=pwd_context.hash("driver123"),
                    is_available=False,
                    **data,
                )
            )

        # Create admin user
        admin_user = User(
            id=uuid.uuid4(),
            email="admin@islandeats.ph",
            hashed_password=pwd_context.hash("admin123"),
            full_name="System Admin",
            role=UserRole.ADMIN,
            is_active=True,
        )
        db.add(admin_user)

        # Create dispatcher user
        dispatcher = User(
            id=uuid.uuid4(),
            email="dispatch@islandeats.ph",
            hashed_password=pwd_context.hash("dispatch123"),
            full_name="Dispatch Desk",
            role=UserRole.DISPATCHER,
            is_active=True,
        )
        db.add(dispatcher)

        print("Creating promo codes...")

        now = datetime.utcnow()
        db.add(PromoCode(code="WELCOME50", discount_type="fixed", discount_value=50, min_order=300, uses_count=0))
        db.add(
            PromoCode(
                code="SIARGAO10",
                discount_type="percent",
                discount_value=10,
                max_uses=100,
                uses_count=0,
                valid_from=now,
                valid_until=now + timedelta(days=30),
            )
        )

        await db.commit()

        print(f"""
Demo data created successfully!

Restaurants: {len(restaurants)} (portal password: <slug>123)

Drivers:
  Phones: {", ".join(d["phone"] for d in drivers)}
  Password: driver123

Users:
  Admin:
    Email: admin@islandeats.ph
    Password: admin123

  Dispatcher:
    Email: dispatch@islandeats.ph
    Password: dispatch123

Promo codes: WELCOME50, SIARGAO10
""")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
