from datetime import date, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from stays_admin.config import Settings
from stays_admin.db import Base
from stays_admin.main import create_app
from stays_admin.models import Accommodation, Booking, User
from stays_admin.security import create_access_token, hash_password


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send(self, message):
        if self.fail:
            raise ConnectionError("smtp relay unavailable")
        self.sent.append(message)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        jwt_secret="test-secret",
        payu_merchant_key="TESTKEY",
        payu_merchant_salt="TESTSALT",
        upload_dir=tmp_path / "uploads",
    )


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
async def app(settings, mailer):
    app = create_app(settings, mailer=mailer, start_sweeper=False)
    async with app.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield app
    await app.state.engine.dispose()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
async def db(app):
    async with app.state.sessionmaker() as session:
        yield session


@pytest.fixture
def admin_headers(settings):
    token = create_access_token(settings, "admin@example.com", ["admin"])
    return {"Authorization": f"Bearer {token}"}


async def add_user(db, **overrides) -> User:
    values = dict(
        name="Owner One",
        email="owner@example.com",
        phone_number="9000000001",
        role="manager",
        status="active",
        password=hash_password("owner-pass"),
    )
    values.update(overrides)
    user = User(**values)
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def owner(db):
    return await add_user(db)


async def add_accommodation(db, owner_id=None, **overrides) -> Accommodation:
    values = dict(
        name="Lakeside Camp",
        description="Tents by the lake",
        type="resort",
        capacity=4,
        rooms=10,
        price=2500,
        features=[],
        images=[],
        package_images=[],
        available=True,
        owner_id=owner_id,
        address="Pawna Lake, Maharashtra",
        latitude=18.67,
        longitude=73.49,
    )
    values.update(overrides)
    acc = Accommodation(**values)
    db.add(acc)
    await db.commit()
    return acc


@pytest.fixture
async def accommodation(db, owner):
    return await add_accommodation(db, owner_id=owner.id)


def booking_payload(accommodation_id, **overrides) -> dict:
    check_in = date.today() + timedelta(days=10)
    payload = {
        "guest_name": "Asha Rao",
        "guest_email": "asha@example.com",
        "guest_phone": "9876543210",
        "accommodation_id": accommodation_id,
        "package_id": 1,
        "check_in": check_in.isoformat(),
        "check_out": (check_in + timedelta(days=2)).isoformat(),
        "adults": 2,
        "children": 1,
        "rooms": 1,
        "food_veg": 2,
        "food_nonveg": 1,
        "food_jain": 0,
        "total_amount": 6000,
        "advance_amount": 1500,
    }
    payload.update(overrides)
    return payload


async def fetch_booking(app, **filters) -> Booking | None:
    async with app.state.sessionmaker() as session:
        res = await session.execute(select(Booking).filter_by(**filters))
        return res.scalar_one_or_none()


async def count_bookings(app) -> int:
    async with app.state.sessionmaker() as session:
        return (await session.execute(select(func.count(Booking.id)))).scalar_one()
