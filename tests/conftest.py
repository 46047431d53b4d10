import asyncio
import os
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./camny-test.db")
os.environ["VERIFY_SCHEMA"] = "false"
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import camny.models  # noqa: F401
from camny.db.base import Base
from camny.db.session import get_session, get_session_factory
from camny.enums import Role
from camny.models.models import Driver, Route, RouteStop, Ticket, User, Vehicle
from camny.services.auth import create_access_token, hash_password

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def session_factory(tmp_path):
    """
    File-backed SQLite database per test, built from the models' metadata.

    NullPool gives every session its own connection so fan-out batches
    can run concurrently.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'camny.db'}", poolclass=NullPool)

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    asyncio.run(engine.dispose())


class Seeder:
    """Writes fixture rows through its own short-lived sessions."""

    def __init__(self, factory):
        self.factory = factory
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    async def add(self, obj):
        async with self.factory() as s:
            async with s.begin():
                s.add(obj)
        return obj

    async def user(self, role=Role.PASSENGER, email=None, phone=None, full_name=None) -> User:
        n = self._next()
        return await self.add(
            User(
                email=email or f"user{n}@example.com",
                phone=phone,
                full_name=full_name or f"User {n}",
                hashed_password=PASSWORD_HASH,
                role=role,
            )
        )

    async def driver(self, **user_kw) -> Driver:
        user = await self.user(role=Role.DRIVER, **user_kw)
        return await self.add(Driver(user_id=user.id, license_number=f"LIC-{user.id:04d}", status="active"))

    async def route(self, fare_base=1000, name="Kigali - Huye", start="Kigali", end="Huye", **kw) -> Route:
        return await self.add(
            Route(route_name=name, start_location=start, end_location=end, fare_base=Decimal(str(fare_base)), **kw)
        )

    async def stop(self, route: Route, name: str, order: int, fare: float, distance: float = 0) -> RouteStop:
        return await self.add(
            RouteStop(
                route_id=route.id,
                stop_name=name,
                stop_order=order,
                fare_from_start=Decimal(str(fare)),
                distance_from_start_km=Decimal(str(distance)),
            )
        )

    async def vehicle(self, driver: Driver = None, route: Route = None, plate=None) -> Vehicle:
        n = self._next()
        return await self.add(
            Vehicle(
                plate_number=plate or f"RAC {n:03d}A",
                capacity=30,
                status="active",
                assigned_driver=driver.id if driver else None,
                assigned_route=route.id if route else None,
            )
        )

    async def ticket(self, route: Route, vehicle: Vehicle = None, passenger: User = None, **kw) -> Ticket:
        n = self._next()
        values = dict(
            buyer_id=passenger.id if passenger else None,
            passenger_id=passenger.id if passenger else None,
            passenger_name=passenger.full_name if passenger else "Walk-in",
            passenger_phone=passenger.phone if passenger else None,
            route_id=route.id,
            vehicle_id=vehicle.id if vehicle else None,
            calculated_fare=route.fare_base,
            amount_paid=route.fare_base,
            qr_code=f"QR{n:030d}",
        )
        values.update(kw)
        return await self.add(Ticket(**values))

    async def get(self, model, pk):
        async with self.factory() as s:
            return await s.get(model, pk)

    async def all(self, model, *where):
        async with self.factory() as s:
            res = await s.execute(sa_select(model).where(*where))
            return list(res.scalars().all())

    async def count(self, model, *where) -> int:
        async with self.factory() as s:
            res = await s.execute(sa_select(func.count()).select_from(model).where(*where))
            return res.scalar()


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
def run():
    """Run a coroutine from a synchronous test."""
    return asyncio.run


@pytest.fixture
def auth_headers():
    def _headers(user_id: int, role: str = Role.PASSENGER):
        return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}

    return _headers


class FakeRedis:
    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def incr(self, key):
        self.store[key] = str(int(self.store.get(key, 0)) + 1)
        return int(self.store[key])

    async def expire(self, key, seconds):
        return True

    async def delete(self, key):
        self.store.pop(key, None)

    async def ping(self):
        return True


@pytest.fixture
def fake_redis(monkeypatch):
    import camny.main
    import camny.modules.auth.router as auth_router

    fake = FakeRedis()
    monkeypatch.setattr(auth_router, "redis_client", fake)
    monkeypatch.setattr(camny.main, "redis_client", fake)
    return fake


@pytest.fixture
def client(session_factory):
    from camny.main import app

    async def _session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
