import pytest

from camny.exceptions import NotFound
from camny.models.models import AuditLog, Driver, Notification, Route, Vehicle
from camny.services.assignments import AssignmentPropagator
from camny.services.notification_service import NotificationService

pytestmark = pytest.mark.anyio


async def test_driver_to_vehicle_follows_vehicle_route(seed, session_factory):
    route = await seed.route(name="Kigali - Huye")
    vehicle = await seed.vehicle(route=route, plate="RAB 123C")
    driver = await seed.driver()
    admin = await seed.user(role="admin")

    async with session_factory() as session:
        await AssignmentPropagator(session).assign_driver_to_vehicle(vehicle.id, driver.id, actor_id=admin.id)

    assert (await seed.get(Vehicle, vehicle.id)).assigned_driver == driver.id
    assert (await seed.get(Driver, driver.id)).assigned_line_id == route.id

    notes = await seed.all(Notification, Notification.user_id == driver.user_id)
    assert len(notes) == 1
    assert notes[0].title == "Vehicle Assignment"
    assert "RAB 123C" in notes[0].message

    audits = await seed.all(AuditLog, AuditLog.action == "assign_driver_to_vehicle")
    assert [a.actor_id for a in audits] == [admin.id]


async def test_driver_to_vehicle_without_route_leaves_line_alone(seed, session_factory):
    vehicle = await seed.vehicle()
    driver = await seed.driver()

    async with session_factory() as session:
        await AssignmentPropagator(session).assign_driver_to_vehicle(vehicle.id, driver.id)

    assert (await seed.get(Vehicle, vehicle.id)).assigned_driver == driver.id
    assert (await seed.get(Driver, driver.id)).assigned_line_id is None


async def test_assignment_rolls_back_when_notification_fails(seed, session_factory, monkeypatch):
    route = await seed.route()
    vehicle = await seed.vehicle(route=route)
    driver = await seed.driver()

    async def _boom(self, *args, **kwargs):
        raise RuntimeError("notification store down")

    monkeypatch.setattr(NotificationService, "notify", _boom)

    async with session_factory() as session:
        with pytest.raises(RuntimeError):
            await AssignmentPropagator(session).assign_driver_to_vehicle(vehicle.id, driver.id)

    assert (await seed.get(Vehicle, vehicle.id)).assigned_driver is None
    assert (await seed.get(Driver, driver.id)).assigned_line_id is None
    assert await seed.count(AuditLog) == 0
    assert await seed.count(Notification) == 0


async def test_unknown_vehicle_or_driver_is_not_found(seed, session_factory):
    route = await seed.route()
    vehicle = await seed.vehicle()

    async with session_factory() as session:
        with pytest.raises(NotFound, match="Vehicle not found"):
            await AssignmentPropagator(session).assign_vehicle_to_route(route.id, 999)
    async with session_factory() as session:
        with pytest.raises(NotFound, match="Driver not found"):
            await AssignmentPropagator(session).assign_driver_to_vehicle(vehicle.id, 999)
    async with session_factory() as session:
        with pytest.raises(NotFound, match="Route not found"):
            await AssignmentPropagator(session).assign_vehicle_to_route(999, vehicle.id)

    assert (await seed.get(Route, route.id)).assigned_vehicle is None
    assert await seed.count(AuditLog) == 0


async def test_driver_to_route_notifies_with_route_ends(seed, session_factory):
    route = await seed.route(name="Kigali - Musanze", start="Kigali", end="Musanze")
    driver = await seed.driver()

    async with session_factory() as session:
        await AssignmentPropagator(session).assign_driver_to_route(route.id, driver.id)

    assert (await seed.get(Route, route.id)).assigned_driver == driver.id
    (note,) = await seed.all(Notification, Notification.user_id == driver.user_id)
    assert note.title == "Route Assignment"
    assert "Kigali - Musanze" in note.message
    assert "Kigali to Musanze" in note.message


async def test_vehicle_to_route_links_both_sides_silently(seed, session_factory):
    route = await seed.route()
    driver = await seed.driver()
    vehicle = await seed.vehicle(driver=driver)

    async with session_factory() as session:
        await AssignmentPropagator(session).assign_vehicle_to_route(route.id, vehicle.id)

    assert (await seed.get(Route, route.id)).assigned_vehicle == vehicle.id
    assert (await seed.get(Vehicle, vehicle.id)).assigned_route == route.id
    assert await seed.count(Notification) == 0
    assert await seed.count(AuditLog, AuditLog.action == "assign_vehicle_to_route") == 1


async def test_moving_vehicle_to_new_route_carries_its_driver(seed, session_factory):
    old_route = await seed.route(name="Kigali - Huye")
    new_route = await seed.route(name="Kigali - Musanze", end="Musanze")
    vehicle = await seed.vehicle()
    driver = await seed.driver()

    async with session_factory() as session:
        await AssignmentPropagator(session).assign_vehicle_to_route(old_route.id, vehicle.id)
    async with session_factory() as session:
        await AssignmentPropagator(session).assign_driver_to_vehicle(vehicle.id, driver.id)
    assert (await seed.get(Driver, driver.id)).assigned_line_id == old_route.id

    async with session_factory() as session:
        await AssignmentPropagator(session).assign_vehicle_to_route(new_route.id, vehicle.id)

    assert (await seed.get(Vehicle, vehicle.id)).assigned_route == new_route.id
    assert (await seed.get(Driver, driver.id)).assigned_line_id == new_route.id
    assert (await seed.get(Route, new_route.id)).assigned_vehicle == vehicle.id
    assert (await seed.get(Route, old_route.id)).assigned_vehicle is None
