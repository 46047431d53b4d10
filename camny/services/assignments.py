import logging
from typing import Optional

from sqlalchemy import update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from camny.exceptions import NotFound
from camny.models.models import Driver, Route, Vehicle
from camny.services.audit import log_audit
from camny.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class AssignmentPropagator:
    """Links drivers, vehicles and routes.

    Every operation runs in a single transaction together with its audit row
    and notification row: either all of them are written or none is.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _vehicle(self, vehicle_id: int) -> Vehicle:
        vehicle = await self.session.get(Vehicle, vehicle_id)
        if not vehicle:
            raise NotFound("Vehicle not found")
        return vehicle

    async def _driver(self, driver_id: int) -> Driver:
        driver = await self.session.get(Driver, driver_id)
        if not driver or not driver.user:
            raise NotFound("Driver not found")
        return driver

    async def _route(self, route_id: int) -> Route:
        route = await self.session.get(Route, route_id)
        if not route:
            raise NotFound("Route not found")
        return route

    async def assign_driver_to_vehicle(self, vehicle_id: int, driver_id: int, actor_id: Optional[int] = None) -> Vehicle:
        async with self.session.begin():
            vehicle = await self._vehicle(vehicle_id)
            driver = await self._driver(driver_id)

            vehicle.assigned_driver = driver.id
            route_name = None
            if vehicle.assigned_route:
                # the driver follows the vehicle onto its route
                driver.assigned_line_id = vehicle.assigned_route
                route = await self.session.get(Route, vehicle.assigned_route)
                route_name = route.route_name if route else None

            await log_audit(
                self.session,
                actor_id,
                "assign_driver_to_vehicle",
                object_type="vehicle",
                object_id=vehicle.id,
                detail={"driver_id": driver.id, "route_id": vehicle.assigned_route},
            )
            await NotificationService(self.session).notify(
                driver.user_id,
                "vehicle_assigned",
                "Vehicle Assignment",
                {"plate_number": vehicle.plate_number, "vehicle_id": vehicle.id, "route_name": route_name},
            )

        logger.info("Driver %s assigned to vehicle %s", driver_id, vehicle_id)
        return vehicle

    async def assign_driver_to_route(self, route_id: int, driver_id: int, actor_id: Optional[int] = None) -> Route:
        async with self.session.begin():
            driver = await self._driver(driver_id)
            route = await self._route(route_id)

            route.assigned_driver = driver.id

            await log_audit(
                self.session,
                actor_id,
                "assign_driver_to_route",
                object_type="route",
                object_id=route.id,
                detail={"driver_id": driver.id},
            )
            await NotificationService(self.session).notify(
                driver.user_id,
                "route_assigned",
                "Route Assignment",
                {
                    "route_name": route.route_name,
                    "start_location": route.start_location,
                    "end_location": route.end_location,
                },
            )

        logger.info("Driver %s assigned to route %s", driver_id, route_id)
        return route

    async def assign_vehicle_to_route(self, route_id: int, vehicle_id: int, actor_id: Optional[int] = None) -> Route:
        async with self.session.begin():
            vehicle = await self._vehicle(vehicle_id)
            route = await self._route(route_id)

            # a vehicle serves one route at a time
            await self.session.execute(
                sa_update(Route)
                .where(Route.assigned_vehicle == vehicle.id)
                .where(Route.id != route.id)
                .values(assigned_vehicle=None)
            )
            route.assigned_vehicle = vehicle.id
            vehicle.assigned_route = route.id

            driver_id = vehicle.assigned_driver
            if driver_id:
                driver = await self.session.get(Driver, driver_id)
                if driver:
                    driver.assigned_line_id = route.id

            await log_audit(
                self.session,
                actor_id,
                "assign_vehicle_to_route",
                object_type="route",
                object_id=route.id,
                detail={"vehicle_id": vehicle.id, "driver_id": driver_id},
            )

        logger.info("Vehicle %s assigned to route %s", vehicle_id, route_id)
        return route
