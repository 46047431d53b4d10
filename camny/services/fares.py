"""
Fare resolution.

A route carries a base fare and, optionally, an ordered list of stops whose
``fare_from_start`` and ``distance_from_start_km`` are cumulative from the
first stop. The fare between two stops is the difference of their cumulative
values, so the direction of travel never changes the price.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from camny.exceptions import InvalidStopPair, NotFound
from camny.metrics import FARE_FALLBACKS
from camny.models.models import Route, RouteStop

logger = logging.getLogger(__name__)


@dataclass
class FareQuote:
    route_id: int
    fare: Decimal
    start_location: str
    end_location: str
    distance_km: Optional[Decimal] = None
    used_stops: bool = False
    start_stop_id: Optional[int] = None
    end_stop_id: Optional[int] = None


def _money(value) -> Decimal:
    return Decimal(value or 0)


class FareResolver:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_route(self, route_id: int) -> Route:
        route = await self.session.get(Route, route_id)
        if not route:
            raise NotFound("Route not found")
        return route

    async def _stop_pair(self, route_id: int, start_stop_id: int, end_stop_id: int) -> Tuple[RouteStop, RouteStop]:
        """Both stops in the caller's order; raises InvalidStopPair unless two distinct stops of the route match."""
        q = (
            sa_select(RouteStop)
            .where(RouteStop.route_id == route_id)
            .where(RouteStop.id.in_([start_stop_id, end_stop_id]))
        )
        res = await self.session.execute(q)
        stops = {s.id: s for s in res.scalars().all()}
        if start_stop_id == end_stop_id or len(stops) != 2:
            raise InvalidStopPair()
        return stops[start_stop_id], stops[end_stop_id]

    def _quote_between(self, route: Route, start: RouteStop, end: RouteStop) -> FareQuote:
        earlier, later = sorted((start, end), key=lambda s: s.stop_order)
        fare = abs(_money(later.fare_from_start) - _money(earlier.fare_from_start))
        distance = abs(_money(later.distance_from_start_km) - _money(earlier.distance_from_start_km))
        return FareQuote(
            route_id=route.id,
            fare=fare,
            distance_km=distance,
            start_location=start.stop_name,
            end_location=end.stop_name,
            used_stops=True,
            start_stop_id=start.id,
            end_stop_id=end.id,
        )

    async def segment(self, route_id: int, start_stop_id: int, end_stop_id: int) -> FareQuote:
        """Strict fare between two stops of a route."""
        route = await self.get_route(route_id)
        start, end = await self._stop_pair(route.id, start_stop_id, end_stop_id)
        return self._quote_between(route, start, end)

    async def resolve(
        self,
        route_id: int,
        start_stop_id: Optional[int] = None,
        end_stop_id: Optional[int] = None,
        start_location: Optional[str] = None,
        end_location: Optional[str] = None,
    ) -> FareQuote:
        """Fare for a booking.

        Uses the stop pair when both stops resolve on the route; otherwise the
        route's base fare, with the caller's locations (or the route's ends)
        as the journey's labels.
        """
        route = await self.get_route(route_id)

        if start_stop_id and end_stop_id and start_stop_id != end_stop_id:
            try:
                start, end = await self._stop_pair(route.id, start_stop_id, end_stop_id)
                return self._quote_between(route, start, end)
            except InvalidStopPair:
                FARE_FALLBACKS.labels(reason="invalid_stop_pair").inc()
                logger.warning(
                    "Stops %s -> %s not on route %s; charging base fare",
                    start_stop_id,
                    end_stop_id,
                    route.id,
                )

        return FareQuote(
            route_id=route.id,
            fare=_money(route.fare_base),
            start_location=start_location or route.start_location,
            end_location=end_location or route.end_location,
        )
