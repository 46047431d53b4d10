from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from camny.auth.deps import role_required
from camny.db.session import get_session
from camny.enums import Role
from camny.exceptions import BadRequest, NotFound
from camny.models.models import Route, RouteStop
from camny.schemas.fleet import StopCreate, StopOut, StopUpdate
from camny.schemas.ticket import FareQuoteOut
from camny.services.audit import log_audit
from camny.services.auth import Principal
from camny.services.fares import FareResolver

router = APIRouter()

admin_only = role_required([Role.ADMIN])

DECIMAL_FIELDS = ("distance_from_start_km", "fare_from_start", "latitude", "longitude")


def _stop_values(data: dict) -> dict:
    return {k: Decimal(str(v)) if k in DECIMAL_FIELDS and v is not None else v for k, v in data.items()}


async def _check_cumulative(db: AsyncSession, route_id: int, stop_order: int, distance, fare, stop_id: int = None):
    """Cumulative distance and fare must not decrease along the route's stop order."""
    base = sa_select(RouteStop).where(RouteStop.route_id == route_id)
    if stop_id is not None:
        base = base.where(RouteStop.id != stop_id)
    prev = (await db.execute(base.where(RouteStop.stop_order < stop_order).order_by(RouteStop.stop_order.desc()).limit(1))).scalars().first()
    nxt = (await db.execute(base.where(RouteStop.stop_order > stop_order).order_by(RouteStop.stop_order).limit(1))).scalars().first()
    for field, value in (("distance_from_start_km", distance), ("fare_from_start", fare)):
        if prev is not None and value < getattr(prev, field):
            raise BadRequest(f"{field} must not be lower than at stop '{prev.stop_name}'")
        if nxt is not None and value > getattr(nxt, field):
            raise BadRequest(f"{field} must not be higher than at stop '{nxt.stop_name}'")


@router.get("/")
async def routes_root():
    return {"module": "routes", "status": "ok"}


@router.get("/{route_id}/stops")
async def list_stops(route_id: int, db: AsyncSession = Depends(get_session)):
    res = await db.execute(sa_select(RouteStop).where(RouteStop.route_id == route_id).order_by(RouteStop.stop_order))
    return [StopOut.model_validate(s).model_dump() for s in res.scalars().all()]


@router.get("/{route_id}/stops/{start_stop_id}/{end_stop_id}/fare", response_model=FareQuoteOut)
async def fare_between_stops(route_id: int, start_stop_id: int, end_stop_id: int, db: AsyncSession = Depends(get_session)):
    """Fare and distance between two stops, in either direction."""
    quote = await FareResolver(db).segment(route_id, start_stop_id, end_stop_id)
    return FareQuoteOut.model_validate(quote)


@router.post("/stops", status_code=201)
async def add_stop(payload: StopCreate, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    async with db.begin():
        if not await db.get(Route, payload.route_id):
            raise NotFound("Route not found")
        values = _stop_values(payload.model_dump())
        await _check_cumulative(db, payload.route_id, values["stop_order"], values["distance_from_start_km"], values["fare_from_start"])
        stop = RouteStop(**values)
        db.add(stop)
        await db.flush()
        await log_audit(db, actor_id=current_user.user_id, action="create_route_stop", object_type="route_stop", object_id=stop.id, detail={"route_id": stop.route_id, "stop_order": stop.stop_order})
    return StopOut.model_validate(stop)


@router.put("/stops/{stop_id}")
async def update_stop(stop_id: int, payload: StopUpdate, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise BadRequest("No fields to update")
    async with db.begin():
        stop = await db.get(RouteStop, stop_id)
        if not stop:
            raise NotFound("Route stop not found")
        values = _stop_values(changes)
        current = {f: values[f] if values.get(f) is not None else getattr(stop, f) for f in ("stop_order", "distance_from_start_km", "fare_from_start")}
        await _check_cumulative(
            db,
            stop.route_id,
            current["stop_order"],
            current["distance_from_start_km"],
            current["fare_from_start"],
            stop_id=stop.id,
        )
        for field, value in values.items():
            setattr(stop, field, value)
        await log_audit(db, actor_id=current_user.user_id, action="update_route_stop", object_type="route_stop", object_id=stop.id, detail=changes)
    return StopOut.model_validate(stop)


@router.delete("/stops/{stop_id}")
async def delete_stop(stop_id: int, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    async with db.begin():
        stop = await db.get(RouteStop, stop_id)
        if not stop:
            raise NotFound("Route stop not found")
        await db.delete(stop)
        await log_audit(db, actor_id=current_user.user_id, action="delete_route_stop", object_type="route_stop", object_id=stop_id)
    return {"message": "Route stop deleted successfully"}
