from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy import case, func
from sqlalchemy import delete as sa_delete
from sqlalchemy import select as sa_select
from sqlalchemy import update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from camny.auth.deps import role_required
from camny.db.session import get_session
from camny.enums import PaymentStatus, Role
from camny.exceptions import BadRequest, NotFound
from camny.models.models import Company, Driver, Route, RouteStop, Ticket, User, Vehicle
from camny.schemas.fleet import (
    AssignDriverIn,
    AssignVehicleIn,
    CompanyCreate,
    CompanyOut,
    DriverCreate,
    DriverOut,
    DriverUpdate,
    RouteCreate,
    RouteOut,
    RouteUpdate,
    VehicleCreate,
    VehicleOut,
    VehicleUpdate,
)
from camny.schemas.ticket import TicketOut
from camny.services import auth as auth_service
from camny.services.assignments import AssignmentPropagator
from camny.services.audit import log_audit
from camny.services.auth import Principal
from camny.services.phones import normalize_phone

router = APIRouter()

admin_only = role_required([Role.ADMIN])

MONEY_FIELDS = ("fare_base", "distance_km")


def _apply(obj, changes: dict):
    for field, value in changes.items():
        if field in MONEY_FIELDS and value is not None:
            value = Decimal(str(value))
        setattr(obj, field, value)


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _driver_out(driver: Driver) -> dict:
    user = driver.user
    return DriverOut(
        id=driver.id,
        user_id=driver.user_id,
        full_name=user.full_name if user else None,
        email=user.email if user else None,
        phone=user.phone if user else None,
        license_number=driver.license_number,
        status=driver.status,
        assigned_line_id=driver.assigned_line_id,
    ).model_dump()


@router.get("/")
async def admin_root():
    return {"module": "admin", "status": "ok"}


# Drivers
@router.get("/drivers")
async def list_drivers(db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    res = await db.execute(sa_select(Driver).order_by(Driver.id))
    return [_driver_out(d) for d in res.scalars().all()]


@router.post("/drivers", status_code=201)
async def create_driver(payload: DriverCreate, request: Request, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    """Create the driver's user account and driver record together."""
    async with db.begin():
        user = User(
            email=payload.email.lower(),
            full_name=payload.full_name,
            phone=normalize_phone(payload.phone) or None,
            hashed_password=auth_service.hash_password(payload.password),
            role=Role.DRIVER,
        )
        db.add(user)
        await db.flush()
        driver = Driver(user_id=user.id, license_number=payload.license_number, status=payload.status or "active")
        driver.user = user
        db.add(driver)
        await db.flush()
        await log_audit(db, actor_id=current_user.user_id, action="create_driver", object_type="driver", object_id=driver.id, detail={"email": user.email, "license_number": driver.license_number}, ip_address=_client_ip(request))
    return {"message": "Driver created successfully", "driver": _driver_out(driver)}


@router.put("/drivers/{driver_id}")
async def update_driver(driver_id: int, payload: DriverUpdate, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    changes = payload.model_dump(exclude_unset=True)
    async with db.begin():
        driver = await db.get(Driver, driver_id)
        if not driver:
            raise NotFound("Driver not found")
        if changes.get("phone"):
            changes["phone"] = normalize_phone(changes["phone"])
        for field in ("full_name", "phone"):
            if field in changes:
                setattr(driver.user, field, changes.pop(field))
        _apply(driver, changes)
        await log_audit(db, actor_id=current_user.user_id, action="update_driver", object_type="driver", object_id=driver.id, detail=payload.model_dump(exclude_unset=True))
    return {"message": "Driver updated successfully", "driver": _driver_out(driver)}


@router.delete("/drivers/{driver_id}")
async def delete_driver(driver_id: int, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    async with db.begin():
        driver = await db.get(Driver, driver_id)
        if not driver:
            raise NotFound("Driver not found")
        await db.execute(sa_update(Vehicle).where(Vehicle.assigned_driver == driver_id).values(assigned_driver=None))
        await db.execute(sa_update(Route).where(Route.assigned_driver == driver_id).values(assigned_driver=None))
        await db.delete(driver)
        await log_audit(db, actor_id=current_user.user_id, action="delete_driver", object_type="driver", object_id=driver_id)
    return {"message": "Driver deleted successfully"}


# Vehicles
@router.get("/vehicles")
async def list_vehicles(db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    res = await db.execute(sa_select(Vehicle).order_by(Vehicle.id))
    return [VehicleOut.model_validate(v).model_dump() for v in res.scalars().all()]


@router.post("/vehicles", status_code=201)
async def create_vehicle(payload: VehicleCreate, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    vehicle = Vehicle(**payload.model_dump())
    async with db.begin():
        db.add(vehicle)
        await db.flush()
        await log_audit(db, actor_id=current_user.user_id, action="create_vehicle", object_type="vehicle", object_id=vehicle.id, detail={"plate_number": vehicle.plate_number})
    return VehicleOut.model_validate(vehicle)


@router.put("/vehicles/{vehicle_id}")
async def update_vehicle(vehicle_id: int, payload: VehicleUpdate, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    async with db.begin():
        vehicle = await db.get(Vehicle, vehicle_id)
        if not vehicle:
            raise NotFound("Vehicle not found")
        _apply(vehicle, payload.model_dump(exclude_unset=True))
        await log_audit(db, actor_id=current_user.user_id, action="update_vehicle", object_type="vehicle", object_id=vehicle.id, detail=payload.model_dump(exclude_unset=True))
    return VehicleOut.model_validate(vehicle)


@router.delete("/vehicles/{vehicle_id}")
async def delete_vehicle(vehicle_id: int, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    async with db.begin():
        vehicle = await db.get(Vehicle, vehicle_id)
        if not vehicle:
            raise NotFound("Vehicle not found")
        await db.execute(sa_update(Route).where(Route.assigned_vehicle == vehicle_id).values(assigned_vehicle=None))
        await db.delete(vehicle)
        await log_audit(db, actor_id=current_user.user_id, action="delete_vehicle", object_type="vehicle", object_id=vehicle_id)
    return {"message": "Vehicle deleted successfully"}


@router.post("/vehicles/{vehicle_id}/assign-driver")
async def assign_driver_to_vehicle(vehicle_id: int, payload: AssignDriverIn, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    vehicle = await AssignmentPropagator(db).assign_driver_to_vehicle(vehicle_id, payload.driver_id, actor_id=current_user.user_id)
    return {"message": "Driver assigned successfully", "vehicle": VehicleOut.model_validate(vehicle).model_dump()}


# Routes
@router.get("/routes")
async def list_routes(db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    stmt = sa_select(Route, Company.name).outerjoin(Company, Route.company_id == Company.id).order_by(Route.id)
    res = await db.execute(stmt)
    return [dict(RouteOut.model_validate(r).model_dump(), company_name=name) for r, name in res.all()]


@router.post("/routes", status_code=201)
async def create_route(payload: RouteCreate, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    route = Route()
    _apply(route, payload.model_dump())
    async with db.begin():
        db.add(route)
        await db.flush()
        await log_audit(db, actor_id=current_user.user_id, action="create_route", object_type="route", object_id=route.id, detail={"route_name": route.route_name})
        await db.refresh(route)
    return RouteOut.model_validate(route)


@router.put("/routes/{route_id}")
async def update_route(route_id: int, payload: RouteUpdate, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    async with db.begin():
        route = await db.get(Route, route_id)
        if not route:
            raise NotFound("Route not found")
        _apply(route, payload.model_dump(exclude_unset=True))
        await log_audit(db, actor_id=current_user.user_id, action="update_route", object_type="route", object_id=route.id, detail=payload.model_dump(mode="json", exclude_unset=True))
    return RouteOut.model_validate(route)


@router.delete("/routes/{route_id}")
async def delete_route(route_id: int, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    """Delete a route with its tickets and stops, detaching vehicles and drivers."""
    async with db.begin():
        route = await db.get(Route, route_id)
        if not route:
            raise NotFound("Route not found")
        route_name = route.route_name
        await db.execute(sa_delete(Ticket).where(Ticket.route_id == route_id))
        await db.execute(sa_delete(RouteStop).where(RouteStop.route_id == route_id))
        await db.execute(sa_update(Vehicle).where(Vehicle.assigned_route == route_id).values(assigned_route=None))
        await db.execute(sa_update(Driver).where(Driver.assigned_line_id == route_id).values(assigned_line_id=None))
        await db.execute(sa_delete(Route).where(Route.id == route_id))
        await log_audit(db, actor_id=current_user.user_id, action="delete_route", object_type="route", object_id=route_id, detail={"route_name": route_name})
    return {"message": "Route deleted successfully"}


@router.post("/routes/{route_id}/assign-driver")
async def assign_driver_to_route(route_id: int, payload: AssignDriverIn, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    route = await AssignmentPropagator(db).assign_driver_to_route(route_id, payload.driver_id, actor_id=current_user.user_id)
    return {"message": "Driver assigned to route successfully", "route": RouteOut.model_validate(route).model_dump()}


@router.put("/routes/{route_id}/assign-vehicle")
async def assign_vehicle_to_route(route_id: int, payload: AssignVehicleIn, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    route = await AssignmentPropagator(db).assign_vehicle_to_route(route_id, payload.vehicle_id, actor_id=current_user.user_id)
    return {"message": "Vehicle assigned to route successfully", "route": RouteOut.model_validate(route).model_dump()}


# Companies
@router.get("/companies")
async def list_companies(db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    res = await db.execute(sa_select(Company).order_by(Company.id))
    return [CompanyOut.model_validate(c).model_dump() for c in res.scalars().all()]


@router.post("/companies", status_code=201)
async def create_company(payload: CompanyCreate, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    company = Company(**payload.model_dump())
    async with db.begin():
        db.add(company)
        await db.flush()
        await log_audit(db, actor_id=current_user.user_id, action="create_company", object_type="company", object_id=company.id, detail={"name": company.name})
    return CompanyOut.model_validate(company)


# Users and tickets
@router.get("/users")
async def list_users(role: Optional[str] = None, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    stmt = sa_select(User).order_by(User.id)
    if role:
        stmt = stmt.where(User.role == role)
    res = await db.execute(stmt)
    return [
        {"id": u.id, "full_name": u.full_name, "email": u.email, "phone": u.phone, "role": u.role, "is_active": u.is_active}
        for u in res.scalars().all()
    ]


@router.get("/tickets")
async def list_tickets(
    route_id: Optional[int] = None,
    vehicle_id: Optional[int] = None,
    payment_status: Optional[str] = None,
    db: AsyncSession = Depends(get_session),
    current_user: Principal = Depends(admin_only),
):
    stmt = sa_select(Ticket).order_by(Ticket.id)
    if route_id:
        stmt = stmt.where(Ticket.route_id == route_id)
    if vehicle_id:
        stmt = stmt.where(Ticket.vehicle_id == vehicle_id)
    if payment_status:
        stmt = stmt.where(Ticket.payment_status == payment_status)
    res = await db.execute(stmt)
    return [TicketOut.model_validate(t).model_dump() for t in res.scalars().all()]


# Reports
@router.get("/stats")
async def stats(db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    out = {}
    for key, model in (
        ("total_users", User),
        ("total_drivers", Driver),
        ("total_vehicles", Vehicle),
        ("total_routes", Route),
        ("total_tickets", Ticket),
    ):
        res = await db.execute(sa_select(func.count()).select_from(model))
        out[key] = res.scalar() or 0
    return out


@router.get("/reports/revenue")
async def revenue_report(start: Optional[datetime] = None, end: Optional[datetime] = None, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    if start and end and start > end:
        raise BadRequest("start must be before end")
    stmt = (
        sa_select(Route.id, Route.route_name, func.count(Ticket.id), func.coalesce(func.sum(Ticket.amount_paid), 0))
        .select_from(Ticket)
        .join(Route, Ticket.route_id == Route.id)
        .where(Ticket.payment_status == PaymentStatus.COMPLETED)
        .group_by(Route.id, Route.route_name)
        .order_by(Route.id)
    )
    if start:
        stmt = stmt.where(Ticket.paid_at >= start)
    if end:
        stmt = stmt.where(Ticket.paid_at <= end)
    res = await db.execute(stmt)
    by_route = [
        {"route_id": rid, "route_name": name, "tickets": count, "revenue": float(total)}
        for rid, name, count, total in res.all()
    ]
    return {
        "total": sum(r["revenue"] for r in by_route),
        "count": sum(r["tickets"] for r in by_route),
        "by_route": by_route,
    }


@router.get("/passengers")
async def passengers(db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    """Ticket holders grouped by identity, busiest first."""
    paid = case((Ticket.payment_status == PaymentStatus.COMPLETED, 1), else_=0)
    stmt = (
        sa_select(
            Ticket.passenger_id,
            Ticket.passenger_name,
            Ticket.passenger_phone,
            Ticket.passenger_email,
            func.count(Ticket.id).label("total_tickets"),
            func.sum(paid).label("completed_tickets"),
            func.coalesce(func.sum(Ticket.amount_paid * paid), 0).label("total_spent"),
        )
        .group_by(Ticket.passenger_id, Ticket.passenger_name, Ticket.passenger_phone, Ticket.passenger_email)
        .order_by(func.count(Ticket.id).desc())
    )
    res = await db.execute(stmt)
    return [
        {
            "passenger_id": row.passenger_id,
            "passenger_name": row.passenger_name,
            "passenger_phone": row.passenger_phone,
            "passenger_email": row.passenger_email,
            "total_tickets": row.total_tickets,
            "completed_tickets": int(row.completed_tickets or 0),
            "total_spent": float(row.total_spent or 0),
        }
        for row in res.all()
    ]


@router.get("/driver-assignments")
async def driver_assignments(db: AsyncSession = Depends(get_session), current_user: Principal = Depends(admin_only)):
    drivers = (await db.execute(sa_select(Driver).order_by(Driver.id))).scalars().all()
    vehicles = (await db.execute(sa_select(Vehicle).where(Vehicle.assigned_driver.is_not(None)))).scalars().all()
    routes = {r.id: r for r in (await db.execute(sa_select(Route))).scalars().all()}
    counts = dict(
        (
            await db.execute(
                sa_select(Ticket.vehicle_id, func.count(Ticket.id))
                .where(Ticket.payment_status == PaymentStatus.COMPLETED)
                .group_by(Ticket.vehicle_id)
            )
        ).all()
    )
    vehicle_by_driver = {v.assigned_driver: v for v in vehicles}

    out = []
    for d in drivers:
        vehicle = vehicle_by_driver.get(d.id)
        route_id = (vehicle.assigned_route if vehicle else None) or d.assigned_line_id
        route = routes.get(route_id)
        out.append(
            {
                "driver": _driver_out(d),
                "vehicle_id": vehicle.id if vehicle else None,
                "plate_number": vehicle.plate_number if vehicle else None,
                "route_id": route.id if route else None,
                "route_name": route.route_name if route else None,
                "start_location": route.start_location if route else None,
                "end_location": route.end_location if route else None,
                "expected_start_time": route.expected_start_time.isoformat() if route and route.expected_start_time else None,
                "paid_passengers": counts.get(vehicle.id, 0) if vehicle else 0,
            }
        )
    return out
