from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from camny.auth.deps import get_current_user, role_required
from camny.db.session import get_session
from camny.enums import Role
from camny.exceptions import Forbidden
from camny.schemas.engagement import (
    LoyaltyAddRequest,
    LoyaltyOut,
    LoyaltyRedeemRequest,
    LoyaltyTransactionOut,
)
from camny.services.auth import Principal
from camny.services.loyalty import LoyaltyService

router = APIRouter()


def _ensure_self_or_admin(current_user: Principal, passenger_id: int):
    if not current_user.is_admin and current_user.user_id != passenger_id:
        raise Forbidden("You can only view your own loyalty account")


@router.get("/")
async def loyalty_root():
    return {"module": "loyalty", "status": "ok"}


@router.post("/add")
async def add_points(payload: LoyaltyAddRequest, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(role_required([Role.ADMIN]))):
    account = await LoyaltyService(db).add_points(payload.passenger_id, payload.points, payload.reason)
    return {"message": "Points added successfully", "loyalty": LoyaltyOut.model_validate(account).model_dump()}


@router.post("/redeem")
async def redeem_points(payload: LoyaltyRedeemRequest, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(get_current_user)):
    passenger_id = payload.passenger_id if current_user.is_admin and payload.passenger_id else current_user.user_id
    account = await LoyaltyService(db).redeem_points(passenger_id, payload.points, payload.reason)
    return {"message": "Points redeemed successfully", "loyalty": LoyaltyOut.model_validate(account).model_dump()}


@router.get("/{passenger_id}", response_model=LoyaltyOut)
async def get_points(passenger_id: int, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(get_current_user)):
    _ensure_self_or_admin(current_user, passenger_id)
    return LoyaltyOut.model_validate(await LoyaltyService(db).get_account(passenger_id))


@router.get("/{passenger_id}/history")
async def points_history(
    passenger_id: int,
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_session),
    current_user: Principal = Depends(get_current_user),
):
    _ensure_self_or_admin(current_user, passenger_id)
    items = await LoyaltyService(db).history(passenger_id, limit=limit)
    return [LoyaltyTransactionOut.model_validate(t).model_dump() for t in items]
