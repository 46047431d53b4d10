from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import case, func
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from camny.auth.deps import get_current_user
from camny.db.session import get_session
from camny.models.models import Review, User
from camny.schemas.engagement import ReviewIn, ReviewOut
from camny.services.auth import Principal

router = APIRouter()


def _filtered(stmt, route_id: Optional[int], driver_id: Optional[int], vehicle_id: Optional[int]):
    if route_id:
        stmt = stmt.where(Review.route_id == route_id)
    if driver_id:
        stmt = stmt.where(Review.driver_id == driver_id)
    if vehicle_id:
        stmt = stmt.where(Review.vehicle_id == vehicle_id)
    return stmt


@router.post("", status_code=201)
async def submit_review(payload: ReviewIn, response: Response, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(get_current_user)):
    """One review per passenger and target; resubmitting replaces the rating."""
    async with db.begin():
        # the target is the first of route, driver, vehicle that was given
        if payload.route_id:
            target = Review.route_id == payload.route_id
        elif payload.driver_id:
            target = Review.driver_id == payload.driver_id
        else:
            target = Review.vehicle_id == payload.vehicle_id
        res = await db.execute(sa_select(Review).where(Review.passenger_id == current_user.user_id).where(target))
        review = res.scalars().first()
        if review:
            review.rating = payload.rating
            review.comment = payload.comment
            review.created_at = func.now()
            message = "Review updated successfully"
            response.status_code = status.HTTP_200_OK
        else:
            review = Review(passenger_id=current_user.user_id, **payload.model_dump())
            db.add(review)
            message = "Review submitted successfully"
        await db.flush()
        await db.refresh(review)
    return {"message": message, "review": ReviewOut.model_validate(review).model_dump()}


@router.get("")
async def list_reviews(
    route_id: Optional[int] = None,
    driver_id: Optional[int] = None,
    vehicle_id: Optional[int] = None,
    db: AsyncSession = Depends(get_session),
):
    stmt = _filtered(
        sa_select(Review, User.full_name).join(User, Review.passenger_id == User.id),
        route_id,
        driver_id,
        vehicle_id,
    ).order_by(Review.created_at.desc(), Review.id.desc()).limit(50)
    res = await db.execute(stmt)
    return [dict(ReviewOut.model_validate(r).model_dump(), passenger_name=name) for r, name in res.all()]


@router.get("/average")
async def average_rating(
    route_id: Optional[int] = None,
    driver_id: Optional[int] = None,
    vehicle_id: Optional[int] = None,
    db: AsyncSession = Depends(get_session),
):
    stars = [func.count(case((Review.rating == n, 1))) for n in (5, 4, 3, 2, 1)]
    stmt = _filtered(sa_select(func.avg(Review.rating), func.count(Review.id), *stars), route_id, driver_id, vehicle_id)
    row = (await db.execute(stmt)).one()
    avg, total = row[0], row[1]
    return {
        "average_rating": round(float(avg), 2) if avg is not None else 0.0,
        "total_reviews": total,
        "five_star": row[2],
        "four_star": row[3],
        "three_star": row[4],
        "two_star": row[5],
        "one_star": row[6],
    }
