from fastapi import APIRouter, Depends, Query
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from camny.auth.deps import get_current_user, role_required
from camny.db.session import get_session
from camny.enums import Role
from camny.exceptions import Forbidden, NotFound
from camny.metrics import NOTIFICATIONS_CREATED
from camny.models.models import Notification, User
from camny.schemas.engagement import NotificationIn, NotificationOut
from camny.services.audit import log_audit
from camny.services.auth import Principal

router = APIRouter()


async def _list_for(db: AsyncSession, user_id: int, limit: int):
    stmt = (
        sa_select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    res = await db.execute(stmt)
    return [NotificationOut.model_validate(n).model_dump() for n in res.scalars().all()]


@router.get("")
async def my_notifications(limit: int = Query(50, ge=1, le=200), db: AsyncSession = Depends(get_session), current_user: Principal = Depends(get_current_user)):
    return await _list_for(db, current_user.user_id, limit)


@router.post("", status_code=201)
async def send_notification(payload: NotificationIn, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(role_required([Role.ADMIN]))):
    async with db.begin():
        if not await db.get(User, payload.user_id):
            raise NotFound("User not found")
        notification = Notification(user_id=payload.user_id, title=payload.title, message=payload.message, channel="in_app")
        db.add(notification)
        await db.flush()
        await log_audit(db, actor_id=current_user.user_id, action="send_notification", object_type="notification", object_id=notification.id, detail={"user_id": payload.user_id})
        await db.refresh(notification)
    NOTIFICATIONS_CREATED.labels(kind="admin_message").inc()
    return {"message": "Notification sent successfully", "notification": NotificationOut.model_validate(notification).model_dump()}


@router.get("/{user_id}")
async def user_notifications(user_id: int, limit: int = Query(50, ge=1, le=200), db: AsyncSession = Depends(get_session), current_user: Principal = Depends(get_current_user)):
    if not current_user.is_admin and current_user.user_id != user_id:
        raise Forbidden("You can only view your own notifications")
    return await _list_for(db, user_id, limit)


@router.put("/{notification_id}/read")
async def mark_read(notification_id: int, db: AsyncSession = Depends(get_session), current_user: Principal = Depends(get_current_user)):
    async with db.begin():
        notification = await db.get(Notification, notification_id)
        if not notification or (not current_user.is_admin and notification.user_id != current_user.user_id):
            raise NotFound("Notification not found")
        notification.read = True
    return NotificationOut.model_validate(notification)
