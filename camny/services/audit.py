from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from camny.models.models import AuditLog


async def log_audit(db: AsyncSession, actor_id: Optional[int], action: str, object_type: str = None, object_id=None, detail: dict = None, ip_address: str = None):
    audit = AuditLog(
        actor_id=actor_id,
        action=action,
        object_type=object_type,
        object_id=str(object_id) if object_id is not None else None,
        detail=detail,
        ip_address=ip_address,
    )
    db.add(audit)
    # do not commit here; caller should include in transaction context
    return audit
