import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from camny.config import settings
from camny.metrics import NOTIFICATIONS_CREATED, NOTIFICATIONS_FAILED
from camny.models.models import Notification, Ticket, User
from camny.services.phones import phone_variants

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "notifications" / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


@dataclass(frozen=True)
class TicketContact:
    """Identity fields of a ticket, detached from any session."""

    ticket_id: int
    passenger_id: Optional[int] = None
    passenger_phone: Optional[str] = None
    passenger_email: Optional[str] = None
    buyer_id: Optional[int] = None

    @classmethod
    def from_ticket(cls, ticket: Ticket) -> "TicketContact":
        return cls(
            ticket_id=ticket.id,
            passenger_id=ticket.passenger_id,
            passenger_phone=ticket.passenger_phone,
            passenger_email=ticket.passenger_email,
            buyer_id=ticket.buyer_id,
        )


class NotificationService:
    def __init__(self, db: AsyncSession, locale: str = None):
        self.db = db
        self.locale = locale or settings.NOTIFICATION_LOCALE

    def render(self, template_name: str, context: Dict = None) -> str:
        ctx = context or {}
        # try locale-specific template, fallback to en
        for tpl in (f"{self.locale}/{template_name}", f"en/{template_name}"):
            try:
                return _env.get_template(tpl).render(**ctx)
            except TemplateNotFound:
                continue
        raise RuntimeError("Template not found: %s" % template_name)

    async def notify(self, user_id: int, kind: str, title: str, context: Dict = None) -> Notification:
        """Add an in-app notification to the current transaction."""
        notification = Notification(
            user_id=user_id,
            title=title,
            message=self.render(f"{kind}.txt", context),
            channel="in_app",
        )
        self.db.add(notification)
        NOTIFICATIONS_CREATED.labels(kind=kind).inc()
        return notification

    async def _user_id_where(self, clause) -> Optional[int]:
        res = await self.db.execute(sa_select(User.id).where(clause).limit(1))
        return res.scalar()

    async def resolve_recipient(self, contact: TicketContact) -> Optional[int]:
        """The traveller's user id: passenger_id, else the account with the captured phone, else email."""
        if contact.passenger_id:
            return contact.passenger_id
        if contact.passenger_phone:
            user_id = await self._user_id_where(User.phone.in_(phone_variants(contact.passenger_phone)))
            if user_id:
                return user_id
        if contact.passenger_email:
            return await self._user_id_where(User.email == contact.passenger_email)
        return None


async def notify_ticket_holders(
    session_factory: async_sessionmaker,
    contacts: Iterable[TicketContact],
    kind: str,
    title: str,
    context_for,
) -> int:
    """Notify the traveller of every ticket, each in its own session.

    A failure for one ticket is logged and counted but never raised; the
    return value is the number of notifications actually written.
    """

    async def _one(contact: TicketContact) -> bool:
        try:
            async with session_factory() as session:
                async with session.begin():
                    svc = NotificationService(session)
                    user_id = await svc.resolve_recipient(contact)
                    if not user_id:
                        logger.info("No user account for ticket %s; %s notification skipped", contact.ticket_id, kind)
                        NOTIFICATIONS_FAILED.labels(kind=kind).inc()
                        return False
                    await svc.notify(user_id, kind, title, context_for(contact))
            return True
        except Exception:
            NOTIFICATIONS_FAILED.labels(kind=kind).inc()
            logger.exception("Failed to notify ticket %s (%s)", contact.ticket_id, kind)
            return False

    results = await asyncio.gather(*[_one(c) for c in contacts])
    return sum(1 for ok in results if ok)
