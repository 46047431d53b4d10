from typing import List

from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from camny.enums import LoyaltyTier, LoyaltyTransactionType
from camny.exceptions import BadRequest, NotFound
from camny.models.models import LoyaltyAccount, LoyaltyTransaction, User


def tier_for(total_points: int) -> str:
    for minimum, tier in LoyaltyTier.THRESHOLDS:
        if total_points >= minimum:
            return tier
    return LoyaltyTier.BRONZE


class LoyaltyService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _account(self, passenger_id: int, create: bool = True) -> LoyaltyAccount:
        res = await self.session.execute(sa_select(LoyaltyAccount).where(LoyaltyAccount.passenger_id == passenger_id))
        account = res.scalars().first()
        if account is None and create:
            if not await self.session.get(User, passenger_id):
                raise NotFound("User not found")
            account = LoyaltyAccount(
                passenger_id=passenger_id,
                total_points=0,
                redeemed_points=0,
                available_points=0,
                tier=LoyaltyTier.BRONZE,
            )
            self.session.add(account)
            await self.session.flush()
        return account

    async def get_account(self, passenger_id: int) -> LoyaltyAccount:
        """Balance for a passenger; an empty bronze account is opened on first read."""
        async with self.session.begin():
            return await self._account(passenger_id)

    async def add_points(self, passenger_id: int, points: int, reason: str = None) -> LoyaltyAccount:
        async with self.session.begin():
            account = await self._account(passenger_id)
            account.total_points += points
            account.available_points += points
            account.tier = tier_for(account.total_points)
            self.session.add(
                LoyaltyTransaction(
                    passenger_id=passenger_id,
                    points=points,
                    type=LoyaltyTransactionType.EARNED,
                    reason=reason or "Ticket purchase",
                )
            )
        return account

    async def redeem_points(self, passenger_id: int, points: int, reason: str = None) -> LoyaltyAccount:
        async with self.session.begin():
            account = await self._account(passenger_id, create=False)
            if account is None:
                raise NotFound("Loyalty account not found")
            if account.available_points < points:
                raise BadRequest("Insufficient points")
            account.redeemed_points += points
            account.available_points -= points
            self.session.add(
                LoyaltyTransaction(
                    passenger_id=passenger_id,
                    points=points,
                    type=LoyaltyTransactionType.REDEEMED,
                    reason=reason or "Points redemption",
                )
            )
        return account

    async def history(self, passenger_id: int, limit: int = 50) -> List[LoyaltyTransaction]:
        res = await self.session.execute(
            sa_select(LoyaltyTransaction)
            .where(LoyaltyTransaction.passenger_id == passenger_id)
            .order_by(LoyaltyTransaction.created_at.desc(), LoyaltyTransaction.id.desc())
            .limit(limit)
        )
        return list(res.scalars().all())
