"""Module for the virtual fridge inventory.

Contains:
- FridgeService: CRUD over fridge items and the expiry check that feeds
  ExpiringItems notifications
"""
import logging
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import FridgeItem
from services.realtime import ExpiringItem, RealtimeService

logger = logging.getLogger(__name__)


def days_until(expiry_date: date, today: date | None = None) -> int:
    """Whole days left until expiry, never negative."""
    today = today or date.today()
    return max(0, (expiry_date - today).days)


class FridgeService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_item(self, user_id: UUID, **fields) -> FridgeItem:
        item = FridgeItem(user_id=user_id, **fields)
        self.session.add(item)
        await self.session.commit()
        await self.session.refresh(item)
        return item

    async def list_items(
        self,
        user_id: UUID,
        category: str | None = None,
        location: str | None = None,
        search: str | None = None,
    ) -> list[FridgeItem]:
        stmt = select(FridgeItem).where(FridgeItem.user_id == user_id)
        if category:
            stmt = stmt.where(FridgeItem.category == category)
        if location:
            stmt = stmt.where(FridgeItem.location == location)
        if search:
            stmt = stmt.where(FridgeItem.name.ilike(f"%{search}%"))
        stmt = stmt.order_by(FridgeItem.created_at.desc())
        return list((await self.session.execute(stmt)).scalars().all())

    async def remove_item(self, user_id: UUID, item_id: UUID) -> bool:
        item = await self.session.get(FridgeItem, item_id)
        if not item or item.user_id != user_id:
            return False
        await self.session.delete(item)
        await self.session.commit()
        return True

    async def get_expiring_items(
        self, user_id: UUID, days_ahead: int = 7, today: date | None = None
    ) -> list[FridgeItem]:
        """Items expiring within ``days_ahead`` days (already expired included), soonest first."""
        today = today or date.today()
        stmt = (
            select(FridgeItem)
            .where(
                FridgeItem.user_id == user_id,
                FridgeItem.expiry_date.is_not(None),
                FridgeItem.expiry_date <= today + timedelta(days=days_ahead),
            )
            .order_by(FridgeItem.expiry_date.asc())
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def check_and_notify_expiring_items(
        self,
        user_id: UUID,
        realtime: RealtimeService,
        days_ahead: int = 3,
        today: date | None = None,
    ) -> list[ExpiringItem]:
        """Push an ExpiringItems event to the user if anything expires soon.

        Returns:
            The items included in the notification (empty if none)
        """
        today = today or date.today()
        expiring = await self.get_expiring_items(user_id, days_ahead, today)
        items = [
            ExpiringItem(id=item.id, name=item.name, days_left=days_until(item.expiry_date, today))
            for item in expiring
        ]
        if items:
            delivered = await realtime.notify_expiring_items(user_id, items)
            logger.info(f"User {user_id} | {len(items)} expiring items | delivered to {delivered} sessions")
        return items
