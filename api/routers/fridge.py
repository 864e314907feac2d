"""Fridge router for IT Cook API."""
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query

from api.auth import CurrentIdentity
from api.dependencies import DBSession, Realtime
from api.schemas import ExpiringItemRead, ExpiryNotifyResult, FridgeItemCreate, FridgeItemRead
from config import settings
from services.fridge import FridgeService, days_until

router = APIRouter()


@router.get("", response_model=list[FridgeItemRead])
async def list_items(
    identity: CurrentIdentity,
    session: DBSession,
    category: str | None = None,
    location: str | None = None,
    search: str | None = None,
):
    """List fridge contents."""
    items = await FridgeService(session).list_items(identity.user_id, category, location, search)
    return [FridgeItemRead.model_validate(item) for item in items]


@router.post("", response_model=FridgeItemRead, status_code=201)
async def add_item(data: FridgeItemCreate, identity: CurrentIdentity, session: DBSession):
    """Put an item into the fridge."""
    fields = data.model_dump(exclude_none=True)
    item = await FridgeService(session).add_item(identity.user_id, **fields)
    return FridgeItemRead.model_validate(item)


@router.get("/expiring", response_model=list[ExpiringItemRead])
async def list_expiring(
    identity: CurrentIdentity,
    session: DBSession,
    days: int = Query(7, ge=0, le=365),
):
    """Items expiring within the given number of days."""
    items = await FridgeService(session).get_expiring_items(identity.user_id, days)
    return [
        ExpiringItemRead(id=item.id, name=item.name, days_left=days_until(item.expiry_date))
        for item in items
    ]


@router.post("/expiring/notify", response_model=ExpiryNotifyResult)
async def notify_expiring(identity: CurrentIdentity, session: DBSession, realtime: Realtime):
    """Push an expiring-items notification to the caller's open sessions."""
    items = await FridgeService(session).check_and_notify_expiring_items(
        identity.user_id, realtime, days_ahead=settings.FRIDGE_EXPIRY_WARNING_DAYS
    )
    return ExpiryNotifyResult(
        notified=bool(items),
        items=[ExpiringItemRead(**item.model_dump()) for item in items],
    )


@router.delete("/{item_id}", status_code=204)
async def remove_item(item_id: UUID, identity: CurrentIdentity, session: DBSession):
    """Take an item out of the fridge."""
    if not await FridgeService(session).remove_item(identity.user_id, item_id):
        raise HTTPException(status_code=404, detail="Item not found")
