"""
Channel listing.

GET /channels — Active payment methods, optionally only those accepting an amount.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.api.deps import get_registry
from app.channels.registry import ChannelRegistry, PaymentChannel

router = APIRouter(prefix="/channels", tags=["channels"])


class ChannelOut(BaseModel):
    id: str
    name: str
    type: str
    min_amount: int
    max_amount: int


def channel_summary(channel: PaymentChannel) -> ChannelOut:
    return ChannelOut(
        id=channel.id,
        name=channel.display_name,
        type=channel.archetype.value,
        min_amount=channel.min_amount,
        max_amount=channel.max_amount,
    )


@router.get("", response_model=list[ChannelOut])
async def list_channels(
    amount: Optional[int] = Query(None, gt=0, description="Only channels accepting this amount"),
    registry: ChannelRegistry = Depends(get_registry),
):
    return [channel_summary(c) for c in registry.list_active(amount)]
