"""
Read-only channel registry.

The registry is constructed explicitly (once per process, or once per test
with fixture channels) and never mutated afterwards. All amount and
activation checks happen here, before any network call.
"""

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Iterable, Optional

from app.engine.errors import AmountOutOfRange, ChannelInactive, InvalidChannel
from app.models.enums import ChannelArchetype


@dataclass(frozen=True)
class PaymentChannel:
    """A payment method the storefront offers."""

    id: str
    display_name: str
    archetype: ChannelArchetype
    gateway_channel_code: str
    min_amount: int
    max_amount: int
    is_active: bool = True

    def accepts(self, amount: int) -> bool:
        return self.min_amount <= amount <= self.max_amount


class ChannelRegistry:
    """Immutable lookup of payment channels by internal id."""

    def __init__(self, channels: Iterable[PaymentChannel]):
        table: dict[str, PaymentChannel] = {}
        for channel in channels:
            key = channel.id.lower()
            if key in table:
                raise ValueError(f"Duplicate payment channel id: {channel.id}")
            if channel.min_amount > channel.max_amount:
                raise ValueError(f"Channel {channel.id} has min_amount above max_amount")
            table[key] = channel
        self._channels = MappingProxyType(table)

    def __len__(self) -> int:
        return len(self._channels)

    def __contains__(self, channel_id: object) -> bool:
        return isinstance(channel_id, str) and channel_id.lower() in self._channels

    def deactivated(self, channel_ids: Iterable[str]) -> "ChannelRegistry":
        """Return a new registry with the given ids switched off."""
        off = {c.lower() for c in channel_ids}
        if not off:
            return self
        return ChannelRegistry(
            replace(c, is_active=False) if key in off else c
            for key, c in self._channels.items()
        )

    def get(self, channel_id: Optional[str]) -> Optional[PaymentChannel]:
        if not channel_id:
            return None
        return self._channels.get(channel_id.strip().lower())

    def resolve(self, channel_id: Optional[str]) -> PaymentChannel:
        """
        Look up a channel by internal id.

        Raises:
            InvalidChannel: The id is unknown.
        """
        channel = self.get(channel_id)
        if channel is None:
            raise InvalidChannel(channel_id or "")
        return channel

    @staticmethod
    def validate_amount(channel: PaymentChannel, amount: int) -> bool:
        """True when min_amount <= amount <= max_amount (boundaries included)."""
        return channel.accepts(amount)

    def require(self, channel_id: Optional[str], amount: int) -> PaymentChannel:
        """
        Resolve a channel that can take this payment right now.

        Checks run in order: existence, activation, amount range.

        Raises:
            InvalidChannel: Unknown id.
            ChannelInactive: Known but deactivated.
            AmountOutOfRange: Amount outside [min_amount, max_amount].
        """
        channel = self.resolve(channel_id)
        if not channel.is_active:
            raise ChannelInactive(channel.id)
        if not self.validate_amount(channel, amount):
            raise AmountOutOfRange(channel.id, amount, channel.min_amount, channel.max_amount)
        return channel

    def list_active(self, amount: Optional[int] = None) -> list[PaymentChannel]:
        """Active channels in catalog order, optionally only those accepting ``amount``."""
        return [
            c for c in self._channels.values()
            if c.is_active and (amount is None or c.accepts(amount))
        ]

    def alternatives(self, exclude: Optional[str] = None, amount: Optional[int] = None, limit: int = 3) -> list[PaymentChannel]:
        """A short list of active channels to suggest instead of ``exclude``."""
        excluded = (exclude or "").lower()
        return [c for c in self.list_active(amount) if c.id.lower() != excluded][:limit]

    def gateway_code(self, channel_id: str) -> str:
        """Gateway channel code, or the upper-cased id for unknown channels."""
        channel = self.get(channel_id)
        return channel.gateway_channel_code if channel else channel_id.upper()
