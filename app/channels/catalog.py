"""
Payment channels activated on the gateway account.

Maps internal method ids to the gateway channel code, the API archetype the
channel is served through, and the amount limits the gateway enforces for
it (IDR, minor unit). Entries marked inactive are known to the storefront
but not activated upstream; requests for them are rejected with a list of
alternatives instead of failing at the gateway.
"""

from typing import Iterable, Optional

from app.channels.registry import ChannelRegistry, PaymentChannel
from app.models.enums import ChannelArchetype

BANK = ChannelArchetype.BANK_TRANSFER
WALLET = ChannelArchetype.WALLET_OR_QR
OTC = ChannelArchetype.OVER_THE_COUNTER
OTHER = ChannelArchetype.OTHER


DEFAULT_CHANNELS: tuple[PaymentChannel, ...] = (
    # ─── QR / e-wallet ─────────────────────────────────────────────────
    PaymentChannel("qris", "QRIS", WALLET, "QRIS", 1_000, 10_000_000),
    PaymentChannel("astrapay", "AstraPay", WALLET, "ASTRAPAY", 10_000, 1_000_000),
    # Not activated upstream yet.
    PaymentChannel("ovo", "OVO", WALLET, "OVO", 10_000, 10_000_000, is_active=False),
    PaymentChannel("dana", "DANA", WALLET, "DANA", 10_000, 10_000_000, is_active=False),
    PaymentChannel("gopay", "GoPay", WALLET, "GOPAY", 10_000, 2_000_000, is_active=False),
    PaymentChannel("shopeepay", "ShopeePay", WALLET, "SHOPEEPAY", 1_000, 2_000_000, is_active=False),
    PaymentChannel("linkaja", "LinkAja", WALLET, "LINKAJA", 10_000, 10_000_000, is_active=False),
    # ─── Virtual accounts (fixed account + bound invoice) ──────────────
    PaymentChannel("bca", "BCA VA", BANK, "BCA", 1_000, 50_000_000),
    PaymentChannel("bni", "BNI VA", BANK, "BNI", 1_000, 500_000_000),
    PaymentChannel("bri", "BRI VA", BANK, "BRI", 1_000, 1_000_000_000),
    PaymentChannel("mandiri", "Mandiri VA", BANK, "MANDIRI", 1_000, 500_000_000),
    PaymentChannel("bsi", "BSI VA", BANK, "BSI", 1_000, 100_000_000),
    PaymentChannel("cimb", "CIMB Niaga VA", BANK, "CIMB", 1_000, 100_000_000),
    PaymentChannel("permata", "Permata VA", BANK, "PERMATA", 1_000, 100_000_000),
    PaymentChannel("bjb", "BJB VA", BANK, "BJB", 1_000, 100_000_000),
    PaymentChannel("muamalat", "Muamalat VA", BANK, "MUAMALAT", 1_000, 100_000_000),
    # ─── Over the counter ──────────────────────────────────────────────
    PaymentChannel("indomaret", "Indomaret", OTC, "INDOMARET", 10_000, 2_500_000),
    PaymentChannel("alfamart", "Alfamart", OTC, "ALFAMART", 10_000, 2_500_000, is_active=False),
    # ─── Anything else is served through the generic payment request ───
    PaymentChannel("credit_card", "Kartu Kredit/Debit", OTHER, "CARDS", 10_000, 1_000_000_000, is_active=False),
)


def build_registry(
    channels: Iterable[PaymentChannel] = DEFAULT_CHANNELS,
    disabled: Optional[Iterable[str]] = None,
) -> ChannelRegistry:
    """
    Build the process-wide registry.

    Called once at startup; ``disabled`` deactivates channel ids (e.g. from
    configuration) without touching the catalog.
    """
    return ChannelRegistry(channels).deactivated(disabled or ())
