from app.channels.catalog import DEFAULT_CHANNELS, build_registry
from app.channels.registry import ChannelRegistry, PaymentChannel

__all__ = ["DEFAULT_CHANNELS", "build_registry", "ChannelRegistry", "PaymentChannel"]
