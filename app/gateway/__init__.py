from app.gateway.base import GatewayEndpoint, GatewayPayload, PayloadPlan
from app.gateway.client import GatewayClient
from app.gateway.payloads import build_payload

__all__ = ["GatewayEndpoint", "GatewayPayload", "PayloadPlan", "GatewayClient", "build_payload"]
