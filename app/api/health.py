"""Liveness endpoint."""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request):
    registry = getattr(request.app.state, "registry", None)
    return {
        "status": "ok",
        "active_channels": len(registry.list_active()) if registry is not None else 0,
    }
