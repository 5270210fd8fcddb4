"""
Exception handlers mapping engine errors to HTTP responses.

Error body: {error, suggestions?, available_methods?, details?, type?}.

  - request validation and registry errors → 400, with alternatives
  - gateway rejections → upstream status (502 if it is not an error status)
  - transport failures → 500, type "processing_error"
  - missing gateway configuration → 500
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.engine.errors import (
    AmountOutOfRange,
    ChannelInactive,
    EngineError,
    GatewayNotConfigured,
    GatewayRejected,
    GatewayUnreachable,
    InvalidChannel,
    InvalidRequest,
    describe_gateway_error,
    is_channel_unavailable,
)

logger = logging.getLogger("payment_router.api")

REQUEST_SUGGESTIONS = [
    "Check that amount is a positive whole number",
    "Select one of the available payment methods",
    "Provide a unique external_id for every order",
]


def _available_methods(request: Request, exclude: Optional[str] = None, amount: Optional[int] = None) -> list[dict]:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        return []
    return [
        {"id": c.id, "name": c.display_name, "type": c.archetype.value}
        for c in registry.alternatives(exclude=exclude, amount=amount)
    ]


def _error_body(error: str, **extra: Any) -> dict[str, Any]:
    body = {"error": error}
    body.update({k: v for k, v in extra.items() if v not in (None, [])})
    return body


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content=_error_body(
        "Invalid payment request",
        details=jsonable_encoder(exc.errors()),
        suggestions=REQUEST_SUGGESTIONS,
        available_methods=_available_methods(request),
    ))


async def client_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    exclude = getattr(exc, "channel_id", None)
    amount = exc.amount if isinstance(exc, AmountOutOfRange) else None
    suggestions = ["Choose another payment method"]
    if isinstance(exc, AmountOutOfRange):
        suggestions = [
            f"Use an amount between {exc.min_amount} and {exc.max_amount} for this method",
            "Or choose a payment method that accepts this amount",
        ]
    elif isinstance(exc, InvalidRequest):
        suggestions = REQUEST_SUGGESTIONS

    return JSONResponse(status_code=400, content=_error_body(
        exc.message,
        suggestions=suggestions,
        available_methods=_available_methods(request, exclude=exclude, amount=amount),
    ))


async def gateway_rejected_handler(request: Request, exc: GatewayRejected) -> JSONResponse:
    status = exc.status if 400 <= exc.status < 600 else 502
    extra: dict[str, Any] = {"details": exc.body}
    if is_channel_unavailable(exc):
        extra["suggestions"] = ["Choose another payment method"]
        extra["available_methods"] = _available_methods(request)
    logger.warning("Gateway rejection surfaced as %d: %s", status, exc.message)
    return JSONResponse(status_code=status, content=_error_body(describe_gateway_error(exc), **extra))


async def gateway_unreachable_handler(request: Request, exc: GatewayUnreachable) -> JSONResponse:
    return JSONResponse(status_code=500, content=_error_body(
        "Payment processing failed, please try again",
        details={"message": exc.message},
        type="processing_error",
    ))


async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    logger.error("Unhandled engine error: %s", exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    for client_error in (InvalidRequest, InvalidChannel, ChannelInactive, AmountOutOfRange):
        app.add_exception_handler(client_error, client_error_handler)
    app.add_exception_handler(GatewayRejected, gateway_rejected_handler)
    app.add_exception_handler(GatewayUnreachable, gateway_unreachable_handler)
    app.add_exception_handler(GatewayNotConfigured, engine_error_handler)
    app.add_exception_handler(EngineError, engine_error_handler)
