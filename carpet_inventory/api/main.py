from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from carpet_inventory.api.routes import (
    customers_router,
    individual_products_router,
    operations_router,
    orders_router,
    production_router,
    products_router,
    purchase_orders_router,
    raw_materials_router,
    suppliers_router,
)
from carpet_inventory.core.errors import InventoryError
from carpet_inventory.core.logging import configure_logging, correlation_id_var
from carpet_inventory.core.settings import get_app_settings
from carpet_inventory.db.run_migrations import main as run_alembic
from carpet_inventory.db.seed import seed_all
from carpet_inventory.schemas.common import ErrorInfo, ErrorResponse, MessageResponse
from carpet_inventory.schemas.realtime import WsEnvelope
from carpet_inventory.services.notifications import INVENTORY_TOPIC, stock_notifier

# Configure structured logging once at import
configure_logging()
logger = logging.getLogger(__name__)

settings = get_app_settings()

openapi_tags = [
    {"name": "Health", "description": "Liveness check."},
    {"name": "Products", "description": "Carpet SKUs and their stock counters."},
    {"name": "Individual Products", "description": "Physical QR-coded units and their lifecycle."},
    {"name": "Orders", "description": "Customer orders and the fulfillment workflow."},
    {"name": "Customers", "description": "Customer master data."},
    {"name": "Raw Materials", "description": "Bulk materials, adjustments and movement history."},
    {"name": "Purchase Orders", "description": "Inbound material orders, approval and delivery."},
    {"name": "Suppliers", "description": "Supplier master data and ratings."},
    {"name": "Production", "description": "Production batches, material consumption and completion."},
    {"name": "Operations", "description": "Id sequences and stock settlement maintenance."},
    {"name": "WebSocket", "description": "Stock notifications pushed over /ws/inventory."},
]

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    openapi_tags=openapi_tags,
)

# CORS - avoid wildcard with credentials
cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
    logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
    cors_allow_credentials = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=getattr(request.state, "correlation_id", None),
        path=request.url.path,
        method=request.method,
        timestamp=datetime.now(tz=timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"))


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Bind a correlation id to the request and bound its handling time.

    Adds 'X-Correlation-ID' to every response; requests running longer than
    REQUEST_TIMEOUT_SECONDS are answered with 504.
    """
    corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    token_corr = correlation_id_var.set(corr)
    request.state.correlation_id = corr

    logger.info("Incoming request %s %s", request.method, request.url.path)
    try:
        response = await asyncio.wait_for(call_next(request), timeout=settings.REQUEST_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.error("Request %s %s timed out", request.method, request.url.path)
        response = _build_error_response(
            request,
            status_code=504,
            error_type="timeout",
            message=f"Request exceeded {settings.REQUEST_TIMEOUT_SECONDS:g}s",
        )
    finally:
        correlation_id_var.reset(token_corr)

    response.headers["X-Correlation-ID"] = corr
    return response


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    """Map domain errors to their HTTP status and error envelope."""
    if exc.status_code >= 500:
        logger.error("Domain error on %s: %s", request.url.path, exc.message)
    else:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.message)
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type=exc.error_type,
        message=exc.message,
        details=exc.details,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Global handler for HTTPException to produce a standardized error envelope.
    """
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type="http_error",
        message=str(detail),
        details=None if isinstance(exc.detail, str) else exc.detail,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Malformed payloads are reported as 400 like every other validation failure.
    """
    return _build_error_response(
        request=request,
        status_code=400,
        error_type="validation_error",
        message="Request validation failed",
        details=jsonable_encoder(exc.errors(), custom_encoder={Exception: str}),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler to avoid leaking stack traces and to return a structured error.
    """
    logger.exception("Unhandled error processing request")
    return _build_error_response(
        request=request,
        status_code=500,
        error_type="internal_error",
        message="An unexpected error occurred",
        details=None,
    )


@app.on_event("startup")
async def on_startup() -> None:
    """
    Run migrations and optional seeding on service startup.

    Alembic drives its own event loop, so the upgrade runs in a worker thread.
    """
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        try:
            logger.info("Running Alembic migrations: upgrade head")
            await asyncio.to_thread(run_alembic, ["upgrade", "head"])
            logger.info("Migrations completed.")
        except Exception as exc:
            logger.exception("Migration step failed: %s", exc)

    if settings.AUTO_SEED:
        try:
            logger.info("Running database seeding...")
            await seed_all()
            logger.info("Seeding completed.")
        except Exception as exc:
            logger.exception("Seeding step failed: %s", exc)


api_v1 = APIRouter(prefix="/api/v1")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health",
    response_model=MessageResponse,
    summary="Health Check",
    tags=["Health"],
)
def health_check() -> MessageResponse:
    """
    Basic liveness health check endpoint.

    Returns:
        MessageResponse: Simple confirmation that the service is running.
    """
    return MessageResponse(
        message="Healthy", details={"inventory_subscribers": stock_notifier.subscriber_count()}
    )


api_v1.include_router(products_router)
api_v1.include_router(individual_products_router)
api_v1.include_router(orders_router)
api_v1.include_router(customers_router)
api_v1.include_router(raw_materials_router)
api_v1.include_router(purchase_orders_router)
api_v1.include_router(suppliers_router)
api_v1.include_router(production_router)
api_v1.include_router(operations_router)

app.include_router(api_v1)


# PUBLIC_INTERFACE
@app.websocket("/ws/inventory")
async def ws_inventory(websocket: WebSocket):
    """
    WebSocket endpoint for stock notifications.

    Messages:
      - Server -> Client: type='stock.low' | 'stock.restocked', payload=StockEvent
      - Client -> Server: 'ping' is answered with 'pong'; other messages are ignored.
    """
    await websocket.accept()
    await stock_notifier.connect(INVENTORY_TOPIC, websocket)
    await websocket.send_json(
        WsEnvelope(type="connected", payload={"topic": INVENTORY_TOPIC}).model_dump(mode="json")
    )
    try:
        while True:
            msg = await websocket.receive_text()
            if msg and msg.lower() == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        await stock_notifier.disconnect(INVENTORY_TOPIC, websocket)
    except Exception:
        logger.exception("Error on ws_inventory connection")
        await stock_notifier.disconnect(INVENTORY_TOPIC, websocket)
        await websocket.close()
