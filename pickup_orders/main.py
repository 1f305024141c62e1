# Load environment variables FIRST, before any module imports that need them
from dotenv import load_dotenv
load_dotenv()

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Dict

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from .config import CORS_ORIGINS
from .db import init_db
from .errors import OrderServiceError
from .logging_config import bind_request_id, setup_logging, unbind_request_id
from .routes import (
    admin_orders_router,
    cron_router,
    limiter,
    orders_router,
    webhooks_router,
)

# Configure logging at module load time
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Development convenience; production schemas come from `alembic upgrade head`
    init_db()
    yield


app = FastAPI(
    title="Pickup Orders API",
    description="Pickup order lifecycle and SMS replacement negotiation for Z SMOKE SHOP",
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Orders", "description": "Customer endpoints for placing and tracking orders"},
        {"name": "Admin - Orders", "description": "Admin endpoints for order management"},
        {"name": "Webhooks", "description": "Inbound SMS from Twilio"},
        {"name": "Cron", "description": "Scheduled maintenance jobs"},
    ],
)


# ---------- Request ID Middleware ----------
# Adds a unique request ID to each request for debugging and log correlation


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique request ID to each request.
    The ID is available in request.state.request_id, stamped on every log
    record emitted while handling the request, and returned in the
    X-Request-ID header.
    """

    async def dispatch(self, request: Request, call_next):
        # Generate unique request ID (or use one from header if provided)
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        request.state.request_id = request_id
        token = bind_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            unbind_request_id(token)

        response.headers["X-Request-ID"] = request_id

        return response


app.add_middleware(RequestIDMiddleware)

# Add rate limit exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS configuration
# In production, set CORS_ORIGINS to restrict allowed origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Error Handlers ----------


@app.exception_handler(OrderServiceError)
async def order_service_error_handler(request: Request, exc: OrderServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Order service failure on %s: %s", request.url.path, exc.message)
    else:
        logger.debug("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())[1:])
        message = error.get("msg", "Invalid value")
        problems.append(f"{location}: {message}" if location else message)
    return JSONResponse(
        status_code=400,
        content={"detail": "; ".join(problems) or "Invalid request"},
    )


# ---------- Health ----------


@app.get("/health", tags=["Health"])
def health() -> Dict[str, str]:
    """Health check endpoint. Returns ok if the service is running."""
    return {"status": "ok"}


# ---------- Include Routers with API Version Prefix ----------
# All API endpoints are available under /api/v1/
# Example: /api/v1/orders, /api/v1/admin/orders, etc.

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(orders_router)
api_v1_router.include_router(admin_orders_router)
api_v1_router.include_router(webhooks_router)
api_v1_router.include_router(cron_router)

app.include_router(api_v1_router)

# Also mount at root; Twilio and the scheduler are configured with root URLs
app.include_router(orders_router)
app.include_router(admin_orders_router)
app.include_router(webhooks_router)
app.include_router(cron_router)
