from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config import settings
from shared.config.database import create_tables
from shared.errors import CheckoutError
from shared.observability import setup_observability

# IMPORTANT: import models so they register with Base
from services.order_service import models as order_models  # noqa: F401
from services.checkout_service.gateway import StripeGateway
from services.checkout_service.router import router as checkout_router
from services.notification_service.sender import EmailNotifier
from services.order_service.router import router as orders_router

logger = structlog.get_logger(__name__)

app = FastAPI(title="Checkout Backend", version="1.0.0")

# --- OBSERVABILITY BOOTSTRAP ---
setup_observability(app, "checkout_service")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins(),
    allow_origin_regex=None if settings.IS_PRODUCTION else settings.LOCALHOST_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CheckoutError)
async def checkout_error_handler(request: Request, exc: CheckoutError):
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message, **exc.context)
    else:
        logger.info("request_rejected", path=request.url.path, error=exc.message, **exc.context)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message, **exc.context})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # Routing errors (unknown path, wrong method) share the {"error": ...} shape
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request: {field} {first.get('msg', '')}".strip() if field else "Invalid request body"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.on_event("startup")
async def startup_event():
    await create_tables()
    app.state.gateway = StripeGateway.from_settings()
    app.state.notifier = EmailNotifier.from_settings()
    logger.info("service_started", env=settings.APP_ENV, allowed_origins=settings.allowed_origins())


@app.on_event("shutdown")
async def shutdown_event():
    await app.state.notifier.aclose()


@app.get("/health")
async def health_check():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


app.include_router(checkout_router, prefix="/api/checkout", tags=["checkout"])
app.include_router(orders_router, prefix="/api/orders", tags=["orders"])
