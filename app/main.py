# app/main.py
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.endpoints import capabilities, health, network, payments
from app.capabilities import build_registry
from app.capabilities.registry import CapabilityRegistry
from app.core.config import enforce_settings, settings
from app.core.errors import CapabilityError, InternalError, InvalidInputError
from app.core.version import VERSION
from app.formatting.llm import build_formatter
from app.orchestrator import Orchestrator
from app.x402.middleware import X_PAYMENT_RESPONSE_HEADER, X402Middleware
from app.x402.payment_log import PaymentLog
from app.x402.ratelimit import RateLimiter, RateLimitMiddleware, build_rate_limiters

# Configure basic logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Distinguishes "no formatter" (None) from "build one from settings"
DEFAULT = object()


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CapabilityError)
    async def capability_error_handler(request: Request, exc: CapabilityError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid input") if errors else "Invalid input"
        error = InvalidInputError(message)
        return JSONResponse(status_code=error.status_code, content=error.to_response())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            content = {"success": False, "error": "NOT_FOUND", "message": "Route not found"}
        else:
            content = {"success": False, "error": "HTTP_ERROR", "message": str(exc.detail)}
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error.to_response())


def create_app(
    registry: Optional[CapabilityRegistry] = None,
    facilitator_client: Optional[Any] = None,
    formatter: Any = DEFAULT,
    payment_log: Optional[PaymentLog] = None,
    rate_limiters: Optional[Dict[str, RateLimiter]] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Raises:
        ConfigurationError: If the settings are unsafe (see validate_settings)
    """
    enforce_settings(settings)

    registry = registry if registry is not None else build_registry()
    if formatter is DEFAULT:
        formatter = build_formatter(settings)
    if payment_log is None:
        payment_log = PaymentLog(
            max_entries=settings.X402_PAYMENT_LOG_MAX_ENTRIES,
            audit_path=settings.X402_AUDIT_LOG_PATH,
        )

    app = FastAPI(title=settings.PROJECT_NAME, version=VERSION)
    app.state.registry = registry
    app.state.formatter = formatter
    app.state.payment_log = payment_log
    app.state.orchestrator = Orchestrator(
        registry,
        formatter=formatter,
        formatter_timeout=settings.FORMATTER_TIMEOUT_SECONDS,
    )

    # Added innermost first: CORS -> rate limit -> payment gate -> routes
    app.add_middleware(
        X402Middleware,
        registry=registry,
        payment_log=payment_log,
        facilitator_client=facilitator_client,
    )
    app.add_middleware(
        RateLimitMiddleware,
        limiters=rate_limiters if rate_limiters is not None else build_rate_limiters(settings),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-PAYMENT"],
        expose_headers=[X_PAYMENT_RESPONSE_HEADER],
    )

    register_exception_handlers(app)

    app.include_router(capabilities.router, prefix="/capability", tags=["capabilities"])
    app.include_router(health.router, tags=["health"])
    app.include_router(network.router, tags=["network"])
    app.include_router(payments.router, tags=["payments"])

    logger.info(
        f"{settings.PROJECT_NAME} {VERSION} ready: {len(registry)} capabilities, "
        f"network={settings.NETWORK_MODE}, environment={settings.ENVIRONMENT}"
    )
    return app
