"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .store import get_store
from .utils import APIError, ErrorCode
from .models import ErrorResponse
from .services.marketplace_client import get_marketplace_client


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# Create store instance
store = get_store(cache_ttl=settings.session_ttl_seconds, max_sessions=settings.max_sessions)


async def sweep_idle_sessions(interval_seconds: float) -> None:
    """Periodically evict selection sessions nobody has touched within their TTL."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            store.purge_expired_sessions()
        except Exception as e:
            logger.error(f"Session sweep failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Application starting up...")
    logger.info(f"Settings: host={settings.backend_host}, port={settings.backend_port}")
    logger.info(f"Marketplace API: {settings.marketplace_api_url} (sync_remote={settings.sync_remote})")
    logger.info(
        f"Price debounce: rate_card={settings.rate_card_debounce_ms}ms, "
        f"scenario={settings.scenario_pricing_debounce_ms}ms"
    )
    logger.info(f"Store stats: {store.get_stats()}")

    sweeper = asyncio.create_task(sweep_idle_sessions(settings.session_sweep_interval_seconds))

    yield

    # Shutdown
    logger.info("Application shutting down...")
    sweeper.cancel()
    if get_marketplace_client.cache_info()["size"]:  # type: ignore[attr-defined]
        await get_marketplace_client().aclose()
        get_marketplace_client.clear_cache()  # type: ignore[attr-defined]
    logger.info("Application stopped")


# Create FastAPI app
app = FastAPI(
    title="B2B Admin Console",
    description="Service selection, pricing, quotations and additional costs for B2B orders",
    version="0.1.0",
    lifespan=lifespan,
)


# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handler for APIError
@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle API errors with proper response format."""
    error_response = ErrorResponse(
        success=False,
        message=exc.message,
        error_code=exc.error_code.value,
        details=exc.details,
    )
    logger.error(f"APIError: {exc.error_code.value} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(mode="json"),
    )


# Request body / path validation in the same envelope as APIError
@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed requests as VALIDATION_ERROR with the offending fields."""
    errors = [
        {"field": ".".join(str(part) for part in err["loc"][1:]), "message": err["msg"]}
        for err in exc.errors()
    ]
    error_response = ErrorResponse(
        success=False,
        message="Request validation failed",
        error_code=ErrorCode.VALIDATION_ERROR.value,
        details={"field": errors[0]["field"] if errors else None, "errors": errors},
    )
    logger.warning(f"Rejected request to {request.url.path}: {errors}")
    return JSONResponse(status_code=422, content=error_response.model_dump(mode="json"))


# General exception handler
@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle general exceptions."""
    error_response = ErrorResponse(
        success=False,
        message="Internal server error",
        error_code=ErrorCode.INTERNAL_ERROR.value,
    )
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=error_response.model_dump(mode="json"),
    )


# Health check endpoint
@app.get("/health", tags=["System"])
async def health_check() -> dict:
    """
    Health check endpoint.

    Returns:
        Health status and store statistics
    """
    return {
        "status": "healthy",
        "service": "B2B Admin Console",
        "version": "0.1.0",
        "store": store.get_stats(),
    }


# Register API routers
from .api.routes import health, selections, quotations, orders, additional_costs

app.include_router(health.router)
app.include_router(selections.router)
app.include_router(quotations.router)
app.include_router(orders.router)
app.include_router(additional_costs.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.backend_host,
        port=settings.backend_port,
        reload=settings.backend_debug,
    )
