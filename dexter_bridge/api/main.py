"""
FastAPI Application
==================

Main FastAPI application serving the streaming chat endpoint.
"""

from contextlib import asynccontextmanager
import uuid
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from dexter_bridge.config.settings import get_settings
from dexter_bridge.config.logging import get_logger
from dexter_bridge.config.database import initialize_databases, close_databases
from dexter_bridge.api.sse.bridge import reset_streaming_bridge
from dexter_bridge.api.routes.chat import router as chat_router
from dexter_bridge.api.routes.health import router as health_router
from dexter_bridge.core.storage import close_history_store
from dexter_bridge.models.schemas import ErrorResponse

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    logger.info("Starting FastAPI application", transport=_transport_label())

    try:
        await initialize_databases()
        logger.info("Databases initialized")
    except Exception as e:
        logger.error("Failed to initialize databases", error=str(e))
        # Remote turns still stream; local turns fail until history can be loaded
        logger.warning("Continuing without chat history")

    try:
        yield
    finally:
        # Shutdown
        logger.info("Shutting down FastAPI application")
        reset_streaming_bridge()
        close_history_store()

        try:
            await close_databases()
            logger.info("Databases closed")
        except Exception as e:
            logger.error("Error closing databases", error=str(e))


def _transport_label() -> str:
    return "remote" if get_settings().remote_enabled else "local"


# Create FastAPI app
settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    description="Streams research agent chat turns as incremental SSE events",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_hosts,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(chat_router)
app.include_router(health_router)


# Request ID middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next):  # type: ignore
    """Add request ID to all requests."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id

    return response


# Exception handlers
@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom HTTP exception handler with structured error response."""
    error_response = ErrorResponse(
        error=str(exc.detail),
        error_code=str(exc.status_code),
        details=None,
        request_id=getattr(request.state, "request_id", None),
    )

    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=error_response.request_id,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(mode="json"),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """General exception handler for unexpected errors."""
    error_response = ErrorResponse(
        error="Internal server error",
        error_code="INTERNAL_ERROR",
        details={"exception": str(exc)} if settings.debug else None,
        request_id=getattr(request.state, "request_id", None),
    )

    logger.error(
        "Unhandled exception",
        exception=str(exc),
        request_id=error_response.request_id,
        exc_info=True,
    )

    return JSONResponse(status_code=500, content=error_response.model_dump(mode="json"))


# Development server runner
def run_development_server() -> None:
    """Run development server with auto-reload."""
    uvicorn.run(
        "dexter_bridge.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


def create_app() -> FastAPI:
    """
    Application factory function for creating FastAPI app instance.
    Used by integration tests and external deployment scripts.

    Returns:
        FastAPI application instance
    """
    return app


if __name__ == "__main__":
    run_development_server()
