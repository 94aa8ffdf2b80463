"""
FastAPI Server for the character builder
- Content catalog loaded once at startup and shared through shared_services
- In-memory character sessions, one lock per character
- Structured JSON errors for every domain exception
"""

import sys
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

# Configure Loguru logging
from config.logging_config import logger
from config.settings import settings
from fastapi_core.exceptions import CharacterBuilderException, SystemNotReadyException
from fastapi_core.session_registry import cleanup_all_sessions, get_session_stats
from fastapi_core.shared_services import (
    CATALOG_SERVICE, get_shared_catalog, register_shared_service,
)
from fastapi_models import HealthResponse, SystemInfo
from fastapi_routers import catalog, characters, choices, classes
from gamedata.catalog import Catalog

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager for startup and shutdown events
    """
    # Startup
    logger.info("FastAPI server starting up...")
    if get_shared_catalog() is None:
        catalog_data = Catalog.load(settings.catalog_path)
        register_shared_service(CATALOG_SERVICE, catalog_data)
    else:
        logger.info("Using catalog registered before startup")

    yield

    # Shutdown
    logger.info("FastAPI server shutting down...")
    cleanup_all_sessions()


# Create FastAPI app with lifespan
app = FastAPI(
    title="D&D 5e Character Builder API",
    description="Character creation and level-up driven by pending choices",
    version=APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

# ============================================================================
# MIDDLEWARE STACK
# ============================================================================

class RequestTrackingMiddleware(BaseHTTPMiddleware):
    """Add request ID and timing for better error tracking"""

    async def dispatch(self, request: Request, call_next):
        # Add unique request ID
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        # Add timing
        start_time = time.time()

        # Process request
        response = await call_next(request)

        # Log request completion
        duration = time.time() - start_time
        logger.info(f"Request {request_id}: {request.method} {request.url.path} - {response.status_code} ({duration:.3f}s)")

        # Add headers
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"

        return response

# Add middleware stack
app.add_middleware(RequestTrackingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["ETag", "X-Request-ID", "X-Response-Time"],
)

# ============================================================================
# GLOBAL EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(CharacterBuilderException)
def character_builder_exception_handler(request: Request, exc: CharacterBuilderException):
    """Render every domain error as {error, detail, ...fields}"""
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{exc.error_code} on {request.url.path}: {exc.message}")
    headers = None
    if isinstance(exc, SystemNotReadyException):
        headers = {"Retry-After": "5"}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors"""
    logger.warning(f"Validation error on {request.url}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={
            "error": "validation_error",
            "detail": "Invalid request data",
            "errors": jsonable_errors(exc),
        }
    )

@app.exception_handler(StarletteHTTPException)
def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with consistent format"""
    logger.warning(f"HTTP {exc.status_code} on {request.url}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "http_error",
            "detail": exc.detail
        }
    )

@app.exception_handler(Exception)
def global_exception_handler(request: Request, exc: Exception):
    """Handle all other unhandled exceptions"""
    logger.opt(exception=exc).error(f"Unhandled exception on {request.url}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_server_error",
            "detail": "An unexpected error occurred",
            "request_id": getattr(request.state, 'request_id', 'unknown')
        }
    )


def jsonable_errors(exc: RequestValidationError):
    # ctx may hold the raised exception object
    errors = []
    for error in exc.errors():
        error = dict(error)
        if 'ctx' in error:
            error['ctx'] = {key: str(value) for key, value in error['ctx'].items()}
        errors.append(error)
    return errors


# System endpoints
@app.get("/api/health/", response_model=HealthResponse)
def health_check():
    """Health check endpoint"""
    return HealthResponse()

@app.get("/api/info/", response_model=SystemInfo)
def app_info():
    """Application information"""
    catalog_data = get_shared_catalog()
    return SystemInfo(
        name="D&D 5e Character Builder",
        version=APP_VERSION,
        python_version=sys.version,
        catalog=catalog_data.describe() if catalog_data else None,
        active_sessions=get_session_stats()['total_active_sessions'],
    )


app.include_router(characters.router, prefix="/api", tags=["characters"])
app.include_router(classes.router, prefix="/api", tags=["classes"])
app.include_router(choices.router, prefix="/api", tags=["choices"])
app.include_router(catalog.router, prefix="/api", tags=["catalog"])


def main():
    """Main entry point for FastAPI server"""
    logger.info("Starting character builder FastAPI backend...")
    logger.info(f"Server configuration: {settings.host}:{settings.port} (debug={settings.debug})")
    logger.info(f"Working directory: {Path.cwd()}")

    config = uvicorn.Config(
        app=app,
        host=settings.host,
        port=settings.port,
        log_level="info" if settings.debug else "warning",
        reload=False
    )
    server = uvicorn.Server(config)

    try:
        server.run()
    except Exception as e:
        logger.error(f"Failed to start FastAPI server: {e}")
        raise


if __name__ == "__main__":
    main()
