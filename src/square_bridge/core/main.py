"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from square_bridge.core.database import init_db
from square_bridge.core.dependencies import get_settings
from square_bridge.core.errors import SquareBridgeError
from square_bridge.plugins.square import auth_router, router

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("api")


# Request tracing middleware
class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Request tracing middleware."""

    async def dispatch(self, request: Request, call_next: Callable) -> Any:
        # Query strings carry OAuth codes, log the path only
        logger.info("Request: %s %s", request.method, request.url.path)

        response = await call_next(request)

        logger.info("Response status: %s", response.status_code)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan for the FastAPI application."""
    settings = get_settings()
    if settings.database_url:
        logger.info("Initializing database...")
        init_db(settings.database_url)
        logger.info("Database initialized successfully!")
    else:
        logger.warning("DATABASE_URL is not set, credentials will not be stored")
    yield


async def handle_bridge_error(request: Request, exc: SquareBridgeError) -> JSONResponse:
    """Translate a bridge error into its JSON response."""
    logger.warning(
        "%s %s failed with %s (%s): %s",
        request.method,
        request.url.path,
        exc.kind.value,
        exc.status_code,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log and answer with a generic 500."""
    logger.exception("Unexpected error in %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Unexpected server error", "details": str(exc)},
    )


def create_app() -> FastAPI:
    """Build the application with its routers, middleware and error handlers."""
    app = FastAPI(
        title="Square Bridge API",
        description="Square OAuth and sales reporting",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Add request tracing middleware
    app.add_middleware(RequestTracingMiddleware)

    app.add_exception_handler(SquareBridgeError, handle_bridge_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(auth_router)
    app.include_router(router)

    @app.get("/")
    async def root() -> dict:
        """Root endpoint."""
        return {"message": "Welcome to the Square Bridge API"}

    return app


app = create_app()
