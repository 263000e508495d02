"""
FastAPI application entry point.

This is the main application that ties together all components:
- API routes for orders and inline line item forms
- Database lifecycle management
- CORS configuration for frontend access
- Error handling and logging
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lineform import __version__
from lineform.api.routes import forms, health, orders
from lineform.config import get_settings
from lineform.infrastructure.database import close_db, init_db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown tasks:
    - Initialize database tables
    - Clean up on shutdown
    """
    settings = get_settings()

    logger.info(f"Starting lineform v{__version__}")
    logger.info(f"Product reference enabled: {settings.product_reference_enabled}")
    logger.info(f"Quantity rounding: {settings.quantity_rounding}")
    logger.info(f"Debug mode: {settings.debug}")

    await init_db()

    yield  # Application runs here

    # Shutdown
    logger.info("Shutting down lineform")
    await close_db()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance ready to serve requests.
    """
    settings = get_settings()

    app = FastAPI(
        title="lineform API",
        description=(
            "Inline line item forms for commerce orders.\n\n"
            "Describes the line item sub-form, validates quantities and "
            "recomputes line item totals on submit."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(health.router)
    app.include_router(orders.router, prefix="/api/v1")
    app.include_router(forms.router, prefix="/api/v1")

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler for unhandled errors."""
        logger.exception(f"Unhandled error: {exc}")

        # Don't expose internal errors in production
        if settings.debug:
            detail = str(exc)
        else:
            detail = "An internal error occurred"

        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": detail,
            },
        )

    return app


# Create the application instance
app = create_app()


# Development server entry point
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "lineform.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
