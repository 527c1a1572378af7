"""FastAPI application entry point.

Main application setup with middleware, routing, and lifecycle management.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import diagnostics_router, webhook_router
from app.api.schemas import ErrorResponse
from app.core.config import Settings, get_settings
from app.core.factory import ComponentFactory
from app.core.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Handles startup and shutdown events for proper resource management.
    """
    settings: Settings = app.state.settings
    factory: ComponentFactory = app.state.factory

    # Startup
    logger.info("Starting Workflow Replicator API...")
    logger.info(f"Notion API key: {'Set' if settings.notion_api_token else 'Missing'}")
    logger.info(f"API key format: {settings.api_key_format}")
    if not settings.product_workflows_db_id:
        logger.warning("PRODUCT_WORKFLOWS_DB_ID is not configured")
    if not settings.stories_db_id:
        logger.warning("STORIES_DB_ID is not configured")

    yield

    # Shutdown
    logger.info("Shutting down Workflow Replicator API...")
    try:
        await factory.aclose()
    except Exception as e:
        logger.error(f"Error closing record store: {e}", exc_info=True)


def create_app(
    settings: Settings | None = None,
    factory: ComponentFactory | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings. If None, loads from environment.
        factory: Optional component factory. If None, one is built from settings.

    Returns:
        Configured FastAPI application instance.
    """
    try:
        settings = settings or get_settings()
        settings.configure_logging()
        setup_logging(settings)

        app = FastAPI(
            title="Workflow Replicator",
            description="Replicates Notion workflow templates into epics with shifted dates",
            version="0.1.0",
            lifespan=lifespan,
            docs_url="/docs",
            redoc_url="/redoc",
        )

        # Store settings and components in app state
        app.state.settings = settings
        app.state.factory = factory or ComponentFactory(settings)

        # CORS middleware
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        # Include routers
        app.include_router(diagnostics_router)
        app.include_router(webhook_router)
        logger.info("Registered diagnostics and webhook routers")

        # Exception handlers
        @app.exception_handler(RequestValidationError)
        async def validation_exception_handler(request, exc):
            """Handle Pydantic validation errors."""
            logger.warning(f"Validation error: {exc.errors()}")
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content=ErrorResponse(
                    detail="Invalid request payload",
                    error_code="VALIDATION_ERROR",
                    extra={"errors": [str(error) for error in exc.errors()]},
                ).model_dump(),
            )

        @app.exception_handler(Exception)
        async def general_exception_handler(request, exc):
            """Handle uncaught exceptions."""
            logger.error(f"Unhandled exception: {exc}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=ErrorResponse(
                    detail="Internal server error",
                    error_code="INTERNAL_ERROR",
                ).model_dump(),
            )

        logger.info("FastAPI application created successfully")
        return app

    except Exception as e:
        logger.error(f"Failed to create FastAPI app: {e}", exc_info=True)
        raise


def main() -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    settings = get_settings()
    logger.info(f"Starting uvicorn server on port {settings.port}...")
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
