"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

For local development:
    uvicorn vidscribe.main:app --reload

For production:
    gunicorn vidscribe.main:app -w 1 -k uvicorn.workers.UvicornWorker

Keep a single worker: the dedup locks and download rate limits are held
in process memory.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .api.dependencies import shutdown_tasks
from .api.routes import articles, files, health, metadata, screenshots, tasks, videos
from .config.settings import get_settings
from .core.errors import PipelineError
from .infrastructure.storage.janitor import RetentionJanitor, run_startup_sweep

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    On startup: make sure the cache directories exist, then sweep files
    older than the retention window. A failed sweep is logged and startup
    continues. On shutdown: cancel background tasks still running.
    """
    # Startup
    settings = get_settings()

    logger.info(
        "Vidscribe API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {
                "gemini": settings.gemini_mock_mode,
                "downloader": settings.downloader_mock_mode,
                "ffmpeg": settings.ffmpeg_mock_mode,
            }
        }
    )

    # Validate configuration
    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    for directory in (*settings.cache_directories, settings.upload_staging_dir):
        directory.mkdir(parents=True, exist_ok=True)

    janitor = RetentionJanitor(settings.cache_directories, settings.file_retention_days)
    run_startup_sweep(janitor)

    yield

    # Shutdown
    logger.info("Vidscribe API shutting down")
    await shutdown_tasks()


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Turn YouTube videos into SEO metadata and illustrated articles with Gemini.

        ## Workflow

        1. **Metadata**: `POST /api/v1/metadata/from-url` for public videos,
           `POST /api/v1/metadata` for private or unlisted ones
           (the video is uploaded to Gemini once and reused while it lives).

        2. **Article**: `POST /api/v1/articles/from-url` or `POST /api/v1/articles`
           - Returns three title variants, Markdown body, SEO description
             and a screenshot plan

        3. **Screenshots**: `POST /api/v1/screenshots/capture`
           - Captures frames around each planned timestamp
           - Images are served under `/images`

        4. **Iterate**: `POST /api/v1/metadata/reanalyze`,
           `POST /api/v1/articles/regenerate`, `POST /api/v1/screenshots/regenerate`

        Long private-video flows also have `/async` variants that answer 202
        with a task id. Poll `GET /api/v1/tasks/{task_id}` for the result.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        videos.router,
        prefix="/api/v1/videos",
        tags=["Videos"],
    )

    app.include_router(
        metadata.router,
        prefix="/api/v1/metadata",
        tags=["Metadata"],
    )

    app.include_router(
        articles.router,
        prefix="/api/v1/articles",
        tags=["Articles"],
    )

    app.include_router(
        screenshots.router,
        prefix="/api/v1/screenshots",
        tags=["Screenshots"],
    )

    app.include_router(
        files.router,
        prefix="/api/v1/files",
        tags=["Files"],
    )

    app.include_router(
        tasks.router,
        prefix="/api/v1/tasks",
        tags=["Tasks"],
    )

    # Captured screenshots. The directory is created in lifespan.
    app.mount(
        "/images",
        StaticFiles(directory=settings.image_cache_dir, check_dir=False),
        name="images",
    )

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - redirect to docs."""
        return {
            "message": "Vidscribe API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed input (bad videoId, quality out of range) is a 400."""
        logger.info(
            "Rejected invalid request",
            extra={"path": request.url.path, "errors": exc.errors()}
        )
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request",
                "stage": "validation",
                "details": [
                    {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
                    for err in exc.errors()
                ],
            }
        )

    @app.exception_handler(PipelineError)
    async def pipeline_exception_handler(request: Request, exc: PipelineError):
        """
        Pipeline failures report which stage failed.

        The stack trace stays in the server log; the client gets the stage,
        the message and the stage's own diagnostic details.
        """
        logger.error(
            "Pipeline stage failed",
            extra={
                "path": request.url.path,
                "stage": exc.stage,
                "error": exc.message,
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.message,
                "stage": exc.stage,
                "details": exc.details,
            }
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Prevents stack traces from leaking to clients. We log the full
        error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error. Please contact support if this persists.",
                "stage": "internal",
                "details": None,
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "vidscribe.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
