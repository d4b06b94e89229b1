import logging
import time
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .core.auth import AuthService
from .core.config import Settings, get_settings
from .core.database import create_db_engine, create_session_factory, init_db, check_db_connection
from .core.exceptions import TaskServiceError, describe_validation_errors
from .core.middleware import MULTIPART_OVERHEAD, UploadSizeLimitMiddleware
from .routers import tasks
from .services.images import ImageTranscoder

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def create_app(settings: Optional[Settings] = None, auth_service: Optional[AuthService] = None) -> FastAPI:
    """
    Build the Task API application.

    The database engine, Auth Service client and image transcoder are created
    here once and shared by every request through ``app.state``.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    # Create FastAPI application
    app = FastAPI(
        title="Task Service",
        description="Task management API with per-task images, scoped to the authenticated owner",
        version=settings.service_version
    )

    engine = create_db_engine(settings.database_url, debug=settings.debug)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.auth_service = auth_service or AuthService(
        settings.auth_service_url,
        timeout=settings.auth_service_timeout
    )
    app.state.image_transcoder = ImageTranscoder(
        max_size=settings.max_image_size,
        extensions=settings.allowed_image_extensions
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        """Log all requests with timing"""
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time

        response.headers["X-Process-Time"] = str(process_time)

        # Skip logging for health checks to reduce noise
        if request.url.path != "/health":
            logger.info(f"{request.method} {request.url.path} - {response.status_code} ({process_time:.3f}s)")

        return response

    # Outermost, so oversized uploads stop before anything buffers them
    app.add_middleware(
        UploadSizeLimitMiddleware,
        max_body_size=settings.max_image_size + MULTIPART_OVERHEAD
    )

    @app.exception_handler(TaskServiceError)
    async def task_error_handler(request: Request, exc: TaskServiceError):
        """Render domain errors as an empty body or {"error": message}"""
        if exc.message is None:
            return Response(status_code=exc.status_code)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Malformed requests are client errors: 400 instead of 422"""
        return JSONResponse(
            status_code=400,
            content={"error": describe_validation_errors(exc.errors())}
        )

    app.include_router(
        tasks.router,
        prefix=settings.api_prefix + "/tasks",
        tags=["tasks"]
    )

    @app.on_event("startup")
    async def startup_event():
        """Initialize application on startup"""
        logger.info(f"Starting {settings.service_name}...")
        if init_db(engine):
            logger.info("Database initialized successfully")
        else:
            logger.error("Database initialization failed")
        logger.info(f"{settings.service_name} startup completed")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on shutdown"""
        logger.info(f"Shutting down {settings.service_name}...")
        engine.dispose()

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": settings.service_name,
            "version": settings.service_version,
            "status": "running",
            "message": "Task Service is operational"
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        db_healthy = check_db_connection(engine)
        return {
            "service": settings.service_name,
            "version": settings.service_version,
            "status": "healthy" if db_healthy else "unhealthy",
            "database": "connected" if db_healthy else "disconnected",
            "timestamp": time.time()
        }

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("task_api.main:create_app", factory=True, host="0.0.0.0", port=8000, reload=True)
