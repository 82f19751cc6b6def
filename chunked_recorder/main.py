"""
Main FastAPI application entry point
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .api import router
from .core import RecordingError, Settings, settings as default_settings
from .schemas import HealthResponse
from .services import RecordingService, SessionStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, default_settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def recording_error_handler(request: Request, exc: RecordingError):
    """Render service errors as {"error": message}"""
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"⚠️  {request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=exc.headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and form fields are client errors (400), like missing ones"""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request: {location} {first.get('msg', '')}".strip()
    else:
        message = "Invalid request"
    logger.warning(f"⚠️  {request.method} {request.url.path} -> 400: {message}")
    return JSONResponse(status_code=400, content={"error": message})


def create_app(settings: Optional[Settings] = None, sessions: Optional[SessionStore] = None) -> FastAPI:
    """Build the application; tests pass their own settings and session store"""
    settings = settings or default_settings
    service = RecordingService.from_settings(settings, sessions=sessions)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup/shutdown"""
        logger.info("🚀 Starting recording server...")
        service.prepare_storage()
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        logger.info(f"Mount path: {settings.DATA_ROOT}")
        logger.info(f"Upload directory: {settings.UPLOAD_DIR}")
        logger.info(f"Final videos directory: {settings.FINAL_DIR}")
        logger.info(f"🌐 Server ready at http://{settings.SERVER_HOST}:{settings.SERVER_PORT}")

        yield

        logger.info(f"🛑 Shutting down, {service.active_sessions()} sessions still open")

    app = FastAPI(
        title=settings.APP_TITLE,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.recording_service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RecordingError, recording_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(router)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Health check endpoint"""
        return HealthResponse(
            status="OK",
            active_sessions=service.active_sessions(),
            timestamp=datetime.now(timezone.utc),
            environment=settings.ENVIRONMENT,
            mount_path=str(settings.DATA_ROOT),
            storage=settings.STORAGE_LABEL,
        )

    if settings.STATIC_DIR.is_dir():
        # Recorder UI; mounted last so API routes win
        app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="static")
    else:
        @app.get("/")
        async def root():
            """Root endpoint"""
            return {
                "service": settings.APP_TITLE,
                "version": settings.APP_VERSION,
                "status": "running",
                "docs": "/docs",
                "health": "/health"
            }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=default_settings.SERVER_HOST,
        port=default_settings.SERVER_PORT,
        log_level=default_settings.LOG_LEVEL.lower()
    )
