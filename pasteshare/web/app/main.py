# pasteshare/web/app/main.py
import asyncio
import logging
import traceback

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import sqlalchemy as sa

from pasteshare.web.app.config import get_settings
from pasteshare.web.app.db import AsyncSessionLocal, engine, get_db
from pasteshare.web.app.exceptions import PasteShareError, StorageError, ValidationError
from pasteshare.web.app.api import pastes
from pasteshare.web.app.services.expiration_manager import run_expiration_sweeper
from pasteshare.web.app.services.file_storage import get_file_storage
from pasteshare.web.app.services.logging_service import LoggingMiddleware, setup_logging

settings = get_settings()
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Share text, code and Jupyter-style notebooks with optional files and passwords.",
    version=settings.VERSION,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.DEBUG else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)

@app.exception_handler(PasteShareError)
async def paste_share_exception_handler(request: Request, exc: PasteShareError):
    body = exc.to_dict()
    if isinstance(exc, StorageError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}: {exc.cause}")
        if settings.DEBUG and exc.cause is not None:
            body["stack"] = "".join(traceback.format_exception(exc.cause))
    return JSONResponse(status_code=exc.status_code, content=body)

@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    # Malformed bodies and query parameters share the 400 {message} error shape.
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        loc = [part for part in errors[0].get("loc", ()) if isinstance(part, str) and part not in ("body", "query", "path")]
        field = loc[0] if loc else None
        message = f"Invalid {field}: {errors[0].get('msg')}" if field else f"Invalid request: {errors[0].get('msg')}"
    logger.info(f"{request.method} {request.url.path} rejected: {message}")
    error = ValidationError(message)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())

# API routes
app.include_router(pastes.router)

@app.on_event("startup")
async def startup_event():
    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    logger.info(f"{settings.APP_NAME} {settings.VERSION} starting")
    app.state.sweeper_task = None
    if settings.EXPIRED_PASTE_SWEEP_SECONDS > 0:
        app.state.sweeper_task = asyncio.create_task(
            run_expiration_sweeper(
                AsyncSessionLocal,
                get_file_storage(),
                settings.EXPIRED_PASTE_SWEEP_SECONDS,
            )
        )

@app.on_event("shutdown")
async def shutdown_event():
    task = getattr(app.state, "sweeper_task", None)
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    await engine.dispose()
    logger.info(f"{settings.APP_NAME} shut down")

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "pasteshare", "version": settings.VERSION}

@app.get("/api/health")
async def api_health_check(db: AsyncSession = Depends(get_db)):
    """Health check that also pings the database."""
    try:
        await db.execute(sa.text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "unreachable", "error": str(e)},
        )
    return {"status": "healthy", "database": "connected", "version": settings.VERSION}
