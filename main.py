"""
Patient Registry - FastAPI Backend Application Entry Point
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from controllers import checkin_controller, patient_controller
from database.connection import create_engine, create_session_factory, create_tables
from services.errors import (
    DuplicateEmail,
    NotFound,
    StorageUnavailable,
    ValidationFailed,
)
from services.patient_store import build_field_cipher
from utils.config import Settings, get_settings
from utils.logging_config import configure_logging

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def _validation_errors(exc: RequestValidationError) -> dict:
    errors = {}
    for error in exc.errors():
        # loc is ("body", "zipCode") or ("query", "page")
        location = [str(part) for part in error["loc"][1:]] or [str(error["loc"][0])]
        errors.setdefault(".".join(location), error["msg"])
    return errors


def _error_response(status_code: int, detail: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, **extra})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    # Fail at start-up on a bad encrypted field list, before serving anything
    cipher = build_field_cipher(settings.encryption_key, settings.encrypted_fields)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        engine = create_engine(settings.database_url, echo=settings.echo_sql)
        await create_tables(engine)
        app.state.session_factory = create_session_factory(engine)
        app.state.cipher = cipher
        logger.info("Patient Registry started", extra={"event": "startup"})
        yield
        # Shutdown
        await engine.dispose()
        logger.info("Patient Registry shutting down", extra={"event": "shutdown"})

    app = FastAPI(
        title="Patient Registry API",
        description="Patient registration with soft delete and encrypted fields",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS Configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health Check
    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": VERSION,
            "service": "Patient Registry Backend",
        }

    # Patient Management Routes
    app.include_router(
        patient_controller.router, prefix="/api/patients", tags=["Patients"]
    )

    # Check-in Routes
    app.include_router(checkin_controller.router, prefix="/api/checkin", tags=["Check-in"])

    # Error Handlers
    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        return _error_response(404, exc.message)

    @app.exception_handler(DuplicateEmail)
    async def duplicate_email_handler(request: Request, exc: DuplicateEmail):
        return _error_response(400, exc.message)

    @app.exception_handler(ValidationFailed)
    async def validation_failed_handler(request: Request, exc: ValidationFailed):
        return _error_response(400, exc.message, errors=exc.errors)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _error_response(400, "Validation failed", errors=_validation_errors(exc))

    @app.exception_handler(StorageUnavailable)
    async def storage_unavailable_handler(request: Request, exc: StorageUnavailable):
        return _error_response(503, "Storage unavailable, try again later")

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "main:app", host="0.0.0.0", port=get_settings().port, reload=True, log_level="info"
    )
