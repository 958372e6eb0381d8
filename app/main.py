"""
MedLearn Note Validator Backend - FastAPI Application
Main entry point for the application
"""
import uuid
import sys
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from app.config import settings
from app.routes import (
    admin_reports_router,
    health_router,
    validations_router,
    validator_proxy_router,
    webhooks_router,
)
from app.services.validator_client import resolve_webhook_url
from app.utils.phi_masking import mask_error_message
from app.services.db import test_connection, close_all_connections


# Configure logging
# Explicitly write to stdout so the hosting platform can capture logs in its log stream
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ],
    force=True
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Schema migrations are handled externally
    logger.info(f"Starting MedLearn Note Validator Backend on port {settings.port}")
    logger.info(f"Environment: {settings.env}")
    logger.info(f"CORS Origins: {settings.cors_origins_list}")

    if resolve_webhook_url(settings) is None:
        logger.error(
            "Validator webhook URL is not configured (VALIDATOR_WEBHOOK_URL). "
            "Submissions will be rejected until it is set."
        )
    else:
        logger.info("Validator webhook URL configured")

    logger.info("Testing database connection...")
    if not test_connection():
        logger.error("Database connection test failed - application may not function correctly")

    yield

    close_all_connections()
    logger.info("Shutting down MedLearn Note Validator Backend")


app = FastAPI(
    title="MedLearn Note Validator API",
    description="Backend API for clinical wound-care note validation against LCD requirements",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID", "Content-Disposition"],
)


# Request ID Middleware
@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    """Add correlation ID to all requests for tracing"""
    correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
    request.state.correlation_id = correlation_id

    response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id

    return response


# Security Headers Middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses"""
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "no-referrer"
    response.headers["Cache-Control"] = "no-store"

    # HSTS in production
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    return response


# Pydantic validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with user-friendly messages"""
    correlation_id = getattr(request.state, 'correlation_id', str(uuid.uuid4()))

    error_messages = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error.get("loc", []))
        msg = error.get("msg", "Validation error")
        error_messages.append(f"{field}: {msg}")

    error_detail = "; ".join(error_messages) if error_messages else "Validation error"

    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": error_detail,
            "correlation_id": correlation_id,
        },
    )


# HTTP exception handler for standardized responses
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with standardized format"""
    correlation_id = getattr(request.state, 'correlation_id', str(uuid.uuid4()))

    # Ensure error detail is a string, not an object
    error_detail = str(exc.detail) if exc.detail else "An error occurred"

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": error_detail,
            "correlation_id": correlation_id,
        },
        headers=getattr(exc, "headers", None),
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions with PHI masking"""
    error_message = mask_error_message(str(exc))
    correlation_id = getattr(request.state, 'correlation_id', str(uuid.uuid4()))
    logger.error(f"Unhandled error: {error_message}, correlation_id={correlation_id}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": error_message,
            "correlation_id": correlation_id,
        },
    )


# Include routers
app.include_router(health_router)
app.include_router(validations_router)
app.include_router(webhooks_router)
app.include_router(validator_proxy_router)
app.include_router(admin_reports_router)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "name": "MedLearn Note Validator API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.env == "development",
    )
