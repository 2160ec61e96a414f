"""
Apartment Back Office API - Main Application
FastAPI application with CORS, error handling, request logging and the
background maintenance sweep
"""
import asyncio
import logging
import traceback
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from backoffice.api.routes import (
    audit_router,
    auth_router,
    invoices_router,
    leases_router,
    maintenance_requests_router,
    maintenance_schedules_router,
    maintenance_stocks_router,
    payments_router,
    rental_requests_router,
    settings_router,
    tenants_router,
    units_router,
)
from backoffice.core.config import settings
from backoffice.core.exceptions import DomainError
from backoffice.database import close_db_connection, init_db, test_connection
from backoffice.services.scheduler import sweep_loop


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ==================== STARTUP & SHUTDOWN ====================


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=" * 70)
    logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION}")
    logger.info("=" * 70)

    if test_connection():
        logger.info("[OK] Database connection successful!")
    else:
        logger.warning("[WARN] Database connection failed - continuing in degraded mode")

    if init_db():
        logger.info("[OK] Database initialization complete!")
    else:
        logger.warning("[WARN] Database init returned False - tables may not exist")

    sweep_task = None
    if settings.LEASE_SWEEP_ENABLED and not settings.TESTING:
        sweep_task = asyncio.create_task(sweep_loop(settings.LEASE_SWEEP_INTERVAL_SECONDS))

    logger.info("[OK] Application startup complete!")
    yield

    logger.info("Shutting down application...")
    if sweep_task is not None:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
    close_db_connection()
    logger.info("Application shutdown complete")


# Initialize FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description=settings.PROJECT_DESCRIPTION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)


# ==================== MIDDLEWARE ====================


# Compression: GZip responses
app.add_middleware(GZipMiddleware, minimum_size=1000)

# CORS: Cross-Origin Resource Sharing
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"],
    allow_headers=["*"],
    max_age=3600,
)


# ==================== ROUTERS ====================


app.include_router(auth_router, prefix="/api/auth", tags=["Authentication"])
app.include_router(units_router, prefix="/api/units", tags=["Units"])
app.include_router(tenants_router, prefix="/api/tenants", tags=["Tenants"])
app.include_router(leases_router, prefix="/api/leases", tags=["Leases"])
app.include_router(rental_requests_router, prefix="/api/rental-requests", tags=["Rental Requests"])
app.include_router(payments_router, prefix="/api/payments", tags=["Payments"])
app.include_router(invoices_router, prefix="/api/invoices", tags=["Invoices"])
app.include_router(audit_router, prefix="/api/audit-logs", tags=["Audit"])
app.include_router(maintenance_requests_router, prefix="/api/maintenance-requests", tags=["Maintenance"])
app.include_router(maintenance_stocks_router, prefix="/api/maintenance-stocks", tags=["Maintenance Stock"])
app.include_router(
    maintenance_schedules_router, prefix="/api/maintenance-schedules", tags=["Maintenance Schedules"]
)
app.include_router(settings_router, prefix="/api/settings", tags=["Settings"])


# ==================== ERROR HANDLERS ====================


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    """Business rule violations raised by the service layer"""
    logger.warning(f"{exc.error_code} on {request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "detail": exc.detail,
            "error_code": exc.error_code,
        }
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with detailed response"""
    logger.warning(f"Validation error on {request.url}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "detail": "Validation error",
            "errors": exc.errors()
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions"""
    logger.error(f"Unhandled exception: {exc}\n{traceback.format_exc()}")

    # Don't expose internal errors in production
    error_message = str(exc) if settings.DEBUG else "Internal server error"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "detail": error_message,
            "timestamp": datetime.now().isoformat()
        }
    )


# ==================== REQUEST LOGGING ====================


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests"""
    if request.url.path == "/health":
        return await call_next(request)

    start_time = datetime.now()
    logger.info(f">> {request.method} {request.url.path}")

    try:
        response = await call_next(request)
        duration = (datetime.now() - start_time).total_seconds()
        logger.info(f"<< {request.method} {request.url.path} - {response.status_code} ({duration:.2f}s)")
        return response
    except Exception as e:
        duration = (datetime.now() - start_time).total_seconds()
        logger.error(f"[ERROR] {request.method} {request.url.path} - Error: {str(e)} ({duration:.2f}s)")
        raise


# ==================== HEALTH & STATUS ENDPOINTS ====================


@app.get("/", tags=["System"])
async def root():
    """Root endpoint - API information"""
    return {
        "success": True,
        "message": f"Welcome to {settings.PROJECT_NAME}",
        "version": settings.VERSION,
        "docs": "/api/docs",
        "status": "operational",
    }


@app.get("/health", tags=["System"])
def health_check():
    """Health check endpoint"""
    connection_ok = test_connection()
    return {
        "success": True,
        "status": "healthy" if connection_ok else "degraded",
        "database": "connected" if connection_ok else "disconnected",
        "timestamp": datetime.now().isoformat(),
    }


@app.get("/api/version", tags=["System"])
async def get_version():
    """Get API version information"""
    return {
        "success": True,
        "api_version": settings.VERSION,
        "app_name": settings.PROJECT_NAME,
    }
