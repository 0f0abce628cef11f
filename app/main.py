from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from datetime import datetime
import time
import logging

from .api.v1.auth import router as auth_router
from .api.v1.users import router as users_router
from .api.v1.patients import router as patients_router
from .api.v1.doctors import router as doctors_router
from .api.v1.appointments import router as appointments_router
from .api.v1.prescriptions import router as prescriptions_router
from .api.v1.lab_tests import router as lab_tests_router
from .api.v1.notifications import router as notifications_router
from .api.v1.reports import router as reports_router
from .core.config import settings
from .core.database import init_db

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

ENDPOINTS = {
    "auth": f"{settings.API_PREFIX}/auth",
    "users": f"{settings.API_PREFIX}/users",
    "patients": f"{settings.API_PREFIX}/patients",
    "doctors": f"{settings.API_PREFIX}/doctors",
    "appointments": f"{settings.API_PREFIX}/appointments",
    "prescriptions": f"{settings.API_PREFIX}/prescriptions",
    "labTests": f"{settings.API_PREFIX}/lab-tests",
    "notifications": f"{settings.API_PREFIX}/notifications",
    "reports": f"{settings.API_PREFIX}/reports",
}

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Backend for the MediVault clinic management app",
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Middleware setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware for request logging and timing
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    # Log request
    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Time: {process_time:.4f}s"
    )

    return response

# Exception handlers: every error leaves as {"success": false, "message": ...}
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail
    if exc.status_code == 404 and message == "Not Found":
        message = "Endpoint not found"
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message},
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation failed", "errors": errors},
    )

@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    logger.exception(f"Internal server error on {request.method} {request.url.path}")
    content = {"success": False, "message": "Internal server error"}
    if settings.DEBUG:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)

# Include routers
for router in (
    auth_router,
    users_router,
    patients_router,
    doctors_router,
    appointments_router,
    prescriptions_router,
    lab_tests_router,
    notifications_router,
    reports_router,
):
    app.include_router(router, prefix=settings.API_PREFIX)

# Startup and shutdown events
@app.on_event("startup")
async def startup_event():
    """Initialize application on startup."""
    logger.info("Starting MediVault API...")

    db_url = settings.get_database_url
    db_type = "PostgreSQL" if "postgresql" in db_url else "SQLite" if "sqlite" in db_url else "Unknown"
    logger.info(f"Using {db_type} database")

    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise

    logger.info("Application startup complete")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down MediVault API...")

# Health check endpoint
@app.get("/health")
async def health_check():
    return {
        "success": True,
        "message": "MediVault API Server is running",
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "version": settings.VERSION
    }

# Root endpoint
@app.get("/")
async def root():
    return {
        "success": True,
        "message": "Welcome to MediVault API",
        "version": settings.VERSION,
        "endpoints": {**ENDPOINTS, "health": "/health", "docs": "/docs"},
    }

# API Info endpoint
@app.get(f"{settings.API_PREFIX}/info")
async def api_info():
    return {
        "name": settings.APP_NAME,
        "version": settings.VERSION,
        "endpoints": {**ENDPOINTS, "openapi": f"{settings.API_PREFIX}/openapi.json"},
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
