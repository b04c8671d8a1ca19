"""
Flag Capture Game - FastAPI Application Entry Point.

This is the main application module that:
1. Initializes the FastAPI app with CORS middleware
2. Sets up structured JSON logging
3. Implements request ID middleware (X-Request-ID header)
4. Registers all API route handlers and error handlers
5. Provides health check endpoint

The application follows a modular architecture:
- routes/: API endpoint handlers
- models/: SQLAlchemy ORM models
- services/: Business logic (ownership ledger, stats, photos, users)
- logging_config.py: Structured logging configuration
- database.py: Database connection management
"""

import time
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.config import CORS_ORIGINS
from app.logging_config import (
    setup_logging, get_logger, log_with_context,
    request_id_var, generate_request_id
)
from app.error_handlers import register_error_handlers
from app.routes import flag_requests, flags, captures, stats, admin, photos
from app.database import DATABASE_URL, create_tables

# Import all models so they are registered with Base.metadata
from app.models import User, UserSession, FlagRequest, Flag, Capture, Counter  # noqa: F401

# ──────────────────────────────────────────────────────────────
# Initialize structured logging BEFORE anything else
# ──────────────────────────────────────────────────────────────
setup_logging()
logger = get_logger("http")

# Auto-create tables for SQLite local development
if DATABASE_URL.startswith("sqlite"):
    logger.info("Using SQLite, creating tables directly")
    create_tables()

# ──────────────────────────────────────────────────────────────
# Create FastAPI application
# ──────────────────────────────────────────────────────────────
app = FastAPI(
    title="Flag Capture Game",
    description=(
        "Backend for a flag capture game: users request physical flags, "
        "admins approve them into numbered flags, and players capture "
        "flags from each other by scanning their QR codes."
    ),
    version="1.0.0",
    docs_url="/docs",        # Swagger UI at /docs
    redoc_url="/redoc"       # ReDoc at /redoc
)

# ──────────────────────────────────────────────────────────────
# CORS Middleware
#
# Allows the React frontend to call the backend.
# In production, set CORS_ORIGINS to the actual frontend domain.
# ──────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"]     # Expose request ID header to frontend
)


# ──────────────────────────────────────────────────────────────
# Request ID Middleware
#
# Generates a unique UUID per incoming request and:
# 1. Stores it in a context variable (available to all log entries)
# 2. Returns it in the X-Request-ID response header
# 3. Logs request start/end with latency measurement
# ──────────────────────────────────────────────────────────────
@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """
    Middleware that generates a unique request ID for every HTTP request.

    The request ID is:
    - Generated as a UUID v4
    - Stored in a context variable (accessible from any log call)
    - Included in the X-Request-ID response header
    - Logged at request start and completion
    """
    req_id = generate_request_id()
    request_id_var.set(req_id)

    start_time = time.time()

    log_with_context(logger, "INFO",
        f"Request started: {request.method} {request.url.path}",
        context={"request_id": req_id},
        extra_data={
            "ip": request.client.host if request.client else "unknown",
            "user_agent": request.headers.get("user-agent", ""),
            "query_params": dict(request.query_params)
        })

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000

    response.headers["X-Request-ID"] = req_id

    log_with_context(logger, "INFO",
        f"Request completed: {request.method} {request.url.path} → {response.status_code}",
        context={"request_id": req_id},
        extra_data={
            "duration_ms": round(duration_ms, 2),
            "status_code": response.status_code
        })

    return response


# ──────────────────────────────────────────────────────────────
# Register error handlers and API routes
# ──────────────────────────────────────────────────────────────
register_error_handlers(app)

app.include_router(flag_requests.router, tags=["Flag Requests"])
app.include_router(flags.router, tags=["Flags"])
app.include_router(captures.router, tags=["Captures"])
app.include_router(stats.router, tags=["Account"])
app.include_router(admin.router, tags=["Admin"])
app.include_router(photos.router, tags=["Photos"])


# ──────────────────────────────────────────────────────────────
# Health check endpoint
# ──────────────────────────────────────────────────────────────
@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint for Docker health checks and monitoring.

    Returns a simple status response to verify the application is running.
    """
    return {"status": "healthy", "service": "flag-capture-backend", "version": "1.0.0"}


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "service": "Flag Capture Game",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "request_flag": "POST /api/flag-requests",
            "my_requests": "GET /api/flag-requests",
            "my_flags": "GET /api/flags/mine",
            "flag_detail": "GET /api/flags/{flag_number}",
            "capture": "POST /api/captures",
            "flag_captures": "GET /api/captures/{flag_id}",
            "photo_upload": "POST /api/photos",
            "my_stats": "GET /api/stats/me",
            "admin": "/api/admin/{flag-requests,flags,captures}"
        }
    }
