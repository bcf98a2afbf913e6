"""
FastAPI main application entry point.

  Browser → http://localhost:8000/api/auth/...           → register / login
  Browser → http://localhost:8000/api/conversations/...  → conversation CRUD
  Browser → http://localhost:8000/api/messages/stream    → SSE message stream

Security model:
  - All data endpoints require JWT authentication
  - RateLimitMiddleware throttles auth attempts and message streaming
  - Security headers prevent clickjacking, MIME sniffing, etc.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from config import get_settings
from database import connect_db, close_db, get_database
from middleware.rate_limit import RateLimitMiddleware
from routers import auth, conversations, messages
from utils.errors import AppError, InternalError, ValidationError, log_error

# ============================================================
# Logging Configuration
# ============================================================
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Per-request httpx logging repeats what the gateway already logs
logging.getLogger("httpx").setLevel(logging.WARNING)


# ============================================================
# Application Lifespan (startup/shutdown)
# ============================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    logger.info("Starting up chat relay...")

    _settings = get_settings()
    if _settings.jwt_secret_key == "your-super-secret-key-change-in-production":
        logger.warning(
            "JWT_SECRET_KEY is still the default! "
            "Generate a real secret: python -c \"import secrets; print(secrets.token_hex(32))\" "
            "and set it in .env"
        )
    if not _settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; message streams will report a configuration error")

    logger.info(f"CORS origins: {_settings.cors_origins_list}")

    await connect_db()

    yield  # Application runs here

    logger.info("Shutting down chat relay...")
    await close_db()


# ============================================================
# Create FastAPI Application
# ============================================================
app = FastAPI(
    title="Chat Relay API",
    description="Relays chat messages to an LLM provider and streams replies over SSE",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)


# ============================================================
# Error Handlers
# ============================================================
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log_error(exc, f"{request.method} {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response(include_details=get_settings().debug),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationError("Invalid request", details={"errors": jsonable_encoder(exc.errors())})
    return await app_error_handler(request, error)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log_error(exc, f"{request.method} {request.url.path}")
    error = InternalError(
        "An unexpected error occurred",
        details={"originalError": f"{type(exc).__name__}: {exc}"},
    )
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_response(include_details=get_settings().debug),
    )


# ============================================================
# Middleware Stack (last added runs first)
# ============================================================
settings = get_settings()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every response.

    Prevents clickjacking, MIME sniffing, and other common attacks.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store"
        return response


# 1. Rate limiting on auth and streaming endpoints (innermost)
app.add_middleware(RateLimitMiddleware)

# 2. CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 3. Security headers (outermost, runs on every response including 429s)
app.add_middleware(SecurityHeadersMiddleware)


# ============================================================
# API Routes, mounted under /api
# ============================================================
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(conversations.router, prefix="/api/conversations", tags=["Conversations"])
app.include_router(messages.router, prefix="/api/messages", tags=["Messages"])


# ============================================================
# Health Check Endpoints (under /api for consistency)
# ============================================================
@app.get("/api/health")
async def health_check() -> dict:
    """Liveness probe. Confirms the process is running."""
    return {"status": "healthy", "version": "1.0.0"}


@app.get("/api/health/ready")
async def readiness_check():
    """Readiness probe. Verifies the database answers."""
    try:
        await get_database().command("ping")
    except RuntimeError as e:
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "checks": {"database": f"error: {e}"}},
        )
    return {"status": "ready", "checks": {"database": "ok"}}


# ============================================================
# Run with Uvicorn (for development)
# ============================================================
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
