"""Certificate Issuer FastAPI application."""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.authentication import AuthenticationMiddleware

from certissuer.api import documents, files, health, kyc, session, verifier, wallet
from certissuer.auth.backend import BearerTokenBackend
from certissuer.config import (
    CORS_ORIGINS,
    UPLOAD_DIR,
    get_auth_exempt_paths,
    validate_security_config,
)
from certissuer.core.exceptions import IssuerError, ValidationError
from certissuer.core.logging import configure_logging
from certissuer.storage.artifacts import close_artifact_store

configure_logging()
log = logging.getLogger("certissuer")

# Error codes for HTTPExceptions raised by FastAPI or the role dependencies
_HTTP_ERROR_CODES = {
    400: "validation_error",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "rate_limited",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    log.info("Starting Certificate Issuer service...")

    try:
        from certissuer.db.session import init_database
        init_database()

        UPLOAD_DIR.mkdir(parents=True, exist_ok=True)

        valid, warning = validate_security_config()
        if not valid:
            log.warning(warning)

        log.info("Certificate Issuer service started")
    except Exception as e:
        log.error(f"Failed to initialize service: {e}")
        raise

    yield

    log.info("Shutting down Certificate Issuer service...")
    await close_artifact_store()
    log.info("Certificate Issuer service stopped")


app = FastAPI(
    title="Certificate Issuer",
    version="0.1.0",
    description="Wallet-authenticated organization KYC and document issuance",
    lifespan=lifespan,
)


# -----------------------------------------------------------------------------
# Authentication Middleware
# -----------------------------------------------------------------------------

def on_auth_error(conn, exc):
    """Handle authentication errors."""
    return JSONResponse(
        status_code=401,
        content={"error": "unauthorized", "detail": str(exc)},
        headers={"WWW-Authenticate": "Bearer"},
    )


app.add_middleware(
    AuthenticationMiddleware,
    backend=BearerTokenBackend(exempt_paths=get_auth_exempt_paths()),
    on_error=on_auth_error,
)

# Outermost, so preflight requests never reach authentication
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -----------------------------------------------------------------------------
# Exception Handlers
# -----------------------------------------------------------------------------

@app.exception_handler(IssuerError)
async def issuer_error_handler(request: Request, exc: IssuerError):
    """Translate domain exceptions into HTTP responses."""
    if exc.status_code >= 500:
        log.error(
            f"{type(exc).__name__}: {exc.detail}",
            exc_info=exc,
            extra={"route": request.url.path, "method": request.method},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "server_error", "detail": "Server error"},
        )

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report every invalid request field in the ValidationError shape."""
    error = ValidationError.from_pydantic(exc.errors())
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = _HTTP_ERROR_CODES.get(exc.status_code, "error")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": code, "detail": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    """Log storage failures and return a generic message."""
    log.error(
        f"Database error: {exc}",
        exc_info=exc,
        extra={"route": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=500,
        content={"error": "server_error", "detail": "Server error"},
    )


# -----------------------------------------------------------------------------
# Static Files
# -----------------------------------------------------------------------------

# KYC certificates and locally stored artifacts
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR, check_dir=False), name="uploads")


# -----------------------------------------------------------------------------
# API Routers
# -----------------------------------------------------------------------------

app.include_router(health.router)
app.include_router(wallet.router)
app.include_router(kyc.router)
app.include_router(documents.router)
app.include_router(verifier.router)
app.include_router(session.router)
app.include_router(files.router)


# -----------------------------------------------------------------------------
# Request Logging Middleware
# -----------------------------------------------------------------------------

@app.middleware("http")
async def request_logging(request: Request, call_next):
    """Log all requests with timing."""
    start = time.time()
    response = await call_next(request)
    duration_ms = int((time.time() - start) * 1000)

    log.info(
        f"request_complete status={response.status_code} duration_ms={duration_ms}",
        extra={
            "route": request.url.path,
            "method": request.method,
            "status": response.status_code,
        },
    )
    return response
