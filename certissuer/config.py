"""Certificate Issuer configuration constants.

Environment-based configuration, read once at import time:
- PERSISTENCE: data directory and database URL
- SECURITY: session tokens, owner principal, nonce size
- UPLOADS: certificate/artifact storage
- OPERATIONAL: logging, CORS, rate limiting
"""
import os
from pathlib import Path


# =============================================================================
# PERSISTENCE CONFIGURATION
# =============================================================================

def _get_data_dir() -> Path:
    """Determine data directory based on environment.

    Priority:
    1. CERTISSUER_DATA_DIR env var (explicit override)
    2. /data/certissuer if it exists (Docker volume mount)
    3. ~/.certissuer (local development)
    4. /tmp/certissuer (container fallback when home unavailable)
    """
    env_path = os.getenv("CERTISSUER_DATA_DIR")
    if env_path:
        return Path(env_path)

    docker_path = Path("/data/certissuer")
    if docker_path.exists():
        return docker_path

    try:
        home_path = Path.home() / ".certissuer"
        home_path.mkdir(parents=True, exist_ok=True)
        return home_path
    except (OSError, PermissionError):
        return Path("/tmp/certissuer")


DATA_DIR: Path = _get_data_dir()


def _get_database_url() -> str:
    """Get database URL from environment.

    Priority:
    1. CERTISSUER_DATABASE_URL - explicit full connection string
    2. CERTISSUER_POSTGRES_* - construct PostgreSQL URL from components
    3. SQLite fallback for local development
    """
    if url := os.getenv("CERTISSUER_DATABASE_URL"):
        return url

    host = os.getenv("CERTISSUER_POSTGRES_HOST")
    if host:
        user = os.getenv("CERTISSUER_POSTGRES_USER", "certissuer")
        password = os.getenv("CERTISSUER_POSTGRES_PASSWORD", "")
        db = os.getenv("CERTISSUER_POSTGRES_DB", "certissuer")
        return f"postgresql+psycopg://{user}:{password}@{host}/{db}?sslmode=require"

    return f"sqlite:///{DATA_DIR}/certissuer.db"


DATABASE_URL: str = _get_database_url()


# =============================================================================
# SECURITY CONFIGURATION
# =============================================================================

# HS256 signing secret for session tokens. The default is only usable locally.
JWT_SECRET: str = os.getenv("CERTISSUER_JWT_SECRET", "dev-secret-change-me")
JWT_ALGORITHM: str = "HS256"
JWT_ISSUER: str = os.getenv("CERTISSUER_JWT_ISSUER", "certissuer")

# Session lifetime. Tokens cannot be revoked, so keep this short.
SESSION_TTL_SECONDS: int = int(os.getenv("CERTISSUER_SESSION_TTL", "3600"))  # 1 hour default

# The single principal allowed to list and decide KYC submissions
OWNER_WALLET_ADDRESS: str = os.getenv("CERTISSUER_OWNER_WALLET", "").strip().lower()

# Entropy of wallet challenge nonces. Capped so the decimal form fits
# the 64-character nonce column.
MAX_NONCE_BITS: int = 192
NONCE_BITS: int = min(int(os.getenv("CERTISSUER_NONCE_BITS", "128")), MAX_NONCE_BITS)

# When true, organizations must be KYC-approved before issuing documents
REQUIRE_KYC_FOR_ISSUANCE: bool = os.getenv(
    "CERTISSUER_REQUIRE_KYC_FOR_ISSUANCE", "false"
).lower() == "true"

# Login rate limiting (wallet verification and verifier sign-in)
LOGIN_RATE_LIMIT_MAX_ATTEMPTS: int = int(os.getenv("CERTISSUER_LOGIN_RATE_LIMIT_MAX", "5"))
LOGIN_RATE_LIMIT_WINDOW_SECONDS: int = int(os.getenv("CERTISSUER_LOGIN_RATE_LIMIT_WINDOW", "900"))  # 15 min

# Peers whose X-Forwarded-For header is trusted (e.g. the nginx in front)
TRUSTED_PROXIES: set[str] = {
    p.strip() for p in os.getenv("CERTISSUER_TRUSTED_PROXIES", "").split(",") if p.strip()
}

AUDIT_ENABLED: bool = os.getenv("CERTISSUER_AUDIT_ENABLED", "true").lower() == "true"


# =============================================================================
# UPLOAD CONFIGURATION
# =============================================================================

UPLOAD_DIR: Path = Path(os.getenv("CERTISSUER_UPLOAD_DIR", str(DATA_DIR / "uploads")))
MAX_UPLOAD_BYTES: int = int(os.getenv("CERTISSUER_MAX_UPLOAD_MB", "10")) * 1024 * 1024

ALLOWED_CERTIFICATE_TYPES: set[str] = {
    t.strip()
    for t in os.getenv(
        "CERTISSUER_ALLOWED_CERTIFICATE_TYPES", "application/pdf,image/png,image/jpeg"
    ).split(",")
    if t.strip()
}

# Artifact gateway for /upload and /view: "local" or "pinata"
ARTIFACT_BACKEND: str = os.getenv("CERTISSUER_ARTIFACT_BACKEND", "local").lower()
PINATA_JWT: str | None = os.getenv("CERTISSUER_PINATA_JWT")
PINATA_GATEWAY: str | None = os.getenv("CERTISSUER_PINATA_GATEWAY")
PINATA_API_URL: str = os.getenv("CERTISSUER_PINATA_API_URL", "https://api.pinata.cloud")
PINATA_UPLOAD_URL: str = os.getenv("CERTISSUER_PINATA_UPLOAD_URL", "https://uploads.pinata.cloud")
ARTIFACT_LINK_TTL_SECONDS: int = int(os.getenv("CERTISSUER_ARTIFACT_LINK_TTL", "30"))
ARTIFACT_TIMEOUT_SECONDS: float = float(os.getenv("CERTISSUER_ARTIFACT_TIMEOUT", "30.0"))


# =============================================================================
# OPERATIONAL
# =============================================================================

SERVICE_NAME: str = "certissuer"
SERVICE_PORT: int = int(os.getenv("CERTISSUER_PORT", "8001"))

CORS_ORIGINS: list[str] = [
    o.strip()
    for o in os.getenv("CERTISSUER_CORS_ORIGINS", "http://localhost:5173").split(",")
    if o.strip()
]

LOG_LEVEL: str = os.getenv("CERTISSUER_LOG_LEVEL", "INFO").upper()
LOG_FILE: str | None = os.getenv("CERTISSUER_LOG_FILE")

# Always reachable without a session
AUTH_EXEMPT_PATHS: set[str] = {"/healthz", "/version"}


def validate_security_config() -> tuple[bool, str | None]:
    """Validate security-critical configuration.

    Returns:
        Tuple of (is_valid, warning). The service still starts when invalid,
        but privileged routes will be unreachable.
    """
    if not OWNER_WALLET_ADDRESS:
        return False, "CERTISSUER_OWNER_WALLET not set: KYC review endpoints will reject every caller"
    if JWT_SECRET == "dev-secret-change-me":
        return False, "CERTISSUER_JWT_SECRET not set: using development signing secret"
    return True, None


def get_auth_exempt_paths() -> set[str]:
    """Get the full set of paths that never require a session token."""
    exempt = set(AUTH_EXEMPT_PATHS)

    # Wallet challenge flow (caller has no session yet)
    exempt.add("/nonce")
    exempt.add("/walletverify")

    # Verifier account flow
    exempt.add("/signup")
    exempt.add("/signin")

    exempt.add("/dashboard-stats")
    exempt.add("/docs")
    exempt.add("/openapi.json")
    exempt.add("/redoc")

    return exempt
