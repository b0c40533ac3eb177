"""Pytest fixtures for Certificate Issuer tests."""
import importlib
import os
import tempfile
from pathlib import Path
from typing import AsyncGenerator

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from certissuer.audit.logger import reset_audit_logger
from certissuer.auth.session import reset_rate_limiter
from certissuer.db.models import Base
from certissuer.storage.artifacts import reset_artifact_store

# Environment variables the client fixture overrides
_ENV_KEYS = (
    "CERTISSUER_DATA_DIR",
    "CERTISSUER_DATABASE_URL",
    "CERTISSUER_OWNER_WALLET",
    "CERTISSUER_JWT_SECRET",
    "CERTISSUER_ARTIFACT_BACKEND",
    "CERTISSUER_REQUIRE_KYC_FOR_ISSUANCE",
    "CERTISSUER_LOGIN_RATE_LIMIT_MAX",
    "CERTISSUER_TRUSTED_PROXIES",
)

TEST_JWT_SECRET = "test-secret-with-enough-length-for-hs256"


# =============================================================================
# Wallet Helpers
# =============================================================================

def sign_nonce(account, nonce: str) -> str:
    """Sign a challenge the way a browser wallet's personal_sign does."""
    signed = account.sign_message(encode_defunct(text=nonce))
    return "0x" + bytes(signed.signature).hex()


async def wallet_login(client: AsyncClient, account) -> dict:
    """Run the full nonce/walletverify flow and return the response body."""
    response = await client.post("/nonce", json={"walletAddress": account.address})
    assert response.status_code == 200, response.text
    nonce = response.json()["nonce"]

    response = await client.post(
        "/walletverify",
        json={"walletAddress": account.address, "signature": sign_nonce(account, nonce)},
    )
    assert response.status_code == 200, response.text
    return response.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# Accounts
# =============================================================================

@pytest.fixture
def owner_account():
    """Wallet configured as the KYC owner."""
    return Account.create()


@pytest.fixture
def org_account():
    """An ordinary organization wallet."""
    return Account.create()


@pytest.fixture
def other_account():
    return Account.create()


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Use a low bcrypt cost so verifier tests stay fast."""
    import certissuer.auth.passwords as passwords

    monkeypatch.setattr(passwords, "BCRYPT_ROUNDS", 4)


# =============================================================================
# Database & Application
# =============================================================================

@pytest.fixture
def temp_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def in_memory_db():
    """Create an in-memory SQLite database for unit tests."""
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def app_env(temp_dir: Path, owner_account) -> dict:
    """Environment for the application under test.

    Tests may mutate the returned dict before requesting ``client``.
    """
    return {
        "CERTISSUER_DATA_DIR": str(temp_dir),
        "CERTISSUER_DATABASE_URL": f"sqlite:///{temp_dir}/certissuer.db",
        "CERTISSUER_OWNER_WALLET": owner_account.address,
        "CERTISSUER_JWT_SECRET": TEST_JWT_SECRET,
        "CERTISSUER_ARTIFACT_BACKEND": "local",
        "CERTISSUER_REQUIRE_KYC_FOR_ISSUANCE": "false",
        "CERTISSUER_LOGIN_RATE_LIMIT_MAX": "5",
        "CERTISSUER_TRUSTED_PROXIES": "",
    }


def _reset_singletons():
    reset_rate_limiter()
    reset_audit_logger()
    reset_artifact_store()


@pytest.fixture
async def client(app_env: dict) -> AsyncGenerator[AsyncClient, None]:
    """Create test client for API testing with isolated temp storage.

    Points config at a temp directory and database, reloads config, the
    database session module and main, then creates the schema (the ASGI
    transport does not run the lifespan handler).
    """
    original_env = {key: os.environ.get(key) for key in _ENV_KEYS}
    os.environ.update(app_env)
    _reset_singletons()

    import certissuer.config as config_module
    importlib.reload(config_module)

    import certissuer.db.session as session_module
    session_module.engine.dispose()
    importlib.reload(session_module)
    session_module.init_database()
    config_module.UPLOAD_DIR.mkdir(parents=True, exist_ok=True)

    import certissuer.main as main_module
    importlib.reload(main_module)

    async with AsyncClient(
        transport=ASGITransport(app=main_module.app),
        base_url="http://test",
    ) as async_client:
        yield async_client

    session_module.engine.dispose()
    _reset_singletons()

    for key, value in original_env.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value

    importlib.reload(config_module)
    importlib.reload(session_module)


@pytest.fixture
def db_session(client):
    """A session on the application database, for asserting stored state."""
    import certissuer.db.session as session_module

    db = session_module.SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =============================================================================
# Authenticated Sessions
# =============================================================================

@pytest.fixture
async def owner_headers(client: AsyncClient, owner_account) -> dict:
    body = await wallet_login(client, owner_account)
    return bearer(body["token"])


@pytest.fixture
async def org_headers(client: AsyncClient, org_account) -> dict:
    body = await wallet_login(client, org_account)
    return bearer(body["token"])


@pytest.fixture
async def verifier_headers(client: AsyncClient) -> dict:
    response = await client.post(
        "/signup",
        json={
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "Ada@Example.com",
            "password": "correct-horse",
        },
    )
    assert response.status_code == 201, response.text

    response = await client.post(
        "/signin", json={"email": "ada@example.com", "password": "correct-horse"}
    )
    assert response.status_code == 200, response.text
    return bearer(response.json()["token"])


# =============================================================================
# KYC Form
# =============================================================================

PDF_BYTES = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\ntrailer << >>\n%%EOF\n"


@pytest.fixture
def kyc_form() -> dict:
    """A complete, valid KYC form."""
    return {
        "orgName": "Acme Academy",
        "orgType": "Education",
        "officialEmail": "registrar@acme.edu",
        "website": "acme.edu",
        "address": "1 Campus Road, Springfield",
        "country": "US",
        "registrationNo": "REG-2024-001",
        "fullName": "Jane Registrar",
        "position": "Registrar",
        "contactNo": "+1 555 0100",
        "personalEmail": "jane@acme.edu",
    }


@pytest.fixture
def certificate_file() -> dict:
    return {"certificate": ("registration cert.pdf", PDF_BYTES, "application/pdf")}
