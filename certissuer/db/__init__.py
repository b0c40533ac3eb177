"""Database module for the Certificate Issuer service.

This module provides SQLAlchemy ORM models and session management for
organizations, verifiers, verifications and issued documents.
"""

from certissuer.db.models import (
    Base,
    IssuedDocument,
    KycStatus,
    Organization,
    Verification,
    Verifier,
)
from certissuer.db.session import SessionLocal, engine, get_db, init_database

__all__ = [
    "Base",
    "IssuedDocument",
    "KycStatus",
    "Organization",
    "Verification",
    "Verifier",
    "get_db",
    "init_database",
    "engine",
    "SessionLocal",
]
