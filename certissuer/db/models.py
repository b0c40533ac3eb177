"""SQLAlchemy ORM models for the Certificate Issuer service.

This module defines the database schema for:
- Organizations (wallet-authenticated issuers with a KYC profile)
- Verifiers (email/password accounts)
- Verifications (verification events referencing stored files)
- Issued Documents (content-addressed document records)
"""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    String,
    event,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class KycStatus(str, Enum):
    """KYC review states for an organization."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class Organization(Base):
    """Organization identified by its wallet address.

    Created lazily on the first challenge request for an unseen wallet.
    The KYC profile lives in ``kyc_details`` (replaced wholesale on every
    submission) and its review state in ``kyc_status``. Whether the
    organization is verified is derived from the status and never stored.
    """

    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True)  # UUID
    wallet_address = Column(String(42), nullable=False, unique=True)  # Lowercase 0x-hex
    nonce = Column(String(64), nullable=False)
    kyc_details = Column(JSON, nullable=True)
    kyc_status = Column(String(20), nullable=True, index=True)  # KycStatus value, NULL before first submission
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    @property
    def is_kyc_verified(self) -> bool:
        """True iff the KYC status is Approved."""
        return self.kyc_status == KycStatus.APPROVED.value

    @property
    def org_name(self) -> str | None:
        if not self.kyc_details:
            return None
        return self.kyc_details.get("orgName")

    def kyc_view(self) -> dict[str, Any] | None:
        """KYC profile with its status folded in, as returned by the API."""
        if self.kyc_details is None:
            return None
        return {**self.kyc_details, "status": self.kyc_status}

    def __repr__(self) -> str:
        return f"<Organization(id={self.id!r}, wallet={self.wallet_address!r}, kyc={self.kyc_status!r})>"


class Verifier(Base):
    """Verifier account with email/password credentials."""

    __tablename__ = "verifiers"

    id = Column(String(36), primary_key=True)  # UUID
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False, unique=True)  # Lowercase, globally unique
    password_hash = Column(String(255), nullable=False)  # bcrypt
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Verifier(id={self.id!r}, email={self.email!r})>"


class Verification(Base):
    """A verification event referencing an externally stored file (CID)."""

    __tablename__ = "verifications"

    id = Column(String(36), primary_key=True)  # UUID
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    cid = Column(String(255), nullable=False)
    submitted_by = Column(String(80), nullable=True)  # Principal subject
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Verification(id={self.id!r}, cid={self.cid!r})>"


class IssuedDocument(Base):
    """Issued document record keyed by its content hash.

    The primary key on ``doc_hash`` is what makes issuance idempotent-safe:
    a second insert with the same hash fails at the store.
    """

    __tablename__ = "issued_documents"

    doc_hash = Column(String(255), primary_key=True)
    person_name = Column(String(255), nullable=False)
    person_wallet = Column(String(42), nullable=False)  # Recipient
    doc_type = Column(String(100), nullable=False)
    org_wallet = Column(String(42), nullable=False)
    org_name = Column(String(255), nullable=False)
    issued_by = Column(String(80), nullable=True)  # Principal subject
    valid = Column(Boolean, default=True, nullable=False)
    issued_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<IssuedDocument(doc_hash={self.doc_hash!r}, recipient={self.person_wallet!r})>"


# Normalize identifiers to lowercase before insert/update
@event.listens_for(Verifier.email, "set", retval=True, propagate=True)
def normalize_email(target: Verifier, value: str, oldvalue: str, initiator) -> str:
    """Normalize email to lowercase."""
    if value is not None:
        return value.lower()
    return value


@event.listens_for(Verification.email, "set", retval=True, propagate=True)
def normalize_verification_email(target: Verification, value: str, oldvalue: str, initiator) -> str:
    """Normalize email to lowercase."""
    if value is not None:
        return value.lower()
    return value


@event.listens_for(Organization.wallet_address, "set", retval=True, propagate=True)
def normalize_wallet_address(target: Organization, value: str, oldvalue: str, initiator) -> str:
    """Normalize wallet address to lowercase."""
    if value is not None:
        return value.strip().lower()
    return value
