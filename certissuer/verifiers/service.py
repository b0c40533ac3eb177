"""Verifier account operations."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from certissuer.auth.backend import Principal
from certissuer.auth.passwords import hash_password, verify_password
from certissuer.auth.tokens import PrincipalKind, issue_token
from certissuer.core.exceptions import ConflictError, NotFoundError, UnauthorizedError
from certissuer.db.models import Organization, Verification, Verifier
from certissuer.documents.service import resolve_principal
from certissuer.verifiers.schema import SignupRequest, VerificationRequest

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SigninResult:
    token: str
    expires_at: datetime
    verifier_id: str


def signup(db: Session, request: SignupRequest) -> Verifier:
    """Create a verifier account.

    Raises:
        ConflictError: The email is already registered
    """
    verifier = Verifier(
        id=str(uuid.uuid4()),
        first_name=request.first_name,
        last_name=request.last_name,
        email=str(request.email),
        password_hash=hash_password(request.password),
    )
    db.add(verifier)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already registered")

    db.refresh(verifier)
    log.info(f"Created verifier {verifier.id}")
    return verifier


def signin(db: Session, email: str, password: str) -> SigninResult:
    """Check verifier credentials and issue a session token.

    Unknown email and wrong password fail identically.

    Raises:
        UnauthorizedError: Invalid email or password
    """
    verifier = db.query(Verifier).filter(Verifier.email == email.strip().lower()).first()
    if verifier is None or not verify_password(password, verifier.password_hash):
        raise UnauthorizedError("Invalid email or password")

    token, expires_at = issue_token(PrincipalKind.VERIFIER, verifier.id, email=verifier.email)
    return SigninResult(token=token, expires_at=expires_at, verifier_id=verifier.id)


def get_verifier(db: Session, verifier_id: str) -> Verifier:
    """Raises NotFoundError if the verifier does not exist."""
    verifier = db.get(Verifier, verifier_id)
    if verifier is None:
        raise NotFoundError("User not found")
    return verifier


def record_verification(db: Session, principal: Principal, request: VerificationRequest) -> Verification:
    """Store a verification event submitted by any live account."""
    resolve_principal(db, principal)

    verification = Verification(
        id=str(uuid.uuid4()),
        name=request.name,
        email=str(request.email),
        cid=request.cid,
        submitted_by=principal.subject,
        timestamp=datetime.utcnow(),
    )
    db.add(verification)
    db.commit()
    db.refresh(verification)
    return verification


def check_user_type(db: Session, principal: Principal) -> dict[str, str]:
    """Classify the caller as organization, verifier or normal user."""
    if principal.kind == PrincipalKind.ORGANIZATION:
        org = db.get(Organization, principal.account_id)
        if org is not None:
            return {"type": "organization", "name": org.org_name or "Unnamed Organization"}
    else:
        verifier = db.get(Verifier, principal.account_id)
        if verifier is not None:
            return {"type": "verifier", "name": verifier.first_name, "email": verifier.email}

    return {"type": "normal", "name": "Guest User"}
