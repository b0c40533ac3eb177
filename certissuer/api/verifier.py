"""Verifier account endpoints."""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from certissuer.api.models import (
    SigninResponse,
    SignupResponse,
    VerificationRecord,
    VerificationResponse,
    VerifierDashboardResponse,
    VerifierProfile,
)
from certissuer.api.wallet import rate_limited_response
from certissuer.audit import get_audit_logger
from certissuer.auth.backend import Principal
from certissuer.auth.roles import require_auth, require_verifier
from certissuer.auth.session import get_client_ip, get_rate_limiter
from certissuer.core.exceptions import UnauthorizedError
from certissuer.db.session import get_db
from certissuer.verifiers.schema import SigninRequest, SignupRequest, VerificationRequest
from certissuer.verifiers.service import get_verifier, record_verification, signin, signup

log = logging.getLogger(__name__)
router = APIRouter(tags=["verifier"])


@router.post("/signup", response_model=SignupResponse, status_code=201)
def signup_verifier(
    body: SignupRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> SignupResponse:
    """Create a verifier account."""
    verifier = signup(db, body)
    get_audit_logger().log_access(
        action="verifier.signup",
        principal_id=f"verifier:{verifier.id}",
        resource=verifier.email,
        request=request,
    )
    return SignupResponse(id=verifier.id)


@router.post("/signin", response_model=SigninResponse)
async def signin_verifier(
    body: SigninRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Exchange verifier credentials for a session token."""
    audit = get_audit_logger()
    rate_limiter = get_rate_limiter()
    client_ip = get_client_ip(request)

    if not await rate_limiter.check_rate_limit(client_ip):
        remaining = await rate_limiter.get_lockout_remaining(client_ip)
        audit.log_auth_failure("verifier.signin", "rate_limited", request=request)
        return rate_limited_response(remaining)

    try:
        result = signin(db, str(body.email), body.password)
    except UnauthorizedError:
        await rate_limiter.record_attempt(client_ip, success=False)
        audit.log_auth_failure("verifier.signin", "invalid_credentials", request=request)
        raise

    await rate_limiter.record_attempt(client_ip, success=True)
    audit.log_auth_success(f"verifier:{result.verifier_id}", "verifier.signin", request=request)
    return SigninResponse(token=result.token, expires_at=result.expires_at)


@router.get("/dashboard", response_model=VerifierDashboardResponse)
def dashboard(
    principal: Principal = require_verifier,
    db: Session = Depends(get_db),
) -> VerifierDashboardResponse:
    """Return the calling verifier's profile."""
    verifier = get_verifier(db, principal.account_id)
    return VerifierDashboardResponse(
        user=VerifierProfile(
            id=verifier.id,
            first_name=verifier.first_name,
            last_name=verifier.last_name,
            email=verifier.email,
            created_at=verifier.created_at,
        )
    )


@router.post("/verify", response_model=VerificationResponse, status_code=201)
def submit_verification(
    body: VerificationRequest,
    request: Request,
    principal: Principal = require_auth,
    db: Session = Depends(get_db),
) -> VerificationResponse:
    """Record a verification event."""
    verification = record_verification(db, principal, body)
    get_audit_logger().log_access(
        action="verification.submit",
        principal_id=principal.subject,
        resource=verification.cid,
        request=request,
    )
    return VerificationResponse(
        data=VerificationRecord(
            id=verification.id,
            name=verification.name,
            email=verification.email,
            cid=verification.cid,
            timestamp=verification.timestamp,
        )
    )
