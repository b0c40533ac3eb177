"""Session inspection endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from certissuer.api.models import AuthCheckResponse, UserTypeResponse
from certissuer.auth.backend import Principal
from certissuer.auth.roles import require_auth
from certissuer.db.session import get_db
from certissuer.verifiers.service import check_user_type

router = APIRouter(tags=["session"])


@router.get("/auth/check", response_model=AuthCheckResponse)
def auth_check(principal: Principal = require_auth) -> AuthCheckResponse:
    """Liveness probe for a session token."""
    return AuthCheckResponse(kind=principal.kind.value, expires_at=principal.expires_at)


@router.get("/check-user-type", response_model=UserTypeResponse)
def user_type(
    principal: Principal = require_auth,
    db: Session = Depends(get_db),
) -> UserTypeResponse:
    """Classify the caller as organization, verifier or normal user."""
    return UserTypeResponse(**check_user_type(db, principal))
