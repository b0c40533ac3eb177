"""Wallet challenge and verification endpoints."""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from certissuer.api.models import NonceRequest, NonceResponse, WalletVerifyRequest, WalletVerifyResponse
from certissuer.audit import get_audit_logger
from certissuer.auth.nonce import get_or_create_challenge
from certissuer.auth.service import authenticate_wallet
from certissuer.auth.session import get_client_ip, get_rate_limiter
from certissuer.core.exceptions import IssuerError
from certissuer.db.session import get_db

log = logging.getLogger(__name__)
router = APIRouter(tags=["wallet"])


def rate_limited_response(retry_after: int) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limited",
            "detail": f"Too many failed attempts. Try again in {retry_after} seconds.",
        },
        headers={"Retry-After": str(retry_after)},
    )


@router.post("/nonce", response_model=NonceResponse)
def request_nonce(
    body: NonceRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> NonceResponse:
    """Return the current challenge for a wallet, registering it if new."""
    org = get_or_create_challenge(db, body.wallet_address)

    get_audit_logger().log_access(
        action="wallet.challenge",
        principal_id=org.wallet_address,
        resource=org.wallet_address,
        request=request,
    )
    return NonceResponse(nonce=org.nonce)


@router.post("/walletverify", response_model=WalletVerifyResponse)
async def wallet_verify(
    body: WalletVerifyRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Exchange a signature over the current nonce for a session token.

    Failed attempts count towards the per-IP lockout; the nonce itself only
    changes on success.
    """
    audit = get_audit_logger()
    rate_limiter = get_rate_limiter()
    client_ip = get_client_ip(request)

    if not await rate_limiter.check_rate_limit(client_ip):
        remaining = await rate_limiter.get_lockout_remaining(client_ip)
        audit.log_auth_failure("wallet.verify", "rate_limited", resource=body.wallet_address, request=request)
        return rate_limited_response(remaining)

    try:
        result = authenticate_wallet(db, body.wallet_address, body.signature)
    except IssuerError as e:
        await rate_limiter.record_attempt(client_ip, success=False)
        audit.log_auth_failure("wallet.verify", e.code, resource=body.wallet_address, request=request)
        raise

    await rate_limiter.record_attempt(client_ip, success=True)
    audit.log_auth_success(f"org:{result.organization_id}", "wallet.verify", request=request)

    return WalletVerifyResponse(
        token=result.token,
        is_kyc_verified=result.is_kyc_verified,
        expires_at=result.expires_at,
    )
