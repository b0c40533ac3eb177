"""Wallet authentication.

Verifies a signature over the organization's current challenge, rotates the
challenge, and issues a session token.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from certissuer.auth.nonce import consume_challenge, find_organization
from certissuer.auth.tokens import PrincipalKind, issue_token
from certissuer.auth.wallet import addresses_match, recover_signer
from certissuer.core.exceptions import NotFoundError, UnauthorizedError, ValidationError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful wallet authentication."""

    token: str
    is_kyc_verified: bool
    expires_at: datetime
    organization_id: str
    wallet_address: str


def authenticate_wallet(db: Session, wallet_address: str, signature: str | None) -> AuthResult:
    """Authenticate an organization by wallet signature.

    A failed attempt leaves the challenge unchanged; only success rotates it.

    Raises:
        ValidationError: Missing or malformed wallet address or signature
        NotFoundError: No challenge was ever issued to this wallet
        UnauthorizedError: Signature does not recover to the wallet, or the
            challenge was consumed concurrently
    """
    if not signature or not isinstance(signature, str) or not signature.strip():
        raise ValidationError.single("signature", "Signature required")

    org = find_organization(db, wallet_address)
    if org is None:
        raise NotFoundError("Wallet not found, request a nonce first")

    expected_nonce = org.nonce
    signer = recover_signer(expected_nonce, signature.strip())
    if not addresses_match(signer, org.wallet_address):
        log.info(f"Signature mismatch for {org.wallet_address}")
        raise UnauthorizedError("Signature verification failed")

    consume_challenge(db, org, expected_nonce)

    token, expires_at = issue_token(
        PrincipalKind.ORGANIZATION,
        org.id,
        wallet_address=org.wallet_address,
    )
    log.info(f"Organization {org.id} authenticated")

    return AuthResult(
        token=token,
        is_kyc_verified=org.is_kyc_verified,
        expires_at=expires_at,
        organization_id=org.id,
        wallet_address=org.wallet_address,
    )
