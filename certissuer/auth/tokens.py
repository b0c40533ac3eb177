"""Session tokens.

Sessions are HS256 JWTs binding an identity to an expiry. There is no
server-side session store: a token stays valid until ``exp``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

import jwt

from certissuer.core.exceptions import UnauthorizedError

log = logging.getLogger(__name__)


class PrincipalKind(str, Enum):
    """The two classes of authenticated caller."""

    ORGANIZATION = "organization"
    VERIFIER = "verifier"


_SUBJECT_PREFIX = {
    PrincipalKind.ORGANIZATION: "org",
    PrincipalKind.VERIFIER: "verifier",
}


@dataclass(frozen=True)
class SessionClaims:
    """Decoded, verified token claims."""

    subject: str
    kind: PrincipalKind
    account_id: str
    issued_at: datetime
    expires_at: datetime
    wallet_address: str | None = None
    email: str | None = None


def issue_token(
    kind: PrincipalKind,
    account_id: str,
    *,
    wallet_address: str | None = None,
    email: str | None = None,
    ttl_seconds: int | None = None,
) -> tuple[str, datetime]:
    """Mint a signed session token.

    Args:
        kind: Organization or verifier
        account_id: Internal record id
        wallet_address: Wallet (organizations)
        email: Email (verifiers)
        ttl_seconds: Lifetime; defaults to CERTISSUER_SESSION_TTL

    Returns:
        Tuple of (encoded token, expiry)
    """
    from certissuer.config import JWT_ALGORITHM, JWT_ISSUER, JWT_SECRET, SESSION_TTL_SECONDS

    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(seconds=ttl_seconds if ttl_seconds is not None else SESSION_TTL_SECONDS)

    payload = {
        "sub": f"{_SUBJECT_PREFIX[kind]}:{account_id}",
        "kind": kind.value,
        "id": account_id,
        "iat": now,
        "exp": expires_at,
        "iss": JWT_ISSUER,
    }
    if wallet_address:
        payload["walletAddress"] = wallet_address
    if email:
        payload["email"] = email

    token = jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)
    return token, expires_at


def decode_token(token: str) -> SessionClaims:
    """Verify a session token and return its claims.

    Raises:
        UnauthorizedError: If the token is malformed, tampered with,
            issued by someone else, or expired
    """
    from certissuer.config import JWT_ALGORITHM, JWT_ISSUER, JWT_SECRET

    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            issuer=JWT_ISSUER,
            options={"require": ["exp", "iat", "iss", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Session expired, authenticate again")
    except jwt.InvalidTokenError as e:
        log.debug(f"Rejected session token: {e}")
        raise UnauthorizedError("Invalid session token")

    try:
        kind = PrincipalKind(payload.get("kind"))
    except ValueError:
        raise UnauthorizedError("Invalid session token")

    account_id = payload.get("id")
    if not account_id:
        raise UnauthorizedError("Invalid session token")

    if kind == PrincipalKind.ORGANIZATION and not payload.get("walletAddress"):
        raise UnauthorizedError("Invalid session token")

    return SessionClaims(
        subject=payload["sub"],
        kind=kind,
        account_id=account_id,
        issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        wallet_address=payload.get("walletAddress"),
        email=payload.get("email"),
    )
