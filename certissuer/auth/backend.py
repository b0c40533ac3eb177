"""Bearer token authentication backend.

Resolves ``Authorization: Bearer <token>`` into a Principal for Starlette's
AuthenticationMiddleware. Requests without a header are left anonymous and
rejected later by the route dependencies in ``certissuer.auth.roles``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from starlette.authentication import (
    AuthCredentials,
    AuthenticationBackend,
    AuthenticationError,
    BaseUser,
)
from starlette.requests import HTTPConnection

from certissuer.auth.tokens import PrincipalKind, SessionClaims, decode_token
from certissuer.core.exceptions import UnauthorizedError

log = logging.getLogger(__name__)


@dataclass
class Principal(BaseUser):
    """An authenticated organization or verifier."""

    subject: str
    kind: PrincipalKind
    account_id: str
    wallet_address: str | None = None
    email: str | None = None
    expires_at: datetime | None = None

    @classmethod
    def from_claims(cls, claims: SessionClaims) -> "Principal":
        return cls(
            subject=claims.subject,
            kind=claims.kind,
            account_id=claims.account_id,
            wallet_address=claims.wallet_address,
            email=claims.email,
            expires_at=claims.expires_at,
        )

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def display_name(self) -> str:
        return self.wallet_address or self.email or self.subject

    @property
    def identity(self) -> str:
        return self.subject

    @property
    def is_organization(self) -> bool:
        return self.kind == PrincipalKind.ORGANIZATION

    @property
    def is_verifier(self) -> bool:
        return self.kind == PrincipalKind.VERIFIER


class BearerTokenBackend(AuthenticationBackend):
    """Starlette authentication backend for session tokens."""

    def __init__(self, exempt_paths: set[str] | None = None):
        """Initialize the backend.

        Args:
            exempt_paths: Paths that never carry a session (matched exactly)
        """
        self.exempt_paths = exempt_paths or set()

    async def authenticate(
        self, conn: HTTPConnection
    ) -> tuple[AuthCredentials, BaseUser] | None:
        """Authenticate a request from its bearer token.

        Returns:
            Tuple of (credentials, principal) if a valid token is present,
            None for exempt paths and requests without a token

        Raises:
            AuthenticationError: If a token is present but invalid or expired
        """
        if conn.url.path in self.exempt_paths:
            return None

        header = conn.headers.get("Authorization")
        if not header:
            return None

        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AuthenticationError("Malformed Authorization header")

        try:
            claims = decode_token(token.strip())
        except UnauthorizedError as e:
            log.debug(f"Bearer token rejected: {e.detail}")
            raise AuthenticationError(e.detail)

        principal = Principal.from_claims(claims)
        return AuthCredentials([principal.kind.value]), principal
