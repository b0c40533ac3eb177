"""Route-level authorization.

Each helper returns a ``Depends()`` for use as a default argument:

    @router.get("/kycrequests")
    async def list_requests(principal: Principal = require_owner):
        ...
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from certissuer.auth.backend import Principal
from certissuer.auth.tokens import PrincipalKind

log = logging.getLogger(__name__)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=401,
        detail="Authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _current_principal(request: Request) -> Principal:
    if "user" not in request.scope or not request.user.is_authenticated:
        raise _unauthorized()
    return request.user


def is_owner(principal: Principal | None) -> bool:
    """True if the principal is the configured owner wallet.

    Denies everything when no owner is configured.
    """
    from certissuer.config import OWNER_WALLET_ADDRESS

    if principal is None or not principal.is_organization or not OWNER_WALLET_ADDRESS:
        return False
    return (principal.wallet_address or "").lower() == OWNER_WALLET_ADDRESS


def require_kind(kind: PrincipalKind | None = None):
    """Create a dependency requiring a session, optionally of one kind."""

    async def dependency(request: Request) -> Principal:
        principal = _current_principal(request)

        if kind is not None and principal.kind != kind:
            log.warning(
                f"Access denied for {principal.subject}: "
                f"requires {kind.value}, is {principal.kind.value}"
            )
            raise HTTPException(status_code=403, detail="Insufficient permissions")

        return principal

    return Depends(dependency)


def _owner_dependency():
    async def dependency(request: Request) -> Principal:
        principal = _current_principal(request)

        if not is_owner(principal):
            log.warning(f"Owner access denied for {principal.subject}")
            raise HTTPException(status_code=403, detail="Only the owner can review KYC requests")

        return principal

    return Depends(dependency)


require_auth: Annotated[Principal, Depends] = require_kind()
require_organization: Annotated[Principal, Depends] = require_kind(PrincipalKind.ORGANIZATION)
require_verifier: Annotated[Principal, Depends] = require_kind(PrincipalKind.VERIFIER)
require_owner: Annotated[Principal, Depends] = _owner_dependency()
