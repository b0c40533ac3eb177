"""Authentication and authorization module for the Certificate Issuer service."""

from certissuer.auth.backend import BearerTokenBackend, Principal
from certissuer.auth.roles import (
    is_owner,
    require_auth,
    require_organization,
    require_owner,
    require_verifier,
)
from certissuer.auth.tokens import PrincipalKind

__all__ = [
    "BearerTokenBackend",
    "Principal",
    "PrincipalKind",
    "is_owner",
    "require_auth",
    "require_organization",
    "require_owner",
    "require_verifier",
]
