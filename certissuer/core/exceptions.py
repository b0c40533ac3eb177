"""Domain exceptions for the Certificate Issuer service.

Services raise these; the FastAPI exception handlers in ``certissuer.main``
translate them into HTTP responses. Each class carries its status code and
a stable machine-readable error code.
"""

from typing import Any

_REQUEST_LOCATIONS = ("body", "query", "path", "header", "cookie")


class IssuerError(Exception):
    """Base exception for all service errors."""

    status_code: int = 500
    code: str = "server_error"

    def __init__(self, detail: str = "Server error"):
        self.detail = detail
        super().__init__(detail)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "detail": self.detail}


class ValidationError(IssuerError):
    """Malformed or missing input.

    Carries every violated field, not only the first one found.
    """

    status_code = 400
    code = "validation_error"

    def __init__(self, errors: list[dict[str, str]], detail: str = "Validation failed"):
        self.errors = errors
        super().__init__(detail)

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}], detail=message)

    @classmethod
    def from_pydantic(cls, errors: list[dict[str, Any]]) -> "ValidationError":
        """Build from pydantic's ``errors()`` list, one entry per failing field."""
        flattened = []
        for err in errors:
            loc = [str(part) for part in err.get("loc", ())]
            if loc and loc[0] in _REQUEST_LOCATIONS:
                loc = loc[1:]
            message = err.get("msg", "Invalid value")
            # pydantic prefixes messages raised from custom validators
            message = message.removeprefix("Value error, ")
            flattened.append({"field": ".".join(loc) or "body", "message": message})
        return cls(flattened)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "detail": self.detail, "errors": self.errors}


class UnauthorizedError(IssuerError):
    """Missing, invalid or expired session, or signature mismatch."""

    status_code = 401
    code = "unauthorized"


class ForbiddenError(IssuerError):
    """Authenticated but lacking the required privilege."""

    status_code = 403
    code = "forbidden"


class NotFoundError(IssuerError):
    """Unknown wallet, organization, user or document."""

    status_code = 404
    code = "not_found"


class ConflictError(IssuerError):
    """Duplicate content hash or unique field."""

    status_code = 409
    code = "conflict"


class StorageError(IssuerError):
    """Backing store or artifact gateway failure.

    The message given here is logged but never returned to the caller.
    """

    status_code = 500
    code = "server_error"
