"""HTTP API routers for the Certificate Issuer service."""
