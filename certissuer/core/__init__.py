"""Core utilities shared across the Certificate Issuer service."""
