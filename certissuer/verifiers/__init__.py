"""Verifier accounts and verification events."""
