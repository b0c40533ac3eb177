"""Organization KYC submission and review."""
