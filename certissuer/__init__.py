"""Certificate Issuer: wallet-authenticated organization KYC and document issuance."""
