"""API models for the Certificate Issuer service.

Pydantic models for API requests and responses. Field names are snake_case in
Python and camelCase on the wire.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    """Base model accepting either the wire alias or the field name."""

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Wallet Authentication
# =============================================================================


class NonceRequest(WireModel):
    """Request a challenge for a wallet."""

    wallet_address: str = Field(..., alias="walletAddress", description="0x-prefixed wallet address")


class NonceResponse(BaseModel):
    """Current challenge for the wallet."""

    nonce: str = Field(..., description="Decimal nonce to sign with personal_sign")


class WalletVerifyRequest(WireModel):
    """Signed challenge."""

    wallet_address: str = Field(..., alias="walletAddress")
    signature: str = Field(..., description="Hex-encoded 65-byte signature over the nonce")


class WalletVerifyResponse(WireModel):
    """Session issued after a successful wallet verification."""

    token: str = Field(..., description="Bearer session token")
    is_kyc_verified: bool = Field(..., alias="isKycVerified")
    expires_at: datetime = Field(..., alias="expiresAt")


# =============================================================================
# KYC
# =============================================================================


class KycDetails(WireModel):
    """Organization KYC profile as stored."""

    org_name: Optional[str] = Field(None, alias="orgName")
    org_type: Optional[str] = Field(None, alias="orgType")
    official_email: Optional[str] = Field(None, alias="officialEmail")
    website: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None
    registration_no: Optional[str] = Field(None, alias="registrationNo")
    certificate_url: Optional[str] = Field(None, alias="certificateUrl")
    contact_person: Optional[dict[str, Any]] = Field(None, alias="contactPerson")
    status: Optional[str] = None


class OrganizationResponse(WireModel):
    """Organization as returned by KYC endpoints."""

    id: str
    wallet_address: str = Field(..., alias="walletAddress")
    kyc_details: Optional[KycDetails] = Field(None, alias="kycDetails")
    is_kyc_verified: bool = Field(..., alias="isKycVerified")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class KycSubmitResponse(BaseModel):
    success: bool = True
    message: str = "KYC submitted successfully"
    data: OrganizationResponse


class KycDecisionRequest(WireModel):
    """Owner decision on a pending organization."""

    wallet_address: str = Field(..., alias="walletAddress")
    status: str = Field(..., description="Approved or Rejected")


class KycDecisionResponse(BaseModel):
    success: bool = True
    message: str
    data: OrganizationResponse


class KycRequestListResponse(BaseModel):
    success: bool = True
    requests: list[OrganizationResponse]
    count: int


class ProfileResponse(WireModel):
    """The calling organization's own KYC profile."""

    success: bool = True
    wallet_address: str = Field(..., alias="walletAddress")
    kyc_details: Optional[KycDetails] = Field(None, alias="kycDetails")
    is_kyc_verified: bool = Field(..., alias="isKycVerified")


# =============================================================================
# Documents
# =============================================================================


class IssueDocumentRequest(WireModel):
    """Register an issued document by content hash."""

    doc_hash: str = Field(..., alias="docHash", min_length=1, max_length=255)
    person_name: str = Field(..., alias="personName", min_length=1, max_length=255)
    person_wallet: str = Field(..., alias="personWallet", description="Recipient wallet")
    doc_type: str = Field(..., alias="docType", min_length=1, max_length=100)
    org_wallet: str = Field(..., alias="orgWallet")
    org_name: str = Field(..., alias="orgName", min_length=1, max_length=255)


class IssuedDocumentResponse(WireModel):
    doc_hash: str = Field(..., alias="docHash")
    person_name: str = Field(..., alias="personName")
    person_wallet: str = Field(..., alias="personWallet")
    doc_type: str = Field(..., alias="docType")
    org_wallet: str = Field(..., alias="orgWallet")
    org_name: str = Field(..., alias="orgName")
    valid: bool
    issued_at: Optional[datetime] = Field(None, alias="issuedAt")


class IssueDocumentResponse(WireModel):
    message: str = "Document issued successfully"
    issued_doc: IssuedDocumentResponse = Field(..., alias="issuedDoc")


class WalletLookupRequest(WireModel):
    doc_hash: str = Field(..., alias="docHash", min_length=1)


class WalletLookupResponse(WireModel):
    message: str = "Wallet address found"
    wallet_address: str = Field(..., alias="walletAddress")


class DashboardStats(WireModel):
    total_documents: int = Field(..., alias="totalDocuments")
    total_verifications: int = Field(..., alias="totalVerifications")
    total_verified_orgs: int = Field(..., alias="totalVerifiedOrgs")


class DashboardStatsResponse(BaseModel):
    success: bool = True
    data: DashboardStats


# =============================================================================
# Verifiers
# =============================================================================


class SignupResponse(BaseModel):
    message: str = "You have signed up"
    id: str


class SigninResponse(WireModel):
    message: str = "Login successful"
    token: str
    expires_at: datetime = Field(..., alias="expiresAt")


class VerifierProfile(WireModel):
    id: str
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    email: str
    created_at: Optional[datetime] = Field(None, alias="createdAt")


class VerifierDashboardResponse(BaseModel):
    message: str = "Token valid"
    user: VerifierProfile


class VerificationRecord(BaseModel):
    id: str
    name: str
    email: str
    cid: str
    timestamp: datetime


class VerificationResponse(BaseModel):
    message: str = "Verification details stored successfully"
    data: VerificationRecord


# =============================================================================
# Session & Files
# =============================================================================


class AuthCheckResponse(WireModel):
    valid: bool = True
    kind: str
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")


class UserTypeResponse(BaseModel):
    success: bool = True
    type: str = Field(..., description="organization, verifier or normal")
    name: str
    email: Optional[str] = None


class UploadResponse(BaseModel):
    success: bool = True
    message: str = "File uploaded successfully"
    cid: str
    url: str
    name: str
    size: int


class ViewResponse(WireModel):
    success: bool = True
    url: str
    expires_in: int = Field(..., alias="expiresIn", description="Link lifetime in seconds")


# =============================================================================
# Health & Errors
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    ok: bool
    service: str = "certissuer"
    database: str = "ok"


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    detail: Optional[str] = None
    errors: Optional[list[FieldError]] = None
