"""KYC submission schema.

Form fields are validated together with the uploaded certificate so that a
single response lists every problem with the submission.
"""

import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, EmailStr, Field, HttpUrl, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from certissuer.core.exceptions import ValidationError

_SCHEME_PATTERN = re.compile(r"^https?://", re.IGNORECASE)
_HTTP_URL = TypeAdapter(HttpUrl)


def normalize_website(value: str | None) -> str:
    """Prepend ``https://`` to a non-empty website lacking a scheme."""
    value = (value or "").strip()
    if value and not _SCHEME_PATTERN.match(value):
        value = "https://" + value
    return value


class KycSubmission(BaseModel):
    """Organization profile as submitted on ``POST /kyc``."""

    org_name: str = Field(..., alias="orgName", min_length=2, max_length=50)
    org_type: str = Field(..., alias="orgType", min_length=2)
    official_email: EmailStr = Field(..., alias="officialEmail")
    website: str = Field("", description="Normalized to https:// when no scheme")
    address: str = Field(..., min_length=5)
    country: str = Field(..., min_length=2)
    registration_no: str = Field(..., alias="registrationNo", min_length=2)
    full_name: str = Field(..., alias="fullName", min_length=2, max_length=50)
    position: str = Field(..., min_length=2, max_length=30)
    contact_no: str = Field(..., alias="contactNo", min_length=5)
    personal_email: EmailStr = Field(..., alias="personalEmail")

    model_config = {"populate_by_name": True, "str_strip_whitespace": True}

    @field_validator("website", mode="before")
    @classmethod
    def _normalize_website(cls, value: Any) -> str:
        return normalize_website(value if isinstance(value, str) else None)

    @field_validator("website")
    @classmethod
    def _check_website(cls, value: str) -> str:
        # Stored as entered; HttpUrl would append a trailing slash
        if value:
            try:
                _HTTP_URL.validate_python(value)
            except PydanticValidationError:
                raise ValueError("Invalid website URL") from None
        return value

    def to_details(self, certificate_url: str) -> dict[str, Any]:
        """Render the stored ``kyc_details`` document."""
        return {
            "orgName": self.org_name,
            "orgType": self.org_type,
            "officialEmail": str(self.official_email),
            "website": self.website,
            "address": self.address,
            "country": self.country,
            "registrationNo": self.registration_no,
            "certificateUrl": certificate_url,
            "contactPerson": {
                "fullName": self.full_name,
                "position": self.position,
                "contactNo": self.contact_no,
                "personalEmail": str(self.personal_email),
            },
        }


@dataclass
class CertificateUpload:
    """An uploaded certificate, already read into memory."""

    filename: str
    content_type: str | None
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def certificate_errors(certificate: CertificateUpload | None) -> list[dict[str, str]]:
    """Check the certificate is present, small enough and of an allowed type."""
    from certissuer.config import ALLOWED_CERTIFICATE_TYPES, MAX_UPLOAD_BYTES

    if certificate is None or not certificate.filename:
        return [{"field": "certificate", "message": "Certificate file is required"}]

    errors = []
    if certificate.size > MAX_UPLOAD_BYTES:
        errors.append({
            "field": "certificate",
            "message": f"File size must be <= {MAX_UPLOAD_BYTES // (1024 * 1024)} MB",
        })
    if certificate.content_type not in ALLOWED_CERTIFICATE_TYPES:
        errors.append({"field": "certificate", "message": "Only PDF, PNG, or JPEG files are allowed"})
    return errors


def validate_kyc_submission(
    fields: dict[str, Any],
    certificate: CertificateUpload | None,
) -> KycSubmission:
    """Validate a KYC form and its certificate.

    Raises:
        ValidationError: Listing every violated field, certificate included
    """
    errors: list[dict[str, str]] = []
    submission = None

    try:
        submission = KycSubmission.model_validate(fields)
    except PydanticValidationError as e:
        errors.extend(ValidationError.from_pydantic(e.errors()).errors)

    errors.extend(certificate_errors(certificate))

    if errors:
        raise ValidationError(errors)
    return submission
