"""KYC submission and owner review endpoints."""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from certissuer.api.models import (
    KycDecisionRequest,
    KycDecisionResponse,
    KycRequestListResponse,
    KycSubmitResponse,
    OrganizationResponse,
    ProfileResponse,
)
from certissuer.audit import get_audit_logger
from certissuer.auth.backend import Principal
from certissuer.auth.roles import require_organization, require_owner
from certissuer.core.exceptions import NotFoundError
from certissuer.db.models import Organization
from certissuer.db.session import get_db
from certissuer.kyc.schema import CertificateUpload, validate_kyc_submission
from certissuer.kyc.service import decide, list_pending, submit_kyc
from certissuer.storage.artifacts import get_certificate_store

log = logging.getLogger(__name__)
router = APIRouter(tags=["kyc"])


def organization_response(org: Organization) -> OrganizationResponse:
    return OrganizationResponse(
        id=org.id,
        wallet_address=org.wallet_address,
        kyc_details=org.kyc_view(),
        is_kyc_verified=org.is_kyc_verified,
        created_at=org.created_at,
        updated_at=org.updated_at,
    )


def _load_organization(db: Session, principal: Principal) -> Organization:
    org = db.get(Organization, principal.account_id)
    if org is None:
        raise NotFoundError("Organization not found")
    return org


async def _read_certificate(value) -> CertificateUpload | None:
    """Read an uploaded certificate, reading at most one byte past the limit."""
    from certissuer.config import MAX_UPLOAD_BYTES

    if not isinstance(value, UploadFile):
        return None

    data = await value.read(MAX_UPLOAD_BYTES + 1)
    await value.close()
    return CertificateUpload(filename=value.filename or "", content_type=value.content_type, data=data)


@router.post("/kyc", response_model=KycSubmitResponse)
async def submit_kyc_form(
    request: Request,
    principal: Principal = require_organization,
    db: Session = Depends(get_db),
) -> KycSubmitResponse:
    """Submit (or resubmit) the organization's KYC profile.

    Multipart form: profile fields plus a ``certificate`` file. Any previous
    decision is discarded and the organization returns to Pending.
    """
    org = _load_organization(db, principal)

    form = await request.form()
    fields = {key: value for key, value in form.items() if not isinstance(value, UploadFile)}
    certificate = await _read_certificate(form.get("certificate"))

    submission = validate_kyc_submission(fields, certificate)

    store = get_certificate_store()
    artifact = await store.save(
        certificate.filename, certificate.content_type, certificate.data
    )
    certificate_url = str(request.base_url).rstrip("/") + artifact.url

    try:
        org = submit_kyc(db, org, submission, certificate_url)
    except SQLAlchemyError:
        db.rollback()
        await store.delete(artifact.cid)
        raise

    get_audit_logger().log_access(
        action="kyc.submit",
        principal_id=principal.subject,
        resource=org.wallet_address,
        details={"certificate": artifact.cid},
        request=request,
    )
    return KycSubmitResponse(data=organization_response(org))


@router.post("/updateOrgStatus", response_model=KycDecisionResponse)
def update_org_status(
    body: KycDecisionRequest,
    request: Request,
    principal: Principal = require_owner,
    db: Session = Depends(get_db),
) -> KycDecisionResponse:
    """Approve or reject an organization (owner only)."""
    org = decide(db, body.wallet_address, body.status)

    get_audit_logger().log_access(
        action="kyc.decision",
        principal_id=principal.subject,
        resource=org.wallet_address,
        details={"status": org.kyc_status},
        request=request,
    )
    return KycDecisionResponse(
        message=f"Organization {org.kyc_status.lower()} successfully",
        data=organization_response(org),
    )


@router.get("/kycrequests", response_model=KycRequestListResponse)
def kyc_requests(
    principal: Principal = require_owner,
    db: Session = Depends(get_db),
) -> KycRequestListResponse:
    """List organizations awaiting review (owner only)."""
    pending = [organization_response(org) for org in list_pending(db)]
    return KycRequestListResponse(requests=pending, count=len(pending))


@router.get("/me", response_model=ProfileResponse)
def me(
    principal: Principal = require_organization,
    db: Session = Depends(get_db),
) -> ProfileResponse:
    """Return the calling organization's KYC profile."""
    org = _load_organization(db, principal)
    return ProfileResponse(
        wallet_address=org.wallet_address,
        kyc_details=org.kyc_view(),
        is_kyc_verified=org.is_kyc_verified,
    )
