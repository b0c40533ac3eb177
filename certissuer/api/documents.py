"""Document issuance endpoints."""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from certissuer.api.models import (
    DashboardStats,
    DashboardStatsResponse,
    IssueDocumentRequest,
    IssueDocumentResponse,
    IssuedDocumentResponse,
    WalletLookupRequest,
    WalletLookupResponse,
)
from certissuer.audit import get_audit_logger
from certissuer.auth.backend import Principal
from certissuer.auth.roles import require_auth
from certissuer.core.exceptions import IssuerError
from certissuer.db.session import get_db
from certissuer.documents.service import DocumentDraft, dashboard_stats, issue_document, lookup_recipient

log = logging.getLogger(__name__)
router = APIRouter(tags=["documents"])


@router.post("/issue", response_model=IssueDocumentResponse, status_code=201)
def issue(
    body: IssueDocumentRequest,
    request: Request,
    principal: Principal = require_auth,
    db: Session = Depends(get_db),
) -> IssueDocumentResponse:
    """Record an issued document under its content hash."""
    audit = get_audit_logger()
    draft = DocumentDraft(
        doc_hash=body.doc_hash,
        person_name=body.person_name,
        person_wallet=body.person_wallet,
        doc_type=body.doc_type,
        org_wallet=body.org_wallet,
        org_name=body.org_name,
    )

    try:
        doc = issue_document(db, principal, draft)
    except IssuerError as e:
        audit.log_access(
            action="document.issue",
            principal_id=principal.subject,
            resource=body.doc_hash,
            status="denied",
            details={"reason": e.code},
            request=request,
        )
        raise

    audit.log_access(
        action="document.issue",
        principal_id=principal.subject,
        resource=doc.doc_hash,
        details={"recipient": doc.person_wallet},
        request=request,
    )
    return IssueDocumentResponse(
        issued_doc=IssuedDocumentResponse(
            doc_hash=doc.doc_hash,
            person_name=doc.person_name,
            person_wallet=doc.person_wallet,
            doc_type=doc.doc_type,
            org_wallet=doc.org_wallet,
            org_name=doc.org_name,
            valid=doc.valid,
            issued_at=doc.issued_at,
        )
    )


@router.post("/getWallet", response_model=WalletLookupResponse)
def get_wallet(
    body: WalletLookupRequest,
    principal: Principal = require_auth,
    db: Session = Depends(get_db),
) -> WalletLookupResponse:
    """Look up the recipient wallet of an issued document."""
    return WalletLookupResponse(wallet_address=lookup_recipient(db, body.doc_hash))


@router.get("/dashboard-stats", response_model=DashboardStatsResponse)
def get_dashboard_stats(db: Session = Depends(get_db)) -> DashboardStatsResponse:
    """Public counts of valid documents, verifications and approved organizations."""
    return DashboardStatsResponse(data=DashboardStats(**dashboard_stats(db)))
