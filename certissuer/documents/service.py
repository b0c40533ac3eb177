"""Document issuance.

A document is identified by its content hash. The store's primary key on
``doc_hash`` is the only uniqueness check: there is no read-before-write, so
two concurrent issuances of the same hash produce exactly one record.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import FlushError

from certissuer.auth.backend import Principal
from certissuer.auth.tokens import PrincipalKind
from certissuer.auth.wallet import normalize_wallet_address
from certissuer.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from certissuer.db.models import (
    IssuedDocument,
    KycStatus,
    Organization,
    Verification,
    Verifier,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentDraft:
    """Fields supplied by the caller for a new document."""

    doc_hash: str
    person_name: str
    person_wallet: str
    doc_type: str
    org_wallet: str
    org_name: str


def resolve_principal(db: Session, principal: Principal) -> Organization | Verifier:
    """Load the account behind a session.

    Raises:
        NotFoundError: The account no longer exists
    """
    if principal.kind == PrincipalKind.ORGANIZATION:
        account = db.get(Organization, principal.account_id)
    else:
        account = db.get(Verifier, principal.account_id)

    if account is None:
        raise NotFoundError("User not found")
    return account


def issue_document(db: Session, principal: Principal, draft: DocumentDraft) -> IssuedDocument:
    """Create an issued-document record.

    Raises:
        NotFoundError: The caller's account does not exist
        ForbiddenError: KYC is required for issuance and the caller is an
            organization that is not approved
        ConflictError: A document with the same hash already exists
    """
    from certissuer.config import REQUIRE_KYC_FOR_ISSUANCE

    account = resolve_principal(db, principal)

    if (
        REQUIRE_KYC_FOR_ISSUANCE
        and isinstance(account, Organization)
        and not account.is_kyc_verified
    ):
        log.warning(f"Issuance refused for {account.wallet_address}: KYC not approved")
        raise ForbiddenError("Organization KYC must be approved before issuing documents")

    doc = IssuedDocument(
        doc_hash=draft.doc_hash,
        person_name=draft.person_name,
        person_wallet=normalize_wallet_address(draft.person_wallet, field="personWallet"),
        doc_type=draft.doc_type,
        org_wallet=normalize_wallet_address(draft.org_wallet, field="orgWallet"),
        org_name=draft.org_name,
        issued_by=principal.subject,
        valid=True,
    )
    db.add(doc)
    try:
        db.commit()
    except (IntegrityError, FlushError):
        # Same hash already stored (or already in this session's identity map)
        db.rollback()
        log.info(f"Duplicate document hash {draft.doc_hash}")
        raise ConflictError("Document already issued")

    db.refresh(doc)
    log.info(f"Issued document {doc.doc_hash} to {doc.person_wallet}")
    return doc


def lookup_recipient(db: Session, doc_hash: str) -> str:
    """Return the recipient wallet of an issued document.

    Raises:
        NotFoundError: No document with that hash
    """
    doc = db.get(IssuedDocument, doc_hash)
    if doc is None:
        raise NotFoundError("No wallet address available")
    return doc.person_wallet


def dashboard_stats(db: Session) -> dict[str, int]:
    """Public counters shown on the landing page."""
    total_documents = (
        db.query(func.count(IssuedDocument.doc_hash)).filter(IssuedDocument.valid.is_(True)).scalar()
    )
    total_verifications = db.query(func.count(Verification.id)).scalar()
    total_verified_orgs = (
        db.query(func.count(Organization.id))
        .filter(Organization.kyc_status == KycStatus.APPROVED.value)
        .scalar()
    )
    return {
        "totalDocuments": total_documents or 0,
        "totalVerifications": total_verifications or 0,
        "totalVerifiedOrgs": total_verified_orgs or 0,
    }
