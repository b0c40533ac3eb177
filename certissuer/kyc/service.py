"""KYC state machine.

    (none) --submit--> Pending --decide--> Approved | Rejected
                          ^                    |
                          +------submit--------+

Decisions need a prior submission and may be repeated in any order. A resubmission always returns the
organization to Pending, revoking issuer capability until it is reviewed.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from certissuer.auth.wallet import normalize_wallet_address
from certissuer.core.exceptions import ConflictError, NotFoundError, ValidationError
from certissuer.db.models import KycStatus, Organization
from certissuer.kyc.schema import KycSubmission

log = logging.getLogger(__name__)

DECISIONS = (KycStatus.APPROVED.value, KycStatus.REJECTED.value)


def submit_kyc(
    db: Session,
    org: Organization,
    submission: KycSubmission,
    certificate_url: str,
) -> Organization:
    """Replace the organization's KYC profile and mark it Pending."""
    org.kyc_details = submission.to_details(certificate_url)
    org.kyc_status = KycStatus.PENDING.value
    db.commit()
    db.refresh(org)

    log.info(f"KYC submitted for {org.wallet_address}")
    return org


def parse_decision(decision: str | None) -> KycStatus:
    """Validate a review decision.

    Raises:
        ValidationError: Unless the decision is Approved or Rejected
    """
    if not decision:
        raise ValidationError.single("status", "Status is required")
    if decision not in DECISIONS:
        raise ValidationError.single("status", "Status must be Approved or Rejected")
    return KycStatus(decision)


def decide(db: Session, wallet_address: str, decision: str | None) -> Organization:
    """Record the owner's decision for an organization.

    Callers must already have checked that the principal is the owner.

    Raises:
        ValidationError: Bad wallet address or decision
        NotFoundError: No organization for the wallet
        ConflictError: The organization has not submitted KYC
    """
    wallet = normalize_wallet_address(wallet_address)
    status = parse_decision(decision)

    rows = (
        db.query(Organization)
        .filter(
            Organization.wallet_address == wallet,
            Organization.kyc_status.isnot(None),
        )
        .update(
            {Organization.kyc_status: status.value, Organization.updated_at: datetime.utcnow()},
            synchronize_session=False,
        )
    )
    if rows == 0:
        db.rollback()
        exists = db.query(Organization.id).filter(Organization.wallet_address == wallet).first()
        if exists is None:
            raise NotFoundError("Organization not found")
        raise ConflictError("Organization has not submitted KYC")

    db.commit()
    org = db.query(Organization).filter(Organization.wallet_address == wallet).one()
    db.refresh(org)

    log.info(f"KYC for {wallet} set to {status.value}")
    return org


def list_pending(db: Session) -> list[Organization]:
    """Organizations awaiting review, oldest first."""
    return (
        db.query(Organization)
        .filter(Organization.kyc_status == KycStatus.PENDING.value)
        .order_by(Organization.updated_at.asc())
        .all()
    )
