"""Wallet challenge nonces.

Each organization record carries exactly one live nonce. It is created with
the record and replaced on every successful authentication. Replacement is a
compare-and-swap on the stored value, so two requests racing with the same
signature cannot both succeed.
"""

import logging
import secrets
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from certissuer.auth.wallet import normalize_wallet_address
from certissuer.core.exceptions import UnauthorizedError
from certissuer.db.models import Organization

log = logging.getLogger(__name__)


def generate_nonce(bits: int | None = None) -> str:
    """Generate a uniformly random numeric challenge string."""
    if bits is None:
        from certissuer.config import NONCE_BITS

        bits = NONCE_BITS
    return str(secrets.randbits(bits))


def find_organization(db: Session, wallet_address: str) -> Organization | None:
    """Look up an organization by wallet address (case-insensitive)."""
    wallet = normalize_wallet_address(wallet_address)
    return db.query(Organization).filter(Organization.wallet_address == wallet).first()


def get_or_create_challenge(db: Session, wallet_address: str) -> Organization:
    """Return the organization for a wallet, creating it on first contact.

    The returned organization's ``nonce`` is the value the client must sign.
    Repeated calls return the same record and the same nonce until it is
    consumed by a successful authentication.
    """
    wallet = normalize_wallet_address(wallet_address)

    org = db.query(Organization).filter(Organization.wallet_address == wallet).first()
    if org is not None:
        return org

    org = Organization(
        id=str(uuid.uuid4()),
        wallet_address=wallet,
        nonce=generate_nonce(),
    )
    db.add(org)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent request created the record first; use the winner's
        db.rollback()
        org = db.query(Organization).filter(Organization.wallet_address == wallet).first()
        if org is None:
            raise
        return org

    db.refresh(org)
    log.info(f"Created organization {org.id} for wallet {wallet}")
    return org


def consume_challenge(db: Session, org: Organization, expected_nonce: str) -> str:
    """Atomically replace ``expected_nonce`` with a fresh one.

    Args:
        db: Database session
        org: The organization whose nonce was just verified
        expected_nonce: The nonce the signature was checked against

    Returns:
        The new nonce

    Raises:
        UnauthorizedError: If the stored nonce no longer equals
            ``expected_nonce`` (already consumed by another request)
    """
    new_nonce = generate_nonce()
    rows = (
        db.query(Organization)
        .filter(Organization.id == org.id, Organization.nonce == expected_nonce)
        .update({Organization.nonce: new_nonce}, synchronize_session=False)
    )
    if rows != 1:
        db.rollback()
        log.warning(f"Nonce for {org.wallet_address} already consumed")
        raise UnauthorizedError("Challenge already used, request a new nonce")

    db.commit()
    db.refresh(org)
    return new_nonce
