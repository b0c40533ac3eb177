"""Wallet signature verification.

Organizations prove control of a wallet by signing their current challenge
nonce with ``personal_sign`` (EIP-191). Recovery is a pure function: no I/O,
no database access.
"""

import logging
import re

from eth_account import Account
from eth_account.messages import encode_defunct

from certissuer.core.exceptions import ValidationError

log = logging.getLogger(__name__)

WALLET_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def normalize_wallet_address(value: str | None, field: str = "walletAddress") -> str:
    """Validate a wallet address and return its canonical lowercase form.

    Raises:
        ValidationError: If the address is missing or not 0x + 40 hex digits
    """
    if not value or not isinstance(value, str) or not value.strip():
        raise ValidationError.single(field, "Wallet address required")

    value = value.strip()
    if not WALLET_ADDRESS_PATTERN.match(value):
        raise ValidationError.single(field, "Invalid wallet address")

    return value.lower()


def recover_signer(message: str, signature: str) -> str | None:
    """Recover the address that signed ``message`` with personal_sign.

    Args:
        message: The exact text that was signed (the challenge nonce)
        signature: 65-byte signature, hex encoded (0x-prefixed or bare)

    Returns:
        Checksummed signer address, or None if the signature is malformed
    """
    if not signature:
        return None

    try:
        return Account.recover_message(encode_defunct(text=message), signature=signature)
    except Exception as e:
        # eth_account raises assorted errors for bad length, bad v, off-curve points
        log.debug(f"Signature recovery failed: {e}")
        return None


def addresses_match(a: str | None, b: str | None) -> bool:
    """Case-insensitive address comparison."""
    if not a or not b:
        return False
    return a.strip().lower() == b.strip().lower()
