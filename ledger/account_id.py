"""
Account identifier derivation and validation.

An account identifier is 32 bytes:

    crc32_be(digest) || digest
    digest = SHA-224(b"\\x0aaccount-id" || principal || subaccount)

The subaccount is 32 bytes and defaults to all zeros. Validation only checks
the embedded checksum; it says nothing about whether the account exists on the
ledger.
"""

import binascii
import hashlib
import zlib
from typing import Optional, Union

from ledger.principal import Principal

DOMAIN_SEPARATOR = b"\x0aaccount-id"
SUBACCOUNT_LENGTH = 32
DIGEST_LENGTH = 28
ACCOUNT_ID_LENGTH = 32
ACCOUNT_ID_HEX_LENGTH = 64

DEFAULT_SUBACCOUNT = bytes(SUBACCOUNT_LENGTH)


def _checksum(digest: bytes) -> bytes:
    return zlib.crc32(digest).to_bytes(4, "big")


def derive_account_id(
    principal: Union[Principal, bytes],
    subaccount: Optional[bytes] = None,
) -> bytes:
    """
    Derive the 32-byte account identifier of a principal.

    Args:
        principal: Principal (or its raw bytes).
        subaccount: 32-byte subaccount. None or b"" means the all-zero default.

    Returns:
        32 raw bytes: 4-byte big-endian CRC-32 followed by the SHA-224 digest.

    Raises:
        ValueError: If the subaccount is neither empty nor 32 bytes long.
    """
    raw = principal.raw if isinstance(principal, Principal) else bytes(principal)

    if not subaccount:
        subaccount = DEFAULT_SUBACCOUNT
    if len(subaccount) != SUBACCOUNT_LENGTH:
        raise ValueError(
            f"Subaccount must be {SUBACCOUNT_LENGTH} bytes, got {len(subaccount)}"
        )

    hasher = hashlib.sha224()
    hasher.update(DOMAIN_SEPARATOR)
    hasher.update(raw)
    hasher.update(subaccount)
    digest = hasher.digest()

    return _checksum(digest) + digest


def account_id_to_hex(account_id: bytes) -> str:
    return account_id.hex()


def principal_to_account_hex(
    principal: Union[Principal, bytes],
    subaccount: Optional[bytes] = None,
) -> str:
    """Shorthand for the canonical lowercase hex form of derive_account_id()."""
    return account_id_to_hex(derive_account_id(principal, subaccount))


def is_valid_account_id(account_id_hex: str) -> bool:
    """
    Check the textual form of an account identifier.

    Returns False (never raises) for anything that is not 64 hex characters
    decoding to 32 bytes whose first four bytes are the CRC-32 of the rest.
    Hex decoding is case-insensitive.
    """
    if not isinstance(account_id_hex, str) or len(account_id_hex) != ACCOUNT_ID_HEX_LENGTH:
        return False

    try:
        account_bytes = bytes.fromhex(account_id_hex)
    except ValueError:
        return False
    if len(account_bytes) != ACCOUNT_ID_LENGTH:
        return False

    return _checksum(account_bytes[4:]) == account_bytes[:4]


def normalize_account_hash(raw: Union[str, bytes, list, None]) -> Optional[str]:
    """
    Normalize an account hash as found in remote payloads.

    Governance records carry either the full 32-byte identifier or the bare
    28-byte digest, encoded as hex or as a list of byte values. Bare digests
    get their checksum prepended.

    Returns:
        Lowercase 64-character hex, or None when the value is absent or has
        an unexpected length.
    """
    if raw is None:
        return None
    try:
        if isinstance(raw, str):
            data = binascii.unhexlify(raw.strip())
        else:
            data = bytes(raw)
    except (ValueError, TypeError, binascii.Error):
        return None

    if len(data) == DIGEST_LENGTH:
        data = _checksum(data) + data
    if len(data) != ACCOUNT_ID_LENGTH:
        return None
    return data.hex()
