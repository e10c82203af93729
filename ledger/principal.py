"""
Principal textual codec.

A principal is an opaque byte string (at most 29 bytes). Its textual form is
the lowercase base32 encoding of crc32(bytes) followed by the bytes, without
padding, split into groups of five characters joined by dashes.
"""

import base64
import zlib
from dataclasses import dataclass

MAX_PRINCIPAL_LENGTH = 29
CHECKSUM_LENGTH = 4
GROUP_SIZE = 5


class PrincipalError(ValueError):
    """Raised when a textual principal cannot be decoded."""


@dataclass(frozen=True)
class Principal:
    """Byte-exact account holder identifier."""
    raw: bytes

    def __post_init__(self):
        if len(self.raw) > MAX_PRINCIPAL_LENGTH:
            raise PrincipalError(
                f"Principal too long: {len(self.raw)} bytes (max {MAX_PRINCIPAL_LENGTH})"
            )

    @classmethod
    def from_text(cls, text: str) -> "Principal":
        """
        Decode the dashed base32 form.

        Raises:
            PrincipalError: bad alphabet, checksum mismatch, or non-canonical
                grouping.
        """
        compact = text.strip().replace("-", "").upper()
        padded = compact + "=" * (-len(compact) % 8)
        try:
            decoded = base64.b32decode(padded)
        except (ValueError, TypeError) as exc:
            raise PrincipalError(f"Invalid principal text {text!r}: {exc}") from exc

        if len(decoded) < CHECKSUM_LENGTH:
            raise PrincipalError(f"Principal text {text!r} too short")

        checksum, raw = decoded[:CHECKSUM_LENGTH], decoded[CHECKSUM_LENGTH:]
        if zlib.crc32(raw).to_bytes(4, "big") != checksum:
            raise PrincipalError(f"Checksum mismatch in principal {text!r}")

        principal = cls(raw)
        if principal.to_text() != text.strip().lower():
            raise PrincipalError(f"Principal {text!r} is not in canonical form")
        return principal

    def to_text(self) -> str:
        checksum = zlib.crc32(self.raw).to_bytes(4, "big")
        encoded = base64.b32encode(checksum + self.raw).decode("ascii")
        encoded = encoded.rstrip("=").lower()
        groups = [encoded[i:i + GROUP_SIZE] for i in range(0, len(encoded), GROUP_SIZE)]
        return "-".join(groups)

    def __str__(self) -> str:
        return self.to_text()


def looks_like_principal(text: str) -> bool:
    """Textual references containing a dash are principals; hex identifiers never do."""
    return "-" in text
