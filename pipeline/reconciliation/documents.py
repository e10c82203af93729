"""
Signed document verification.

Hashes each indexed document with SHA-256 and compares it to the hash
declared in the declarations table. Comparison is case-insensitive. A declared
document with no file on disk is an absence, not a failure; an unreadable file
is reported separately and never counted as a mismatch.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class DocumentValidation:
    """Outcome of checking one declared document against its file."""
    document_type: str
    expected_hash: str
    actual_hash: str
    matches: bool

    def __str__(self) -> str:
        status = "OK" if self.matches else "MISMATCH"
        return (
            f"[{status}] {self.document_type}: "
            f"expected {self.expected_hash[:16]}..., actual {self.actual_hash[:16]}..."
        )


def hash_file(path: str) -> str:
    """
    SHA-256 of a file, streamed in chunks.

    Raises:
        OSError: If the file cannot be read.
    """
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def hashes_match(expected: str, actual: str) -> bool:
    return expected.strip().lower() == actual.strip().lower()


def validate_documents(
    declared: Dict[str, str],
    paths: Optional[Dict[str, str]],
) -> Tuple[List[DocumentValidation], List[str]]:
    """
    Check every declared document that also has an indexed file.

    Args:
        declared: document type -> expected hash (from a WikiRecord).
        paths: document type -> file path (from the DocumentIndex), or None.

    Returns:
        (validations, unreadable document types)
    """
    validations: List[DocumentValidation] = []
    unreadable: List[str] = []
    if not paths:
        return validations, unreadable

    for doc_type, expected in declared.items():
        path = paths.get(doc_type)
        if path is None:
            continue

        try:
            actual = hash_file(path)
        except OSError as exc:
            logger.warning("Could not read %s document %s: %s", doc_type, path, exc)
            unreadable.append(doc_type)
            continue

        validation = DocumentValidation(
            document_type=doc_type,
            expected_hash=expected,
            actual_hash=actual,
            matches=hashes_match(expected, actual),
        )
        if not validation.matches:
            logger.warning("Document hash mismatch for %s: %s", path, validation)
        validations.append(validation)

    return validations, unreadable
