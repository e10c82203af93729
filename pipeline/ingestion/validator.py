"""
Registry integrity check (duplicate guard).

Runs once over the full entity list before any network access. Two entities
must never share an account identifier (derived identifiers included) or a
principal: transactions would silently be attributed to both.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

logger = logging.getLogger(__name__)


class ConfigurationIntegrityError(ValueError):
    """The registry contains a duplicate account identifier or principal."""


@dataclass
class DuplicateCheckResult:
    """Result of the duplicate pass over the registry."""
    is_valid: bool
    duplicates: List[str] = field(default_factory=list)

    def add_duplicate(self, msg: str):
        self.duplicates.append(msg)
        self.is_valid = False

    def __str__(self) -> str:
        if self.is_valid:
            return "Registry OK"
        return "Duplicates: " + "; ".join(self.duplicates)


def check_duplicates(entities) -> DuplicateCheckResult:
    """
    Report every repeated account identifier or principal.

    Args:
        entities: Sequence of registry Entity objects.

    Returns:
        DuplicateCheckResult; the caller decides whether to abort.
    """
    result = DuplicateCheckResult(is_valid=True)
    seen_accounts: Dict[str, str] = {}
    seen_principals: Dict[bytes, str] = {}

    for entity in entities:
        account = entity.resolve_account_id().lower()
        if account in seen_accounts:
            result.add_duplicate(
                f"account {account} used by {seen_accounts[account]!r} and {entity.name!r}"
            )
        else:
            seen_accounts[account] = entity.name

        if entity.principal is not None:
            raw = entity.principal.raw
            if raw in seen_principals:
                result.add_duplicate(
                    f"principal {entity.principal_text} used by "
                    f"{seen_principals[raw]!r} and {entity.name!r}"
                )
            else:
                seen_principals[raw] = entity.name

    if not result.is_valid:
        logger.error("Registry integrity check failed: %s", result.duplicates)
    return result


def ensure_unique(entities) -> None:
    """
    Raises:
        ConfigurationIntegrityError: On the first duplicate found.
    """
    result = check_duplicates(entities)
    if not result.is_valid:
        raise ConfigurationIntegrityError(f"Duplicate in registry: {result.duplicates[0]}")
