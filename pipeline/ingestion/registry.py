"""
Static account registry.

Loads config/accounts.json: a list of {"name", "account", "type"} objects.
The "account" field is either a dashed principal or a 64-character account
identifier. Entities are frozen once loaded.
"""

import enum
import json
import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from ledger.account_id import principal_to_account_hex
from ledger.principal import Principal, PrincipalError, looks_like_principal

logger = logging.getLogger(__name__)

ACCOUNTS_CONFIG = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "config", "accounts.json",
)


class RegistryError(ValueError):
    """The static registry is malformed."""


class EntityCategory(str, enum.Enum):
    Exchange = "Exchange"
    Foundation = "Foundation"
    Individual = "Individual"
    NodeProvider = "NodeProvider"
    Sns = "Sns"
    SnsParticipant = "SnsParticipant"
    Spammer = "Spammer"
    Suspect = "Suspect"
    Unknown = "Unknown"


@dataclass(frozen=True)
class Entity:
    """One registry account. Exactly one of principal / account_id is set."""
    name: str
    category: EntityCategory
    principal: Optional[Principal] = None
    account_id: Optional[str] = None

    def __post_init__(self):
        if (self.principal is None) == (self.account_id is None):
            raise RegistryError(
                f"Entity {self.name!r} needs exactly one of principal or account identifier"
            )

    @classmethod
    def from_reference(cls, name: str, reference: str, category: EntityCategory) -> "Entity":
        """Build an entity from the textual reference, principal if it contains a dash."""
        reference = reference.strip()
        if looks_like_principal(reference):
            try:
                principal = Principal.from_text(reference)
            except PrincipalError as exc:
                raise RegistryError(f"Entity {name!r}: {exc}") from exc
            return cls(name=name, category=category, principal=principal)
        return cls(name=name, category=category, account_id=reference.lower())

    def resolve_account_id(self) -> str:
        """Account identifier text: derived for principals, stored text otherwise."""
        if self.principal is not None:
            return principal_to_account_hex(self.principal)
        return self.account_id

    @property
    def principal_text(self) -> Optional[str]:
        return self.principal.to_text() if self.principal is not None else None


def parse_entities(rows: List[dict]) -> List[Entity]:
    """
    Parse raw registry rows.

    Raises:
        RegistryError: Missing fields, unknown category or bad principal.
    """
    entities = []
    for i, row in enumerate(rows):
        try:
            name = row["name"]
            reference = row["account"]
        except (KeyError, TypeError) as exc:
            raise RegistryError(f"Registry row {i} is missing field {exc}") from exc

        type_raw = row.get("type", "Unknown")
        try:
            category = EntityCategory(type_raw)
        except ValueError as exc:
            raise RegistryError(f"Registry row {i} ({name}): unknown type {type_raw!r}") from exc

        entities.append(Entity.from_reference(name, reference, category))
    return entities


def load_entities(path: str = ACCOUNTS_CONFIG) -> List[Entity]:
    """Load and parse the registry file. Fails fast if it is missing."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Account registry not found at {path}")

    with open(path, "r", encoding="utf-8") as f:
        rows = json.load(f)

    entities = parse_entities(rows)
    logger.info("Loaded %d registry entities from %s", len(entities), path)
    return entities
