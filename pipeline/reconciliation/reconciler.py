"""
Entity reconciliation.

Merges the provider roster, the declarations table and the document index
into one CombinedEntity per provider, then attaches reward summaries and
ledger activity keyed by principal.

Roster entries and declarations are matched on case-insensitive display name.
Declarations with no roster entry are still emitted, with zeroed roster
fields and roster_listed=False.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pipeline.ingestion.declarations import DocumentIndex, WikiRecord
from pipeline.ingestion.roster_connector import RosterEntry
from pipeline.reconciliation.documents import DocumentValidation, validate_documents

logger = logging.getLogger(__name__)


@dataclass
class CombinedEntity:
    """Everything known about one provider after reconciliation."""
    name: str
    principal: Optional[str] = None
    location_count: int = 0
    node_count: int = 0
    roster_listed: bool = True
    local_id: Optional[str] = None
    wiki_link: Optional[str] = None
    declared_hashes: Dict[str, str] = field(default_factory=dict)
    document_paths: Dict[str, str] = field(default_factory=dict)
    validations: List[DocumentValidation] = field(default_factory=list)
    unreadable_documents: List[str] = field(default_factory=list)
    rewards: Optional[Dict[str, Any]] = None
    activity: Optional[Dict[str, Any]] = None

    @property
    def has_declaration(self) -> bool:
        return "declaration" in self.declared_hashes

    @property
    def all_documents_match(self) -> bool:
        return bool(self.validations) and all(v.matches for v in self.validations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "principal": self.principal,
            "location_count": self.location_count,
            "node_count": self.node_count,
            "roster_listed": self.roster_listed,
            "local_id": self.local_id,
            "wiki_link": self.wiki_link,
            "declaration": self.declared_hashes.get("declaration"),
            "identity": self.declared_hashes.get("identity"),
            "declared_hashes": self.declared_hashes,
            "document_paths": self.document_paths,
            "validations": [
                {
                    "document_type": v.document_type,
                    "expected_hash": v.expected_hash,
                    "actual_hash": v.actual_hash,
                    "matches": v.matches,
                }
                for v in self.validations
            ],
            "unreadable_documents": self.unreadable_documents,
            "rewards": self.rewards,
            "activity": self.activity,
        }


def build_name_index(records: List[WikiRecord]) -> Tuple[Dict[str, WikiRecord], List[str]]:
    """
    Index declarations by lowercased name.

    Later records overwrite earlier ones with the same normalized name; every
    such collision is logged and returned.

    Returns:
        (name -> record, list of colliding normalized names)
    """
    index: Dict[str, WikiRecord] = {}
    collisions: List[str] = []
    for record in records:
        key = record.name.lower()
        if key in index:
            logger.warning(
                "Declarations name collision for %r: %s overwritten by %s",
                key, index[key].local_id, record.local_id,
            )
            collisions.append(key)
        index[key] = record
    return index, collisions


def _apply_record(entity: CombinedEntity, record: WikiRecord, document_index: DocumentIndex):
    paths = document_index.get(record.local_id, {})
    validations, unreadable = validate_documents(record.documents, paths)

    entity.local_id = record.local_id
    entity.wiki_link = record.wiki_link
    entity.declared_hashes = dict(record.documents)
    entity.document_paths = dict(paths)
    entity.validations = validations
    entity.unreadable_documents = unreadable


def reconcile(
    roster: List[RosterEntry],
    wiki_records: List[WikiRecord],
    document_index: DocumentIndex,
    reward_summaries: Optional[Dict[str, Any]] = None,
    activities: Optional[List[Any]] = None,
) -> List[CombinedEntity]:
    """
    Merge roster, declarations and documents into CombinedEntity objects.

    Args:
        roster: Dashboard roster entries.
        wiki_records: Declarations table records.
        document_index: local id -> {document type -> path}.
        reward_summaries: principal text -> RewardSummary.
        activities: AccountActivity list from the TransactionCollector.

    Returns:
        Roster-ordered entities followed by roster-less declarations.
    """
    name_index, _ = build_name_index(wiki_records)
    reward_summaries = reward_summaries or {}
    activity_by_principal = {
        a.principal: a for a in (activities or []) if a.principal is not None
    }

    combined: List[CombinedEntity] = []
    matched_ids = set()

    for entry in roster:
        entity = CombinedEntity(
            name=entry.name,
            principal=entry.principal,
            location_count=entry.location_count,
            node_count=entry.node_count,
        )
        record = name_index.get(entry.name.lower())
        if record is not None:
            _apply_record(entity, record, document_index)
            matched_ids.add(record.local_id)
        combined.append(entity)

    for record in name_index.values():
        if record.local_id in matched_ids:
            continue
        logger.info("Declarations record %s (%s) has no roster entry", record.local_id, record.name)
        entity = CombinedEntity(name=record.name, roster_listed=False)
        _apply_record(entity, record, document_index)
        combined.append(entity)

    for entity in combined:
        if entity.principal is None:
            continue
        summary = reward_summaries.get(entity.principal)
        if summary is not None:
            entity.rewards = summary.to_dict()
        activity = activity_by_principal.get(entity.principal)
        if activity is not None:
            entity.activity = activity.summary_dict()

    logger.info(
        "Reconciled %d entities (%d roster-less)",
        len(combined), sum(1 for e in combined if not e.roster_listed),
    )
    return combined
