"""
Declarations table and signed document index.

config/node-providers.toml holds one table per provider, keyed by a local id:

    [providers.acme]
    name = "Acme Corp"
    wiki-link = "https://wiki.internetcomputer.org/wiki/Acme_Corp"
    declaration = "<sha256 hex>"
    identity = "<sha256 hex>"

Signed documents live under DOCUMENTS_DIR/<local id>/<document type>.<ext>.
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
DECLARATIONS_CONFIG = os.path.join(_ROOT, "config", "node-providers.toml")
DOCUMENTS_DIR = os.path.join(_ROOT, "documents")

DOCUMENT_TYPES = frozenset({
    "declaration",
    "identity",
    "handover",
    "handover_02",
    "hardware",
    "invoice",
    "invoice_02",
    "contract",
    "passeport",
    "registration",
    "decentralization",
    "authenticity",
    "order",
})

_NON_DOCUMENT_KEYS = {"name", "wiki-link"}

# local id -> {document type -> path}
DocumentIndex = Dict[str, Dict[str, str]]


@dataclass
class WikiRecord:
    """Hand-maintained declarations for one provider."""
    local_id: str
    name: str
    wiki_link: Optional[str] = None
    documents: Dict[str, str] = field(default_factory=dict)  # type -> declared hash

    @property
    def declaration(self) -> Optional[str]:
        return self.documents.get("declaration")

    @property
    def identity(self) -> Optional[str]:
        return self.documents.get("identity")


def parse_declarations(data: dict) -> List[WikiRecord]:
    """
    Build WikiRecords from a parsed TOML document.

    Records without a name are skipped. Non-string values are ignored.
    """
    providers = data.get("providers", data)
    records = []
    for local_id, table in providers.items():
        if not isinstance(table, dict):
            continue
        name = table.get("name")
        if not name:
            logger.warning("Declarations entry %s has no name, skipping", local_id)
            continue

        documents = {
            key: value
            for key, value in table.items()
            if key not in _NON_DOCUMENT_KEYS and isinstance(value, str) and value
        }
        records.append(WikiRecord(
            local_id=str(local_id),
            name=name,
            wiki_link=table.get("wiki-link"),
            documents=documents,
        ))
    return records


def load_declarations(path: str = DECLARATIONS_CONFIG) -> List[WikiRecord]:
    """Load the declarations table. Fails fast if it is missing or invalid."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Declarations table not found at {path}")

    with open(path, "rb") as f:
        data = tomllib.load(f)

    records = parse_declarations(data)
    logger.info("Loaded %d declaration records from %s", len(records), path)
    return records


def build_document_index(root: str = DOCUMENTS_DIR) -> DocumentIndex:
    """
    Scan root/<local id>/ for allow-listed document files.

    Returns:
        {local_id: {document_type: path}}. A missing root yields an empty
        index.
    """
    index: DocumentIndex = {}
    if not os.path.isdir(root):
        logger.warning("Documents directory %s not found, index is empty", root)
        return index

    for local_id in sorted(os.listdir(root)):
        provider_dir = os.path.join(root, local_id)
        if not os.path.isdir(provider_dir):
            continue

        paths: Dict[str, str] = {}
        for filename in sorted(os.listdir(provider_dir)):
            full_path = os.path.join(provider_dir, filename)
            if not os.path.isfile(full_path):
                continue
            doc_type = os.path.splitext(filename)[0]
            if doc_type not in DOCUMENT_TYPES:
                logger.debug("Ignoring unrecognised document %s", full_path)
                continue
            paths[doc_type] = full_path

        if paths:
            index[local_id] = paths

    logger.info("Indexed documents for %d providers under %s", len(index), root)
    return index
