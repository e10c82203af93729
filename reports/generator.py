"""
Export writer.

Builds the combined output document, writes it as JSON (regenerated
wholesale on every run), and renders an optional HTML summary with Jinja2.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from reports.graph import build_graph

logger = logging.getLogger(__name__)

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "templates")
OUTPUT_PATH = os.path.join(
    os.path.dirname(os.path.dirname(__file__)), "output", "combined.json"
)


def _jinja_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        autoescape=select_autoescape(["html"]),
    )


def build_document(
    combined_entities: List[Any],
    activities: List[Any],
    generated_at: Optional[datetime] = None,
    name_collisions: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Assemble the export document.

    Args:
        combined_entities: CombinedEntity objects from the reconciler.
        activities: AccountActivity objects from the collector.
        generated_at: Defaults to now (UTC).
        name_collisions: Normalized declaration names that appeared more than
            once; the last record for each name was kept.

    Returns:
        {"generated_at", "node_providers", "accounts", "graph", "name_collisions"}
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    return {
        "generated_at": generated_at.isoformat(),
        "node_providers": [e.to_dict() for e in combined_entities],
        "accounts": [a.to_dict() for a in activities],
        "graph": build_graph(activities),
        "name_collisions": list(name_collisions or []),
    }


def write_json(document: Dict[str, Any], output_path: str = OUTPUT_PATH) -> str:
    """Write the document, replacing any previous export. Returns the path."""
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    tmp_path = output_path + ".tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2)
    os.replace(tmp_path, output_path)

    logger.info(
        "Export written to %s (%d node providers, %d accounts)",
        output_path,
        len(document.get("node_providers", [])),
        len(document.get("accounts", [])),
    )
    return output_path


def _build_context(document: Dict[str, Any]) -> Dict[str, Any]:
    """Template context with safe defaults for every field the template reads."""
    providers = []
    for p in document.get("node_providers", []):
        validations = p.get("validations") or []
        rewards = p.get("rewards") or {}
        providers.append({
            "name": p.get("name", "Unknown"),
            "principal": p.get("principal") or "—",
            "node_count": p.get("node_count", 0),
            "location_count": p.get("location_count", 0),
            "roster_listed": p.get("roster_listed", False),
            "wiki_link": p.get("wiki_link"),
            "documents_checked": len(validations),
            "documents_matching": sum(1 for v in validations if v.get("matches")),
            "unreadable": p.get("unreadable_documents") or [],
            "total_rewards_icp": rewards.get("total_amount", 0) / 100_000_000,
            "alternate_accounts": rewards.get("alternate_accounts") or [],
        })

    accounts = [
        {
            "name": a.get("name", "Unknown"),
            "ty": a.get("ty", "Unknown"),
            "account": a.get("account", "—"),
            "balance_icp": a.get("balance", 0) / 100_000_000,
            "transaction_count": len(a.get("transactions") or []),
            "extra_accounts": a.get("extra_accounts") or [],
        }
        for a in document.get("accounts", [])
    ]

    return {
        "generated_at": document.get("generated_at", "—"),
        "providers": providers,
        "accounts": accounts,
        "link_count": len((document.get("graph") or {}).get("links", [])),
    }


def generate_html(document: Dict[str, Any], output_path: Optional[str] = None) -> str:
    """
    Render the HTML summary of an export document.

    Args:
        document: Output of build_document().
        output_path: Optional path to write the HTML file.

    Returns:
        Rendered HTML string.
    """
    template = _jinja_env().get_template("summary.html")
    html = template.render(**_build_context(document))

    if output_path:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(html)
        logger.info("HTML summary written to %s", output_path)

    return html
