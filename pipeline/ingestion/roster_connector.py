"""
Node provider roster connector.

The roster is the machine-readable provider list published by the public
dashboard API. It is read from ROSTER_PATH when that file exists (an offline
snapshot), otherwise fetched from ROSTER_URL.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, List, Optional

import httpx
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

ROSTER_URL = os.environ.get(
    "ROSTER_URL", "https://ic-api.internetcomputer.org/api/v3/node-providers"
)
REQUEST_TIMEOUT = 30  # seconds


@dataclass
class RosterEntry:
    """One provider as listed by the dashboard."""
    name: str
    principal: Optional[str]
    location_count: int = 0
    node_count: int = 0


def _safe_int(val) -> int:
    try:
        return int(val)
    except (TypeError, ValueError):
        return 0


def parse_roster(payload: Any) -> List[RosterEntry]:
    """
    Parse {"node_providers": [...]} (or a bare list) into RosterEntry objects.

    Non-object entries and entries without a display name are skipped with
    a warning; a node_providers value that is not a list yields no entries.
    """
    if isinstance(payload, dict):
        items = payload.get("node_providers", [])
    elif isinstance(payload, list):
        items = payload
    else:
        logger.error("Roster payload has unexpected type %s", type(payload).__name__)
        return []

    if not isinstance(items, list):
        logger.error("Roster node_providers has unexpected type %s", type(items).__name__)
        return []

    roster = []
    for item in items:
        if not isinstance(item, dict):
            logger.warning("Skipping malformed roster entry: %r", item)
            continue
        name = str(item.get("display_name") or item.get("name") or "").strip()
        if not name:
            logger.warning("Skipping roster entry without a name: %s", item.get("principal_id"))
            continue

        locations = item.get("locations")
        if isinstance(locations, list):
            location_count = len(locations)
        else:
            location_count = _safe_int(item.get("locations_count"))

        roster.append(RosterEntry(
            name=name,
            principal=item.get("principal_id") or item.get("principal"),
            location_count=location_count,
            node_count=_safe_int(item.get("total_nodes")),
        ))
    return roster


def load_roster(path: str) -> List[RosterEntry]:
    """Read a roster snapshot from disk."""
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    roster = parse_roster(payload)
    logger.info("Loaded %d roster entries from %s", len(roster), path)
    return roster


async def fetch_roster(http: httpx.AsyncClient, url: Optional[str] = None) -> List[RosterEntry]:
    """
    Fetch the roster from the dashboard API.

    Returns:
        Parsed entries, or an empty list on any failure (logged).
    """
    url = url or ROSTER_URL
    try:
        resp = await http.get(url, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
    except httpx.TimeoutException:
        logger.error("Roster request timed out: %s", url)
        return []
    except httpx.HTTPStatusError as e:
        logger.error("Roster HTTP error %s from %s", e.response.status_code, url)
        return []
    except httpx.RequestError as e:
        logger.error("Roster network error from %s: %s", url, e)
        return []

    try:
        payload = resp.json()
    except ValueError:
        logger.error("Roster endpoint returned malformed JSON: %s", url)
        return []

    roster = parse_roster(payload)
    logger.info("Fetched %d roster entries from %s", len(roster), url)
    return roster


async def get_roster(http: httpx.AsyncClient, path: Optional[str] = None) -> List[RosterEntry]:
    """Snapshot file when present, dashboard API otherwise."""
    path = path if path is not None else os.environ.get("ROSTER_PATH", "")
    if path and os.path.exists(path):
        return load_roster(path)
    return await fetch_roster(http)
