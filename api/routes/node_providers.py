"""
Export routes: node providers and registry accounts, read from the last
pipeline export (output/combined.json).
"""
import json
import os
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from reports.generator import OUTPUT_PATH

router = APIRouter()


def _export_path() -> str:
    return os.environ.get("OUTPUT_PATH", OUTPUT_PATH)


def _load_export() -> dict:
    path = _export_path()
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise HTTPException(status_code=503, detail="Export not generated yet; run the pipeline first")
    except (OSError, ValueError) as exc:
        raise HTTPException(status_code=500, detail=f"Export unreadable: {exc}")


@router.get("/node-providers")
def list_node_providers(
    roster_listed: Optional[bool] = Query(None, description="Filter on roster presence"),
):
    """All reconciled node providers."""
    providers = _load_export().get("node_providers", [])
    if roster_listed is not None:
        providers = [p for p in providers if p.get("roster_listed") == roster_listed]
    return providers


@router.get("/node-providers/{principal}")
def get_node_provider(principal: str):
    """One node provider by principal."""
    for provider in _load_export().get("node_providers", []):
        if provider.get("principal") == principal:
            return provider
    raise HTTPException(status_code=404, detail=f"Node provider '{principal}' not found")


@router.get("/accounts")
def list_accounts(
    ty: Optional[str] = Query(None, description="Filter by entity category"),
    include_transactions: bool = Query(True),
):
    """Registry accounts with their ledger activity."""
    accounts = _load_export().get("accounts", [])
    if ty:
        accounts = [a for a in accounts if a.get("ty") == ty]
    if not include_transactions:
        accounts = [{k: v for k, v in a.items() if k != "transactions"} for a in accounts]
    return accounts


@router.get("/graph")
def get_graph():
    """Transfer graph between registry accounts."""
    return _load_export().get("graph", {"nodes": [], "links": []})
