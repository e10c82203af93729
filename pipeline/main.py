"""
Reconciliation pipeline entry point.

One run, start to finish:
  1. Load the account registry and run the duplicate guard (fatal on failure)
  2. Fetch governance reward batches and aggregate them per provider
     (totals, most recent payment, alternate payout accounts)
  3. Collect ledger transactions per registry entity, including alternate
     accounts, with bounded concurrency and per-entity failure isolation
  4. Load the provider roster, the declarations table and the document index,
     and reconcile them with rewards and activity
  5. Write output/combined.json (and an optional HTML summary)

Run with:  python -m pipeline.main
"""

import asyncio
import logging
import os
import sys
from typing import List, Optional

import httpx
from dotenv import load_dotenv

from pipeline.collection.collector import TransactionCollector
from pipeline.ingestion import declarations, registry
from pipeline.ingestion.governance_connector import GovernanceConnector, GovernanceQueryError
from pipeline.ingestion.ledger_connector import LedgerConnector
from pipeline.ingestion.registry import Entity
from pipeline.ingestion.roster_connector import get_roster
from pipeline.ingestion.validator import check_duplicates
from pipeline.reconciliation.reconciler import build_name_index, reconcile
from pipeline.rewards.aggregator import MintSummary, RewardAggregator, summarize_mint_blocks
from reports import generator

load_dotenv()

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s [PIPELINE] %(levelname)s %(name)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("pipeline.main")

# ── Configuration ──────────────────────────────────────────────────────────────
ACCOUNTS_CONFIG = os.environ.get("ACCOUNTS_CONFIG", registry.ACCOUNTS_CONFIG)
DECLARATIONS_CONFIG = os.environ.get("DECLARATIONS_CONFIG", declarations.DECLARATIONS_CONFIG)
DOCUMENTS_DIR = os.environ.get("DOCUMENTS_DIR", declarations.DOCUMENTS_DIR)
OUTPUT_PATH = os.environ.get("OUTPUT_PATH", generator.OUTPUT_PATH)
HTML_REPORT_PATH = os.environ.get("HTML_REPORT_PATH", "")
MAX_CONCURRENCY = int(os.environ.get("MAX_CONCURRENCY", "4"))
QUERY_TIMEOUT_SECONDS = float(os.environ.get("QUERY_TIMEOUT_SECONDS", "30"))
MAX_RESULTS = int(os.environ.get("MAX_RESULTS", "10000"))

EXIT_CONFIG_ERROR = 2


def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(name, "").strip()
    return int(value) if value else None


async def fetch_rewards(governance: GovernanceConnector) -> RewardAggregator:
    """Aggregate governance rewards; an unreachable governance service yields no rewards."""
    aggregator = RewardAggregator()
    try:
        batches = await governance.list_reward_batches(
            start_seconds=_env_int("REWARDS_START_SECONDS"),
            end_seconds=_env_int("REWARDS_END_SECONDS"),
        )
    except GovernanceQueryError as exc:
        logger.error("Reward query failed, continuing without rewards: %s", exc)
        return aggregator
    return aggregator.add_batches(batches)


async def get_account_rewards(ledger: LedgerConnector, account_identifier: str) -> MintSummary:
    """Mint reward summary for one account from the public ledger REST API."""
    blocks = await ledger.fetch_mint_transactions(account_identifier)
    return summarize_mint_blocks(blocks)


async def run_pipeline(entities: List[Entity], output_path: str = OUTPUT_PATH) -> dict:
    """
    Run reward aggregation, transaction collection and reconciliation.

    The registry must already have passed the duplicate guard.

    Returns:
        The export document that was written.
    """
    async with httpx.AsyncClient() as http:
        governance = GovernanceConnector(http)
        ledger = LedgerConnector(http, max_results=MAX_RESULTS)

        aggregator = await fetch_rewards(governance)

        collector = TransactionCollector(
            ledger,
            alternate_accounts=aggregator.alternate_accounts(),
            max_concurrency=MAX_CONCURRENCY,
            query_timeout=QUERY_TIMEOUT_SECONDS,
        )
        activities = await collector.collect(entities)

        roster = await get_roster(http)

    wiki_records = declarations.load_declarations(DECLARATIONS_CONFIG)
    document_index = declarations.build_document_index(DOCUMENTS_DIR)
    name_index, collisions = build_name_index(wiki_records)

    combined = reconcile(
        roster,
        list(name_index.values()),
        document_index,
        reward_summaries=aggregator.summaries,
        activities=activities,
    )

    document = generator.build_document(combined, activities, name_collisions=collisions)
    generator.write_json(document, output_path)
    if HTML_REPORT_PATH:
        generator.generate_html(document, HTML_REPORT_PATH)
    return document


def main() -> None:
    try:
        entities = registry.load_entities(ACCOUNTS_CONFIG)
    except (OSError, ValueError) as exc:
        logger.critical("Cannot load account registry: %s", exc)
        sys.exit(EXIT_CONFIG_ERROR)

    check = check_duplicates(entities)
    if not check.is_valid:
        logger.critical("Refusing to run with a corrupt registry. %s", check)
        sys.exit(EXIT_CONFIG_ERROR)

    try:
        asyncio.run(run_pipeline(entities))
    except (OSError, ValueError) as exc:
        logger.critical("Pipeline run failed: %s", exc)
        sys.exit(1)
    logger.info("Pipeline run complete.")


if __name__ == "__main__":
    main()
