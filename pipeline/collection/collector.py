"""
Per-entity transaction collection.

For every registry entity:
  1. Resolve the account identifier (derive it from the principal, or take
     the configured identifier as-is)
  2. Validate its checksum; invalid identifiers are logged and skipped
  3. Query the ledger for the identifier and for every alternate payout
     account discovered for the entity's principal, appending transactions

Queries run concurrently up to MAX_CONCURRENCY, each bounded by
QUERY_TIMEOUT_SECONDS. A failing entity is logged and left out; it never
cancels its siblings. Results keep registry order.

The duplicate guard runs to completion before the first query is issued.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from ledger.account_id import is_valid_account_id
from ledger.models import TransactionWithId
from pipeline.ingestion.ledger_connector import LedgerQueryError
from pipeline.ingestion.registry import Entity
from pipeline.ingestion.validator import ensure_unique
from pipeline.rewards.aggregator import MintSummary, summarize_mints

logger = logging.getLogger(__name__)

MAX_CONCURRENCY = int(os.environ.get("MAX_CONCURRENCY", "4"))
QUERY_TIMEOUT_SECONDS = float(os.environ.get("QUERY_TIMEOUT_SECONDS", "30"))


class InvalidAccountIdentifier(ValueError):
    """The resolved account identifier fails the checksum test."""


@dataclass
class AccountActivity:
    """Ledger activity gathered for one registry entity."""
    name: str
    category: str
    principal: Optional[str]
    account: str
    balance: int
    transactions: List[TransactionWithId] = field(default_factory=list)
    oldest_tx_id: Optional[int] = None
    extra_accounts: List[str] = field(default_factory=list)
    alternate_balances: Dict[str, int] = field(default_factory=dict)
    mint_summary: MintSummary = field(default_factory=MintSummary)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "principal": self.principal,
            "account": self.account,
            "ty": self.category,
            "extra_accounts": self.extra_accounts,
            "balance": self.balance,
            "alternate_balances": self.alternate_balances,
            "oldest_tx_id": self.oldest_tx_id,
            "mint_summary": self.mint_summary.to_dict(),
            "transactions": [tx.to_dict() for tx in self.transactions],
        }

    def summary_dict(self) -> Dict[str, Any]:
        """to_dict() without the transaction list."""
        summary = self.to_dict()
        summary.pop("transactions")
        summary["transaction_count"] = len(self.transactions)
        return summary


class TransactionCollector:
    """
    Args:
        ledger: Object exposing
            ``async get_account_transactions(account_identifier)``
            (normally a LedgerConnector).
        alternate_accounts: principal text -> alternate payout accounts.
        max_concurrency: Upper bound on simultaneous entity fetches.
        query_timeout: Seconds allowed per ledger query.
    """

    def __init__(
        self,
        ledger,
        alternate_accounts: Optional[Dict[str, Set[str]]] = None,
        max_concurrency: int = MAX_CONCURRENCY,
        query_timeout: float = QUERY_TIMEOUT_SECONDS,
    ):
        self.ledger = ledger
        self.alternate_accounts = alternate_accounts or {}
        self.max_concurrency = max(1, max_concurrency)
        self.query_timeout = query_timeout

    async def _query(self, account: str):
        try:
            return await asyncio.wait_for(
                self.ledger.get_account_transactions(account), timeout=self.query_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise LedgerQueryError(
                f"Ledger query for {account} exceeded {self.query_timeout}s"
            ) from exc

    async def fetch_entity(self, entity: Entity) -> AccountActivity:
        """
        Fetch ledger activity for one entity.

        Raises:
            InvalidAccountIdentifier: If the resolved identifier is malformed.
            LedgerQueryError: If any of its ledger queries fails.
        """
        account = entity.resolve_account_id()
        if not is_valid_account_id(account):
            raise InvalidAccountIdentifier(f"Invalid account ID {account!r} for {entity.name}")

        primary = await self._query(account)
        activity = AccountActivity(
            name=entity.name,
            category=entity.category.value,
            principal=entity.principal_text,
            account=account,
            balance=primary.balance,
            transactions=list(primary.transactions),
            oldest_tx_id=primary.oldest_tx_id,
        )

        alternates = self.alternate_accounts.get(entity.principal_text or "", set())
        for alternate in sorted(alternates):
            if alternate == account:
                continue
            extra = await self._query(alternate)
            activity.extra_accounts.append(alternate)
            activity.alternate_balances[alternate] = extra.balance
            activity.transactions.extend(extra.transactions)

        activity.mint_summary = summarize_mints(activity.transactions)
        return activity

    async def _fetch_isolated(self, semaphore: asyncio.Semaphore, entity: Entity) -> Optional[AccountActivity]:
        async with semaphore:
            try:
                return await self.fetch_entity(entity)
            except InvalidAccountIdentifier as exc:
                logger.error("Skipping %s: %s", entity.name, exc)
            except LedgerQueryError as exc:
                logger.error("Failed to fetch transactions for %s: %s", entity.name, exc)
            except Exception as exc:
                logger.exception("Unexpected error fetching %s: %s", entity.name, exc)
        return None

    async def collect(self, entities: List[Entity]) -> List[AccountActivity]:
        """
        Fetch activity for all entities.

        Raises:
            ConfigurationIntegrityError: Duplicate account or principal in the
                registry; raised before any ledger query.
        """
        ensure_unique(entities)

        semaphore = asyncio.Semaphore(self.max_concurrency)
        logger.info(
            "── Collecting transactions for %d entities (concurrency=%d) ──",
            len(entities), self.max_concurrency,
        )
        results = await asyncio.gather(
            *(self._fetch_isolated(semaphore, entity) for entity in entities)
        )

        activities = [r for r in results if r is not None]
        logger.info(
            "── Collection complete: %d succeeded, %d skipped ──",
            len(activities), len(entities) - len(activities),
        )
        return activities
