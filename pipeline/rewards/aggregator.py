"""
Node provider reward aggregation.

Folds monthly governance reward batches into one RewardSummary per provider
principal: running totals, the most recent payment, and the set of alternate
payout accounts (payout accounts that differ from the principal's default
account identifier). Batches may arrive in any order; totals are
order-independent and "most recent" is resolved strictly by timestamp.

Also summarizes mint transactions, which is how rewards show up on the
receiving account's ledger history.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from ledger.account_id import principal_to_account_hex
from ledger.models import E8S_PER_ICP, Mint, TransactionWithId
from ledger.principal import Principal, PrincipalError
from pipeline.ingestion.governance_connector import RewardBatch, RewardToAccount

logger = logging.getLogger(__name__)

PERMYRIAD = 10_000


@dataclass
class RewardRecord:
    """A single governance-reported payment to one provider."""
    principal: str
    timestamp: int
    amount_e8s: int
    payout_account: Optional[str] = None
    xdr_permyriad_per_icp: Optional[int] = None

    @property
    def converted_value(self) -> Optional[float]:
        """Value in XDR at the batch's conversion rate, None without a rate."""
        if self.xdr_permyriad_per_icp is None:
            return None
        return (self.amount_e8s / E8S_PER_ICP) * (self.xdr_permyriad_per_icp / PERMYRIAD)


@dataclass
class MostRecentReward:
    timestamp: int
    amount: int
    converted_value: Optional[float] = None


@dataclass
class RewardSummary:
    """Per-principal reward totals."""
    principal: str
    most_recent: MostRecentReward
    total_amount: int = 0
    total_converted_value: float = 0.0
    alternate_accounts: Set[str] = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "principal": self.principal,
            "most_recent": {
                "timestamp": self.most_recent.timestamp,
                "amount": self.most_recent.amount,
                "converted_value": self.most_recent.converted_value,
            },
            "total_amount": self.total_amount,
            "total_converted_value": self.total_converted_value,
            "alternate_accounts": sorted(self.alternate_accounts),
        }


def resolve_payout_account(reward) -> Optional[str]:
    """Explicit reward account first, then a pay-to-account reward mode."""
    if reward.reward_account:
        return reward.reward_account
    if isinstance(reward.reward_mode, RewardToAccount) and reward.reward_mode.to_account:
        return reward.reward_mode.to_account
    return None


def flatten_batches(batches: Iterable[RewardBatch]) -> List[RewardRecord]:
    """Turn monthly batches into individual RewardRecords."""
    records = []
    for batch in batches:
        rate = batch.xdr_permyriad_per_icp
        for reward in batch.rewards:
            if not reward.provider_id:
                logger.warning(
                    "Reward of %d e8s at %d has no provider id, skipping",
                    reward.amount_e8s, batch.timestamp,
                )
                continue
            records.append(RewardRecord(
                principal=reward.provider_id,
                timestamp=batch.timestamp,
                amount_e8s=reward.amount_e8s,
                payout_account=resolve_payout_account(reward),
                xdr_permyriad_per_icp=rate,
            ))
    return records


def _default_account(principal_text: str) -> Optional[str]:
    try:
        return principal_to_account_hex(Principal.from_text(principal_text))
    except PrincipalError as exc:
        logger.warning("Cannot derive default account for %s: %s", principal_text, exc)
        return None


class RewardAggregator:
    """Accumulates RewardRecords into RewardSummaries keyed by principal text."""

    def __init__(self):
        self.summaries: Dict[str, RewardSummary] = {}
        self._default_accounts: Dict[str, Optional[str]] = {}

    def _default_account_for(self, principal: str) -> Optional[str]:
        if principal not in self._default_accounts:
            self._default_accounts[principal] = _default_account(principal)
        return self._default_accounts[principal]

    def add(self, record: RewardRecord) -> RewardSummary:
        converted = record.converted_value
        summary = self.summaries.get(record.principal)

        if summary is None:
            summary = RewardSummary(
                principal=record.principal,
                most_recent=MostRecentReward(record.timestamp, record.amount_e8s, converted),
            )
            self.summaries[record.principal] = summary
        elif record.timestamp > summary.most_recent.timestamp:
            summary.most_recent = MostRecentReward(record.timestamp, record.amount_e8s, converted)

        summary.total_amount += record.amount_e8s
        if converted is not None:
            summary.total_converted_value += converted

        payout = record.payout_account
        if payout and payout != self._default_account_for(record.principal):
            summary.alternate_accounts.add(payout)

        return summary

    def add_batches(self, batches: Iterable[RewardBatch]) -> "RewardAggregator":
        for record in flatten_batches(batches):
            self.add(record)
        logger.info("Aggregated rewards for %d providers", len(self.summaries))
        return self

    def alternate_accounts(self) -> Dict[str, Set[str]]:
        """principal text -> alternate payout accounts (only non-empty sets)."""
        return {
            principal: set(summary.alternate_accounts)
            for principal, summary in self.summaries.items()
            if summary.alternate_accounts
        }


# ── Mint summaries ────────────────────────────────────────────────────────────

@dataclass
class MintSummary:
    total_transactions: int = 0
    total_e8s: int = 0
    first_transaction_timestamp: Optional[int] = None
    last_transaction_timestamp: Optional[int] = None

    @property
    def total_icp(self) -> float:
        return self.total_e8s / E8S_PER_ICP

    def observe(self, amount_e8s: int, timestamp: Optional[int]) -> None:
        self.total_transactions += 1
        self.total_e8s += amount_e8s
        if timestamp is None:
            return
        if self.first_transaction_timestamp is None or timestamp < self.first_transaction_timestamp:
            self.first_transaction_timestamp = timestamp
        if self.last_transaction_timestamp is None or timestamp > self.last_transaction_timestamp:
            self.last_transaction_timestamp = timestamp

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_transactions": self.total_transactions,
            "total_e8s": self.total_e8s,
            "total_icp": self.total_icp,
            "first_transaction_timestamp": self.first_transaction_timestamp,
            "last_transaction_timestamp": self.last_transaction_timestamp,
        }


def summarize_mints(transactions: Iterable[TransactionWithId]) -> MintSummary:
    """Mint operations from ledger index transactions; timestamps in nanoseconds."""
    summary = MintSummary()
    for tx in transactions:
        op = tx.transaction.operation
        if not isinstance(op, Mint):
            continue
        ts = tx.transaction.timestamp
        summary.observe(op.amount.e8s, ts.timestamp_nanos if ts else None)
    return summary


def summarize_mint_blocks(blocks: Iterable[Dict[str, Any]]) -> MintSummary:
    """
    Mint blocks from the ledger REST API; amounts arrive as strings and
    timestamps (created_at) in seconds. Unparseable amounts are skipped.
    """
    summary = MintSummary()
    for block in blocks:
        if block.get("transfer_type") != "mint":
            continue
        try:
            amount = int(block.get("amount", ""))
        except (TypeError, ValueError):
            logger.debug("Skipping mint block with bad amount: %s", block.get("block_height"))
            continue
        created_at = block.get("created_at")
        summary.observe(amount, int(created_at) if created_at is not None else None)
    return summary
