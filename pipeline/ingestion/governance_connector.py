"""
Governance reward connector.

Fetches monthly node provider reward batches through the JSON query gateway:

    POST {GOVERNANCE_GATEWAY_URL}/canisters/{GOVERNANCE_CANISTER_ID}/query/list_node_provider_rewards
    {"date_filter": {"start_timestamp_seconds": ..., "end_timestamp_seconds": ...} | null}

Returns RewardBatch dataclasses with payout accounts normalized to 64-char hex.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import httpx
from dotenv import load_dotenv

from ledger.account_id import normalize_account_hash

load_dotenv()

logger = logging.getLogger(__name__)

GOVERNANCE_GATEWAY_URL = os.environ.get("GOVERNANCE_GATEWAY_URL", "http://localhost:8090")
GOVERNANCE_CANISTER_ID = "rrkah-fqaaa-aaaaa-aaaaq-cai"
QUERY_METHOD = "list_node_provider_rewards"
REQUEST_TIMEOUT = 30  # seconds


class GovernanceQueryError(RuntimeError):
    """The governance reward query failed."""


@dataclass
class XdrConversionRate:
    xdr_permyriad_per_icp: Optional[int] = None
    timestamp_seconds: Optional[int] = None


@dataclass
class RewardToNeuron:
    dissolve_delay_seconds: int = 0


@dataclass
class RewardToAccount:
    to_account: Optional[str] = None  # 64-char hex


RewardMode = Optional[Union[RewardToNeuron, RewardToAccount]]


@dataclass
class ProviderReward:
    """One reward line inside a monthly batch."""
    amount_e8s: int
    provider_id: Optional[str] = None      # principal text
    reward_account: Optional[str] = None   # 64-char hex
    reward_mode: RewardMode = None


@dataclass
class RewardBatch:
    """Rewards distributed for one monthly period."""
    timestamp: int
    xdr_conversion_rate: Optional[XdrConversionRate] = None
    rewards: List[ProviderReward] = field(default_factory=list)

    @property
    def xdr_permyriad_per_icp(self) -> Optional[int]:
        if self.xdr_conversion_rate is None:
            return None
        return self.xdr_conversion_rate.xdr_permyriad_per_icp


def _account_hash(value: Optional[Dict[str, Any]]) -> Optional[str]:
    """Extract {"hash": ...} account identifiers; None when absent or malformed."""
    if not value:
        return None
    raw = value.get("hash") if isinstance(value, dict) else value
    normalized = normalize_account_hash(raw)
    if raw is not None and normalized is None:
        logger.warning("Ignoring malformed account hash in reward record: %r", raw)
    return normalized


def _parse_reward_mode(data: Optional[Dict[str, Any]]) -> RewardMode:
    if not data:
        return None
    if not isinstance(data, dict):
        raise TypeError(f"reward_mode must be an object, got {type(data).__name__}")
    if "RewardToNeuron" in data:
        body = data["RewardToNeuron"] or {}
        return RewardToNeuron(dissolve_delay_seconds=int(body.get("dissolve_delay_seconds", 0)))
    if "RewardToAccount" in data:
        body = data["RewardToAccount"] or {}
        return RewardToAccount(to_account=_account_hash(body.get("to_account")))
    logger.warning("Unknown reward mode: %s", list(data))
    return None


def _parse_provider_reward(data: Dict[str, Any]) -> ProviderReward:
    if not isinstance(data, dict):
        raise TypeError(f"reward entry must be an object, got {type(data).__name__}")
    provider = data.get("node_provider") or {}
    if not isinstance(provider, dict):
        raise TypeError(f"node_provider must be an object, got {type(provider).__name__}")
    return ProviderReward(
        amount_e8s=int(data.get("amount_e8s", 0)),
        provider_id=provider.get("id"),
        reward_account=_account_hash(provider.get("reward_account")),
        reward_mode=_parse_reward_mode(data.get("reward_mode")),
    )


def _parse_rate(data: Optional[Dict[str, Any]]) -> Optional[XdrConversionRate]:
    if not data:
        return None
    rate = data.get("xdr_permyriad_per_icp")
    ts = data.get("timestamp_seconds")
    return XdrConversionRate(
        xdr_permyriad_per_icp=int(rate) if rate is not None else None,
        timestamp_seconds=int(ts) if ts is not None else None,
    )


def parse_reward_batches(payload: Any) -> List[RewardBatch]:
    """
    Parse the list_node_provider_rewards response body.

    Raises:
        GovernanceQueryError: If the payload does not have the expected shape.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("rewards"), list):
        raise GovernanceQueryError("Governance response missing 'rewards' list")

    batches = []
    try:
        for item in payload["rewards"]:
            batches.append(RewardBatch(
                timestamp=int(item["timestamp"]),
                xdr_conversion_rate=_parse_rate(item.get("xdr_conversion_rate")),
                rewards=[_parse_provider_reward(r) for r in item.get("rewards", [])],
            ))
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise GovernanceQueryError(f"Malformed reward batch: {exc}") from exc
    return batches


class GovernanceConnector:
    """Async client for the governance reward query."""

    def __init__(self, http: httpx.AsyncClient, base_url: Optional[str] = None):
        self._http = http
        self.base_url = (base_url or GOVERNANCE_GATEWAY_URL).rstrip("/")

    @property
    def query_url(self) -> str:
        return f"{self.base_url}/canisters/{GOVERNANCE_CANISTER_ID}/query/{QUERY_METHOD}"

    async def list_reward_batches(
        self,
        start_seconds: Optional[int] = None,
        end_seconds: Optional[int] = None,
    ) -> List[RewardBatch]:
        """
        Fetch monthly reward batches, optionally restricted to a date range.

        Raises:
            GovernanceQueryError: On transport failure or malformed response.
        """
        date_filter = None
        if start_seconds is not None or end_seconds is not None:
            date_filter = {
                "start_timestamp_seconds": start_seconds,
                "end_timestamp_seconds": end_seconds,
            }

        try:
            resp = await self._http.post(
                self.query_url, json={"date_filter": date_filter}, timeout=REQUEST_TIMEOUT,
            )
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            raise GovernanceQueryError("Governance reward query timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise GovernanceQueryError(
                f"Governance HTTP error {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise GovernanceQueryError(f"Governance network error: {exc}") from exc

        try:
            payload = resp.json()
        except ValueError as exc:
            raise GovernanceQueryError("Governance returned malformed JSON") from exc

        if isinstance(payload, dict) and "Err" in payload:
            raise GovernanceQueryError(f"Governance error: {payload['Err']}")
        if isinstance(payload, dict) and "Ok" in payload:
            payload = payload["Ok"]

        batches = parse_reward_batches(payload)
        logger.info("Fetched %d reward batches from governance", len(batches))
        return batches
