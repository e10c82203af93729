"""
Ledger index connector.

Read-only queries against the ledger index through a JSON query gateway:

    POST {LEDGER_GATEWAY_URL}/canisters/{INDEX_CANISTER_ID}/query/get_account_identifier_transactions
    {"max_results": 10000, "start": null, "account_identifier": "<64 hex>"}

The gateway answers {"Ok": {...}} or {"Err": {"message": "..."}}. Every
failure (transport, HTTP status, malformed body, typed error) is raised as
LedgerQueryError with the original message preserved.

Also fetches mint history from the public ledger REST API.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx
from dotenv import load_dotenv

from ledger.models import AccountTransactions

load_dotenv()

logger = logging.getLogger(__name__)

LEDGER_GATEWAY_URL = os.environ.get("LEDGER_GATEWAY_URL", "http://localhost:8090")
LEDGER_API_URL = os.environ.get("LEDGER_API_URL", "https://ledger-api.internetcomputer.org")
INDEX_CANISTER_ID = "qhbym-qaaaa-aaaaa-aaafq-cai"
QUERY_METHOD = "get_account_identifier_transactions"
DEFAULT_MAX_RESULTS = 10_000
REQUEST_TIMEOUT = 30  # seconds


class LedgerQueryError(RuntimeError):
    """A ledger query failed; the message is kept for diagnostics."""


def _decode_result(account_identifier: str, payload: Any) -> AccountTransactions:
    if not isinstance(payload, dict):
        raise LedgerQueryError(f"Malformed ledger response for {account_identifier}")

    if "Err" in payload:
        err = payload["Err"] or {}
        message = err.get("message", "unknown error") if isinstance(err, dict) else str(err)
        raise LedgerQueryError(f"Ledger error for {account_identifier}: {message}")

    if "Ok" not in payload:
        raise LedgerQueryError(f"Ledger response for {account_identifier} has neither Ok nor Err")

    try:
        return AccountTransactions.from_dict(payload["Ok"])
    except (KeyError, TypeError, ValueError) as exc:
        raise LedgerQueryError(
            f"Could not parse ledger response for {account_identifier}: {exc}"
        ) from exc


class LedgerConnector:
    """
    Async client for account transaction queries.

    The httpx.AsyncClient is owned by the caller and may be shared by
    concurrent queries.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: Optional[str] = None,
        max_results: int = DEFAULT_MAX_RESULTS,
    ):
        self._http = http
        self.base_url = (base_url or LEDGER_GATEWAY_URL).rstrip("/")
        self.max_results = max_results

    @property
    def query_url(self) -> str:
        return f"{self.base_url}/canisters/{INDEX_CANISTER_ID}/query/{QUERY_METHOD}"

    async def get_account_transactions(
        self,
        account_identifier: str,
        start: Optional[int] = None,
    ) -> AccountTransactions:
        """
        Fetch balance and transactions for one account identifier.

        Args:
            account_identifier: 64-character hex identifier.
            start: Optional transaction id to page from.

        Returns:
            AccountTransactions.

        Raises:
            LedgerQueryError: On any transport or application failure.
        """
        request = {
            "max_results": self.max_results,
            "start": start,
            "account_identifier": account_identifier,
        }
        logger.info("Fetching transactions for account %s", account_identifier)

        try:
            resp = await self._http.post(self.query_url, json=request, timeout=REQUEST_TIMEOUT)
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            raise LedgerQueryError(f"Ledger query timed out for {account_identifier}") from exc
        except httpx.HTTPStatusError as exc:
            raise LedgerQueryError(
                f"Ledger HTTP error {exc.response.status_code} for {account_identifier}"
            ) from exc
        except httpx.RequestError as exc:
            raise LedgerQueryError(f"Ledger network error for {account_identifier}: {exc}") from exc

        try:
            payload = resp.json()
        except ValueError as exc:
            raise LedgerQueryError(f"Ledger returned malformed JSON for {account_identifier}") from exc

        result = _decode_result(account_identifier, payload)
        logger.info(
            "Fetched %d transactions for account %s (balance=%d)",
            len(result.transactions), account_identifier, result.balance,
        )
        return result

    async def fetch_mint_transactions(self, account_identifier: str) -> List[Dict[str, Any]]:
        """
        Fetch mint blocks for an account from the public ledger REST API.

        Returns:
            The raw "blocks" list (block_height, amount, created_at, ...).

        Raises:
            LedgerQueryError: On any transport failure or malformed body.
        """
        url = f"{LEDGER_API_URL.rstrip('/')}/accounts/{account_identifier}/transactions"
        params = {"limit": 1000, "offset": 0, "transfer_type": "mint"}

        try:
            resp = await self._http.get(
                url, params=params, headers={"accept": "application/json"},
                timeout=REQUEST_TIMEOUT,
            )
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as exc:
            raise LedgerQueryError(
                f"Ledger API returned status code {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise LedgerQueryError(f"Ledger API request failed: {exc}") from exc
        except ValueError as exc:
            raise LedgerQueryError("Ledger API returned malformed JSON") from exc

        blocks = payload.get("blocks") if isinstance(payload, dict) else None
        if not isinstance(blocks, list):
            raise LedgerQueryError(f"Ledger API response for {account_identifier} has no blocks")

        logger.info("Fetched %d mint transactions for account %s", len(blocks), account_identifier)
        return blocks
