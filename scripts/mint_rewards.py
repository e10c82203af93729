#!/usr/bin/env python3
"""
mint_rewards.py - Mint reward summary for one or more ledger accounts.

Reads mint blocks from the public ledger REST API and prints, per account,
the number of mints, the total in e8s and ICP, and the first/last mint time.

Usage:
    python scripts/mint_rewards.py <account id or principal> [...]
"""

import asyncio
import json
import sys

import httpx

from ledger.account_id import is_valid_account_id, principal_to_account_hex
from ledger.principal import Principal, PrincipalError, looks_like_principal
from pipeline.ingestion.ledger_connector import LedgerConnector, LedgerQueryError
from pipeline.main import get_account_rewards


def _resolve(reference: str) -> str:
    if looks_like_principal(reference):
        return principal_to_account_hex(Principal.from_text(reference))
    return reference.lower()


async def _run(references):
    failures = 0
    async with httpx.AsyncClient() as http:
        ledger = LedgerConnector(http)
        for reference in references:
            try:
                account = _resolve(reference)
            except PrincipalError as e:
                print(f"  ❌  {reference}: invalid principal ({e})")
                failures += 1
                continue
            if not is_valid_account_id(account):
                print(f"  ❌  {reference}: invalid account identifier")
                failures += 1
                continue
            try:
                summary = await get_account_rewards(ledger, account)
            except LedgerQueryError as e:
                print(f"  ❌  {reference}: {e}")
                failures += 1
                continue
            print(f"  ✅  {reference}")
            print(json.dumps({"account": account, **summary.to_dict()}, indent=2))
    return failures


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    failures = asyncio.run(_run(sys.argv[1:]))
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
