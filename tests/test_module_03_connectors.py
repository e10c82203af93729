"""
Tests for Module 03 — Remote connectors.
Tests the ledger index connector, the ledger REST mint query, the governance
reward connector and the roster fetch, with HTTP mocked by respx.
"""

import json
from unittest.mock import MagicMock

import httpx
import pytest
import respx

from ledger.models import Mint, Transfer
from pipeline.ingestion.governance_connector import (
    GovernanceConnector,
    GovernanceQueryError,
    RewardToAccount,
    RewardToNeuron,
    parse_reward_batches,
)
from pipeline.ingestion.ledger_connector import (
    LEDGER_API_URL,
    LedgerConnector,
    LedgerQueryError,
)
from pipeline.ingestion.roster_connector import fetch_roster, get_roster
from tests.conftest import (
    EXCHANGE_ACCOUNT_1,
    EXCHANGE_ACCOUNT_2,
    LEDGER_ACCOUNT,
    LEDGER_PRINCIPAL,
    ledger_ok,
    reward_batch,
    reward_item,
    tx_mint,
    tx_transfer,
)

BASE_URL = "http://gateway.test"


# ============================================================
# Ledger index
# ============================================================

class TestLedgerConnector:
    @pytest.mark.asyncio
    @respx.mock
    async def test_ok_response_parsed(self):
        payload = ledger_ok(
            balance=5_000,
            transactions=[
                tx_transfer(7, EXCHANGE_ACCOUNT_1, EXCHANGE_ACCOUNT_2, amount=250),
                tx_mint(3, EXCHANGE_ACCOUNT_1, 1_000),
            ],
            oldest_tx_id=3,
        )
        async with httpx.AsyncClient() as http:
            ledger = LedgerConnector(http, base_url=BASE_URL, max_results=50)
            route = respx.post(ledger.query_url).mock(return_value=httpx.Response(200, json=payload))

            result = await ledger.get_account_transactions(EXCHANGE_ACCOUNT_1)

        assert route.called
        body = json.loads(route.calls.last.request.content)
        assert body == {"max_results": 50, "start": None, "account_identifier": EXCHANGE_ACCOUNT_1}

        assert result.balance == 5_000
        assert result.oldest_tx_id == 3
        assert [t.id for t in result.transactions] == [7, 3]
        transfer = result.transactions[0].transaction.operation
        assert isinstance(transfer, Transfer)
        assert transfer.from_ == EXCHANGE_ACCOUNT_1
        assert transfer.amount.e8s == 250
        assert isinstance(result.transactions[1].transaction.operation, Mint)

    def test_query_url_targets_index(self):
        ledger = LedgerConnector(MagicMock(), base_url=BASE_URL + "/")
        assert ledger.query_url == (
            f"{BASE_URL}/canisters/qhbym-qaaaa-aaaaa-aaafq-cai/query/get_account_identifier_transactions"
        )

    @pytest.mark.asyncio
    @respx.mock
    async def test_err_variant_raises_with_message(self):
        async with httpx.AsyncClient() as http:
            ledger = LedgerConnector(http, base_url=BASE_URL)
            respx.post(ledger.query_url).mock(
                return_value=httpx.Response(200, json={"Err": {"message": "account not indexed"}})
            )
            with pytest.raises(LedgerQueryError, match="account not indexed"):
                await ledger.get_account_transactions(EXCHANGE_ACCOUNT_1)

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_error_raises(self):
        async with httpx.AsyncClient() as http:
            ledger = LedgerConnector(http, base_url=BASE_URL)
            respx.post(ledger.query_url).mock(return_value=httpx.Response(500))
            with pytest.raises(LedgerQueryError, match="500"):
                await ledger.get_account_transactions(EXCHANGE_ACCOUNT_1)

    @pytest.mark.asyncio
    @respx.mock
    async def test_network_error_raises(self):
        async with httpx.AsyncClient() as http:
            ledger = LedgerConnector(http, base_url=BASE_URL)
            respx.post(ledger.query_url).mock(side_effect=httpx.ConnectError("refused"))
            with pytest.raises(LedgerQueryError):
                await ledger.get_account_transactions(EXCHANGE_ACCOUNT_1)

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_json_raises(self):
        async with httpx.AsyncClient() as http:
            ledger = LedgerConnector(http, base_url=BASE_URL)
            respx.post(ledger.query_url).mock(return_value=httpx.Response(200, text="not json"))
            with pytest.raises(LedgerQueryError, match="malformed"):
                await ledger.get_account_transactions(EXCHANGE_ACCOUNT_1)

    @pytest.mark.asyncio
    @respx.mock
    async def test_unknown_operation_raises(self):
        bad = ledger_ok(transactions=[{"id": 1, "transaction": {"operation": {"Teleport": {}}}}])
        async with httpx.AsyncClient() as http:
            ledger = LedgerConnector(http, base_url=BASE_URL)
            respx.post(ledger.query_url).mock(return_value=httpx.Response(200, json=bad))
            with pytest.raises(LedgerQueryError):
                await ledger.get_account_transactions(EXCHANGE_ACCOUNT_1)


class TestMintTransactions:
    @pytest.mark.asyncio
    @respx.mock
    async def test_returns_blocks(self):
        url = f"{LEDGER_API_URL.rstrip('/')}/accounts/{LEDGER_ACCOUNT}/transactions"
        blocks = [{"block_height": "1", "amount": "100", "transfer_type": "mint", "created_at": 10}]
        route = respx.get(url).mock(return_value=httpx.Response(200, json={"blocks": blocks, "total": 1}))

        async with httpx.AsyncClient() as http:
            result = await LedgerConnector(http).fetch_mint_transactions(LEDGER_ACCOUNT)

        assert result == blocks
        params = route.calls.last.request.url.params
        assert params["transfer_type"] == "mint"
        assert params["limit"] == "1000"
        assert params["offset"] == "0"

    @pytest.mark.asyncio
    @respx.mock
    async def test_status_error(self):
        url = f"{LEDGER_API_URL.rstrip('/')}/accounts/{LEDGER_ACCOUNT}/transactions"
        respx.get(url).mock(return_value=httpx.Response(404))
        async with httpx.AsyncClient() as http:
            with pytest.raises(LedgerQueryError, match="404"):
                await LedgerConnector(http).fetch_mint_transactions(LEDGER_ACCOUNT)

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_blocks(self):
        url = f"{LEDGER_API_URL.rstrip('/')}/accounts/{LEDGER_ACCOUNT}/transactions"
        respx.get(url).mock(return_value=httpx.Response(200, json={"total": 0}))
        async with httpx.AsyncClient() as http:
            with pytest.raises(LedgerQueryError):
                await LedgerConnector(http).fetch_mint_transactions(LEDGER_ACCOUNT)


# ============================================================
# Governance rewards
# ============================================================

class TestParseRewardBatches:
    def test_parses_batch(self):
        digest_only = bytes.fromhex(LEDGER_ACCOUNT)[4:].hex()
        payload = {"rewards": [
            reward_batch(1_700_000_000, [
                reward_item(LEDGER_PRINCIPAL, 500, reward_account=EXCHANGE_ACCOUNT_1),
                reward_item("other-principal", 700, to_account=digest_only),
            ], permyriad=35_000),
        ]}
        [batch] = parse_reward_batches(payload)

        assert batch.timestamp == 1_700_000_000
        assert batch.xdr_permyriad_per_icp == 35_000
        first, second = batch.rewards
        assert first.provider_id == LEDGER_PRINCIPAL
        assert first.amount_e8s == 500
        assert first.reward_account == EXCHANGE_ACCOUNT_1
        assert first.reward_mode is None
        assert isinstance(second.reward_mode, RewardToAccount)
        assert second.reward_mode.to_account == LEDGER_ACCOUNT

    def test_reward_to_neuron(self):
        item = reward_item(LEDGER_PRINCIPAL, 1)
        item["reward_mode"] = {"RewardToNeuron": {"dissolve_delay_seconds": 86400}}
        [batch] = parse_reward_batches({"rewards": [reward_batch(1, [item])]})
        assert isinstance(batch.rewards[0].reward_mode, RewardToNeuron)
        assert batch.rewards[0].reward_mode.dissolve_delay_seconds == 86400

    def test_missing_rate(self):
        [batch] = parse_reward_batches({"rewards": [reward_batch(1, [])]})
        assert batch.xdr_permyriad_per_icp is None

    def test_malformed_account_hash_dropped(self):
        item = reward_item(LEDGER_PRINCIPAL, 1, reward_account="abcd")
        [batch] = parse_reward_batches({"rewards": [reward_batch(1, [item])]})
        assert batch.rewards[0].reward_account is None

    def test_missing_rewards_list(self):
        with pytest.raises(GovernanceQueryError):
            parse_reward_batches({"nope": []})

    def test_batch_without_timestamp(self):
        with pytest.raises(GovernanceQueryError):
            parse_reward_batches({"rewards": [{"rewards": []}]})

    def test_non_object_reward_entry(self):
        with pytest.raises(GovernanceQueryError, match="reward entry must be an object"):
            parse_reward_batches({"rewards": [reward_batch(1, ["garbage"])]})

    def test_non_object_node_provider(self):
        with pytest.raises(GovernanceQueryError, match="node_provider must be an object"):
            parse_reward_batches({"rewards": [reward_batch(1, [{"node_provider": "abc", "amount_e8s": 1}])]})

    def test_non_object_reward_mode(self):
        item = reward_item(LEDGER_PRINCIPAL, 1)
        item["reward_mode"] = "RewardToAccount"
        with pytest.raises(GovernanceQueryError, match="reward_mode must be an object"):
            parse_reward_batches({"rewards": [reward_batch(1, [item])]})


class TestGovernanceConnector:
    @pytest.mark.asyncio
    @respx.mock
    async def test_sends_date_filter_and_unwraps_ok(self):
        payload = {"Ok": {"rewards": [reward_batch(100, [reward_item(LEDGER_PRINCIPAL, 9)])]}}
        async with httpx.AsyncClient() as http:
            gov = GovernanceConnector(http, base_url=BASE_URL)
            route = respx.post(gov.query_url).mock(return_value=httpx.Response(200, json=payload))
            batches = await gov.list_reward_batches(start_seconds=10, end_seconds=20)

        body = json.loads(route.calls.last.request.content)
        assert body == {"date_filter": {"start_timestamp_seconds": 10, "end_timestamp_seconds": 20}}
        assert len(batches) == 1
        assert batches[0].rewards[0].amount_e8s == 9

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_filter_sends_null(self):
        async with httpx.AsyncClient() as http:
            gov = GovernanceConnector(http, base_url=BASE_URL)
            route = respx.post(gov.query_url).mock(return_value=httpx.Response(200, json={"rewards": []}))
            assert await gov.list_reward_batches() == []
        assert json.loads(route.calls.last.request.content) == {"date_filter": None}

    @pytest.mark.asyncio
    @respx.mock
    async def test_err_variant_raises(self):
        async with httpx.AsyncClient() as http:
            gov = GovernanceConnector(http, base_url=BASE_URL)
            respx.post(gov.query_url).mock(
                return_value=httpx.Response(200, json={"Err": {"message": "not allowed"}})
            )
            with pytest.raises(GovernanceQueryError, match="not allowed"):
                await gov.list_reward_batches()

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_raises(self):
        async with httpx.AsyncClient() as http:
            gov = GovernanceConnector(http, base_url=BASE_URL)
            respx.post(gov.query_url).mock(side_effect=httpx.ReadTimeout("slow"))
            with pytest.raises(GovernanceQueryError, match="timed out"):
                await gov.list_reward_batches()


# ============================================================
# Roster fetch
# ============================================================

class TestFetchRoster:
    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch(self, sample_roster_payload):
        url = "http://roster.test/node-providers"
        respx.get(url).mock(return_value=httpx.Response(200, json=sample_roster_payload))
        async with httpx.AsyncClient() as http:
            roster = await fetch_roster(http, url)
        assert [r.name for r in roster] == ["Acme Corp", "Beta Hosting"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_error_yields_empty(self):
        url = "http://roster.test/node-providers"
        respx.get(url).mock(return_value=httpx.Response(503))
        async with httpx.AsyncClient() as http:
            assert await fetch_roster(http, url) == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_entries_yield_empty(self):
        url = "http://roster.test/node-providers"
        respx.get(url).mock(return_value=httpx.Response(200, json={"node_providers": ["garbage"]}))
        async with httpx.AsyncClient() as http:
            assert await fetch_roster(http, url) == []

    @pytest.mark.asyncio
    async def test_snapshot_file_preferred(self, tmp_path, sample_roster_payload):
        path = tmp_path / "roster.json"
        path.write_text(json.dumps(sample_roster_payload))
        async with httpx.AsyncClient() as http:
            roster = await get_roster(http, str(path))
        assert len(roster) == 2
