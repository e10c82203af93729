"""Shared test fixtures and payload builders for the reconciliation test suite."""

import pytest

from ledger.principal import Principal
from pipeline.ingestion.registry import Entity, EntityCategory

# Known-good identifiers
MANAGEMENT_PRINCIPAL = "aaaaa-aa"
MANAGEMENT_ACCOUNT = "2d0e897f7e862d2b57d9bc9ea5c65f9a24ac6c074575f47898314b8d6cb0929d"
ANONYMOUS_PRINCIPAL = "2vxsx-fae"
ANONYMOUS_ACCOUNT = "1c7a48ba6a562aa9eaa2481a9049cdf0433b9738c992d698c31d8abf89cadc79"
LEDGER_PRINCIPAL = "ryjl3-tyaaa-aaaaa-aaaba-cai"
LEDGER_ACCOUNT = "883eef7c44be51afe4a4420d4df4beff708f3cf2f5de5efcc9f58680bb0f3690"

EXCHANGE_ACCOUNT_1 = "609d3e1e45103a82adc97d4f88c51f78dedb25701e8e51e8c4fec53448aadc29"
EXCHANGE_ACCOUNT_2 = "220c3a33f90601896e26f76fa619fe288742df1fa75426edfaf759d39f2455a5"
EXCHANGE_ACCOUNT_3 = "efa01544f509c56dd85449edf2381244a48fad1ede5183836229c00ab00d52df"
EXCHANGE_ACCOUNT_4 = "449ce7ad1298e2ed2781ed379aba25efc2748d14c60ede190ad7621724b9e8b2"


def tx_transfer(tx_id, sender, receiver, amount=100_000_000, ts=1_700_000_000_000_000_000):
    return {
        "id": tx_id,
        "transaction": {
            "memo": 0,
            "icrc1_memo": None,
            "operation": {
                "Transfer": {
                    "to": receiver,
                    "fee": {"e8s": 10_000},
                    "from": sender,
                    "amount": {"e8s": amount},
                    "spender": None,
                }
            },
            "timestamp": {"timestamp_nanos": ts},
            "created_at_time": None,
        },
    }


def tx_mint(tx_id, receiver, amount, ts=1_700_000_000_000_000_000):
    return {
        "id": tx_id,
        "transaction": {
            "memo": 0,
            "operation": {"Mint": {"to": receiver, "amount": {"e8s": amount}}},
            "timestamp": {"timestamp_nanos": ts},
        },
    }


def ledger_ok(balance=0, transactions=None, oldest_tx_id=None):
    return {
        "Ok": {
            "balance": balance,
            "transactions": transactions or [],
            "oldest_tx_id": oldest_tx_id,
        }
    }


def reward_item(provider_id, amount_e8s, reward_account=None, to_account=None):
    item = {"node_provider": {"id": provider_id}, "amount_e8s": amount_e8s}
    if reward_account is not None:
        item["node_provider"]["reward_account"] = {"hash": reward_account}
    if to_account is not None:
        item["reward_mode"] = {"RewardToAccount": {"to_account": {"hash": to_account}}}
    return item


def reward_batch(timestamp, rewards, permyriad=None):
    batch = {"timestamp": timestamp, "rewards": rewards}
    if permyriad is not None:
        batch["xdr_conversion_rate"] = {
            "xdr_permyriad_per_icp": permyriad,
            "timestamp_seconds": timestamp,
        }
    return batch


@pytest.fixture()
def exchange_entity():
    return Entity(name="Exchange hot wallet 1", category=EntityCategory.Exchange,
                  account_id=EXCHANGE_ACCOUNT_1)


@pytest.fixture()
def provider_entity():
    return Entity(name="Ledger provider", category=EntityCategory.NodeProvider,
                  principal=Principal.from_text(LEDGER_PRINCIPAL))


@pytest.fixture()
def sample_entities(exchange_entity, provider_entity):
    return [
        exchange_entity,
        provider_entity,
        Entity(name="Management canister", category=EntityCategory.Unknown,
               principal=Principal.from_text(MANAGEMENT_PRINCIPAL)),
    ]


@pytest.fixture()
def sample_roster_payload():
    return {
        "node_providers": [
            {
                "display_name": "Acme Corp",
                "principal_id": LEDGER_PRINCIPAL,
                "locations": [{"key": "ZH1"}, {"key": "ZH2"}],
                "total_nodes": 28,
            },
            {
                "display_name": "Beta Hosting",
                "principal_id": MANAGEMENT_PRINCIPAL,
                "locations_count": 1,
                "total_nodes": "10",
            },
        ]
    }
