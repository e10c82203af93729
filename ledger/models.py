"""
Ledger wire records.

Dataclasses mirroring the ledger index's account transaction query. Used by
pipeline/ingestion/ledger_connector.py to parse responses and by the report
writers to serialize them back in the same shape.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Union

E8S_PER_ICP = 100_000_000


@dataclass
class Tokens:
    e8s: int

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Tokens"]:
        if data is None:
            return None
        return cls(e8s=int(data["e8s"]))

    def to_dict(self) -> Dict[str, int]:
        return {"e8s": self.e8s}


@dataclass
class TimeStamp:
    timestamp_nanos: int

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["TimeStamp"]:
        if data is None:
            return None
        return cls(timestamp_nanos=int(data["timestamp_nanos"]))

    def to_dict(self) -> Dict[str, int]:
        return {"timestamp_nanos": self.timestamp_nanos}


def _opt(value, to_dict=True):
    if value is None:
        return None
    return value.to_dict() if to_dict else value


# ── Operations (tagged union) ─────────────────────────────────────────────────

@dataclass
class Approve:
    kind: ClassVar[str] = "Approve"
    fee: Tokens
    from_: str
    allowance: Tokens
    spender: str
    expected_allowance: Optional[Tokens] = None
    expires_at: Optional[TimeStamp] = None

    @property
    def accounts(self) -> List[str]:
        return [self.from_, self.spender]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fee": self.fee.to_dict(),
            "from": self.from_,
            "allowance": self.allowance.to_dict(),
            "expected_allowance": _opt(self.expected_allowance),
            "expires_at": _opt(self.expires_at),
            "spender": self.spender,
        }


@dataclass
class Burn:
    kind: ClassVar[str] = "Burn"
    from_: str
    amount: Tokens
    spender: Optional[str] = None

    @property
    def accounts(self) -> List[str]:
        return [self.from_]

    def to_dict(self) -> Dict[str, Any]:
        return {"from": self.from_, "amount": self.amount.to_dict(), "spender": self.spender}


@dataclass
class Mint:
    kind: ClassVar[str] = "Mint"
    to: str
    amount: Tokens

    @property
    def accounts(self) -> List[str]:
        return [self.to]

    def to_dict(self) -> Dict[str, Any]:
        return {"to": self.to, "amount": self.amount.to_dict()}


@dataclass
class Transfer:
    kind: ClassVar[str] = "Transfer"
    to: str
    fee: Tokens
    from_: str
    amount: Tokens
    spender: Optional[str] = None

    @property
    def accounts(self) -> List[str]:
        return [self.from_, self.to]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "to": self.to,
            "fee": self.fee.to_dict(),
            "from": self.from_,
            "amount": self.amount.to_dict(),
            "spender": self.spender,
        }


Operation = Union[Approve, Burn, Mint, Transfer]


def parse_operation(data: Dict[str, Any]) -> Operation:
    """
    Parse a single-key variant such as {"Mint": {"to": ..., "amount": {...}}}.

    Raises:
        ValueError: If the variant tag is unknown or the payload is not a
            single-key mapping.
    """
    if not isinstance(data, dict) or len(data) != 1:
        raise ValueError(f"Operation must be a single-key variant, got {data!r}")

    tag, body = next(iter(data.items()))
    if tag == "Approve":
        return Approve(
            fee=Tokens.from_dict(body["fee"]),
            from_=body["from"],
            allowance=Tokens.from_dict(body["allowance"]),
            spender=body["spender"],
            expected_allowance=Tokens.from_dict(body.get("expected_allowance")),
            expires_at=TimeStamp.from_dict(body.get("expires_at")),
        )
    if tag == "Burn":
        return Burn(
            from_=body["from"],
            amount=Tokens.from_dict(body["amount"]),
            spender=body.get("spender"),
        )
    if tag == "Mint":
        return Mint(to=body["to"], amount=Tokens.from_dict(body["amount"]))
    if tag == "Transfer":
        return Transfer(
            to=body["to"],
            fee=Tokens.from_dict(body["fee"]),
            from_=body["from"],
            amount=Tokens.from_dict(body["amount"]),
            spender=body.get("spender"),
        )
    raise ValueError(f"Unknown operation variant: {tag}")


def operation_to_dict(operation: Operation) -> Dict[str, Any]:
    return {operation.kind: operation.to_dict()}


# ── Transactions ──────────────────────────────────────────────────────────────

@dataclass
class Transaction:
    memo: int
    operation: Operation
    icrc1_memo: Optional[str] = None
    timestamp: Optional[TimeStamp] = None
    created_at_time: Optional[TimeStamp] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        icrc1_memo = data.get("icrc1_memo")
        if isinstance(icrc1_memo, list):
            icrc1_memo = bytes(icrc1_memo).hex()
        return cls(
            memo=int(data.get("memo", 0)),
            operation=parse_operation(data["operation"]),
            icrc1_memo=icrc1_memo,
            timestamp=TimeStamp.from_dict(data.get("timestamp")),
            created_at_time=TimeStamp.from_dict(data.get("created_at_time")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "memo": self.memo,
            "icrc1_memo": self.icrc1_memo,
            "operation": operation_to_dict(self.operation),
            "timestamp": _opt(self.timestamp),
            "created_at_time": _opt(self.created_at_time),
        }


@dataclass
class TransactionWithId:
    id: int
    transaction: Transaction

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransactionWithId":
        return cls(id=int(data["id"]), transaction=Transaction.from_dict(data["transaction"]))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "transaction": self.transaction.to_dict()}


@dataclass
class AccountTransactions:
    """Successful response of get_account_identifier_transactions."""
    balance: int
    transactions: List[TransactionWithId] = field(default_factory=list)
    oldest_tx_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountTransactions":
        oldest = data.get("oldest_tx_id")
        return cls(
            balance=int(data.get("balance", 0)),
            transactions=[TransactionWithId.from_dict(t) for t in data.get("transactions", [])],
            oldest_tx_id=int(oldest) if oldest is not None else None,
        )
