"""
Transfer graph between registry accounts.

Nodes are registry accounts (id = account identifier, label = name, group =
category). Links come from Transfer operations whose sender and receiver both
belong to known accounts; alternate payout accounts resolve to their owner.
Links are merged per account pair and carry a direction relative to the
(source, target) order: SEND, RECEIVE or BOTH.
"""

import enum
from typing import Any, Dict, List, Tuple

from ledger.models import Transfer


class Direction(str, enum.Enum):
    SEND = "SEND"
    RECEIVE = "RECEIVE"
    BOTH = "BOTH"


def build_graph(activities) -> Dict[str, List[Dict[str, Any]]]:
    """
    Args:
        activities: AccountActivity objects from the TransactionCollector.

    Returns:
        {"nodes": [...], "links": [...]}
    """
    owner: Dict[str, str] = {}
    nodes = []
    for activity in activities:
        owner[activity.account] = activity.account
        for extra in activity.extra_accounts:
            owner.setdefault(extra, activity.account)
        nodes.append({
            "id": activity.account,
            "label": activity.name,
            "group": activity.category,
        })

    # (source, target) ordered pair -> Direction
    pairs: Dict[Tuple[str, str], Direction] = {}
    for activity in activities:
        for tx in activity.transactions:
            op = tx.transaction.operation
            if not isinstance(op, Transfer):
                continue
            sender = owner.get(op.from_)
            receiver = owner.get(op.to)
            if sender is None or receiver is None or sender == receiver:
                continue

            key = tuple(sorted((sender, receiver)))
            direction = Direction.SEND if key == (sender, receiver) else Direction.RECEIVE
            existing = pairs.get(key)
            if existing is None:
                pairs[key] = direction
            elif existing != direction:
                pairs[key] = Direction.BOTH

    links = [
        {"source": source, "target": target, "direction": direction.value}
        for (source, target), direction in sorted(pairs.items())
    ]
    return {"nodes": nodes, "links": links}
