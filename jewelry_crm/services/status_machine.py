"""
Order status state machine

pending -> confirmed -> delivered
   |           |
   +-----------+--> cancelled

delivered and cancelled are terminal. Entering confirmed deducts inventory;
leaving confirmed for cancelled restocks it.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Union


class OrderState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderState.DELIVERED, OrderState.CANCELLED)


ALLOWED_TRANSITIONS: Dict[OrderState, FrozenSet[OrderState]] = {
    OrderState.PENDING: frozenset({OrderState.CONFIRMED, OrderState.CANCELLED}),
    OrderState.CONFIRMED: frozenset({OrderState.DELIVERED, OrderState.CANCELLED}),
    OrderState.DELIVERED: frozenset(),
    OrderState.CANCELLED: frozenset(),
}


class InventoryEffect(str, Enum):
    DEDUCT = "deduct"
    RESTOCK = "restock"


@dataclass(frozen=True)
class Ok:
    """Accepted transition; changed is False when target equals current"""
    state: OrderState
    changed: bool = True
    effect: Optional[InventoryEffect] = None


@dataclass(frozen=True)
class InvalidTransition:
    current: OrderState
    target: OrderState
    reason: str


TransitionResult = Union[Ok, InvalidTransition]


def parse_state(code: str) -> Optional[OrderState]:
    """Map a status code to a state, None if unknown"""
    try:
        return OrderState(code)
    except ValueError:
        return None


def transition(current: OrderState, target: OrderState) -> TransitionResult:
    """Decide whether an order may move from current to target"""
    if current == target:
        return Ok(current, changed=False)

    if current.is_terminal:
        return InvalidTransition(current, target, f"'{current.value}' is a terminal status")

    if target not in ALLOWED_TRANSITIONS[current]:
        allowed = ", ".join(sorted(s.value for s in ALLOWED_TRANSITIONS[current]))
        return InvalidTransition(current, target, f"allowed targets are: {allowed}")

    effect = None
    if target == OrderState.CONFIRMED:
        effect = InventoryEffect.DEDUCT
    elif current == OrderState.CONFIRMED and target == OrderState.CANCELLED:
        effect = InventoryEffect.RESTOCK

    return Ok(target, changed=True, effect=effect)
