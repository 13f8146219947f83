"""Order lifecycle: statuses, actor permissions and transition checks.

The canonical status only moves forward along ``LIFECYCLE``; ``cancelled``
is the one absorbing side exit. Status strings are part of the wire
contract, so new statuses are appended, never renamed.
"""

import enum
from datetime import datetime
from typing import Dict, FrozenSet, Optional, Set, Tuple

from app.errors import AlreadyDecided, NotAuthorized, TransitionConflict, WindowExpired


class OrderStatus(str, enum.Enum):
    """Canonical order status"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    ASSIGNED = "assigned"
    PICKED = "picked"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class RestaurantDecision(str, enum.Enum):
    """Restaurant-side acceptance sub-status"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Actor(str, enum.Enum):
    """Actor classes allowed to mutate an order"""
    CUSTOMER = "customer"
    RESTAURANT = "restaurant"
    DRIVER = "driver"
    STAFF = "staff"
    SYSTEM = "system"


LIFECYCLE = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.ASSIGNED,
    OrderStatus.PICKED,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
]

TERMINAL = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

NON_TERMINAL = frozenset(s for s in OrderStatus if s not in TERMINAL)

# Column written (first write wins) when the order enters a status
TIMESTAMP_FIELDS: Dict[OrderStatus, str] = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.PREPARING: "preparing_at",
    OrderStatus.READY: "ready_at",
    OrderStatus.ASSIGNED: "assigned_at",
    OrderStatus.PICKED: "picked_at",
    OrderStatus.OUT_FOR_DELIVERY: "out_for_delivery_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}

# Status edges each non-staff actor may drive through the generic transition path.
# Accept/reject and customer cancel have their own operations.
ACTOR_EDGES: Dict[Actor, FrozenSet[Tuple[OrderStatus, OrderStatus]]] = {
    Actor.RESTAURANT: frozenset({
        (OrderStatus.CONFIRMED, OrderStatus.PREPARING),
        (OrderStatus.CONFIRMED, OrderStatus.READY),
        (OrderStatus.PREPARING, OrderStatus.READY),
    }),
    Actor.DRIVER: frozenset({
        (OrderStatus.READY, OrderStatus.ASSIGNED),
        (OrderStatus.ASSIGNED, OrderStatus.PICKED),
        (OrderStatus.PICKED, OrderStatus.OUT_FOR_DELIVERY),
        (OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED),
    }),
    Actor.CUSTOMER: frozenset(),
}

# Statuses that show up on the driver portal
DRIVER_VISIBLE = frozenset({
    OrderStatus.READY,
    OrderStatus.ASSIGNED,
    OrderStatus.PICKED,
    OrderStatus.OUT_FOR_DELIVERY,
})

# Customer edits are allowed only before the kitchen starts
EDITABLE = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})


def rank(status: OrderStatus) -> int:
    """Position along the lifecycle; cancelled ranks after everything"""
    status = OrderStatus(status)
    if status == OrderStatus.CANCELLED:
        return len(LIFECYCLE)
    return LIFECYCLE.index(status)


def is_terminal(status) -> bool:
    return OrderStatus(status) in TERMINAL


def sources_for(target: OrderStatus, actor: Actor) -> Set[OrderStatus]:
    """Statuses from which ``actor`` may move an order to ``target``.

    Used both to validate a request and as the conditional ``WHERE status IN``
    guard of the UPDATE, so a concurrent writer cannot regress the status.
    """
    target = OrderStatus(target)
    if actor in (Actor.STAFF, Actor.SYSTEM):
        if target == OrderStatus.CANCELLED:
            return set(NON_TERMINAL)
        return {s for s in NON_TERMINAL if rank(s) < rank(target)}
    edges = ACTOR_EDGES.get(actor, frozenset())
    return {src for (src, dst) in edges if dst == target}


def check_transition(current, target, actor: Actor) -> bool:
    """Validate a status change.

    Returns ``True`` when the change must be written and ``False`` for an
    idempotent repeat of a non-terminal status (nothing to write, timestamps
    stay as they are). Raises when the change is not allowed.
    """
    current = OrderStatus(current)
    target = OrderStatus(target)

    if current in TERMINAL:
        raise AlreadyDecided(f"Order already {current.value}")

    if current == target:
        return False

    if actor not in (Actor.STAFF, Actor.SYSTEM):
        if (current, target) not in ACTOR_EDGES.get(actor, frozenset()):
            if any(dst == target for (_, dst) in ACTOR_EDGES.get(actor, frozenset())):
                raise TransitionConflict(
                    f"Cannot move order from {current.value} to {target.value}"
                )
            raise NotAuthorized(f"{actor.value} may not set status {target.value}")
        return True

    if target != OrderStatus.CANCELLED and rank(target) < rank(current):
        raise TransitionConflict(
            f"Status cannot go back from {current.value} to {target.value}"
        )
    return True


def check_customer_window(
    status,
    cancel_cutoff_at: Optional[datetime],
    now: datetime,
    action: str = "cancel",
) -> None:
    """Customer cancel/edit guard: non-terminal and strictly before cutoff"""
    status = OrderStatus(status)
    if status in TERMINAL:
        raise AlreadyDecided(f"Order already {status.value}")
    if cancel_cutoff_at is None or now >= cancel_cutoff_at:
        raise WindowExpired(f"{action.capitalize()} window expired. Please contact support.")
    if action == "edit" and status not in EDITABLE:
        raise TransitionConflict("Order can no longer be edited")


def check_restaurant_decision(decision) -> None:
    """A restaurant decides once; repeats get an explicit signal"""
    decision = RestaurantDecision(decision or RestaurantDecision.PENDING)
    if decision != RestaurantDecision.PENDING:
        raise AlreadyDecided(f"Order already {decision.value}")
