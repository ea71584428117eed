"""Order state machine.

    PENDING → RIDER_ASSIGNED → PICKED_UP → ON_THE_WAY → DELIVERED → COMPLETED

Each transition has exactly one trigger:
  PENDING → RIDER_ASSIGNED   rider accepts (compare-and-set on rider_id IS NULL)
  RIDER_ASSIGNED → … → DELIVERED   the assigned rider, one step at a time
  DELIVERED → COMPLETED      buyer confirms; escrow is released in the same transaction
``is_disputed`` is an orthogonal flag that blocks confirmation while set.
"""

from src.cm_common.enums import OrderStatus
from src.cm_common.errors import InvalidStatusTransitionError

RIDER_STATUS_SEQUENCE: tuple[OrderStatus, ...] = (
    OrderStatus.RIDER_ASSIGNED,
    OrderStatus.PICKED_UP,
    OrderStatus.ON_THE_WAY,
    OrderStatus.DELIVERED,
)

RIDER_SETTABLE_STATUSES = frozenset(RIDER_STATUS_SEQUENCE[1:])

DISPUTABLE_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.COMPLETED})


def next_rider_status(current: str) -> OrderStatus | None:
    try:
        idx = RIDER_STATUS_SEQUENCE.index(OrderStatus(current))
    except ValueError:
        return None
    if idx + 1 >= len(RIDER_STATUS_SEQUENCE):
        return None
    return RIDER_STATUS_SEQUENCE[idx + 1]


def validate_rider_transition(current: str, requested: str) -> OrderStatus:
    """Return the requested status if it is the immediate successor of current.

    Skipping a step (RIDER_ASSIGNED → DELIVERED) or moving backwards is refused.
    """
    if requested not in RIDER_SETTABLE_STATUSES:
        raise InvalidStatusTransitionError(current, requested)
    expected = next_rider_status(current)
    if expected is None or expected != requested:
        raise InvalidStatusTransitionError(current, requested)
    return expected
