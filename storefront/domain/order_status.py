# storefront/domain/order_status.py
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


# kolejnosc statusow "do przodu"
FORWARD_FLOW = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]

# z tych statusow admin moze anulowac (z przywroceniem stanu magazynu)
ADMIN_CANCELLABLE = {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.SHIPPED}

TERMINAL = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

# statusy liczone do przychodu
REVENUE_STATUSES = [OrderStatus.CONFIRMED, OrderStatus.SHIPPED, OrderStatus.DELIVERED]


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    if current in TERMINAL or current == new:
        return False

    if new == OrderStatus.CANCELLED:
        return current in ADMIN_CANCELLABLE

    return FORWARD_FLOW.index(new) > FORWARD_FLOW.index(current)
