"""
Order change-feed events.

Raw change payloads (from model signals or any other feed) are decoded here
into one of three tagged variants before they reach the intake listener:

    OrderInserted        - a new order row
    OrderStatusChanged   - status moved from one value to another
    OrderRejected        - a driver declined the order
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from orders.models import Order
from .exceptions import InvalidChangeEvent

_VALID_STATUSES = {value for value, _ in Order.STATUS_CHOICES}


@dataclass(frozen=True)
class OrderInserted:
    order_id: int


@dataclass(frozen=True)
class OrderStatusChanged:
    order_id: int
    from_status: Optional[str]
    to_status: str
    driver_id: Optional[int] = None


@dataclass(frozen=True)
class OrderRejected:
    order_id: int
    driver_id: int


OrderEvent = Union[OrderInserted, OrderStatusChanged, OrderRejected]


def _require_id(payload: Mapping[str, Any], key: str) -> int:
    value = payload.get(key)
    if value is None or isinstance(value, bool):
        raise InvalidChangeEvent(f"Missing {key} in change payload")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidChangeEvent(f"Invalid {key}: {value!r}")


def _optional_id(payload: Mapping[str, Any], key: str) -> Optional[int]:
    if payload.get(key) is None:
        return None
    return _require_id(payload, key)


def _status(value: Any, key: str, required: bool) -> Optional[str]:
    if value is None and not required:
        return None
    if value not in _VALID_STATUSES:
        raise InvalidChangeEvent(f"Unknown {key}: {value!r}")
    return value


def decode_change(payload: Mapping[str, Any]) -> OrderEvent:
    """
    Decode a loosely shaped change payload into an OrderEvent.

    Expected shapes:
        {"type": "insert", "order_id": 1}
        {"type": "status_changed", "order_id": 1, "from": "pending", "to": "accepted", "driver_id": 7}
        {"type": "rejected", "order_id": 1, "driver_id": 7}

    Raises:
        InvalidChangeEvent: if the payload is malformed
    """
    if not isinstance(payload, Mapping):
        raise InvalidChangeEvent(f"Change payload must be a mapping, got {type(payload).__name__}")

    kind = payload.get("type")
    order_id = _require_id(payload, "order_id")

    if kind == "insert":
        return OrderInserted(order_id=order_id)

    if kind == "status_changed":
        return OrderStatusChanged(
            order_id=order_id,
            from_status=_status(payload.get("from"), "from", required=False),
            to_status=_status(payload.get("to"), "to", required=True),
            driver_id=_optional_id(payload, "driver_id"),
        )

    if kind == "rejected":
        return OrderRejected(order_id=order_id, driver_id=_require_id(payload, "driver_id"))

    raise InvalidChangeEvent(f"Unknown change type: {kind!r}")
