"""Order domain model"""

from dataclasses import dataclass
from typing import Any

ORDER_TYPES = ("Market", "Limit", "Stop", "StopLimit")
ORDER_ACTIONS = ("Buy", "Sell")


@dataclass
class Order:
    """Working or historical order (domain model)"""

    id: int
    account_id: int
    contract_id: int
    action: str
    order_qty: int
    order_type: str
    ord_status: str = "Working"
    price: float | None = None
    stop_price: float | None = None
    timestamp: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Order":
        return cls(
            id=data["id"],
            account_id=data.get("accountId", 0),
            contract_id=data.get("contractId", 0),
            action=data.get("action", ""),
            order_qty=data.get("orderQty", 0),
            order_type=data.get("orderType", ""),
            ord_status=data.get("ordStatus", "Working"),
            price=data.get("price"),
            stop_price=data.get("stopPrice"),
            timestamp=data.get("timestamp"),
        )

    def to_dict(self) -> dict[str, Any]:
        result = {
            "id": self.id,
            "accountId": self.account_id,
            "contractId": self.contract_id,
            "timestamp": self.timestamp,
            "action": self.action,
            "ordStatus": self.ord_status,
            "orderQty": self.order_qty,
            "orderType": self.order_type,
        }
        if self.price is not None:
            result["price"] = self.price
        if self.stop_price is not None:
            result["stopPrice"] = self.stop_price
        return result


def validate_order_prices(
    order_type: str, price: float | None, stop_price: float | None
) -> None:
    """Check the prices an order type needs are present

    Raises:
        ValueError: On an unknown order type or a missing price
    """
    if order_type not in ORDER_TYPES:
        raise ValueError(
            f"Unsupported order type {order_type!r}, expected one of {ORDER_TYPES}"
        )
    if order_type in ("Limit", "StopLimit") and price is None:
        raise ValueError("Price is required for Limit and StopLimit orders")
    if order_type in ("Stop", "StopLimit") and stop_price is None:
        raise ValueError("Stop price is required for Stop and StopLimit orders")
