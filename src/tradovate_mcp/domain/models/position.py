"""Position domain model"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Position:
    """Open position in one contract on one account (domain model)"""

    id: int
    account_id: int
    contract_id: int
    net_pos: int = 0
    net_price: float | None = None
    realized_pnl: float = 0.0
    open_pnl: float = 0.0
    mark_price: float | None = None
    timestamp: str | None = None
    trade_date: dict[str, int] = field(default_factory=dict)

    @property
    def is_flat(self) -> bool:
        return self.net_pos == 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Position":
        return cls(
            id=data["id"],
            account_id=data.get("accountId", 0),
            contract_id=data.get("contractId", 0),
            net_pos=data.get("netPos", 0),
            net_price=data.get("netPrice"),
            realized_pnl=data.get("realizedPnl") or 0.0,
            open_pnl=data.get("openPnl") or 0.0,
            mark_price=data.get("markPrice"),
            timestamp=data.get("timestamp"),
            trade_date=data.get("tradeDate") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "accountId": self.account_id,
            "contractId": self.contract_id,
            "timestamp": self.timestamp,
            "tradeDate": self.trade_date,
            "netPos": self.net_pos,
            "netPrice": self.net_price,
            "realizedPnl": self.realized_pnl,
            "openPnl": self.open_pnl,
            "markPrice": self.mark_price,
        }
