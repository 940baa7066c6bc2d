"""Contract domain model"""

from dataclasses import dataclass
from typing import Any


@dataclass
class Contract:
    """Tradovate futures contract (domain model)"""

    id: int
    name: str
    contract_maturity_id: int | None = None
    product_id: int | None = None
    product_type: str | None = None
    description: str | None = None
    status: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Contract":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            contract_maturity_id=data.get("contractMaturityId"),
            product_id=data.get("productId"),
            product_type=data.get("productType"),
            description=data.get("description"),
            status=data.get("status"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "contractMaturityId": self.contract_maturity_id,
            "productId": self.product_id,
            "productType": self.product_type,
            "description": self.description,
            "status": self.status,
        }
