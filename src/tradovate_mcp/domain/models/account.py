"""Account domain model"""

from dataclasses import dataclass
from typing import Any


@dataclass
class Account:
    """Tradovate trading account (domain model)"""

    id: int
    name: str
    user_id: int | None = None
    account_type: str | None = None
    active: bool = True
    clearing_house_id: int | None = None
    risk_category_id: int | None = None
    auto_liq_profile_id: int | None = None
    margin_account_type: str | None = None
    legal_status: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Account":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            user_id=data.get("userId"),
            account_type=data.get("accountType"),
            active=data.get("active", True),
            clearing_house_id=data.get("clearingHouseId"),
            risk_category_id=data.get("riskCategoryId"),
            auto_liq_profile_id=data.get("autoLiqProfileId"),
            margin_account_type=data.get("marginAccountType"),
            legal_status=data.get("legalStatus"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "userId": self.user_id,
            "accountType": self.account_type,
            "active": self.active,
            "clearingHouseId": self.clearing_house_id,
            "riskCategoryId": self.risk_category_id,
            "autoLiqProfileId": self.auto_liq_profile_id,
            "marginAccountType": self.margin_account_type,
            "legalStatus": self.legal_status,
        }
