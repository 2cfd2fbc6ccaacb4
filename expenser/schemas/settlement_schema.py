from pydantic import BaseModel, Field
from typing import List
from decimal import Decimal


class Transfer(BaseModel):
    from_user_id: str
    to_user_id: str
    amount: Decimal = Field(..., gt=0)
    currency: str


class BalanceSummary(BaseModel):
    user_id: str
    total_paid: Decimal
    total_share: Decimal
    net_balance: Decimal


class SettlementExplanation(BaseModel):
    settlements: List[Transfer]
    logs: List[str]
