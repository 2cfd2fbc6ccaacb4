from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import Annotated, Optional, List, Dict
from datetime import datetime
from decimal import Decimal
from enum import Enum
from expenser.config import settings


class SplitType(str, Enum):
    equal = "equal"
    custom = "custom"
    percentage = "percentage"


class ExpenseCategory(str, Enum):
    food = "food"
    transport = "transport"
    accommodation = "accommodation"
    entertainment = "entertainment"
    shopping = "shopping"
    utilities = "utilities"
    other = "other"


# Matches the DECIMAL(10, 2) columns so stored values equal validated ones
Money = Annotated[Decimal, Field(max_digits=10, decimal_places=2)]


class ExpenseBase(BaseModel):
    description: str = Field(..., max_length=200)
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    currency: str = Field(default_factory=lambda: settings.default_currency, min_length=3, max_length=3)
    category: ExpenseCategory = ExpenseCategory.other
    split_among: List[str] = Field(..., min_length=1)
    split_type: SplitType = SplitType.equal
    # Monetary shares for custom splits, percentages of amount for percentage splits
    custom_split: Optional[Dict[str, Money]] = None
    receipt_url: Optional[str] = None


class ExpenseCreate(ExpenseBase):
    # Defaults to the requesting user
    paid_by: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("split_among")
    @classmethod
    def dedupe_split_among(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def check_custom_split(self):
        if self.split_type != SplitType.equal and not self.custom_split:
            raise ValueError(f"custom_split is required for {self.split_type.value} splits")
        return self


class ExpenseOut(ExpenseBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    trip_id: str
    paid_by: str
    created_at: datetime
    updated_at: datetime
