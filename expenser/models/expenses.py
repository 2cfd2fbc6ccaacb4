import uuid
from sqlalchemy.sql import func
from sqlalchemy import Column, String, DateTime, DECIMAL, Enum, ForeignKey, JSON
from expenser.db.database import Base
from expenser.schemas.expense_schema import ExpenseCategory, SplitType


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), unique=True, nullable=False)
    trip_id = Column(String, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(String(200), nullable=False)
    amount = Column(DECIMAL(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    category = Column(Enum(ExpenseCategory), nullable=False, default=ExpenseCategory.other)
    paid_by = Column(String, nullable=False, index=True)  # Reference to user service
    split_among = Column(JSON, nullable=False)  # List of user ids
    split_type = Column(Enum(SplitType), nullable=False, default=SplitType.equal)
    custom_split = Column(JSON, nullable=True)  # user id -> amount or percentage, stored as strings
    receipt_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
