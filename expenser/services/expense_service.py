import logging
from sqlalchemy.orm import Session
from fastapi import HTTPException
from typing import List, Optional
from decimal import Decimal
from expenser.config import settings
from expenser.models.expenses import Expense
from expenser.schemas.expense_schema import ExpenseCreate, SplitType

logger = logging.getLogger(__name__)


def validate_split(expense_data: ExpenseCreate, tolerance: Optional[Decimal] = None) -> None:
    """
    Reject splits whose shares don't add up.

    The settlement engine accepts inconsistent custom splits and simply produces
    skewed balances, so expenses are checked here before they are stored.
    """
    tolerance = settings.settlement_tolerance if tolerance is None else tolerance

    if expense_data.split_type == SplitType.equal:
        return

    custom_split = expense_data.custom_split or {}
    unknown = set(custom_split) - set(expense_data.split_among)
    if unknown:
        raise HTTPException(
            status_code=400,
            detail=f"custom_split has entries for users outside split_among: {sorted(unknown)}"
        )

    if any(value < 0 for value in custom_split.values()):
        raise HTTPException(status_code=400, detail="Shares cannot be negative")

    total = sum((custom_split.get(user_id, Decimal("0")) for user_id in expense_data.split_among), Decimal("0"))

    if expense_data.split_type == SplitType.custom:
        if abs(total - expense_data.amount) > tolerance:
            raise HTTPException(status_code=400, detail="Total custom shares must equal expense amount")
    elif abs(total - Decimal("100")) > tolerance:
        raise HTTPException(status_code=400, detail="Percentages must add up to 100")


def create_expense(db: Session, trip_id: str, expense_data: ExpenseCreate, user_id: str) -> Expense:
    """Create a new expense in a trip"""
    from .trip_service import is_trip_participant, get_trip_participants

    if not is_trip_participant(db, trip_id, user_id):
        raise HTTPException(status_code=403, detail="Only trip participants can add expenses")

    paid_by = expense_data.paid_by or user_id
    participant_ids = {participant.user_id for participant in get_trip_participants(db, trip_id)}

    # Validate payer is a participant
    if paid_by not in participant_ids:
        raise HTTPException(status_code=400, detail=f"User {paid_by} is not a participant of this trip")

    # Validate all split recipients are participants
    for split_user_id in expense_data.split_among:
        if split_user_id not in participant_ids:
            raise HTTPException(status_code=400, detail=f"User {split_user_id} is not a participant of this trip")

    validate_split(expense_data)

    custom_split = None
    if expense_data.custom_split is not None:
        custom_split = {key: str(value) for key, value in expense_data.custom_split.items()}

    expense = Expense(
        trip_id=trip_id,
        description=expense_data.description,
        amount=expense_data.amount,
        currency=expense_data.currency,
        category=expense_data.category,
        paid_by=paid_by,
        split_among=list(expense_data.split_among),
        split_type=expense_data.split_type,
        custom_split=custom_split,
        receipt_url=expense_data.receipt_url
    )
    db.add(expense)
    db.commit()
    db.refresh(expense)
    logger.info(f"Expense {expense.id} of {expense.amount} {expense.currency} added to trip {trip_id}")
    return expense


def get_expense(db: Session, expense_id: str) -> Optional[Expense]:
    """Get an expense by ID"""
    return db.query(Expense).filter(Expense.id == expense_id).first()


def get_trip_expenses(db: Session, trip_id: str) -> List[Expense]:
    """Get all expenses for a trip, oldest first"""
    return db.query(Expense)\
        .filter(Expense.trip_id == trip_id)\
        .order_by(Expense.created_at, Expense.id)\
        .all()


def delete_expense(db: Session, expense_id: str, user_id: str):
    """Delete an expense (payer or trip admin only)"""
    from .trip_service import is_trip_admin

    expense = get_expense(db, expense_id)
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")

    # Check permissions
    is_admin = is_trip_admin(db, expense.trip_id, user_id)
    if expense.paid_by != user_id and not is_admin:
        raise HTTPException(status_code=403, detail="Only the payer or a trip admin can delete expense")

    db.delete(expense)
    db.commit()
