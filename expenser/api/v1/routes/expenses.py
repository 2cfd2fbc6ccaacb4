from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from expenser.api.v1.dependencies import get_current_user_id, get_member_trip
from expenser.db.database import get_db
from expenser.models.trips import Trip
from expenser.services.expense_service import (
    create_expense, get_expense, get_trip_expenses, delete_expense
)
from expenser.services.trip_service import is_trip_participant
from expenser.schemas.expense_schema import ExpenseCreate, ExpenseOut

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.post("/trips/{trip_id}", response_model=ExpenseOut)
def create_new_expense(
    expense_data: ExpenseCreate,
    trip: Trip = Depends(get_member_trip),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Add an expense to a trip"""
    return create_expense(db, trip.id, expense_data, user_id)


@router.get("/trips/{trip_id}", response_model=List[ExpenseOut])
def get_trip_expenses_list(
    trip: Trip = Depends(get_member_trip),
    db: Session = Depends(get_db)
):
    """Get all expenses for a trip"""
    return get_trip_expenses(db, trip.id)


@router.get("/{expense_id}", response_model=ExpenseOut)
def get_expense_details(
    expense_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Get expense details"""
    expense = get_expense(db, expense_id)
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")

    if not is_trip_participant(db, expense.trip_id, user_id):
        raise HTTPException(status_code=403, detail="You are not a participant of this trip")

    return expense


@router.delete("/{expense_id}")
def delete_existing_expense(
    expense_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Delete an expense (payer or trip admin only)"""
    delete_expense(db, expense_id, user_id)
    return {"message": "Expense deleted successfully"}
