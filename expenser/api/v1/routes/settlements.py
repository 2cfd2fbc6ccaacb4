from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from expenser.api.v1.dependencies import get_member_trip
from expenser.db.database import get_db
from expenser.models.trips import Trip
from expenser.services.settlement_service import (
    get_trip_settlements, get_trip_balances, explain_trip_settlements
)
from expenser.schemas.settlement_schema import Transfer, BalanceSummary, SettlementExplanation

router = APIRouter(prefix="/settlements", tags=["settlements"])


@router.get("/trips/{trip_id}", response_model=List[Transfer])
def get_trip_settlements_list(
    trip: Trip = Depends(get_member_trip),
    db: Session = Depends(get_db)
):
    """Get the transfers that settle all debts of a trip"""
    return get_trip_settlements(db, trip.id)


@router.get("/trips/{trip_id}/balances", response_model=List[BalanceSummary])
def get_trip_balance_summary(
    trip: Trip = Depends(get_member_trip),
    db: Session = Depends(get_db)
):
    """Get paid, share and net balance for every participant"""
    return get_trip_balances(db, trip.id)


@router.get("/trips/{trip_id}/explain", response_model=SettlementExplanation)
def explain_trip_settlements_workflow(
    trip: Trip = Depends(get_member_trip),
    db: Session = Depends(get_db)
):
    """Get settlement transfers along with the matching workflow"""
    return explain_trip_settlements(db, trip.id)
