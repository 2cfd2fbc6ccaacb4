import logging
from sqlalchemy.orm import Session
from fastapi import HTTPException
from typing import List, Tuple
from decimal import Decimal
from expenser.config import settings
from expenser.models.expenses import Expense
from expenser.models.trips import TripParticipant
from expenser.schemas.settlement_schema import Transfer, BalanceSummary, SettlementExplanation
from expenser.utils.settlement_engine import (
    InvalidSplitError,
    compute_settlements,
    compute_settlements_detailed,
    expense_shares,
    round_decimal
)

logger = logging.getLogger(__name__)


def _load_trip_data(db: Session, trip_id: str) -> Tuple[List[TripParticipant], List[Expense]]:
    from .trip_service import get_trip_participants
    from .expense_service import get_trip_expenses

    return get_trip_participants(db, trip_id), get_trip_expenses(db, trip_id)


def get_batch_currency(expenses: List[Expense]) -> str:
    """
    Return the single currency used by a batch of expenses.

    Settlements are computed in one currency only; a trip that mixes currencies
    cannot be settled until its expenses are converted by the client.
    """
    currencies = {expense.currency for expense in expenses}
    if not currencies:
        return settings.default_currency
    if len(currencies) > 1:
        raise HTTPException(
            status_code=400,
            detail=f"Expenses use multiple currencies ({', '.join(sorted(currencies))}); "
                   f"settlements require a single currency"
        )
    return currencies.pop()


def get_trip_settlements(db: Session, trip_id: str) -> List[Transfer]:
    """
    Compute the transfers that settle all debts of a trip.

    Transfers are computed on demand from the trip's expenses and are never
    stored.
    """
    participants, expenses = _load_trip_data(db, trip_id)
    currency = get_batch_currency(expenses)

    try:
        transfers = compute_settlements(
            expenses,
            participants,
            currency=currency,
            tolerance=settings.settlement_tolerance
        )
    except InvalidSplitError as e:
        logger.error(f"Cannot settle trip {trip_id}: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid split: {e}")

    logger.info(f"Trip {trip_id}: {len(transfers)} transfers from {len(expenses)} expenses")
    return transfers


def explain_trip_settlements(db: Session, trip_id: str) -> SettlementExplanation:
    """Compute settlements together with the engine's step-by-step workflow log"""
    participants, expenses = _load_trip_data(db, trip_id)
    currency = get_batch_currency(expenses)

    try:
        transfers, logs = compute_settlements_detailed(
            expenses,
            participants,
            currency=currency,
            tolerance=settings.settlement_tolerance
        )
    except InvalidSplitError as e:
        raise HTTPException(status_code=400, detail=f"Invalid split: {e}")

    return SettlementExplanation(settlements=transfers, logs=logs)


def get_trip_balances(db: Session, trip_id: str) -> List[BalanceSummary]:
    """
    Calculate what each participant paid, their share, and their net balance.

    Net balance = total_paid - total_share; positive means the trip owes the
    participant. Users who appear in expenses but are no longer participants
    are listed after the participants.
    """
    participants, expenses = _load_trip_data(db, trip_id)

    paid = {participant.user_id: Decimal("0") for participant in participants}
    share = {participant.user_id: Decimal("0") for participant in participants}

    for expense in expenses:
        paid[expense.paid_by] = paid.get(expense.paid_by, Decimal("0")) + expense.amount
        share.setdefault(expense.paid_by, Decimal("0"))

        try:
            shares = expense_shares(expense)
        except InvalidSplitError as e:
            raise HTTPException(status_code=400, detail=f"Invalid split: {e}")

        for user_id, amount in shares.items():
            share[user_id] = share.get(user_id, Decimal("0")) + amount
            paid.setdefault(user_id, Decimal("0"))

    return [
        BalanceSummary(
            user_id=user_id,
            total_paid=round_decimal(paid[user_id]),
            total_share=round_decimal(share[user_id]),
            net_balance=round_decimal(paid[user_id] - share[user_id])
        )
        for user_id in paid
    ]
