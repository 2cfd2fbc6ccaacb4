"""
Settlement Engine Module

This module turns a trip's expense history into the list of transfers that
settles every debt between its participants.

The algorithm works by:
1. Calculating net balances for each participant (total_paid - total_share)
2. Separating participants into creditors (positive balance) and debtors (negative balance)
3. Matching the largest remaining creditor with the smallest remaining debtor
4. Emitting one transfer per match until either side runs out

Time Complexity: O(E + P log P) for E expenses and P participants
Space Complexity: O(P) for balances and the creditor/debtor worklists

Split types:
    - equal: amount / len(split_among) for every participant in split_among
    - custom: custom_split[user_id] for every participant in split_among
    - percentage: amount * custom_split[user_id] / 100 for every participant in split_among

Example Usage:
    from expenser.utils.settlement_engine import compute_settlements

    expenses = [
        ExpenseCreate(description="Dinner", amount=Decimal("90"), paid_by="A",
                      split_among=["A", "B", "C"]),
    ]

    transfers = compute_settlements(expenses, ["A", "B", "C"])

    # Result: [Transfer(from_user_id="B", to_user_id="A", amount=Decimal("30.00"), currency="USD"),
    #          Transfer(from_user_id="C", to_user_id="A", amount=Decimal("30.00"), currency="USD")]
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from expenser.schemas.expense_schema import SplitType
from expenser.schemas.settlement_schema import Transfer

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
DEFAULT_TOLERANCE = Decimal("0.01")
DEFAULT_CURRENCY = "USD"

Worklist = List[Tuple[str, Decimal]]


class InvalidSplitError(ValueError):
    """Raised when an expense's split cannot be turned into shares."""


class MissingSharePolicy(str, Enum):
    """What to do with a split_among participant that has no custom_split entry."""
    zero = "zero"
    error = "error"


def round_decimal(value: Decimal, precision: Decimal = CENT) -> Decimal:
    """
    Round a Decimal value to the specified precision, half-up.

    Args:
        value: The Decimal value to round
        precision: The precision to round to (default: 0.01 for cents)

    Returns:
        Rounded Decimal value

    Example:
        >>> round_decimal(Decimal("33.335"))
        Decimal('33.34')
    """
    return value.quantize(precision, rounding=ROUND_HALF_UP)


def validate_balance_sum(balances: Mapping[str, Decimal], tolerance: Decimal = DEFAULT_TOLERANCE) -> None:
    """
    Validate that the sum of all balances is approximately zero.

    Balances built from consistent expenses always sum to zero; custom splits
    whose shares don't add up to the expense amount break this. The engine
    itself tolerates that, so this check is for callers that want to be strict.

    Raises:
        ValueError: If the sum of balances exceeds the tolerance
    """
    total = sum(balances.values(), Decimal("0"))
    if abs(total) > tolerance:
        raise ValueError(
            f"Balances not zero-sum: total={total}, tolerance={tolerance}. "
            f"This indicates inconsistent custom splits."
        )


def _participant_id(participant: Union[str, Any]) -> str:
    if isinstance(participant, str):
        return participant
    return participant.user_id


def _to_decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def expense_shares(
    expense: Any,
    missing_share_policy: MissingSharePolicy = MissingSharePolicy.zero
) -> Dict[str, Decimal]:
    """
    Compute what each participant in split_among owes for a single expense.

    Args:
        expense: Any object exposing amount, split_among, split_type and
            custom_split (pydantic schemas and ORM rows both work)
        missing_share_policy: How to treat split_among entries with no
            custom_split value (custom and percentage splits only)

    Returns:
        Dictionary mapping user_id -> share (unrounded Decimal)

    Raises:
        InvalidSplitError: If an equal split has nobody to split among, or a
            custom_split entry is missing under MissingSharePolicy.error
    """
    amount = _to_decimal(expense.amount)
    # Each participant owes one share, however often they are listed
    split_among = list(dict.fromkeys(expense.split_among or []))
    split_type = SplitType(expense.split_type)

    if split_type == SplitType.equal:
        if not split_among:
            raise InvalidSplitError("Equal split requires at least one participant in split_among")
        share = amount / Decimal(len(split_among))
        return {user_id: share for user_id in split_among}

    custom_split = expense.custom_split or {}
    shares: Dict[str, Decimal] = {}
    for user_id in split_among:
        value = custom_split.get(user_id)
        if value is None:
            if missing_share_policy == MissingSharePolicy.error:
                raise InvalidSplitError(
                    f"No {split_type.value} share given for participant {user_id}"
                )
            value = Decimal("0")
        value = _to_decimal(value)

        if split_type == SplitType.percentage:
            shares[user_id] = amount * value / Decimal("100")
        else:
            shares[user_id] = value

    return shares


def calculate_balances(
    expenses: Sequence[Any],
    participants: Sequence[Union[str, Any]] = (),
    missing_share_policy: MissingSharePolicy = MissingSharePolicy.zero
) -> Dict[str, Decimal]:
    """
    Calculate net balance for each participant from a list of expenses.

    Net balance = total_paid - total_share
    - Positive balance: participant is owed money (creditor)
    - Negative balance: participant owes money (debtor)

    Every participant starts at zero. Payers and split_among entries that are
    not in participants get their own entry as they are encountered.

    Returns:
        Dictionary mapping user_id -> net_balance (unrounded Decimal), in
        participant order followed by any ad-hoc entries
    """
    balances: Dict[str, Decimal] = {
        _participant_id(participant): Decimal("0") for participant in participants
    }

    for expense in expenses:
        payer = expense.paid_by
        balances[payer] = balances.get(payer, Decimal("0")) + _to_decimal(expense.amount)

        for user_id, share in expense_shares(expense, missing_share_policy).items():
            balances[user_id] = balances.get(user_id, Decimal("0")) - share

    return balances


def partition_balances(
    balances: Mapping[str, Decimal],
    tolerance: Decimal = DEFAULT_TOLERANCE
) -> Tuple[Worklist, Worklist]:
    """
    Split balances into sorted creditor and debtor worklists.

    Creditors are ordered by amount owed to them, largest first. Debtors are
    ordered by amount they owe, smallest first. Ties are broken by user_id so
    the output doesn't depend on dict ordering. Balances within tolerance of
    zero are treated as settled and dropped.

    Returns:
        Tuple of (creditors, debtors), each a list of (user_id, amount) with
        amounts stored as positive Decimals
    """
    creditors = [
        (user_id, balance)
        for user_id, balance in balances.items()
        if balance > tolerance
    ]
    debtors = [
        (user_id, -balance)  # Store as positive for easier matching
        for user_id, balance in balances.items()
        if balance < -tolerance
    ]

    creditors.sort(key=lambda x: (-x[1], x[0]))
    debtors.sort(key=lambda x: (x[1], x[0]))

    return creditors, debtors


def match_transfers(
    creditors: Worklist,
    debtors: Worklist,
    currency: str = DEFAULT_CURRENCY,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    logs: Optional[List[str]] = None
) -> List[Transfer]:
    """
    Greedily match sorted creditors and debtors into transfers.

    Each step pairs the current creditor with the current debtor and moves
    min(credit, debt) between them. A transfer is emitted only when its rounded
    amount exceeds the tolerance. A side whose remainder drops to the tolerance
    or below is considered settled and the walk moves past it. The walk stops
    as soon as either list is exhausted.

    The input worklists are not modified.

    Args:
        creditors: (user_id, amount) pairs, in matching order
        debtors: (user_id, amount) pairs, in matching order
        currency: Currency code stamped on every transfer
        tolerance: Settled threshold (default: 0.01)
        logs: Optional list that receives one line per matching step

    Returns:
        List of Transfer objects in emission order
    """
    creditors = list(creditors)
    debtors = list(debtors)
    transfers: List[Transfer] = []

    i, j = 0, 0
    step = 0
    while i < len(creditors) and j < len(debtors):
        step += 1
        creditor_id, credit_amount = creditors[i]
        debtor_id, debt_amount = debtors[j]

        settlement_amount = min(credit_amount, debt_amount)
        rounded_amount = round_decimal(settlement_amount)

        if logs is not None:
            logs.append(f"Step {step}: Matching {debtor_id} (debt: {round_decimal(debt_amount)}) "
                        f"with {creditor_id} (credit: {round_decimal(credit_amount)})")

        if rounded_amount > tolerance:
            transfers.append(Transfer(
                from_user_id=debtor_id,
                to_user_id=creditor_id,
                amount=rounded_amount,
                currency=currency
            ))
            if logs is not None:
                logs.append(f"  -> Transfer: {debtor_id} pays {creditor_id} {rounded_amount} {currency}")
        elif logs is not None:
            logs.append(f"  -> Skipped (amount {rounded_amount} <= tolerance {tolerance})")

        credit_amount -= settlement_amount
        debt_amount -= settlement_amount
        creditors[i] = (creditor_id, credit_amount)
        debtors[j] = (debtor_id, debt_amount)

        if credit_amount <= tolerance:
            i += 1
        if debt_amount <= tolerance:
            j += 1

    return transfers


def compute_settlements(
    expenses: Sequence[Any],
    participants: Sequence[Union[str, Any]],
    currency: str = DEFAULT_CURRENCY,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    missing_share_policy: MissingSharePolicy = MissingSharePolicy.zero
) -> List[Transfer]:
    """
    Compute the transfers that settle all debts for a set of expenses.

    Args:
        expenses: Expense records in any order; each exposes paid_by, amount,
            split_among, split_type and custom_split
        participants: Participant objects (with user_id) or bare user ids
        currency: Currency of the whole batch, copied onto each transfer
        tolerance: Amounts at or below this are treated as settled (default: 0.01)
        missing_share_policy: How custom/percentage splits treat absent entries

    Returns:
        Ordered list of Transfer objects. Empty when there are no expenses or
        everyone is already settled.

    Raises:
        InvalidSplitError: For an equal split with empty split_among, or a
            missing share under MissingSharePolicy.error

    Example:
        >>> transfers = compute_settlements(expenses, ["A", "B", "C"])
        >>> [(t.from_user_id, t.to_user_id, t.amount) for t in transfers]
        [('B', 'A', Decimal('30.00')), ('C', 'A', Decimal('30.00'))]
    """
    balances = calculate_balances(expenses, participants, missing_share_policy)
    creditors, debtors = partition_balances(balances, tolerance)
    transfers = match_transfers(creditors, debtors, currency, tolerance)

    logger.debug(
        f"Computed {len(transfers)} transfers for {len(expenses)} expenses "
        f"({len(creditors)} creditors, {len(debtors)} debtors)"
    )
    return transfers


def compute_settlements_detailed(
    expenses: Sequence[Any],
    participants: Sequence[Union[str, Any]],
    currency: str = DEFAULT_CURRENCY,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    missing_share_policy: MissingSharePolicy = MissingSharePolicy.zero
) -> Tuple[List[Transfer], List[str]]:
    """
    Compute settlements along with a step-by-step log of the workflow.

    Same algorithm as compute_settlements(), but also returns lines describing
    the balances, the zero-sum check, the sorted worklists and every matching
    step. Balances that don't sum to zero are reported, not raised.

    Returns:
        Tuple of (transfers, logs)
    """
    logs: List[str] = []
    logs.append("=" * 60)
    logs.append("Settlement Engine - Detailed Workflow")
    logs.append("=" * 60)

    balances = calculate_balances(expenses, participants, missing_share_policy)
    rounded = {user_id: round_decimal(balance) for user_id, balance in balances.items()}
    logs.append(f"Expenses processed: {len(expenses)}")
    logs.append(f"Net balances: {rounded}")

    try:
        validate_balance_sum(balances, tolerance)
        logs.append(f"Balance check passed (sum within tolerance {tolerance})")
    except ValueError as e:
        logs.append(f"Balance check failed: {e}")
    logs.append("")

    creditors, debtors = partition_balances(balances, tolerance)
    logs.append(f"Creditors (to receive): {[(u, round_decimal(a)) for u, a in creditors]}")
    logs.append(f"Debtors (to pay): {[(u, round_decimal(a)) for u, a in debtors]}")
    logs.append("")

    if not creditors or not debtors:
        logs.append("Everyone is settled. No transfers needed.")
        logs.append("=" * 60)
        return [], logs

    logs.append("Starting greedy matching...")
    logs.append("-" * 60)
    transfers = match_transfers(creditors, debtors, currency, tolerance, logs=logs)
    logs.append("-" * 60)
    logs.append(f"Total transfers: {len(transfers)}")
    logs.append("=" * 60)

    return transfers, logs
