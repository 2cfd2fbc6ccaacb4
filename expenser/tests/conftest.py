"""
Pytest configuration and fixtures for expenser tests.
"""
import os

# Must be set before expenser.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "expenser-test-secret-key-0123456789abcdef")

import pytest
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from expenser.db.database import Base, get_db
from expenser.models import trips as trip_models, expenses as expense_models  # noqa: F401
from expenser.schemas.expense_schema import ExpenseCreate, SplitType
from expenser.schemas.settlement_schema import Transfer
from expenser.schemas.trip_schema import TripCreate, JoinTripRequest
from expenser.services.auth.jwt_handler import create_access_token


def make_expense(
    paid_by: str,
    amount,
    split_among: List[str],
    split_type: SplitType = SplitType.equal,
    custom_split: Optional[Dict[str, Decimal]] = None,
    currency: str = "USD",
    description: str = "Test expense"
) -> ExpenseCreate:
    """Build a validated expense for engine and service tests."""
    return ExpenseCreate(
        description=description,
        amount=Decimal(str(amount)),
        currency=currency,
        paid_by=paid_by,
        split_among=split_among,
        split_type=split_type,
        custom_split=custom_split
    )


def verify_transfers_settle_balances(balances: Dict[str, Decimal], transfers: List[Transfer]) -> None:
    """
    Helper to verify transfers settle all balances.

    Paying reduces what a debtor owes, receiving reduces what a creditor is
    owed, so final balance = initial_balance + paid - received. Each transfer
    is rounded to cents, so the residual allowed grows with the number of
    transfers a participant takes part in.
    """
    movement: Dict[str, Decimal] = {}
    involvement: Dict[str, int] = {}

    for transfer in transfers:
        movement[transfer.from_user_id] = movement.get(transfer.from_user_id, Decimal("0")) + transfer.amount
        movement[transfer.to_user_id] = movement.get(transfer.to_user_id, Decimal("0")) - transfer.amount
        involvement[transfer.from_user_id] = involvement.get(transfer.from_user_id, 0) + 1
        involvement[transfer.to_user_id] = involvement.get(transfer.to_user_id, 0) + 1

    for user, initial_balance in balances.items():
        final_balance = initial_balance + movement.get(user, Decimal("0"))
        allowed = Decimal("0.01") * max(1, involvement.get(user, 0))

        assert abs(final_balance) <= allowed, \
            f"User {user} not settled: initial={initial_balance}, final={final_balance}"


@pytest.fixture
def participants():
    """Participant ids of a three-person trip."""
    return ["A", "B", "C"]


@pytest.fixture
def sample_expenses():
    """Equal-split expenses over four participants."""
    return [
        make_expense("A", "120", ["A", "B", "C"]),
        make_expense("B", "60", ["B", "C"]),
        make_expense("C", "40", ["A", "C", "D"]),
    ]


@pytest.fixture
def db_session():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def trip(db_session):
    """Trip created by alice and joined by bob and carol."""
    from expenser.services.trip_service import create_trip, join_trip

    new_trip = create_trip(
        db_session,
        TripCreate(name="Lisbon", description="Spring trip", creator_name="Alice", creator_email="alice@example.com"),
        "alice"
    )
    join_trip(db_session, JoinTripRequest(invite_code=new_trip.invite_code, name="Bob", email="bob@example.com"), "bob")
    join_trip(db_session, JoinTripRequest(invite_code=new_trip.invite_code, name="Carol", email="carol@example.com"), "carol")
    return new_trip


@pytest.fixture
def client(db_session):
    """HTTP client bound to the test database."""
    from fastapi.testclient import TestClient
    from expenser.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Build access-token headers for a user id."""
    def _headers(user_id: str) -> Dict[str, str]:
        return {"access-token": create_access_token(user_id)}
    return _headers
