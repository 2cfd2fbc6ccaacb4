"""
Integration tests for trip, expense and settlement services.

Tests cover:
- Trip creation, invite codes and joining
- Expense validation before storage
- Settlements and balances computed from stored expenses
- Permission checks
"""
import pytest
from decimal import Decimal
from fastapi import HTTPException
from pydantic import ValidationError

from expenser.schemas.expense_schema import SplitType
from expenser.schemas.trip_schema import JoinTripRequest, TripCreate, TripUpdate
from expenser.services.trip_service import (
    create_trip, delete_trip, get_trip, get_trip_participants, get_user_trips,
    is_trip_admin, is_trip_participant, join_trip, remove_participant_from_trip, update_trip
)
from expenser.services.expense_service import (
    create_expense, delete_expense, get_trip_expenses
)
from expenser.services.settlement_service import (
    explain_trip_settlements, get_trip_balances, get_trip_settlements
)
from expenser.utils.invite_codes import INVITE_CODE_ALPHABET, generate_invite_code
from expenser.tests.conftest import make_expense


@pytest.mark.unit
class TestInviteCodes:
    """Test invite code generation."""

    def test_default_length_and_alphabet(self):
        code = generate_invite_code()
        assert len(code) == 6
        assert all(char in INVITE_CODE_ALPHABET for char in code)

    def test_custom_length(self):
        assert len(generate_invite_code(8)) == 8


@pytest.mark.integration
class TestTripService:
    """Test trip lifecycle."""

    def test_creator_is_admin(self, db_session, trip):
        assert is_trip_admin(db_session, trip.id, "alice")
        assert not is_trip_admin(db_session, trip.id, "bob")
        assert len(trip.invite_code) == 6

    def test_join_adds_participants(self, db_session, trip):
        user_ids = {participant.user_id for participant in get_trip_participants(db_session, trip.id)}
        assert user_ids == {"alice", "bob", "carol"}

    def test_join_is_case_insensitive(self, db_session, trip):
        joined = join_trip(
            db_session,
            JoinTripRequest(invite_code=trip.invite_code.lower(), name="Dan", email="dan@example.com"),
            "dan"
        )
        assert joined.id == trip.id
        assert is_trip_participant(db_session, trip.id, "dan")

    def test_join_twice_rejected(self, db_session, trip):
        with pytest.raises(HTTPException) as exc:
            join_trip(
                db_session,
                JoinTripRequest(invite_code=trip.invite_code, name="Bob", email="bob@example.com"),
                "bob"
            )
        assert exc.value.status_code == 400

    def test_join_unknown_code(self, db_session, trip):
        with pytest.raises(HTTPException) as exc:
            join_trip(db_session, JoinTripRequest(invite_code="NOPE12", name="Dan", email="d@example.com"), "dan")
        assert exc.value.status_code == 404

    def test_join_inactive_trip(self, db_session, trip):
        update_trip(db_session, trip.id, TripUpdate(is_active=False), "alice")
        with pytest.raises(HTTPException) as exc:
            join_trip(
                db_session,
                JoinTripRequest(invite_code=trip.invite_code, name="Dan", email="dan@example.com"),
                "dan"
            )
        assert exc.value.status_code == 400

    def test_update_requires_admin(self, db_session, trip):
        with pytest.raises(HTTPException) as exc:
            update_trip(db_session, trip.id, TripUpdate(name="Porto"), "bob")
        assert exc.value.status_code == 403

        updated = update_trip(db_session, trip.id, TripUpdate(name="Porto"), "alice")
        assert updated.name == "Porto"
        assert updated.description == "Spring trip"

    def test_user_trips(self, db_session, trip):
        create_trip(db_session, TripCreate(name="Madrid", creator_name="Bob", creator_email="bob@example.com"), "bob")

        assert {t.name for t in get_user_trips(db_session, "bob")} == {"Lisbon", "Madrid"}
        assert {t.name for t in get_user_trips(db_session, "alice")} == {"Lisbon"}

    def test_invite_codes_are_unique(self, db_session, trip):
        other = create_trip(
            db_session, TripCreate(name="Madrid", creator_name="Bob", creator_email="bob@example.com"), "bob"
        )
        assert other.invite_code != trip.invite_code

    def test_delete_trip(self, db_session, trip):
        trip_id = trip.id
        create_expense(db_session, trip_id, make_expense("alice", "30", ["alice", "bob"]), "alice")

        with pytest.raises(HTTPException) as exc:
            delete_trip(db_session, trip_id, "bob")
        assert exc.value.status_code == 403

        delete_trip(db_session, trip_id, "alice")
        assert get_trip(db_session, trip_id) is None
        assert get_trip_expenses(db_session, trip_id) == []
        assert get_trip_participants(db_session, trip_id) == []

    def test_remove_participant_without_expenses(self, db_session, trip):
        remove_participant_from_trip(db_session, trip.id, "carol", "alice")
        assert not is_trip_participant(db_session, trip.id, "carol")

    def test_remove_participant_with_expenses_rejected(self, db_session, trip):
        create_expense(db_session, trip.id, make_expense("alice", "30", ["alice", "carol"]), "alice")

        with pytest.raises(HTTPException) as exc:
            remove_participant_from_trip(db_session, trip.id, "carol", "alice")
        assert exc.value.status_code == 400

    def test_remove_participant_requires_admin(self, db_session, trip):
        with pytest.raises(HTTPException) as exc:
            remove_participant_from_trip(db_session, trip.id, "carol", "bob")
        assert exc.value.status_code == 403


@pytest.mark.integration
class TestExpenseService:
    """Test expense creation and validation."""

    def test_payer_defaults_to_requester(self, db_session, trip):
        expense = create_expense(
            db_session, trip.id, make_expense(None, "90", ["alice", "bob", "carol"]), "bob"
        )
        assert expense.paid_by == "bob"
        assert expense.split_among == ["alice", "bob", "carol"]
        assert expense.amount == Decimal("90.00")

    def test_custom_split_stored(self, db_session, trip):
        expense = create_expense(
            db_session, trip.id,
            make_expense("alice", "100", ["alice", "bob"], SplitType.custom,
                         {"alice": Decimal("40"), "bob": Decimal("60")}),
            "alice"
        )
        assert expense.split_type == SplitType.custom
        assert {k: Decimal(v) for k, v in expense.custom_split.items()} == \
            {"alice": Decimal("40"), "bob": Decimal("60")}

    def test_amounts_limited_to_cents(self):
        with pytest.raises(ValidationError):
            make_expense("alice", "10.005", ["alice", "bob"])
        with pytest.raises(ValidationError):
            make_expense("alice", "10", ["alice", "bob"], SplitType.custom,
                         {"alice": Decimal("4.9975"), "bob": Decimal("5.0025")})

        expense = make_expense("alice", "10.01", ["alice", "bob"], SplitType.custom,
                               {"alice": Decimal("5.01"), "bob": Decimal("5.00")})
        assert expense.amount == Decimal("10.01")

    def test_non_participant_cannot_add(self, db_session, trip):
        with pytest.raises(HTTPException) as exc:
            create_expense(db_session, trip.id, make_expense("mallory", "10", ["alice"]), "mallory")
        assert exc.value.status_code == 403

    def test_split_among_must_be_participants(self, db_session, trip):
        with pytest.raises(HTTPException) as exc:
            create_expense(db_session, trip.id, make_expense("alice", "10", ["alice", "mallory"]), "alice")
        assert exc.value.status_code == 400
        assert "mallory" in exc.value.detail

    def test_payer_must_be_participant(self, db_session, trip):
        with pytest.raises(HTTPException) as exc:
            create_expense(db_session, trip.id, make_expense("mallory", "10", ["alice"]), "alice")
        assert exc.value.status_code == 400

    def test_custom_split_must_sum_to_amount(self, db_session, trip):
        expense = make_expense(
            "alice", "100", ["alice", "bob"], SplitType.custom,
            {"alice": Decimal("40"), "bob": Decimal("50")}
        )
        with pytest.raises(HTTPException) as exc:
            create_expense(db_session, trip.id, expense, "alice")
        assert exc.value.status_code == 400
        assert exc.value.detail == "Total custom shares must equal expense amount"

    def test_percentages_must_sum_to_100(self, db_session, trip):
        expense = make_expense(
            "alice", "100", ["alice", "bob"], SplitType.percentage,
            {"alice": Decimal("40"), "bob": Decimal("50")}
        )
        with pytest.raises(HTTPException) as exc:
            create_expense(db_session, trip.id, expense, "alice")
        assert exc.value.detail == "Percentages must add up to 100"

    def test_custom_split_entries_outside_split_among(self, db_session, trip):
        expense = make_expense(
            "alice", "100", ["alice"], SplitType.custom,
            {"alice": Decimal("100"), "bob": Decimal("0")}
        )
        with pytest.raises(HTTPException) as exc:
            create_expense(db_session, trip.id, expense, "alice")
        assert exc.value.status_code == 400

    def test_delete_permissions(self, db_session, trip):
        expense = create_expense(db_session, trip.id, make_expense("bob", "20", ["bob", "carol"]), "bob")

        with pytest.raises(HTTPException) as exc:
            delete_expense(db_session, expense.id, "carol")
        assert exc.value.status_code == 403

        # Admins can delete any expense
        delete_expense(db_session, expense.id, "alice")
        assert get_trip_expenses(db_session, trip.id) == []

    def test_delete_unknown_expense(self, db_session, trip):
        with pytest.raises(HTTPException) as exc:
            delete_expense(db_session, "missing", "alice")
        assert exc.value.status_code == 404


@pytest.mark.integration
class TestSettlementService:
    """Test settlements computed from stored expenses."""

    def test_no_expenses(self, db_session, trip):
        assert get_trip_settlements(db_session, trip.id) == []

    def test_equal_split_settlement(self, db_session, trip):
        create_expense(db_session, trip.id, make_expense("alice", "90", ["alice", "bob", "carol"]), "alice")

        transfers = get_trip_settlements(db_session, trip.id)

        assert [(t.from_user_id, t.to_user_id, t.amount, t.currency) for t in transfers] == [
            ("bob", "alice", Decimal("30.00"), "USD"),
            ("carol", "alice", Decimal("30.00"), "USD"),
        ]

    def test_mixed_split_types(self, db_session, trip):
        create_expense(db_session, trip.id, make_expense("alice", "90", ["alice", "bob", "carol"]), "alice")
        create_expense(
            db_session, trip.id,
            make_expense("bob", "100", ["alice", "bob"], SplitType.custom,
                         {"alice": Decimal("40"), "bob": Decimal("60")}),
            "bob"
        )
        create_expense(
            db_session, trip.id,
            make_expense("carol", "200", ["alice", "bob", "carol"], SplitType.percentage,
                         {"alice": Decimal("50"), "bob": Decimal("30"), "carol": Decimal("20")}),
            "carol"
        )

        # alice: +90 -30 -40 -100 = -80, bob: -30 +100 -60 -60 = -50, carol: -30 +200 -40 = +130
        balances = {b.user_id: b.net_balance for b in get_trip_balances(db_session, trip.id)}
        assert balances == {"alice": Decimal("-80.00"), "bob": Decimal("-50.00"), "carol": Decimal("130.00")}

        transfers = get_trip_settlements(db_session, trip.id)
        assert [(t.from_user_id, t.to_user_id, t.amount) for t in transfers] == [
            ("bob", "carol", Decimal("50.00")),
            ("alice", "carol", Decimal("80.00")),
        ]

    def test_balance_totals(self, db_session, trip):
        create_expense(db_session, trip.id, make_expense("alice", "90", ["alice", "bob", "carol"]), "alice")

        summary = {b.user_id: b for b in get_trip_balances(db_session, trip.id)}

        assert summary["alice"].total_paid == Decimal("90.00")
        assert summary["alice"].total_share == Decimal("30.00")
        assert summary["alice"].net_balance == Decimal("60.00")
        assert summary["carol"].total_paid == Decimal("0.00")
        assert summary["carol"].net_balance == Decimal("-30.00")

    def test_mixed_currencies_rejected(self, db_session, trip):
        create_expense(db_session, trip.id, make_expense("alice", "90", ["alice", "bob"]), "alice")
        create_expense(db_session, trip.id, make_expense("bob", "10", ["alice", "bob"], currency="EUR"), "bob")

        with pytest.raises(HTTPException) as exc:
            get_trip_settlements(db_session, trip.id)
        assert exc.value.status_code == 400
        assert "EUR, USD" in exc.value.detail

    def test_single_currency_is_used(self, db_session, trip):
        create_expense(db_session, trip.id, make_expense("alice", "90", ["alice", "bob"], currency="eur"), "alice")

        transfers = get_trip_settlements(db_session, trip.id)
        assert transfers[0].currency == "EUR"

    def test_explain(self, db_session, trip):
        create_expense(db_session, trip.id, make_expense("alice", "90", ["alice", "bob", "carol"]), "alice")

        explanation = explain_trip_settlements(db_session, trip.id)

        assert explanation.settlements == get_trip_settlements(db_session, trip.id)
        assert "Total transfers: 2" in explanation.logs
