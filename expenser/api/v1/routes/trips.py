from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from expenser.api.v1.dependencies import get_current_user_id, get_member_trip
from expenser.db.database import get_db
from expenser.models.trips import Trip
from expenser.services.trip_service import (
    create_trip, get_user_trips, update_trip, delete_trip, join_trip,
    remove_participant_from_trip, get_trip_participants
)
from expenser.schemas.trip_schema import (
    TripCreate, TripUpdate, TripOut, TripWithParticipants, ParticipantOut, JoinTripRequest
)

router = APIRouter(prefix="/trips", tags=["trips"])


def _with_participants(db: Session, trip: Trip) -> TripWithParticipants:
    participants = get_trip_participants(db, trip.id)
    return TripWithParticipants(
        id=trip.id,
        name=trip.name,
        description=trip.description,
        invite_code=trip.invite_code,
        created_by=trip.created_by,
        is_active=trip.is_active,
        created_at=trip.created_at,
        updated_at=trip.updated_at,
        participants=[ParticipantOut.model_validate(participant) for participant in participants]
    )


@router.post("/", response_model=TripWithParticipants)
def create_new_trip(
    trip_data: TripCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Create a new trip; the creator becomes its admin"""
    trip = create_trip(db, trip_data, user_id)
    return _with_participants(db, trip)


@router.get("/", response_model=List[TripOut])
def get_my_trips(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Get all trips for current user"""
    return get_user_trips(db, user_id)


@router.post("/join", response_model=TripWithParticipants)
def join_existing_trip(
    join_data: JoinTripRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Join a trip with an invite code"""
    trip = join_trip(db, join_data, user_id)
    return _with_participants(db, trip)


@router.get("/{trip_id}", response_model=TripWithParticipants)
def get_trip_details(
    trip: Trip = Depends(get_member_trip),
    db: Session = Depends(get_db)
):
    """Get trip details with participants"""
    return _with_participants(db, trip)


@router.patch("/{trip_id}", response_model=TripOut)
def update_existing_trip(
    trip_id: str,
    update_data: TripUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Update a trip (admin only)"""
    return update_trip(db, trip_id, update_data, user_id)


@router.delete("/{trip_id}")
def delete_existing_trip(
    trip_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Delete a trip (admin only)"""
    delete_trip(db, trip_id, user_id)
    return {"message": "Trip deleted successfully"}


@router.delete("/{trip_id}/participants/{participant_user_id}")
def remove_trip_participant(
    trip_id: str,
    participant_user_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Remove a participant from a trip (admin only)"""
    remove_participant_from_trip(db, trip_id, participant_user_id, user_id)
    return {"message": "Participant removed successfully"}
