import logging
from sqlalchemy.orm import Session
from sqlalchemy import and_
from fastapi import HTTPException
from typing import List, Optional
from expenser.models.trips import Trip, TripParticipant
from expenser.models.expenses import Expense
from expenser.schemas.trip_schema import TripCreate, TripUpdate, JoinTripRequest
from expenser.utils.invite_codes import create_unique_invite_code

logger = logging.getLogger(__name__)


def create_trip(db: Session, trip_data: TripCreate, created_by: str) -> Trip:
    """Create a new trip with a unique invite code"""
    trip = Trip(
        name=trip_data.name,
        description=trip_data.description,
        invite_code=create_unique_invite_code(db),
        created_by=created_by
    )
    db.add(trip)
    db.commit()
    db.refresh(trip)

    # Add creator as admin participant
    add_participant_to_trip(
        db, trip.id, created_by, trip_data.creator_name, trip_data.creator_email, is_admin=True
    )
    logger.info(f"Trip {trip.id} created by {created_by}")
    return trip


def get_trip(db: Session, trip_id: str) -> Optional[Trip]:
    """Get a trip by ID"""
    return db.query(Trip).filter(Trip.id == trip_id).first()


def get_trip_by_invite_code(db: Session, invite_code: str) -> Optional[Trip]:
    """Get a trip by invite code (case-insensitive)"""
    return db.query(Trip).filter(Trip.invite_code == invite_code.strip().upper()).first()


def get_user_trips(db: Session, user_id: str) -> List[Trip]:
    """Get all trips for a user"""
    return db.query(Trip).join(TripParticipant, TripParticipant.trip_id == Trip.id)\
        .filter(TripParticipant.user_id == user_id)\
        .order_by(Trip.created_at.desc())\
        .all()


def update_trip(db: Session, trip_id: str, update_data: TripUpdate, user_id: str) -> Trip:
    """Update a trip (admin only)"""
    trip = get_trip(db, trip_id)
    if not trip:
        raise HTTPException(status_code=404, detail="Trip not found")

    if not is_trip_admin(db, trip_id, user_id):
        raise HTTPException(status_code=403, detail="Only trip admins can update trip")

    for field, value in update_data.model_dump(exclude_unset=True).items():
        setattr(trip, field, value)

    db.commit()
    db.refresh(trip)
    return trip


def delete_trip(db: Session, trip_id: str, user_id: str):
    """Delete a trip with its participants and expenses (admin only)"""
    trip = get_trip(db, trip_id)
    if not trip:
        raise HTTPException(status_code=404, detail="Trip not found")

    if not is_trip_admin(db, trip_id, user_id):
        raise HTTPException(status_code=403, detail="Only trip admins can delete trip")

    db.query(Expense).filter(Expense.trip_id == trip_id).delete(synchronize_session=False)
    db.query(TripParticipant).filter(TripParticipant.trip_id == trip_id).delete(synchronize_session=False)
    db.delete(trip)
    db.commit()
    logger.info(f"Trip {trip_id} deleted by {user_id}")


def add_participant_to_trip(db: Session, trip_id: str, user_id: str, name: str, email: str,
                            is_admin: bool = False) -> TripParticipant:
    """Add a participant to a trip"""
    # Check if already a participant
    existing = get_participant(db, trip_id, user_id)
    if existing:
        raise HTTPException(status_code=400, detail="User is already a participant of this trip")

    participant = TripParticipant(
        trip_id=trip_id,
        user_id=user_id,
        name=name,
        email=email,
        is_admin=is_admin
    )
    db.add(participant)
    db.commit()
    db.refresh(participant)
    return participant


def join_trip(db: Session, join_data: JoinTripRequest, user_id: str) -> Trip:
    """Join a trip using its invite code"""
    trip = get_trip_by_invite_code(db, join_data.invite_code)
    if not trip:
        raise HTTPException(status_code=404, detail="Invalid invite code")

    if not trip.is_active:
        raise HTTPException(status_code=400, detail="This trip is no longer active")

    add_participant_to_trip(db, trip.id, user_id, join_data.name, join_data.email)
    logger.info(f"User {user_id} joined trip {trip.id}")
    return trip


def remove_participant_from_trip(db: Session, trip_id: str, participant_user_id: str, admin_user_id: str):
    """Remove a participant from a trip (admin only)"""
    trip = get_trip(db, trip_id)
    if not trip:
        raise HTTPException(status_code=404, detail="Trip not found")

    if not is_trip_admin(db, trip_id, admin_user_id):
        raise HTTPException(status_code=403, detail="Only trip admins can remove participants")

    participant = get_participant(db, trip_id, participant_user_id)
    if not participant:
        raise HTTPException(status_code=404, detail="Participant not found")

    # Balances would lose their owner if the participant still has expenses
    involved = any(
        expense.paid_by == participant_user_id or participant_user_id in (expense.split_among or [])
        for expense in db.query(Expense).filter(Expense.trip_id == trip_id).all()
    )
    if involved:
        raise HTTPException(status_code=400, detail="Participant has expenses in this trip and cannot be removed")

    db.delete(participant)
    db.commit()


def get_participant(db: Session, trip_id: str, user_id: str) -> Optional[TripParticipant]:
    """Get a participant record of a trip"""
    return db.query(TripParticipant).filter(
        and_(TripParticipant.trip_id == trip_id, TripParticipant.user_id == user_id)
    ).first()


def get_trip_participants(db: Session, trip_id: str) -> List[TripParticipant]:
    """Get all participants of a trip in join order"""
    return db.query(TripParticipant)\
        .filter(TripParticipant.trip_id == trip_id)\
        .order_by(TripParticipant.joined_at, TripParticipant.user_id)\
        .all()


def is_trip_participant(db: Session, trip_id: str, user_id: str) -> bool:
    """Check if user is a participant of the trip"""
    return get_participant(db, trip_id, user_id) is not None


def is_trip_admin(db: Session, trip_id: str, user_id: str) -> bool:
    """Check if user is an admin of the trip"""
    participant = get_participant(db, trip_id, user_id)
    return participant is not None and participant.is_admin
