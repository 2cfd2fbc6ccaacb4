from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session
from expenser.db.database import get_db
from expenser.models.trips import Trip
from expenser.services.auth.jwt_handler import get_current_user


def get_current_user_id(access_token: str = Header(..., description="Access token (without Bearer)")):
    """Extract current user ID from JWT token"""
    if access_token.startswith("Bearer "):
        access_token = access_token.replace("Bearer ", "")
    user_id = get_current_user(access_token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user_id


def get_member_trip(
    trip_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
) -> Trip:
    """Load a trip the current user participates in"""
    from expenser.services.trip_service import get_trip, is_trip_participant

    trip = get_trip(db, trip_id)
    if not trip:
        raise HTTPException(status_code=404, detail="Trip not found")

    if not is_trip_participant(db, trip.id, user_id):
        raise HTTPException(status_code=403, detail="You are not a participant of this trip")

    return trip
