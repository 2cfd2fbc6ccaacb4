from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List
from datetime import datetime


class TripBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class TripCreate(TripBase):
    # Creator's profile, stored on their participant record
    creator_name: str = Field(..., min_length=1, max_length=100)
    creator_email: str = Field(..., max_length=255)


class TripUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    # Note: invite_code is generated on creation and cannot be changed

    @field_validator("name", "is_active")
    @classmethod
    def reject_null(cls, value):
        # Omit a field to leave it unchanged; null would clear a NOT NULL column
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class TripOut(TripBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    invite_code: str
    created_by: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ParticipantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    trip_id: str
    user_id: str
    name: str
    email: str
    is_admin: bool
    joined_at: datetime


class TripWithParticipants(TripOut):
    participants: List[ParticipantOut] = []


class JoinTripRequest(BaseModel):
    """Schema for joining a trip with an invite code"""
    invite_code: str = Field(..., min_length=1, max_length=12)
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255)

    @field_validator("invite_code")
    @classmethod
    def normalize_invite_code(cls, value: str) -> str:
        return value.strip().upper()
