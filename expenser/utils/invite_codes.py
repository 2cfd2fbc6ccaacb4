import logging
import secrets
import string
from typing import Optional
from sqlalchemy.orm import Session
from expenser.config import settings
from expenser.models.trips import Trip

logger = logging.getLogger(__name__)

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_ATTEMPTS = 100


def generate_invite_code(length: Optional[int] = None) -> str:
    """
    Generate a random invite code such as "K3Q9ZB".
    Uses uppercase letters and digits so codes are easy to read out loud.
    """
    length = length or settings.invite_code_length
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def create_unique_invite_code(db: Session, length: Optional[int] = None) -> str:
    """
    Generate an invite code that no existing trip uses.
    """
    for _ in range(MAX_ATTEMPTS):
        code = generate_invite_code(length)
        existing_trip = db.query(Trip).filter(Trip.invite_code == code).first()
        if not existing_trip:
            return code
        logger.debug(f"Invite code collision on {code}, retrying")

    # Code space is crowded at this length, fall back to a longer code
    return generate_invite_code((length or settings.invite_code_length) + 2)
