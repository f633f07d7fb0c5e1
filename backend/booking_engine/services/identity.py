# backend/booking_engine/services/identity.py
"""
Local mirror of the external identity provider.

Users are keyed by the provider's external id. The external record always
wins: every sync overwrites email, name and role with what the caller sends.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models.tables import Users as DBUser

logger = logging.getLogger(__name__)

ROLES = ("seeker", "provider", "admin")


@dataclass(frozen=True)
class Actor:
    """Authenticated caller of an operation."""
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def sync_identity(
    db: Session,
    external_id: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
    role: Optional[str] = None,
) -> DBUser:
    """
    Upsert the local user for an external identity.

    Idempotent: repeating the same call changes nothing. Fields passed as
    None keep their stored value; new users default to the seeker role.
    """
    if not external_id:
        raise ValidationError("external_id is required")
    if role is not None and role not in ROLES:
        raise ValidationError(f"Unknown role: {role}")

    user = db.query(DBUser).filter(DBUser.external_id == external_id).first()
    if user is None:
        user = DBUser(
            external_id=external_id,
            email=email,
            name=name or "User",
            role=role or "seeker",
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Another request created the same identity first
            db.rollback()
            user = db.query(DBUser).filter(DBUser.external_id == external_id).one()
        else:
            db.refresh(user)
            logger.info(f"User {user.id} created for identity {external_id} ({user.role})")
            return user

    changed = False
    for field, value in (("email", email), ("name", name), ("role", role)):
        if value is not None and getattr(user, field) != value:
            setattr(user, field, value)
            changed = True

    if changed:
        db.commit()
        db.refresh(user)
        logger.info(f"User {user.id} updated from identity {external_id}")
    return user
