# backend/booking_engine/deps.py
"""
Request dependencies.

Callers are authenticated upstream; the identity collaborator forwards the
verified identity as X-User-* headers. Every request re-syncs the local user
so the external record always wins.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .database import get_db
from .errors import NotEligibleError
from .services.identity import Actor, sync_identity


def get_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Actor:
    if not x_user_id:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing X-User-Id header")
    user = sync_identity(
        db,
        external_id=x_user_id,
        email=x_user_email,
        name=x_user_name,
        role=x_user_role,
    )
    return Actor(user_id=user.id, role=user.role)


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.is_admin:
        raise NotEligibleError("Admin access required")
    return actor


def ensure_self_or_admin(actor: Actor, user_id: int) -> None:
    """Owner-or-admin check for per-user resources."""
    if actor.user_id != user_id and not actor.is_admin:
        raise NotEligibleError("You can only access your own data")
