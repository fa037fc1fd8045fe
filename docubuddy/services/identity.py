"""Resolve who is acting and with which role.

The role comes from the first source that answers, in priority order: the
``profiles`` row, the role written into the session metadata at signup, and
finally the ``team_member`` default. A failing profile lookup degrades to the
metadata role instead of failing the request.
"""
import logging
from dataclasses import dataclass
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from ..config import ROLES, DEFAULT_ROLE
from ..models import Profile
from .auth import SessionUser


logger = logging.getLogger(__name__)

SOURCE_DATABASE = "database"
SOURCE_METADATA = "metadata"
SOURCE_DEFAULT = "default"


@dataclass(frozen=True)
class Actor:
    id: str
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class RoleResolution:
    role: str
    source: str


def resolve_role(user: SessionUser, session: Session) -> RoleResolution:
    try:
        profile = session.get(Profile, user.id)
    except SQLAlchemyError as e:
        logger.warning(f"Role lookup for {user.id} failed, falling back to session metadata: {e}")
        profile = None

    if profile is not None and profile.role in ROLES:
        return RoleResolution(role=profile.role, source=SOURCE_DATABASE)

    metadata_role = (user.user_metadata or {}).get("role")
    if metadata_role in ROLES:
        return RoleResolution(role=metadata_role, source=SOURCE_METADATA)

    return RoleResolution(role=DEFAULT_ROLE, source=SOURCE_DEFAULT)


def resolve_actor(user: Optional[SessionUser], session: Session, context=None) -> Optional[Actor]:
    """Return the acting user, or ``None`` when there is no live session.

    With a session context the role is resolved once and reused until the
    context is closed on sign-out.
    """
    if user is None:
        return None

    resolution = context.role if context is not None else None
    if resolution is None:
        resolution = resolve_role(user, session)
        if context is not None:
            context.role = resolution
    return Actor(id=user.id, email=user.email, role=resolution.role)
