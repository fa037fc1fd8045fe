import logging
from typing import Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select, and_, or_, col
from ..errors import AlreadyMember, TransientIOFailure, UserNotFound, ValidationError
from ..models import Profile, Team, TeamMember
from ..schemas.member import MemberView
from .context import SessionContext
from .policies import ensure_team_owner


logger = logging.getLogger(__name__)

SEARCH_LIMIT = 10


def _display_name(profile: Optional[Profile]) -> str:
    if profile is None:
        return "Unknown"
    if profile.full_name:
        return profile.full_name
    if profile.email:
        return profile.email.split("@")[0]
    return "Unknown"


def member_view(membership: TeamMember, profile: Optional[Profile], team_name: Optional[str]) -> MemberView:
    return MemberView(
        id=membership.id,
        user_id=membership.user_id,
        email=profile.email if profile is not None and profile.email else "Unknown",
        name=_display_name(profile),
        team=team_name or "Unknown",
        added_at=membership.added_at,
    )


def find_user_by_email(session: Session, email: str) -> Profile:
    """Exact, case-sensitive e-mail lookup."""
    email = (email or "").strip()
    try:
        profile = session.exec(select(Profile).where(Profile.email == email)).first()
    except SQLAlchemyError as e:
        logger.error(f"Error looking up user {email}: {e}")
        raise TransientIOFailure(f"Failed to look up user: {e}")
    if not profile:
        raise UserNotFound(f'User with email "{email}" not found. '
                           f'Make sure they have signed up first.')
    return profile


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_users(session: Session, query: str) -> list[Profile]:
    """Case-insensitive substring search over e-mail and full name."""
    query = (query or "").strip()
    if not query:
        return []
    pattern = f"%{_escape_like(query)}%"
    statement = (select(Profile)
                 .where(or_(col(Profile.email).ilike(pattern, escape="\\"),
                            col(Profile.full_name).ilike(pattern, escape="\\")))
                 .limit(SEARCH_LIMIT))
    try:
        return list(session.exec(statement).all())
    except SQLAlchemyError as e:
        logger.error(f"Error searching users for {query!r}: {e}")
        return []


def add_member(context: SessionContext, session: Session, team_id: str, user_id: str) -> TeamMember:
    actor = context.actor
    team = ensure_team_owner(session, team_id, actor)

    statement = select(TeamMember).where(and_(
        TeamMember.user_id == user_id,
        TeamMember.team_id == team_id
    ))
    try:
        profile = session.get(Profile, user_id)
        existing = session.exec(statement).first() if profile else None
    except SQLAlchemyError as e:
        logger.error(f"Error checking membership of {user_id} in {team_id}: {e}")
        raise TransientIOFailure(f"Failed to add team member: {e}")
    if not profile:
        raise UserNotFound("User doesn't exist")
    if existing:
        raise AlreadyMember()

    new_member = TeamMember(team_id=team_id, user_id=user_id, added_by=actor.id)
    try:
        session.add(new_member)
        session.commit()
        session.refresh(new_member)
    except IntegrityError:
        session.rollback()
        raise AlreadyMember()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error adding {user_id} to team {team_id}: {e}")
        raise TransientIOFailure(f"Failed to add team member: {e}")

    if team_id == context.workflow.current_team_id:
        context.members.append(member_view(new_member, profile, team.name))
    logger.info(f"Added {profile.email} to team {team_id}")
    return new_member


def add_member_by_email(context: SessionContext, session: Session,
                        team_id: Optional[str], email: Optional[str]) -> TeamMember:
    if not (email or "").strip() or not team_id:
        raise ValidationError("Please enter an email and select a team")
    profile = find_user_by_email(session, email)
    return add_member(context, session, team_id, profile.id)


def list_members(context: SessionContext, session: Session, team_id: str) -> list[MemberView]:
    statement = (select(TeamMember)
                 .where(TeamMember.team_id == team_id)
                 .order_by(col(TeamMember.added_at).desc()))
    try:
        memberships = list(session.exec(statement).all())
        user_ids = [membership.user_id for membership in memberships]
        profiles = {}
        if user_ids:
            rows = session.exec(select(Profile).where(col(Profile.id).in_(user_ids))).all()
            profiles = {profile.id: profile for profile in rows}
        team_name = context.team_name(team_id)
        if team_name is None:
            team = session.get(Team, team_id)
            team_name = team.name if team else None
    except SQLAlchemyError as e:
        logger.error(f"Error fetching members of team {team_id}: {e}")
        context.members = []
        return []

    members = [member_view(membership, profiles.get(membership.user_id), team_name)
               for membership in memberships]
    context.members = members
    return members


def remove_member(context: SessionContext, session: Session, membership_id: str) -> bool:
    try:
        membership = session.get(TeamMember, membership_id)
    except SQLAlchemyError as e:
        logger.error(f"Error loading membership {membership_id}: {e}")
        raise TransientIOFailure(f"Failed to remove team member: {e}")
    if membership is None:
        logger.info(f"Membership {membership_id} already removed")
        context.members = [m for m in context.members if m.id != membership_id]
        return True

    ensure_team_owner(session, membership.team_id, context.actor)
    try:
        session.delete(membership)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error removing membership {membership_id}: {e}")
        raise TransientIOFailure(f"Failed to remove team member: {e}")

    context.members = [m for m in context.members if m.id != membership_id]
    return True
