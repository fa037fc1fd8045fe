import logging
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, col
from ..errors import TransientIOFailure, ValidationError
from ..models import Team, TeamMember
from ..utils.time import to_utc_aware
from .context import SessionContext
from .policies import ensure_admin


logger = logging.getLogger(__name__)


def list_teams(context: SessionContext, session: Session) -> list[Team]:
    """Load the teams visible to the actor, newest first.

    Admins see the teams they created. Team members see the teams they hold a
    membership in; memberships pointing at a team that no longer exists are
    skipped. A failing query leaves an empty list (and, for members, an empty
    scoping set) instead of an error.
    """
    actor = context.actor
    if actor.is_admin:
        statement = (select(Team)
                     .where(Team.created_by == actor.id)
                     .order_by(col(Team.created_at).desc()))
        try:
            teams = list(session.exec(statement).all())
        except SQLAlchemyError as e:
            logger.error(f"Error fetching teams for admin {actor.id}: {e}")
            teams = []
        context.teams = teams
        return teams

    statement = (select(TeamMember, Team)
                 .join(Team, col(TeamMember.team_id) == col(Team.id), isouter=True)
                 .where(TeamMember.user_id == actor.id))
    try:
        rows = session.exec(statement).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching user teams for {actor.id}: {e}")
        rows = []

    teams = [team for _, team in rows if team is not None]
    teams.sort(key=lambda team: to_utc_aware(team.created_at), reverse=True)
    context.teams = teams
    context.user_team_ids = {team.id for team in teams}
    return teams


def get_team(context: SessionContext, team_id: Optional[str]) -> Optional[Team]:
    for team in context.teams:
        if team.id == team_id:
            return team
    return None


def create_team(context: SessionContext, session: Session, name: str) -> Team:
    actor = context.actor
    ensure_admin(actor, "create teams")
    name = (name or "").strip()
    if not name:
        raise ValidationError("Team name is required")

    new_team = Team(name=name, created_by=actor.id)
    try:
        session.add(new_team)
        session.commit()
        session.refresh(new_team)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error creating team {name}: {e}")
        raise TransientIOFailure(f"Failed to create team: {e}")

    context.teams = [new_team, *context.teams]
    # A new team becomes the working team right away
    context.workflow.select_team(new_team.id, context.teams)
    logger.info(f"Team {new_team.id} ({name}) created by {actor.id}")
    return new_team
